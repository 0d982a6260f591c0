"""
Report rendering for fuzz campaigns.

Aggregation happens in summarize_results; Jinja2 templates only lay the
numbers out.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence
from jinja2 import DictLoader, Environment, FileSystemLoader

from validator import count_by_type

REPORT_WIDTH = 60
SECTION_WIDTH = 40


class ReportRenderer:
    """
    Jinja2 report template engine.

    Uses template files from `template_dir` when given, otherwise the
    inline DEFAULT_TEMPLATES.
    """

    def __init__(self, template_dir: Optional[Path] = None):
        self.template_dir = template_dir

        if self.template_dir is not None and self.template_dir.exists():
            loader = FileSystemLoader(str(self.template_dir))
        else:
            loader = DictLoader(DEFAULT_TEMPLATES)

        self.env = Environment(loader=loader, trim_blocks=True, lstrip_blocks=True)

        # Register custom filters
        self.env.filters['thousands'] = self._format_thousands
        self.env.filters['percent'] = self._format_percent
        self.env.filters['fixed'] = self._format_fixed

    def _format_thousands(self, value) -> str:
        """Format integer with thousands separators."""
        try:
            return f"{int(value):,}"
        except (ValueError, TypeError):
            return str(value)

    def _format_percent(self, value) -> str:
        """Format number as percentage."""
        try:
            return f"{float(value):.1f}%"
        except (ValueError, TypeError):
            return f"{value}%"

    def _format_fixed(self, value, digits: int = 2) -> str:
        try:
            return f"{float(value):.{digits}f}"
        except (ValueError, TypeError):
            return str(value)

    def render(self, template_name: str, context: Dict[str, Any]) -> str:
        """Render a template with context. Raises TemplateNotFound for unknown names."""
        return self.env.get_template(template_name).render(**context)


# =============================================================================
# AGGREGATION
# =============================================================================

def _average(values: Sequence) -> float:
    values = [float(value) for value in values]
    return sum(values) / len(values) if values else 0.0


def summarize_results(results: List) -> Dict[str, Any]:
    """
    Aggregate bot results into one report context.

    Final-state averages describe the main area; the galaxy area is
    summarized separately.
    """
    all_bugs = [bug for result in results for bug in result.bugs]
    total_actions = sum(result.total_actions for result in results)
    total_duration_ms = sum(result.duration_ms for result in results)

    counts = {bug_type.value: count for bug_type, count in count_by_type(all_bugs).items()}
    by_key: Dict[str, list] = {}
    for bug in all_bugs:
        by_key.setdefault(bug.key, []).append(bug)

    bug_categories = [
        {
            'key': key,
            'count': len(bugs),
            'example': bugs[0].message,
            'action': bugs[0].action,
        }
        for key, bugs in sorted(by_key.items(), key=lambda entry: -len(entry[1]))
    ]

    action_totals: Dict[str, int] = {}
    for result in results:
        for name, count in result.action_counts.items():
            action_totals[name] = action_totals.get(name, 0) + count

    action_distribution = [
        {
            'name': name,
            'count': count,
            'percent': count / total_actions * 100 if total_actions else 0.0,
        }
        for name, count in sorted(action_totals.items(), key=lambda entry: -entry[1])
    ]

    main_areas = [result.final_state.area(1) for result in results]
    galaxy_areas = [result.final_state.area(2) for result in results]

    final = {
        'level': _average([area.level for area in main_areas]),
        'coins': _average([area.coins for area in main_areas]),
        'inventory': _average([len(area.inventory) for area in main_areas]),
        'chests_opened': _average([area.stats.total_chests_opened for area in main_areas]),
        'rebirths': _average([area.rebirth_count for area in main_areas]),
        'prestiges': _average([area.prestige_count for area in main_areas]),
        'pets': _average([len(area.pets) for area in main_areas]),
        'equipped_pets': _average([len(area.equipped_pets) for area in main_areas]),
    }

    bots_in_galaxy = sum(1 for result in results if result.final_state.current_area == 2)
    galaxy = {
        'bots_in_area': bots_in_galaxy,
        'level': _average([area.level for area in galaxy_areas]),
        'coins': _average([area.coins for area in galaxy_areas]),
        'chests_opened': _average([area.stats.total_chests_opened for area in galaxy_areas]),
        'rebirths': _average([area.rebirth_count for area in galaxy_areas]),
        'prestiges': _average([area.prestige_count for area in galaxy_areas]),
    }
    galaxy['shown'] = bool(bots_in_galaxy or galaxy['coins'] > 0 or galaxy['rebirths'] > 0
                           or galaxy['chests_opened'] > 0)

    wins = action_totals.get('battle_won', 0)
    losses = action_totals.get('battle_lost', 0)
    total_battles = wins + losses
    waves = [area.battle_wave for area in main_areas]
    battle = {
        'total': total_battles,
        'wins': wins,
        'losses': losses,
        'win_rate': wins / total_battles * 100 if total_battles else 0.0,
        'loss_rate': losses / total_battles * 100 if total_battles else 0.0,
        'avg_wave': _average(waves),
        'max_wave': max(waves) if waves else 0,
        'bots_with_streak': sum(1 for area in main_areas if area.battle_streak > 0),
        'avg_streak': _average([area.battle_streak for area in main_areas]),
    }

    return {
        'bots': len(results),
        'total_actions': total_actions,
        'total_duration_ms': total_duration_ms,
        'total_bugs': len(all_bugs),
        'stopped_early': sum(1 for result in results if result.stopped_early),
        'seeds': [result.seed for result in results],
        'counts': counts,
        'bug_categories': bug_categories,
        'action_distribution': action_distribution,
        'final': final,
        'galaxy': galaxy,
        'battle': battle,
        'width': REPORT_WIDTH,
        'section_width': SECTION_WIDTH,
    }


# =============================================================================
# INLINE TEMPLATES
# =============================================================================

DEFAULT_TEMPLATES = {
    'report.txt': '''\
{{ '=' * width }}
BOT TEST REPORT
{{ '=' * width }}

SUMMARY
{{ '-' * section_width }}
Bots tested: {{ bots }}
Total actions: {{ total_actions | thousands }}
Total duration: {{ (total_duration_ms / 1000) | fixed }}s
Total bugs found: {{ total_bugs }}
{% if stopped_early %}
Bots stopped early: {{ stopped_early }}
{% endif %}

{% if bug_categories %}
BUGS BY CATEGORY
{{ '-' * section_width }}
{% for bug in bug_categories %}
{{ bug.key }}: {{ bug.count }}
  Example: {{ bug.example }}
{% if bug.action %}
  Action: {{ bug.action }}
{% endif %}
{% endfor %}

{% endif %}
ACTION DISTRIBUTION
{{ '-' * section_width }}
{% for action in action_distribution %}
{{ action.name }}: {{ action.count | thousands }} ({{ action.percent | percent }})
{% endfor %}

FINAL STATE SUMMARY (averages)
{{ '-' * section_width }}
Average level: {{ final.level | fixed(1) }}
Average coins: {{ final.coins | fixed }}
Average inventory size: {{ final.inventory | fixed(0) }}
Average chests opened: {{ final.chests_opened | fixed(0) }}
Average rebirths: {{ final.rebirths | fixed }}
Average prestiges: {{ final.prestiges | fixed }}
Average pets: {{ final.pets | fixed(1) }}
Average equipped pets: {{ final.equipped_pets | fixed(1) }}

{% if galaxy.shown %}
GALAXY AREA STATISTICS
{{ '-' * section_width }}
Bots in galaxy area: {{ galaxy.bots_in_area }}/{{ bots }}
Average galaxy level: {{ galaxy.level | fixed(1) }}
Average galaxy coins: {{ galaxy.coins | fixed }}
Average galaxy chests opened: {{ galaxy.chests_opened | fixed(0) }}
Average galaxy rebirths: {{ galaxy.rebirths | fixed }}
Average galaxy prestiges: {{ galaxy.prestiges | fixed }}

{% endif %}
{% if battle.total %}
BATTLE STATISTICS
{{ '-' * section_width }}
Total battles: {{ battle.total | thousands }}
  Wins: {{ battle.wins | thousands }} ({{ battle.win_rate | percent }})
  Losses: {{ battle.losses | thousands }} ({{ battle.loss_rate | percent }})
Average final wave: {{ battle.avg_wave | fixed(1) }}
Highest wave reached: {{ battle.max_wave }}
Bots with active streak: {{ battle.bots_with_streak }}/{{ bots }}
Average streak at end: {{ battle.avg_streak | fixed(1) }}

{% endif %}
{{ '=' * width }}
{% if total_bugs == 0 %}
RESULT: NO BUGS FOUND
{% else %}
RESULT: {{ total_bugs }} ISSUES FOUND
  Errors: {{ counts.error }}
  Warnings: {{ counts.warning }}
  Anomalies: {{ counts.anomaly }}
{% endif %}
{{ '=' * width }}
''',
}


# Global renderer instance
_renderer: Optional[ReportRenderer] = None


def get_report_renderer() -> ReportRenderer:
    """Get or create the global report renderer."""
    global _renderer
    if _renderer is None:
        _renderer = ReportRenderer()
    return _renderer


def render_report(results: List, renderer: Optional[ReportRenderer] = None) -> str:
    """Aggregate `results` and render the text report."""
    renderer = renderer or get_report_renderer()
    return renderer.render('report.txt', summarize_results(results))
