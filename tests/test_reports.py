"""
Tests for report aggregation and rendering
"""

import pytest
from decimal import Decimal
from jinja2 import TemplateNotFound
from engine import EconomyInstance, GameState, create_initial_state
from fuzzer import TestResult
from reports import ReportRenderer, render_report, summarize_results
from validator import BugReport, BugType


def _result(bot_index=0, bugs=None, action_counts=None, state=None, **kwargs):
    action_counts = action_counts or {'openChest': 3, 'sellItem': 1}
    return TestResult(
        bot_index=bot_index,
        seed=bot_index,
        total_actions=sum(action_counts.values()),
        bugs=bugs or [],
        action_counts=action_counts,
        final_state=state or create_initial_state(),
        duration_ms=1500.0,
        **kwargs
    )


class TestSummarize:
    """Test aggregation across bots."""

    def test_totals_and_histogram(self):
        """Bugs are grouped by type:category, most frequent first."""
        bugs = [
            BugReport(BugType.WARNING, 'OrphanedBattleSlot', 'slot 0', 'sellItem'),
            BugReport(BugType.ERROR, 'NaN', 'Coins became NaN', 'openChest'),
            BugReport(BugType.ERROR, 'NaN', 'XP became NaN', 'openChest'),
        ]
        summary = summarize_results([_result(0, bugs), _result(1)])
        assert summary['bots'] == 2
        assert summary['total_actions'] == 8
        assert summary['total_bugs'] == 3
        assert summary['counts'] == {'error': 2, 'warning': 1, 'anomaly': 0}
        assert summary['bug_categories'][0]['key'] == 'error:NaN'
        assert summary['bug_categories'][0]['count'] == 2
        assert summary['bug_categories'][0]['example'] == 'Coins became NaN'

    def test_action_percentages(self):
        """Action shares are percentages of all actions."""
        summary = summarize_results([_result()])
        distribution = {row['name']: row['percent'] for row in summary['action_distribution']}
        assert distribution['openChest'] == pytest.approx(75.0)
        assert summary['action_distribution'][0]['name'] == 'openChest'

    def test_final_state_averages(self):
        """Final-state metrics average over the main area."""
        rich = GameState(areas=(EconomyInstance(level=5, coins=Decimal('10')), EconomyInstance()))
        summary = summarize_results([_result(0, state=rich), _result(1)])
        assert summary['final']['level'] == pytest.approx(3.0)
        assert summary['final']['coins'] == pytest.approx(5.0)

    def test_battle_statistics(self):
        """Wins and losses come from the battle_won/battle_lost tallies."""
        counts = {'battle_won': 3, 'battle_lost': 1}
        summary = summarize_results([_result(action_counts=counts)])
        assert summary['battle']['total'] == 4
        assert summary['battle']['win_rate'] == pytest.approx(75.0)

    def test_empty_campaign(self):
        """No bots still summarizes without dividing by zero."""
        summary = summarize_results([])
        assert summary['bots'] == 0
        assert summary['final']['level'] == 0.0
        assert summary['battle']['max_wave'] == 0


class TestRenderReport:
    """Test the text report."""

    def test_clean_report(self):
        """No bugs ends with the all-clear verdict."""
        report = render_report([_result()])
        assert 'BOT TEST REPORT' in report
        assert 'RESULT: NO BUGS FOUND' in report
        assert 'BUGS BY CATEGORY' not in report
        assert 'openChest: 3 (75.0%)' in report
        assert 'Total duration: 1.50s' in report

    def test_report_with_bugs(self):
        """Bugs produce the histogram and a per-type breakdown."""
        bugs = [
            BugReport(BugType.ERROR, 'NegativeValue', 'Coins became negative: -1', 'sellItem'),
            BugReport(BugType.ANOMALY, 'LargeHistory', 'Drops history has 50001 items', 'openChest'),
        ]
        report = render_report([_result(bugs=bugs)])
        assert 'BUGS BY CATEGORY' in report
        assert 'error:NegativeValue: 1' in report
        assert '  Example: Coins became negative: -1' in report
        assert '  Action: sellItem' in report
        assert 'RESULT: 2 ISSUES FOUND' in report
        assert '  Errors: 1' in report
        assert '  Warnings: 0' in report
        assert '  Anomalies: 1' in report

    def test_optional_sections(self):
        """Battle and galaxy sections only appear when there is data."""
        plain = render_report([_result()])
        assert 'BATTLE STATISTICS' not in plain
        assert 'GALAXY AREA STATISTICS' not in plain

        galaxy = GameState(areas=(EconomyInstance(), EconomyInstance(coins=Decimal('4'))), current_area=2)
        report = render_report([_result(state=galaxy, action_counts={'battle_won': 2})])
        assert 'BATTLE STATISTICS' in report
        assert '  Wins: 2 (100.0%)' in report
        assert 'GALAXY AREA STATISTICS' in report
        assert 'Bots in galaxy area: 1/1' in report

    def test_stopped_early_is_reported(self):
        """Early-stopped bots are counted in the summary."""
        report = render_report([_result(stopped_early=True)])
        assert 'Bots stopped early: 1' in report


class TestReportRenderer:
    """Test the Jinja2 renderer itself."""

    def test_filters(self):
        """Custom filters format numbers."""
        renderer = ReportRenderer()
        assert renderer._format_thousands(1234567) == '1,234,567'
        assert renderer._format_percent(12.345) == '12.3%'
        assert renderer._format_fixed(2, 1) == '2.0'

    def test_template_directory(self, tmp_path):
        """Templates on disk override the inline defaults."""
        (tmp_path / 'report.txt').write_text('{{ bots }} bots, {{ total_actions | thousands }} actions')
        renderer = ReportRenderer(template_dir=tmp_path)
        assert render_report([_result()], renderer) == '1 bots, 4 actions'

    def test_unknown_template(self):
        """Missing templates raise rather than rendering a placeholder."""
        with pytest.raises(TemplateNotFound):
            ReportRenderer().render('missing.txt', {})
