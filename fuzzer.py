"""
Fuzz Runner - drives bots through the economy and collects bugs

Each bot starts from a fresh state and applies weighted-random actions,
validating after every step. Bots share nothing, so a campaign fans them
out over a process pool and joins the results in bot order.

Every bot gets its own seed, recorded on its TestResult, so any failing
run can be replayed exactly with replay_bot.

Usage:
    loot-fuzz 5 5000 --battle-mode -v
"""

from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence
import argparse
import json
import logging
import random
import sys
import time

from actions import ACTION_REGISTRY, ActionKind, apply_action, base_action_name
from engine import GameState, create_initial_state
from loot import weighted_select
from reports import render_report, summarize_results
from validator import BugReport, BugType, validate

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

FUZZ_CONFIG = {
    'num_bots': 5,
    'actions_per_bot': 5000,
    'policy': 'chest',
    'max_errors': 10,   # per bot; the bot stops once it has this many errors
    'workers': 1,
    'seed': None,
}


class FuzzPolicy(str, Enum):
    UNIFORM = 'uniform'   # every action equally likely
    CHEST = 'chest'       # 50% openChest, 50% uniform
    BATTLE = 'battle'     # 40% fightBattle, 30% openChest, 30% uniform


# Share of each step forced onto one action; the rest is spread uniformly
POLICY_BIASES: Dict[FuzzPolicy, Dict[ActionKind, float]] = {
    FuzzPolicy.UNIFORM: {},
    FuzzPolicy.CHEST: {ActionKind.OPEN_CHEST: 0.5},
    FuzzPolicy.BATTLE: {ActionKind.FIGHT_BATTLE: 0.4, ActionKind.OPEN_CHEST: 0.3},
}


def parse_policy(policy) -> FuzzPolicy:
    try:
        return FuzzPolicy(policy)
    except ValueError:
        raise InvalidPolicyError(
            f"Unknown policy '{policy}'. Choose from: {', '.join(p.value for p in FuzzPolicy)}"
        )


def policy_weights(policy: FuzzPolicy) -> Dict[ActionKind, float]:
    """Per-action selection probability for a policy. Sums to 1."""
    biases = POLICY_BIASES[parse_policy(policy)]
    uniform_share = (1.0 - sum(biases.values())) / len(ACTION_REGISTRY)
    return {kind: uniform_share + biases.get(kind, 0.0) for kind in ACTION_REGISTRY}


@dataclass
class FuzzConfig:
    """Campaign settings. Fields left as None take their FUZZ_CONFIG default."""

    num_bots: Optional[int] = None
    actions_per_bot: Optional[int] = None
    policy: Optional[FuzzPolicy] = None
    verbose: bool = False
    seed: Optional[int] = None
    workers: Optional[int] = None
    max_errors: Optional[int] = None

    def __post_init__(self):
        for name in ('num_bots', 'actions_per_bot', 'workers', 'max_errors', 'seed'):
            if getattr(self, name) is None:
                setattr(self, name, FUZZ_CONFIG[name])
        self.policy = parse_policy(self.policy or FUZZ_CONFIG['policy'])
        if self.num_bots < 0 or self.actions_per_bot < 0:
            raise ValueError("num_bots and actions_per_bot must be non-negative")

    def bot_seeds(self) -> List[int]:
        """One seed per bot, derived from the campaign seed (random if unset)."""
        master = random.Random(self.seed)
        return [master.getrandbits(63) for _ in range(self.num_bots)]


@dataclass
class TestResult:
    """Outcome of one bot run."""

    __test__ = False  # not a pytest class

    bot_index: int
    seed: int
    total_actions: int
    bugs: List[BugReport]
    action_counts: Dict[str, int]
    final_state: GameState
    duration_ms: float
    stopped_early: bool = False
    action_log: List[str] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return sum(1 for bug in self.bugs if bug.type == BugType.ERROR)


# =============================================================================
# BOT LOOP
# =============================================================================

def run_bot(
    bot_index: int,
    seed: int,
    actions_per_bot: int,
    policy: FuzzPolicy = FuzzPolicy.CHEST,
    max_errors: int = FUZZ_CONFIG['max_errors'],
    record_actions: bool = False,
    verbose: bool = False,
) -> TestResult:
    """
    Run one bot to completion or early stop.

    An exception escaping an action is contained: it becomes an
    'ActionException' error and the bot continues from the unchanged state.

    Args:
        bot_index: Position in the campaign (for logs and ordering)
        seed: Seed for this bot's private Random
        actions_per_bot: Step limit
        policy: Action selection policy
        max_errors: Stop once this many error-type bugs have accumulated
        record_actions: Keep every action name in TestResult.action_log
        verbose: Log each buggy action at INFO instead of DEBUG
    """
    policy = parse_policy(policy)
    rng = random.Random(seed)
    log_bug = logger.info if verbose else logger.debug
    weights = policy_weights(policy)
    kinds = list(weights)
    probabilities = [weights[kind] for kind in kinds]

    state = create_initial_state()
    bugs: List[BugReport] = []
    action_counts: Dict[str, int] = {}
    action_log: List[str] = []
    errors = 0
    stopped_early = False
    start = time.perf_counter()

    logger.debug(f"[Bot {bot_index + 1}] Starting (seed={seed}, policy={policy.value})")

    for step in range(actions_per_bot):
        kind = weighted_select(kinds, probabilities, rng)
        try:
            state, action_name = apply_action(kind, state, rng)
        except Exception as e:
            logger.error(f"[Bot {bot_index + 1}] {kind.value} raised at step {step + 1}: {e}")
            action_name = f"{kind.value}_exception"
            step_bugs = [BugReport(
                BugType.ERROR,
                'ActionException',
                f"{type(e).__name__}: {e}",
                action_name,
                state.current_area,
            )]
        else:
            step_bugs = validate(state, action_name)

        base_name = base_action_name(action_name)
        action_counts[base_name] = action_counts.get(base_name, 0) + 1
        if record_actions:
            action_log.append(action_name)

        if step_bugs:
            bugs.extend(step_bugs)
            log_bug(f"  [Action {step + 1}] {action_name}: {len(step_bugs)} bug(s) found")
            for bug in step_bugs:
                log_bug(f"    - [{bug.type.value}] {bug.category}: {bug.message}")

        errors += sum(1 for bug in step_bugs if bug.type == BugType.ERROR)
        if errors >= max_errors:
            logger.warning(f"[Bot {bot_index + 1}] Stopping early: {errors} errors after {step + 1} actions")
            stopped_early = True
            break

    duration_ms = (time.perf_counter() - start) * 1000
    final = state.active
    logger.info(
        f"[Bot {bot_index + 1}] Completed in {duration_ms:.0f}ms: "
        f"{sum(action_counts.values())} actions, {len(bugs)} bugs, "
        f"level {final.level}, {final.coins} coins, {len(final.inventory)} items"
    )

    return TestResult(
        bot_index=bot_index,
        seed=seed,
        total_actions=sum(action_counts.values()),
        bugs=bugs,
        action_counts=action_counts,
        final_state=state,
        duration_ms=duration_ms,
        stopped_early=stopped_early,
        action_log=action_log,
    )


def replay_bot(
    seed: int,
    actions_per_bot: int,
    policy: FuzzPolicy = FuzzPolicy.CHEST,
    bot_index: int = 0,
    max_errors: int = FUZZ_CONFIG['max_errors'],
) -> TestResult:
    """Re-run a single bot from its recorded seed, keeping the full action log."""
    return run_bot(
        bot_index,
        seed,
        actions_per_bot,
        parse_policy(policy),
        max_errors,
        record_actions=True,
    )


def run_fuzz_campaign(config: FuzzConfig) -> List[TestResult]:
    """
    Run every bot in `config` and return their results in bot order.

    With more than one worker the bots run in a process pool; the join
    here is the only point where their results meet.
    """
    seeds = config.bot_seeds()
    logger.info(
        f"Running {config.num_bots} bots x {config.actions_per_bot} actions "
        f"(policy={config.policy.value}, workers={config.workers})"
    )

    if config.workers <= 1 or config.num_bots <= 1:
        return [
            run_bot(index, seed, config.actions_per_bot, config.policy, config.max_errors,
                    verbose=config.verbose)
            for index, seed in enumerate(seeds)
        ]

    results: List[TestResult] = []
    with ProcessPoolExecutor(max_workers=config.workers) as executor:
        futures = [
            executor.submit(
                run_bot,
                index,
                seed,
                config.actions_per_bot,
                config.policy,
                config.max_errors,
                False,
                config.verbose,
            )
            for index, seed in enumerate(seeds)
        ]
        for future in as_completed(futures):
            results.append(future.result())

    return sorted(results, key=lambda result: result.bot_index)


# =============================================================================
# CLI
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='loot-fuzz',
        description="Fuzz the loot economy with random bots and report invariant violations",
    )
    parser.add_argument('num_bots', type=int, nargs='?', default=FUZZ_CONFIG['num_bots'],
                        help="Number of independent bots")
    parser.add_argument('actions_per_bot', type=int, nargs='?', default=FUZZ_CONFIG['actions_per_bot'],
                        help="Actions each bot performs")
    parser.add_argument('-v', '--verbose', action='store_true',
                        help="Log every action that produced a bug")
    parser.add_argument('--battle-mode', action='store_true',
                        help="Shortcut for --policy battle (40%% battles)")
    parser.add_argument('--policy', choices=[p.value for p in FuzzPolicy], default=None,
                        help="Action selection policy")
    parser.add_argument('--seed', type=int, default=None,
                        help="Campaign seed (omit for non-deterministic)")
    parser.add_argument('--workers', type=int, default=FUZZ_CONFIG['workers'],
                        help="Worker processes")
    parser.add_argument('--json', action='store_true',
                        help="Print the aggregated summary as JSON")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(levelname)s %(name)s: %(message)s',
    )

    policy = FuzzPolicy.BATTLE if args.battle_mode else args.policy
    config = FuzzConfig(
        num_bots=args.num_bots,
        actions_per_bot=args.actions_per_bot,
        policy=policy,
        verbose=args.verbose,
        seed=args.seed,
        workers=args.workers,
    )

    mode_label = " (battle mode: 40% battles)" if config.policy == FuzzPolicy.BATTLE else ""
    print(f"Running bot test with {config.num_bots} bots, {config.actions_per_bot} actions each{mode_label}...")
    print()

    results = run_fuzz_campaign(config)

    if args.json:
        print(json.dumps(summarize_results(results), indent=2, default=str))
    else:
        print(render_report(results))
    return 0


# =============================================================================
# EXCEPTIONS
# =============================================================================

class InvalidPolicyError(Exception):
    """Raised when an unknown fuzz policy is requested."""
    pass


if __name__ == '__main__':
    sys.exit(main())
