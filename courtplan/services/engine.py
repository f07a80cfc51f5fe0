"""
Entry points of the scheduling core.

``generate`` builds a schedule from scratch (fast: baseline only; optimize:
baseline plus annealing). ``reoptimize`` improves an existing schedule around
locked games. Both take an optional progress callback and cancellation token.
"""

from typing import AbstractSet, Iterable, Optional

from courtplan.core.logging_config import get_logger
from courtplan.models import (
    ProblemDescription, ReoptimizeResult, ScheduleMode, ScheduleSolution, SolveConfig,
    SolveResult, SolveStats, resolve_weights
)
from courtplan.services.annealer import Annealer, CancellationToken, ProgressCallback
from courtplan.services.cost import CostEvaluator
from courtplan.services.explainer import explain
from courtplan.services.generator import DeterministicGenerator
from courtplan.services.reoptimizer import Reoptimizer
from courtplan.services.validator import ConflictValidator

logger = get_logger(__name__)


def generate(
    problem: ProblemDescription,
    mode: ScheduleMode = ScheduleMode.OPTIMIZE,
    config: Optional[SolveConfig] = None,
    progress: Optional[ProgressCallback] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> SolveResult:
    """
    Build a schedule for a problem description.

    Args:
        problem: Participants, slots, constraints, weights and format
        mode: FAST returns the deterministic baseline; OPTIMIZE anneals it
        config: Search options (OPTIMIZE only)
        progress: Progress callback (OPTIMIZE only)
        cancel_token: Cancellation handle (OPTIMIZE only)

    Raises:
        InvalidWeights: If a weight lies outside [0.0, 1.0]
        InfeasibleProblem: If no feasible baseline exists
    """
    weights = resolve_weights(problem.weights)
    mode = ScheduleMode(mode)
    logger.info(
        "Generating %s schedule (%s) for %d participants on %d slots",
        problem.format.value, mode.value, len(problem.participants), len(problem.slots)
    )

    baseline = DeterministicGenerator(problem).generate()
    evaluator = CostEvaluator()
    validator = ConflictValidator()

    if mode is ScheduleMode.FAST:
        report = evaluator.evaluate(baseline, weights)
        result = SolveResult(
            solution=baseline,
            report=report,
            explanation=explain(report, weights),
            stats=SolveStats(initial_cost=report.total, best_cost=report.total),
            conflicts=validator.validate(baseline),
        )
    else:
        outcome = Annealer(config, evaluator, validator).run(
            baseline, weights, progress=progress, cancel_token=cancel_token
        )
        result = SolveResult(
            solution=outcome.solution,
            report=outcome.report,
            explanation=explain(outcome.report, weights),
            stats=outcome.stats,
            conflicts=validator.validate(outcome.solution),
        )

    logger.info(
        "Schedule ready: %d games, cost %.4f, status %s",
        len(result.solution), result.report.total, result.status.value
    )
    return result


def reoptimize(
    problem: ProblemDescription,
    previous: ScheduleSolution,
    locks: AbstractSet[str] = frozenset(),
    config: Optional[SolveConfig] = None,
    locked_rounds: Iterable[int] = (),
    progress: Optional[ProgressCallback] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> ReoptimizeResult:
    """
    Improve an existing schedule while keeping locked games on their slots.

    Raises:
        LockConflict: If a lock names a game missing from ``previous``
        InvalidWeights: If a weight lies outside [0.0, 1.0]
    """
    return Reoptimizer(config).reoptimize(
        problem, previous, locks,
        locked_rounds=locked_rounds, progress=progress, cancel_token=cancel_token
    )
