"""
Re-optimization of an existing schedule around locked games.
"""

from typing import AbstractSet, Iterable, Optional

from courtplan.core.exceptions import LockConflict
from courtplan.core.logging_config import get_logger
from courtplan.models import (
    ProblemDescription, ReoptimizeResult, ScheduleSolution, SolveConfig
)
from courtplan.models.schemas import resolve_weights
from courtplan.services.annealer import Annealer, CancellationToken, ProgressCallback
from courtplan.services.cost import CostEvaluator
from courtplan.services.explainer import explain
from courtplan.services.validator import ConflictValidator

logger = get_logger(__name__)


class Reoptimizer:
    """
    Seeds the annealer with a previous schedule and keeps locked games in place.

    The lock set is the union of the requested game ids, every game of a
    locked round and every game already flagged as locked. Locked games are
    excluded from neighbor moves and pinned in the validator, so they never
    show up in the diff.
    """

    def __init__(self, config: Optional[SolveConfig] = None):
        self.config = config or SolveConfig()
        self.evaluator = CostEvaluator()
        self.validator = ConflictValidator()

    def resolve_locks(self, previous: ScheduleSolution, locks: AbstractSet[str],
                      locked_rounds: Iterable[int] = ()) -> frozenset:
        missing = [game_id for game_id in locks if game_id not in previous.assignments]
        if missing:
            raise LockConflict(missing)
        rounds = set(locked_rounds)
        locked = set(locks)
        for game in previous.games:
            if game.locked or game.round in rounds:
                locked.add(game.id)
        return frozenset(locked)

    def reoptimize(
        self,
        problem: ProblemDescription,
        previous: ScheduleSolution,
        locks: AbstractSet[str] = frozenset(),
        locked_rounds: Iterable[int] = (),
        progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ReoptimizeResult:
        """
        Improve ``previous`` without moving any locked game.

        Raises:
            LockConflict: If a lock names a game that ``previous`` does not contain
            InvalidWeights: If the problem's weights are invalid
        """
        weights = resolve_weights(problem.weights)
        locked = self.resolve_locks(previous, locks, locked_rounds)

        # The search owns its own copy bound to the current problem
        seed = previous.rebind(problem)
        pinned = {game_id: seed.slot_of(game_id) for game_id in locked}

        initial_conflicts = self.validator.validate(seed, pinned=pinned)
        if initial_conflicts:
            logger.warning(
                "Previous schedule has %d conflict(s); first: %s",
                len(initial_conflicts), initial_conflicts[0]
            )

        logger.info("Re-optimizing %d games with %d locked", len(seed), len(locked))
        outcome = Annealer(self.config, self.evaluator, self.validator).run(
            seed, weights, locked=locked, pinned=pinned, progress=progress, cancel_token=cancel_token
        )

        diff = seed.diff(outcome.solution)
        logger.info("Re-optimization moved %d game(s)", len(diff))
        return ReoptimizeResult(
            solution=outcome.solution,
            report=outcome.report,
            explanation=explain(outcome.report, weights),
            stats=outcome.stats,
            conflicts=self.validator.validate(outcome.solution, pinned=pinned),
            diff=diff,
            locked_game_ids=locked,
        )
