"""
Simulated-annealing search over schedules.

The loop threads an explicit ``AnnealState`` through every iteration:

1. ask the neighbor generator for a candidate, retrying infeasible ones
   (the second half of the retries use local moves)
2. accept strict improvements; accept uphill moves with probability
   exp(-delta / T); reject equal-cost moves
3. cool the temperature (linear, exponential or adaptive)
4. stop at max iterations, after ``plateau_window`` iterations without a new
   best, or when the cancellation token fires

Cancellation is not an error: the best schedule found so far is returned
with status ``cancelled``.
"""

import math
import random
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import AbstractSet, Callable, Mapping, Optional

from courtplan.core.config import (
    ADAPTIVE_HIGH_ACCEPTANCE, ADAPTIVE_LOW_ACCEPTANCE, CANCEL_POLL_SECONDS
)
from courtplan.core.logging_config import get_logger
from courtplan.models import (
    CoolingStrategy, CostReport, ProgressUpdate, ScheduleSolution, Slot, SolveConfig,
    SolveStats, SolveStatus, WeightVector
)
from courtplan.services.cost import CostEvaluator
from courtplan.services.neighbors import NeighborGenerator
from courtplan.services.validator import ConflictValidator

logger = get_logger(__name__)

ProgressCallback = Callable[[ProgressUpdate], None]


class CancellationToken:
    """Thread-safe cancellation flag checked by the search once per iteration."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    def is_cancelled(self) -> bool:
        return self._event.is_set()


class PollingCancellationToken(CancellationToken):
    """
    Cancellation token backed by an external predicate, e.g. a Celery abort
    flag stored in Redis. The predicate is consulted at most once per
    ``interval_seconds``; once it reports True the token stays cancelled.
    """

    def __init__(self, poll: Callable[[], bool], interval_seconds: float = CANCEL_POLL_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        super().__init__()
        self.poll = poll
        self.interval_seconds = interval_seconds
        self.clock = clock
        self._last_poll = None

    def is_cancelled(self) -> bool:
        if super().is_cancelled():
            return True
        now = self.clock()
        if self._last_poll is None or now - self._last_poll >= self.interval_seconds:
            self._last_poll = now
            if self.poll():
                self.cancel()
        return super().is_cancelled()


@dataclass
class AnnealState:
    current: ScheduleSolution
    current_report: CostReport
    current_feasible: bool
    best: ScheduleSolution
    best_report: CostReport
    best_feasible: bool
    temperature: float
    iteration: int = 0
    last_improvement: int = 0


@dataclass
class AnnealResult:
    solution: ScheduleSolution
    report: CostReport
    stats: SolveStats


class Annealer:
    """Runs one isolated simulated-annealing search; holds no state between runs."""

    def __init__(self, config: Optional[SolveConfig] = None,
                 evaluator: Optional[CostEvaluator] = None,
                 validator: Optional[ConflictValidator] = None):
        self.config = config or SolveConfig()
        self.evaluator = evaluator or CostEvaluator()
        self.validator = validator or ConflictValidator()

    def run(
        self,
        seed_solution: ScheduleSolution,
        weights: WeightVector,
        locked: AbstractSet[str] = frozenset(),
        pinned: Optional[Mapping[str, Slot]] = None,
        progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> AnnealResult:
        """
        Search for a lower-cost schedule starting from ``seed_solution``.

        Args:
            seed_solution: Starting schedule (baseline or previous schedule)
            weights: Objective weights
            locked: Game ids the search must not move
            pinned: Reference slots of locked games for the validator
            progress: Called every ``progress_interval`` iterations and at the end
            cancel_token: Checked once per iteration

        Returns:
            AnnealResult with the best schedule found, its cost report and statistics
        """
        config = self.config
        random_seed = config.random_seed
        if random_seed is None:
            random_seed = random.SystemRandom().randrange(2 ** 32)
        rng = random.Random(random_seed)
        neighbors = NeighborGenerator(rng, locked)

        started = time.perf_counter()
        report = self.evaluator.evaluate(seed_solution, weights)
        feasible = self.validator.is_feasible(seed_solution, pinned=pinned)
        if not feasible:
            logger.warning("Search starts from a schedule with hard-constraint conflicts")

        state = AnnealState(
            current=seed_solution,
            current_report=report,
            current_feasible=feasible,
            best=seed_solution,
            best_report=report,
            best_feasible=feasible,
            temperature=config.initial_temperature,
        )
        stats = SolveStats(
            initial_temperature=config.initial_temperature,
            initial_cost=report.total,
            random_seed=random_seed,
        )
        base_rate = config.effective_cooling_rate()
        recent = deque(maxlen=config.adaptive_window)
        local_after = (config.neighbor_retries + 1) // 2
        last_reported = None

        logger.info(
            "Annealing %d games: T0=%.4f, %s cooling, max %d iterations, seed %d, initial cost %.4f",
            len(seed_solution), config.initial_temperature, config.cooling_strategy.value,
            config.max_iterations, random_seed, report.total
        )

        while state.iteration < config.max_iterations:
            if cancel_token is not None and cancel_token.is_cancelled():
                stats.status = SolveStatus.CANCELLED
                break
            state.iteration += 1

            candidate = None
            for attempt in range(config.neighbor_retries):
                proposal = neighbors.propose(state.current, local=attempt >= local_after)
                if proposal is None:
                    continue
                neighbor, _ = proposal
                if not self.validator.is_feasible(neighbor, pinned=pinned):
                    stats.infeasible_neighbors += 1
                    continue
                candidate = neighbor
                break

            if candidate is None:
                stats.noop_iterations += 1
            else:
                candidate_report = self.evaluator.evaluate(candidate, weights)
                accepted = self._accept(state, candidate_report.total, rng)
                recent.append(accepted)
                if accepted:
                    stats.accepted_moves += 1
                    state.current = candidate
                    state.current_report = candidate_report
                    state.current_feasible = True
                    if not state.best_feasible or candidate_report.total < state.best_report.total:
                        state.best = candidate
                        state.best_report = candidate_report
                        state.best_feasible = True
                        state.last_improvement = state.iteration
                        stats.best_iteration = state.iteration
                else:
                    stats.rejected_moves += 1

            state.temperature = self._cool(state.temperature, base_rate, recent)

            if progress is not None and state.iteration % config.progress_interval == 0:
                self._report(progress, state, stats)
                last_reported = state.iteration

            if config.plateau_window and state.iteration - state.last_improvement >= config.plateau_window:
                stats.status = SolveStatus.CONVERGED
                break

        if progress is not None and last_reported != state.iteration:
            self._report(progress, state, stats)

        stats.iterations = state.iteration
        stats.final_temperature = state.temperature
        stats.best_cost = state.best_report.total
        stats.elapsed_seconds = time.perf_counter() - started

        logger.info(
            "Annealing %s after %d iterations: best cost %.4f (initial %.4f), %d accepted, "
            "%d infeasible neighbors, %.2fs",
            stats.status.value, stats.iterations, stats.best_cost, stats.initial_cost,
            stats.accepted_moves, stats.infeasible_neighbors, stats.elapsed_seconds
        )
        return AnnealResult(solution=state.best, report=state.best_report, stats=stats)

    def _accept(self, state: AnnealState, candidate_cost: float, rng: random.Random) -> bool:
        """Metropolis criterion; equal-cost moves are rejected."""
        if not state.current_feasible:
            return True
        delta = candidate_cost - state.current_report.total
        if delta < 0:
            return True
        if delta == 0 or state.temperature <= 0:
            return False
        return rng.random() < math.exp(-delta / state.temperature)

    def _cool(self, temperature: float, rate: float, recent) -> float:
        config = self.config
        strategy = config.cooling_strategy
        if strategy is CoolingStrategy.LINEAR:
            temperature -= rate
        elif strategy is CoolingStrategy.EXPONENTIAL:
            temperature *= rate
        else:
            effective = rate
            if len(recent) == recent.maxlen:
                ratio = sum(recent) / len(recent)
                # Too hot (accepting everything) or frozen (accepting nothing)
                if ratio > ADAPTIVE_HIGH_ACCEPTANCE or ratio < ADAPTIVE_LOW_ACCEPTANCE:
                    effective = rate * rate
            temperature *= effective
        return max(config.min_temperature, temperature)

    def _report(self, progress: ProgressCallback, state: AnnealState, stats: SolveStats):
        update = ProgressUpdate(
            iteration=state.iteration,
            temperature=state.temperature,
            best_cost=state.best_report.total,
            current_cost=state.current_report.total,
            accepted_moves=stats.accepted_moves,
        )
        logger.debug(
            "Iteration %d: T=%.6f best=%.4f current=%.4f",
            update.iteration, update.temperature, update.best_cost, update.current_cost
        )
        progress(update)
