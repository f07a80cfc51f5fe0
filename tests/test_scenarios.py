"""
End-to-end scenarios through the ``generate`` / ``reoptimize`` entry points.
"""

import sys
import os

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from courtplan import generate, reoptimize
from courtplan.core.exceptions import InfeasibleProblem, InvalidWeights
from courtplan.models import (
    CostObjective, ScheduleMode, SolveConfig, SolveStatus, TournamentFormat
)
from courtplan.services.annealer import CancellationToken

OPPONENT_ONLY = {objective.value: 0.0 for objective in CostObjective}
OPPONENT_ONLY["opponent_repetition"] = 1.0


def test_fast_round_robin(rr_problem):
    result = generate(rr_problem, ScheduleMode.FAST)

    assert len(result.solution.games) == 28
    assert result.conflicts == []
    assert result.status is SolveStatus.COMPLETED
    assert result.stats.iterations == 0
    assert result.explanation.total == pytest.approx(result.report.total)


def test_optimize_never_worse_than_baseline(rr_problem):
    baseline = generate(rr_problem, ScheduleMode.FAST)
    optimized = generate(rr_problem, ScheduleMode.OPTIMIZE, SolveConfig(max_iterations=400, random_seed=5))

    assert optimized.conflicts == []
    assert optimized.report.total <= baseline.report.total
    assert optimized.stats.initial_cost == pytest.approx(baseline.report.total)


def test_opponent_repetition_four_pool_double_round_robin(make_problem):
    """Annealing with only the opponent weight never beats the baseline's repetition."""
    problem = make_problem(
        teams=16, pools=["A", "B", "C", "D"], format=TournamentFormat.POOL_PLAY, cycles=2,
        courts=("C1", "C2", "C3", "C4"), days=2, hours=10, weights=OPPONENT_ONLY,
    )
    baseline = generate(problem, ScheduleMode.FAST)
    annealed = generate(problem, ScheduleMode.OPTIMIZE, SolveConfig(max_iterations=500, random_seed=11))

    assert len(baseline.solution.games) == 48
    assert annealed.conflicts == []
    assert (annealed.report.cost(CostObjective.OPPONENT_REPETITION)
            <= baseline.report.cost(CostObjective.OPPONENT_REPETITION))


def test_bracket_round_one_lock(bracket_problem):
    """Locking round 1 of a 4-round bracket keeps its four games on (court, start)."""
    previous = generate(bracket_problem, ScheduleMode.FAST).solution
    round_one = [g.id for g in previous.games if g.round == 1]
    assert len(round_one) == 4
    assert previous.rounds() == [1, 2, 3, 4]

    config = SolveConfig(max_iterations=500, random_seed=17, plateau_window=0)
    result = reoptimize(bracket_problem, previous, frozenset(), config, locked_rounds=[1])

    for game_id in round_one:
        before = previous.slot_of(game_id)
        after = result.solution.slot_of(game_id)
        assert (after.court, after.start) == (before.court, before.start)
    assert all(change.game_id not in round_one for change in result.diff)
    assert result.conflicts == []


def test_same_seed_same_schedule(rr_problem):
    config = SolveConfig(max_iterations=250, random_seed=99)
    first = generate(rr_problem, ScheduleMode.OPTIMIZE, config)
    second = generate(rr_problem, ScheduleMode.OPTIMIZE, config)

    assert first.solution == second.solution
    assert first.stats.accepted_moves == second.stats.accepted_moves
    assert first.report == second.report


def test_cancelled_generate_returns_best_so_far(rr_problem):
    token = CancellationToken()
    updates = []

    def on_progress(update):
        updates.append(update)
        token.cancel()

    config = SolveConfig(max_iterations=5000, random_seed=1, progress_interval=10)
    result = generate(rr_problem, ScheduleMode.OPTIMIZE, config, progress=on_progress, cancel_token=token)

    assert result.cancelled
    assert result.stats.iterations == 10
    assert result.conflicts == []
    assert [u.iteration for u in updates] == [10]


def test_invalid_weights_are_rejected(make_problem):
    problem = make_problem(weights={"skill_balance": 1.2})
    with pytest.raises(InvalidWeights):
        generate(problem, ScheduleMode.FAST)


def test_infeasible_problem_before_search(make_problem):
    problem = make_problem(days=1, hours=4)
    token = CancellationToken()
    with pytest.raises(InfeasibleProblem):
        generate(problem, ScheduleMode.OPTIMIZE, cancel_token=token)
