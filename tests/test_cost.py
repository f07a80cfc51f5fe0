"""
Tests for the cost evaluator.
"""

import sys
import os
from datetime import timedelta

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from courtplan.models import (
    ConstraintSet, CostObjective, Game, Participant, ProblemDescription, ScheduleSolution,
    WeightVector
)
from courtplan.services.cost import CostEvaluator, evaluate_cost
from courtplan.services.generator import DeterministicGenerator


def _solution(participants, slots, placements, constraints=None):
    problem = ProblemDescription(participants=participants, slots=slots,
                                 constraints=constraints or ConstraintSet())
    return ScheduleSolution(problem, [g for g, _ in placements], {g.id: s for g, s in placements})


def test_costs_are_bounded_and_deterministic(rr_problem):
    """Every objective lies in [0, 1] and repeated evaluation is identical."""
    solution = DeterministicGenerator(rr_problem).generate()
    weights = WeightVector()

    first = evaluate_cost(solution, weights)
    second = evaluate_cost(solution, weights)

    assert first == second
    for objective in CostObjective:
        assert 0.0 <= first.cost(objective) <= 1.0


def test_total_is_weighted_sum(rr_problem):
    solution = DeterministicGenerator(rr_problem).generate()
    weights = WeightVector.from_overrides({name.value: 1.0 for name in CostObjective})
    report = CostEvaluator().evaluate(solution, weights)

    assert report.total == pytest.approx(sum(report.cost(o) for o in CostObjective))
    assert report.weighted(CostObjective.SKILL_BALANCE) == report.cost(CostObjective.SKILL_BALANCE)


def test_zero_violation_schedule_scores_zero(make_slots):
    """
    Four teams, one round per day: no repeats, no sit-outs, no same-day gaps.
    """
    participants = [Participant(id=pid) for pid in "ABCD"]
    slots = make_slots(courts=("Court 1", "Court 2"), days=3, hours=1)
    pairings = [
        [("A", "D"), ("B", "C")],
        [("A", "C"), ("D", "B")],
        [("A", "B"), ("C", "D")],
    ]
    placements = []
    for round_index, pairs in enumerate(pairings):
        for game_index, (a, b) in enumerate(pairs):
            game = Game(id=f"G{round_index}{game_index}", round=round_index + 1, side_a=(a,), side_b=(b,))
            placements.append((game, slots[round_index * 2 + game_index]))
    report = evaluate_cost(_solution(participants, slots, placements), WeightVector())

    for objective in (
        CostObjective.TEAMMATE_REPETITION,
        CostObjective.OPPONENT_REPETITION,
        CostObjective.SIT_OUT_EQUITY,
        CostObjective.REST_VARIANCE,
        CostObjective.SKILL_BALANCE,
        CostObjective.COURT_UTILIZATION,
    ):
        assert report.cost(objective) == 0.0


def test_opponent_repetition_penalizes_avoidable_repeats(make_slots):
    """Meeting the same opponent twice when others were available costs the maximum."""
    participants = [Participant(id=pid) for pid in "ABCD"]
    slots = make_slots(courts=("Court 1",), hours=2)
    solution = _solution(participants, slots, [
        (Game(id="G1", round=1, side_a=("A",), side_b=("B",)), slots[0]),
        (Game(id="G2", round=2, side_a=("B",), side_b=("A",)), slots[1]),
    ])
    assert CostEvaluator().evaluate(solution, WeightVector()).cost(CostObjective.OPPONENT_REPETITION) == 1.0


def test_skill_balance_mismatch(make_slots):
    participants = [Participant(id="A", skill_rating=0.0), Participant(id="B", skill_rating=10.0)]
    slots = make_slots(courts=("Court 1",), hours=1)
    solution = _solution(participants, slots, [
        (Game(id="G1", round=1, side_a=("A",), side_b=("B",)), slots[0]),
    ])
    assert CostEvaluator().skill_balance(solution) == 1.0


def test_sit_out_equity(make_slots):
    """One participant sitting out twice while others never do raises the cost."""
    participants = [Participant(id=pid) for pid in "ABC"]
    slots = make_slots(courts=("Court 1",), hours=2)
    solution = _solution(participants, slots, [
        (Game(id="G1", round=1, side_a=("A",), side_b=("B",)), slots[0]),
        (Game(id="G2", round=2, side_a=("A",), side_b=("B",)), slots[1]),
    ])
    evaluator = CostEvaluator()
    cost = evaluator.sit_out_equity(solution, solution.participant_stats())
    assert 0.0 < cost <= 1.0


def test_rest_variance_uneven_gaps(make_slots):
    participants = [Participant(id=pid) for pid in "ABCD"]
    slots = make_slots(courts=("Court 1",), hours=6)
    solution = _solution(participants, slots, [
        (Game(id="G1", round=1, side_a=("A",), side_b=("B",)), slots[0]),
        (Game(id="G2", round=2, side_a=("A",), side_b=("C",)), slots[1]),
        (Game(id="G3", round=3, side_a=("A",), side_b=("D",)), slots[5]),
    ])
    cost = CostEvaluator().evaluate(solution, WeightVector()).cost(CostObjective.REST_VARIANCE)
    assert 0.0 < cost < 1.0


def test_court_utilization_counts_idle_slots(make_slots):
    """Two games on one court leave the second court idle for the whole window."""
    participants = [Participant(id=pid) for pid in "ABCD"]
    slots = make_slots(courts=("Court 1", "Court 2"), hours=2)
    court_one = [slot for slot in slots if slot.court == "Court 1"]
    solution = _solution(participants, slots, [
        (Game(id="G1", round=1, side_a=("A",), side_b=("B",)), court_one[0]),
        (Game(id="G2", round=1, side_a=("C",), side_b=("D",)), court_one[1]),
    ])
    assert CostEvaluator().court_utilization(solution) == 0.5


def test_gender_balance_against_target(make_slots):
    participants = [
        Participant(id="A", gender="f"), Participant(id="B", gender="f"),
        Participant(id="C", gender="f"), Participant(id="D", gender="m"),
    ]
    slots = make_slots(courts=("Court 1",), hours=1)
    solution = _solution(
        participants, slots,
        [(Game(id="G1", round=1, side_a=("A", "B"), side_b=("C", "D")), slots[0])],
        constraints=ConstraintSet(target_gender_mix={"f": 0.5, "m": 0.5}),
    )
    # Side A/B is all "f" (distance 0.5), side C/D matches the target
    assert CostEvaluator().gender_balance(solution) == pytest.approx(0.25)


def test_moving_a_game_recomputes_stats(make_slots):
    """Aggregates follow the schedule; nothing is cached across mutations."""
    participants = [Participant(id=pid) for pid in "AB"]
    slots = make_slots(courts=("Court 1",), hours=3)
    game = Game(id="G1", round=1, side_a=("A",), side_b=("B",))
    other = Game(id="G2", round=2, side_a=("A",), side_b=("B",))
    solution = _solution(participants, slots, [(game, slots[0]), (other, slots[1])])
    moved = solution.with_assignments({"G2": slots[2]})

    assert solution.participant_stats()["A"].rest_gaps == [0.0]
    assert moved.participant_stats()["A"].rest_gaps == [60.0]
    assert solution.slot_of("G2") == slots[1]
    assert moved.slot_of("G2").start - slots[0].end == timedelta(hours=1)
