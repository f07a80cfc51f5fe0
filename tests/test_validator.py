"""
Tests for the conflict validator.
"""

import sys
import os
from datetime import timedelta

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from courtplan.models import (
    ConflictKind, ConstraintSet, Game, Participant, ProblemDescription, ScheduleSolution, Slot
)
from courtplan.services.generator import DeterministicGenerator
from courtplan.services.validator import ConflictValidator, validate_schedule


def _game(game_id, a, b, round=1, **kwargs):
    side_a = a if isinstance(a, tuple) else (a,)
    side_b = b if isinstance(b, tuple) else (b,)
    return Game(id=game_id, round=round, side_a=side_a, side_b=side_b, **kwargs)


def _solution(slots, placements, constraints=None, participants=None):
    ids = sorted({pid for game, _ in placements for pid in game.participants})
    problem = ProblemDescription(
        participants=participants or [Participant(id=pid) for pid in ids],
        slots=slots,
        constraints=constraints or ConstraintSet(),
    )
    return ScheduleSolution(problem, [game for game, _ in placements],
                            {game.id: slot for game, slot in placements})


def _kinds(conflicts):
    return [conflict.kind for conflict in conflicts]


def test_generated_schedule_is_clean(rr_problem):
    """A generated round robin has no conflicts."""
    solution = DeterministicGenerator(rr_problem).generate()
    assert ConflictValidator().validate(solution) == []
    assert ConflictValidator().is_feasible(solution)


def test_court_double_booking_once_per_pair(make_slots):
    """Three games on one court at one time produce exactly three pair conflicts."""
    slots = make_slots(courts=("Court 1",), hours=2)
    slot = slots[0]
    placements = [
        (_game("G1", "A", "B"), slot),
        (_game("G2", "C", "D"), slot),
        (_game("G3", "E", "F"), slot),
    ]
    conflicts = ConflictValidator().validate(_solution(slots, placements))

    court_conflicts = [c for c in conflicts if c.kind is ConflictKind.DOUBLE_BOOKED_COURT]
    assert [c.game_ids for c in court_conflicts] == [("G1", "G2"), ("G1", "G3"), ("G2", "G3")]


def test_partial_overlap_is_double_booking(make_slots):
    """Overlapping windows on the same court conflict even with different starts."""
    slots = make_slots(courts=("Court 1",), hours=2)
    long_slot = Slot(court="Court 1", start=slots[0].start, end=slots[0].start + timedelta(minutes=90))
    solution = _solution(slots + [long_slot], [
        (_game("G1", "A", "B"), long_slot),
        (_game("G2", "C", "D"), slots[1]),
    ])
    assert _kinds(ConflictValidator().validate(solution)) == [ConflictKind.DOUBLE_BOOKED_COURT]


def test_participant_double_booking(make_slots):
    """A participant on two courts at once is reported once for the pair."""
    slots = make_slots(hours=1)
    solution = _solution(slots, [
        (_game("G1", "A", "B"), slots[0]),
        (_game("G2", "A", "C"), slots[1]),
    ])
    conflicts = ConflictValidator().validate(solution)

    assert _kinds(conflicts) == [ConflictKind.DOUBLE_BOOKED_PARTICIPANT]
    assert conflicts[0].participant_id == "A"
    assert conflicts[0].game_ids == ("G1", "G2")


def test_insufficient_rest(make_slots):
    """Back-to-back games violate a 30 minute minimum rest."""
    slots = make_slots(courts=("Court 1",), hours=3)
    placements = [
        (_game("G1", "A", "B"), slots[0]),
        (_game("G2", "A", "C", round=2), slots[1]),
    ]
    conflicts = ConflictValidator().validate(
        _solution(slots, placements, constraints=ConstraintSet(min_rest_minutes=30))
    )
    assert _kinds(conflicts) == [ConflictKind.INSUFFICIENT_REST]
    assert conflicts[0].participant_id == "A"

    # One free hour between the games is enough
    placements[1] = (placements[1][0], slots[2])
    assert validate_schedule(_solution(slots, placements), ConstraintSet(min_rest_minutes=30)) == []


def test_slot_out_of_bounds(make_slots):
    """A slot outside the pool or lacking required tags is out of bounds."""
    slots = make_slots(courts=("Court 1",), hours=2)
    stray = Slot(court="Court 9", start=slots[0].start, end=slots[0].end)
    solution = _solution(slots, [
        (_game("G1", "A", "B"), stray),
        (_game("G2", "C", "D", court_tags=frozenset({"indoor"})), slots[1]),
    ])
    conflicts = ConflictValidator().validate(solution)

    assert _kinds(conflicts) == [ConflictKind.SLOT_OUT_OF_BOUNDS, ConflictKind.SLOT_OUT_OF_BOUNDS]
    assert [c.rule for c in conflicts] == ["slot_pool", "court_tags"]


def test_roster_size_and_gender_composition(make_slots):
    """Doubles sides must have two players including one of each gender."""
    slots = make_slots(courts=("Court 1",), hours=2)
    participants = [
        Participant(id="A", gender="f"), Participant(id="B", gender="m"),
        Participant(id="C", gender="m"), Participant(id="D", gender="m"),
        Participant(id="E", gender="f"),
    ]
    constraints = ConstraintSet(min_team_size=2, max_team_size=2, required_gender_mix={"f": 1, "m": 1})
    solution = _solution(slots, [
        (_game("G1", ("A", "B"), ("C", "D")), slots[0]),
        (_game("G2", ("A", "B"), ("E",), round=2), slots[1]),
    ], constraints=constraints, participants=participants)
    conflicts = ConflictValidator().validate(solution)

    assert _kinds(conflicts) == [
        ConflictKind.ROSTER_SIZE_VIOLATION,
        ConflictKind.GENDER_COMPOSITION_VIOLATION,
    ]
    assert conflicts[0].game_ids == ("G2",)
    assert conflicts[1].game_ids == ("G1",)


def test_max_games_per_day(make_slots):
    slots = make_slots(courts=("Court 1",), hours=3)
    solution = _solution(slots, [
        (_game("G1", "A", "B"), slots[0]),
        (_game("G2", "A", "C", round=2), slots[1]),
        (_game("G3", "A", "D", round=3), slots[2]),
    ], constraints=ConstraintSet(max_games_per_day=2))
    conflicts = ConflictValidator().validate(solution)

    assert _kinds(conflicts) == [ConflictKind.MAX_GAMES_PER_DAY_EXCEEDED]
    assert conflicts[0].game_ids == ("G1", "G2", "G3")


def test_bracket_order(make_slots):
    """A dependent game may not start before its predecessor ends."""
    slots = make_slots(courts=("Court 1", "Court 2"), hours=2)
    first = _game("B-1-01", "A", "B")
    final = _game("B-2-01", "W:B-1-01", "C", round=2, depends_on=("B-1-01",))
    solution = _solution(slots, [(first, slots[0]), (final, slots[1])])
    conflicts = ConflictValidator().validate(solution)

    assert _kinds(conflicts) == [ConflictKind.BRACKET_ORDER_VIOLATION]
    assert conflicts[0].game_ids == ("B-1-01", "B-2-01")

    ok = _solution(slots, [(first, slots[0]), (final, slots[2])])
    assert ConflictValidator().validate(ok) == []


def test_locked_game_moved(make_slots):
    slots = make_slots(courts=("Court 1",), hours=2)
    solution = _solution(slots, [(_game("G1", "A", "B"), slots[1])])
    conflicts = ConflictValidator().validate(solution, pinned={"G1": slots[0]})

    assert _kinds(conflicts) == [ConflictKind.LOCKED_GAME_MOVED]
    assert ConflictValidator().validate(solution, pinned={"G1": slots[1]}) == []


def test_validation_is_deterministic(make_slots):
    slots = make_slots(hours=1)
    solution = _solution(slots, [
        (_game("G2", "A", "B"), slots[0]),
        (_game("G1", "A", "C"), slots[0]),
    ])
    validator = ConflictValidator()
    assert validator.validate(solution) == validator.validate(solution)
    assert not validator.is_feasible(solution)
