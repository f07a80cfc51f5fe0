"""
Tests for the neighbor generator.
"""

import sys
import os
import random

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from courtplan.services.generator import DeterministicGenerator
from courtplan.services.neighbors import MOVE, SWAP, NeighborGenerator


def test_locked_games_never_move(rr_problem):
    solution = DeterministicGenerator(rr_problem).generate()
    locked = {g.id for g in solution.games if g.round == 1}
    generator = NeighborGenerator(random.Random(3), locked)

    current = solution
    for _ in range(300):
        proposal = generator.propose(current)
        if proposal is None:
            continue
        current, move = proposal
        assert not set(move.game_ids) & locked
        for game_id in locked:
            assert current.slot_of(game_id) == solution.slot_of(game_id)
        keys = [slot.key for slot in current.assignments.values()]
        assert len(keys) == len(set(keys))


def test_both_move_kinds_are_used(rr_problem):
    solution = DeterministicGenerator(rr_problem).generate()
    generator = NeighborGenerator(random.Random(11))

    kinds = set()
    for _ in range(100):
        proposal = generator.propose(solution)
        if proposal is not None:
            kinds.add(proposal[1].kind)
    assert kinds == {SWAP, MOVE}


def test_move_targets_a_free_slot(rr_problem):
    solution = DeterministicGenerator(rr_problem).generate()
    occupied = solution.occupied_keys()
    generator = NeighborGenerator(random.Random(5))

    for _ in range(100):
        proposal = generator.propose(solution)
        if proposal is not None and proposal[1].kind == MOVE:
            assert proposal[1].target.key not in occupied


def test_local_moves_stay_in_round_or_day(rr_problem):
    solution = DeterministicGenerator(rr_problem).generate()
    generator = NeighborGenerator(random.Random(9))

    for _ in range(100):
        proposal = generator.propose(solution, local=True)
        if proposal is None:
            continue
        neighbor, move = proposal
        if move.kind == SWAP:
            first, second = move.game_ids
            assert solution.game(first).round == solution.game(second).round
        else:
            game_id = move.game_ids[0]
            assert neighbor.slot_of(game_id).day == solution.slot_of(game_id).day


def test_seeded_proposals_are_reproducible(rr_problem):
    solution = DeterministicGenerator(rr_problem).generate()
    first = NeighborGenerator(random.Random(42))
    second = NeighborGenerator(random.Random(42))

    for _ in range(20):
        a = first.propose(solution)
        b = second.propose(solution)
        assert a[1] == b[1]
        assert a[0] == b[0]


def test_nothing_to_propose_when_all_locked(rr_problem):
    solution = DeterministicGenerator(rr_problem).generate()
    generator = NeighborGenerator(random.Random(1), {g.id for g in solution.games})
    assert generator.propose(solution) is None


def test_source_solution_is_unchanged(rr_problem):
    solution = DeterministicGenerator(rr_problem).generate()
    before = dict(solution.assignments)
    generator = NeighborGenerator(random.Random(2))
    for _ in range(50):
        generator.propose(solution)
    assert dict(solution.assignments) == before
