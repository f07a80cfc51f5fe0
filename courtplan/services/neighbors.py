"""
Neighbor moves for the schedule search.

A neighbor differs from its source schedule by one mutation:
- swap: two unlocked games exchange their slots
- move: one unlocked game moves to a slot no other game occupies
"""

import random
from dataclasses import dataclass
from typing import AbstractSet, List, Optional, Tuple

from courtplan.core.logging_config import get_logger
from courtplan.models import ScheduleSolution, Slot

logger = get_logger(__name__)

SWAP = "swap"
MOVE = "move"


@dataclass(frozen=True)
class Move:
    kind: str
    game_ids: Tuple[str, ...]
    target: Optional[Slot] = None

    def __str__(self):
        if self.kind == MOVE:
            return f"move {self.game_ids[0]} -> {self.target}"
        return f"swap {self.game_ids[0]} <-> {self.game_ids[1]}"


class NeighborGenerator:
    """
    Proposes single-mutation variants of a schedule.

    All randomness comes from the injected ``rng``, so a seeded generator
    yields the same sequence of proposals for the same inputs.
    """

    def __init__(self, rng: random.Random, locked: AbstractSet[str] = frozenset()):
        self.rng = rng
        self.locked = frozenset(locked)

    def unlocked_games(self, solution: ScheduleSolution) -> List[str]:
        return [
            game.id for game in solution.games
            if game.id not in self.locked and not game.locked
        ]

    def free_slots(self, solution: ScheduleSolution) -> List[Slot]:
        occupied = solution.occupied_keys()
        return [slot for slot in solution.problem.slots if slot.key not in occupied]

    def propose(self, solution: ScheduleSolution, local: bool = False) -> Optional[Tuple[ScheduleSolution, Move]]:
        """
        Produce one neighbor of ``solution``.

        Args:
            solution: Current schedule
            local: Restrict to swaps within a round and moves within the same day

        Returns:
            (neighbor, move), or None when no mutation is possible
        """
        unlocked = self.unlocked_games(solution)
        if not unlocked:
            return None

        kinds = []
        if len(unlocked) >= 2:
            kinds.append(SWAP)
        free = self.free_slots(solution)
        if free:
            kinds.append(MOVE)
        if not kinds:
            return None

        kind = self.rng.choice(kinds)
        if kind == SWAP:
            proposal = self._swap(solution, unlocked, local)
        else:
            proposal = self._move(solution, unlocked, free, local)
        if proposal is None:
            return None

        neighbor, move = proposal
        if not self._check_post_conditions(solution, neighbor):
            logger.warning("Discarding neighbor %s: it touches a locked game or reuses a slot", move)
            return None
        return neighbor, move

    def _swap(self, solution, unlocked, local):
        first = self.rng.choice(unlocked)
        if local:
            round_number = solution.game(first).round
            candidates = [
                game_id for game_id in unlocked
                if game_id != first and solution.game(game_id).round == round_number
            ]
        else:
            candidates = [game_id for game_id in unlocked if game_id != first]
        if not candidates:
            return None
        second = self.rng.choice(candidates)
        return solution.swap(first, second), Move(SWAP, (first, second))

    def _move(self, solution, unlocked, free, local):
        game_id = self.rng.choice(unlocked)
        if local:
            day = solution.slot_of(game_id).day
            free = [slot for slot in free if slot.day == day]
            if not free:
                return None
        target = self.rng.choice(free)
        return solution.with_assignments({game_id: target}), Move(MOVE, (game_id,), target)

    def _check_post_conditions(self, before: ScheduleSolution, after: ScheduleSolution) -> bool:
        for game in before.games:
            if (game.id in self.locked or game.locked) and after.slot_of(game.id) != before.slot_of(game.id):
                return False
        keys = [slot.key for slot in after.assignments.values()]
        return len(keys) == len(set(keys))
