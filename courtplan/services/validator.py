"""
Schedule validation for the courtplan scheduling core.
Checks a candidate schedule against the hard constraints.
"""

from collections import Counter, defaultdict
from itertools import chain
from typing import Dict, Iterator, List, Mapping, Optional

from courtplan.models import (
    Conflict, ConflictKind, ConstraintSet, ScheduleSolution, Slot, is_placeholder
)


class ConflictValidator:
    """
    Validates schedules against the hard constraints.

    The validator holds no state: the same schedule and constraints always
    produce the same ordered list of conflicts. Checks run in a fixed order
    and each check reports its conflicts sorted by game id.
    """

    def validate(
        self,
        solution: ScheduleSolution,
        constraints: Optional[ConstraintSet] = None,
        pinned: Optional[Mapping[str, Slot]] = None,
    ) -> List[Conflict]:
        """
        Validate a complete schedule against all hard constraints.

        Args:
            solution: The schedule to validate
            constraints: Hard rules; defaults to the schedule's problem constraints
            pinned: Reference slots for locked games

        Returns:
            Ordered list of conflicts; empty when the schedule is feasible
        """
        return list(self._iter_conflicts(solution, constraints, pinned))

    def is_feasible(
        self,
        solution: ScheduleSolution,
        constraints: Optional[ConstraintSet] = None,
        pinned: Optional[Mapping[str, Slot]] = None,
    ) -> bool:
        """True when the schedule has no conflict; stops at the first one found."""
        return next(self._iter_conflicts(solution, constraints, pinned), None) is None

    def _iter_conflicts(self, solution, constraints, pinned) -> Iterator[Conflict]:
        if constraints is None:
            constraints = solution.problem.constraints
        by_participant = self._slots_by_participant(solution)

        checks = (
            self._check_slot_bounds(solution),
            self._check_court_double_booking(solution),
            self._check_participant_double_booking(by_participant),
            self._check_rest(by_participant, constraints),
            self._check_games_per_day(by_participant, constraints),
            self._check_roster_size(solution, constraints),
            self._check_gender_composition(solution, constraints),
            self._check_bracket_order(solution, constraints),
            self._check_locked_games(solution, pinned or {}),
        )
        return chain.from_iterable(checks)

    def _slots_by_participant(self, solution: ScheduleSolution) -> Dict[str, List[tuple]]:
        """Each participant's (slot, game id) pairs in chronological order."""
        grouped = defaultdict(list)
        for game in solution.games:
            slot = solution.slot_of(game.id)
            for participant_id in game.participants:
                grouped[participant_id].append((slot, game.id))
        for entries in grouped.values():
            entries.sort(key=lambda entry: (entry[0].start, entry[0].end, entry[1]))
        return grouped

    def _check_slot_bounds(self, solution: ScheduleSolution) -> Iterator[Conflict]:
        """Games on a slot outside the problem's slot pool or lacking required court tags."""
        problem = solution.problem
        for game in sorted(solution.games, key=lambda g: g.id):
            slot = solution.slot_of(game.id)
            if not problem.has_slot(slot):
                yield Conflict(
                    kind=ConflictKind.SLOT_OUT_OF_BOUNDS,
                    rule="slot_pool",
                    game_ids=(game.id,),
                    description=f"Game {game.id} is on {slot}, which is not an available slot",
                )
            elif not game.court_tags <= slot.tags:
                missing = ", ".join(sorted(game.court_tags - slot.tags))
                yield Conflict(
                    kind=ConflictKind.SLOT_OUT_OF_BOUNDS,
                    rule="court_tags",
                    game_ids=(game.id,),
                    description=f"Game {game.id} needs court tags [{missing}] not offered by {slot}",
                )

    def _check_court_double_booking(self, solution: ScheduleSolution) -> Iterator[Conflict]:
        """
        Check for games sharing a court at overlapping times.
        Reports exactly one conflict per overlapping pair.
        """
        games_by_court = defaultdict(list)
        for game in solution.games:
            slot = solution.slot_of(game.id)
            games_by_court[slot.court].append((slot, game.id))

        pairs = []
        for entries in games_by_court.values():
            entries.sort(key=lambda entry: (entry[0].start, entry[1]))
            for i, (slot, game_id) in enumerate(entries):
                for other_slot, other_id in entries[i + 1:]:
                    if other_slot.start >= slot.end:
                        break
                    pairs.append((tuple(sorted((game_id, other_id))), slot))

        for game_ids, slot in sorted(pairs, key=lambda pair: pair[0]):
            yield Conflict(
                kind=ConflictKind.DOUBLE_BOOKED_COURT,
                rule="one_game_per_court",
                game_ids=game_ids,
                description=f"Games {game_ids[0]} and {game_ids[1]} overlap on court {slot.court}",
            )

    def _check_participant_double_booking(self, by_participant) -> Iterator[Conflict]:
        """Check for participants scheduled in two games at once."""
        for participant_id in sorted(by_participant):
            entries = by_participant[participant_id]
            for i, (slot, game_id) in enumerate(entries):
                for other_slot, other_id in entries[i + 1:]:
                    if other_slot.start >= slot.end:
                        break
                    yield Conflict(
                        kind=ConflictKind.DOUBLE_BOOKED_PARTICIPANT,
                        rule="one_game_at_a_time",
                        game_ids=tuple(sorted((game_id, other_id))),
                        description=(
                            f"{participant_id} is scheduled in {game_id} and {other_id} at the same time"
                        ),
                        participant_id=participant_id,
                    )

    def _check_rest(self, by_participant, constraints: ConstraintSet) -> Iterator[Conflict]:
        """Check consecutive games of a participant for the minimum rest gap."""
        min_rest = constraints.min_rest_minutes
        if min_rest <= 0:
            return
        for participant_id in sorted(by_participant):
            entries = by_participant[participant_id]
            for (slot, game_id), (next_slot, next_id) in zip(entries, entries[1:]):
                gap = (next_slot.start - slot.end).total_seconds() / 60.0
                # Overlaps are double bookings, reported separately
                if 0 <= gap < min_rest:
                    yield Conflict(
                        kind=ConflictKind.INSUFFICIENT_REST,
                        rule="min_rest_minutes",
                        game_ids=(game_id, next_id),
                        description=(
                            f"{participant_id} rests {gap:.0f} minutes between {game_id} and "
                            f"{next_id} (min {min_rest})"
                        ),
                        participant_id=participant_id,
                    )

    def _check_games_per_day(self, by_participant, constraints: ConstraintSet) -> Iterator[Conflict]:
        limit = constraints.max_games_per_day
        if limit is None:
            return
        for participant_id in sorted(by_participant):
            games_by_day = defaultdict(list)
            for slot, game_id in by_participant[participant_id]:
                games_by_day[slot.day].append(game_id)
            for day in sorted(games_by_day):
                game_ids = games_by_day[day]
                if len(game_ids) > limit:
                    yield Conflict(
                        kind=ConflictKind.MAX_GAMES_PER_DAY_EXCEEDED,
                        rule="max_games_per_day",
                        game_ids=tuple(sorted(game_ids)),
                        description=f"{participant_id} has {len(game_ids)} games on {day} (max {limit})",
                        participant_id=participant_id,
                    )

    def _check_roster_size(self, solution: ScheduleSolution, constraints: ConstraintSet) -> Iterator[Conflict]:
        for game in sorted(solution.games, key=lambda g: g.id):
            for side in (game.side_a, game.side_b):
                # Bracket placeholders stand for a whole entry
                if any(is_placeholder(ref) for ref in side):
                    continue
                size = len(side)
                too_small = size < constraints.min_team_size
                too_large = constraints.max_team_size is not None and size > constraints.max_team_size
                if too_small or too_large:
                    yield Conflict(
                        kind=ConflictKind.ROSTER_SIZE_VIOLATION,
                        rule="team_size",
                        game_ids=(game.id,),
                        description=(
                            f"Game {game.id} has a side of {size} "
                            f"(allowed {constraints.min_team_size}-{constraints.max_team_size or 'any'})"
                        ),
                    )

    def _check_gender_composition(self, solution: ScheduleSolution, constraints: ConstraintSet) -> Iterator[Conflict]:
        required = constraints.required_gender_mix
        if not required:
            return
        problem = solution.problem
        for game in sorted(solution.games, key=lambda g: g.id):
            for side in (game.side_a, game.side_b):
                if len(side) < 2 or any(is_placeholder(ref) for ref in side):
                    continue
                counts = Counter()
                for ref in side:
                    participant = problem.participant(ref)
                    counts[participant.gender if participant else None] += 1
                short = {gender: need for gender, need in required.items() if counts[gender] < need}
                if short:
                    wanted = ", ".join(f"{need} {gender}" for gender, need in sorted(short.items()))
                    yield Conflict(
                        kind=ConflictKind.GENDER_COMPOSITION_VIOLATION,
                        rule="required_gender_mix",
                        game_ids=(game.id,),
                        description=f"Side {'/'.join(side)} in {game.id} needs at least {wanted}",
                    )

    def _check_bracket_order(self, solution: ScheduleSolution, constraints: ConstraintSet) -> Iterator[Conflict]:
        """Dependent games must start after their predecessors end plus minimum rest."""
        rest_seconds = constraints.min_rest_minutes * 60
        for game in sorted(solution.games, key=lambda g: g.id):
            if not game.depends_on:
                continue
            slot = solution.slot_of(game.id)
            for predecessor_id in game.depends_on:
                if predecessor_id not in solution.assignments:
                    yield Conflict(
                        kind=ConflictKind.BRACKET_ORDER_VIOLATION,
                        rule="predecessor_scheduled",
                        game_ids=(game.id,),
                        description=f"Game {game.id} depends on unscheduled game {predecessor_id}",
                    )
                    continue
                predecessor_slot = solution.slot_of(predecessor_id)
                if (slot.start - predecessor_slot.end).total_seconds() < rest_seconds:
                    yield Conflict(
                        kind=ConflictKind.BRACKET_ORDER_VIOLATION,
                        rule="predecessor_finished",
                        game_ids=(predecessor_id, game.id),
                        description=(
                            f"Game {game.id} starts at {slot.start:%H:%M} before {predecessor_id} "
                            f"ends plus {constraints.min_rest_minutes} minutes rest"
                        ),
                    )

    def _check_locked_games(self, solution: ScheduleSolution, pinned: Mapping[str, Slot]) -> Iterator[Conflict]:
        for game_id in sorted(pinned):
            if game_id not in solution.assignments:
                continue
            if solution.slot_of(game_id) != pinned[game_id]:
                yield Conflict(
                    kind=ConflictKind.LOCKED_GAME_MOVED,
                    rule="locked_assignment",
                    game_ids=(game_id,),
                    description=f"Locked game {game_id} moved from {pinned[game_id]}",
                )


def validate_schedule(
    solution: ScheduleSolution,
    constraints: Optional[ConstraintSet] = None,
) -> List[Conflict]:
    """Standalone check, e.g. for a manually edited schedule."""
    return ConflictValidator().validate(solution, constraints)
