"""
Deterministic schedule generation.
==================================

Builds the pairings for a tournament format and places every game on the
earliest feasible slot, with no optimization pass:

- Round robin: circle method, a bye for odd entrant counts, mirrored legs
  for double round robin (sides swapped).
- Pool play: the same rotation inside each pool; round r of every pool forms
  global round r. Equally early slots go to the court the pool has used least.
- Bracket: single elimination seeded 1 vs N, byes for top seeds when the
  entrant count is not a power of two, optional third-place game.

The greedy placement doubles as the feasibility pre-check: if a game cannot
be placed, the problem is reported infeasible before any search starts.
"""

from bisect import bisect_left
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from courtplan.core.exceptions import InfeasibleProblem
from courtplan.core.logging_config import get_logger
from courtplan.models import (
    Game, ProblemDescription, ScheduleSolution, Slot, TournamentFormat, is_placeholder
)
from courtplan.models.models import LOSER_PREFIX, WINNER_PREFIX
from courtplan.services.validator import ConflictValidator

logger = get_logger(__name__)


def round_robin_rounds(entrants: Sequence[str], cycles: int = 1) -> List[List[Tuple[str, str]]]:
    """
    Return list of rounds; each round is list of pairs (side a, side b).

    Uses the circle method: the first entrant stays fixed and the rest rotate.
    An odd entrant count adds a bye, so one entrant sits out each round.
    Every further cycle repeats the rounds with sides swapped on odd cycles.
    """
    teams: List[Optional[str]] = list(entrants)
    if len(teams) < 2:
        return []
    if len(teams) % 2:
        teams.append(None)  # bye
    n = len(teams)

    first_leg = []
    for r in range(n - 1):
        pairs = []
        for i in range(n // 2):
            a = teams[i]
            b = teams[n - 1 - i]
            if a is None or b is None:
                continue
            # Alternate sides for the fixed entrant so it is not always side a
            if i == 0 and r % 2 == 1:
                a, b = b, a
            pairs.append((a, b))
        # Rotate except the first element
        teams = [teams[0]] + [teams[-1]] + teams[1:-1]
        first_leg.append(pairs)

    rounds = []
    for cycle in range(cycles):
        for pairs in first_leg:
            if cycle % 2:
                rounds.append([(b, a) for a, b in pairs])
            else:
                rounds.append(list(pairs))
    return rounds


def bracket_seed_order(size: int) -> List[int]:
    """Seed numbers in bracket position order, e.g. 8 -> [1, 8, 4, 5, 2, 7, 3, 6]."""
    order = [1]
    while len(order) < size:
        total = len(order) * 2 + 1
        order = [seed for s in order for seed in (s, total - s)]
    return order


class DeterministicGenerator:
    """
    Produces a feasible baseline schedule for a problem description.

    Algorithm:
    1. Build the games for the problem's format (or take the caller's games)
    2. Order them by round and dependency
    3. Give each game the earliest slot that is free on its court, carries the
       required court tags, respects every participant's rest and daily limit,
       and starts after its bracket predecessors finish plus rest
    """

    def __init__(self, problem: ProblemDescription):
        self.problem = problem
        self.constraints = problem.constraints
        self.slots = sorted(problem.slots, key=lambda s: (s.start, s.court, s.end))
        self._slot_starts = [slot.start for slot in self.slots]

    def generate(self) -> ScheduleSolution:
        games = self.build_games()
        return self.assign(games)

    def build_games(self) -> List[Game]:
        problem = self.problem
        if problem.format is TournamentFormat.CUSTOM or problem.games is not None:
            if problem.games is None:
                raise InfeasibleProblem("Custom format requires explicit games")
            return list(problem.games)
        if problem.format is TournamentFormat.ROUND_ROBIN:
            return self._round_robin_games()
        if problem.format is TournamentFormat.POOL_PLAY:
            return self._pool_play_games()
        if problem.format is TournamentFormat.BRACKET:
            return self._bracket_games()
        raise InfeasibleProblem(f"Unsupported tournament format: {problem.format}")

    def _round_robin_games(self) -> List[Game]:
        entrants = [p.id for p in self.problem.participants]
        tags = self.problem.tags_for_pool(None)
        games = []
        for round_index, pairs in enumerate(round_robin_rounds(entrants, self.problem.cycles), start=1):
            for game_index, (a, b) in enumerate(pairs, start=1):
                games.append(Game(
                    id=f"RR-{round_index:02d}-{game_index:02d}",
                    round=round_index,
                    side_a=(a,),
                    side_b=(b,),
                    court_tags=tags,
                ))
        return games

    def _pool_play_games(self) -> List[Game]:
        games = []
        pools = self.problem.pools()
        for pool in sorted(pools, key=lambda p: (p is None, p or "")):
            entrants = [p.id for p in pools[pool]]
            label = pool if pool is not None else "default"
            tags = self.problem.tags_for_pool(pool)
            for round_index, pairs in enumerate(round_robin_rounds(entrants, self.problem.cycles), start=1):
                for game_index, (a, b) in enumerate(pairs, start=1):
                    games.append(Game(
                        id=f"P{label}-{round_index:02d}-{game_index:02d}",
                        round=round_index,
                        side_a=(a,),
                        side_b=(b,),
                        pool=pool,
                        court_tags=tags,
                    ))
        # Round r of every pool forms global round r
        games.sort(key=lambda g: g.round)
        return games

    def _bracket_games(self) -> List[Game]:
        entrants = sorted(
            enumerate(self.problem.participants),
            key=lambda item: (item[1].seed is None, item[1].seed or 0, item[0])
        )
        entrant_ids = [participant.id for _, participant in entrants]
        if len(entrant_ids) < 2:
            return []

        size = 1
        while size < len(entrant_ids):
            size *= 2
        # Seeds beyond the entrant count are byes
        refs: List[Optional[str]] = [
            entrant_ids[seed - 1] if seed <= len(entrant_ids) else None
            for seed in bracket_seed_order(size)
        ]
        tags = self.problem.tags_for_pool(None)

        games = []
        round_index = 1
        semifinals: List[Game] = []
        while len(refs) > 1:
            next_refs = []
            round_games = []
            for i in range(0, len(refs), 2):
                a, b = refs[i], refs[i + 1]
                if a is None or b is None:
                    next_refs.append(a if a is not None else b)
                    continue
                game = Game(
                    id=f"B-{round_index}-{len(round_games) + 1:02d}",
                    round=round_index,
                    side_a=(a,),
                    side_b=(b,),
                    court_tags=tags,
                    depends_on=tuple(
                        ref[len(WINNER_PREFIX):] for ref in (a, b) if is_placeholder(ref)
                    ),
                )
                round_games.append(game)
                next_refs.append(f"{WINNER_PREFIX}{game.id}")
            games.extend(round_games)
            if len(next_refs) == 2:
                semifinals = round_games
            refs = next_refs
            round_index += 1

        if self.problem.third_place_game and len(semifinals) == 2:
            final = games.pop()
            third_place = Game(
                id=f"B-{final.round}-TP",
                round=final.round,
                side_a=(f"{LOSER_PREFIX}{semifinals[0].id}",),
                side_b=(f"{LOSER_PREFIX}{semifinals[1].id}",),
                court_tags=tags,
                depends_on=(semifinals[0].id, semifinals[1].id),
            )
            games.append(third_place)
            games.append(Game(
                id=f"B-{final.round + 1}-01",
                round=final.round + 1,
                side_a=final.side_a,
                side_b=final.side_b,
                court_tags=final.court_tags,
                depends_on=final.depends_on,
            ))
        return games

    def _placement_order(self, games: List[Game]) -> List[Game]:
        """Stable topological order: predecessors first, then round, then input order."""
        index = {game.id: i for i, game in enumerate(games)}
        remaining = {game.id: {dep for dep in game.depends_on if dep in index} for game in games}
        ordered = []
        placed = set()
        pending = sorted(games, key=lambda g: (g.round, index[g.id]))
        while pending:
            ready = [game for game in pending if remaining[game.id] <= placed]
            if not ready:
                cycle = ", ".join(game.id for game in pending)
                raise InfeasibleProblem(f"Game dependencies form a cycle: {cycle}")
            game = ready[0]
            ordered.append(game)
            placed.add(game.id)
            pending.remove(game)
        return ordered

    def assign(self, games: List[Game]) -> ScheduleSolution:
        """
        Place games greedily on the earliest feasible slot.

        Raises:
            InfeasibleProblem: If there are more games than slots or a game
                cannot be placed anywhere
        """
        if len(games) > len(self.slots):
            logger.warning("Cannot place %d games on %d slots", len(games), len(self.slots))
            raise InfeasibleProblem(
                f"Not enough slots: {len(games)} games but only {len(self.slots)} slots",
                details={"games": len(games), "slots": len(self.slots)},
            )

        rest = timedelta(minutes=self.constraints.min_rest_minutes)
        limit = self.constraints.max_games_per_day
        balance_courts = self.problem.format is TournamentFormat.POOL_PLAY

        court_busy = defaultdict(list)  # court -> [Slot]
        used_keys = set()
        ready_at: Dict[str, datetime] = {}
        day_counts = defaultdict(int)  # (participant, day) -> games
        pool_court_usage = defaultdict(int)  # (pool, court) -> games
        placed: Dict[str, Slot] = {}

        for game in self._placement_order(games):
            earliest = None
            for participant_id in game.participants:
                if participant_id in ready_at:
                    earliest = max(earliest, ready_at[participant_id]) if earliest else ready_at[participant_id]
            for predecessor_id in game.depends_on:
                if predecessor_id in placed:
                    free_at = placed[predecessor_id].end + rest
                    earliest = max(earliest, free_at) if earliest else free_at

            start_index = bisect_left(self._slot_starts, earliest) if earliest else 0
            chosen = None
            for slot in self.slots[start_index:]:
                if chosen is not None and slot.start > chosen.start:
                    break
                if slot.key in used_keys or not game.court_tags <= slot.tags:
                    continue
                if any(slot.overlaps_with(other) for other in court_busy[slot.court]):
                    continue
                if limit is not None and any(
                    day_counts[(pid, slot.day)] >= limit for pid in game.participants
                ):
                    continue
                if chosen is None:
                    chosen = slot
                    if not balance_courts:
                        break
                elif pool_court_usage[(game.pool, slot.court)] < pool_court_usage[(game.pool, chosen.court)]:
                    chosen = slot

            if chosen is None:
                logger.warning("No feasible slot for game %s (earliest start %s)", game.id, earliest)
                raise InfeasibleProblem(
                    f"No feasible slot for game {game.id}",
                    details={"game_id": game.id, "earliest_start": earliest.isoformat() if earliest else None},
                )

            placed[game.id] = chosen
            used_keys.add(chosen.key)
            court_busy[chosen.court].append(chosen)
            pool_court_usage[(game.pool, chosen.court)] += 1
            for participant_id in game.participants:
                ready_at[participant_id] = chosen.end + rest
                day_counts[(participant_id, chosen.day)] += 1

        solution = ScheduleSolution(self.problem, games, placed)

        # Pairing-level rules (roster size, gender mix) cannot be fixed by placement
        conflicts = ConflictValidator().validate(solution)
        if conflicts:
            logger.warning("Baseline schedule has %d conflict(s); first: %s", len(conflicts), conflicts[0])
            raise InfeasibleProblem(
                f"Schedule violates {len(conflicts)} hard constraint(s): {conflicts[0]}",
                details={"conflicts": [str(conflict) for conflict in conflicts]},
            )

        logger.info("Placed %d games on %d slots", len(games), len(self.slots))
        return solution
