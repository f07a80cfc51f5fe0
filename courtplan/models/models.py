"""
Data models for the courtplan scheduling core.
Defines all data structures passed between the validator, cost evaluator,
generator and search components.
"""

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Set, Tuple


WINNER_PREFIX = "W:"
LOSER_PREFIX = "L:"


def is_placeholder(ref: str) -> bool:
    """True for bracket references such as ``W:B-1-01`` (winner of a game)."""
    return ref.startswith(WINNER_PREFIX) or ref.startswith(LOSER_PREFIX)


class TournamentFormat(Enum):
    ROUND_ROBIN = "round_robin"
    POOL_PLAY = "pool_play"
    BRACKET = "bracket"
    CUSTOM = "custom"


class ScheduleMode(Enum):
    FAST = "fast"
    OPTIMIZE = "optimize"


class CoolingStrategy(Enum):
    LINEAR = "linear"
    EXPONENTIAL = "exponential"
    ADAPTIVE = "adaptive"


class SolveStatus(Enum):
    COMPLETED = "completed"
    CONVERGED = "converged"
    CANCELLED = "cancelled"


class CostObjective(Enum):
    SKILL_BALANCE = "skill_balance"
    SEED_BALANCE = "seed_balance"
    TEAMMATE_REPETITION = "teammate_repetition"
    OPPONENT_REPETITION = "opponent_repetition"
    SIT_OUT_EQUITY = "sit_out_equity"
    REST_VARIANCE = "rest_variance"
    COURT_UTILIZATION = "court_utilization"
    GENDER_BALANCE = "gender_balance"


class ConflictKind(Enum):
    DOUBLE_BOOKED_PARTICIPANT = "double_booked_participant"
    DOUBLE_BOOKED_COURT = "double_booked_court"
    INSUFFICIENT_REST = "insufficient_rest"
    SLOT_OUT_OF_BOUNDS = "slot_out_of_bounds"
    ROSTER_SIZE_VIOLATION = "roster_size_violation"
    GENDER_COMPOSITION_VIOLATION = "gender_composition_violation"
    MAX_GAMES_PER_DAY_EXCEEDED = "max_games_per_day_exceeded"
    BRACKET_ORDER_VIOLATION = "bracket_order_violation"
    LOCKED_GAME_MOVED = "locked_game_moved"


@dataclass(frozen=True)
class Participant:
    id: str
    skill_rating: float = 0.0
    gender: Optional[str] = None
    pool: Optional[str] = None
    seed: Optional[int] = None


@dataclass(frozen=True)
class Slot:
    court: str
    start: datetime
    end: datetime
    tags: FrozenSet[str] = frozenset()

    def __str__(self):
        return f"{self.court} {self.start:%Y-%m-%d %H:%M}-{self.end:%H:%M}"

    @property
    def key(self) -> Tuple[str, datetime]:
        return (self.court, self.start)

    @property
    def day(self) -> date:
        return self.start.date()

    @property
    def duration_minutes(self) -> float:
        return (self.end - self.start).total_seconds() / 60.0

    def overlaps_with(self, other: 'Slot') -> bool:
        if self.court != other.court:
            return False
        return not (self.end <= other.start or self.start >= other.end)


@dataclass(frozen=True)
class Game:
    id: str
    round: int
    side_a: Tuple[str, ...]
    side_b: Tuple[str, ...]
    pool: Optional[str] = None
    court_tags: FrozenSet[str] = frozenset()
    depends_on: Tuple[str, ...] = ()
    locked: bool = False

    def __str__(self):
        return f"{self.id}: {'/'.join(self.side_a)} vs {'/'.join(self.side_b)} (round {self.round})"

    @property
    def participants(self) -> Tuple[str, ...]:
        """Real participant ids on both sides; bracket placeholders excluded."""
        return tuple(ref for ref in self.side_a + self.side_b if not is_placeholder(ref))

    def involves(self, participant_id: str) -> bool:
        return participant_id in self.side_a or participant_id in self.side_b

    def opponents_of(self, participant_id: str) -> Tuple[str, ...]:
        if participant_id in self.side_a:
            other = self.side_b
        elif participant_id in self.side_b:
            other = self.side_a
        else:
            return ()
        return tuple(ref for ref in other if not is_placeholder(ref))

    def teammates_of(self, participant_id: str) -> Tuple[str, ...]:
        if participant_id in self.side_a:
            side = self.side_a
        elif participant_id in self.side_b:
            side = self.side_b
        else:
            return ()
        return tuple(ref for ref in side if ref != participant_id and not is_placeholder(ref))


@dataclass(frozen=True)
class ConstraintSet:
    """Hard rules; any violation makes a schedule infeasible."""
    min_rest_minutes: int = 0
    max_games_per_day: Optional[int] = None
    min_team_size: int = 1
    max_team_size: Optional[int] = None
    required_gender_mix: Mapping[str, int] = field(default_factory=dict)
    # Soft target composition used by the gender balance objective
    target_gender_mix: Mapping[str, float] = field(default_factory=dict)


@dataclass
class ProblemDescription:
    participants: List[Participant]
    slots: List[Slot]
    constraints: ConstraintSet = field(default_factory=ConstraintSet)
    weights: Any = None  # WeightVector or a mapping of overrides
    format: TournamentFormat = TournamentFormat.ROUND_ROBIN
    cycles: int = 1
    third_place_game: bool = False
    games: Optional[List[Game]] = None
    court_tags: FrozenSet[str] = frozenset()
    pool_court_tags: Mapping[str, FrozenSet[str]] = field(default_factory=dict)

    def __post_init__(self):
        self._participants_by_id = {p.id: p for p in self.participants}
        self._slot_windows = {(s.court, s.start, s.end) for s in self.slots}

    def participant(self, participant_id: str) -> Optional[Participant]:
        return self._participants_by_id.get(participant_id)

    def has_slot(self, slot: Slot) -> bool:
        return (slot.court, slot.start, slot.end) in self._slot_windows

    def pools(self) -> Dict[Optional[str], List[Participant]]:
        groups = defaultdict(list)
        for participant in self.participants:
            groups[participant.pool].append(participant)
        return dict(groups)

    def tags_for_pool(self, pool: Optional[str]) -> FrozenSet[str]:
        if pool is not None and pool in self.pool_court_tags:
            return frozenset(self.pool_court_tags[pool])
        return frozenset(self.court_tags)


@dataclass
class ParticipantStats:
    participant_id: str
    games_played: int = 0
    sit_outs: int = 0
    rounds_played: Set[int] = field(default_factory=set)
    rest_gaps: List[float] = field(default_factory=list)
    same_day_gaps: List[float] = field(default_factory=list)
    opponents: Counter = field(default_factory=Counter)
    teammates: Counter = field(default_factory=Counter)


@dataclass(frozen=True)
class SlotChange:
    game_id: str
    old_slot: Slot
    new_slot: Slot


class ScheduleSolution:
    """
    Total, immutable mapping from every game to exactly one slot.

    Mutating operations return a new solution; per-participant aggregates
    are recomputed on every call.
    """

    __slots__ = ("problem", "games", "_assignments", "_games_by_id")

    def __init__(self, problem: ProblemDescription, games: Iterable[Game], assignments: Mapping[str, Slot]):
        games = tuple(games)
        games_by_id = {game.id: game for game in games}
        if len(games_by_id) != len(games):
            raise ValueError("Duplicate game ids in schedule")

        missing = [game.id for game in games if game.id not in assignments]
        if missing:
            raise ValueError(f"Games without a slot: {', '.join(sorted(missing))}")
        unknown = [game_id for game_id in assignments if game_id not in games_by_id]
        if unknown:
            raise ValueError(f"Assignments for unknown games: {', '.join(sorted(unknown))}")

        object.__setattr__(self, "problem", problem)
        object.__setattr__(self, "games", games)
        object.__setattr__(self, "_games_by_id", games_by_id)
        object.__setattr__(self, "_assignments", MappingProxyType(dict(assignments)))

    def __setattr__(self, name, value):
        raise AttributeError("ScheduleSolution is immutable")

    def __eq__(self, other):
        if isinstance(other, ScheduleSolution):
            return dict(self._assignments) == dict(other._assignments)
        return NotImplemented

    def __hash__(self):
        return hash(frozenset(self._assignments.items()))

    def __len__(self):
        return len(self.games)

    @property
    def assignments(self) -> Mapping[str, Slot]:
        return self._assignments

    def game(self, game_id: str) -> Game:
        return self._games_by_id[game_id]

    def slot_of(self, game_id: str) -> Slot:
        return self._assignments[game_id]

    def with_assignments(self, changes: Mapping[str, Slot]) -> 'ScheduleSolution':
        updated = dict(self._assignments)
        updated.update(changes)
        return ScheduleSolution(self.problem, self.games, updated)

    def swap(self, first_id: str, second_id: str) -> 'ScheduleSolution':
        return self.with_assignments({
            first_id: self._assignments[second_id],
            second_id: self._assignments[first_id],
        })

    def rebind(self, problem: ProblemDescription) -> 'ScheduleSolution':
        """Same games and slots, evaluated against another problem description."""
        return ScheduleSolution(problem, self.games, self._assignments)

    def occupied_keys(self) -> Set[Tuple[str, datetime]]:
        return {slot.key for slot in self._assignments.values()}

    def ordered_games(self) -> List[Game]:
        """Games in chronological order (start, court, id)."""
        return sorted(
            self.games,
            key=lambda g: (self._assignments[g.id].start, self._assignments[g.id].court, g.id)
        )

    def rounds(self) -> List[int]:
        return sorted({game.round for game in self.games})

    def diff(self, other: 'ScheduleSolution') -> List[SlotChange]:
        """Games whose slot differs in ``other``, sorted by game id."""
        changes = []
        for game_id in sorted(self._assignments):
            if game_id not in other._assignments:
                continue
            old_slot = self._assignments[game_id]
            new_slot = other._assignments[game_id]
            if old_slot != new_slot:
                changes.append(SlotChange(game_id=game_id, old_slot=old_slot, new_slot=new_slot))
        return changes

    def participant_stats(self) -> Dict[str, ParticipantStats]:
        """
        Calculate per-participant aggregates for this schedule.

        Returns:
            Mapping of participant id to games played, sit-outs, rest gaps,
            opponent and teammate counts
        """
        stats = {p.id: ParticipantStats(participant_id=p.id) for p in self.problem.participants}
        slots_by_participant = defaultdict(list)

        for game in self.ordered_games():
            slot = self._assignments[game.id]
            for participant_id in game.participants:
                entry = stats.setdefault(participant_id, ParticipantStats(participant_id=participant_id))
                entry.games_played += 1
                entry.rounds_played.add(game.round)
                entry.opponents.update(game.opponents_of(participant_id))
                entry.teammates.update(game.teammates_of(participant_id))
                slots_by_participant[participant_id].append(slot)

        for participant_id, slots in slots_by_participant.items():
            entry = stats[participant_id]
            for previous, following in zip(slots, slots[1:]):
                gap = (following.start - previous.end).total_seconds() / 60.0
                entry.rest_gaps.append(gap)
                if previous.day == following.day:
                    entry.same_day_gaps.append(gap)

        # A participant sits out every round in which their pool plays without them
        rounds_open_to_all = set()
        rounds_by_pool = defaultdict(set)
        for game in self.games:
            if game.pool is None:
                rounds_open_to_all.add(game.round)
            else:
                rounds_by_pool[game.pool].add(game.round)

        for participant_id, entry in stats.items():
            participant = self.problem.participant(participant_id)
            pool = participant.pool if participant else None
            eligible = rounds_open_to_all | rounds_by_pool.get(pool, set())
            entry.sit_outs = len(eligible - entry.rounds_played)

        return stats


@dataclass(frozen=True)
class Conflict:
    kind: ConflictKind
    rule: str
    game_ids: Tuple[str, ...]
    description: str
    participant_id: Optional[str] = None

    def __str__(self):
        return f"{self.kind.value}: {self.description}"


@dataclass(frozen=True)
class CostReport:
    costs: Mapping[CostObjective, float]
    weights: Mapping[CostObjective, float]
    total: float

    def cost(self, objective: CostObjective) -> float:
        return self.costs[objective]

    def weighted(self, objective: CostObjective) -> float:
        return self.costs[objective] * self.weights[objective]

    def as_dict(self) -> Dict[str, Any]:
        return {
            "costs": {objective.value: value for objective, value in self.costs.items()},
            "weights": {objective.value: value for objective, value in self.weights.items()},
            "total": self.total,
        }


@dataclass(frozen=True)
class ProgressUpdate:
    iteration: int
    temperature: float
    best_cost: float
    current_cost: float
    accepted_moves: int

    def as_dict(self) -> Dict[str, Any]:
        return {
            "iteration": self.iteration,
            "temperature": self.temperature,
            "best_cost": self.best_cost,
            "current_cost": self.current_cost,
            "accepted_moves": self.accepted_moves,
        }


@dataclass
class SolveStats:
    status: SolveStatus = SolveStatus.COMPLETED
    iterations: int = 0
    accepted_moves: int = 0
    rejected_moves: int = 0
    infeasible_neighbors: int = 0
    noop_iterations: int = 0
    best_iteration: int = 0
    elapsed_seconds: float = 0.0
    initial_temperature: float = 0.0
    final_temperature: float = 0.0
    initial_cost: float = 0.0
    best_cost: float = 0.0
    random_seed: Optional[int] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "iterations": self.iterations,
            "accepted_moves": self.accepted_moves,
            "rejected_moves": self.rejected_moves,
            "infeasible_neighbors": self.infeasible_neighbors,
            "noop_iterations": self.noop_iterations,
            "best_iteration": self.best_iteration,
            "elapsed_seconds": self.elapsed_seconds,
            "initial_temperature": self.initial_temperature,
            "final_temperature": self.final_temperature,
            "initial_cost": self.initial_cost,
            "best_cost": self.best_cost,
            "random_seed": self.random_seed,
        }


@dataclass(frozen=True)
class ExplanationEntry:
    objective: CostObjective
    raw_cost: float
    weight: float
    weighted_contribution: float
    share: float


@dataclass(frozen=True)
class Explanation:
    entries: Tuple[ExplanationEntry, ...]
    total: float
    primary_tradeoff: Optional[CostObjective]

    def get_summary(self) -> str:
        summary = f"Total Weighted Cost: {self.total:.4f}\n"
        if self.primary_tradeoff is not None:
            summary += f"Primary Trade-off: {self.primary_tradeoff.value}\n"
        for entry in self.entries:
            summary += (
                f"  {entry.objective.value:<22} cost={entry.raw_cost:.4f} "
                f"weight={entry.weight:.2f} contribution={entry.weighted_contribution:.4f}\n"
            )
        return summary

    def as_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "primary_tradeoff": self.primary_tradeoff.value if self.primary_tradeoff else None,
            "entries": [
                {
                    "objective": entry.objective.value,
                    "raw_cost": entry.raw_cost,
                    "weight": entry.weight,
                    "weighted_contribution": entry.weighted_contribution,
                    "share": entry.share,
                }
                for entry in self.entries
            ],
        }


@dataclass
class SolveResult:
    solution: ScheduleSolution
    report: CostReport
    explanation: Explanation
    stats: SolveStats
    conflicts: List[Conflict] = field(default_factory=list)

    @property
    def status(self) -> SolveStatus:
        return self.stats.status

    @property
    def cancelled(self) -> bool:
        return self.stats.status is SolveStatus.CANCELLED


@dataclass
class ReoptimizeResult(SolveResult):
    diff: List[SlotChange] = field(default_factory=list)
    locked_game_ids: FrozenSet[str] = frozenset()
