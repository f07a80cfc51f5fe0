"""
Request/config models for the scheduling core.

``WeightVector`` and ``SolveConfig`` are the caller-facing options of
``generate``/``reoptimize``; the ``*Payload`` models parse the JSON documents
that the command line and the Celery tasks receive.
"""

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from courtplan.core.config import (
    DEFAULT_WEIGHTS, INITIAL_TEMPERATURE, COOLING_STRATEGY, MIN_TEMPERATURE,
    COOLING_RATE, MAX_ITERATIONS, PLATEAU_WINDOW, PROGRESS_INTERVAL, NEIGHBOR_RETRIES,
    ADAPTIVE_WINDOW
)
from courtplan.core.exceptions import InvalidWeights
from courtplan.models.models import (
    ConstraintSet, CoolingStrategy, CostObjective, Game, Participant, ProblemDescription,
    ScheduleSolution, Slot, SolveResult, ReoptimizeResult, TournamentFormat
)


def _weight_field(objective: CostObjective):
    return Field(DEFAULT_WEIGHTS[objective.value], ge=0.0, le=1.0, allow_inf_nan=False)


class WeightVector(BaseModel):
    """One weight in [0.0, 1.0] per soft objective."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    skill_balance: float = _weight_field(CostObjective.SKILL_BALANCE)
    seed_balance: float = _weight_field(CostObjective.SEED_BALANCE)
    teammate_repetition: float = _weight_field(CostObjective.TEAMMATE_REPETITION)
    opponent_repetition: float = _weight_field(CostObjective.OPPONENT_REPETITION)
    sit_out_equity: float = _weight_field(CostObjective.SIT_OUT_EQUITY)
    rest_variance: float = _weight_field(CostObjective.REST_VARIANCE)
    court_utilization: float = _weight_field(CostObjective.COURT_UTILIZATION)
    gender_balance: float = _weight_field(CostObjective.GENDER_BALANCE)

    @model_validator(mode="wrap")
    @classmethod
    def raise_invalid_weights(cls, data, handler):
        """Report every construction failure as InvalidWeights."""
        try:
            return handler(data)
        except ValidationError as e:
            raise InvalidWeights(
                f"Invalid weight vector: {e.error_count()} error(s)",
                details={"errors": [
                    {"field": ".".join(str(loc) for loc in err["loc"]), "message": err["msg"]}
                    for err in e.errors()
                ]},
            ) from e

    @classmethod
    def from_overrides(cls, overrides: Optional[Mapping[Any, float]] = None) -> 'WeightVector':
        """
        Build a weight vector from defaults plus caller overrides.

        Args:
            overrides: Mapping keyed by objective name or CostObjective

        Raises:
            InvalidWeights: If a weight is outside [0.0, 1.0] or names no objective
        """
        values = {}
        for key, value in (overrides or {}).items():
            name = key.value if isinstance(key, CostObjective) else str(key)
            values[name] = value
        return cls(**values)

    def weight(self, objective: CostObjective) -> float:
        return getattr(self, objective.value)

    def as_mapping(self) -> Dict[CostObjective, float]:
        return {objective: self.weight(objective) for objective in CostObjective}


def resolve_weights(weights: Any) -> WeightVector:
    """Accept a WeightVector, a mapping of overrides, or None (defaults)."""
    if weights is None:
        return WeightVector()
    if isinstance(weights, WeightVector):
        return weights
    if isinstance(weights, Mapping):
        return WeightVector.from_overrides(weights)
    raise InvalidWeights(f"Unsupported weights value of type {type(weights).__name__}")


class SolveConfig(BaseModel):
    """Search options for the annealer."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    initial_temperature: float = Field(INITIAL_TEMPERATURE, gt=0.0, allow_inf_nan=False)
    cooling_strategy: CoolingStrategy = CoolingStrategy(COOLING_STRATEGY)
    # Linear: the per-iteration step. Exponential/adaptive: the multiplier in (0, 1).
    cooling_rate: Optional[float] = Field(None, gt=0.0, allow_inf_nan=False)
    min_temperature: float = Field(MIN_TEMPERATURE, ge=0.0)
    max_iterations: int = Field(MAX_ITERATIONS, gt=0)
    plateau_window: int = Field(PLATEAU_WINDOW, ge=0)  # 0 disables early stopping
    random_seed: Optional[int] = None
    neighbor_retries: int = Field(NEIGHBOR_RETRIES, ge=1)
    progress_interval: int = Field(PROGRESS_INTERVAL, ge=1)
    adaptive_window: int = Field(ADAPTIVE_WINDOW, ge=1)

    @model_validator(mode="after")
    def check_cooling_rate(self):
        if self.cooling_rate is not None and self.cooling_strategy is not CoolingStrategy.LINEAR:
            if self.cooling_rate >= 1.0:
                raise ValueError(f"{self.cooling_strategy.value} cooling rate must be below 1.0")
        return self

    def effective_cooling_rate(self) -> float:
        if self.cooling_rate is not None:
            return self.cooling_rate
        if self.cooling_strategy is CoolingStrategy.LINEAR:
            return self.initial_temperature / self.max_iterations
        return COOLING_RATE


class ParticipantPayload(BaseModel):
    id: str
    skill_rating: float = 0.0
    gender: Optional[str] = None
    pool: Optional[str] = None
    seed: Optional[int] = None

    def to_participant(self) -> Participant:
        return Participant(
            id=self.id,
            skill_rating=self.skill_rating,
            gender=self.gender,
            pool=self.pool,
            seed=self.seed,
        )


class SlotPayload(BaseModel):
    court: str
    start: datetime
    end: datetime
    tags: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_window(self):
        if self.end <= self.start:
            raise ValueError(f"Slot on {self.court} ends before it starts")
        return self

    def to_slot(self) -> Slot:
        return Slot(court=self.court, start=self.start, end=self.end, tags=frozenset(self.tags))


class GamePayload(BaseModel):
    id: str
    round: int = Field(..., ge=1)
    side_a: List[str]
    side_b: List[str]
    pool: Optional[str] = None
    court_tags: List[str] = Field(default_factory=list)
    depends_on: List[str] = Field(default_factory=list)
    locked: bool = False

    def to_game(self) -> Game:
        return Game(
            id=self.id,
            round=self.round,
            side_a=tuple(self.side_a),
            side_b=tuple(self.side_b),
            pool=self.pool,
            court_tags=frozenset(self.court_tags),
            depends_on=tuple(self.depends_on),
            locked=self.locked,
        )


class ConstraintPayload(BaseModel):
    min_rest_minutes: int = Field(0, ge=0)
    max_games_per_day: Optional[int] = Field(None, ge=1)
    min_team_size: int = Field(1, ge=1)
    max_team_size: Optional[int] = Field(None, ge=1)
    required_gender_mix: Dict[str, int] = Field(default_factory=dict)
    target_gender_mix: Dict[str, float] = Field(default_factory=dict)

    def to_constraints(self) -> ConstraintSet:
        return ConstraintSet(
            min_rest_minutes=self.min_rest_minutes,
            max_games_per_day=self.max_games_per_day,
            min_team_size=self.min_team_size,
            max_team_size=self.max_team_size,
            required_gender_mix=dict(self.required_gender_mix),
            target_gender_mix=dict(self.target_gender_mix),
        )


class ProblemPayload(BaseModel):
    """JSON form of a ProblemDescription."""
    participants: List[ParticipantPayload]
    slots: List[SlotPayload]
    constraints: ConstraintPayload = Field(default_factory=ConstraintPayload)
    weights: Dict[str, float] = Field(default_factory=dict)
    format: TournamentFormat = TournamentFormat.ROUND_ROBIN
    cycles: int = Field(1, ge=1)
    third_place_game: bool = False
    games: Optional[List[GamePayload]] = None
    court_tags: List[str] = Field(default_factory=list)
    pool_court_tags: Dict[str, List[str]] = Field(default_factory=dict)

    def to_problem(self) -> ProblemDescription:
        return ProblemDescription(
            participants=[p.to_participant() for p in self.participants],
            slots=[s.to_slot() for s in self.slots],
            constraints=self.constraints.to_constraints(),
            weights=WeightVector.from_overrides(self.weights),
            format=self.format,
            cycles=self.cycles,
            third_place_game=self.third_place_game,
            games=[g.to_game() for g in self.games] if self.games is not None else None,
            court_tags=frozenset(self.court_tags),
            pool_court_tags={pool: frozenset(tags) for pool, tags in self.pool_court_tags.items()},
        )


class AssignmentPayload(BaseModel):
    game_id: str
    court: str
    start: datetime
    end: datetime


class SerializedGamePayload(BaseModel):
    """One entry of the ``games`` list written by ``serialize_solution``."""
    game_id: str
    round: int = Field(..., ge=1)
    side_a: List[str]
    side_b: List[str]
    pool: Optional[str] = None
    court_tags: List[str] = Field(default_factory=list)
    depends_on: List[str] = Field(default_factory=list)
    locked: bool = False
    court: str
    start: datetime
    end: datetime

    def to_game_payload(self) -> GamePayload:
        return GamePayload(
            id=self.game_id,
            round=self.round,
            side_a=self.side_a,
            side_b=self.side_b,
            pool=self.pool,
            court_tags=self.court_tags,
            depends_on=self.depends_on,
            locked=self.locked,
        )

    def to_assignment(self) -> AssignmentPayload:
        return AssignmentPayload(game_id=self.game_id, court=self.court, start=self.start, end=self.end)


class SchedulePayload(BaseModel):
    """JSON form of a previously returned schedule (games plus their slots)."""
    games: List[GamePayload]
    assignments: List[AssignmentPayload]

    @classmethod
    def from_serialized(cls, games: List[Dict[str, Any]]) -> 'SchedulePayload':
        """
        Accept the ``games`` list of a previous ``serialize_result`` output.

        Raises:
            ValidationError: If an entry is missing a field or has a bad value
        """
        entries = [SerializedGamePayload.model_validate(item) for item in games]
        return cls(
            games=[entry.to_game_payload() for entry in entries],
            assignments=[entry.to_assignment() for entry in entries],
        )

    def to_solution(self, problem: ProblemDescription) -> ScheduleSolution:
        slots_by_window = {(s.court, s.start, s.end): s for s in problem.slots}
        assignments = {}
        for item in self.assignments:
            window = (item.court, item.start, item.end)
            # Unknown windows are kept so the validator can report them
            assignments[item.game_id] = slots_by_window.get(window) or Slot(
                court=item.court, start=item.start, end=item.end
            )
        return ScheduleSolution(problem, [g.to_game() for g in self.games], assignments)


def serialize_solution(solution: ScheduleSolution) -> List[Dict[str, Any]]:
    games = []
    for game in solution.ordered_games():
        slot = solution.slot_of(game.id)
        games.append({
            "game_id": game.id,
            "round": game.round,
            "side_a": list(game.side_a),
            "side_b": list(game.side_b),
            "pool": game.pool,
            "court": slot.court,
            "start": slot.start.isoformat(),
            "end": slot.end.isoformat(),
            "court_tags": sorted(game.court_tags),
            "depends_on": list(game.depends_on),
            "locked": game.locked,
        })
    return games


def serialize_result(result: SolveResult) -> Dict[str, Any]:
    payload = {
        "success": True,
        "status": result.stats.status.value,
        "total_games": len(result.solution.games),
        "games": serialize_solution(result.solution),
        "cost": result.report.as_dict(),
        "explanation": result.explanation.as_dict(),
        "stats": result.stats.as_dict(),
        "conflicts": [
            {"kind": c.kind.value, "rule": c.rule, "game_ids": list(c.game_ids), "description": c.description}
            for c in result.conflicts
        ],
    }
    if isinstance(result, ReoptimizeResult):
        payload["diff"] = [
            {
                "game_id": change.game_id,
                "old": {"court": change.old_slot.court, "start": change.old_slot.start.isoformat()},
                "new": {"court": change.new_slot.court, "start": change.new_slot.start.isoformat()},
            }
            for change in result.diff
        ]
        payload["locked_game_ids"] = sorted(result.locked_game_ids)
    return payload
