"""
Data models for the scheduling core.
"""

from .models import (
    TournamentFormat,
    ScheduleMode,
    CoolingStrategy,
    SolveStatus,
    CostObjective,
    ConflictKind,
    Participant,
    Slot,
    Game,
    ConstraintSet,
    ProblemDescription,
    ParticipantStats,
    SlotChange,
    ScheduleSolution,
    Conflict,
    CostReport,
    ProgressUpdate,
    SolveStats,
    ExplanationEntry,
    Explanation,
    SolveResult,
    ReoptimizeResult,
    is_placeholder,
)
from .schemas import WeightVector, SolveConfig, resolve_weights

__all__ = [
    "TournamentFormat",
    "ScheduleMode",
    "CoolingStrategy",
    "SolveStatus",
    "CostObjective",
    "ConflictKind",
    "Participant",
    "Slot",
    "Game",
    "ConstraintSet",
    "ProblemDescription",
    "ParticipantStats",
    "SlotChange",
    "ScheduleSolution",
    "Conflict",
    "CostReport",
    "ProgressUpdate",
    "SolveStats",
    "ExplanationEntry",
    "Explanation",
    "SolveResult",
    "ReoptimizeResult",
    "is_placeholder",
    "WeightVector",
    "SolveConfig",
    "resolve_weights",
]
