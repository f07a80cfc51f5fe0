"""
Scheduling services: validation, cost, generation and search.
"""

from .validator import ConflictValidator, validate_schedule
from .cost import CostEvaluator, evaluate_cost
from .generator import DeterministicGenerator, round_robin_rounds
from .neighbors import NeighborGenerator, Move
from .annealer import Annealer, AnnealResult, CancellationToken, PollingCancellationToken
from .reoptimizer import Reoptimizer
from .explainer import explain
from .engine import generate, reoptimize

__all__ = [
    "ConflictValidator",
    "validate_schedule",
    "CostEvaluator",
    "evaluate_cost",
    "DeterministicGenerator",
    "round_robin_rounds",
    "NeighborGenerator",
    "Move",
    "Annealer",
    "AnnealResult",
    "CancellationToken",
    "PollingCancellationToken",
    "Reoptimizer",
    "explain",
    "generate",
    "reoptimize",
]
