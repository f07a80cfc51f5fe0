"""
courtplan: assigns games to courts and time slots under hard constraints
while minimizing a weighted fairness cost.
"""

__version__ = "1.0.0"

from courtplan.services.engine import generate, reoptimize  # noqa: E402

__all__ = ["generate", "reoptimize", "__version__"]
