"""
Error types raised by the scheduling core.

Cancellation is not an error: a cancelled solve returns its best-so-far
schedule with a ``cancelled`` status.
"""


class SchedulingError(Exception):
    """Base class for all scheduling core exceptions."""
    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class InfeasibleProblem(SchedulingError):
    """Raised before any search when the hard constraints cannot all be met."""


class InvalidWeights(SchedulingError):
    """Raised when a weight lies outside [0.0, 1.0] or names no objective."""


class LockConflict(SchedulingError):
    """Raised when a requested lock references a game missing from the previous schedule."""
    def __init__(self, game_ids):
        self.game_ids = sorted(game_ids)
        super().__init__(
            f"Locked games not present in previous schedule: {', '.join(self.game_ids)}",
            details={"game_ids": self.game_ids},
        )
