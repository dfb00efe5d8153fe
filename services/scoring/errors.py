"""Exceptions raised by the scoring engines"""


class ScoringError(Exception):
    """Base class for scoring failures"""


class InvalidRangeError(ScoringError, ValueError):
    """Raised when a scoring input lies outside its allowed range"""

    def __init__(self, field: str, value, lo=None, hi=None, message: str = None):
        self.field = field
        self.value = value
        self.lo = lo
        self.hi = hi
        if message is None:
            message = f"{field}={value!r} is outside the allowed range [{lo}, {hi}]"
        super().__init__(message)


class WeightTableError(ScoringError):
    """Raised when a weight table is incomplete or does not sum to 1.0"""
