"""
Numeric helpers shared by the scoring engines.

Everything here is pure: no I/O, no shared state.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Iterable, Optional, Sequence, Tuple

from services.scoring.errors import InvalidRangeError

Rule = Tuple[Callable[..., bool], Any]


def clamp(value: float, lo: float, hi: float) -> float:
    """Bound value to [lo, hi]"""
    return max(lo, min(hi, value))


def round_half_up(value: float, places: int = 1) -> float:
    """Decimal rounding (2.25 -> 2.3), unlike the built-in banker's round().

    The value is first trimmed to 9 places so binary noise such as
    8.549999999999999 does not decide the result.
    """
    quantum = Decimal(1).scaleb(-places)
    trimmed = Decimal(str(round(value, 9)))
    return float(trimmed.quantize(quantum, rounding=ROUND_HALF_UP))


def weighted_sum(terms: Iterable[Tuple[float, float]], places: Optional[int] = None) -> float:
    """Sum of value * weight over (value, weight) pairs.

    Rounded to `places` decimals when the caller needs display precision.
    """
    total = sum(value * weight for value, weight in terms)
    if places is not None:
        return round_half_up(total, places)
    return total


def first_match(rules: Sequence[Rule], *args, default: Any = None) -> Any:
    """Evaluate ordered (predicate, result) pairs top to bottom"""
    for predicate, result in rules:
        if predicate(*args):
            return result
    return default


def at_least(threshold: float, result: Any) -> Rule:
    """Rule matching any value >= threshold"""
    return (lambda value: value >= threshold, result)


def require_range(field: str, value: Any, lo: float, hi: float) -> float:
    """Return value as float, raising InvalidRangeError when it is not in [lo, hi]"""
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidRangeError(field, value, lo, hi, message=f"{field}={value!r} is not a number")

    if number != number or not lo <= number <= hi:
        raise InvalidRangeError(field, value, lo, hi)
    return number


def require_non_negative(field: str, value: Any) -> float:
    return require_range(field, value, 0, float('inf'))
