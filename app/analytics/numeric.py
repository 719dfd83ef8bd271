"""
Numeric Helpers

Safe conversion and rounding used by every calculator and assembler.
Amounts are plain floats in the shop currency (BRL), not cents.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from math import isfinite
from typing import Any, List


def to_float(value: Any, default: float = 0.0) -> float:
    """Safely convert value to float."""
    if value is None:
        return default
    try:
        parsed = float(Decimal(str(value)))
    except (InvalidOperation, ValueError, TypeError):
        return default
    # NaN, Infinity and exponents past float range
    return parsed if isfinite(parsed) else default


def to_int(value: Any, default: int = 0) -> int:
    """Safely convert value to int."""
    if value is None:
        return default
    try:
        return int(float(value))
    except (ValueError, TypeError, OverflowError):
        return default


def to_amount(value: Any) -> float:
    """Monetary amount; negatives and garbage become 0."""
    return max(0.0, to_float(value))


def safe_div(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Safe division with default."""
    return numerator / denominator if denominator else default


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return min(high, max(low, value))


def round_half_up(value: float, digits: int = 0) -> float:
    """Round like a spreadsheet does (2.5 -> 3), not banker's rounding."""
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def round_score(value: float) -> int:
    """Integer 0-100 score."""
    return int(round_half_up(value))


def money(value: float) -> float:
    """Round to 2 decimal places for output."""
    return round_half_up(value, 2)


def closed_percentages(amounts: List[float], digits: int = 2) -> List[float]:
    """
    Percentage share of each amount, rounded, summing to exactly 100.

    The rounding residual is assigned to the largest share. Returns all
    zeros when the total is 0.
    """
    total = sum(amounts)
    if total <= 0:
        return [0.0 for _ in amounts]

    shares = [round_half_up(a / total * 100, digits) for a in amounts]
    residual = round_half_up(100 - sum(shares), digits)
    if residual:
        largest = max(range(len(shares)), key=lambda i: shares[i])
        shares[largest] = round_half_up(shares[largest] + residual, digits)
    return shares
