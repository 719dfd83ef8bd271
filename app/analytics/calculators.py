"""
Metric Calculators

Pure functions computing one derived value from a record set or from
already-aggregated numbers. No I/O, no clock reads.

Edge-case policy:
- Empty denominators yield 0 (never NaN, Infinity or an exception)
- Scores are clamped to [0, 100]
- Durations use whole days rounded up; negative spans count as 0
"""

import math
from typing import Any, Dict, Iterable, List, Sequence

from app.analytics.numeric import clamp, round_score, safe_div, to_amount, to_int
from app.analytics.periods import elapsed_days_ceil
from app.analytics.records import MetricRecord
from app.models.enums import OrderStatus

LOW_STOCK_THRESHOLD = 5
LOYALTY_ORDER_CAP = 10


def _finite(value: float) -> float:
    """NaN collapses to 0 so it can't leak through min/max."""
    return 0.0 if isinstance(value, float) and math.isnan(value) else value


# ============== Counts & Totals ==============

def count_status(records: Iterable[MetricRecord], status: OrderStatus) -> int:
    return sum(1 for r in records if r.status == status.value)


def total_amount(records: Iterable[MetricRecord]) -> float:
    return sum(r.amount for r in records)


def average_value(total: float, count: int) -> float:
    return safe_div(total, count)


# ============== Rates ==============

def completion_rate(records: Sequence[MetricRecord]) -> float:
    """completed / total * 100; 0 for an empty set."""
    total = len(records)
    completed = sum(1 for r in records if r.is_completed)
    return safe_div(completed * 100, total)


def average_completion_time(records: Iterable[MetricRecord]) -> float:
    """
    Mean whole days from creation to completion.

    Only records carrying both timestamps count. Partial days round up;
    a completion stamped before its creation counts as 0 days.
    """
    durations = [
        elapsed_days_ceil(r.created_at, r.completed_at)
        for r in records
        if r.created_at is not None and r.completed_at is not None
    ]
    return safe_div(sum(durations), len(durations))


def growth_percentage(current: float, previous: float) -> float:
    """Period-over-period change; 0 when there is no positive baseline."""
    if previous > 0:
        return (current - previous) / previous * 100
    return 0.0


def retention_rate(returning: int, total: int) -> float:
    return safe_div(returning * 100, total)


# ============== Scores ==============

def efficiency_score(completion_rate_pct: float, avg_completion_days: float) -> float:
    """
    Composite 0-100 technician score.

    70% completion rate, 30% speed; the speed term loses 5 points per day
    and floors at 0 before blending.
    """
    completion = _finite(completion_rate_pct)
    speed = max(0.0, _finite(100 - _finite(avg_completion_days) * 5))
    return clamp(_finite(completion * 0.7 + speed * 0.3))


def weekly_efficiency_score(completed: int, total: int) -> int:
    """Weekly report score: plain completed/total percentage, rounded."""
    return round_score(safe_div(completed * 100, total))


def demand_score(group_count: int, max_group_count: int) -> float:
    """Share of the busiest group's volume, relative to the current result set."""
    return safe_div(group_count * 100, max_group_count)


def loyalty_score(total_orders: int, days_since_last_order: float) -> float:
    """Frequency (capped at 10 orders) minus 0.1 point per day of absence."""
    frequency = min(_finite(total_orders), LOYALTY_ORDER_CAP) * 10
    return clamp(_finite(frequency - _finite(days_since_last_order) * 0.1))


def customer_lifetime_value(avg_order_value: float, total_orders: int, months_since_first_order: float) -> float:
    """Annualized run-rate: average value x monthly frequency x 12."""
    months = max(1, months_since_first_order)
    return avg_order_value * (total_orders / months) * 12


# ============== Inventory ==============

def stock_quantity(product: Dict[str, Any]) -> int:
    return to_int(product.get("stock_quantity"))


def inventory_valuation(products: Iterable[Dict[str, Any]]) -> float:
    """Sum of price x stock quantity; negative stock counts as none."""
    return sum(
        to_amount(p.get("price")) * max(0, stock_quantity(p))
        for p in products
    )


def low_stock_count(products: Iterable[Dict[str, Any]], threshold: int = LOW_STOCK_THRESHOLD) -> int:
    return sum(1 for p in products if stock_quantity(p) <= threshold)


def out_of_stock_count(products: Iterable[Dict[str, Any]]) -> int:
    return sum(1 for p in products if stock_quantity(p) == 0)


def preferred_names(names: List[str], limit: int = 3) -> List[str]:
    """Most frequent names first; ties keep first-seen order."""
    counts: Dict[str, int] = {}
    for name in names:
        counts[name] = counts.get(name, 0) + 1
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [name for name, _ in ranked[:limit]]
