"""
Aggregators

Group MetricRecords by a dimension (technician, service, customer, calendar
period, payment method) and apply the calculators per group.

Rules:
- Grouping is a single pass into an insertion-ordered dict; groups only exist
  for keys with at least one record
- Rankings sort by score descending; ties keep insertion order (stable sort)
- Top-N truncation happens after the full aggregation and sort
"""

from dataclasses import dataclass, field
from datetime import datetime
from math import ceil
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

from app.analytics import calculators as calc
from app.analytics.numeric import closed_percentages, money, round_half_up, round_score
from app.analytics.periods import PeriodWindow, assign_to_windows, elapsed_days_ceil
from app.analytics.records import (
    CustomerHistory,
    MetricRecord,
    UNASSIGNED_TECHNICIAN,
    UNKNOWN_SERVICE,
    UNKNOWN_TECHNICIAN,
)
from app.models.enums import OrderStatus

T = TypeVar("T")

NO_ORDER_DAYS = 999
DAYS_PER_MONTH = 30


# ============== Dataclasses ==============

@dataclass
class DimensionBucket:
    """Grouping key plus the records assigned to it"""
    key: Any
    label: Optional[str] = None
    records: List[MetricRecord] = field(default_factory=list)


@dataclass
class TechnicianPerformance:
    """Technician performance row"""
    technician_id: Any
    technician_name: str
    total_orders: int
    completed_orders: int
    pending_orders: int
    cancelled_orders: int
    completion_rate: float
    average_completion_time: float  # days
    total_revenue: float
    average_order_value: float
    efficiency_score: int  # 0-100 composite


@dataclass
class ServicePerformance:
    """Service performance row"""
    service_id: Any
    service_name: str
    total_orders: int
    completed_orders: int
    completion_rate: float
    average_price: float
    total_revenue: float
    average_completion_time: float  # days
    demand_score: int  # 0-100, relative to the busiest service


@dataclass
class CustomerPerformance:
    """Customer value and loyalty row"""
    customer_id: Any
    customer_name: str
    total_orders: int
    total_spent: float
    average_order_value: float
    last_order_date: str
    days_since_last_order: int
    customer_lifetime_value: float
    loyalty_score: int  # 0-100
    preferred_services: List[str] = field(default_factory=list)


@dataclass
class PeriodPoint:
    """One calendar bucket of order activity"""
    period: str
    start_date: str
    end_date: str
    total_orders: int
    completed_orders: int
    pending_orders: int
    cancelled_orders: int
    completion_rate: float
    average_completion_time: float
    total_revenue: float
    average_order_value: float


@dataclass
class RevenuePoint:
    """One calendar bucket of revenue across orders and sales"""
    date: str
    start_date: str
    end_date: str
    service_orders_revenue: float
    sales_revenue: float
    total_revenue: float
    orders_count: int
    sales_count: int
    average_ticket: float


@dataclass
class PaymentMethodShare:
    method: str
    amount: float
    percentage: float


@dataclass
class ServiceTally:
    """Line-item count and revenue for one service name"""
    name: str
    count: int
    revenue: float


@dataclass
class WeeklyTechnicianRow:
    technician_name: str
    orders_completed: int
    efficiency_score: int  # rounded completion percentage


# ============== Generic Grouping ==============

def in_window(record: MetricRecord, start: Optional[datetime], end: Optional[datetime]) -> bool:
    """Inclusive window check on creation time; open bounds always pass."""
    if start is None and end is None:
        return True
    if record.created_at is None:
        return False
    if start is not None and record.created_at < start:
        return False
    if end is not None and record.created_at > end:
        return False
    return True


def group_records(
    records: Sequence[MetricRecord],
    key_fn: Callable[[MetricRecord], Any],
    window_start: Optional[datetime] = None,
    window_end: Optional[datetime] = None,
    label_fn: Optional[Callable[[MetricRecord], Optional[str]]] = None,
) -> List[DimensionBucket]:
    """
    Single-pass group-by.

    Records outside the window or whose key is None are left out, so a
    dimension value with no records never gets a bucket.
    """
    buckets: Dict[Any, DimensionBucket] = {}

    for record in records:
        if not in_window(record, window_start, window_end):
            continue
        key = key_fn(record)
        if key is None:
            continue

        bucket = buckets.get(key)
        if bucket is None:
            bucket = buckets[key] = DimensionBucket(key=key)
        if bucket.label is None and label_fn is not None:
            bucket.label = label_fn(record)
        bucket.records.append(record)

    return list(buckets.values())


def rank(rows: List[T], score: Callable[[T], float]) -> List[T]:
    """Descending by score; equal scores keep their current order."""
    return sorted(rows, key=score, reverse=True)


def top_n(rows: List[T], n: Optional[int]) -> List[T]:
    return rows if n is None else rows[:max(n, 0)]


def _completed(records: Sequence[MetricRecord]) -> List[MetricRecord]:
    return [r for r in records if r.is_completed]


# ============== Entity Performance ==============

def technician_performance(
    orders: Sequence[MetricRecord],
    window_start: Optional[datetime] = None,
    window_end: Optional[datetime] = None,
) -> List[TechnicianPerformance]:
    """Per-technician rows ranked by composite efficiency score."""
    buckets = group_records(
        orders,
        key_fn=lambda r: r.actor_id,
        window_start=window_start,
        window_end=window_end,
        label_fn=lambda r: r.actor_name,
    )

    rows = []
    for bucket in buckets:
        records = bucket.records
        total = len(records)
        revenue = calc.total_amount(records)
        rate = calc.completion_rate(records)
        avg_days = calc.average_completion_time(_completed(records))

        rows.append(TechnicianPerformance(
            technician_id=bucket.key,
            technician_name=bucket.label or UNKNOWN_TECHNICIAN,
            total_orders=total,
            completed_orders=calc.count_status(records, OrderStatus.COMPLETED),
            pending_orders=calc.count_status(records, OrderStatus.PENDING),
            cancelled_orders=calc.count_status(records, OrderStatus.CANCELLED),
            completion_rate=round_half_up(rate, 2),
            average_completion_time=round_half_up(avg_days, 2),
            total_revenue=money(revenue),
            average_order_value=money(calc.average_value(revenue, total)),
            efficiency_score=round_score(calc.efficiency_score(rate, avg_days))
        ))

    return rank(rows, lambda row: row.efficiency_score)


def service_performance(
    items: Sequence[MetricRecord],
    window_start: Optional[datetime] = None,
    window_end: Optional[datetime] = None,
) -> List[ServicePerformance]:
    """Per-service rows from order line items, ranked by demand score."""
    buckets = group_records(
        items,
        key_fn=lambda r: r.subject_id if r.subject_id is not None else r.subject_name,
        window_start=window_start,
        window_end=window_end,
        label_fn=lambda r: r.subject_name,
    )

    # Demand is relative to the busiest service in this result set
    max_count = max((len(b.records) for b in buckets), default=0)

    rows = []
    for bucket in buckets:
        records = bucket.records
        total = len(records)
        revenue = calc.total_amount(records)

        rows.append(ServicePerformance(
            service_id=bucket.key,
            service_name=bucket.label or UNKNOWN_SERVICE,
            total_orders=total,
            completed_orders=calc.count_status(records, OrderStatus.COMPLETED),
            completion_rate=round_half_up(calc.completion_rate(records), 2),
            average_price=money(calc.average_value(revenue, total)),
            total_revenue=money(revenue),
            average_completion_time=round_half_up(calc.average_completion_time(_completed(records)), 2),
            demand_score=round_score(calc.demand_score(total, max_count))
        ))

    return rank(rows, lambda row: row.demand_score)


def customer_performance(
    customers: Sequence[CustomerHistory],
    now: datetime,
    limit: Optional[int] = None,
) -> List[CustomerPerformance]:
    """
    Per-customer spend, lifetime value and loyalty, by total spent descending.

    Truncation to `limit` happens after the full ranking.
    """
    rows = []
    for customer in customers:
        transactions = customer.orders + customer.sales
        total_orders = len(transactions)
        total_spent = calc.total_amount(transactions)
        avg_value = calc.average_value(total_spent, total_orders)

        dated = sorted(
            (r.created_at for r in transactions if r.created_at is not None),
            reverse=True
        )
        if dated:
            last_order, first_order = dated[0], dated[-1]
            days_since_last = elapsed_days_ceil(last_order, now)
            months_since_first = max(1, ceil(elapsed_days_ceil(first_order, now) / DAYS_PER_MONTH))
            last_order_date = last_order.isoformat()
        else:
            days_since_last = NO_ORDER_DAYS
            months_since_first = 1
            last_order_date = ""

        service_names = [
            item.name
            for order in customer.orders
            for item in order.items
            if item.name != UNKNOWN_SERVICE
        ]

        rows.append(CustomerPerformance(
            customer_id=customer.customer_id,
            customer_name=customer.customer_name,
            total_orders=total_orders,
            total_spent=money(total_spent),
            average_order_value=money(avg_value),
            last_order_date=last_order_date,
            days_since_last_order=days_since_last,
            customer_lifetime_value=money(
                calc.customer_lifetime_value(avg_value, total_orders, months_since_first)
            ),
            loyalty_score=round_score(calc.loyalty_score(total_orders, days_since_last)),
            preferred_services=calc.preferred_names(service_names)
        ))

    return top_n(rank(rows, lambda row: row.total_spent), limit)


# ============== Time Series ==============

def period_series(orders: Sequence[MetricRecord], windows: Sequence[PeriodWindow]) -> List[PeriodPoint]:
    """
    One point per window, oldest first, zero-filled.

    Each order lands in exactly one window by its creation time.
    """
    buckets = assign_to_windows(orders, windows, lambda r: r.created_at)

    points = []
    for window, records in zip(windows, buckets):
        total = len(records)
        revenue = calc.total_amount(records)
        points.append(PeriodPoint(
            period=window.label,
            start_date=window.start.date().isoformat(),
            end_date=window.end.date().isoformat(),
            total_orders=total,
            completed_orders=calc.count_status(records, OrderStatus.COMPLETED),
            pending_orders=calc.count_status(records, OrderStatus.PENDING),
            cancelled_orders=calc.count_status(records, OrderStatus.CANCELLED),
            completion_rate=round_half_up(calc.completion_rate(records), 2),
            average_completion_time=round_half_up(calc.average_completion_time(_completed(records)), 2),
            total_revenue=money(revenue),
            average_order_value=money(calc.average_value(revenue, total))
        ))
    return points


def revenue_series(
    orders: Sequence[MetricRecord],
    sales: Sequence[MetricRecord],
    windows: Sequence[PeriodWindow],
) -> List[RevenuePoint]:
    """Completed-order revenue plus sales revenue per window, zero-filled."""
    order_buckets = assign_to_windows(_completed(orders), windows, lambda r: r.created_at)
    sale_buckets = assign_to_windows(sales, windows, lambda r: r.created_at)

    points = []
    for window, window_orders, window_sales in zip(windows, order_buckets, sale_buckets):
        orders_revenue = calc.total_amount(window_orders)
        sales_revenue = calc.total_amount(window_sales)
        total = orders_revenue + sales_revenue
        transactions = len(window_orders) + len(window_sales)

        points.append(RevenuePoint(
            date=window.label,
            start_date=window.start.date().isoformat(),
            end_date=window.end.date().isoformat(),
            service_orders_revenue=money(orders_revenue),
            sales_revenue=money(sales_revenue),
            total_revenue=money(total),
            orders_count=len(window_orders),
            sales_count=len(window_sales),
            average_ticket=money(calc.average_value(total, transactions))
        ))
    return points


# ============== Report Breakdowns ==============

def payment_method_breakdown(transactions: Sequence[MetricRecord]) -> List[PaymentMethodShare]:
    """
    Amount and share per payment method over all given transactions.

    Percentages sum to exactly 100 when there is volume, 0 otherwise.
    Largest amount first.
    """
    totals: Dict[str, float] = {}
    for t in transactions:
        totals[t.payment_method] = totals.get(t.payment_method, 0.0) + t.amount

    ordered = rank(list(totals.items()), lambda item: item[1])
    percentages = closed_percentages([amount for _, amount in ordered])

    return [
        PaymentMethodShare(method=method, amount=money(amount), percentage=pct)
        for (method, amount), pct in zip(ordered, percentages)
    ]


def service_tally(orders: Sequence[MetricRecord], limit: Optional[int] = None) -> List[ServiceTally]:
    """Service line items by name, revenue descending."""
    tallies: Dict[str, ServiceTally] = {}
    for order in orders:
        for item in order.items:
            if item.item_type != "service":
                continue
            tally = tallies.get(item.name)
            if tally is None:
                tally = tallies[item.name] = ServiceTally(name=item.name, count=0, revenue=0.0)
            tally.count += 1
            tally.revenue += item.revenue

    ranked = rank(list(tallies.values()), lambda t: t.revenue)
    for tally in ranked:
        tally.revenue = money(tally.revenue)
    return top_n(ranked, limit)


def weekly_technician_rows(orders: Sequence[MetricRecord]) -> List[WeeklyTechnicianRow]:
    """Technicians by rounded completion percentage; unassigned orders grouped together."""
    buckets = group_records(
        orders,
        key_fn=lambda r: r.actor_id if r.actor_id is not None else UNASSIGNED_TECHNICIAN,
        label_fn=lambda r: r.actor_name if r.actor_id is not None else UNASSIGNED_TECHNICIAN,
    )

    rows = []
    for bucket in buckets:
        completed = calc.count_status(bucket.records, OrderStatus.COMPLETED)
        rows.append(WeeklyTechnicianRow(
            technician_name=bucket.label or UNKNOWN_TECHNICIAN,
            orders_completed=completed,
            efficiency_score=calc.weekly_efficiency_score(completed, len(bucket.records))
        ))
    return rank(rows, lambda row: row.efficiency_score)


def returning_customer_count(transactions: Sequence[MetricRecord]) -> int:
    """Customers with more than one transaction in the given set."""
    frequency: Dict[Any, int] = {}
    for t in transactions:
        if t.subject_id is None:
            continue
        frequency[t.subject_id] = frequency.get(t.subject_id, 0) + 1
    return sum(1 for count in frequency.values() if count > 1)


def distinct_customers(transactions: Sequence[MetricRecord]) -> int:
    return len({t.subject_id for t in transactions if t.subject_id is not None})
