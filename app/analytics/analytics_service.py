"""
Analytics Service

Ad-hoc analytics assemblers: business metrics snapshot, technician, service
and customer performance, and period/revenue time series.

Every method:
- Takes `now` explicitly (no clock reads here)
- Fetches its sources concurrently, each failure isolated
- Returns a ReportEnvelope whose data is always fully populated
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, List, Optional

from app.analytics import aggregators as agg
from app.analytics import calculators as calc
from app.analytics.envelope import ReportEnvelope, assemble, fetch_all, fetch_errors
from app.analytics.numeric import money, round_half_up, to_amount
from app.analytics.periods import (
    Granularity,
    build_windows,
    horizon,
    month_bounds,
    parse_timestamp,
    shift_months,
    start_of_day,
    trailing_days_start,
)
from app.analytics.records import (
    customer_history_from_row,
    order_items_from_rows,
    orders_from_rows,
    sales_from_rows,
)
from app.models.enums import OrderStatus

logger = logging.getLogger(__name__)

ACTIVE_CUSTOMER_DAYS = 30
OVERDUE_AFTER_DAYS = 7
DEFAULT_PERIODS = 12
DEFAULT_REVENUE_PERIODS = 30
DEFAULT_CUSTOMER_LIMIT = 50


@dataclass
class BusinessMetrics:
    """Flat "right now" snapshot plus this month vs last month"""
    # Customers
    total_customers: int = 0
    active_customers: int = 0
    new_customers_this_month: int = 0
    customer_retention_rate: float = 0.0

    # Service orders
    total_service_orders: int = 0
    pending_service_orders: int = 0
    overdue_service_orders: int = 0
    completion_rate: float = 0.0
    average_completion_time: float = 0.0

    # Financial
    monthly_revenue: float = 0.0
    monthly_growth: float = 0.0
    average_ticket: float = 0.0
    total_receivables: float = 0.0

    # Inventory
    total_products: int = 0
    low_stock_products: int = 0
    out_of_stock_products: int = 0
    inventory_value: float = 0.0


def current_month(now: datetime):
    """Default [start, end] window: the calendar month containing now."""
    return month_bounds(now.date())


class AnalyticsService:
    """Assembles analytics views from a data source"""

    def __init__(self, data_source):
        self.data_source = data_source

    # =========================================================================
    # Entity performance
    # =========================================================================

    async def get_technician_performance(
        self,
        now: datetime,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        technician_id: Optional[Any] = None
    ) -> ReportEnvelope[List[agg.TechnicianPerformance]]:
        """
        Technicians ranked by composite efficiency score.

        Defaults to the current month. Technicians without orders in the
        window do not appear.
        """
        if start is None or end is None:
            default_start, default_end = current_month(now)
            start = start or default_start
            end = end or default_end

        results = await fetch_all({
            "service_orders": self.data_source.fetch_service_orders(
                start, end, technician_id=technician_id, with_technician=True
            ),
        })
        rows = results["service_orders"].data

        return assemble(
            "technician_performance",
            lambda: agg.technician_performance(orders_from_rows(rows), start, end),
            list,
            fetch_errors(results)
        )

    async def get_service_analysis(
        self,
        now: datetime,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> ReportEnvelope[List[agg.ServicePerformance]]:
        """Services ranked by demand score; defaults to the current month."""
        if start is None or end is None:
            default_start, default_end = current_month(now)
            start = start or default_start
            end = end or default_end

        results = await fetch_all({
            "service_order_items": self.data_source.fetch_order_items(start, end),
        })
        rows = results["service_order_items"].data

        return assemble(
            "service_analysis",
            lambda: agg.service_performance(order_items_from_rows(rows), start, end),
            list,
            fetch_errors(results)
        )

    async def get_customer_analysis(
        self,
        now: datetime,
        limit: int = DEFAULT_CUSTOMER_LIMIT,
        customer_id: Optional[Any] = None
    ) -> ReportEnvelope[List[agg.CustomerPerformance]]:
        """Customers by total spent, truncated to `limit` after sorting."""
        results = await fetch_all({
            "clients": self.data_source.fetch_clients(with_history=True, client_id=customer_id),
        })
        rows = results["clients"].data

        return assemble(
            "customer_analysis",
            lambda: agg.customer_performance([customer_history_from_row(r) for r in rows], now, limit),
            list,
            fetch_errors(results)
        )

    # =========================================================================
    # Time series
    # =========================================================================

    async def get_period_analysis(
        self,
        now: datetime,
        granularity: Granularity = Granularity.MONTHLY,
        periods: int = DEFAULT_PERIODS
    ) -> ReportEnvelope[List[agg.PeriodPoint]]:
        """
        Order activity per calendar bucket, oldest first.

        Always exactly `periods` points; one fetch covers the whole horizon.
        """
        windows = build_windows(granularity, periods, now)
        start, end = horizon(windows)

        results = await fetch_all({
            "service_orders": self.data_source.fetch_service_orders(start, end),
        })
        rows = results["service_orders"].data

        return assemble(
            "period_analysis",
            lambda: agg.period_series(orders_from_rows(rows), windows),
            lambda: agg.period_series([], windows),
            fetch_errors(results)
        )

    async def get_revenue_analysis(
        self,
        now: datetime,
        granularity: Granularity = Granularity.DAILY,
        periods: int = DEFAULT_REVENUE_PERIODS
    ) -> ReportEnvelope[List[agg.RevenuePoint]]:
        """Completed-order and sales revenue per calendar bucket, oldest first."""
        windows = build_windows(granularity, periods, now)
        start, end = horizon(windows)

        results = await fetch_all({
            "service_orders": self.data_source.fetch_service_orders(
                start, end, status=OrderStatus.COMPLETED.value
            ),
            "sales": self.data_source.fetch_sales(start, end),
        })
        order_rows = results["service_orders"].data
        sale_rows = results["sales"].data

        return assemble(
            "revenue_analysis",
            lambda: agg.revenue_series(orders_from_rows(order_rows), sales_from_rows(sale_rows), windows),
            lambda: agg.revenue_series([], [], windows),
            fetch_errors(results)
        )

    # =========================================================================
    # Snapshot
    # =========================================================================

    async def get_business_metrics(self, now: datetime) -> ReportEnvelope[BusinessMetrics]:
        """
        Business snapshot at `now`.

        - Active customers: any order or sale in the trailing 30 days
        - Overdue orders: pending and created more than 7 days ago
        - Monthly growth: this month's order revenue vs last month's, 0 without a baseline
        """
        active_since = trailing_days_start(now, ACTIVE_CUSTOMER_DAYS)

        results = await fetch_all({
            "clients": self.data_source.fetch_clients(),
            "service_orders": self.data_source.fetch_service_orders(),
            "sales": self.data_source.fetch_sales(active_since),
            "products": self.data_source.fetch_products(),
            "credit_sales": self.data_source.fetch_open_credit_sales(),
        })

        clients = results["clients"].data
        products = results["products"].data
        credit_sales = results["credit_sales"].data

        def build() -> BusinessMetrics:
            orders = orders_from_rows(results["service_orders"].data)
            sales = sales_from_rows(results["sales"].data)
            month_start = start_of_day(now.date().replace(day=1))
            last_month_start, last_month_end = month_bounds(shift_months(now.date(), -1))
            overdue_before = now - timedelta(days=OVERDUE_AFTER_DAYS)

            recent = [r for r in orders + sales if agg.in_window(r, active_since, None)]
            active_customers = agg.distinct_customers(recent)
            total_customers = len(clients)
            new_customers = sum(
                1 for c in clients
                if (parse_timestamp(c.get("created_at")) or datetime.min) >= month_start
            )

            pending = [r for r in orders if r.status == OrderStatus.PENDING.value]
            overdue = [r for r in pending if r.created_at is not None and r.created_at < overdue_before]
            completed = [r for r in orders if r.is_completed]

            this_month_revenue = calc.total_amount(r for r in orders if agg.in_window(r, month_start, None))
            last_month_revenue = calc.total_amount(
                r for r in orders if agg.in_window(r, last_month_start, last_month_end)
            )
            all_revenue = calc.total_amount(orders)

            return BusinessMetrics(
                total_customers=total_customers,
                active_customers=active_customers,
                new_customers_this_month=new_customers,
                customer_retention_rate=round_half_up(calc.retention_rate(active_customers, total_customers), 2),
                total_service_orders=len(orders),
                pending_service_orders=len(pending),
                overdue_service_orders=len(overdue),
                completion_rate=round_half_up(calc.completion_rate(orders), 2),
                average_completion_time=round_half_up(calc.average_completion_time(completed), 2),
                monthly_revenue=money(this_month_revenue),
                monthly_growth=round_half_up(calc.growth_percentage(this_month_revenue, last_month_revenue), 2),
                average_ticket=money(calc.average_value(all_revenue, len(orders))),
                total_receivables=money(sum(to_amount(c.get("balance_due")) for c in credit_sales)),
                total_products=len(products),
                low_stock_products=calc.low_stock_count(products),
                out_of_stock_products=calc.out_of_stock_count(products),
                inventory_value=money(calc.inventory_valuation(products))
            )

        return assemble("business_metrics", build, BusinessMetrics, fetch_errors(results))
