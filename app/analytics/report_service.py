"""
Report Service

The three standard reports:
- Daily cash: receipts, payment-method breakdown, top services, cash flow
- Weekly service orders: Monday-Sunday order summary and technician ranking
- Monthly balance: revenue/expense/profit roll-up, customers, inventory, KPIs

Each report fetches concurrently, isolates fetch failures and always returns
the full shape inside a ReportEnvelope.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from app.analytics import aggregators as agg
from app.analytics import calculators as calc
from app.analytics.envelope import ReportEnvelope, assemble, fetch_all, fetch_errors
from app.analytics.numeric import money, round_half_up, safe_div
from app.analytics.periods import (
    day_bounds,
    days_in_month,
    month_bounds,
    month_name_pt,
    parse_timestamp,
    week_bounds,
)
from app.analytics.records import MetricRecord, orders_from_rows, payments_from_rows, sales_from_rows
from app.models.enums import MarginQuality, OrderStatus, PaymentMethod, PaymentType, ReportType

logger = logging.getLogger(__name__)

TOP_SERVICES_LIMIT = 5


# ============== Daily Cash ==============

@dataclass
class DailySummary:
    top_services: List[agg.ServiceTally] = field(default_factory=list)
    payment_methods_breakdown: List[agg.PaymentMethodShare] = field(default_factory=list)


@dataclass
class DailyCashReport:
    date: str
    opening_balance: float = 0.0
    total_receipts: float = 0.0
    service_orders_revenue: float = 0.0
    sales_revenue: float = 0.0
    cash_payments: float = 0.0
    card_payments: float = 0.0
    credit_payments: float = 0.0
    total_expenses: float = 0.0
    closing_balance: float = 0.0
    transactions_count: int = 0
    summary: DailySummary = field(default_factory=DailySummary)


# ============== Weekly Service Orders ==============

@dataclass
class ServiceBreakdown:
    service_name: str
    count: int
    revenue: float


@dataclass
class WeeklyServiceOrdersReport:
    week_start: str
    week_end: str
    total_orders: int = 0
    completed_orders: int = 0
    pending_orders: int = 0
    cancelled_orders: int = 0
    completion_rate: float = 0.0
    average_completion_time: float = 0.0
    total_revenue: float = 0.0
    average_order_value: float = 0.0
    technician_performance: List[agg.WeeklyTechnicianRow] = field(default_factory=list)
    service_breakdown: List[ServiceBreakdown] = field(default_factory=list)


# ============== Monthly Balance ==============

@dataclass
class RevenueSection:
    service_orders: float = 0.0
    sales: float = 0.0
    total: float = 0.0


@dataclass
class ExpenseSection:
    purchases: float = 0.0
    operational: float = 0.0
    total: float = 0.0


@dataclass
class ProfitSection:
    gross: float = 0.0
    net: float = 0.0
    margin_percentage: float = 0.0
    margin_quality: MarginQuality = MarginQuality.LOW


@dataclass
class CustomerSection:
    total: int = 0
    new: int = 0
    returning: int = 0
    retention_rate: float = 0.0


@dataclass
class InventorySection:
    value: float = 0.0
    turnover: float = 0.0
    low_stock_items: int = 0


@dataclass
class KpiSection:
    average_ticket: float = 0.0
    orders_per_day: float = 0.0


@dataclass
class MonthlyBalanceReport:
    month: str
    year: int
    revenue: RevenueSection = field(default_factory=RevenueSection)
    expenses: ExpenseSection = field(default_factory=ExpenseSection)
    profit: ProfitSection = field(default_factory=ProfitSection)
    customers: CustomerSection = field(default_factory=CustomerSection)
    inventory: InventorySection = field(default_factory=InventorySection)
    kpis: KpiSection = field(default_factory=KpiSection)


def _sum_payments(payments: List[MetricRecord], payment_type: PaymentType) -> float:
    return calc.total_amount(p for p in payments if p.status == payment_type.value)


class ReportService:
    """Builds the standard reports for a reference day"""

    def __init__(self, data_source):
        self.data_source = data_source

    async def generate_daily_cash_report(
        self,
        now: datetime,
        day: Optional[date] = None
    ) -> ReportEnvelope[DailyCashReport]:
        """
        Cash report for one day (defaults to today).

        Payment-method shares are computed over orders and sales together.
        Opening balance is every revenue payment minus every expense payment
        dated before the day.
        """
        day = day or now.date()
        start, end = day_bounds(day)
        before_day = start - timedelta(microseconds=1)

        results = await fetch_all({
            "service_orders": self.data_source.fetch_service_orders(start, end, with_items=True),
            "sales": self.data_source.fetch_sales(start, end),
            "payments": self.data_source.fetch_payments(start, end),
            "prior_payments": self.data_source.fetch_payments(None, before_day),
        })

        def build() -> DailyCashReport:
            orders = orders_from_rows(results["service_orders"].data)
            sales = sales_from_rows(results["sales"].data)
            payments = payments_from_rows(results["payments"].data)
            prior = payments_from_rows(results["prior_payments"].data)

            orders_revenue = calc.total_amount(orders)
            sales_revenue = calc.total_amount(sales)
            receipts = orders_revenue + sales_revenue

            breakdown = agg.payment_method_breakdown(orders + sales)
            by_method = {share.method: share.amount for share in breakdown}

            expenses = _sum_payments(payments, PaymentType.EXPENSE)
            opening = _sum_payments(prior, PaymentType.REVENUE) - _sum_payments(prior, PaymentType.EXPENSE)

            return DailyCashReport(
                date=day.isoformat(),
                opening_balance=money(opening),
                total_receipts=money(receipts),
                service_orders_revenue=money(orders_revenue),
                sales_revenue=money(sales_revenue),
                cash_payments=by_method.get(PaymentMethod.CASH.value, 0.0),
                card_payments=by_method.get(PaymentMethod.CARD.value, 0.0),
                credit_payments=by_method.get(PaymentMethod.CREDIT.value, 0.0),
                total_expenses=money(expenses),
                closing_balance=money(opening + receipts - expenses),
                transactions_count=len(orders) + len(sales),
                summary=DailySummary(
                    top_services=agg.service_tally(orders, TOP_SERVICES_LIMIT),
                    payment_methods_breakdown=breakdown
                )
            )

        return assemble(
            "daily_cash_report",
            build,
            lambda: DailyCashReport(date=day.isoformat()),
            fetch_errors(results)
        )

    async def generate_weekly_service_orders_report(
        self,
        now: datetime,
        day: Optional[date] = None
    ) -> ReportEnvelope[WeeklyServiceOrdersReport]:
        """Order summary for the Monday-Sunday week containing day."""
        day = day or now.date()
        start, end = week_bounds(day)

        results = await fetch_all({
            "service_orders": self.data_source.fetch_service_orders(
                start, end, with_items=True, with_technician=True
            ),
        })

        def build() -> WeeklyServiceOrdersReport:
            orders = orders_from_rows(results["service_orders"].data)
            total = len(orders)
            revenue = calc.total_amount(orders)
            completed = [o for o in orders if o.is_completed]

            return WeeklyServiceOrdersReport(
                week_start=start.date().isoformat(),
                week_end=end.date().isoformat(),
                total_orders=total,
                completed_orders=len(completed),
                pending_orders=calc.count_status(orders, OrderStatus.PENDING),
                cancelled_orders=calc.count_status(orders, OrderStatus.CANCELLED),
                completion_rate=round_half_up(calc.completion_rate(orders), 2),
                average_completion_time=round_half_up(calc.average_completion_time(completed), 2),
                total_revenue=money(revenue),
                average_order_value=money(calc.average_value(revenue, total)),
                technician_performance=agg.weekly_technician_rows(orders),
                service_breakdown=[
                    ServiceBreakdown(service_name=t.name, count=t.count, revenue=t.revenue)
                    for t in agg.service_tally(orders)
                ]
            )

        return assemble(
            "weekly_service_orders_report",
            build,
            lambda: WeeklyServiceOrdersReport(
                week_start=start.date().isoformat(),
                week_end=end.date().isoformat()
            ),
            fetch_errors(results)
        )

    async def generate_monthly_balance_report(
        self,
        now: datetime,
        day: Optional[date] = None
    ) -> ReportEnvelope[MonthlyBalanceReport]:
        """
        Balance for the calendar month containing day.

        Expenses tied to supplier bills or stock movements count as purchases,
        everything else as operational. Retention is customers with more than
        one transaction in the month over all customers.
        """
        day = day or now.date()
        start, end = month_bounds(day)

        results = await fetch_all({
            "service_orders": self.data_source.fetch_service_orders(start, end),
            "sales": self.data_source.fetch_sales(start, end),
            "clients": self.data_source.fetch_clients(),
            "products": self.data_source.fetch_products(),
            "payments": self.data_source.fetch_payments(start, end, payment_type=PaymentType.EXPENSE.value),
        })

        def build() -> MonthlyBalanceReport:
            orders = orders_from_rows(results["service_orders"].data)
            sales = sales_from_rows(results["sales"].data)
            clients = results["clients"].data
            products = results["products"].data
            expenses = [
                p for p in payments_from_rows(results["payments"].data)
                if p.status == PaymentType.EXPENSE.value
            ]

            orders_revenue = calc.total_amount(orders)
            sales_revenue = calc.total_amount(sales)
            total_revenue = orders_revenue + sales_revenue

            purchases = calc.total_amount(p for p in expenses if p.category == "purchases")
            operational = calc.total_amount(p for p in expenses if p.category == "operational")
            total_expenses = purchases + operational

            net = total_revenue - total_expenses
            margin = safe_div(net * 100, total_revenue)

            new_clients = 0
            for client in clients:
                created = parse_timestamp(client.get("created_at"))
                if created is not None and start <= created <= end:
                    new_clients += 1
            returning = agg.returning_customer_count(orders + sales)

            inventory_value = calc.inventory_valuation(products)
            transactions = len(orders) + len(sales)

            return MonthlyBalanceReport(
                month=month_name_pt(day),
                year=day.year,
                revenue=RevenueSection(
                    service_orders=money(orders_revenue),
                    sales=money(sales_revenue),
                    total=money(total_revenue)
                ),
                expenses=ExpenseSection(
                    purchases=money(purchases),
                    operational=money(operational),
                    total=money(total_expenses)
                ),
                profit=ProfitSection(
                    gross=money(total_revenue - purchases),
                    net=money(net),
                    margin_percentage=round_half_up(margin, 2),
                    margin_quality=MarginQuality.from_margin(margin)
                ),
                customers=CustomerSection(
                    total=len(clients),
                    new=new_clients,
                    returning=returning,
                    retention_rate=round_half_up(calc.retention_rate(returning, len(clients)), 2)
                ),
                inventory=InventorySection(
                    value=money(inventory_value),
                    turnover=round_half_up(safe_div(sales_revenue, inventory_value), 2),
                    low_stock_items=calc.low_stock_count(products)
                ),
                kpis=KpiSection(
                    average_ticket=money(calc.average_value(total_revenue, transactions)),
                    orders_per_day=round_half_up(safe_div(len(orders), days_in_month(day)), 2)
                )
            )

        return assemble(
            "monthly_balance_report",
            build,
            lambda: MonthlyBalanceReport(month=month_name_pt(day), year=day.year),
            fetch_errors(results)
        )

    async def generate_all_reports(
        self,
        now: datetime,
        day: Optional[date] = None
    ) -> Dict[ReportType, ReportEnvelope]:
        """The three standard reports for the same day, generated concurrently."""
        daily, weekly, monthly = await asyncio.gather(
            self.generate_daily_cash_report(now, day),
            self.generate_weekly_service_orders_report(now, day),
            self.generate_monthly_balance_report(now, day),
        )
        return {
            ReportType.DAILY: daily,
            ReportType.WEEKLY: weekly,
            ReportType.MONTHLY: monthly,
        }
