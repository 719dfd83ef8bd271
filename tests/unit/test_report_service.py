"""
Unit Tests - Standard Reports
"""
from datetime import date

import pytest

from app.analytics.report_service import ReportService
from app.models.enums import MarginQuality, ReportType


@pytest.fixture
def daily_source(make_source, make_order, make_item, make_sale, make_payment):
    orders = [
        make_order("o1", created_at="2025-03-19T09:00:00", total_price=300, payment_method="dinheiro",
                   items=[make_item("Tela", 250), make_item("Película", 50)]),
        make_order("o2", created_at="2025-03-19T14:00:00", total_price=200, payment_method="cartao",
                   items=[make_item("Bateria", 100, quantity=2)]),
        make_order("o3", created_at="2025-03-18T14:00:00", total_price=999),
    ]
    sales = [
        make_sale("s1", total_price=100, created_at="2025-03-19T10:00:00", payment_method="credit_card"),
        make_sale("s2", total_price=400, created_at="2025-03-19T11:00:00"),
    ]
    payments = [
        make_payment("p1", 1000, payment_type="revenue", payment_date="2025-03-01T10:00:00"),
        make_payment("p2", 300, payment_type="expense", payment_date="2025-03-10T10:00:00"),
        make_payment("p3", 150, payment_type="expense", payment_date="2025-03-19T16:00:00"),
        make_payment("p4", 75, payment_type="revenue", payment_date="2025-03-19T16:00:00"),
    ]
    return make_source(orders=orders, sales=sales, payments=payments)


class TestDailyCashReport:
    """Tests for the daily cash report"""

    async def test_daily_cash(self, daily_source, now):
        envelope = await ReportService(daily_source).generate_daily_cash_report(now, date(2025, 3, 19))
        report = envelope.data

        assert envelope.error is None
        assert report.date == "2025-03-19"
        assert report.service_orders_revenue == 500.0
        assert report.sales_revenue == 500.0
        assert report.total_receipts == 1000.0
        assert report.transactions_count == 4

        assert report.cash_payments == 700.0
        assert report.card_payments == 300.0
        assert report.credit_payments == 0.0

        assert report.opening_balance == 700.0
        assert report.total_expenses == 150.0
        assert report.closing_balance == 1550.0

    async def test_daily_payment_breakdown_closes(self, daily_source, now):
        envelope = await ReportService(daily_source).generate_daily_cash_report(now, date(2025, 3, 19))
        breakdown = envelope.data.summary.payment_methods_breakdown

        assert [b.method for b in breakdown] == ["cash", "card"]
        assert [b.percentage for b in breakdown] == [70.0, 30.0]
        assert sum(b.percentage for b in breakdown) == pytest.approx(100.0)

    async def test_daily_top_services(self, daily_source, now):
        envelope = await ReportService(daily_source).generate_daily_cash_report(now, date(2025, 3, 19))
        top = envelope.data.summary.top_services

        assert [(t.name, t.count, t.revenue) for t in top] == [
            ("Tela", 1, 250.0),
            ("Bateria", 1, 200.0),
            ("Película", 1, 50.0),
        ]

    async def test_top_services_capped_at_five(self, make_source, make_order, make_item, now):
        items = [make_item(f"Serviço {i}", 10 * i) for i in range(1, 8)]
        source = make_source(orders=[make_order("o1", items=items)])

        envelope = await ReportService(source).generate_daily_cash_report(now)
        top = envelope.data.summary.top_services

        assert len(top) == 5
        assert top[0].name == "Serviço 7"

    async def test_scenario_b_empty_day(self, empty_source, now):
        """Test a day without orders yields zeros and no error"""
        envelope = await ReportService(empty_source).generate_daily_cash_report(now, date(2025, 3, 16))
        report = envelope.data

        assert envelope.error is None
        assert report.total_receipts == 0
        assert report.transactions_count == 0
        assert report.summary.top_services == []
        assert report.summary.payment_methods_breakdown == []

    async def test_non_finite_amount_counts_as_zero(self, make_source, make_order, now):
        """Test an unparseable total does not discard the whole report"""
        source = make_source(orders=[
            make_order("o1", created_at="2025-03-19T09:00:00", total_price="100.00"),
            make_order("o2", created_at="2025-03-19T10:00:00", total_price="Infinity"),
        ])

        envelope = await ReportService(source).generate_daily_cash_report(now, date(2025, 3, 19))

        assert envelope.error is None
        assert envelope.data.total_receipts == 100.0
        assert envelope.data.transactions_count == 2

    async def test_daily_sales_failure_keeps_orders(self, daily_source, now):
        daily_source.failing = {"fetch_sales"}

        envelope = await ReportService(daily_source).generate_daily_cash_report(now, date(2025, 3, 19))

        assert envelope.error == "sales: fetch_sales unavailable"
        assert envelope.data.sales_revenue == 0.0
        assert envelope.data.service_orders_revenue == 500.0

    async def test_daily_all_failing(self, failing_source, now):
        envelope = await ReportService(failing_source).generate_daily_cash_report(now)

        assert envelope.data.date == "2025-03-19"
        assert envelope.data.total_receipts == 0
        assert envelope.error.count("; ") == 3


class TestWeeklyReport:
    """Tests for the weekly service orders report"""

    @pytest.fixture
    def weekly_source(self, make_source, make_order, make_item):
        ana = {"id": "t1", "name": "Ana"}
        bruno = {"id": "t2", "name": "Bruno"}
        return make_source(orders=[
            make_order("o1", technician=ana, created_at="2025-03-17T00:00:00",
                       completed_at="2025-03-18T12:00:00", total_price=200,
                       items=[make_item("Tela", 200)]),
            make_order("o2", technician=ana, status="pending", created_at="2025-03-18T09:00:00", total_price=100),
            make_order("o3", technician=bruno, created_at="2025-03-23T23:59:59",
                       completed_at="2025-03-24T10:00:00", total_price=120,
                       items=[make_item("Tela", 120), make_item("Bateria", 80)]),
            make_order("o4", status="cancelled", created_at="2025-03-20T09:00:00", total_price=0),
            make_order("o5", technician=bruno, created_at="2025-03-16T23:59:59", total_price=500),
        ])

    async def test_week_is_monday_to_sunday(self, weekly_source, now):
        envelope = await ReportService(weekly_source).generate_weekly_service_orders_report(now)
        report = envelope.data

        assert report.week_start == "2025-03-17"
        assert report.week_end == "2025-03-23"
        assert report.total_orders == 4
        assert report.completed_orders == 2
        assert report.pending_orders == 1
        assert report.cancelled_orders == 1
        assert report.completion_rate == 50.0
        assert report.total_revenue == 420.0
        assert report.average_order_value == 105.0
        assert report.average_completion_time == 1.5

    async def test_weekly_technician_scores(self, weekly_source, now):
        """Test the weekly score is the rounded completion percentage"""
        envelope = await ReportService(weekly_source).generate_weekly_service_orders_report(now)

        rows = [(r.technician_name, r.orders_completed, r.efficiency_score)
                for r in envelope.data.technician_performance]
        assert rows == [("Bruno", 1, 100), ("Ana", 1, 50), ("Não atribuído", 0, 0)]

    async def test_weekly_service_breakdown(self, weekly_source, now):
        envelope = await ReportService(weekly_source).generate_weekly_service_orders_report(now)

        breakdown = [(s.service_name, s.count, s.revenue) for s in envelope.data.service_breakdown]
        assert breakdown == [("Tela", 2, 320.0), ("Bateria", 1, 80.0)]


class TestMonthlyBalance:
    """Tests for the monthly balance report"""

    @pytest.fixture
    def monthly_source(self, make_source, make_order, make_sale, make_payment):
        return make_source(
            orders=[
                make_order("o1", client_id="c1", created_at="2025-03-02T10:00:00", total_price=600),
                make_order("o2", client_id="c1", created_at="2025-03-10T10:00:00", total_price=400),
                make_order("o3", client_id="c2", created_at="2025-02-10T10:00:00", total_price=999),
            ],
            sales=[
                make_sale("s1", total_price=300, client_id="c2", created_at="2025-03-05T10:00:00"),
                make_sale("s2", total_price=700, client_id="c3", created_at="2025-03-06T10:00:00"),
            ],
            clients=[
                {"id": "c1", "created_at": "2024-05-01T10:00:00"},
                {"id": "c2", "created_at": "2025-03-01T00:00:00"},
                {"id": "c3", "created_at": "2025-03-20T10:00:00"},
                {"id": "c4", "created_at": None},
            ],
            products=[
                {"price": 100, "stock_quantity": 10},
                {"price": 50, "stock_quantity": 2},
            ],
            payments=[
                make_payment("p1", 500, accounts_payable_id="ap1", payment_date="2025-03-03T10:00:00"),
                make_payment("p2", 200, stock_movement_id="sm1", payment_date="2025-03-04T10:00:00"),
                make_payment("p3", 600, payment_date="2025-03-05T10:00:00"),
                make_payment("p4", 999, payment_type="revenue", payment_date="2025-03-05T10:00:00"),
                make_payment("p5", 999, payment_date="2025-02-05T10:00:00"),
            ],
        )

    async def test_monthly_balance(self, monthly_source, now):
        envelope = await ReportService(monthly_source).generate_monthly_balance_report(now)
        report = envelope.data

        assert envelope.error is None
        assert report.month == "março"
        assert report.year == 2025

        assert report.revenue.service_orders == 1000.0
        assert report.revenue.sales == 1000.0
        assert report.revenue.total == 2000.0

        assert report.expenses.purchases == 700.0
        assert report.expenses.operational == 600.0
        assert report.expenses.total == 1300.0

        assert report.profit.gross == 1300.0
        assert report.profit.net == 700.0
        assert report.profit.margin_percentage == 35.0
        assert report.profit.margin_quality == MarginQuality.EXCELLENT

        assert report.customers.total == 4
        assert report.customers.new == 2
        assert report.customers.returning == 1
        assert report.customers.retention_rate == 25.0

        assert report.inventory.value == 1100.0
        assert report.inventory.turnover == 0.91
        assert report.inventory.low_stock_items == 1

        assert report.kpis.average_ticket == 500.0
        assert report.kpis.orders_per_day == 0.06

    async def test_monthly_loss_label(self, make_source, make_order, make_payment, now):
        source = make_source(
            orders=[make_order("o1", created_at="2025-03-02T10:00:00", total_price=100)],
            payments=[make_payment("p1", 150, payment_date="2025-03-03T10:00:00")],
        )

        envelope = await ReportService(source).generate_monthly_balance_report(now)

        assert envelope.data.profit.margin_percentage == -50.0
        assert envelope.data.profit.margin_quality == MarginQuality.LOSS

    async def test_monthly_empty_month(self, empty_source, now):
        """Test no revenue gives margin 0 and the lowest non-loss label"""
        envelope = await ReportService(empty_source).generate_monthly_balance_report(now, date(2024, 2, 10))
        report = envelope.data

        assert report.month == "fevereiro"
        assert report.year == 2024
        assert report.profit.margin_percentage == 0.0
        assert report.profit.margin_quality == MarginQuality.LOW
        assert report.inventory.turnover == 0.0

    async def test_monthly_to_dict_renders_label(self, monthly_source, now):
        envelope = await ReportService(monthly_source).generate_monthly_balance_report(now)

        payload = envelope.to_dict()

        assert payload["error"] is None
        assert payload["data"]["profit"]["margin_quality"] == "Excelente"
        assert payload["data"]["customers"]["new"] == 2


class TestAllReports:
    """Tests for generating the three reports together"""

    async def test_generate_all(self, daily_source, now):
        reports = await ReportService(daily_source).generate_all_reports(now, date(2025, 3, 19))

        assert set(reports) == {ReportType.DAILY, ReportType.WEEKLY, ReportType.MONTHLY}
        assert reports[ReportType.DAILY].data.total_receipts == 1000.0
        assert reports[ReportType.WEEKLY].data.week_start == "2025-03-17"
        assert reports[ReportType.MONTHLY].data.month == "março"

    async def test_generate_all_idempotent(self, daily_source, now):
        service = ReportService(daily_source)

        first = await service.generate_all_reports(now)
        second = await service.generate_all_reports(now)

        assert {t: e.to_dict() for t, e in first.items()} == {t: e.to_dict() for t, e in second.items()}
