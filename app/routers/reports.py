"""
Reports Endpoints

The three standard reports (daily cash, weekly service orders, monthly
balance), all three at once, and the history of scheduled runs.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.analytics.periods import parse_date, shop_now
from app.analytics.report_service import ReportService
from app.models.analytics_models import (
    AllReportsResponse,
    ReportEnvelopeModel,
    ReportHistoryEntry,
    ReportHistoryResponse,
)
from app.models.enums import ReportType
from app.services.data_source import require_data_source
from app.services.report_history import get_report_history

router = APIRouter()


def get_report_service(data_source=Depends(require_data_source)) -> ReportService:
    return ReportService(data_source)


def parse_report_date(value: Optional[str]) -> Optional[date]:
    """YYYY-MM-DD or None (today); HTTP 400 when malformed."""
    if not value:
        return None
    try:
        return parse_date(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid date: {e}")


@router.get("/daily-cash", response_model=ReportEnvelopeModel)
async def get_daily_cash_report(
    date: Optional[str] = Query(None, description="Report date (YYYY-MM-DD), default: today"),
    service: ReportService = Depends(get_report_service)
):
    """
    Daily cash report

    - Receipts from service orders and sales
    - Payment method breakdown (percentages sum to 100)
    - Top 5 services by revenue
    - Opening/closing balance from financial movements
    """
    envelope = await service.generate_daily_cash_report(now=shop_now(), day=parse_report_date(date))
    return envelope.to_dict()


@router.get("/weekly-orders", response_model=ReportEnvelopeModel)
async def get_weekly_orders_report(
    date: Optional[str] = Query(None, description="Any day in the week (YYYY-MM-DD), default: today"),
    service: ReportService = Depends(get_report_service)
):
    """Service order summary for the Monday-Sunday week containing the date"""
    envelope = await service.generate_weekly_service_orders_report(now=shop_now(), day=parse_report_date(date))
    return envelope.to_dict()


@router.get("/monthly-balance", response_model=ReportEnvelopeModel)
async def get_monthly_balance_report(
    date: Optional[str] = Query(None, description="Any day in the month (YYYY-MM-DD), default: today"),
    service: ReportService = Depends(get_report_service)
):
    """
    Monthly balance

    - Revenue, expenses (purchases vs operational), profit and margin label
    - Customer retention, inventory value and turnover, KPIs
    """
    envelope = await service.generate_monthly_balance_report(now=shop_now(), day=parse_report_date(date))
    return envelope.to_dict()


@router.get("/all", response_model=AllReportsResponse)
async def get_all_reports(
    date: Optional[str] = Query(None, description="Reference date (YYYY-MM-DD), default: today"),
    service: ReportService = Depends(get_report_service)
):
    """Daily, weekly and monthly reports for the same date, generated concurrently"""
    now = shop_now()
    day = parse_report_date(date) or now.date()
    reports = await service.generate_all_reports(now=now, day=day)

    return AllReportsResponse(
        report_date=day,
        daily=ReportEnvelopeModel(**reports[ReportType.DAILY].to_dict()),
        weekly=ReportEnvelopeModel(**reports[ReportType.WEEKLY].to_dict()),
        monthly=ReportEnvelopeModel(**reports[ReportType.MONTHLY].to_dict())
    )


@router.get("/history/{report_type}", response_model=ReportHistoryResponse)
async def get_reports_history(
    report_type: ReportType,
    limit: int = Query(10, description="Max entries, newest first", ge=1, le=100)
):
    """Reports produced by the scheduled daily generation"""
    entries = get_report_history().latest(report_type, limit)

    return ReportHistoryResponse(
        report_type=report_type,
        count=len(entries),
        reports=[
            ReportHistoryEntry(
                report_type=entry.report_type,
                report_date=entry.report_date,
                generated_at=entry.generated_at,
                **entry.envelope.to_dict()
            )
            for entry in entries
        ]
    )
