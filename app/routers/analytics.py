"""
Analytics Endpoints

Business metrics snapshot, technician/service/customer performance and
period/revenue time series over the shop's operational data.

All endpoints return the {data, error} envelope; a present error means the
data is best-effort (some sub-source failed), not an HTTP failure.
"""

from datetime import datetime
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query

from app.analytics.analytics_service import AnalyticsService, DEFAULT_CUSTOMER_LIMIT
from app.analytics.periods import Granularity, end_of_day, parse_date, shop_now, start_of_day
from app.models.analytics_models import ReportEnvelopeModel
from app.services.data_source import require_data_source

router = APIRouter()


def get_analytics_service(data_source=Depends(require_data_source)) -> AnalyticsService:
    return AnalyticsService(data_source)


def parse_date_range(
    start: Optional[str],
    end: Optional[str]
) -> Tuple[Optional[datetime], Optional[datetime]]:
    """
    Parse optional YYYY-MM-DD bounds into an inclusive datetime window.

    Raises HTTP 400 on malformed dates or end before start.
    """
    try:
        start_dt = start_of_day(parse_date(start)) if start else None
        end_dt = end_of_day(parse_date(end)) if end else None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid date: {e}")

    if start_dt and end_dt and end_dt < start_dt:
        raise HTTPException(status_code=400, detail="end must not be before start")
    return start_dt, end_dt


@router.get("/business-metrics", response_model=ReportEnvelopeModel)
async def get_business_metrics(service: AnalyticsService = Depends(get_analytics_service)):
    """
    Business snapshot: customers, service orders, revenue, inventory

    Monthly growth compares this month's order revenue to last month's.
    """
    envelope = await service.get_business_metrics(now=shop_now())
    return envelope.to_dict()


@router.get("/technician-performance", response_model=ReportEnvelopeModel)
async def get_technician_performance(
    start: Optional[str] = Query(None, description="Start date (YYYY-MM-DD), default: first of month"),
    end: Optional[str] = Query(None, description="End date (YYYY-MM-DD), default: end of month"),
    technician_id: Optional[str] = Query(None, description="Filter to one technician"),
    service: AnalyticsService = Depends(get_analytics_service)
):
    """
    Technicians ranked by efficiency score

    - **efficiency_score**: 70% completion rate + 30% speed, 0-100
    """
    start_dt, end_dt = parse_date_range(start, end)
    envelope = await service.get_technician_performance(
        now=shop_now(), start=start_dt, end=end_dt, technician_id=technician_id
    )
    return envelope.to_dict()


@router.get("/period-analysis", response_model=ReportEnvelopeModel)
async def get_period_analysis(
    period: Granularity = Query(Granularity.MONTHLY, description="daily, weekly or monthly"),
    periods: int = Query(12, description="Number of periods", ge=1, le=366),
    service: AnalyticsService = Depends(get_analytics_service)
):
    """Order counts, completion and revenue per period, oldest first (zero-filled)"""
    envelope = await service.get_period_analysis(now=shop_now(), granularity=period, periods=periods)
    return envelope.to_dict()


@router.get("/service-analysis", response_model=ReportEnvelopeModel)
async def get_service_analysis(
    start: Optional[str] = Query(None, description="Start date (YYYY-MM-DD), default: first of month"),
    end: Optional[str] = Query(None, description="End date (YYYY-MM-DD), default: end of month"),
    service: AnalyticsService = Depends(get_analytics_service)
):
    """Services ranked by demand relative to the busiest one"""
    start_dt, end_dt = parse_date_range(start, end)
    envelope = await service.get_service_analysis(now=shop_now(), start=start_dt, end=end_dt)
    return envelope.to_dict()


@router.get("/revenue-analysis", response_model=ReportEnvelopeModel)
async def get_revenue_analysis(
    period: Granularity = Query(Granularity.DAILY, description="daily, weekly or monthly"),
    periods: int = Query(30, description="Number of periods", ge=1, le=366),
    service: AnalyticsService = Depends(get_analytics_service)
):
    """Completed service order revenue and sales revenue per period"""
    envelope = await service.get_revenue_analysis(now=shop_now(), granularity=period, periods=periods)
    return envelope.to_dict()


@router.get("/customer-analysis", response_model=ReportEnvelopeModel)
async def get_customer_analysis(
    limit: int = Query(DEFAULT_CUSTOMER_LIMIT, description="Max customers returned", ge=1, le=1000),
    customer_id: Optional[str] = Query(None, description="Single customer"),
    service: AnalyticsService = Depends(get_analytics_service)
):
    """
    Customers by total spent

    - **loyalty_score**: frequency (capped at 10 orders) minus recency decay
    - **customer_lifetime_value**: annualized run-rate estimate
    """
    envelope = await service.get_customer_analysis(now=shop_now(), limit=limit, customer_id=customer_id)
    return envelope.to_dict()
