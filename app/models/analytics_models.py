"""
Analytics Pydantic Models

Response schemas for the analytics and report endpoints:
- {data, error} envelope shared by every assembler
- Report history listing
- Service health
"""

from pydantic import BaseModel, Field
from typing import Any, Optional, List
from datetime import date, datetime

from app.models.enums import ReportType


# ============== Envelope ==============

class ReportEnvelopeModel(BaseModel):
    """Assembler output: data is always populated, error is best-effort info"""
    data: Any
    error: Optional[str] = Field(None, description="Sub-source failures, '; ' separated")


class AllReportsResponse(BaseModel):
    """Daily, weekly and monthly reports for one reference date"""
    report_date: date
    daily: ReportEnvelopeModel
    weekly: ReportEnvelopeModel
    monthly: ReportEnvelopeModel


# ============== History ==============

class ReportHistoryEntry(BaseModel):
    """One scheduled report run"""
    report_type: ReportType
    report_date: date
    generated_at: datetime
    data: Any
    error: Optional[str] = None


class ReportHistoryResponse(BaseModel):
    report_type: ReportType
    count: int
    reports: List[ReportHistoryEntry] = []


# ============== Health ==============

class HealthResponse(BaseModel):
    status: str = "healthy"
    data_source_configured: bool
    schedule_enabled: bool
    generation_hour: int
    shop_timezone: str
