"""
Shop Analytics Engine

Turns raw operational records into metrics and the standard reports.
"""

from .envelope import ReportEnvelope, FetchResult, fetch_all
from .periods import Granularity, PeriodWindow, build_windows
from .records import MetricRecord
from .analytics_service import AnalyticsService, BusinessMetrics
from .report_service import ReportService

__all__ = [
    "ReportEnvelope",
    "FetchResult",
    "fetch_all",
    "Granularity",
    "PeriodWindow",
    "build_windows",
    "MetricRecord",
    "AnalyticsService",
    "BusinessMetrics",
    "ReportService",
]
