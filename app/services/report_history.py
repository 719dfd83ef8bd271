"""
Report History

In-process log of scheduled report runs, newest kept, bounded per report
type. On-demand report requests never read from here.
"""

import logging
import os
from collections import deque
from dataclasses import dataclass
from datetime import date, datetime
from typing import Deque, Dict, List, Optional

from app.analytics.envelope import ReportEnvelope
from app.models.enums import ReportType

logger = logging.getLogger(__name__)

REPORT_HISTORY_SIZE = int(os.getenv("REPORT_HISTORY_SIZE", "30"))


@dataclass
class HistoryEntry:
    """One generated report"""
    report_type: ReportType
    report_date: date
    generated_at: datetime
    envelope: ReportEnvelope


class ReportHistory:
    """Bounded per-type history of generated reports"""

    def __init__(self, max_size: int = REPORT_HISTORY_SIZE):
        self.max_size = max(1, max_size)
        self._entries: Dict[ReportType, Deque[HistoryEntry]] = {
            report_type: deque(maxlen=self.max_size) for report_type in ReportType
        }

    def record(
        self,
        report_type: ReportType,
        report_date: date,
        generated_at: datetime,
        envelope: ReportEnvelope
    ) -> HistoryEntry:
        entry = HistoryEntry(
            report_type=report_type,
            report_date=report_date,
            generated_at=generated_at,
            envelope=envelope
        )
        self._entries[report_type].append(entry)
        if envelope.error:
            logger.warning(f"[History] {report_type.value} report for {report_date} stored with errors: {envelope.error}")
        return entry

    def record_all(
        self,
        reports: Dict[ReportType, ReportEnvelope],
        report_date: date,
        generated_at: datetime
    ) -> None:
        for report_type, envelope in reports.items():
            self.record(report_type, report_date, generated_at, envelope)

    def latest(self, report_type: ReportType, limit: Optional[int] = 10) -> List[HistoryEntry]:
        """Most recent entries first."""
        entries = list(reversed(self._entries[report_type]))
        return entries if limit is None else entries[:max(limit, 0)]

    def clear(self) -> None:
        for entries in self._entries.values():
            entries.clear()


# Singleton instance
_history: Optional[ReportHistory] = None


def get_report_history() -> ReportHistory:
    """Get or create the report history"""
    global _history
    if _history is None:
        _history = ReportHistory()
    return _history
