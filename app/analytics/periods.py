"""
Calendar Periods

Day/week/month windows used for bucketing records in time.

Conventions:
- Windows are inclusive on both ends: [00:00:00.000000, 23:59:59.999999]
- Weeks always start on Monday and end on Sunday
- Timestamps are compared as naive local shop time (SHOP_TIMEZONE)
"""

import os
import re
from bisect import bisect_right
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from math import ceil
from typing import Any, Callable, List, Optional, Sequence, Tuple, TypeVar
from zoneinfo import ZoneInfo

SHOP_TIMEZONE = os.getenv("SHOP_TIMEZONE", "America/Sao_Paulo")

SECONDS_PER_DAY = 24 * 60 * 60

# fromisoformat before 3.11 only takes 3 or 6 fractional digits
FRACTION_RE = re.compile(r"\.(\d+)")

MONTH_ABBREVIATIONS = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]

MONTH_NAMES_PT = [
    "janeiro", "fevereiro", "março", "abril", "maio", "junho",
    "julho", "agosto", "setembro", "outubro", "novembro", "dezembro",
]

T = TypeVar("T")


class Granularity(str, Enum):
    """Period bucket size"""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass(frozen=True)
class PeriodWindow:
    """One calendar bucket, inclusive on both ends"""
    label: str
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


# ============== Parsing ==============

def parse_timestamp(value: Any, tz_name: Optional[str] = None) -> Optional[datetime]:
    """
    Parse a store timestamp into naive local time.

    Aware values are converted to the shop timezone first. Returns None for
    missing or unparseable values.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    else:
        try:
            text = str(value).strip().replace("Z", "+00:00")
            text = FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(ZoneInfo(tz_name or SHOP_TIMEZONE)).replace(tzinfo=None)
    return parsed


def to_store_timestamp(moment: datetime, tz_name: Optional[str] = None) -> str:
    """Naive local time -> ISO string with the shop's UTC offset."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=ZoneInfo(tz_name or SHOP_TIMEZONE))
    return moment.isoformat()


def shop_now(tz_name: Optional[str] = None) -> datetime:
    """Current wall-clock time as naive local shop time."""
    return datetime.now(ZoneInfo(tz_name or SHOP_TIMEZONE)).replace(tzinfo=None)


def parse_date(value: str) -> date:
    """Parse YYYY-MM-DD (raises ValueError)."""
    return date.fromisoformat(value)


# ============== Bounds ==============

def start_of_day(d: date) -> datetime:
    return datetime.combine(d, time.min)


def end_of_day(d: date) -> datetime:
    return datetime.combine(d, time.max)


def day_bounds(d: date) -> Tuple[datetime, datetime]:
    return start_of_day(d), end_of_day(d)


def week_bounds(d: date) -> Tuple[datetime, datetime]:
    """Monday 00:00 to Sunday 23:59:59.999999 of the week containing d."""
    monday = d - timedelta(days=d.weekday())
    sunday = monday + timedelta(days=6)
    return start_of_day(monday), end_of_day(sunday)


def first_of_month(d: date) -> date:
    return d.replace(day=1)


def shift_months(d: date, months: int) -> date:
    """First day of the month `months` away from d's month."""
    index = d.year * 12 + (d.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def month_bounds(d: date) -> Tuple[datetime, datetime]:
    first = first_of_month(d)
    last = shift_months(first, 1) - timedelta(days=1)
    return start_of_day(first), end_of_day(last)


def days_in_month(d: date) -> int:
    first = first_of_month(d)
    return (shift_months(first, 1) - first).days


def trailing_days_start(now: datetime, days: int) -> datetime:
    """Moment exactly `days` x 24h before now."""
    return now - timedelta(days=days)


# ============== Durations ==============

def elapsed_days_ceil(start: datetime, end: datetime) -> int:
    """
    Whole days between two moments, any partial day counting as a full one.

    Negative spans (end before start) are clamped to 0.
    """
    seconds = (end - start).total_seconds()
    if seconds <= 0:
        return 0
    return ceil(seconds / SECONDS_PER_DAY)


# ============== Windows ==============

def _window_for(granularity: Granularity, anchor: date) -> PeriodWindow:
    if granularity == Granularity.DAILY:
        start, end = day_bounds(anchor)
        return PeriodWindow(label=anchor.isoformat(), start=start, end=end)

    if granularity == Granularity.WEEKLY:
        start, end = week_bounds(anchor)
        return PeriodWindow(label=f"{start.date().isoformat()}/{end.date().isoformat()}", start=start, end=end)

    start, end = month_bounds(anchor)
    label = f"{MONTH_ABBREVIATIONS[anchor.month - 1]}/{anchor.year}"
    return PeriodWindow(label=label, start=start, end=end)


def build_windows(granularity: Granularity, count: int, now: datetime) -> List[PeriodWindow]:
    """
    Generate `count` consecutive windows, oldest first.

    The last window is the one containing `now`. Windows are contiguous and
    never overlap, so every moment in range falls in exactly one of them.
    """
    if count <= 0:
        return []

    today = now.date()
    windows = []
    for offset in range(count - 1, -1, -1):
        if granularity == Granularity.DAILY:
            anchor = today - timedelta(days=offset)
        elif granularity == Granularity.WEEKLY:
            anchor = today - timedelta(weeks=offset)
        else:
            anchor = shift_months(today, -offset)
        windows.append(_window_for(granularity, anchor))
    return windows


def horizon(windows: Sequence[PeriodWindow]) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Overall [start, end] covered by a window sequence."""
    if not windows:
        return None, None
    return windows[0].start, windows[-1].end


def assign_to_windows(
    items: Sequence[T],
    windows: Sequence[PeriodWindow],
    moment_of: Callable[[T], Optional[datetime]],
) -> List[List[T]]:
    """
    Place each item in the single window containing its moment.

    Items without a moment or outside every window are dropped.
    """
    buckets: List[List[T]] = [[] for _ in windows]
    starts = [w.start for w in windows]

    for item in items:
        moment = moment_of(item)
        if moment is None:
            continue
        index = bisect_right(starts, moment) - 1
        if index >= 0 and windows[index].contains(moment):
            buckets[index].append(item)

    return buckets


def month_name_pt(d: date) -> str:
    return MONTH_NAMES_PT[d.month - 1]
