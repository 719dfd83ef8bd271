"""
Unit Tests - Report Envelope & Isolated Fetches
"""
import asyncio
from dataclasses import dataclass, field
from datetime import date
from typing import List

from app.analytics.envelope import (
    ReportEnvelope,
    assemble,
    fetch_all,
    fetch_errors,
    join_errors,
    to_dict,
)
from app.models.enums import MarginQuality


async def rows(*values):
    await asyncio.sleep(0)
    return list(values)


async def broken(message):
    await asyncio.sleep(0)
    raise RuntimeError(message)


class TestFetchAll:
    """Tests for concurrent isolated fetches"""

    async def test_failure_does_not_abort_siblings(self):
        results = await fetch_all({
            "orders": rows({"id": 1}, {"id": 2}),
            "sales": broken("timeout"),
            "clients": rows(),
        })

        assert results["orders"].ok
        assert len(results["orders"].data) == 2
        assert not results["sales"].ok
        assert results["sales"].data == []
        assert results["sales"].error == "sales: timeout"
        assert fetch_errors(results) == "sales: timeout"

    async def test_none_result_becomes_empty(self):
        async def nothing():
            return None

        results = await fetch_all({"products": nothing()})

        assert results["products"].data == []
        assert fetch_errors(results) is None

    def test_join_errors(self):
        assert join_errors([None, "a: x", "", "b: y"]) == "a: x; b: y"
        assert join_errors([None, ""]) is None


class TestAssemble:
    """Tests for the aggregation boundary"""

    def test_build_failure_returns_fallback(self):
        def build():
            raise ZeroDivisionError("division by zero")

        envelope = assemble("weekly_report", build, list, "orders: slow")

        assert envelope.data == []
        assert envelope.error == "orders: slow; weekly_report: division by zero"

    def test_success_keeps_fetch_error(self):
        envelope = assemble("daily_report", lambda: {"total": 1}, dict, None)

        assert envelope.data == {"total": 1}
        assert envelope.error is None


@dataclass
class Inner:
    label: MarginQuality
    day: date


@dataclass
class Outer:
    name: str
    rows: List[Inner] = field(default_factory=list)


class TestToDict:
    """Tests for JSON-ready conversion"""

    def test_nested_dataclasses(self):
        value = Outer(name="x", rows=[Inner(label=MarginQuality.GOOD, day=date(2025, 3, 1))])

        assert to_dict(value) == {"name": "x", "rows": [{"label": "Boa", "day": "2025-03-01"}]}

    def test_envelope_to_dict(self):
        envelope = ReportEnvelope(data=[Inner(label=MarginQuality.LOSS, day=date(2025, 1, 1))], error="e")

        assert envelope.to_dict() == {"data": [{"label": "Prejuízo", "day": "2025-01-01"}], "error": "e"}
