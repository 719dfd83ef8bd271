"""
Report Envelope & Isolated Fetches

Every assembler returns {data, error}. Sub-fetches run concurrently, each
wrapped so that its failure becomes an empty result plus an error string
instead of aborting its siblings.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Generic, Iterable, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class FetchResult:
    """Outcome of one sub-fetch"""
    source: str
    data: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ReportEnvelope(Generic[T]):
    """{data, error} wrapper returned by every assembler"""
    data: T
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"data": to_dict(self.data), "error": self.error}


async def isolated_fetch(source: str, fetch: Awaitable[Any]) -> FetchResult:
    """Await one fetch; any exception becomes an empty result with an error."""
    try:
        rows = await fetch
        return FetchResult(source=source, data=list(rows or []))
    except Exception as e:
        logger.warning(f"[Fetch] {source} failed: {e}")
        return FetchResult(source=source, error=f"{source}: {e}")


async def fetch_all(fetches: Dict[str, Awaitable[Any]]) -> Dict[str, FetchResult]:
    """
    Run all fetches concurrently and join before returning.

    Never raises for a failing fetch; cancellation still propagates.
    """
    sources = list(fetches.keys())
    results = await asyncio.gather(
        *(isolated_fetch(source, fetches[source]) for source in sources)
    )
    return dict(zip(sources, results))


def join_errors(errors: Iterable[Optional[str]]) -> Optional[str]:
    """Combine non-empty error strings; None when there are none."""
    present = [e for e in errors if e]
    return "; ".join(present) if present else None


def fetch_errors(results: Dict[str, FetchResult]) -> Optional[str]:
    return join_errors(r.error for r in results.values())


def assemble(
    report: str,
    build: Callable[[], T],
    fallback: Callable[[], T],
    error: Optional[str] = None,
) -> ReportEnvelope[T]:
    """
    Run the aggregation step of an assembler.

    An unexpected failure yields the zero-filled fallback shape plus an error
    string; it never propagates to the caller.
    """
    try:
        data = build()
    except Exception as e:
        logger.exception(f"[Reports] {report} aggregation failed")
        return ReportEnvelope(data=fallback(), error=join_errors([error, f"{report}: {e}"]))

    logger.debug(f"[Reports] {report} assembled" + (f" with errors: {error}" if error else ""))
    return ReportEnvelope(data=data, error=error)


def to_dict(obj: Any) -> Any:
    """Convert dataclasses (recursively) to JSON-ready structures."""
    if hasattr(obj, '__dataclass_fields__'):
        result = {}
        for field_name in obj.__dataclass_fields__:
            result[field_name] = to_dict(getattr(obj, field_name))
        return result
    elif isinstance(obj, list):
        return [to_dict(item) for item in obj]
    elif isinstance(obj, dict):
        return {k: to_dict(v) for k, v in obj.items()}
    elif isinstance(obj, Enum):
        return obj.value
    elif isinstance(obj, (datetime, date)):
        return obj.isoformat()
    return obj
