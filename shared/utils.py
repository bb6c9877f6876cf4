"""Shared utility functions."""
import asyncio
import math
from datetime import datetime
from typing import Any, Awaitable, Callable, List, Optional, Tuple, TypeVar

from shared.exceptions import CancellationError

SPLUNK_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S"

T = TypeVar("T")

def resolve_time_range(
    days: Optional[int] = None,
    earliest: Optional[str] = None,
    latest: Optional[str] = None,
    default_earliest: str = "-1d",
    default_latest: str = "now",
) -> Tuple[str, str]:
    """Resolve CLI time options into Splunk earliest_time/latest_time values."""
    if days is not None:
        return f"-{days}d", "now"

    return (
        normalize_time_bound(earliest or default_earliest),
        normalize_time_bound(latest or default_latest),
    )

def normalize_time_bound(value: str) -> str:
    """Format absolute dates for Splunk; relative expressions like "-2h" pass through."""
    value = value.strip()
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return value
    return parsed.strftime(SPLUNK_TIME_FORMAT)

def parse_field_list(value: Optional[str]) -> Optional[List[str]]:
    """Split a comma-separated field list, dropping blanks."""
    if value is None or not value.strip():
        return None
    fields = [f.strip() for f in value.split(",") if f.strip()]
    return fields or None

def count_batches(total: int, batch_size: int) -> int:
    """Number of pages needed to fetch ``total`` results."""
    if total <= 0:
        return 0
    return math.ceil(total / batch_size)

def raise_if_cancelled(cancel_event: Optional[asyncio.Event], stage: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise CancellationError(f"Export cancelled while {stage}")

async def cancellable_sleep(seconds: float, cancel_event: Optional[asyncio.Event]) -> None:
    """Sleep for ``seconds``, returning early once ``cancel_event`` is set."""
    if cancel_event is None:
        await asyncio.sleep(seconds)
        return
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        pass

async def run_cancellable(
    cancel_event: Optional[asyncio.Event],
    stage: str,
    call: Callable[..., Awaitable[T]],
    *args: Any,
) -> T:
    """Await ``call(*args)``, abandoning it as soon as ``cancel_event`` is set.

    The in-flight request is cancelled and CancellationError raised, so a
    slow remote call never delays cancellation.
    """
    if cancel_event is None:
        return await call(*args)
    raise_if_cancelled(cancel_event, stage)

    request = asyncio.ensure_future(call(*args))
    cancelled = asyncio.ensure_future(cancel_event.wait())
    try:
        await asyncio.wait({request, cancelled}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        cancelled.cancel()
        if not request.done():
            request.cancel()

    if request.done() and not request.cancelled():
        return request.result()

    # Let the abandoned request unwind before reporting
    await asyncio.wait({request})
    raise CancellationError(f"Export cancelled while {stage}")
