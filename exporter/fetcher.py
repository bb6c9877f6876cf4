"""Paged retrieval of search results."""
import asyncio
from typing import AsyncIterator, Callable, List, Optional, Sequence

import structlog

from splunk_integration.client import SplunkSearchClient
from splunk_integration.models import SplunkEvent
from shared.utils import run_cancellable

logger = structlog.get_logger()

# (events fetched so far, batch number)
BatchCallback = Callable[[int, int], None]

async def fetch_batches(
    client: SplunkSearchClient,
    sid: str,
    batch_size: int,
    max_events: int,
    fields: Optional[Sequence[str]] = None,
    on_batch: Optional[BatchCallback] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> AsyncIterator[List[SplunkEvent]]:
    """Yield pages of results until ``max_events`` are fetched.

    An empty page ends the sequence early: the job produced fewer rows than it
    reported, which is not treated as an error.
    """
    offset = 0
    fetched = 0
    batch_number = 0

    while fetched < max_events:
        count = min(batch_size, max_events - fetched)
        batch = await run_cancellable(cancel_event, "fetching results", client.get_results, sid, offset, count, fields)
        if not batch:
            logger.info("Result set ended early", sid=sid, fetched=fetched, expected=max_events)
            return

        batch_number += 1
        fetched += len(batch)
        offset += len(batch)
        logger.debug("Fetched batch", sid=sid, batch=batch_number, size=len(batch), fetched=fetched)

        if on_batch is not None:
            on_batch(fetched, batch_number)

        yield batch
