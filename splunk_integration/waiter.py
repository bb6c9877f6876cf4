"""Polling loop that waits for a search job to finish."""
import asyncio
from typing import Callable, Optional

import structlog

from splunk_integration.client import SplunkSearchClient
from splunk_integration.models import SearchJob, SearchJobState
from shared.exceptions import JobFailedError
from shared.utils import cancellable_sleep, raise_if_cancelled, run_cancellable

logger = structlog.get_logger()

DEFAULT_POLL_INTERVAL = 0.5

class JobWaiter:
    """Poll a job's status at a fixed interval until it is DONE or FAILED.

    Transport and HTTP errors from the client are not retried; only
    non-terminal dispatch states lead to another poll.
    """

    def __init__(self, client: SplunkSearchClient, poll_interval: float = DEFAULT_POLL_INTERVAL):
        self.client = client
        self.poll_interval = poll_interval

    async def wait(
        self,
        sid: str,
        on_progress: Optional[Callable[[SearchJob], None]] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> SearchJob:
        polls = 0
        while True:
            job = await run_cancellable(cancel_event, "waiting for search job", self.client.get_job_status, sid)
            polls += 1
            if on_progress is not None:
                on_progress(job)

            if job.state == SearchJobState.DONE:
                logger.info("Search job finished", sid=sid, result_count=job.result_count, polls=polls)
                return job
            if job.state == SearchJobState.FAILED:
                logger.warning("Search job failed", sid=sid, reason=job.failure_reason)
                raise JobFailedError(job.failure_reason)

            logger.debug("Search job still running", sid=sid, state=job.state.value, progress=job.done_progress)
            raise_if_cancelled(cancel_event, "waiting for search job")
            await cancellable_sleep(self.poll_interval, cancel_event)
