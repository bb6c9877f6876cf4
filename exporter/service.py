"""Export orchestration: submit, wait, fetch, format, clean up."""
import asyncio
import sys
from contextlib import aclosing, contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterator, Optional, TextIO

import structlog

from exporter.fetcher import fetch_batches
from exporter.models import ExportMetadata, ExportOptions, ExportPhase, ExportProgress
from formatters.registry import get_formatter
from splunk_integration.client import SplunkSearchClient
from splunk_integration.models import SearchJob
from splunk_integration.waiter import DEFAULT_POLL_INTERVAL, JobWaiter
from shared.utils import count_batches, raise_if_cancelled, run_cancellable

logger = structlog.get_logger()

ProgressCallback = Callable[[ExportProgress], None]

class ProgressReporter:
    """Forwards progress to an observer; observer errors never reach the pipeline."""

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self.callback = callback

    def report(self, progress: ExportProgress) -> None:
        if self.callback is None:
            return
        try:
            self.callback(progress)
        except Exception as e:
            logger.warning("Progress observer failed", phase=progress.phase.value, error=str(e))

class ExportService:
    """Runs one export from search job creation to job cleanup."""

    def __init__(self, client: SplunkSearchClient, poll_interval: float = DEFAULT_POLL_INTERVAL):
        self.client = client
        self.waiter = JobWaiter(client, poll_interval=poll_interval)

    async def export(
        self,
        options: ExportOptions,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> int:
        """Export the results of ``options.query`` and return the number of events written.

        The search job is deleted afterwards whether the export succeeded,
        failed or was cancelled.
        """
        reporter = ProgressReporter(progress)
        sid: Optional[str] = None
        logger.info(
            "Starting export",
            query=options.query[:100],
            earliest_time=options.earliest_time,
            latest_time=options.latest_time,
            format=options.format.value,
            output=options.output_path or "<stdout>",
        )

        try:
            # Phase 1: create search job
            reporter.report(ExportProgress(phase=ExportPhase.CREATING_JOB))
            sid = await run_cancellable(
                cancel_event,
                "creating search job",
                self.client.create_search_job,
                options.query,
                options.earliest_time,
                options.latest_time,
            )

            # Phase 2: wait for job completion
            def on_job_progress(job: SearchJob) -> None:
                reporter.report(ExportProgress(phase=ExportPhase.WAITING_FOR_JOB, job_progress=job.done_progress))

            job = await self.waiter.wait(sid, on_progress=on_job_progress, cancel_event=cancel_event)
            raise_if_cancelled(cancel_event, "waiting for search job")

            max_to_fetch = job.result_count if options.max_results == 0 else min(options.max_results, job.result_count)
            total_batches = count_batches(max_to_fetch, options.batch_size)
            logger.info(
                "Fetching results",
                sid=sid,
                result_count=job.result_count,
                max_to_fetch=max_to_fetch,
                total_batches=total_batches,
            )

            # Phase 3: fetch and format results
            def on_batch(fetched: int, batch_number: int) -> None:
                reporter.report(ExportProgress(
                    phase=ExportPhase.FETCHING_RESULTS,
                    events_fetched=fetched,
                    total_events=max_to_fetch,
                    current_batch=batch_number,
                    total_batches=total_batches,
                ))

            formatter = get_formatter(options.format)
            metadata = ExportMetadata(
                query=options.query,
                from_=options.earliest_time,
                to=options.latest_time,
                count=max_to_fetch,
                exported_at=datetime.now(timezone.utc),
            )

            with open_output(options.output_path) as writer:
                batches = fetch_batches(
                    self.client,
                    sid,
                    options.batch_size,
                    max_to_fetch,
                    fields=options.fields,
                    on_batch=on_batch,
                    cancel_event=cancel_event,
                )
                async with aclosing(batches):
                    count = await formatter.write(writer, batches, options.fields, metadata)

            # Phase 4: complete
            reporter.report(ExportProgress(
                phase=ExportPhase.COMPLETE,
                events_fetched=count,
                total_events=max_to_fetch,
            ))
            logger.info("Export complete", sid=sid, count=count)
            return count

        except asyncio.CancelledError:
            logger.warning("Export task cancelled", sid=sid)
            raise
        finally:
            if sid is not None:
                await self._cleanup(sid)

    async def _cleanup(self, sid: str) -> None:
        """Delete the job even when the caller has been cancelled."""
        try:
            await asyncio.shield(self.client.delete_job(sid))
        except Exception as e:
            logger.warning("Failed to clean up search job", sid=sid, error=str(e))

@contextmanager
def open_output(output_path: Optional[str]) -> Iterator[TextIO]:
    """Open the export destination: stdout (left open) or a new UTF-8 file.

    Parent directories are created and an existing file is overwritten.
    """
    if not output_path:
        try:
            yield sys.stdout
        finally:
            sys.stdout.flush()
        return

    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as handle:
        yield handle
