"""Tests for the export orchestration."""

import asyncio
import json

import pytest

from exporter.models import ExportOptions, ExportPhase, ExportProgress, OutputFormat
from exporter.service import ExportService, ProgressReporter
from splunk_integration.models import SearchJob, SearchJobState
from shared.exceptions import CancellationError, JobFailedError, ProtocolError


def make_options(**overrides):
    values = {
        "url": "https://splunk.example.com:8089",
        "token": "token",
        "query": "X",
        "batch_size": 2,
        "max_results": 0,
        "format": OutputFormat.JSONL,
    }
    values.update(overrides)
    return ExportOptions(**values)


class TestExportService:

    @pytest.mark.asyncio
    async def test_exports_in_batches_and_reports_progress(self, fake_client, make_events, tmp_path):
        client = fake_client(results=make_events(5))
        output = tmp_path / "out.jsonl"
        updates = []

        count = await ExportService(client, poll_interval=0).export(
            make_options(output_path=str(output)), progress=updates.append
        )

        assert count == 5
        assert client.created == [("X", "-1d", "now")]
        assert len(output.read_text(encoding="utf-8").splitlines()) == 5

        phases = [u.phase for u in updates]
        assert phases == [
            ExportPhase.CREATING_JOB,
            ExportPhase.WAITING_FOR_JOB,
            ExportPhase.FETCHING_RESULTS,
            ExportPhase.FETCHING_RESULTS,
            ExportPhase.FETCHING_RESULTS,
            ExportPhase.COMPLETE,
        ]
        fetching = [u for u in updates if u.phase == ExportPhase.FETCHING_RESULTS]
        assert [u.events_fetched for u in fetching] == [2, 4, 5]
        assert [u.current_batch for u in fetching] == [1, 2, 3]
        assert {u.total_batches for u in fetching} == {3}
        assert updates[1].job_progress == 1.0
        assert updates[-1].events_fetched == 5
        assert updates[-1].total_events == 5

    @pytest.mark.asyncio
    async def test_job_is_deleted_after_success(self, fake_client, make_events, tmp_path):
        client = fake_client(results=make_events(1))

        await ExportService(client, poll_interval=0).export(make_options(output_path=str(tmp_path / "o.jsonl")))

        assert client.deleted == [client.sid]

    @pytest.mark.asyncio
    async def test_failed_job_raises_and_deletes(self, fake_client):
        client = fake_client(statuses=[
            SearchJob(sid="sid", state=SearchJobState.FAILED, failure_reason="boom"),
        ])

        with pytest.raises(JobFailedError) as exc_info:
            await ExportService(client, poll_interval=0).export(make_options())

        assert exc_info.value.reason == "boom"
        assert client.deleted == [client.sid]
        assert client.result_calls == []

    @pytest.mark.asyncio
    async def test_no_delete_when_job_was_never_created(self, fake_client):
        client = fake_client()

        async def rejected(query, earliest_time, latest_time):
            raise ProtocolError("Unknown search command 'foo'.", status_code=400)

        client.create_search_job = rejected

        with pytest.raises(ProtocolError):
            await ExportService(client, poll_interval=0).export(make_options())

        assert client.deleted == []

    @pytest.mark.asyncio
    async def test_unbounded_cap_uses_job_result_count(self, fake_client, make_events, tmp_path):
        client = fake_client(results=make_events(7))

        count = await ExportService(client, poll_interval=0).export(
            make_options(max_results=0, batch_size=3, output_path=str(tmp_path / "o.jsonl"))
        )

        assert count == 7
        assert sum(c for _, c, _ in client.result_calls) == 7

    @pytest.mark.asyncio
    async def test_cap_reduces_fetch(self, fake_client, make_events, tmp_path):
        client = fake_client(results=make_events(7))

        count = await ExportService(client, poll_interval=0).export(
            make_options(max_results=4, batch_size=3, output_path=str(tmp_path / "o.jsonl"))
        )

        assert count == 4
        assert [(o, c) for o, c, _ in client.result_calls] == [(0, 3), (3, 1)]

    @pytest.mark.asyncio
    async def test_cap_never_exceeds_result_count(self, fake_client, make_events, tmp_path):
        client = fake_client(results=make_events(3))

        count = await ExportService(client, poll_interval=0).export(
            make_options(max_results=100, batch_size=10, output_path=str(tmp_path / "o.jsonl"))
        )

        assert count == 3
        assert client.result_calls == [(0, 3, None)]

    @pytest.mark.asyncio
    async def test_writes_to_stdout_without_output_path(self, fake_client, make_events, capsys):
        client = fake_client(results=make_events(2))

        count = await ExportService(client, poll_interval=0).export(make_options(format=OutputFormat.CSV))

        out = capsys.readouterr().out
        assert count == 2
        assert out.splitlines()[0] == "_time,host,level"
        assert len(out.splitlines()) == 3

    @pytest.mark.asyncio
    async def test_creates_parent_dirs_and_overwrites(self, fake_client, make_events, tmp_path):
        output = tmp_path / "nested" / "dir" / "export.json"
        output.parent.mkdir(parents=True)
        output.write_text("old content that is much longer than nothing", encoding="utf-8")
        client = fake_client(results=make_events(2))

        await ExportService(client, poll_interval=0).export(
            make_options(format=OutputFormat.JSON, output_path=str(output))
        )

        document = json.loads(output.read_text(encoding="utf-8"))
        assert document["meta"]["query"] == "X"
        assert document["meta"]["count"] == 2
        assert len(document["results"]) == 2

    @pytest.mark.asyncio
    async def test_passes_fields_to_fetch_and_formatter(self, fake_client, make_events, tmp_path):
        client = fake_client(results=make_events(1))
        output = tmp_path / "o.csv"

        await ExportService(client, poll_interval=0).export(
            make_options(format=OutputFormat.CSV, fields=("host", "_time"), output_path=str(output))
        )

        assert client.result_calls[0][2] == ("host", "_time")
        assert output.read_text(encoding="utf-8").splitlines()[0] == "host,_time"

    @pytest.mark.asyncio
    async def test_empty_job_writes_no_rows(self, fake_client, tmp_path):
        client = fake_client(results=[])
        output = tmp_path / "o.jsonl"

        count = await ExportService(client, poll_interval=0).export(make_options(output_path=str(output)))

        assert count == 0
        assert output.read_text(encoding="utf-8") == ""
        assert client.result_calls == []
        assert client.deleted == [client.sid]

    @pytest.mark.asyncio
    async def test_cancellation_leaves_partial_output_and_deletes_job(self, fake_client, make_events, tmp_path):
        client = fake_client(results=make_events(6))
        output = tmp_path / "o.jsonl"
        cancel_event = asyncio.Event()

        def cancel_after_first_batch(progress):
            if progress.phase == ExportPhase.FETCHING_RESULTS:
                cancel_event.set()

        with pytest.raises(CancellationError):
            await ExportService(client, poll_interval=0).export(
                make_options(output_path=str(output)), progress=cancel_after_first_batch, cancel_event=cancel_event
            )

        assert len(output.read_text(encoding="utf-8").splitlines()) == 2
        assert client.deleted == [client.sid]

    @pytest.mark.asyncio
    async def test_cancelled_before_start_creates_no_job(self, fake_client):
        client = fake_client()
        cancel_event = asyncio.Event()
        cancel_event.set()

        with pytest.raises(CancellationError):
            await ExportService(client, poll_interval=0).export(make_options(), cancel_event=cancel_event)

        assert client.created == []
        assert client.deleted == []

    @pytest.mark.asyncio
    async def test_cancel_during_final_status_poll_is_not_lost(self, fake_client):
        # Job finishes with no results, so no page request follows the last poll
        client = fake_client(results=[])
        client.status_delay = 5
        cancel_event = asyncio.Event()
        asyncio.get_running_loop().call_later(0.05, cancel_event.set)

        with pytest.raises(CancellationError):
            await asyncio.wait_for(
                ExportService(client, poll_interval=0).export(make_options(), cancel_event=cancel_event), timeout=2
            )

        assert client.deleted == [client.sid]

    @pytest.mark.asyncio
    async def test_cancel_after_empty_job_finishes_is_reported(self, fake_client):
        client = fake_client(results=[])
        cancel_event = asyncio.Event()

        def cancel_when_done(progress):
            if progress.phase == ExportPhase.WAITING_FOR_JOB and progress.job_progress == 1.0:
                cancel_event.set()

        with pytest.raises(CancellationError):
            await ExportService(client, poll_interval=0).export(
                make_options(), progress=cancel_when_done, cancel_event=cancel_event
            )

        assert client.result_calls == []
        assert client.deleted == [client.sid]

    @pytest.mark.asyncio
    async def test_task_cancellation_still_deletes_job(self, fake_client):
        running = SearchJob(sid="sid", state=SearchJobState.RUNNING, done_progress=0.1)
        client = fake_client(statuses=[running])
        service = ExportService(client, poll_interval=30)

        task = asyncio.ensure_future(service.export(make_options()))
        while client.status_calls == 0:
            await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert client.deleted == [client.sid]

    @pytest.mark.asyncio
    async def test_delete_failure_does_not_mask_result(self, fake_client, make_events, tmp_path):
        client = fake_client(results=make_events(2))
        client.delete_error = RuntimeError("delete exploded")

        count = await ExportService(client, poll_interval=0).export(make_options(output_path=str(tmp_path / "o.jsonl")))

        assert count == 2

    @pytest.mark.asyncio
    async def test_delete_failure_does_not_mask_original_error(self, fake_client):
        client = fake_client(statuses=[SearchJob(sid="sid", state=SearchJobState.FAILED, failure_reason="boom")])
        client.delete_error = RuntimeError("delete exploded")

        with pytest.raises(JobFailedError, match="boom"):
            await ExportService(client, poll_interval=0).export(make_options())

    @pytest.mark.asyncio
    async def test_observer_errors_do_not_break_export(self, fake_client, make_events, tmp_path):
        client = fake_client(results=make_events(3))

        def broken_observer(progress):
            raise ValueError("observer bug")

        count = await ExportService(client, poll_interval=0).export(
            make_options(output_path=str(tmp_path / "o.jsonl")), progress=broken_observer
        )

        assert count == 3


class TestProgressReporter:

    def test_without_callback_is_noop(self):
        ProgressReporter().report(ExportProgress(phase=ExportPhase.COMPLETE))
