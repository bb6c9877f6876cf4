"""Pytest configuration and shared fixtures."""

import asyncio
from typing import Callable, List, Optional, Sequence

import httpx
import pytest

from splunk_integration.client import SplunkSearchClient
from splunk_integration.models import SearchJob, SearchJobState, SplunkEvent
from shared.logger import setup_logging

BASE_URL = "https://splunk.example.com:8089"
TOKEN = "test-token-123"
SID = "1234567890.123"


class FakeSplunkClient:
    """In-memory stand-in for SplunkSearchClient that records every call."""

    def __init__(
        self,
        results: Optional[List[SplunkEvent]] = None,
        statuses: Optional[List[SearchJob]] = None,
        sid: str = SID,
    ):
        self.sid = sid
        self.results = list(results or [])
        self.statuses = statuses or [
            SearchJob(
                sid=sid,
                state=SearchJobState.DONE,
                result_count=len(self.results),
                event_count=len(self.results),
                done_progress=1.0,
            )
        ]
        self.created = []
        self.status_calls = 0
        self.result_calls = []
        self.deleted = []
        self.delete_error: Optional[BaseException] = None
        self.on_results: Optional[Callable[[int], None]] = None
        self.status_delay = 0.0
        self.results_delay = 0.0

    async def create_search_job(self, query: str, earliest_time: str, latest_time: str) -> str:
        self.created.append((query, earliest_time, latest_time))
        return self.sid

    async def get_job_status(self, sid: str) -> SearchJob:
        if self.status_delay:
            await asyncio.sleep(self.status_delay)
        job = self.statuses[min(self.status_calls, len(self.statuses) - 1)]
        self.status_calls += 1
        return job

    async def get_results(
        self, sid: str, offset: int, count: int, fields: Optional[Sequence[str]] = None
    ) -> List[SplunkEvent]:
        self.result_calls.append((offset, count, tuple(fields) if fields else None))
        if self.on_results is not None:
            self.on_results(offset)
        if self.results_delay:
            await asyncio.sleep(self.results_delay)
        return self.results[offset:offset + count]

    async def delete_job(self, sid: str) -> None:
        self.deleted.append(sid)
        if self.delete_error is not None:
            raise self.delete_error


def build_events(count: int) -> List[SplunkEvent]:
    return [
        SplunkEvent(
            _time=f"2024-01-17T10:00:{i:02d}Z",
            host=f"web{i:02d}",
            level="INFO" if i % 2 else "ERROR",
        )
        for i in range(count)
    ]


@pytest.fixture(autouse=True)
def stderr_logging():
    """Route structlog to the current stderr so exported data on stdout stays clean."""
    setup_logging("WARNING")


@pytest.fixture(autouse=True)
def isolated_home(monkeypatch, tmp_path):
    """Point ~ at a temporary directory so no real config file is read."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    return home


@pytest.fixture
def make_events():
    """Factory for simple, distinct events."""
    return build_events


@pytest.fixture
def fake_client():
    """Factory for FakeSplunkClient instances."""
    return FakeSplunkClient


@pytest.fixture
def make_client():
    """Factory for a SplunkSearchClient backed by an httpx.MockTransport handler."""

    def _make(handler, base_url: str = BASE_URL, token: str = TOKEN) -> SplunkSearchClient:
        return SplunkSearchClient(base_url, token, transport=httpx.MockTransport(handler))

    return _make


@pytest.fixture
def running_job():
    return SearchJob(sid=SID, state=SearchJobState.RUNNING, done_progress=0.4)


@pytest.fixture
def done_job():
    return SearchJob(sid=SID, state=SearchJobState.DONE, done_progress=1.0, result_count=5, event_count=5)
