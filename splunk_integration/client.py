"""Splunk REST search API client."""
import json
from typing import Any, Dict, List, Optional, Sequence

import httpx
import structlog

from splunk_integration.config import SplunkConfig
from splunk_integration.models import SearchJob, SearchJobState, SplunkEvent
from shared.exceptions import (
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    ProtocolError,
    SplunkConnectionError,
)

logger = structlog.get_logger()

JOBS_PATH = "services/search/jobs"

def build_headers(token: str) -> Dict[str, str]:
    """Request headers for the Splunk management API.

    Splunk expects its own "Splunk" auth scheme here, not "Bearer".
    """
    return {
        "Authorization": f"Splunk {token}",
        "Accept": "application/json",
    }

def normalize_search(query: str) -> str:
    """Prefix raw searches with the search command; generating searches ("| ...") pass through."""
    search = query.lstrip()
    if search.lower().startswith("search ") or search.startswith("|"):
        return search
    return f"search {search}"

class SplunkSearchClient:
    """Client for the search jobs endpoints of the Splunk REST API."""

    def __init__(
        self,
        base_url: str,
        token: str,
        verify: bool = True,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/") + "/"
        self.headers = build_headers(token)
        if not verify:
            logger.warning("SSL verification disabled - accepting self-signed certificates", base_url=self.base_url)
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            verify=verify,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(
        cls,
        config: SplunkConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "SplunkSearchClient":
        return cls(
            config.normalized_url(),
            config.token or "",
            verify=not config.insecure,
            timeout=config.timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "SplunkSearchClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def create_search_job(self, query: str, earliest_time: str, latest_time: str) -> str:
        """Create a search job and return its sid."""
        form = {
            "search": normalize_search(query),
            "earliest_time": earliest_time,
            "latest_time": latest_time,
            "output_mode": "json",
        }
        response = await self._request("POST", JOBS_PATH, "create search job", data=form)
        payload = self._parse_json(response, "create search job")

        # Response format: { "sid": "1234567890.123" }
        sid = payload.get("sid") if isinstance(payload, dict) else None
        if not sid:
            raise ProtocolError(
                f"Unexpected response format when creating search job: {response.text}",
                status_code=response.status_code,
            )
        logger.info("Created Splunk job", sid=sid, query=form["search"][:100])
        return str(sid)

    async def get_job_status(self, sid: str) -> SearchJob:
        """Fetch the dispatch state and counters of a job."""
        response = await self._request(
            "GET", f"{JOBS_PATH}/{sid}", "get job status", params={"output_mode": "json"}
        )
        return parse_job_status(self._parse_json(response, "get job status"), sid)

    async def get_results(
        self,
        sid: str,
        offset: int,
        count: int,
        fields: Optional[Sequence[str]] = None,
    ) -> List[SplunkEvent]:
        """Fetch one page of results from a finished job."""
        params = [("output_mode", "json"), ("offset", str(offset)), ("count", str(count))]
        if fields:
            params.extend(("f", field) for field in fields)

        response = await self._request("GET", f"{JOBS_PATH}/{sid}/results", "get results", params=params)
        # Keep numbers as their literal text
        payload = self._parse_json(response, "get results", parse_int=str, parse_float=str)
        results = payload.get("results") if isinstance(payload, dict) else None
        if not results:
            return []
        return [SplunkEvent.from_json(result) for result in results if isinstance(result, dict)]

    async def delete_job(self, sid: str) -> None:
        """Delete a job. Failures are logged and never raised."""
        try:
            response = await self._http.delete(f"{JOBS_PATH}/{sid}")
        except httpx.HTTPError as e:
            logger.warning("Failed to delete Splunk job", sid=sid, error=str(e))
            return

        if response.is_success:
            logger.info("Deleted Splunk job", sid=sid)
        else:
            logger.warning("Failed to delete Splunk job", sid=sid, status_code=response.status_code)

    async def _request(self, method: str, url: str, operation: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.TransportError as e:
            logger.error("Splunk request failed", operation=operation, error=str(e), error_type=type(e).__name__)
            raise SplunkConnectionError(f"Could not reach Splunk during {operation}: {e}") from e

        ensure_success(response, operation)
        return response

    @staticmethod
    def _parse_json(response: httpx.Response, operation: str, **kwargs: Any) -> Any:
        try:
            return json.loads(response.text, **kwargs)
        except ValueError as e:
            raise ProtocolError(
                f"Invalid JSON during {operation}: {response.text[:2000]}",
                status_code=response.status_code,
            ) from e

def ensure_success(response: httpx.Response, operation: str) -> None:
    """Raise the typed error matching a non-success response."""
    if response.is_success:
        return

    status = response.status_code
    body = response.text
    logger.debug("Splunk returned an error", operation=operation, status_code=status, body=body[:2000])

    if status == 401:
        raise AuthenticationError("Authentication failed. Check your Splunk token.")
    if status == 403:
        raise AuthorizationError("Permission denied. Token may lack required capabilities.")
    if status == 404:
        raise NotFoundError(f"Resource not found during {operation}.")
    if status == 400:
        raise ProtocolError(extract_splunk_error(body) or f"Invalid request: {body}", status_code=status)
    raise ProtocolError(f"HTTP {status} during {operation}: {body}", status_code=status)

def extract_splunk_error(body: str) -> Optional[str]:
    """Return the first message text of a Splunk error body, if it has one."""
    try:
        payload = json.loads(body)
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    for message in payload.get("messages") or []:
        if isinstance(message, dict) and message.get("text"):
            return message["text"]
    return None

def parse_job_status(payload: Any, sid: str) -> SearchJob:
    """Parse a job status payload: { "entry": [{ "content": {...} }] }.

    Raises:
        NotFoundError: when the payload has no entries.
        ProtocolError: when the entry or its counters have the wrong shape.
    """
    entries = payload.get("entry") if isinstance(payload, dict) else None
    if not entries:
        raise NotFoundError(f"Job {sid} not found")
    if not isinstance(entries, list) or not isinstance(entries[0], dict):
        raise ProtocolError(f"Unexpected job status format for {sid}: {str(entries)[:2000]}")

    content = entries[0].get("content") or {}
    if not isinstance(content, dict):
        raise ProtocolError(f"Unexpected job status content for {sid}: {str(content)[:2000]}")
    try:
        event_count = int(content.get("eventCount") or 0)
        result_count = int(content.get("resultCount") or 0)
        done_progress = float(content.get("doneProgress") or 0.0)
    except (TypeError, ValueError) as e:
        raise ProtocolError(f"Unexpected job status counters for {sid}: {e}") from e

    return SearchJob(
        sid=sid,
        state=SearchJobState.parse(content.get("dispatchState")),
        event_count=event_count,
        result_count=result_count,
        done_progress=done_progress,
        failure_reason=_first_error_message(content.get("messages")),
    )

def _first_error_message(messages: Any) -> Optional[str]:
    if not isinstance(messages, list):
        return None
    for message in messages:
        if not isinstance(message, dict):
            continue
        if str(message.get("type", "")).upper() == "ERROR" and message.get("text"):
            return str(message["text"])
    return None
