"""Splunk integration models."""
import json
from collections.abc import MutableMapping
from enum import Enum
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

from pydantic import BaseModel

class SearchJobState(str, Enum):
    """Dispatch states reported by the search jobs endpoint."""
    QUEUED = "QUEUED"
    PARSING = "PARSING"
    RUNNING = "RUNNING"
    FINALIZING = "FINALIZING"
    DONE = "DONE"
    FAILED = "FAILED"
    PAUSED = "PAUSED"

    @classmethod
    def parse(cls, value: Optional[str]) -> "SearchJobState":
        """Parse a dispatchState value; unknown states are treated as still running."""
        if not value:
            return cls.RUNNING
        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.RUNNING

    @property
    def is_complete(self) -> bool:
        return self in (SearchJobState.DONE, SearchJobState.FAILED)

class SearchJob(BaseModel):
    """Splunk search job model."""
    sid: str
    state: SearchJobState = SearchJobState.RUNNING
    event_count: int = 0
    result_count: int = 0
    done_progress: float = 0.0
    failure_reason: Optional[str] = None

    @property
    def is_done(self) -> bool:
        return self.state.is_complete

class SplunkEvent(MutableMapping):
    """A single search result with dynamic, case-insensitive field names.

    Field order follows insertion order and the first spelling of a field name
    is kept for output.
    """

    def __init__(self, data: Optional[Mapping[str, Optional[str]]] = None, **fields: Optional[str]):
        self._store: Dict[str, Tuple[str, Optional[str]]] = {}
        if data is not None:
            self.update(data)
        if fields:
            self.update(fields)

    def __getitem__(self, key: str) -> Optional[str]:
        return self._store[key.lower()][1]

    def __setitem__(self, key: str, value: Optional[str]) -> None:
        folded = key.lower()
        existing = self._store.get(folded)
        self._store[folded] = (existing[0] if existing else key, value)

    def __delitem__(self, key: str) -> None:
        del self._store[key.lower()]

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self._store.values())

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._store

    def __repr__(self) -> str:
        return f"SplunkEvent({dict(self.items())!r})"

    # Common Splunk fields
    @property
    def time(self) -> Optional[str]:
        return self.get("_time")

    @property
    def raw(self) -> Optional[str]:
        return self.get("_raw")

    @property
    def host(self) -> Optional[str]:
        return self.get("host")

    @property
    def source(self) -> Optional[str]:
        return self.get("source")

    @property
    def sourcetype(self) -> Optional[str]:
        return self.get("sourcetype")

    @property
    def index(self) -> Optional[str]:
        return self.get("index")

    @classmethod
    def from_json(cls, result: Mapping[str, Any]) -> "SplunkEvent":
        """Build an event from one object of a results payload."""
        event = cls()
        for name, value in result.items():
            event[name] = render_value(value)
        return event

def render_value(value: Any) -> Optional[str]:
    """Flatten a JSON result value into its text form.

    Multi-value fields are joined with ", ". Results are decoded with numbers
    kept as their literal text, so numeric values normally arrive as strings.
    """
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list):
        return ", ".join(render_value(v) or "" for v in value)
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value, separators=(",", ":"))
