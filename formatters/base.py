"""Shared pieces of the event formatters."""
from abc import ABC, abstractmethod
from typing import AsyncIterable, Dict, List, Optional, Sequence, TextIO

from exporter.models import ExportMetadata
from splunk_integration.models import SplunkEvent

EventBatches = AsyncIterable[List[SplunkEvent]]

class EventFormatter(ABC):
    """Writes a stream of event batches to a text sink."""

    @abstractmethod
    async def write(
        self,
        writer: TextIO,
        batches: EventBatches,
        fields: Optional[Sequence[str]],
        metadata: ExportMetadata,
    ) -> int:
        """Write all events and return how many were written."""

def filter_fields(event: SplunkEvent, fields: Optional[Sequence[str]]) -> Dict[str, Optional[str]]:
    """Restrict an event to ``fields`` (in that order); all fields when no list is given.

    Requested fields the event lacks are left out.
    """
    if not fields:
        return dict(event.items())
    return {field: event[field] for field in fields if field in event}
