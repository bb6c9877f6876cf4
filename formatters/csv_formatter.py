"""CSV formatter."""
from typing import Dict, Iterable, List, Optional, Sequence, TextIO

import structlog

from exporter.models import ExportMetadata
from formatters.base import EventBatches, EventFormatter
from splunk_integration.models import SplunkEvent

logger = structlog.get_logger()

# Listed first in an auto-derived header, when present
COMMON_FIELDS = ("_time", "_raw", "host", "source", "sourcetype", "index")

_SPECIAL_CHARS = (",", '"', "\r", "\n")

class CsvFormatter(EventFormatter):
    """Streams events as CSV, one batch at a time.

    Without an explicit field list the header comes from the first non-empty
    batch; fields that only show up in later batches are not exported.
    """

    async def write(
        self,
        writer: TextIO,
        batches: EventBatches,
        fields: Optional[Sequence[str]],
        metadata: ExportMetadata,
    ) -> int:
        count = 0
        header: Optional[List[str]] = list(fields) if fields else None
        header_written = False

        async for batch in batches:
            if not batch:
                continue

            if not header_written:
                if header is None:
                    header = determine_fields(batch)
                write_row(writer, header)
                header_written = True

            for event in batch:
                write_row(writer, (event.get(field) for field in header))
                count += 1

        if not header_written and header is not None:
            write_row(writer, header)

        logger.debug("Wrote CSV export", query=metadata.query, rows=count)
        return count

def determine_fields(batch: Iterable[SplunkEvent]) -> List[str]:
    """Header for a batch: common Splunk fields first, the rest sorted case-insensitively."""
    seen: Dict[str, str] = {}
    for event in batch:
        for name in event:
            seen.setdefault(name.lower(), name)

    ordered = [name for name in COMMON_FIELDS if seen.pop(name, None) is not None]
    # Ordinal case-insensitive order: names are compared upper-cased, so "_" sorts after letters
    ordered.extend(sorted(seen.values(), key=str.upper))
    return ordered

def write_row(writer: TextIO, values: Iterable[Optional[str]]) -> None:
    writer.write(",".join(escape_field(value) for value in values))
    writer.write("\n")

def escape_field(value: Optional[str]) -> str:
    """Escape a CSV value (RFC 4180 quoting).

    Values containing a comma, double quote, CR or LF are quoted with inner
    quotes doubled. None and "" both become an empty field.
    """
    if not value:
        return ""
    if not any(char in value for char in _SPECIAL_CHARS):
        return value
    return '"' + value.replace('"', '""') + '"'
