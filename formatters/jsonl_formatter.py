"""JSON Lines formatter."""
import json
from typing import Optional, Sequence, TextIO

from exporter.models import ExportMetadata
from formatters.base import EventBatches, EventFormatter, filter_fields

class JsonlFormatter(EventFormatter):
    """One compact JSON object per line, no wrapper or metadata.

    Streams without buffering, so it suits unbounded exports.
    """

    async def write(
        self,
        writer: TextIO,
        batches: EventBatches,
        fields: Optional[Sequence[str]],
        metadata: ExportMetadata,
    ) -> int:
        count = 0
        async for batch in batches:
            for event in batch:
                writer.write(json.dumps(filter_fields(event, fields), ensure_ascii=False, separators=(",", ":")))
                writer.write("\n")
                count += 1
        return count
