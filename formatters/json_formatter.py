"""JSON formatter."""
import json
from typing import Dict, List, Optional, Sequence, TextIO

import structlog

from exporter.models import ExportMetadata
from formatters.base import EventBatches, EventFormatter, filter_fields

logger = structlog.get_logger()

class JsonFormatter(EventFormatter):
    """Indented JSON document with a ``meta`` object and a ``results`` array.

    The metadata carries the record count, so every event is collected in
    memory before anything is written. Use JSONL for large exports.
    """

    async def write(
        self,
        writer: TextIO,
        batches: EventBatches,
        fields: Optional[Sequence[str]],
        metadata: ExportMetadata,
    ) -> int:
        results: List[Dict[str, Optional[str]]] = []
        async for batch in batches:
            results.extend(filter_fields(event, fields) for event in batch)

        meta = metadata.model_copy(update={"count": len(results)})
        document = {
            "meta": meta.model_dump(mode="json", by_alias=True),
            "results": results,
        }
        writer.write(json.dumps(document, indent=2, ensure_ascii=False))
        writer.write("\n")

        logger.debug("Wrote JSON export", query=metadata.query, results=len(results))
        return len(results)
