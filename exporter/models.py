"""Export data models."""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

from shared.exceptions import ConfigurationError

EXPORT_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

class OutputFormat(str, Enum):
    """Supported export formats."""
    CSV = "csv"
    JSON = "json"
    JSONL = "jsonl"

    @classmethod
    def parse(cls, value: str) -> "OutputFormat":
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ConfigurationError(f"Unknown format: {value}. Valid formats: csv, json, jsonl") from None

class ExportOptions(BaseModel):
    """Options for one export, resolved from CLI flags, environment and defaults."""
    model_config = ConfigDict(frozen=True)

    # Connection
    url: str
    token: str
    insecure: bool = False

    # Query
    query: str
    earliest_time: str = "-1d"
    latest_time: str = "now"

    # Size control (max_results=0 means no cap)
    max_results: int = 10_000
    batch_size: int = 10_000

    # Output
    format: OutputFormat = OutputFormat.CSV
    output_path: Optional[str] = None
    fields: Optional[Tuple[str, ...]] = None
    show_progress: bool = False

class ExportMetadata(BaseModel):
    """Metadata written in the JSON wrapper."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    query: str
    from_: str = Field(alias="from")
    to: str
    count: int
    exported_at: datetime

    @field_serializer("exported_at")
    def serialize_exported_at(self, value: datetime) -> str:
        # Fixed-width, sortable UTC timestamp
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.strftime(EXPORT_TIMESTAMP_FORMAT)

class ExportPhase(str, Enum):
    CREATING_JOB = "creating_job"
    WAITING_FOR_JOB = "waiting_for_job"
    FETCHING_RESULTS = "fetching_results"
    COMPLETE = "complete"

class ExportProgress(BaseModel):
    """Progress notification sent to the export observer."""
    phase: ExportPhase
    job_progress: float = 0.0
    events_fetched: int = 0
    total_events: int = 0
    current_batch: int = 0
    total_batches: int = 0
