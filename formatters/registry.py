"""Formatter lookup by output format."""
from exporter.models import OutputFormat
from formatters.base import EventFormatter
from formatters.csv_formatter import CsvFormatter
from formatters.json_formatter import JsonFormatter
from formatters.jsonl_formatter import JsonlFormatter

_FORMATTERS = {
    OutputFormat.CSV: CsvFormatter,
    OutputFormat.JSON: JsonFormatter,
    OutputFormat.JSONL: JsonlFormatter,
}

def get_formatter(output_format: OutputFormat) -> EventFormatter:
    try:
        return _FORMATTERS[output_format]()
    except KeyError:
        raise ValueError(f"Unknown format: {output_format}")
