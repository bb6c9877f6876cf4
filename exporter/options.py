"""Resolve and validate export options."""
from typing import Optional

from exporter.config import ExportConfig
from exporter.models import ExportOptions, OutputFormat
from splunk_integration.config import SplunkConfig, normalize_url
from shared.exceptions import ConfigurationError
from shared.settings import load_settings
from shared.utils import parse_field_list, resolve_time_range

MAX_BATCH_SIZE = 50_000  # Splunk results endpoint limit

def validate_options(
    days: Optional[int],
    earliest: Optional[str],
    latest: Optional[str],
    batch_size: int,
    max_results: int,
) -> None:
    if days is not None and (earliest is not None or latest is not None):
        raise ConfigurationError("Cannot use --days with --from/--to. Use one or the other.")
    if days is not None and days < 1:
        raise ConfigurationError("--days must be at least 1.")
    if batch_size < 1:
        raise ConfigurationError("--batch-size must be at least 1.")
    if batch_size > MAX_BATCH_SIZE:
        raise ConfigurationError(f"--batch-size cannot exceed {MAX_BATCH_SIZE} (Splunk limit).")
    if max_results < 0:
        raise ConfigurationError("--max cannot be negative (use 0 for unlimited).")

def build_export_options(
    query: str,
    *,
    days: Optional[int] = None,
    earliest: Optional[str] = None,
    latest: Optional[str] = None,
    max_results: Optional[int] = None,
    batch_size: Optional[int] = None,
    output_format: Optional[str] = None,
    output_path: Optional[str] = None,
    fields: Optional[str] = None,
    show_progress: bool = False,
    url: Optional[str] = None,
    token: Optional[str] = None,
    insecure: Optional[bool] = None,
    config_file: Optional[str] = None,
    splunk_config: Optional[SplunkConfig] = None,
    export_config: Optional[ExportConfig] = None,
) -> ExportOptions:
    """Merge CLI values over environment, .env and config file settings and validate the result.

    ``config_file`` is only read when the settings objects are not passed in.

    Raises:
        ConfigurationError: when an option is missing, conflicting or out of range.
    """
    splunk_config = splunk_config or load_settings(SplunkConfig, config_file=config_file)
    export_config = export_config or load_settings(ExportConfig, config_file=config_file)

    if not query or not query.strip():
        raise ConfigurationError("A search query is required.")

    max_results = export_config.max_results if max_results is None else max_results
    batch_size = export_config.batch_size if batch_size is None else batch_size
    validate_options(days, earliest, latest, batch_size, max_results)

    resolved_url = normalize_url(url if url and url.strip() else splunk_config.url)
    resolved_token = token if token and token.strip() else splunk_config.token
    if not resolved_token:
        raise ConfigurationError("Splunk token is required. Use --token, SPLUNK_TOKEN, or the config file.")

    earliest_time, latest_time = resolve_time_range(
        days,
        earliest,
        latest,
        default_earliest=export_config.earliest_time,
        default_latest=export_config.latest_time,
    )
    field_list = parse_field_list(fields)

    return ExportOptions(
        url=resolved_url,
        token=resolved_token,
        insecure=splunk_config.insecure if insecure is None else insecure,
        query=query,
        earliest_time=earliest_time,
        latest_time=latest_time,
        max_results=max_results,
        batch_size=batch_size,
        format=OutputFormat.parse(output_format or export_config.format),
        output_path=output_path or None,
        fields=tuple(field_list) if field_list else None,
        show_progress=show_progress or bool(output_path),
    )
