"""
Export Splunk search results to CSV, JSON or JSON Lines.

The export runs a search job on the Splunk management port, pages through its
results and streams them to stdout or a file. The job is deleted afterwards.

Usage:
  python splunk_export.py -q 'index=main error' --days 7 -f jsonl -o errors.jsonl
  python splunk_export.py -q '| tstats count where index=* by index' --url https://splunk:8089

Env vars (optional defaults):
  SPLUNK_URL, SPLUNK_TOKEN, SPLUNK_INSECURE, SPLUNK_TIMEOUT
  SPLUNK_EXPORT_MAX_RESULTS, SPLUNK_EXPORT_BATCH_SIZE, SPLUNK_EXPORT_FORMAT,
  SPLUNK_EXPORT_POLL_INTERVAL, SPLUNK_EXPORT_LOG_LEVEL

Config file (below env vars, above built-in defaults):
  ~/.splunk-export.json, or --config PATH. Manage it with splunk-export-config.
"""

import argparse
import asyncio
import signal
import sys
from typing import List, Optional

from exporter.config import ExportConfig
from exporter.models import ExportOptions, ExportPhase, ExportProgress
from exporter.options import build_export_options
from exporter.service import ExportService
from splunk_integration.client import SplunkSearchClient
from splunk_integration.config import SplunkConfig
from shared.exceptions import CancellationError, ConfigurationError, SplunkExportException
from shared.logger import setup_logging
from shared.settings import DEFAULT_CONFIG_PATH, load_settings

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CANCELLED = 130  # Ctrl+C convention

BAR_WIDTH = 30

def format_progress(progress: ExportProgress) -> str:
    """One-line progress message for stderr."""
    if progress.phase == ExportPhase.CREATING_JOB:
        return "Creating search job..."
    if progress.phase == ExportPhase.WAITING_FOR_JOB:
        return f"Waiting for job... {progress.job_progress:.0%}"
    if progress.phase == ExportPhase.FETCHING_RESULTS:
        ratio = progress.events_fetched / progress.total_events if progress.total_events > 0 else 0.0
        filled = min(BAR_WIDTH, int(ratio * BAR_WIDTH))
        bar = "#" * filled + "-" * (BAR_WIDTH - filled)
        return f"[{bar}] {progress.events_fetched:,} / {progress.total_events:,}"
    return f"Complete: {progress.events_fetched:,} events"

def print_progress(progress: ExportProgress) -> None:
    sys.stderr.write(f"\r{format_progress(progress):<60}")
    sys.stderr.flush()

def build_parser(export_config: ExportConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="splunk-export",
        description="Export events from Splunk to a file or stdout",
    )
    parser.add_argument("-q", "--query", required=True, help="Splunk search query")
    parser.add_argument("-d", "--days", type=int, help="Days back from now (default: 1)")
    parser.add_argument("--from", dest="earliest", help='Start time (ISO 8601 or relative like "-2h")')
    parser.add_argument("--to", dest="latest", help="End time (default: now)")
    parser.add_argument(
        "--max",
        dest="max_results",
        type=int,
        default=export_config.max_results,
        help=f"Max total events to export, 0 = unlimited (default: {export_config.max_results})",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=export_config.batch_size,
        help=f"Events per API request, max 50000 (default: {export_config.batch_size})",
    )
    parser.add_argument(
        "-f",
        "--format",
        default=export_config.format,
        help=f"Output format: csv, json, jsonl (default: {export_config.format})",
    )
    parser.add_argument("-o", "--output", help="Output file path (default: stdout)")
    parser.add_argument("--fields", help="Comma-separated list of fields to include")
    parser.add_argument("--progress", action="store_true", help="Show progress on stderr")
    parser.add_argument("--url", help="Splunk management URL, e.g. https://host:8089 (or env SPLUNK_URL)")
    parser.add_argument("--token", help="Splunk auth token (or env SPLUNK_TOKEN)")
    parser.add_argument(
        "--insecure",
        action="store_true",
        default=None,
        help="Skip TLS certificate verification (or env SPLUNK_INSECURE)",
    )
    parser.add_argument("--config", help=f"Config file path (default: {DEFAULT_CONFIG_PATH})")
    parser.add_argument(
        "--log-level",
        default=export_config.log_level,
        help=f"Log level for stderr diagnostics (default: {export_config.log_level})",
    )
    return parser

async def run_export(options: ExportOptions, splunk_config: SplunkConfig, poll_interval: float) -> int:
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
    except (NotImplementedError, RuntimeError):
        # Windows event loops have no signal handlers; Ctrl+C cancels the task instead
        pass

    client = SplunkSearchClient(
        options.url,
        options.token,
        verify=not options.insecure,
        timeout=splunk_config.timeout,
    )
    try:
        async with client:
            service = ExportService(client, poll_interval=poll_interval)
            return await service.export(
                options,
                progress=print_progress if options.show_progress else None,
                cancel_event=cancel_event,
            )
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass

def main(argv: Optional[List[str]] = None) -> int:
    # The config file supplies the defaults shown in --help, so find it first
    pre_parser = argparse.ArgumentParser(add_help=False)
    pre_parser.add_argument("--config")
    config_file = pre_parser.parse_known_args(argv)[0].config

    try:
        export_config = load_settings(ExportConfig, config_file=config_file)
    except ConfigurationError as e:
        sys.stderr.write(f"Error: {e}\n")
        return EXIT_ERROR

    args = build_parser(export_config).parse_args(argv)
    logger = setup_logging(args.log_level)

    try:
        splunk_config = load_settings(SplunkConfig, config_file=config_file)
        options = build_export_options(
            args.query,
            days=args.days,
            earliest=args.earliest,
            latest=args.latest,
            max_results=args.max_results,
            batch_size=args.batch_size,
            output_format=args.format,
            output_path=args.output,
            fields=args.fields,
            show_progress=args.progress,
            url=args.url,
            token=args.token,
            insecure=args.insecure,
            splunk_config=splunk_config,
            export_config=export_config,
        )
        count = asyncio.run(run_export(options, splunk_config, export_config.poll_interval))
    except (CancellationError, KeyboardInterrupt):
        sys.stderr.write("\nExport cancelled.\n")
        return EXIT_CANCELLED
    except (SplunkExportException, OSError) as e:
        logger.debug("Export failed", error=str(e), error_type=type(e).__name__)
        sys.stderr.write(f"Error: {e}\n")
        return EXIT_ERROR

    if options.show_progress:
        sys.stderr.write(f"\nExported {count:,} events.\n")
    return EXIT_OK

if __name__ == "__main__":
    sys.exit(main())
