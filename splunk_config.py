"""
Manage the splunk-export config file.

Usage:
  python splunk_config.py init [--force]
  python splunk_config.py set connection.url https://splunk:8089
  python splunk_config.py set connection.token YOUR_TOKEN
  python splunk_config.py show [--json]

All commands take --config PATH (default: ~/.splunk-export.json).
"""

import argparse
import json
import sys
from typing import Callable, Dict, List, Optional, Tuple

from shared.exceptions import ConfigurationError
from shared.settings import (
    DEFAULT_CONFIG_PATH,
    ConfigFile,
    ConnectionSection,
    DefaultsSection,
    load_config_file,
    resolve_config_path,
    save_config_file,
)

EXIT_OK = 0
EXIT_ERROR = 1

def parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1")

def parse_int(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"Expected a whole number, got: {value}") from None

# key (lower case) -> (display name, section, field, converter, description)
CONFIG_KEYS: Dict[str, Tuple[str, str, str, Callable[[str], object], str]] = {
    "connection.url": ("connection.url", "connection", "url", str, "Splunk server URL"),
    "connection.token": ("connection.token", "connection", "token", str, "Auth token"),
    "connection.insecure": (
        "connection.insecure", "connection", "insecure", parse_bool, "Skip SSL verification (true/false)",
    ),
    "defaults.timerange": ("defaults.timeRange", "defaults", "time_range", str, "Default time range (e.g., -1d, -24h)"),
    "defaults.maxresults": ("defaults.maxResults", "defaults", "max_results", parse_int, "Default max results"),
    "defaults.batchsize": ("defaults.batchSize", "defaults", "batch_size", parse_int, "Default batch size"),
    "defaults.format": ("defaults.format", "defaults", "format", str, "Default output format (csv/json/jsonl)"),
}

def mask_token(token: Optional[str]) -> str:
    if not token:
        return "(not set)"
    if len(token) <= 8:
        return "****"
    return f"{token[:4]}****{token[-4:]}"

def apply_update(config: ConfigFile, key: str, value: str) -> ConfigFile:
    """Return a copy of ``config`` with one dotted key changed.

    Raises:
        KeyError: for an unknown key.
        ConfigurationError: when the value does not convert.
    """
    _, section_name, field, convert, _ = CONFIG_KEYS[key.lower()]
    section = getattr(config, section_name)
    updated = section.model_copy(update={field: convert(value)})
    return config.model_copy(update={section_name: updated})

def format_config(config: ConfigFile, path: str) -> str:
    connection = config.connection
    defaults = config.defaults
    return "\n".join([
        f"Config file: {path}",
        "",
        "Connection:",
        f"  url:      {connection.url or '(not set)'}",
        f"  token:    {mask_token(connection.token)}",
        f"  insecure: {str(connection.insecure).lower()}",
        "",
        "Defaults:",
        f"  timeRange:  {defaults.time_range}",
        f"  maxResults: {defaults.max_results:,}",
        f"  batchSize:  {defaults.batch_size:,}",
        f"  format:     {defaults.format}",
    ])

def cmd_show(args: argparse.Namespace) -> int:
    path = resolve_config_path(args.config)
    if not path.is_file():
        sys.stderr.write(f"Config file not found: {path}\n")
        sys.stderr.write("Run 'splunk-export-config init' to create one.\n")
        return EXIT_ERROR

    config = load_config_file(args.config)
    if args.json:
        print(json.dumps(config.model_dump(mode="json", by_alias=True), indent=2))
    else:
        print(format_config(config, str(path)))
    return EXIT_OK

def cmd_set(args: argparse.Namespace) -> int:
    if args.key.lower() not in CONFIG_KEYS:
        sys.stderr.write(f"Unknown config key: {args.key}\n\nValid keys:\n")
        for name, _, _, _, description in CONFIG_KEYS.values():
            sys.stderr.write(f"  {name:<20} - {description}\n")
        return EXIT_ERROR

    config = apply_update(load_config_file(args.config), args.key, args.value)
    save_config_file(config, args.config)
    shown = "****" if "token" in args.key.lower() else args.value
    print(f"Set {args.key} = {shown}")
    return EXIT_OK

def cmd_init(args: argparse.Namespace) -> int:
    path = resolve_config_path(args.config)
    if path.exists() and not args.force:
        sys.stderr.write(f"Config file already exists: {path}\n")
        sys.stderr.write("Use --force to overwrite.\n")
        return EXIT_ERROR

    config = ConfigFile(
        connection=ConnectionSection(url="https://localhost:8089", insecure=True),
        defaults=DefaultsSection(),
    )
    save_config_file(config, args.config)
    print(f"Created config file: {path}")
    print()
    print("Next steps:")
    print("  1. Set your Splunk URL:   splunk-export-config set connection.url https://your-splunk:8089")
    print("  2. Set your auth token:   splunk-export-config set connection.token YOUR_TOKEN")
    print("  3. Run an export:         splunk-export -q 'index=main' --days 1")
    return EXIT_OK

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="splunk-export-config", description="Manage configuration settings")
    subparsers = parser.add_subparsers(dest="command", required=True)

    config_help = f"Config file path (default: {DEFAULT_CONFIG_PATH})"

    show = subparsers.add_parser("show", help="Display current configuration")
    show.add_argument("--config", help=config_help)
    show.add_argument("--json", action="store_true", help="Output as JSON")
    show.set_defaults(handler=cmd_show)

    set_parser = subparsers.add_parser("set", help="Set a configuration value")
    set_parser.add_argument("key", help="Config key (e.g., connection.url, defaults.format)")
    set_parser.add_argument("value", help="Value to set")
    set_parser.add_argument("--config", help=config_help)
    set_parser.set_defaults(handler=cmd_set)

    init = subparsers.add_parser("init", help="Create a new configuration file")
    init.add_argument("--config", help=config_help)
    init.add_argument("-f", "--force", action="store_true", help="Overwrite existing config file")
    init.set_defaults(handler=cmd_init)

    return parser

def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.handler(args)
    except (ConfigurationError, OSError) as e:
        sys.stderr.write(f"Error: {e}\n")
        return EXIT_ERROR

if __name__ == "__main__":
    sys.exit(main())
