"""Command-line entry for ics2gcal.

Usage:
  ics2gcal [--config PATH] [--log-level LEVEL] import SOURCE [--calendar-id ID] [--token TOKEN] [--timezone TZ]
  ics2gcal [--config PATH] [--log-level LEVEL] calendars [--token TOKEN]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence
from urllib.parse import urlparse

from . import __version__
from .calendar.event_translator import EventTranslator
from .config_loader import Config, load_config
from .core.http_client import close_all_clients
from .destination.gcal_client import GoogleCalendarClient
from .exceptions import ConfigurationError, DestinationAPIError
from .fetcher import IcsFetcher
from .import_orchestrator import IcsImporter, ImportResult, ImportStatus
from .logging_config import init_logging

logger = logging.getLogger(__name__)


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the ics2gcal CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="ics2gcal",
        description="Import iCalendar (.ics) files into Google Calendar",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ics2gcal import https://example.com/team.ics --calendar-id primary
  ics2gcal import ./invite.ics --timezone Europe/Berlin
  ics2gcal calendars
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", metavar="PATH", help="YAML config file (default: ./ics2gcal.yaml)")
    parser.add_argument("--log-level", metavar="LEVEL", help="Logging level (default: INFO)")

    # Options every subcommand accepts after its name
    credentials = argparse.ArgumentParser(add_help=False)
    credentials.add_argument("--token", metavar="TOKEN", help="OAuth 2.0 access token (or ICS2GCAL_ACCESS_TOKEN)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    import_parser = subparsers.add_parser("import", parents=[credentials], help="Import an iCalendar file or URL")
    import_parser.add_argument("source", metavar="SOURCE", help="http(s) URL or local path of the .ics file")
    import_parser.add_argument(
        "--calendar-id", metavar="ID", help="Destination calendar id (or ICS2GCAL_CALENDAR_ID)"
    )
    import_parser.add_argument(
        "--timezone", metavar="TZ", help="IANA zone for timed events (default: local system zone)"
    )

    subparsers.add_parser("calendars", parents=[credentials], help="List calendars you can import into")
    return parser


def _apply_overrides(config: Config, args: argparse.Namespace) -> Config:
    """Command line values win over config file and environment."""
    overrides = {
        "access_token": args.token,
        "calendar_id": getattr(args, "calendar_id", None),
        "timezone": getattr(args, "timezone", None),
        "log_level": args.log_level,
    }
    data = {
        "calendar_id": config.calendar_id,
        "access_token": config.access_token,
        "api_base_url": config.api_base_url,
        "timezone": config.timezone,
        "request_timeout": config.request_timeout,
        "log_level": config.log_level,
    }
    data.update({key: value for key, value in overrides.items() if value})
    return Config.from_dict(data)


def _is_url(source: str) -> bool:
    return urlparse(source).scheme in ("http", "https")


def _print_result(result: ImportResult) -> None:
    if result.success:
        print(f"Imported {len(result.created_events)} of {result.event_count} event(s)")
        return
    print(f"Import failed ({result.status.value}): {result.error}", file=sys.stderr)


async def _run_import(config: Config, source: str) -> int:
    client = GoogleCalendarClient(
        access_token=config.require_access_token(),
        calendar_id=config.require_calendar_id(),
        base_url=config.api_base_url,
        request_timeout=config.request_timeout,
    )
    importer = IcsImporter(
        client,
        fetcher=IcsFetcher(config),
        translator=EventTranslator(timezone_name=config.timezone),
    )

    if _is_url(source):
        result = await importer.import_from_url(source)
    else:
        path = Path(source)
        try:
            ics_content = path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error("Can't read iCal file %s: %s", path, e)
            return 1
        result = await importer.import_text(ics_content)

    _print_result(result)
    return 0 if result.status is ImportStatus.IMPORTED else 1


async def _run_calendars(config: Config) -> int:
    client = GoogleCalendarClient(
        access_token=config.require_access_token(),
        calendar_id=config.calendar_id or "primary",
        base_url=config.api_base_url,
        request_timeout=config.request_timeout,
    )
    writable = [entry for entry in await client.list_calendars() if entry.is_writable]

    for title, selected in (("Calendars", True), ("Hidden calendars", False)):
        entries = [entry for entry in writable if entry.selected is selected]
        if not entries:
            continue
        print(f"{title}:")
        for entry in entries:
            marker = " (primary)" if entry.primary else ""
            print(f"  {entry.id}  {entry.summary}{marker}")
    return 0


async def _run(args: argparse.Namespace, config: Config) -> int:
    try:
        if args.command == "import":
            return await _run_import(config, args.source)
        return await _run_calendars(config)
    finally:
        await close_all_clients()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the ics2gcal CLI and return the process exit code."""
    parser = _create_parser()
    args = parser.parse_args(argv)

    init_logging(args.log_level)
    try:
        config = _apply_overrides(load_config(args.config), args)
        init_logging(config.log_level)
        return asyncio.run(_run(args, config))
    except ConfigurationError as e:
        logger.error("%s", e)
        return 1
    except DestinationAPIError as e:
        logger.error("Google Calendar request failed: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
