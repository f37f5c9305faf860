"""Local timezone detection and timezone name normalization for ics2gcal."""

from __future__ import annotations

import datetime
import logging
import os
import time
import zoneinfo
from functools import lru_cache
from pathlib import Path
from typing import ClassVar

logger = logging.getLogger(__name__)

# Used when no local timezone can be guessed
DEFAULT_LOCAL_TIMEZONE = "UTC"

_ZONEINFO_MARKER = "zoneinfo/"


class TimezoneDetector:
    """Guesses the IANA name of the local system timezone using several fallbacks."""

    # Timezone abbreviation to IANA identifier mapping
    TZ_ABBREV_MAP: ClassVar[dict[str, str]] = {
        "PST": "America/Los_Angeles",
        "PDT": "America/Los_Angeles",
        "MST": "America/Denver",
        "MDT": "America/Denver",
        "CST": "America/Chicago",
        "CDT": "America/Chicago",
        "EST": "America/New_York",
        "EDT": "America/New_York",
        "GMT": "Europe/London",
        "BST": "Europe/London",
        "CET": "Europe/Berlin",
        "CEST": "Europe/Berlin",
        "JST": "Asia/Tokyo",
        "UTC": "UTC",
    }

    # Windows timezone names emitted by Outlook/Exchange as TZID values
    # https://docs.microsoft.com/en-us/windows-hardware/manufacture/desktop/default-time-zones
    WINDOWS_TZ_MAP: ClassVar[dict[str, str]] = {
        "Pacific Standard Time": "America/Los_Angeles",
        "Mountain Standard Time": "America/Denver",
        "US Mountain Standard Time": "America/Phoenix",
        "Central Standard Time": "America/Chicago",
        "Eastern Standard Time": "America/New_York",
        "Alaskan Standard Time": "America/Anchorage",
        "Hawaiian Standard Time": "Pacific/Honolulu",
        "Atlantic Standard Time": "America/Halifax",
        "GMT Standard Time": "Europe/London",
        "Greenwich Standard Time": "Atlantic/Reykjavik",
        "W. Europe Standard Time": "Europe/Berlin",
        "Romance Standard Time": "Europe/Paris",
        "Central Europe Standard Time": "Europe/Budapest",
        "Central European Standard Time": "Europe/Warsaw",
        "E. Europe Standard Time": "Europe/Chisinau",
        "FLE Standard Time": "Europe/Kiev",
        "GTB Standard Time": "Europe/Bucharest",
        "Russian Standard Time": "Europe/Moscow",
        "Israel Standard Time": "Asia/Jerusalem",
        "Arabian Standard Time": "Asia/Dubai",
        "India Standard Time": "Asia/Kolkata",
        "China Standard Time": "Asia/Shanghai",
        "Singapore Standard Time": "Asia/Singapore",
        "Tokyo Standard Time": "Asia/Tokyo",
        "Korea Standard Time": "Asia/Seoul",
        "AUS Eastern Standard Time": "Australia/Sydney",
        "New Zealand Standard Time": "Pacific/Auckland",
        "E. South America Standard Time": "America/Sao_Paulo",
        "South Africa Standard Time": "Africa/Johannesburg",
        "UTC": "UTC",
    }

    # Obsolete or alternative names still found in older ICS files
    TZ_ALIAS_MAP: ClassVar[dict[str, str]] = {
        "US/Pacific": "America/Los_Angeles",
        "US/Mountain": "America/Denver",
        "US/Central": "America/Chicago",
        "US/Eastern": "America/New_York",
        "US/Alaska": "America/Anchorage",
        "US/Hawaii": "Pacific/Honolulu",
        "US/Arizona": "America/Phoenix",
        "GMT": "UTC",
        "Etc/UTC": "UTC",
        "Etc/GMT": "UTC",
        "Universal": "UTC",
        "Zulu": "UTC",
        "Z": "UTC",
        "Asia/Calcutta": "Asia/Kolkata",
        "Asia/Rangoon": "Asia/Yangon",
        "America/Godthab": "America/Nuuk",
    }

    # UTC offset (hours) to IANA identifier, last resort
    OFFSET_TO_TZ_MAP: ClassVar[dict[int, str]] = {
        -8: "America/Los_Angeles",
        -7: "America/Denver",
        -6: "America/Chicago",
        -5: "America/New_York",
        -4: "America/New_York",
        0: "UTC",
        1: "Europe/Berlin",
        2: "Europe/Berlin",
        9: "Asia/Tokyo",
    }

    def __init__(self, localtime_path: Path = Path("/etc/localtime")) -> None:
        self.localtime_path = localtime_path

    def get_local_timezone(self) -> str:
        """Guess the local system timezone as an IANA timezone identifier.

        Strategies, in order: the ``TZ`` environment variable, the
        ``/etc/localtime`` symlink target, the ``time.tzname`` abbreviation and
        finally the current UTC offset.

        Returns:
            IANA timezone string, or ``DEFAULT_LOCAL_TIMEZONE`` when every
            strategy fails.
        """
        env_tz = os.environ.get("TZ", "").lstrip(":")
        if env_tz:
            normalized = normalize_timezone_name(env_tz)
            if normalized:
                return normalized
            logger.debug("Ignoring unrecognised TZ environment value %r", env_tz)

        from_link = self._timezone_from_localtime_link()
        if from_link:
            return from_link

        local_tz_name = time.tzname[time.daylight] if time.daylight else time.tzname[0]
        if local_tz_name in self.TZ_ABBREV_MAP:
            return self.TZ_ABBREV_MAP[local_tz_name]

        now_local = datetime.datetime.now()
        now_utc = datetime.datetime.now(datetime.UTC)
        offset_hours = round((now_local - now_utc.replace(tzinfo=None)).total_seconds() / 3600)
        if offset_hours in self.OFFSET_TO_TZ_MAP:
            return self.OFFSET_TO_TZ_MAP[offset_hours]

        logger.warning(
            "Could not guess local timezone (offset=%dh), falling back to %s",
            offset_hours,
            DEFAULT_LOCAL_TIMEZONE,
        )
        return DEFAULT_LOCAL_TIMEZONE

    def _timezone_from_localtime_link(self) -> str | None:
        try:
            if not self.localtime_path.is_symlink():
                return None
            target = str(self.localtime_path.resolve())
        except OSError:
            logger.debug("Unable to read %s", self.localtime_path, exc_info=True)
            return None

        marker = target.rfind(_ZONEINFO_MARKER)
        if marker == -1:
            return None
        return normalize_timezone_name(target[marker + len(_ZONEINFO_MARKER) :])


_detector = TimezoneDetector()


def get_local_timezone() -> str:
    """Guess the local system timezone (convenience function)."""
    return _detector.get_local_timezone()


def windows_tz_to_iana(windows_tz: str) -> str | None:
    """Convert Windows timezone name to IANA timezone identifier.

    Args:
        windows_tz: Windows timezone name (e.g., "Mountain Standard Time")

    Returns:
        IANA timezone identifier (e.g., "America/Denver") or None if not found
    """
    return TimezoneDetector.WINDOWS_TZ_MAP.get(windows_tz)


def resolve_timezone_alias(tz_name: str) -> str:
    """Resolve an obsolete alias (e.g. ``US/Pacific``) to its canonical IANA name."""
    return TimezoneDetector.TZ_ALIAS_MAP.get(tz_name, tz_name)


def normalize_timezone_name(tz_str: str | None) -> str | None:
    """Normalize a timezone string to a canonical IANA timezone identifier.

    Windows names are mapped first, then aliases; the result is validated with
    zoneinfo.

    Examples:
        >>> normalize_timezone_name("Pacific Standard Time")
        'America/Los_Angeles'
        >>> normalize_timezone_name("US/Pacific")
        'America/Los_Angeles'
        >>> normalize_timezone_name("Invalid/Timezone") is None
        True
    """
    if not tz_str:
        return None

    candidate = windows_tz_to_iana(tz_str) or resolve_timezone_alias(tz_str.strip("/"))
    try:
        zoneinfo.ZoneInfo(candidate)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError, OSError):
        logger.debug("Timezone name %r could not be resolved", tz_str)
        return None
    return candidate


@lru_cache(maxsize=64)
def get_zoneinfo(tz_str: str | None) -> datetime.tzinfo | None:
    """Return a tzinfo for a timezone name, or None when it cannot be resolved."""
    normalized = normalize_timezone_name(tz_str)
    if normalized is None:
        return None
    if normalized == "UTC":
        return datetime.UTC
    return zoneinfo.ZoneInfo(normalized)
