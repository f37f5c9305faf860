"""Unit tests for ics2gcal.core.timezone_utils."""

import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

from ics2gcal.core.timezone_utils import (
    DEFAULT_LOCAL_TIMEZONE,
    TimezoneDetector,
    get_zoneinfo,
    normalize_timezone_name,
    resolve_timezone_alias,
    windows_tz_to_iana,
)

pytestmark = [pytest.mark.unit, pytest.mark.fast]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Europe/Berlin", "Europe/Berlin"),
        ("W. Europe Standard Time", "Europe/Berlin"),
        ("Pacific Standard Time", "America/Los_Angeles"),
        ("US/Pacific", "America/Los_Angeles"),
        ("Etc/UTC", "UTC"),
        ("/Europe/Paris", "Europe/Paris"),
        ("Invalid/Timezone", None),
        ("", None),
        (None, None),
    ],
)
def test_normalize_timezone_name_when_input_varies_then_canonical_or_none(raw, expected) -> None:
    """Test normalize_timezone_name when input varies then canonical or none."""
    assert normalize_timezone_name(raw) == expected


def test_windows_tz_to_iana_when_unknown_then_none() -> None:
    """Test windows_tz_to_iana when unknown then none."""
    assert windows_tz_to_iana("Tokyo Standard Time") == "Asia/Tokyo"
    assert windows_tz_to_iana("Nowhere Standard Time") is None


def test_resolve_timezone_alias_when_not_alias_then_unchanged() -> None:
    """Test resolve_timezone_alias when not alias then unchanged."""
    assert resolve_timezone_alias("Asia/Calcutta") == "Asia/Kolkata"
    assert resolve_timezone_alias("Asia/Tokyo") == "Asia/Tokyo"


def test_get_zoneinfo_when_utc_then_datetime_utc() -> None:
    """Test get_zoneinfo when utc then datetime utc."""
    assert get_zoneinfo("UTC") is datetime.UTC
    assert get_zoneinfo("Europe/Berlin") == ZoneInfo("Europe/Berlin")
    assert get_zoneinfo("Mars/Olympus") is None


def test_get_local_timezone_when_tz_env_set_then_env_used(monkeypatch, tmp_path: Path) -> None:
    """Test get_local_timezone when tz env set then env used."""
    monkeypatch.setenv("TZ", ":Europe/Berlin")

    assert TimezoneDetector(tmp_path / "localtime").get_local_timezone() == "Europe/Berlin"


def test_get_local_timezone_when_localtime_symlink_then_zone_from_target(monkeypatch, tmp_path: Path) -> None:
    """Test get_local_timezone when localtime symlink then zone from target."""
    monkeypatch.delenv("TZ", raising=False)
    target = tmp_path / "usr" / "share" / "zoneinfo" / "Asia" / "Tokyo"
    target.parent.mkdir(parents=True)
    target.write_bytes(b"TZif")
    link = tmp_path / "localtime"
    link.symlink_to(target)

    assert TimezoneDetector(link).get_local_timezone() == "Asia/Tokyo"


def test_get_local_timezone_when_nothing_detectable_then_default(monkeypatch, tmp_path: Path) -> None:
    """Test get_local_timezone when nothing detectable then default."""
    monkeypatch.delenv("TZ", raising=False)
    monkeypatch.setattr("ics2gcal.core.timezone_utils.time.tzname", ("XYZ", "XYZ"))
    monkeypatch.setattr("ics2gcal.core.timezone_utils.time.daylight", 0)
    monkeypatch.setattr(TimezoneDetector, "OFFSET_TO_TZ_MAP", {})

    assert TimezoneDetector(tmp_path / "missing").get_local_timezone() == DEFAULT_LOCAL_TIMEZONE
