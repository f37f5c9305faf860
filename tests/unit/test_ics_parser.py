"""Unit tests for ics2gcal.calendar.ics_parser and the timezone registry."""

import datetime as dt
from zoneinfo import ZoneInfo

import pytest

from ics2gcal.calendar.ics_parser import extract_events, parse_events, parse_ics
from ics2gcal.calendar.models import CivilTimestamp
from ics2gcal.calendar.timezone_registry import TimezoneRegistry
from ics2gcal.exceptions import MalformedFormatError

pytestmark = [pytest.mark.unit, pytest.mark.fast]

CUSTOM_ZONE_ICS = """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//ics2gcal Test//EN
BEGIN:VTIMEZONE
TZID:Custom Plus Two
BEGIN:STANDARD
DTSTART:19700101T000000
TZOFFSETFROM:+0200
TZOFFSETTO:+0200
TZNAME:CPT
END:STANDARD
END:VTIMEZONE
BEGIN:VEVENT
UID:custom-zone@ics2gcal.test
DTSTART;TZID=Custom Plus Two:20240115T100000
DTEND;TZID=Custom Plus Two:20240115T113000
SUMMARY:Planning
DTSTAMP:20240101T000000Z
END:VEVENT
END:VCALENDAR
"""


def _calendar(*event_lines: str) -> str:
    body = "\n".join(event_lines)
    return f"BEGIN:VCALENDAR\nVERSION:2.0\nPRODID:-//ics2gcal Test//EN\nBEGIN:VEVENT\n{body}\nEND:VEVENT\nEND:VCALENDAR\n"


def test_parse_ics_when_vtimezone_present_then_registered_before_events() -> None:
    """Test parse_ics when vtimezone present then registered before events."""
    document = parse_ics(CUSTOM_ZONE_ICS)

    assert "Custom Plus Two" in document.registry
    records = extract_events(document)
    assert len(records) == 1
    start, end = records[0].start, records[0].end
    assert start.tzid == "Custom Plus Two"
    assert start.tzinfo is not None
    assert start.to_rfc3339(dt.UTC) == "2024-01-15T10:00:00+02:00"
    assert end.tzid == "Custom Plus Two"
    assert end.to_rfc3339(dt.UTC) == "2024-01-15T11:30:00+02:00"


def test_parse_events_when_simple_calendar_then_records_carry_text_fields(sample_ics_simple: str) -> None:
    """Test parse_events when simple calendar then records carry text fields."""
    _document, records = parse_events(sample_ics_simple)

    assert [r.uid for r in records] == ["test-event-001@ics2gcal.test", "test-event-002@ics2gcal.test"]
    meeting = records[0]
    assert meeting.summary == "Team Meeting"
    assert meeting.location == "Conference Room A"
    assert meeting.description == "Weekly team sync meeting"
    assert meeting.url == "https://meet.example.com/team"
    assert meeting.start == CivilTimestamp(dt.datetime(2024, 1, 15, 10, 0), tzid="UTC")
    assert meeting.start.is_utc
    assert not meeting.is_recurring


def test_parse_events_when_date_values_then_record_is_all_day(sample_ics_simple: str) -> None:
    """Test parse_events when date values then record is all day."""
    _document, records = parse_events(sample_ics_simple)

    offsite = records[1]
    assert offsite.start.is_date
    assert offsite.start.value == dt.date(2024, 1, 16)
    assert offsite.end.value == dt.date(2024, 1, 17)


def test_parse_events_when_iana_tzid_without_vtimezone_then_zone_resolved() -> None:
    """Test parse_events when iana tzid without vtimezone then zone resolved."""
    _document, records = parse_events(
        _calendar("UID:a", "DTSTART;TZID=Europe/Berlin:20240115T090000", "DTEND;TZID=Europe/Berlin:20240115T100000")
    )

    start = records[0].start
    assert start.value == dt.datetime(2024, 1, 15, 9, 0)
    assert start.tzinfo is not None
    assert start.to_rfc3339(dt.UTC) == "2024-01-15T09:00:00+01:00"


def test_parse_events_when_floating_time_then_no_zone() -> None:
    """Test parse_events when floating time then no zone."""
    _document, records = parse_events(_calendar("UID:a", "DTSTART:20240115T090000"))

    assert records[0].start.is_floating
    assert records[0].start.to_rfc3339(ZoneInfo("America/Los_Angeles")) == "2024-01-15T09:00:00-08:00"


@pytest.mark.parametrize(
    "lines,expected_end",
    [
        (("UID:a", "DTSTART:20240115T090000", "DURATION:PT45M"), dt.datetime(2024, 1, 15, 9, 45)),
        (("UID:a", "DTSTART:20240115T090000"), dt.datetime(2024, 1, 15, 9, 0)),
        (("UID:a", "DTSTART;VALUE=DATE:20240115"), dt.date(2024, 1, 16)),
    ],
)
def test_parse_events_when_dtend_missing_then_end_derived(lines: tuple, expected_end: object) -> None:
    """Test parse_events when dtend missing then end derived."""
    _document, records = parse_events(_calendar(*lines))

    assert records[0].end.value == expected_end


def test_parse_events_when_no_vevent_then_empty_list_not_error() -> None:
    """Test parse_events when no vevent then empty list not error."""
    document, records = parse_events("BEGIN:VCALENDAR\nVERSION:2.0\nPRODID:-//x//EN\nEND:VCALENDAR\n")

    assert records == []
    assert document.calendar.name == "VCALENDAR"


@pytest.mark.parametrize(
    "text",
    [
        "",
        "this is not a calendar\nat all\n",
        "BEGIN:VCALENDAR\nBEGIN:VEVENT\nUID:x\nEND:VCALENDAR\n",
        "BEGIN:VEVENT\nUID:x\nDTSTART:20240101T100000Z\nEND:VEVENT\n",
    ],
)
def test_parse_ics_when_structure_broken_then_malformed_error(text: str) -> None:
    """Test parse_ics when structure broken then malformed error."""
    with pytest.raises(MalformedFormatError):
        parse_events(text)


def test_parse_events_when_dtstart_unparseable_then_malformed_error() -> None:
    """Test parse_events when dtstart unparseable then malformed error."""
    with pytest.raises(MalformedFormatError):
        parse_events(_calendar("UID:a", "DTSTART:2024-01-15 nine o'clock"))


def test_parse_events_when_dtstart_missing_then_malformed_error() -> None:
    """Test parse_events when dtstart missing then malformed error."""
    with pytest.raises(MalformedFormatError, match="no DTSTART"):
        parse_events(_calendar("UID:a", "SUMMARY:No start"))


def test_parse_events_when_exdate_empty_and_unsanitized_then_malformed_error() -> None:
    """Test parse_events when exdate empty and unsanitized then malformed error."""
    with pytest.raises(MalformedFormatError):
        parse_events(_calendar("UID:a", "DTSTART:20240115T090000", "RRULE:FREQ=DAILY;COUNT=2", "EXDATE:"))


def test_registry_resolve_when_tzid_unknown_then_none() -> None:
    """Test registry resolve when tzid unknown then none."""
    registry = TimezoneRegistry()

    assert registry.resolve("Nowhere/Special") is None
    assert registry.resolve(None) is None


def test_registry_resolve_when_windows_name_then_iana_zone() -> None:
    """Test registry resolve when windows name then iana zone."""
    registry = TimezoneRegistry()

    assert registry.resolve("W. Europe Standard Time") == ZoneInfo("Europe/Berlin")
    assert len(registry) == 0


def test_registry_when_documents_parsed_separately_then_registries_independent() -> None:
    """Test registry when documents parsed separately then registries independent."""
    first = parse_ics(CUSTOM_ZONE_ICS)
    second = parse_ics(_calendar("UID:a", "DTSTART:20240115T090000"))

    assert "Custom Plus Two" in first.registry
    assert "Custom Plus Two" not in second.registry
