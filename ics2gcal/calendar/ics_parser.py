"""iCalendar document parser for ics2gcal.

Turns sanitized iCalendar text into a ``CalendarDocument`` and its VEVENTs
into ``EventRecord`` objects. VTIMEZONE definitions are registered with the
document's own ``TimezoneRegistry`` before any event is read, because
DTSTART/DTEND values refer to them by TZID.
"""

import datetime as dt
import logging
from typing import Any, Optional

from icalendar import Calendar, Event

from ics2gcal.exceptions import MalformedFormatError

from .models import CalendarDocument, CivilTimestamp, EventRecord
from .timezone_registry import TimezoneRegistry

logger = logging.getLogger(__name__)

# Properties whose values must parse for an event to be imported
DATE_PROPERTIES = frozenset({"DTSTART", "DTEND", "DURATION", "RRULE", "RDATE", "EXDATE"})


def parse_ics(ics_content: str, registry: Optional[TimezoneRegistry] = None) -> CalendarDocument:
    """Parse iCalendar text into a document and register its timezones.

    Args:
        ics_content: Sanitized iCalendar text
        registry: Registry to populate; a new one is created when omitted

    Returns:
        CalendarDocument whose registry already holds every VTIMEZONE

    Raises:
        MalformedFormatError: Text is not a single well-formed VCALENDAR
    """
    try:
        calendar = Calendar.from_ical(ics_content)
    except Exception as e:
        # icalendar reports broken content lines and unbalanced BEGIN/END
        # with ValueError, and occasionally KeyError/IndexError
        raise MalformedFormatError(f"Invalid iCalendar document: {e}") from e

    if calendar.name != "VCALENDAR":
        raise MalformedFormatError(f"Expected a VCALENDAR component, found {calendar.name!r}")

    document = CalendarDocument(calendar=calendar, registry=registry or TimezoneRegistry())
    for vtimezone in document.subcomponents("VTIMEZONE"):
        document.registry.register(vtimezone)

    logger.debug(
        "Parsed VCALENDAR with %d VEVENT(s) and %d registered VTIMEZONE(s)",
        len(document.subcomponents("VEVENT")),
        len(document.registry),
    )
    return document


def extract_events(document: CalendarDocument) -> list[EventRecord]:
    """Build an EventRecord for every VEVENT of a parsed document.

    Raises:
        MalformedFormatError: A VEVENT has an unparseable or missing date value
    """
    return [_build_event_record(vevent, document.registry) for vevent in document.subcomponents("VEVENT")]


def parse_events(ics_content: str) -> tuple[CalendarDocument, list[EventRecord]]:
    """Parse text and return the document with its events.

    A document without VEVENTs is returned with an empty list; deciding
    whether that is an error is left to the caller.

    Raises:
        MalformedFormatError: The text cannot be parsed
    """
    document = parse_ics(ics_content)
    return document, extract_events(document)


def _text(component: Event, name: str) -> Optional[str]:
    value = component.get(name)
    if value is None:
        return None
    if isinstance(value, list):
        value = value[0]
    text = str(value)
    return text or None


def _date_property(
    vevent: Event, name: str, registry: TimezoneRegistry, uid: Optional[str]
) -> Optional[CivilTimestamp]:
    prop: Any = vevent.get(name)
    if prop is None:
        return None
    value = getattr(prop, "dt", None)
    if not isinstance(value, (dt.date, dt.datetime)):
        raise MalformedFormatError(f"{name} of event {uid!r} is not a date or date-time")
    return CivilTimestamp.from_ical(value, prop.params.get("TZID"), registry)


def _build_event_record(vevent: Event, registry: TimezoneRegistry) -> EventRecord:
    uid = _text(vevent, "UID")

    # icalendar keeps parsing after a bad value and records it here
    for prop_name, message in getattr(vevent, "errors", None) or ():
        if prop_name is None or prop_name.upper() in DATE_PROPERTIES:
            raise MalformedFormatError(f"Invalid {prop_name or 'content line'} in event {uid!r}: {message}")
        logger.warning("Ignoring invalid %s in event %r: %s", prop_name, uid, message)

    start = _date_property(vevent, "DTSTART", registry, uid)
    if start is None:
        raise MalformedFormatError(f"Event {uid!r} has no DTSTART")

    end = _date_property(vevent, "DTEND", registry, uid)
    if end is None:
        end = _derive_end(vevent, start, uid)

    return EventRecord(
        component=vevent,
        start=start,
        end=end,
        uid=uid,
        summary=_text(vevent, "SUMMARY"),
        location=_text(vevent, "LOCATION"),
        description=_text(vevent, "DESCRIPTION"),
        url=_text(vevent, "URL"),
    )


def _derive_end(vevent: Event, start: CivilTimestamp, uid: Optional[str]) -> CivilTimestamp:
    """End of an event without DTEND (RFC 5545 section 3.6.1)."""
    duration_prop: Any = vevent.get("DURATION")
    if duration_prop is not None:
        duration = getattr(duration_prop, "dt", None)
        if not isinstance(duration, dt.timedelta):
            raise MalformedFormatError(f"DURATION of event {uid!r} is not a duration")
        return start.shifted(duration)
    if start.is_date:
        return start.shifted(dt.timedelta(days=1))
    return start
