"""Parse-side data model for ics2gcal.

These types describe what was read from an iCalendar document. Destination
(Google Calendar) types live in ``ics2gcal.destination.models``.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from icalendar import Calendar, Component, Event

from .timezone_registry import TimezoneRegistry

DateOrDateTime = Union[dt.date, dt.datetime]

UTC_TZID = "UTC"


def properties(component: Component, name: str) -> list[Any]:
    """Return every occurrence of a property on a component as a list.

    icalendar returns a bare value for a single occurrence and a list when the
    property repeats; callers always get a list here.
    """
    value = component.get(name)
    if value is None:
        return []
    if isinstance(value, list):
        return list(value)
    return [value]


@dataclass(frozen=True)
class CivilTimestamp:
    """A civil date or date-time plus the TZID it is expressed in.

    ``value`` is always naive. ``tzinfo`` is the zone resolved for ``tzid``
    at parse time, or None for floating times and dates. Equality and hashing
    only consider ``value`` and ``tzid``.
    """

    value: DateOrDateTime
    tzid: Optional[str] = None
    tzinfo: Optional[dt.tzinfo] = field(default=None, compare=False, repr=False)

    @classmethod
    def from_ical(
        cls,
        value: DateOrDateTime,
        tzid: Optional[str],
        registry: TimezoneRegistry,
    ) -> CivilTimestamp:
        """Build from a value decoded by icalendar and its TZID parameter."""
        if not isinstance(value, dt.datetime):
            return cls(value=value, tzid=tzid)

        if tzid:
            zone = registry.resolve(tzid) or value.tzinfo
            return cls(value=value.replace(tzinfo=None), tzid=tzid, tzinfo=zone)

        if value.tzinfo is not None:
            # Without a TZID parameter only the UTC "Z" form is zoned
            return cls(value=value.replace(tzinfo=None), tzid=UTC_TZID, tzinfo=dt.UTC)

        return cls(value=value)

    @property
    def is_date(self) -> bool:
        return not isinstance(self.value, dt.datetime)

    @property
    def is_utc(self) -> bool:
        return self.tzid == UTC_TZID

    @property
    def is_floating(self) -> bool:
        return self.tzinfo is None and not self.is_date

    @property
    def calendar_date(self) -> dt.date:
        if isinstance(self.value, dt.datetime):
            return self.value.date()
        return self.value

    def as_datetime(self) -> dt.datetime:
        """Naive civil date-time; dates become local midnight."""
        if isinstance(self.value, dt.datetime):
            return self.value
        return dt.datetime.combine(self.value, dt.time())

    def shifted(self, delta: dt.timedelta) -> CivilTimestamp:
        """Civil arithmetic in the same zone."""
        return CivilTimestamp(value=self.value + delta, tzid=self.tzid, tzinfo=self.tzinfo)

    def to_ical_string(self) -> str:
        """Render as a local string, e.g. ``2024-03-05T09:00:00`` or ``2024-03-05``.

        UTC values keep their ``Z`` suffix.
        """
        if isinstance(self.value, dt.datetime):
            rendered = self.value.strftime("%Y-%m-%dT%H:%M:%S")
            return f"{rendered}Z" if self.is_utc else rendered
        return self.value.isoformat()

    def localize(self, fallback: dt.tzinfo) -> dt.datetime:
        """Aware date-time, using ``fallback`` for floating values and dates."""
        return self.as_datetime().replace(tzinfo=self.tzinfo or fallback)

    def to_rfc3339(self, fallback: dt.tzinfo) -> str:
        """RFC 3339 timestamp with offset, or a plain date for date values."""
        if self.is_date:
            return self.calendar_date.isoformat()
        return self.localize(fallback).isoformat()


# An excluded date is one civil timestamp of a series that must not occur.
ExcludedDate = CivilTimestamp


@dataclass
class EventRecord:
    """One VEVENT read from a document."""

    component: Event
    start: CivilTimestamp
    end: CivilTimestamp
    uid: Optional[str] = None
    summary: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None

    @property
    def is_recurring(self) -> bool:
        return bool(properties(self.component, "RRULE") or properties(self.component, "RDATE"))


@dataclass
class RecurrenceRuleSet:
    """Rule strings for the destination plus the dates to cancel afterwards."""

    rules: list[str] = field(default_factory=list)
    excluded_dates: frozenset[ExcludedDate] = frozenset()


@dataclass
class CalendarDocument:
    """A parsed VCALENDAR together with its parse-scoped timezone registry."""

    calendar: Calendar
    registry: TimezoneRegistry = field(default_factory=TimezoneRegistry)

    def subcomponents(self, kind: str) -> list[Component]:
        """All direct subcomponents of one kind, e.g. ``"VEVENT"``."""
        wanted = kind.upper()
        return [c for c in self.calendar.subcomponents if c.name == wanted]
