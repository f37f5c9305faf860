"""Recurrence extraction for ics2gcal.

Recurring events are re-expressed for the destination as the verbatim RRULE
and RDATE content lines of the source event. EXDATE values are not sent as
rules; they are collected from the recurrence expansion and cancelled on the
destination after the series exists (see ``destination.exception_reconciler``).

EXRULE is deprecated by RFC 5545 and can produce ambiguous results, so it is
never read. When RDATE is present the destination creates a series whose
instances can only be deleted together, not edited together; this is a
property of Google Calendar and is accepted.
"""

import datetime as dt
import logging
from collections.abc import Iterator
from typing import Any, Callable

from dateutil.rrule import rruleset, rrulestr
from icalendar import Event

from ics2gcal.exceptions import MalformedFormatError

from .models import CivilTimestamp, EventRecord, ExcludedDate, RecurrenceRuleSet, properties
from .timezone_registry import TimezoneRegistry

logger = logging.getLogger(__name__)

# Order matters: the destination receives RRULEs first, then RDATEs
RECURRENCE_RULE_PROPERTIES = ("RRULE", "RDATE")


def recurrence_rule_strings(component: Event) -> list[str]:
    """Serialize RRULE and RDATE properties as content lines, in source order.

    Example:
        ``["RRULE:FREQ=WEEKLY;BYDAY=MO", "RDATE;TZID=Europe/Berlin:20240110T090000"]``
    """
    rule_strings = []
    for name in RECURRENCE_RULE_PROPERTIES:
        for prop in properties(component, name):
            try:
                rule_strings.append(str(component.content_line(name, prop)))
            except (AttributeError, TypeError, ValueError) as e:
                raise MalformedFormatError(f"Cannot serialize {name} property: {e}") from e
    return rule_strings


class RecurrenceExpansion:
    """Recurrence of one VEVENT, expanded from the event's own start.

    The expansion works on civil times in the zone of DTSTART. ``exdates``
    holds exactly the values carried by EXDATE properties, re-expressed in
    the zone of DTSTART when both are zoned; occurrences cut off by COUNT or
    UNTIL are not exclusions.
    """

    def __init__(self, component: Event, dtstart: CivilTimestamp, registry: TimezoneRegistry):
        self.dtstart = dtstart
        self.ruleset = rruleset()
        self._registry = registry
        self._series_start = dtstart.as_datetime()

        for prop in properties(component, "RRULE"):
            self.ruleset.rrule(self._parse_rule(prop))
        self.rdates = self._collect_dates(component, "RDATE", self.ruleset.rdate)
        self.exdates = [
            self._as_series_timestamp(exdate)
            for exdate in self._collect_dates(component, "EXDATE", self.ruleset.exdate)
        ]

    def __iter__(self) -> Iterator[dt.datetime]:
        """Civil start times of the occurrences, excluded dates removed."""
        return iter(self.ruleset)

    @property
    def excluded_dates(self) -> frozenset[ExcludedDate]:
        return frozenset(self.exdates)

    def _parse_rule(self, prop: Any) -> Any:
        rule_text = prop.to_ical()
        if isinstance(rule_text, bytes):
            rule_text = rule_text.decode("utf-8")
        try:
            return rrulestr(rule_text, dtstart=self._series_start, ignoretz=True)
        except (ValueError, TypeError) as e:
            raise MalformedFormatError(f"Invalid RRULE {rule_text!r}: {e}") from e

    def _collect_dates(
        self, component: Event, name: str, add_to_ruleset: Callable[[dt.datetime], None]
    ) -> list[CivilTimestamp]:
        collected: list[CivilTimestamp] = []
        for prop in properties(component, name):
            values = getattr(prop, "dts", None)
            if values is None:
                raise MalformedFormatError(f"Invalid {name} property value: {prop!r}")
            tzid = prop.params.get("TZID")
            for entry in values:
                value = entry.dt
                if isinstance(value, tuple):
                    # PERIOD values (RDATE only) start at their first element
                    value = value[0]
                if not isinstance(value, (dt.date, dt.datetime)):
                    raise MalformedFormatError(f"Invalid {name} value: {value!r}")
                timestamp = CivilTimestamp.from_ical(value, tzid, self._registry)
                collected.append(timestamp)
                add_to_ruleset(self._in_series_zone(timestamp))
        return collected

    def _in_series_zone(self, timestamp: CivilTimestamp) -> dt.datetime:
        """Express a date in the civil time of DTSTART for the dateutil ruleset."""
        civil = timestamp.as_datetime()
        if timestamp.tzinfo is not None and self.dtstart.tzinfo is not None:
            return (
                civil.replace(tzinfo=timestamp.tzinfo)
                .astimezone(self.dtstart.tzinfo)
                .replace(tzinfo=None)
            )
        return civil

    def _as_series_timestamp(self, timestamp: CivilTimestamp) -> CivilTimestamp:
        """Same instant, labelled with the TZID of DTSTART; dates and floating values unchanged."""
        if timestamp.is_date or timestamp.tzinfo is None or self.dtstart.tzinfo is None:
            return timestamp
        return CivilTimestamp(
            value=self._in_series_zone(timestamp),
            tzid=self.dtstart.tzid,
            tzinfo=self.dtstart.tzinfo,
        )


def extract_recurrence(record: EventRecord, registry: TimezoneRegistry) -> RecurrenceRuleSet:
    """Rule strings and excluded dates of a recurring event.

    Non-recurring records yield an empty rule set.

    Raises:
        MalformedFormatError: A rule or date cannot be parsed
    """
    if not record.is_recurring:
        return RecurrenceRuleSet()

    rules = recurrence_rule_strings(record.component)
    expansion = RecurrenceExpansion(record.component, record.start, registry)
    logger.debug(
        "Event %r recurs with %d rule(s) and %d excluded date(s)",
        record.uid,
        len(rules),
        len(expansion.exdates),
    )
    return RecurrenceRuleSet(rules=rules, excluded_dates=expansion.excluded_dates)
