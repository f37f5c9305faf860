"""Cancellation of excluded dates on an imported recurring event.

EXDATE values are not part of the recurrence sent to Google Calendar.
Instead, once the series exists, the instance at each excluded date is looked
up and PUT back with ``status`` set to ``cancelled``.

Excluded dates arrive as civil times in the zone of the source DTSTART. The
series was created with that same civil time in the created event's
``timeZone``, so every non-UTC excluded date is placed in that zone before
lookup. UTC values are sent as UTC.

Lookup happens in two steps:

1. Exact: instances whose original start equals the excluded date.
2. Fallback, for timed events only, when step 1 finds nothing: instances on
   the calendar day of the excluded date in the series zone.
   Outlook writes EXDATEs whose time of day does not match the series, so if
   exactly one instance falls on that day it is the one meant. With zero or
   several candidates the date is left alone.

Each excluded date is reconciled independently. A failure for one date is
logged and does not affect the others or the import result.
"""

import datetime as dt
import logging
from collections.abc import Iterable
from enum import Enum

from ics2gcal.calendar.models import ExcludedDate
from ics2gcal.core.async_utils import gather_all_or_raise, gather_settled
from ics2gcal.core.timezone_utils import get_zoneinfo

from .models import CreatedEvent, DestinationInstance
from .protocols import DestinationCalendar

logger = logging.getLogger(__name__)

UTC_BOUND_FORMAT = "%Y-%m-%dT%H:%M:%S+00:00"


class ReconciliationOutcome(str, Enum):
    """What happened to one excluded date."""

    CANCELLED = "cancelled"
    CANCELLED_FALLBACK = "cancelled_fallback"
    AMBIGUOUS = "ambiguous"
    NOT_FOUND = "not_found"
    FAILED = "failed"


def _to_utc_bound(civil: dt.datetime, zone: dt.tzinfo) -> str:
    return civil.replace(tzinfo=zone).astimezone(dt.UTC).strftime(UTC_BOUND_FORMAT)


def _placement_zone(exdate: ExcludedDate, series_tz: dt.tzinfo) -> dt.tzinfo:
    return dt.UTC if exdate.is_utc else series_tz


def original_start_key(exdate: ExcludedDate, series_tz: dt.tzinfo) -> str:
    """``originalStart`` value of the instance an excluded date refers to.

    Dates render as ``YYYY-MM-DD``. Date-times render with the offset of
    ``series_tz`` at that civil time, or ``+00:00`` for UTC values.
    """
    if exdate.is_date:
        return exdate.calendar_date.isoformat()
    return exdate.as_datetime().replace(tzinfo=_placement_zone(exdate, series_tz)).isoformat()


def day_window_bounds(
    exdate: ExcludedDate, duration: dt.timedelta, series_tz: dt.tzinfo
) -> tuple[str, str]:
    """Instance query bounds covering the calendar day of an excluded date.

    The day runs from local midnight to the next local midnight in
    ``series_tz`` (UTC for UTC values).
    ``timeMin`` filters on instance end, so the lower bound is moved forward
    by the event duration; instances that start before midnight and end
    inside the day are then not matched. The duration is taken from the
    created event's civil start and end, so it is only exact when both are
    in the same zone.

    Returns:
        ``(time_min, time_max)`` as UTC strings with an explicit ``+00:00`` offset
    """
    zone = _placement_zone(exdate, series_tz)
    start_of_day = dt.datetime.combine(exdate.calendar_date, dt.time())
    end_of_day = start_of_day + dt.timedelta(days=1)
    end_time_min = start_of_day + duration
    return _to_utc_bound(end_time_min, zone), _to_utc_bound(end_of_day, zone)


class ExceptionReconciler:
    """Cancels the instances of a created series that fall on excluded dates."""

    def __init__(self, destination: DestinationCalendar, default_timezone: dt.tzinfo) -> None:
        """Initialize reconciler.

        Args:
            destination: Calendar holding the created event
            default_timezone: Series zone for created events that carry no
                usable ``timeZone``
        """
        self.destination = destination
        self.default_timezone = default_timezone

    def series_timezone(self, event: CreatedEvent) -> dt.tzinfo:
        """Zone the created series' civil times are expressed in."""
        return get_zoneinfo(event.start.time_zone) or self.default_timezone

    async def cancel_excluded_dates(
        self, event: CreatedEvent, excluded_dates: Iterable[ExcludedDate]
    ) -> list[ReconciliationOutcome]:
        """Reconcile every excluded date of one created event, concurrently.

        Returns:
            One outcome per excluded date, ordered by date
        """
        ordered = sorted(excluded_dates, key=lambda d: (d.as_datetime(), d.tzid or ""))
        if not ordered:
            return []

        results = await gather_settled(
            *(self._reconcile_date(event, exdate) for exdate in ordered),
            label=f"Excluded date of event {event.id}",
        )

        outcomes = [r if isinstance(r, ReconciliationOutcome) else ReconciliationOutcome.FAILED for r in results]
        logger.debug("Reconciled %d excluded date(s) of event %s: %s", len(outcomes), event.id, outcomes)
        return outcomes

    async def _reconcile_date(self, event: CreatedEvent, exdate: ExcludedDate) -> ReconciliationOutcome:
        series_tz = self.series_timezone(event)
        original_start = original_start_key(exdate, series_tz)
        matches = await self.destination.list_instances_by_original_start(event.id, original_start)
        if matches:
            await self._cancel_all(event.id, matches)
            return ReconciliationOutcome.CANCELLED

        if not event.is_timed:
            logger.debug("No instance of all-day event %s at %s", event.id, original_start)
            return ReconciliationOutcome.NOT_FOUND

        time_min, time_max = day_window_bounds(exdate, event.duration(), series_tz)
        candidates = await self.destination.list_instances_in_window(event.id, time_min, time_max)
        if len(candidates) == 1:
            await self._cancel_all(event.id, candidates)
            return ReconciliationOutcome.CANCELLED_FALLBACK

        if not candidates:
            logger.info("No instance of event %s found for excluded date %s; ignoring it", event.id, original_start)
            return ReconciliationOutcome.NOT_FOUND

        logger.info(
            "%d instances of event %s on the day of excluded date %s; ignoring it",
            len(candidates),
            event.id,
            original_start,
        )
        return ReconciliationOutcome.AMBIGUOUS

    async def _cancel_all(self, event_id: str, instances: list[DestinationInstance]) -> None:
        await gather_all_or_raise(
            *(self.destination.update_instance(event_id, instance.cancelled()) for instance in instances)
        )
