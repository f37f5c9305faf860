import asyncio
import datetime as dt
from collections.abc import AsyncIterator, Generator
from itertools import islice
from typing import Any, Optional
from zoneinfo import ZoneInfo

import pytest
from dateutil.rrule import rrulestr

from ics2gcal.core.http_client import close_all_clients
from ics2gcal.destination.models import (
    CalendarListEntry,
    CreatedEvent,
    DestinationEvent,
    DestinationInstance,
)
from ics2gcal.exceptions import CreateEventError, DestinationAPIError


class FakeDestination:
    """In-memory DestinationCalendar recording every call.

    Instances are served from ``instances_by_start`` (keyed by the exact
    ``originalStart`` string) and ``window_instances`` (returned for any
    window query). ``reject_uids`` makes ``create_event`` fail for those
    iCalUIDs; ``failing_starts`` makes the exact lookup fail.
    """

    calendar_id = "fake-calendar@group.calendar.google.com"

    def __init__(self) -> None:
        self.create_calls: list[DestinationEvent] = []
        self.original_start_queries: list[tuple[str, str]] = []
        self.window_queries: list[tuple[str, str, str]] = []
        self.updates: list[tuple[str, DestinationInstance]] = []
        self.instances_by_start: dict[str, list[DestinationInstance]] = {}
        self.window_instances: list[DestinationInstance] = []
        self.reject_uids: set[str] = set()
        self.failing_starts: set[str] = set()
        self.calendars: list[CalendarListEntry] = []

    async def create_event(self, event: DestinationEvent) -> CreatedEvent:
        await asyncio.sleep(0)
        self.create_calls.append(event)
        if event.ical_uid in self.reject_uids:
            raise CreateEventError(f"Rejected {event.ical_uid}", status_code=400)
        body = event.to_request_body()
        return CreatedEvent.model_validate(
            {
                "id": f"id-{event.ical_uid}",
                "status": "confirmed",
                "iCalUID": event.ical_uid,
                "start": body["start"],
                "end": body["end"],
            }
        )

    async def list_instances_by_original_start(
        self, event_id: str, original_start: str
    ) -> list[DestinationInstance]:
        await asyncio.sleep(0)
        self.original_start_queries.append((event_id, original_start))
        if original_start in self.failing_starts:
            raise DestinationAPIError(f"Lookup failed for {original_start}", status_code=500)
        return list(self.instances_by_start.get(original_start, []))

    async def list_instances_in_window(
        self, event_id: str, time_min: str, time_max: str
    ) -> list[DestinationInstance]:
        await asyncio.sleep(0)
        self.window_queries.append((event_id, time_min, time_max))
        return list(self.window_instances)

    async def update_instance(self, event_id: str, instance: DestinationInstance) -> None:
        await asyncio.sleep(0)
        self.updates.append((event_id, instance))

    async def list_calendars(self) -> list[CalendarListEntry]:
        return list(self.calendars)

    @property
    def cancelled_ids(self) -> list[str]:
        return sorted(instance.id for _, instance in self.updates if instance.status == "cancelled")


class SeriesDestination(FakeDestination):
    """FakeDestination that expands created series into instances.

    Occurrences are the civil times of the first RRULE placed in the created
    event's ``timeZone``. Exact lookups compare instants, not strings, and
    window lookups keep instances ending after ``time_min`` and starting
    before ``time_max``.
    """

    MAX_INSTANCES = 400

    def __init__(self) -> None:
        super().__init__()
        self.series: dict[str, list[tuple[dt.datetime, dt.datetime, DestinationInstance]]] = {}

    async def create_event(self, event: DestinationEvent) -> CreatedEvent:
        created = await super().create_event(event)
        if event.recurrence and created.is_timed:
            zone = ZoneInfo(created.start.time_zone)
            rule = rrulestr(event.recurrence[0], dtstart=created.start.naive_datetime())
            instances = []
            for civil in islice(rule, self.MAX_INSTANCES):
                begin = civil.replace(tzinfo=zone)
                instance = DestinationInstance.model_validate(
                    {
                        "id": f"inst-{begin.date().isoformat()}",
                        "status": "confirmed",
                        "originalStartTime": {"dateTime": begin.isoformat(), "timeZone": created.start.time_zone},
                    }
                )
                instances.append((begin, begin + created.duration(), instance))
            self.series[created.id] = instances
        return created

    async def list_instances_by_original_start(
        self, event_id: str, original_start: str
    ) -> list[DestinationInstance]:
        found = await super().list_instances_by_original_start(event_id, original_start)
        wanted = dt.datetime.fromisoformat(original_start)
        return found + [instance for begin, _end, instance in self.series.get(event_id, []) if begin == wanted]

    async def list_instances_in_window(
        self, event_id: str, time_min: str, time_max: str
    ) -> list[DestinationInstance]:
        found = await super().list_instances_in_window(event_id, time_min, time_max)
        lower = dt.datetime.fromisoformat(time_min)
        upper = dt.datetime.fromisoformat(time_max)
        return found + [
            instance for begin, end, instance in self.series.get(event_id, []) if end > lower and begin < upper
        ]


def _make_instance(instance_id: str, original_start: Optional[str] = None) -> DestinationInstance:
    """Build a confirmed instance resource as the API returns it."""
    data: dict[str, Any] = {"id": instance_id, "status": "confirmed", "summary": "Standup"}
    if original_start is not None:
        data["originalStartTime"] = {"dateTime": original_start}
    return DestinationInstance.model_validate(data)


@pytest.fixture
def fake_destination() -> FakeDestination:
    """Fresh in-memory destination calendar."""
    return FakeDestination()


@pytest.fixture
def series_destination() -> SeriesDestination:
    """Destination calendar that expands created series into instances."""
    return SeriesDestination()


@pytest.fixture
def make_instance():
    """Factory for instance resources: ``make_instance(id, original_start=None)``."""
    return _make_instance


@pytest.fixture
def fixed_random_bytes():
    """Random-bytes provider returning 0x00..0x0f, for deterministic UUIDs."""

    def provider(n: int) -> bytes:
        return bytes(range(n))

    return provider


@pytest.fixture
def test_timezone() -> str:
    """Return a deterministic timezone identifier for tests.

    Using a fixed timezone string avoids host-local timezone differences
    which can make datetime-sensitive tests flaky.
    """
    return "America/Los_Angeles"


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Remove ICS2GCAL_* variables so the host environment cannot leak into tests."""
    for name in (
        "ICS2GCAL_CALENDAR_ID",
        "ICS2GCAL_ACCESS_TOKEN",
        "ICS2GCAL_TIMEZONE",
        "ICS2GCAL_LOG_LEVEL",
        "ICS2GCAL_DEBUG",
    ):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture(autouse=True)
async def cleanup_shared_http_clients() -> AsyncIterator[None]:
    """Close shared httpx clients after every test."""
    yield
    await close_all_clients()


# ==================== ICS Test Data Fixtures ====================


@pytest.fixture
def sample_ics_simple() -> str:
    """
    Return a simple ICS calendar string with two non-recurring events.

    Returns:
        ICS string with:
        - "Team Meeting" on 2024-01-15 10:00-11:00 UTC with a URL
        - "Offsite" all-day on 2024-01-16
    """
    return """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//ics2gcal Test//EN
BEGIN:VEVENT
UID:test-event-001@ics2gcal.test
DTSTART:20240115T100000Z
DTEND:20240115T110000Z
SUMMARY:Team Meeting
LOCATION:Conference Room A
DESCRIPTION:Weekly team sync meeting
URL:https://meet.example.com/team
DTSTAMP:20240115T090000Z
END:VEVENT
BEGIN:VEVENT
UID:test-event-002@ics2gcal.test
DTSTART;VALUE=DATE:20240116
DTEND;VALUE=DATE:20240117
SUMMARY:Offsite
DTSTAMP:20240115T090000Z
END:VEVENT
END:VCALENDAR
"""


@pytest.fixture
def sample_ics_recurring() -> str:
    """
    Return an ICS string with a weekly recurring event and two excluded dates.

    Returns:
        ICS string with "Standup" every Monday 09:00-09:30 Europe/Berlin,
        five occurrences from 2024-01-08, excluding 2024-01-15 and 2024-01-29.
    """
    return """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//ics2gcal Test//EN
BEGIN:VEVENT
UID:standup-001@ics2gcal.test
DTSTART;TZID=Europe/Berlin:20240108T090000
DTEND;TZID=Europe/Berlin:20240108T093000
RRULE:FREQ=WEEKLY;COUNT=5;BYDAY=MO
EXDATE;TZID=Europe/Berlin:20240115T090000
EXDATE;TZID=Europe/Berlin:20240129T090000
SUMMARY:Standup
DTSTAMP:20240101T000000Z
END:VEVENT
END:VCALENDAR
"""
