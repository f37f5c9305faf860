"""Protocol describing the destination calendar operations used by the importer."""

from typing import Protocol, runtime_checkable

from .models import CalendarListEntry, CreatedEvent, DestinationEvent, DestinationInstance


@runtime_checkable
class DestinationCalendar(Protocol):
    """Calendar the importer writes to.

    Implemented by ``GoogleCalendarClient``; tests use an in-memory fake.
    Implementations raise ``DestinationAPIError`` (``CreateEventError`` for
    ``create_event``) when the remote side rejects a request.
    """

    async def list_instances_by_original_start(
        self, event_id: str, original_start: str
    ) -> list[DestinationInstance]:
        """Instances of ``event_id`` whose original start equals ``original_start`` (RFC 3339)."""
        ...

    async def list_instances_in_window(
        self, event_id: str, time_min: str, time_max: str
    ) -> list[DestinationInstance]:
        """Instances ending after ``time_min`` and starting before ``time_max``."""
        ...

    async def create_event(self, event: DestinationEvent) -> CreatedEvent:
        """Import one event and return the created resource."""
        ...

    async def update_instance(self, event_id: str, instance: DestinationInstance) -> None:
        """Write back a modified instance of ``event_id``."""
        ...

    async def list_calendars(self) -> list[CalendarListEntry]:
        """Calendars visible to the authenticated user."""
        ...
