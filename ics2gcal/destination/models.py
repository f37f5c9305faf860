"""Google Calendar API v3 resource models for ics2gcal."""

from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class EventDateTime(BaseModel):
    """Start or end of an event: either ``date`` or ``dateTime`` (+ ``timeZone``)."""

    date: Optional[str] = None
    date_time: Optional[str] = Field(default=None, alias="dateTime")
    time_zone: Optional[str] = Field(default=None, alias="timeZone")

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @property
    def is_timed(self) -> bool:
        return self.date_time is not None

    def naive_datetime(self) -> Optional[datetime]:
        """Civil date-time with any UTC offset discarded."""
        if self.date_time is None:
            return None
        return datetime.fromisoformat(self.date_time).replace(tzinfo=None)


class Reminders(BaseModel):
    """Reminder settings; imported events always use the calendar defaults."""

    use_default: bool = Field(default=True, alias="useDefault")

    model_config = ConfigDict(populate_by_name=True)


class DestinationEvent(BaseModel):
    """Body of an ``events.import`` request."""

    ical_uid: str = Field(..., alias="iCalUID", description="Source UID or generated UUID v4")
    start: EventDateTime
    end: EventDateTime
    summary: Optional[str] = None
    location: Optional[str] = None
    description: str = ""
    recurrence: Optional[list[str]] = None
    reminders: Reminders = Field(default_factory=Reminders)

    model_config = ConfigDict(populate_by_name=True)

    def to_request_body(self) -> dict[str, Any]:
        """Serialize with API field names, leaving out unset optional fields."""
        return self.model_dump(by_alias=True, exclude_none=True)


class InstanceStatus(str, Enum):
    """Event/instance status values used by the API."""

    CONFIRMED = "confirmed"
    TENTATIVE = "tentative"
    CANCELLED = "cancelled"


class CreatedEvent(BaseModel):
    """Event resource returned after a successful import.

    Unknown fields are preserved so the resource can be sent back unchanged.
    """

    id: str
    status: Optional[str] = None
    start: EventDateTime = Field(default_factory=EventDateTime)
    end: EventDateTime = Field(default_factory=EventDateTime)
    recurrence: Optional[list[str]] = None

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @property
    def is_timed(self) -> bool:
        return self.start.is_timed

    def duration(self) -> timedelta:
        """Length of the event from its ``dateTime`` strings.

        The UTC offsets of start and end are ignored, so the result is only
        exact when both are expressed in the same zone. Google returns them
        that way for imported events.
        """
        start = self.start.naive_datetime()
        end = self.end.naive_datetime()
        if start is None or end is None:
            return timedelta(0)
        return end - start


class DestinationInstance(BaseModel):
    """One instance of a recurring event, as returned by ``events.instances``.

    The full resource is kept (``extra="allow"``) because cancelling is done by
    PUTting the instance back with ``status`` changed.
    """

    id: str
    status: Optional[str] = None
    original_start_time: Optional[EventDateTime] = Field(default=None, alias="originalStartTime")

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @property
    def is_cancelled(self) -> bool:
        return self.status == InstanceStatus.CANCELLED.value

    def cancelled(self) -> "DestinationInstance":
        """Copy of this instance with its status set to cancelled."""
        return self.model_copy(update={"status": InstanceStatus.CANCELLED.value})

    def to_request_body(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


WRITABLE_ACCESS_ROLES = frozenset({"owner", "writer"})


class CalendarListEntry(BaseModel):
    """Entry of the user's calendar list."""

    id: str
    summary: str = ""
    access_role: str = Field(default="reader", alias="accessRole")
    selected: bool = False
    primary: bool = False

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @property
    def is_writable(self) -> bool:
        return self.access_role in WRITABLE_ACCESS_ROLES
