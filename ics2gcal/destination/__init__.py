"""Google Calendar side of ics2gcal: API models, client and excluded-date reconciliation."""

from .exception_reconciler import ExceptionReconciler, ReconciliationOutcome
from .gcal_client import GoogleCalendarClient
from .models import CalendarListEntry, CreatedEvent, DestinationEvent, DestinationInstance
from .protocols import DestinationCalendar

__all__ = [
    "CalendarListEntry",
    "CreatedEvent",
    "DestinationCalendar",
    "DestinationEvent",
    "DestinationInstance",
    "ExceptionReconciler",
    "GoogleCalendarClient",
    "ReconciliationOutcome",
]
