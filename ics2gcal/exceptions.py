"""Exception hierarchy for ics2gcal.

Every error raised by the import pipeline derives from ``Ics2GcalError`` so
callers can catch the whole family at once. How each one is handled:

- ``FetchError`` and ``MalformedFormatError`` abort an import before anything
  is written to the destination.
- ``EmptyDocumentError`` marks a document that parsed but holds no events.
- ``CreateEventError`` marks the batch as failed; events created before it
  stay in the destination.
- Other ``DestinationAPIError`` instances raised while cancelling excluded
  dates are swallowed per date.

An ambiguous fallback match during reconciliation is not an error and has no
exception type.
"""

from typing import Optional


class Ics2GcalError(Exception):
    """Base exception for all ics2gcal errors."""


class ConfigurationError(Ics2GcalError):
    """Configuration is missing or invalid (calendar id, token, config file)."""


class FetchError(Ics2GcalError):
    """The iCalendar document could not be downloaded.

    Raised for network failures, blocked URLs and any non-2xx response.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedFormatError(Ics2GcalError):
    """The iCalendar text could not be parsed or its recurrence expanded."""


class EmptyDocumentError(Ics2GcalError):
    """The iCalendar text parsed successfully but contains no events."""


class DestinationAPIError(Ics2GcalError):
    """The destination calendar rejected a request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CreateEventError(DestinationAPIError):
    """The destination calendar rejected the creation of an event."""
