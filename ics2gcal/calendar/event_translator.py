"""Translation of parsed iCalendar events into Google Calendar event bodies."""

import logging
import os
import uuid
from collections.abc import Callable
from typing import Optional

from ics2gcal.core.timezone_utils import get_local_timezone
from ics2gcal.destination.models import DestinationEvent, EventDateTime

from .models import CivilTimestamp, EventRecord, ExcludedDate
from .recurrence import extract_recurrence
from .timezone_registry import TimezoneRegistry

logger = logging.getLogger(__name__)

# Returns n random bytes; injectable so tests can pin the generated identifier
RandomBytesProvider = Callable[[int], bytes]


def generate_uuid4(random_bytes: RandomBytesProvider = os.urandom) -> str:
    """Build a version 4, variant 1 UUID string from 16 random bytes."""
    raw = bytearray(random_bytes(16))
    if len(raw) != 16:
        raise ValueError(f"Expected 16 random bytes, got {len(raw)}")
    raw[6] = 0x40 | (raw[6] & 0x0F)
    raw[8] = 0x80 | (raw[8] & 0x3F)
    return str(uuid.UUID(bytes=bytes(raw)))


class EventTranslator:
    """Maps an EventRecord onto the Google Calendar event representation.

    Timed values are sent as the source's civil time paired with the
    configured zone (the local system zone by default), not the source
    event's own zone. Translating arbitrary VTIMEZONE definitions (Outlook
    embeds full Windows zone definitions in every file) into IANA zones is not
    attempted, so events authored in another zone keep their wall-clock time.
    """

    def __init__(
        self,
        timezone_name: Optional[str] = None,
        random_bytes: RandomBytesProvider = os.urandom,
    ) -> None:
        """Initialize translator.

        Args:
            timezone_name: IANA zone for destination time fields; guessed from
                the local system when omitted
            random_bytes: Source of random bytes for events without a UID
        """
        self.timezone_name = timezone_name or get_local_timezone()
        self._random_bytes = random_bytes
        logger.debug("Event translator using timezone %s", self.timezone_name)

    def translate(
        self, record: EventRecord, registry: TimezoneRegistry
    ) -> tuple[DestinationEvent, frozenset[ExcludedDate]]:
        """Translate one event.

        Args:
            record: Parsed event
            registry: Timezone registry of the document the event came from

        Returns:
            The destination event body and the dates to cancel once it exists

        Raises:
            MalformedFormatError: The event's recurrence cannot be expanded
        """
        event = DestinationEvent(
            ical_uid=record.uid or generate_uuid4(self._random_bytes),
            start=self._event_datetime(record.start),
            end=self._event_datetime(record.end),
        )

        excluded_dates: frozenset[ExcludedDate] = frozenset()
        if record.is_recurring:
            recurrence = extract_recurrence(record, registry)
            event.recurrence = recurrence.rules
            excluded_dates = recurrence.excluded_dates

        if record.summary:
            event.summary = record.summary
        if record.location:
            event.location = record.location
        if record.description:
            event.description = record.description
        if record.url:
            event.description = f"{event.description}\n\n{record.url}" if event.description else record.url

        return event, excluded_dates

    def _event_datetime(self, timestamp: CivilTimestamp) -> EventDateTime:
        if timestamp.is_date:
            return EventDateTime(date=timestamp.to_ical_string())
        return EventDateTime(date_time=timestamp.to_ical_string(), time_zone=self.timezone_name)
