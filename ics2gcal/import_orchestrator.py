"""Import pipeline: iCalendar text in, Google Calendar events out.

Steps, in order:

1. Fetch (``import_from_url`` only)
2. Sanitize and parse, then translate every event
3. Create every event concurrently; for recurring events with excluded dates,
   cancel the matching instances as soon as the event exists

Nothing is written to the destination unless steps 1 and 2 succeed for the
whole document. A rejected create marks the import as failed once all other
creates have finished; events already created are kept.
"""

import datetime as dt
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .calendar.event_translator import EventTranslator
from .calendar.ics_parser import parse_events
from .calendar.models import ExcludedDate
from .calendar.sanitizer import sanitize_ics_text
from .core.async_utils import gather_all_or_raise
from .core.timezone_utils import get_zoneinfo
from .destination.exception_reconciler import ExceptionReconciler, ReconciliationOutcome
from .destination.models import CreatedEvent, DestinationEvent
from .destination.protocols import DestinationCalendar
from .exceptions import CreateEventError, EmptyDocumentError, FetchError, MalformedFormatError
from .fetcher import IcsFetcher

logger = logging.getLogger(__name__)


class ImportStatus(str, Enum):
    """Overall result of one import."""

    IMPORTED = "imported"
    FETCH_FAILED = "fetch_failed"
    MALFORMED = "malformed"
    EMPTY = "empty"
    CREATE_FAILED = "create_failed"


@dataclass
class ImportResult:
    """Outcome of one import.

    ``created_events`` lists every event the destination accepted, including
    on ``CREATE_FAILED``. ``reconciliation`` maps created event ids to the
    outcome of each of their excluded dates.
    """

    status: ImportStatus
    event_count: int = 0
    created_events: list[CreatedEvent] = field(default_factory=list)
    reconciliation: dict[str, list[ReconciliationOutcome]] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status is ImportStatus.IMPORTED


class IcsImporter:
    """Imports iCalendar documents into one destination calendar."""

    def __init__(
        self,
        destination: DestinationCalendar,
        fetcher: Optional[IcsFetcher] = None,
        translator: Optional[EventTranslator] = None,
    ) -> None:
        """Initialize importer.

        Args:
            destination: Calendar to create events in
            fetcher: Downloader used by ``import_from_url``
            translator: Event translator; one using the local timezone otherwise
        """
        self.destination = destination
        self.fetcher = fetcher or IcsFetcher()
        self.translator = translator or EventTranslator()
        default_timezone = get_zoneinfo(self.translator.timezone_name) or dt.UTC
        self.reconciler = ExceptionReconciler(destination, default_timezone)

    async def import_from_url(self, url: str) -> ImportResult:
        """Download a document and import it."""
        try:
            ics_content = await self.fetcher.fetch_text(url)
        except FetchError as e:
            logger.error("Can't download the iCal file from %s: %s", url, e)
            return ImportResult(status=ImportStatus.FETCH_FAILED, error=str(e))
        return await self.import_text(ics_content)

    async def import_text(self, ics_content: str) -> ImportResult:
        """Import every event of an iCalendar document."""
        try:
            document, records = parse_events(sanitize_ics_text(ics_content))
            if not records:
                raise EmptyDocumentError("iCalendar document contains no events")
            translated = [self.translator.translate(record, document.registry) for record in records]
        except MalformedFormatError as e:
            logger.error("The iCal file has an invalid format.")
            logger.debug("Parse failure: %s", e)
            return ImportResult(status=ImportStatus.MALFORMED, error=str(e))
        except EmptyDocumentError as e:
            logger.error("Empty iCal file!")
            return ImportResult(status=ImportStatus.EMPTY, error=str(e))

        logger.info("importing %d events", len(translated))
        result = ImportResult(status=ImportStatus.IMPORTED, event_count=len(translated))

        try:
            await gather_all_or_raise(
                *(self._import_event(event, excluded_dates, result) for event, excluded_dates in translated)
            )
        except CreateEventError as e:
            logger.error("Can't create the event." if len(translated) == 1 else "Can't create the events.")
            logger.error("%s", e)
            result.status = ImportStatus.CREATE_FAILED
            result.error = str(e)
            return result

        logger.info(
            "Imported %d event(s) into %s",
            len(result.created_events),
            getattr(self.destination, "calendar_id", "calendar"),
        )
        return result

    async def _import_event(
        self, event: DestinationEvent, excluded_dates: frozenset[ExcludedDate], result: ImportResult
    ) -> CreatedEvent:
        created = await self.destination.create_event(event)
        result.created_events.append(created)

        if excluded_dates:
            result.reconciliation[created.id] = await self.reconciler.cancel_excluded_dates(created, excluded_dates)
        return created
