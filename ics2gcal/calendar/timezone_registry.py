"""Parse-scoped registry of timezones referenced by TZID parameters.

A fresh registry is created for every parsed document. VTIMEZONE components
of that document are registered first, so that DTSTART/DTEND/EXDATE values
carrying a custom TZID can be resolved afterwards. Nothing is shared between
imports.
"""

import logging
from datetime import tzinfo
from typing import Optional

from icalendar import Timezone

from ics2gcal.core.timezone_utils import get_zoneinfo

logger = logging.getLogger(__name__)


class TimezoneRegistry:
    """Maps TZID strings to tzinfo objects for one parse operation."""

    def __init__(self) -> None:
        self._zones: dict[str, tzinfo] = {}

    def __contains__(self, tzid: object) -> bool:
        return tzid in self._zones

    def __len__(self) -> int:
        return len(self._zones)

    @property
    def tzids(self) -> list[str]:
        """TZIDs registered from VTIMEZONE components, in registration order."""
        return list(self._zones)

    def register(self, vtimezone: Timezone) -> Optional[tzinfo]:
        """Register a VTIMEZONE component under its TZID.

        A definition icalendar cannot convert is logged and skipped; values
        referencing it then fall back to name-based resolution.

        Returns:
            The registered tzinfo, or None when the component was skipped
        """
        tzid = str(vtimezone.get("TZID", "")).strip()
        if not tzid:
            logger.warning("Skipping VTIMEZONE without TZID")
            return None

        try:
            zone = vtimezone.to_tz()
        except Exception as e:
            # icalendar raises assorted errors for broken STANDARD/DAYLIGHT blocks
            logger.warning("Could not build timezone %r from VTIMEZONE: %s", tzid, e)
            return None

        self._zones[tzid] = zone
        logger.debug("Registered VTIMEZONE %r", tzid)
        return zone

    def resolve(self, tzid: Optional[str]) -> Optional[tzinfo]:
        """Resolve a TZID to a tzinfo.

        Order: registered VTIMEZONE, IANA name, Windows name or alias.

        Returns:
            tzinfo, or None when the TZID is unknown (value is then floating)
        """
        if not tzid:
            return None
        if tzid in self._zones:
            return self._zones[tzid]

        zone = get_zoneinfo(tzid)
        if zone is None:
            logger.debug("Unknown TZID %r; treating value as floating time", tzid)
        return zone
