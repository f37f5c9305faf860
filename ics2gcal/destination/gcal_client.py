"""Google Calendar API v3 client for ics2gcal."""

import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx

from ics2gcal.core.http_client import API_HEADERS, build_timeout, get_shared_client
from ics2gcal.exceptions import CreateEventError, DestinationAPIError

from .models import CalendarListEntry, CreatedEvent, DestinationEvent, DestinationInstance

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://www.googleapis.com/calendar/v3"

# Upper bound on pages followed for one instance query
MAX_INSTANCE_PAGES = 50


def _error_detail(response: httpx.Response) -> str:
    """Best-effort error message from an API error response."""
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return response.text[:200]


class GoogleCalendarClient:
    """Async client for the subset of the Calendar API the importer needs.

    Requests are sent with the bearer token given at construction. No retry is
    attempted; any non-2xx response raises ``DestinationAPIError``.
    """

    def __init__(
        self,
        access_token: str,
        calendar_id: str,
        http_client: Optional[httpx.AsyncClient] = None,
        base_url: str = DEFAULT_API_BASE_URL,
        request_timeout: Optional[float] = None,
    ) -> None:
        """Initialize client.

        Args:
            access_token: OAuth 2.0 bearer token with calendar scope
            calendar_id: Destination calendar id (``primary`` or an address)
            http_client: Client to use; the shared ``gcal_api`` client otherwise
            base_url: API root, overridable for tests
            request_timeout: Read timeout in seconds for the shared client
        """
        self.calendar_id = calendar_id
        self.base_url = base_url.rstrip("/")
        self._access_token = access_token
        self._client = http_client
        self._request_timeout = request_timeout

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = await get_shared_client(
                "gcal_api", headers=API_HEADERS, timeout=build_timeout(self._request_timeout)
            )
        return self._client

    def _events_url(self, *parts: str) -> str:
        segments = ["calendars", quote(self.calendar_id, safe=""), "events"]
        segments.extend(quote(part, safe="") for part in parts)
        return f"{self.base_url}/{'/'.join(segments)}"

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Optional[dict[str, Any]] = None,
        error_class: type[DestinationAPIError] = DestinationAPIError,
    ) -> Any:
        client = await self._get_client()
        headers = {"Authorization": f"Bearer {self._access_token}"}

        try:
            response = await client.request(method, url, params=params, json=json, headers=headers)
        except httpx.HTTPError as e:
            logger.exception("%s %s failed", method, url)
            raise error_class(f"Request to Google Calendar failed: {e}") from e

        if not response.is_success:
            detail = _error_detail(response)
            logger.error("%s %s returned HTTP %d: %s", method, url, response.status_code, detail)
            raise error_class(
                f"Google Calendar returned HTTP {response.status_code}: {detail}",
                status_code=response.status_code,
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise error_class(f"Invalid JSON from Google Calendar: {e}") from e

    async def list_instances_by_original_start(
        self, event_id: str, original_start: str
    ) -> list[DestinationInstance]:
        """Instances of a recurring event at one original start time.

        Args:
            event_id: Id of the created recurring event
            original_start: RFC 3339 start of the instance in the series
        """
        payload = await self._request(
            "GET",
            self._events_url(event_id, "instances"),
            params={"originalStart": original_start},
        )
        return [DestinationInstance.model_validate(item) for item in payload.get("items", [])]

    async def list_instances_in_window(
        self, event_id: str, time_min: str, time_max: str
    ) -> list[DestinationInstance]:
        """Instances overlapping a time window, following result pages.

        ``time_min`` bounds the instance end and ``time_max`` the instance
        start, as the API defines them.
        """
        params: dict[str, Any] = {"timeMin": time_min, "timeMax": time_max}
        instances: list[DestinationInstance] = []

        for _ in range(MAX_INSTANCE_PAGES):
            payload = await self._request("GET", self._events_url(event_id, "instances"), params=params)
            instances.extend(DestinationInstance.model_validate(item) for item in payload.get("items", []))
            page_token = payload.get("nextPageToken")
            if not page_token:
                break
            params = {**params, "pageToken": page_token}
        else:
            logger.warning("Stopped following instance pages for %s after %d pages", event_id, MAX_INSTANCE_PAGES)

        return instances

    async def create_event(self, event: DestinationEvent) -> CreatedEvent:
        """Import one event into the destination calendar.

        Raises:
            CreateEventError: The API rejected the event
        """
        payload = await self._request(
            "POST",
            self._events_url("import"),
            json=event.to_request_body(),
            error_class=CreateEventError,
        )
        try:
            created = CreatedEvent.model_validate(payload)
        except ValueError as e:
            raise CreateEventError(f"Unexpected event resource from Google Calendar: {e}") from e
        logger.debug("Created event %s for iCalUID %s", created.id, event.ical_uid)
        return created

    async def update_instance(self, event_id: str, instance: DestinationInstance) -> None:
        """PUT an instance back, e.g. after setting its status to cancelled."""
        await self._request("PUT", self._events_url(instance.id), json=instance.to_request_body())
        logger.debug("Updated instance %s of event %s (status=%s)", instance.id, event_id, instance.status)

    async def list_calendars(self) -> list[CalendarListEntry]:
        """Calendar list of the authenticated user, following result pages."""
        url = f"{self.base_url}/users/me/calendarList"
        params: dict[str, Any] = {}
        entries: list[CalendarListEntry] = []

        while True:
            payload = await self._request("GET", url, params=params or None)
            entries.extend(CalendarListEntry.model_validate(item) for item in payload.get("items", []))
            page_token = payload.get("nextPageToken")
            if not page_token:
                return entries
            params = {"pageToken": page_token}
