"""HTTP client for downloading ICS calendar files."""

import logging
from typing import Any, Optional
from urllib.parse import urlparse

import httpx

from .core.http_client import ICS_FETCH_HEADERS, build_timeout, get_shared_client
from .exceptions import FetchError

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = ("http", "https")

# Content types calendar servers are known to serve ICS documents with
ICS_CONTENT_TYPES = ("text/calendar", "text/plain", "application/octet-stream", "application/ics")


class IcsFetcher:
    """Async downloader for ICS documents.

    A single GET is made per document. There is no retry: network errors,
    timeouts and non-2xx responses raise ``FetchError`` straight away.
    """

    def __init__(self, settings: Any = None, client: Optional[httpx.AsyncClient] = None) -> None:
        """Initialize ICS fetcher.

        Args:
            settings: Object with an optional ``request_timeout`` attribute (e.g. ``Config``)
            client: HTTP client to use; the shared ``ics_fetch`` client otherwise
        """
        self.settings = settings
        self.client = client
        logger.debug("ICS fetcher initialized (injected client: %s)", client is not None)

    async def _get_client(self) -> httpx.AsyncClient:
        if self.client is None:
            request_timeout = getattr(self.settings, "request_timeout", None)
            self.client = await get_shared_client(
                "ics_fetch", headers=ICS_FETCH_HEADERS, timeout=build_timeout(request_timeout)
            )
        return self.client

    def _validate_url(self, url: str) -> None:
        """Reject anything but absolute http(s) URLs.

        Raises:
            FetchError: URL is blocked
        """
        parsed = urlparse(url)
        if parsed.scheme not in ALLOWED_SCHEMES:
            logger.debug("Blocked non-HTTP(S) URL: %s", url)
            raise FetchError(f"URL blocked: unsupported scheme {parsed.scheme!r}")
        if not parsed.hostname:
            logger.debug("Blocked URL with missing hostname: %s", url)
            raise FetchError("URL blocked: missing hostname")

    async def fetch_text(self, url: str) -> str:
        """Download an ICS document and return its text.

        Args:
            url: HTTP(S) URL of the document

        Returns:
            Document text, decoded using the response charset

        Raises:
            FetchError: Blocked URL, network failure, timeout or non-2xx status
        """
        self._validate_url(url)
        client = await self._get_client()

        logger.debug("Fetching ICS from %s", url)
        try:
            response = await client.get(url)
        except httpx.TimeoutException as e:
            logger.exception("Timeout fetching ICS from %s", url)
            raise FetchError(f"Request timeout: {e}") from e
        except httpx.HTTPError as e:
            logger.exception("Network error fetching ICS from %s", url)
            raise FetchError(f"Network error: {e}") from e

        if not response.is_success:
            logger.error("HTTP %d fetching ICS from %s", response.status_code, url)
            raise FetchError(
                f"HTTP {response.status_code}: {response.reason_phrase}", status_code=response.status_code
            )

        content_type = response.headers.get("content-type", "").lower()
        if content_type and not any(ct in content_type for ct in ICS_CONTENT_TYPES):
            logger.warning("Unexpected content type for ICS: %s", content_type)

        text = response.text
        if "BEGIN:VCALENDAR" not in text[:1024]:
            logger.warning("Response from %s does not look like an ICS document", url)

        logger.debug("Fetched %d characters of ICS from %s", len(text), url)
        return text
