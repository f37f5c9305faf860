"""Shared httpx client manager for ics2gcal.

One pooled ``httpx.AsyncClient`` is kept per client id so that the document
fetch and the many small Google Calendar requests of one import reuse
connections instead of opening a client per request.
"""

import asyncio
import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

_shared_clients: dict[str, httpx.AsyncClient] = {}
_client_lock = asyncio.Lock()

DEFAULT_LIMITS = httpx.Limits(
    max_connections=10,
    max_keepalive_connections=5,
)

DEFAULT_TIMEOUT = httpx.Timeout(
    connect=10.0,
    read=30.0,
    write=10.0,
    pool=30.0,
)

USER_AGENT = "ics2gcal/0.1 (+https://github.com/ics2gcal/ics2gcal)"

# Some calendar hosts (notably Office365) reject requests that do not look
# like they come from a browser or calendar client.
ICS_FETCH_HEADERS: dict[str, str] = {
    "User-Agent": USER_AGENT,
    "Accept": "text/calendar, text/plain, application/octet-stream, */*",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
}

API_HEADERS: dict[str, str] = {
    "User-Agent": USER_AGENT,
    "Accept": "application/json",
}


def build_timeout(request_timeout: Optional[float]) -> httpx.Timeout:
    """Return the default timeout with the read timeout replaced when given."""
    if request_timeout is None:
        return DEFAULT_TIMEOUT
    return httpx.Timeout(connect=10.0, read=float(request_timeout), write=10.0, pool=30.0)


async def get_shared_client(
    client_id: str = "default",
    headers: Optional[dict[str, str]] = None,
    timeout: Optional[httpx.Timeout] = None,
) -> httpx.AsyncClient:
    """Get or create a shared HTTP client with connection pooling.

    Args:
        client_id: Identifier for the client (one pool per id)
        headers: Default headers for a newly created client
        timeout: Timeout configuration for a newly created client

    Returns:
        Shared httpx.AsyncClient

    Raises:
        RuntimeError: If client creation fails
    """
    async with _client_lock:
        client = _shared_clients.get(client_id)
        if client is None or client.is_closed:
            try:
                client = httpx.AsyncClient(
                    limits=DEFAULT_LIMITS,
                    timeout=timeout or DEFAULT_TIMEOUT,
                    follow_redirects=True,
                    verify=True,
                    headers=headers or API_HEADERS,
                )
            except Exception as e:
                logger.exception("Failed to create shared HTTP client '%s'", client_id)
                raise RuntimeError(f"Failed to create shared HTTP client: {e}") from e
            _shared_clients[client_id] = client
            logger.debug("Created shared HTTP client '%s'", client_id)

        return client


async def close_all_clients() -> None:
    """Close all shared HTTP clients.

    Called at the end of a CLI run (and by the test suite) so that pooled
    connections are released.
    """
    async with _client_lock:
        for client_id, client in _shared_clients.items():
            try:
                if not client.is_closed:
                    await client.aclose()
                    logger.debug("Closed shared HTTP client '%s'", client_id)
            except Exception as e:
                logger.warning("Error closing shared HTTP client '%s': %s", client_id, e)

        _shared_clients.clear()
