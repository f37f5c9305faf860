"""Join primitives for concurrent fan-out in ics2gcal.

Two policies are used by the import pipeline and must not be interchanged:

- ``gather_all_or_raise``: event-batch level. Every awaitable runs to
  completion, then the first failure (in submission order) is re-raised.
  Work that already succeeded is not undone.
- ``gather_settled``: excluded-date level. Every awaitable runs to completion
  and failures are logged and returned in place of results; nothing is raised.

Neither primitive applies a timeout or cancels siblings on failure.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def gather_all_or_raise(*aws: Awaitable[T]) -> list[T]:
    """Wait for all awaitables, then raise the first failure if any occurred.

    Args:
        *aws: Coroutines or futures to run concurrently

    Returns:
        Results in submission order when every awaitable succeeded

    Raises:
        BaseException: The first exception in submission order
    """
    results = await asyncio.gather(*aws, return_exceptions=True)
    failures = [r for r in results if isinstance(r, BaseException)]
    if failures:
        if len(failures) > 1:
            logger.debug("%d of %d tasks failed; raising the first", len(failures), len(results))
        raise failures[0]
    return list(results)


async def gather_settled(*aws: Awaitable[T], label: str = "task") -> list[Any]:
    """Wait for all awaitables and return settled results without raising.

    Failures are logged at WARNING and appear in the returned list as the
    exception instances. Cancellation of the caller still propagates.

    Args:
        *aws: Coroutines or futures to run concurrently
        label: Short description used in log messages

    Returns:
        List of results or exception instances, in submission order
    """
    results = await asyncio.gather(*aws, return_exceptions=True)
    for index, result in enumerate(results):
        if isinstance(result, asyncio.CancelledError):
            raise result
        if isinstance(result, Exception):
            logger.warning("%s %d failed and was skipped: %s", label, index, result)
    return list(results)
