"""
FolioScan Backend — Deadline Helper
====================================

What:  Bounds a single awaitable by a timeout and reports expiry as a
       StorageUnavailableError.
Who:   Folder and note services wrap every repository and blob call with it.

Cancellation from the caller (client disconnect, server shutdown) propagates
unchanged; only the deadline itself is translated.
"""

import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

from folioscan.exceptions import StorageUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_with_deadline(
    awaitable: Awaitable[T],
    timeout: Optional[float],
    operation: str,
) -> T:
    """
    Await `awaitable`, giving up after `timeout` seconds.

    Args:
        awaitable: The repository or blob call to run.
        timeout:   Seconds before giving up; None waits indefinitely.
        operation: Short label used in the log line and error context.

    Raises:
        StorageUnavailableError: The deadline passed before the call finished.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("Deadline of %ss exceeded during %s", timeout, operation)
        raise StorageUnavailableError(
            context={"operation": operation, "timeout_seconds": timeout},
        )
