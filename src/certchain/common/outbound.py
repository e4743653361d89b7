"""Bounded outbound calls: a timeout on everything, one retry for idempotent reads."""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from certchain.common.exceptions import OutboundTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def bounded(operation: str, awaitable: Awaitable[T], timeout: float) -> T:
    """Await with a deadline; a timeout surfaces as OutboundTimeoutError."""
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        raise OutboundTimeoutError(operation, timeout) from None


async def read_with_retry(
    operation: str,
    call: Callable[[], Awaitable[T]],
    timeout: float,
    retries: int = 1,
) -> T:
    """Run an idempotent read, retrying on failure. Never use for writes."""
    attempt = 0
    while True:
        try:
            return await bounded(operation, call(), timeout)
        except Exception as exc:
            if attempt >= retries:
                raise
            attempt += 1
            logger.warning("%s failed (attempt %d), retrying: %s", operation, attempt, exc)
