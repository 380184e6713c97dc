"""
Deadline helper for store and collaborator calls.
"""
import asyncio
from typing import Awaitable, Optional, TypeVar

from twinlink.core.exceptions import OperationTimeout

T = TypeVar("T")


async def with_timeout(
    awaitable: Awaitable[T],
    timeout_seconds: Optional[float],
    operation: str
) -> T:
    """
    Await ``awaitable`` within ``timeout_seconds``.

    A None or non-positive timeout disables the deadline.

    Raises:
        OperationTimeout: If the deadline expires first
    """
    if timeout_seconds is None or timeout_seconds <= 0:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_seconds)
    except asyncio.TimeoutError as e:
        raise OperationTimeout(operation, timeout_seconds) from e
