"""Deadlines for the blocking parts of the auth flows.

Learn: bcrypt and the database are the only slow things a login does.
Each call is wrapped in asyncio.wait_for so a stuck DB or an overloaded
CPU turns into OperationTimeout (→ 503) instead of a hung request.
bcrypt runs in a worker thread; on timeout that thread finishes in the
background, its result discarded.

Cancellation by the caller is not converted: asyncio.CancelledError
propagates as-is.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, TypeVar

import structlog

from chirpy.auth.errors import OperationTimeout

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass(frozen=True)
class ServiceTimeouts:
    hash_seconds: float = 5.0
    store_seconds: float = 5.0

    @classmethod
    def from_settings(cls, settings) -> "ServiceTimeouts":
        return cls(
            hash_seconds=settings.hash_timeout_seconds,
            store_seconds=settings.store_timeout_seconds,
        )


async def bounded(awaitable: Awaitable[T], seconds: float, op: str) -> T:
    """Await `awaitable`, raising OperationTimeout after `seconds`."""
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError:
        logger.warning("auth.timeout", op=op, timeout_seconds=seconds)
        raise OperationTimeout(f"{op} timed out after {seconds}s")
