"""Single-slot expiring cache with a coalesced refill.

:class:`ExpiringCache` holds one value and the monotonic time it was
stored.  While the value is younger than ``ttl`` it is served without
calling the refill function.  Once it has expired, the first caller
starts a refill task and every caller that arrives before that task
finishes awaits the *same* task, so at most one refill per generation
is in flight and all waiters share its outcome, success or failure.

A failed refill changes nothing: the last good value is kept (see
:attr:`ExpiringCache.value`) but the slot stays expired, so the next
``get()`` tries again instead of serving a stale report.

:meth:`ExpiringCache.invalidate` starts a new generation.  A refill
started before it may still finish and answer the callers that were
already waiting, but it neither fills the slot nor is joined by
callers arriving after the invalidation; those start a fresh refill.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

from zeptrion2mqtt._clock import ClockPort
from zeptrion2mqtt._models import StatusReport
from zeptrion2mqtt._transport import DeviceTransport

logger = logging.getLogger(__name__)

T = TypeVar("T")

CACHE_TTL = 5.0
"""Seconds a fetched status report is served without a new request."""


class ExpiringCache(Generic[T]):
    """Time-bounded single value with exactly one refill per expiry.

    Args:
        refill: Coroutine function producing a fresh value.  Its
            exceptions propagate to every waiting caller.
        clock: Monotonic clock for the age check.
        ttl: Maximum age, in seconds, of a value served from the slot.
    """

    def __init__(
        self,
        refill: Callable[[], Awaitable[T]],
        *,
        clock: ClockPort,
        ttl: float,
    ) -> None:
        self._refill = refill
        self._clock = clock
        self._ttl = ttl
        self._value: T | None = None
        self._stored_at: float | None = None
        self._generation = 0
        self._pending: asyncio.Task[T] | None = None
        self._pending_generation = 0

    @property
    def ttl(self) -> float:
        return self._ttl

    @property
    def value(self) -> T | None:
        """Last successfully refilled value, fresh or not."""
        return self._value

    @property
    def is_fresh(self) -> bool:
        if self._stored_at is None:
            return False
        return self._clock.now() - self._stored_at < self._ttl

    @property
    def refilling(self) -> bool:
        """True while a refill of the current generation is in flight."""
        return self._joinable()

    async def get(self) -> T:
        """Return the cached value, refilling it first if expired.

        Raises:
            Exception: Whatever the in-flight refill raised.
        """
        if self.is_fresh:
            logger.debug("Serving cached value")
            return self._value  # type: ignore[return-value]

        if self._joinable():
            logger.debug("Joining in-flight refill")
        else:
            self._pending_generation = self._generation
            self._pending = asyncio.ensure_future(
                self._refill_slot(self._generation),
            )
            self._pending.add_done_callback(self._clear_pending)

        pending = self._pending
        assert pending is not None
        # shield: a cancelled waiter must not cancel the shared refill.
        return await asyncio.shield(pending)

    def invalidate(self) -> None:
        """Expire the slot now, keeping the last value readable.

        A refill already in flight no longer counts: the next
        :meth:`get` starts a new one.
        """
        self._stored_at = None
        self._generation += 1

    def _joinable(self) -> bool:
        return (
            self._pending is not None
            and not self._pending.done()
            and self._pending_generation == self._generation
        )

    async def _refill_slot(self, generation: int) -> T:
        value = await self._refill()
        if generation == self._generation:
            self._value = value
            self._stored_at = self._clock.now()
        else:
            logger.debug("Discarding value refilled before invalidation")
        return value

    def _clear_pending(self, task: asyncio.Task[T]) -> None:
        if self._pending is task:
            self._pending = None
        # Mark the exception retrieved when every waiter was cancelled.
        if not task.cancelled():
            task.exception()


class StatusCache(ExpiringCache[StatusReport]):
    """Status reports of one device, refilled from its transport."""

    def __init__(
        self,
        transport: DeviceTransport,
        *,
        clock: ClockPort,
        ttl: float = CACHE_TTL,
    ) -> None:
        super().__init__(transport.fetch_report, clock=clock, ttl=ttl)
