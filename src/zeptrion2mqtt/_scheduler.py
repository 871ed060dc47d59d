"""Deferred job execution on the event loop.

Commands, delayed refreshes and status fetches all run as jobs on a
:class:`SchedulerPort`, never on the coroutine that received the
inbound message.  A job is a zero-argument coroutine function.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[None]]


@runtime_checkable
class SchedulerPort(Protocol):
    """"Run now" and "run after a delay" primitives."""

    def execute(self, job: Job) -> None:
        """Run *job* as soon as possible."""
        ...

    def schedule(self, job: Job, delay: float) -> None:
        """Run *job* no earlier than *delay* seconds from now."""
        ...


class AsyncioScheduler:
    """:class:`SchedulerPort` running every job as an ``asyncio.Task``.

    Pending tasks are tracked so that :meth:`join` can wait for them at
    shutdown.  A job that raises is logged with its traceback; the
    exception never reaches the event loop's default handler.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        """Number of jobs not yet finished (delayed ones included)."""
        return len(self._tasks)

    def execute(self, job: Job) -> None:
        self._spawn(self._run(job))

    def schedule(self, job: Job, delay: float) -> None:
        self._spawn(self._run_later(job, delay))

    async def join(self) -> None:
        """Wait until every job, including ones spawned meanwhile, is done.

        Nothing is cancelled: in-flight requests finish or hit their
        own timeout.
        """
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _spawn(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @staticmethod
    async def _run(job: Job) -> None:
        try:
            await job()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Scheduled job %r failed", job)

    @classmethod
    async def _run_later(cls, job: Job, delay: float) -> None:
        await asyncio.sleep(delay)
        await cls._run(job)
