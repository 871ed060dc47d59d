"""Command submission to the device.

A successful command does not touch channel state directly: the
device needs a moment before its status report reflects the change,
so :class:`CommandDispatcher` schedules a refresh ``REFRESH_DELAY``
seconds later and the reconciler publishes whatever that refresh
reads back.
"""

from __future__ import annotations

import asyncio
import logging

from zeptrion2mqtt._models import ChannelId, OnOff
from zeptrion2mqtt._scheduler import Job, SchedulerPort
from zeptrion2mqtt._transport import DeviceTransport

logger = logging.getLogger(__name__)

REFRESH_DELAY = 0.5
"""Seconds between an accepted command and the status refresh."""


class CommandDispatcher:
    """Sends on/off commands and schedules the follow-up refresh.

    Commands are sent one at a time, in the order ``dispatch`` was
    called, so a quick ON followed by OFF reaches the device in that
    order.

    Args:
        transport: Device transport used for the POST.
        scheduler: Where the delayed refresh is scheduled.
        refresh: Job run after an accepted command.
        delay: Seconds to wait before *refresh* runs.
    """

    def __init__(
        self,
        transport: DeviceTransport,
        scheduler: SchedulerPort,
        refresh: Job,
        *,
        delay: float = REFRESH_DELAY,
    ) -> None:
        self._transport = transport
        self._scheduler = scheduler
        self._refresh = refresh
        self._delay = delay
        self._lock = asyncio.Lock()

    async def dispatch(self, channel: ChannelId, command: OnOff) -> None:
        """Send *command* for *channel*; on success schedule a refresh.

        Raises:
            DeviceUnreachable: If the device did not accept the command.
                No refresh is scheduled in that case.
        """
        async with self._lock:
            await self._transport.send_command(channel, command)
        logger.debug(
            "Command %s accepted for %s, refreshing in %.1fs",
            command,
            channel,
            self._delay,
        )
        self._scheduler.schedule(self._refresh, self._delay)
