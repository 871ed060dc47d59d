"""Device synchronisation: commands out, reported state back in.

:class:`DeviceSyncController` wires the three parts of one device::

    handle_command(ch, ON/OFF) ─► CommandDispatcher ─► POST
                                        │ 200
                                        └─► +0.5 s refresh ─┐
    handle_command(ch, REFRESH) ──────────► refresh ────────┤
                                                            ▼
                                  StatusCache.get() ─► StateReconciler

Failures never leave the controller as exceptions.  Any
:class:`~zeptrion2mqtt._errors.DeviceUnreachable` turns into an
``offline`` reachability (with the error message as detail), a log
line, and an error event when an :class:`ErrorPublisher` is given.
"""

from __future__ import annotations

import logging

from zeptrion2mqtt._cache import CACHE_TTL, StatusCache
from zeptrion2mqtt._clock import ClockPort
from zeptrion2mqtt._dispatcher import REFRESH_DELAY, CommandDispatcher
from zeptrion2mqtt._errors import (
    DeviceUnreachable,
    ErrorPublisher,
    MalformedResponse,
    UnsupportedChannel,
)
from zeptrion2mqtt._health import Reachability
from zeptrion2mqtt._models import ChannelId, Command, OnOff, StatusReport
from zeptrion2mqtt._reconciler import ChannelSink, ReachabilitySink, StateReconciler
from zeptrion2mqtt._scheduler import SchedulerPort
from zeptrion2mqtt._transport import DeviceTransport

logger = logging.getLogger(__name__)


class DeviceSyncController:
    """Keeps one two-channel device and its published state in sync.

    Args:
        transport: Device transport (command POST, status GET).
        channels: Sink for channel ON/OFF state.
        reachability: Sink for the device's reachability.
        scheduler: Runs refreshes and the startup probe off the
            caller's coroutine.
        clock: Monotonic clock for the status cache.
        errors: Optional publisher for error events.
        probe_on_startup: When True, :meth:`initialize` fetches one
            report before settling online/offline; when False it
            reports online without network access.
        cache_ttl: Status cache lifetime in seconds.
        refresh_delay: Delay between an accepted command and its refresh.
    """

    def __init__(
        self,
        *,
        transport: DeviceTransport,
        channels: ChannelSink,
        reachability: ReachabilitySink,
        scheduler: SchedulerPort,
        clock: ClockPort,
        errors: ErrorPublisher | None = None,
        probe_on_startup: bool = True,
        cache_ttl: float = CACHE_TTL,
        refresh_delay: float = REFRESH_DELAY,
    ) -> None:
        self._reachability = reachability
        self._scheduler = scheduler
        self._errors = errors
        self._probe_on_startup = probe_on_startup
        self._cache = StatusCache(transport, clock=clock, ttl=cache_ttl)
        self._dispatcher = CommandDispatcher(
            transport,
            scheduler,
            self._refresh_after_command,
            delay=refresh_delay,
        )
        self._reconciler = StateReconciler(channels, reachability)

    @property
    def cache(self) -> StatusCache:
        return self._cache

    async def initialize(self) -> None:
        """Report ``unknown`` now and settle the real status in the background."""
        await self._reachability.set_reachability(Reachability.UNKNOWN)
        self._scheduler.execute(self._startup_probe)

    async def handle_command(self, channel: str, command: Command) -> None:
        """Handle an inbound *command* addressed to *channel*.

        ``REFRESH`` re-reads the whole device whatever the channel.
        ON/OFF for a channel the device lacks is ignored.  Awaits the
        command POST, so it may take up to the request timeout.
        """
        if command is Command.REFRESH:
            self._scheduler.execute(self.refresh)
            return

        try:
            channel_id = ChannelId.parse(channel)
        except UnsupportedChannel:
            logger.debug("Ignoring %s for unsupported channel %r", command, channel)
            return

        try:
            await self._dispatcher.dispatch(channel_id, OnOff(command.value))
        except DeviceUnreachable as exc:
            await self._mark_offline(exc)

    async def refresh(self) -> None:
        """Read the status report (cached or fresh) and reconcile it."""
        report: StatusReport | None = None
        try:
            report = await self._cache.get()
        except DeviceUnreachable as exc:
            await self._mark_offline(exc)
        await self._reconciler.reconcile(report)

    async def _refresh_after_command(self) -> None:
        # The device state changed; a report cached before the command is stale.
        self._cache.invalidate()
        await self.refresh()

    async def _startup_probe(self) -> None:
        if not self._probe_on_startup:
            await self._reachability.set_reachability(Reachability.ONLINE)
            return
        await self.refresh()

    async def _mark_offline(self, exc: DeviceUnreachable) -> None:
        if isinstance(exc, MalformedResponse):
            logger.error("Device sent a malformed status report: %s", exc)
        else:
            logger.warning("Device unreachable: %s", exc)
        await self._reachability.set_reachability(Reachability.OFFLINE, str(exc))
        if self._errors is not None:
            await self._errors.publish(exc)
