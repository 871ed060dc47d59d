"""In-memory device transport for testing."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from zeptrion2mqtt._errors import DeviceUnreachable
from zeptrion2mqtt._models import ChannelId, ChannelLevel, OnOff, StatusReport


def make_report(ch1: int = 0, ch2: int = 0) -> StatusReport:
    """Build a :class:`StatusReport` from two raw levels."""
    return StatusReport(ch1=ChannelLevel(val=ch1), ch2=ChannelLevel(val=ch2))


@dataclass
class FakeTransport:
    """Test double for :class:`~zeptrion2mqtt._transport.DeviceTransport`.

    Attributes:
        report: Returned by :meth:`fetch_report`.
        fetch_error: When set, raised by :meth:`fetch_report` instead.
        command_error: When set, raised by :meth:`send_command`.
        gate: When set, :meth:`fetch_report` waits for it before
            answering, which keeps a fetch in flight for as long as a
            test needs.
        commands: Every ``(channel, command)`` received, in order.
        fetch_count: Number of :meth:`fetch_report` calls started.
    """

    report: StatusReport = field(default_factory=make_report)
    fetch_error: DeviceUnreachable | None = None
    command_error: DeviceUnreachable | None = None
    gate: asyncio.Event | None = None
    commands: list[tuple[ChannelId, OnOff]] = field(default_factory=list)
    fetch_count: int = 0

    async def send_command(self, channel: ChannelId, command: OnOff) -> None:
        self.commands.append((channel, command))
        if self.command_error is not None:
            raise self.command_error

    async def fetch_report(self) -> StatusReport:
        self.fetch_count += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.fetch_error is not None:
            raise self.fetch_error
        return self.report
