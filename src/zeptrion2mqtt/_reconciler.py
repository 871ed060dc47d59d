"""Applies status reports to published channel state.

:class:`StateReconciler` is the only writer of channel state.  A
report publishes both channels and marks the device online; a missing
report (the fetch failed) publishes nothing, because the component
that saw the failure already marked the device offline and the last
published channel values must stay visible.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from zeptrion2mqtt._health import Reachability
from zeptrion2mqtt._models import ChannelId, OnOff, StatusReport
from zeptrion2mqtt._mqtt import MqttPort

logger = logging.getLogger(__name__)


@runtime_checkable
class ChannelSink(Protocol):
    """Receives the ON/OFF state of one channel."""

    async def publish_channel(self, channel: ChannelId, state: OnOff) -> None: ...


@runtime_checkable
class ReachabilitySink(Protocol):
    """Receives the device's reachability status."""

    async def set_reachability(
        self,
        status: Reachability,
        detail: str | None = None,
    ) -> None: ...


class StateReconciler:
    """Publishes channel states and reachability from a report."""

    def __init__(
        self,
        channels: ChannelSink,
        reachability: ReachabilitySink,
    ) -> None:
        self._channels = channels
        self._reachability = reachability

    async def reconcile(self, report: StatusReport | None) -> None:
        """Publish *report*, or do nothing when it is ``None``.

        Identical reports are re-published as-is; sinks are not
        expected to detect "no change".
        """
        if report is None:
            logger.debug("No status report, keeping last published state")
            return
        for channel, state in report.states().items():
            await self._channels.publish_channel(channel, state)
        await self._reachability.set_reachability(Reachability.ONLINE)


@dataclass
class MqttChannelPublisher:
    """:class:`ChannelSink` publishing to ``{prefix}/{channel}/state``.

    Payloads are ``ON``/``OFF``, retained, QoS 1.  Publication failures
    are logged and dropped.
    """

    mqtt: MqttPort
    topic_prefix: str

    async def publish_channel(self, channel: ChannelId, state: OnOff) -> None:
        topic = f"{self.topic_prefix}/{channel}/state"
        try:
            await self.mqtt.publish(topic, state.value, retain=True, qos=1)
        except Exception:
            logger.exception("Failed to publish channel state to %s", topic)
