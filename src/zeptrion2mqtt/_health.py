"""Device reachability and bridge heartbeat.

Topic layout::

    {prefix}/availability   ← device online / offline / unknown (retained)
    {prefix}/status         ← bridge heartbeat (retained JSON), LWT "offline"

Heartbeat payload::

    {
        "status": "online",
        "uptime_s": 3600.0,
        "version": "0.1.0",
        "device": {"status": "offline", "detail": "GET ... timed out after 10.0s"}
    }

The availability topic carries the plain status string so home
automation systems can use it directly as an availability topic.
Every :meth:`HealthReporter.set_reachability` call re-publishes it,
changed or not.  Publication is fire-and-forget: failures are logged,
never raised.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import StrEnum

from zeptrion2mqtt._clock import ClockPort
from zeptrion2mqtt._mqtt import MqttPort, WillConfig

logger = logging.getLogger(__name__)


class Reachability(StrEnum):
    """Whether the device currently answers requests."""

    ONLINE = "online"
    OFFLINE = "offline"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class HeartbeatPayload:
    """Immutable heartbeat snapshot."""

    status: str
    uptime_s: float
    version: str
    device_status: Reachability
    device_detail: str | None = None

    def to_json(self) -> str:
        """Serialise to a JSON string."""
        return json.dumps(
            {
                "status": self.status,
                "uptime_s": self.uptime_s,
                "version": self.version,
                "device": {
                    "status": self.device_status.value,
                    "detail": self.device_detail,
                },
            },
        )


def build_will_config(topic_prefix: str) -> WillConfig:
    """LWT for ``{topic_prefix}/status``: ``"offline"``, QoS 1, retained."""
    return WillConfig(
        topic=f"{topic_prefix}/status",
        payload="offline",
        qos=1,
        retain=True,
    )


@dataclass
class HealthReporter:
    """Tracks and publishes device reachability and bridge heartbeats.

    Parameters
    ----------
    mqtt:
        MQTT port used for publishing.
    topic_prefix:
        Base prefix for the health topics.
    version:
        Application version string included in heartbeats.
    clock:
        Monotonic clock for uptime.
    """

    mqtt: MqttPort
    topic_prefix: str
    version: str
    clock: ClockPort
    _start_time: float = field(init=False, repr=False)
    _status: Reachability = field(init=False, default=Reachability.UNKNOWN)
    _detail: str | None = field(init=False, default=None)

    def __post_init__(self) -> None:
        self._start_time = self.clock.now()

    @property
    def status(self) -> Reachability:
        """Most recently set reachability."""
        return self._status

    @property
    def detail(self) -> str | None:
        """Detail attached to the most recent status, if any."""
        return self._detail

    @property
    def availability_topic(self) -> str:
        return f"{self.topic_prefix}/availability"

    @property
    def status_topic(self) -> str:
        return f"{self.topic_prefix}/status"

    async def set_reachability(
        self,
        status: Reachability,
        detail: str | None = None,
    ) -> None:
        """Record *status* and publish it to the availability topic."""
        if status is not self._status:
            logger.info(
                "Device %s -> %s%s",
                self._status,
                status,
                f" ({detail})" if detail else "",
            )
        self._status = status
        self._detail = detail
        await self._safe_publish(self.availability_topic, status.value)

    async def publish_heartbeat(self) -> None:
        """Publish a JSON heartbeat to ``{prefix}/status``."""
        payload = HeartbeatPayload(
            status="online",
            uptime_s=self.clock.now() - self._start_time,
            version=self.version,
            device_status=self._status,
            device_detail=self._detail,
        )
        logger.debug("Publishing heartbeat to %s", self.status_topic)
        await self._safe_publish(self.status_topic, payload.to_json())

    async def shutdown(self) -> None:
        """Publish ``"offline"`` to the availability and status topics."""
        logger.info("Health reporter shutting down, publishing offline")
        await self._safe_publish(self.availability_topic, Reachability.OFFLINE.value)
        await self._safe_publish(self.status_topic, "offline")

    async def _safe_publish(self, topic: str, payload: str) -> None:
        try:
            await self.mqtt.publish(topic, payload, retain=True, qos=1)
        except Exception:
            logger.exception("Failed to publish health to %s", topic)
