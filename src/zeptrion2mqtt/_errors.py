"""Error taxonomy and structured error publication.

Exceptions raised at the device boundary:

- :class:`DeviceUnreachable` — transport error, timeout, or a status
  other than 200 on a command or status request.
- :class:`MalformedResponse` — the status request succeeded but its
  body is not a valid status report.  A subclass of
  :class:`DeviceUnreachable`: it marks the device offline the same
  way, but is reported under its own ``error_type``.
- :class:`UnsupportedChannel` — a command names a channel the device
  does not have.  Ignored by the controller.
- :class:`InvalidCommand` — an inbound payload is not ON, OFF or
  REFRESH.

Error events go to ``{prefix}/error`` as JSON::

    {
        "error_type": "device_unreachable",
        "message": "GET http://10.0.0.4 timed out after 10.0s",
        "device": "zeptrion",
        "timestamp": "2026-02-14T12:34:56+00:00",
        "details": {}
    }

Events are not retained and publication is fire-and-forget: a failed
error *report* is logged and dropped.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime

from zeptrion2mqtt._mqtt import MqttPort

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class BridgeError(Exception):
    """Base class for every error raised by zeptrion2mqtt."""


class DeviceUnreachable(BridgeError):
    """The device did not accept or answer a request."""


class MalformedResponse(DeviceUnreachable):
    """The device answered, but the status report could not be decoded."""


class UnsupportedChannel(BridgeError, ValueError):
    """A channel id that the two-channel device does not define."""


class InvalidCommand(BridgeError, ValueError):
    """An inbound command payload that is not ON, OFF or REFRESH."""


ERROR_TYPES: dict[type[Exception], str] = {
    DeviceUnreachable: "device_unreachable",
    MalformedResponse: "malformed_response",
    UnsupportedChannel: "unsupported_channel",
    InvalidCommand: "invalid_command",
}

# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ErrorPayload:
    """Immutable error event ready for JSON serialisation."""

    error_type: str
    message: str
    device: str | None
    timestamp: str
    details: dict[str, object] = field(default_factory=dict)

    def to_json(self) -> str:
        """Serialise to a JSON string."""
        return json.dumps(asdict(self))


def build_error_payload(
    error: Exception,
    *,
    error_type_map: dict[type[Exception], str] | None = None,
    device: str | None = None,
    details: dict[str, object] | None = None,
    clock: Callable[[], datetime] | None = None,
) -> ErrorPayload:
    """Convert an exception into an :class:`ErrorPayload`.

    Only the exact class of *error* is looked up, so
    :class:`MalformedResponse` is never reported as
    ``device_unreachable``.  Unmapped classes fall back to ``"error"``.

    Args:
        error: The exception to convert.
        error_type_map: Exception class to ``error_type`` mapping.
            Defaults to :data:`ERROR_TYPES`.
        device: Optional device name to include.
        details: Optional extra context.
        clock: Optional callable returning the event time.
            Defaults to ``datetime.now(UTC)``.
    """
    resolved_map = ERROR_TYPES if error_type_map is None else error_type_map
    error_type = resolved_map.get(type(error), "error")
    now = clock() if clock is not None else datetime.now(UTC)
    return ErrorPayload(
        error_type=error_type,
        message=str(error),
        device=device,
        timestamp=now.isoformat(),
        details=details or {},
    )


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


@dataclass
class ErrorPublisher:
    """Publishes structured error events to ``{topic_prefix}/error``.

    Args:
        mqtt: MQTT port used for publishing.
        topic_prefix: Base prefix for the error topic.
        device: Device name stamped on every event.
        error_type_map: Exception class to ``error_type`` mapping.
        clock: Optional callable returning a :class:`~datetime.datetime`
            for deterministic tests.
    """

    mqtt: MqttPort
    topic_prefix: str
    device: str | None = None
    error_type_map: dict[type[Exception], str] = field(
        default_factory=lambda: dict(ERROR_TYPES),
    )
    clock: Callable[[], datetime] | None = field(default=None, repr=False)

    async def publish(
        self,
        error: Exception,
        *,
        details: dict[str, object] | None = None,
    ) -> None:
        """Build an error payload for *error* and publish it.

        Never raises: failures while building or publishing are
        logged and the event is dropped.
        """
        try:
            payload = build_error_payload(
                error,
                error_type_map=self.error_type_map,
                device=self.device,
                details=details,
                clock=self.clock,
            )
            payload_json = payload.to_json()
        except Exception:
            logger.exception("Failed to build error payload for %r", error)
            return

        topic = f"{self.topic_prefix}/error"
        logger.debug(
            "Publishing error event: %s (type=%s)",
            payload.message,
            payload.error_type,
        )
        try:
            await self.mqtt.publish(topic, payload_json, retain=False, qos=1)
        except Exception:
            logger.exception("Failed to publish error to %s", topic)
