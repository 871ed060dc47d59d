"""Test-support utilities for zeptrion2mqtt.

- :class:`FakeClock` — deterministic clock for cache expiry tests.
- :class:`FakeTransport` — in-memory device with injectable failures.
- :class:`ManualScheduler` — records jobs and runs them on demand.
- :class:`MockMqttClient` — in-memory MQTT double that records calls.
- :func:`make_report` — builds a status report from two levels.
- :func:`make_settings` — ``Settings`` without env or ``.env`` files.
"""

from zeptrion2mqtt._mqtt import MockMqttClient
from zeptrion2mqtt.testing._clock import FakeClock
from zeptrion2mqtt.testing._scheduler import ManualScheduler
from zeptrion2mqtt.testing._settings import make_settings
from zeptrion2mqtt.testing._transport import FakeTransport, make_report

__all__ = [
    "FakeClock",
    "FakeTransport",
    "ManualScheduler",
    "MockMqttClient",
    "make_report",
    "make_settings",
]
