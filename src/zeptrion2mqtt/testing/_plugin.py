"""Pytest plugin providing zeptrion2mqtt test fixtures.

Imports are deferred into the fixture bodies so that loading the
plugin does not import the package before coverage starts.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from zeptrion2mqtt._mqtt import MockMqttClient
    from zeptrion2mqtt.testing._clock import FakeClock
    from zeptrion2mqtt.testing._scheduler import ManualScheduler
    from zeptrion2mqtt.testing._transport import FakeTransport


@pytest.fixture
def mock_mqtt() -> MockMqttClient:
    """Fresh MockMqttClient for each test."""
    from zeptrion2mqtt._mqtt import MockMqttClient

    return MockMqttClient()


@pytest.fixture
def fake_clock() -> FakeClock:
    """FakeClock starting at time 0."""
    from zeptrion2mqtt.testing._clock import FakeClock

    return FakeClock()


@pytest.fixture
def fake_transport() -> FakeTransport:
    """FakeTransport reporting both channels OFF."""
    from zeptrion2mqtt.testing._transport import FakeTransport

    return FakeTransport()


@pytest.fixture
def manual_scheduler() -> ManualScheduler:
    """ManualScheduler with an empty job queue."""
    from zeptrion2mqtt.testing._scheduler import ManualScheduler

    return ManualScheduler()
