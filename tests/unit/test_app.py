"""Tests for zeptrion2mqtt._app — composition root and lifecycle.

Test Techniques Used:
    - Integration Testing: _run_async with MockMqttClient, FakeTransport
      and FakeClock injected
    - Event Coordination: Shutdown events set before or during the run
    - Specification-based Testing: Topic layout and startup sequence
    - Error Condition Testing: Invalid constructor arguments
"""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest

from zeptrion2mqtt._app import App
from zeptrion2mqtt._mqtt import MqttClient
from zeptrion2mqtt._settings import DeviceSettings, MqttSettings
from zeptrion2mqtt._transport import HttpDeviceTransport
from zeptrion2mqtt.testing import (
    FakeClock,
    FakeTransport,
    MockMqttClient,
    make_report,
    make_settings,
)

pytestmark = pytest.mark.usefixtures("_restore_root_logger")


@pytest.fixture
def app() -> App:
    return App(name="zep", version="1.0.0")


def _stopped() -> asyncio.Event:
    event = asyncio.Event()
    event.set()
    return event


async def _wait_for(predicate, timeout: float = 2.0) -> None:  # noqa: ANN001
    """Poll *predicate* on the running loop until it holds."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.01)


class TestConstruction:
    """Technique: Error Condition Testing."""

    def test_properties(self) -> None:
        app = App(name="zep", version="2.0.0", description="Hall lights")

        assert (app.name, app.version, app.description) == ("zep", "2.0.0", "Hall lights")

    @pytest.mark.parametrize("interval", [0, -1.0])
    def test_non_positive_heartbeat_rejected(self, interval: float) -> None:
        with pytest.raises(ValueError, match="heartbeat_interval must be positive"):
            App(name="zep", heartbeat_interval=interval)


class TestStartupAndShutdown:
    """Technique: Integration Testing with a pre-set shutdown event."""

    async def test_subscribes_command_topics(
        self,
        app: App,
        mock_mqtt: MockMqttClient,
        fake_transport: FakeTransport,
        fake_clock: FakeClock,
    ) -> None:
        await app._run_async(  # noqa: SLF001
            settings=make_settings(),
            mqtt=mock_mqtt,
            transport=fake_transport,
            clock=fake_clock,
            shutdown_event=_stopped(),
        )

        assert mock_mqtt.subscriptions == ["zep/ch1/set", "zep/ch2/set"]

    async def test_probe_runs_before_shutdown_completes(
        self,
        app: App,
        mock_mqtt: MockMqttClient,
        fake_transport: FakeTransport,
        fake_clock: FakeClock,
    ) -> None:
        """unknown → online after the probe, then offline at shutdown."""
        fake_transport.report = make_report(1, 0)

        await app._run_async(  # noqa: SLF001
            settings=make_settings(),
            mqtt=mock_mqtt,
            transport=fake_transport,
            clock=fake_clock,
            shutdown_event=_stopped(),
        )

        assert fake_transport.fetch_count == 1
        assert [p for p, _, _ in mock_mqtt.get_messages_for("zep/availability")] == [
            "unknown",
            "online",
            "offline",
        ]
        assert mock_mqtt.last_payload("zep/ch1/state") == "ON"
        assert mock_mqtt.last_payload("zep/ch2/state") == "OFF"
        assert mock_mqtt.last_payload("zep/status") == "offline"

    async def test_first_heartbeat(
        self,
        app: App,
        mock_mqtt: MockMqttClient,
        fake_transport: FakeTransport,
        fake_clock: FakeClock,
    ) -> None:
        await app._run_async(  # noqa: SLF001
            settings=make_settings(),
            mqtt=mock_mqtt,
            transport=fake_transport,
            clock=fake_clock,
            shutdown_event=_stopped(),
        )

        heartbeat = json.loads(mock_mqtt.get_messages_for("zep/status")[0][0])
        assert heartbeat["version"] == "1.0.0"
        assert heartbeat["device"]["status"] == "unknown"

    async def test_probe_disabled_skips_network(
        self,
        app: App,
        mock_mqtt: MockMqttClient,
        fake_transport: FakeTransport,
        fake_clock: FakeClock,
    ) -> None:
        settings = make_settings(device=DeviceSettings(probe_on_startup=False))

        await app._run_async(  # noqa: SLF001
            settings=settings,
            mqtt=mock_mqtt,
            transport=fake_transport,
            clock=fake_clock,
            shutdown_event=_stopped(),
        )

        assert fake_transport.fetch_count == 0
        assert mock_mqtt.get_messages_for("zep/availability")[1][0] == "online"

    async def test_topic_prefix_setting(
        self,
        app: App,
        mock_mqtt: MockMqttClient,
        fake_transport: FakeTransport,
        fake_clock: FakeClock,
    ) -> None:
        settings = make_settings(mqtt=MqttSettings(topic_prefix="home/hall"))

        await app._run_async(  # noqa: SLF001
            settings=settings,
            mqtt=mock_mqtt,
            transport=fake_transport,
            clock=fake_clock,
            shutdown_event=_stopped(),
        )

        assert mock_mqtt.subscriptions == ["home/hall/ch1/set", "home/hall/ch2/set"]
        assert mock_mqtt.last_payload("home/hall/availability") == "offline"

    def test_run_blocks_until_shutdown(
        self, app: App, fake_transport: FakeTransport
    ) -> None:
        mqtt = MockMqttClient()

        app.run(
            settings=make_settings(),
            mqtt=mqtt,
            transport=fake_transport,
            clock=FakeClock(),
            shutdown_event=_stopped(),
        )

        assert mqtt.last_payload("zep/status") == "offline"

    def test_run_suppresses_keyboard_interrupt(self, app: App) -> None:
        with patch.object(
            app, "_run_async", new_callable=AsyncMock, side_effect=KeyboardInterrupt
        ):
            app.run()


class TestInboundCommands:
    """Technique: Event Coordination — shutdown set once the work is done."""

    async def test_command_round_trip(
        self,
        app: App,
        mock_mqtt: MockMqttClient,
        fake_transport: FakeTransport,
        fake_clock: FakeClock,
    ) -> None:
        shutdown = asyncio.Event()
        run = asyncio.create_task(
            app._run_async(  # noqa: SLF001
                settings=make_settings(),
                mqtt=mock_mqtt,
                transport=fake_transport,
                clock=fake_clock,
                shutdown_event=shutdown,
            ),
        )
        await _wait_for(lambda: mock_mqtt.last_payload("zep/availability") == "online")
        fake_transport.report = make_report(0, 1)

        await mock_mqtt.deliver("zep/ch2/set", "on")
        await _wait_for(lambda: mock_mqtt.last_payload("zep/ch2/state") == "ON")
        shutdown.set()
        await run

        assert fake_transport.commands[0][1].value == "ON"
        assert fake_transport.fetch_count == 2

    async def test_invalid_payload_publishes_error(
        self,
        app: App,
        mock_mqtt: MockMqttClient,
        fake_transport: FakeTransport,
        fake_clock: FakeClock,
    ) -> None:
        shutdown = asyncio.Event()
        run = asyncio.create_task(
            app._run_async(  # noqa: SLF001
                settings=make_settings(),
                mqtt=mock_mqtt,
                transport=fake_transport,
                clock=fake_clock,
                shutdown_event=shutdown,
            ),
        )
        await _wait_for(lambda: bool(mock_mqtt.subscriptions))

        await mock_mqtt.deliver("zep/ch1/set", "toggle")
        await _wait_for(lambda: mock_mqtt.last_payload("zep/error") is not None)
        shutdown.set()
        await run

        event = json.loads(mock_mqtt.last_payload("zep/error") or "{}")
        assert event["error_type"] == "invalid_command"
        assert event["device"] == "zeptrion"
        assert fake_transport.commands == []


class TestAdapters:
    """Technique: Specification-based Testing of the default adapters."""

    def test_mqtt_client_gets_generated_id_and_will(self, app: App) -> None:
        mqtt = app._create_mqtt(None, make_settings(), "zep")  # noqa: SLF001

        assert isinstance(mqtt, MqttClient)
        assert mqtt.settings.client_id.startswith("zep-")
        assert mqtt.will is not None
        assert mqtt.will.topic == "zep/status"

    def test_configured_client_id_is_kept(self, app: App) -> None:
        settings = make_settings(mqtt=MqttSettings(client_id="hall-bridge"))

        mqtt = app._create_mqtt(None, settings, "zep")  # noqa: SLF001

        assert mqtt.settings.client_id == "hall-bridge"  # type: ignore[attr-defined]

    async def test_default_transport_is_http(self) -> None:
        settings = make_settings(
            device=DeviceSettings(endpoint="http://10.0.0.4", status_path="/zrap/chscan"),
        )

        async with App._open_transport(None, settings) as transport:  # noqa: SLF001
            assert isinstance(transport, HttpDeviceTransport)
            assert transport.status_url == "http://10.0.0.4/zrap/chscan"
