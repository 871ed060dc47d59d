"""Application orchestrator for the zeptrion2mqtt bridge.

:class:`App` is the composition root.  It builds every collaborator
from :class:`~zeptrion2mqtt._settings.Settings`, runs the bridge until
SIGINT/SIGTERM (or an injected shutdown event), and tears everything
down in reverse order.

Typical usage::

    from zeptrion2mqtt import App

    App(name="zeptrion2mqtt", version="0.1.0").cli()
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import uuid
from collections.abc import AsyncIterator
from functools import partial

import httpx

from zeptrion2mqtt._clock import ClockPort, SystemClock
from zeptrion2mqtt._controller import DeviceSyncController
from zeptrion2mqtt._errors import ErrorPublisher
from zeptrion2mqtt._health import HealthReporter, build_will_config
from zeptrion2mqtt._logging import configure_logging
from zeptrion2mqtt._mqtt import MqttClient, MqttLifecycle, MqttMessageHandler, MqttPort
from zeptrion2mqtt._reconciler import MqttChannelPublisher
from zeptrion2mqtt._router import CommandRouter
from zeptrion2mqtt._scheduler import AsyncioScheduler
from zeptrion2mqtt._settings import Settings
from zeptrion2mqtt._transport import DeviceTransport, HttpDeviceTransport

logger = logging.getLogger(__name__)


class App:
    """Composition root and lifecycle owner of one device bridge."""

    def __init__(
        self,
        name: str,
        version: str = "0.0.0",
        *,
        description: str = "Two-channel HTTP actuator to MQTT bridge",
        settings_class: type[Settings] = Settings,
        heartbeat_interval: float | None = 60.0,
    ) -> None:
        """Initialise the application.

        Args:
            name: Application name (default topic prefix and client ID).
            version: Application version string.
            description: Short description for CLI help text.
            settings_class: Settings class instantiated at startup.
            heartbeat_interval: Seconds between heartbeats on
                ``{prefix}/status``; ``None`` publishes only the
                initial one.
        """
        if heartbeat_interval is not None and heartbeat_interval <= 0:
            msg = f"heartbeat_interval must be positive, got {heartbeat_interval}"
            raise ValueError(msg)
        self._name = name
        self._version = version
        self._description = description
        self._settings_class = settings_class
        self._heartbeat_interval = heartbeat_interval

    @property
    def name(self) -> str:
        return self._name

    @property
    def version(self) -> str:
        return self._version

    @property
    def description(self) -> str:
        return self._description

    @property
    def settings_class(self) -> type[Settings]:
        return self._settings_class

    # --- Entrypoints -------------------------------------------------------

    def run(
        self,
        *,
        settings: Settings | None = None,
        mqtt: MqttPort | None = None,
        transport: DeviceTransport | None = None,
        clock: ClockPort | None = None,
        shutdown_event: asyncio.Event | None = None,
    ) -> None:
        """Run the bridge until shutdown (blocking).

        All parameters are optional overrides for programmatic and
        test use; see :meth:`_run_async`.
        """
        with contextlib.suppress(KeyboardInterrupt):
            asyncio.run(
                self._run_async(
                    settings=settings,
                    mqtt=mqtt,
                    transport=transport,
                    clock=clock,
                    shutdown_event=shutdown_event,
                ),
            )

    def cli(self) -> None:
        """Parse command-line options, then run the bridge."""
        from zeptrion2mqtt._cli import build_cli  # noqa: PLC0415

        build_cli(self)(standalone_mode=True)

    # --- Lifecycle ---------------------------------------------------------

    async def _run_async(
        self,
        *,
        settings: Settings | None = None,
        mqtt: MqttPort | None = None,
        transport: DeviceTransport | None = None,
        clock: ClockPort | None = None,
        scheduler: AsyncioScheduler | None = None,
        shutdown_event: asyncio.Event | None = None,
    ) -> None:
        """Async orchestration.

        1. Bootstrap settings, logging, MQTT, health and error services.
        2. Open the HTTP client and build the device controller.
        3. Subscribe command topics; inbound messages run as scheduler jobs.
        4. Publish the first heartbeat, initialise the controller, wait.
        5. Stop the heartbeat, drain scheduled jobs, publish offline,
           stop MQTT, close the HTTP client.

        Args:
            settings: Override settings (skip env loading).
            mqtt: Override MQTT client (e.g. ``MockMqttClient``).
            transport: Override device transport (e.g. ``FakeTransport``).
            clock: Override clock (e.g. ``FakeClock``).
            scheduler: Override scheduler.
            shutdown_event: Override shutdown event (skip signal handlers).
        """
        resolved_settings = settings if settings is not None else self._settings_class()
        prefix = resolved_settings.mqtt.topic_prefix or self._name
        configure_logging(
            resolved_settings.logging,
            service=self._name,
            version=self._version,
        )
        logger.info(
            "Starting %s v%s for device '%s' at %s",
            self._name,
            self._version,
            resolved_settings.device.name,
            resolved_settings.device.endpoint,
        )

        resolved_clock = clock if clock is not None else SystemClock()
        mqtt = self._create_mqtt(mqtt, resolved_settings, prefix)
        health = HealthReporter(
            mqtt=mqtt,
            topic_prefix=prefix,
            version=self._version,
            clock=resolved_clock,
        )
        errors = ErrorPublisher(
            mqtt=mqtt,
            topic_prefix=prefix,
            device=resolved_settings.device.name,
        )
        resolved_scheduler = scheduler if scheduler is not None else AsyncioScheduler()

        if isinstance(mqtt, MqttLifecycle):
            await mqtt.start()

        shutdown_event = self._install_signal_handlers(shutdown_event)

        async with self._open_transport(transport, resolved_settings) as device:
            controller = DeviceSyncController(
                transport=device,
                channels=MqttChannelPublisher(mqtt=mqtt, topic_prefix=prefix),
                reachability=health,
                scheduler=resolved_scheduler,
                clock=resolved_clock,
                errors=errors,
                probe_on_startup=resolved_settings.device.probe_on_startup,
            )
            router = CommandRouter(topic_prefix=prefix, target=controller, errors=errors)
            await self._subscribe(mqtt, router, resolved_scheduler)

            await health.publish_heartbeat()
            heartbeat_task = self._start_heartbeat_task(health)
            try:
                await controller.initialize()
                await shutdown_event.wait()
            finally:
                if heartbeat_task is not None:
                    heartbeat_task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await heartbeat_task
                await resolved_scheduler.join()

        await health.shutdown()

        if isinstance(mqtt, MqttLifecycle):
            await mqtt.stop()

        logger.info("Shutdown complete")

    # --- _run_async helpers ------------------------------------------------

    def _create_mqtt(
        self,
        mqtt: MqttPort | None,
        settings: Settings,
        prefix: str,
    ) -> MqttPort:
        """Return the injected MQTT port, or build an :class:`MqttClient`."""
        if mqtt is not None:
            return mqtt
        mqtt_settings = settings.mqtt
        if not mqtt_settings.client_id:
            mqtt_settings = mqtt_settings.model_copy(
                update={"client_id": f"{self._name}-{uuid.uuid4().hex[:8]}"},
            )
        return MqttClient(settings=mqtt_settings, will=build_will_config(prefix))

    @staticmethod
    @contextlib.asynccontextmanager
    async def _open_transport(
        transport: DeviceTransport | None,
        settings: Settings,
    ) -> AsyncIterator[DeviceTransport]:
        """Yield the injected transport, or an HTTP one owning its client."""
        if transport is not None:
            yield transport
            return
        async with httpx.AsyncClient() as client:
            yield HttpDeviceTransport(
                client=client,
                endpoint=settings.device.endpoint,
                control_path=settings.device.control_path,
                status_path=settings.device.status_path,
            )

    @staticmethod
    async def _subscribe(
        mqtt: MqttPort,
        router: CommandRouter,
        scheduler: AsyncioScheduler,
    ) -> None:
        """Subscribe command topics and hand each message to the scheduler."""

        async def _on_message(topic: str, payload: str) -> None:
            scheduler.execute(partial(router.route, topic, payload))

        for topic in router.subscriptions:
            await mqtt.subscribe(topic)
        if isinstance(mqtt, MqttMessageHandler):
            mqtt.on_message(_on_message)

    @staticmethod
    def _install_signal_handlers(
        shutdown_event: asyncio.Event | None,
    ) -> asyncio.Event:
        """Install SIGTERM/SIGINT handlers.  Returns the shutdown event."""
        if shutdown_event is not None:
            return shutdown_event
        event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, event.set)
        return event

    def _start_heartbeat_task(
        self,
        health: HealthReporter,
    ) -> asyncio.Task[None] | None:
        if self._heartbeat_interval is None:
            return None
        return asyncio.create_task(
            self._heartbeat_loop(health, self._heartbeat_interval),
        )

    @staticmethod
    async def _heartbeat_loop(health: HealthReporter, interval: float) -> None:
        """Publish heartbeats every *interval* seconds until cancelled."""
        while True:
            await asyncio.sleep(interval)
            await health.publish_heartbeat()
