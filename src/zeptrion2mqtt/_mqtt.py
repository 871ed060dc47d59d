"""MQTT side of the bridge.

Everything the bridge publishes that matters to a late subscriber
(channel state, availability, heartbeat) is *retained*.  The broker
connection, however, comes up in the background and may drop at any
time, so :class:`MqttClient` keeps the last retained payload of every
topic and replays them after each (re)connect.  A controller can
therefore publish its first availability before the broker is
reachable, and a broker restarted without persistence gets the current
device picture back without waiting for the next refresh.

Non-retained messages (error events) are not buffered: publishing one
while disconnected raises :class:`RuntimeError`, which the publishers
log and drop.

``aiomqtt`` is imported inside :meth:`MqttClient._connection_loop`, so
:class:`MockMqttClient` works without the broker library.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, NamedTuple, Protocol, runtime_checkable

from zeptrion2mqtt._settings import MqttSettings

logger = logging.getLogger(__name__)

MessageCallback = Callable[[str, str], Awaitable[None]]
"""Async callback receiving ``(topic, payload)`` for each inbound message."""


@dataclass(frozen=True)
class WillConfig:
    """Last will registered with the broker at connect time."""

    topic: str
    payload: str = "offline"
    qos: int = 1
    retain: bool = True


class PublishedMessage(NamedTuple):
    """One outbound message as seen by the broker."""

    topic: str
    payload: str
    retain: bool
    qos: int


# ---------------------------------------------------------------------------
# Ports
# ---------------------------------------------------------------------------


@runtime_checkable
class MqttPort(Protocol):
    """Publish/subscribe contract used by every publisher in the bridge."""

    async def publish(
        self,
        topic: str,
        payload: str,
        *,
        retain: bool = False,
        qos: int = 1,
    ) -> None: ...

    async def subscribe(self, topic: str) -> None: ...


@runtime_checkable
class MqttLifecycle(Protocol):
    """Clients owning a background connection the app starts and stops."""

    async def start(self) -> None: ...

    async def stop(self) -> None: ...


@runtime_checkable
class MqttMessageHandler(Protocol):
    """Clients that hand inbound messages to registered callbacks."""

    def on_message(self, callback: MessageCallback) -> None: ...


# ---------------------------------------------------------------------------
# In-memory broker stand-in
# ---------------------------------------------------------------------------


@dataclass
class MockMqttClient:
    """Records what the bridge sends and feeds it inbound commands.

    ``published`` holds every message in order; :attr:`retained` is the
    view a subscriber connecting now would get.
    """

    published: list[PublishedMessage] = field(default_factory=list)
    subscriptions: list[str] = field(default_factory=list)
    _callbacks: list[MessageCallback] = field(
        default_factory=list,
        init=False,
        repr=False,
    )

    async def publish(
        self,
        topic: str,
        payload: str,
        *,
        retain: bool = False,
        qos: int = 1,
    ) -> None:
        self.published.append(PublishedMessage(topic, payload, retain, qos))

    async def subscribe(self, topic: str) -> None:
        self.subscriptions.append(topic)

    def on_message(self, callback: MessageCallback) -> None:
        self._callbacks.append(callback)

    async def deliver(self, topic: str, payload: str) -> None:
        """Hand an inbound message to every registered callback."""
        for callback in self._callbacks:
            await callback(topic, payload)

    @property
    def retained(self) -> dict[str, str]:
        """Last retained payload per topic."""
        return {m.topic: m.payload for m in self.published if m.retain}

    def get_messages_for(self, topic: str) -> list[tuple[str, bool, int]]:
        """Return ``(payload, retain, qos)`` for each publish to *topic*."""
        return [
            (m.payload, m.retain, m.qos) for m in self.published if m.topic == topic
        ]

    def last_payload(self, topic: str) -> str | None:
        messages = self.get_messages_for(topic)
        return messages[-1][0] if messages else None


# ---------------------------------------------------------------------------
# aiomqtt adapter
# ---------------------------------------------------------------------------


@dataclass
class MqttClient:
    """Broker connection backed by *aiomqtt*.

    A background task connects, restores subscriptions, replays the
    retained state and then forwards inbound messages to the callbacks.
    When the connection drops it waits ``settings.reconnect_interval``
    seconds and starts over.
    """

    settings: MqttSettings
    will: WillConfig | None = None

    _callbacks: list[MessageCallback] = field(
        default_factory=list,
        init=False,
        repr=False,
    )
    _subscriptions: set[str] = field(default_factory=set, init=False, repr=False)
    _retained: dict[str, tuple[str, int]] = field(
        default_factory=dict,
        init=False,
        repr=False,
    )
    _client: Any = field(default=None, init=False, repr=False)
    _listen_task: asyncio.Task[None] | None = field(
        default=None,
        init=False,
        repr=False,
    )
    _connected: asyncio.Event = field(
        default_factory=asyncio.Event,
        init=False,
        repr=False,
    )
    _stopping: bool = field(default=False, init=False, repr=False)

    @property
    def is_connected(self) -> bool:
        return self._connected.is_set()

    @property
    def retained(self) -> dict[str, str]:
        """Retained payload per topic, replayed on every connect."""
        return {topic: payload for topic, (payload, _qos) in self._retained.items()}

    async def publish(
        self,
        topic: str,
        payload: str,
        *,
        retain: bool = False,
        qos: int = 1,
    ) -> None:
        """Publish *payload*, or keep it for the next connect if retained.

        Raises:
            RuntimeError: A non-retained message was published while
                disconnected.
        """
        if retain:
            self._retained[topic] = (payload, qos)
        if self._client is None:
            if retain:
                logger.debug("Broker not connected, %s kept for replay", topic)
                return
            msg = "MqttClient is not connected"
            raise RuntimeError(msg)
        await self._client.publish(topic, payload, retain=retain, qos=qos)
        logger.debug("Published to %s (qos=%d, retain=%s)", topic, qos, retain)

    async def subscribe(self, topic: str) -> None:
        """Subscribe now if connected; always on every later connect."""
        self._subscriptions.add(topic)
        if self._client is not None:
            await self._client.subscribe(topic, qos=self.settings.qos)

    def on_message(self, callback: MessageCallback) -> None:
        self._callbacks.append(callback)

    async def start(self) -> None:
        if self._listen_task is not None and not self._listen_task.done():
            logger.debug("MqttClient.start() called while already running")
            return
        self._stopping = False
        self._listen_task = asyncio.create_task(self._connection_loop())

    async def stop(self) -> None:
        """Cancel the connection loop.  Safe to call more than once."""
        self._stopping = True
        if self._listen_task is not None:
            self._listen_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._listen_task
            self._listen_task = None
        self._client = None
        self._connected.clear()

    async def _connection_loop(self) -> None:
        try:
            import aiomqtt  # noqa: PLC0415
        except ModuleNotFoundError as exc:
            msg = "aiomqtt is required to use MqttClient"
            raise RuntimeError(msg) from exc

        will = None
        if self.will is not None:
            will = aiomqtt.Will(
                topic=self.will.topic,
                payload=self.will.payload,
                qos=self.will.qos,
                retain=self.will.retain,
            )
        password = None
        if self.settings.password is not None:
            password = self.settings.password.get_secret_value()

        while not self._stopping:
            try:
                async with aiomqtt.Client(
                    hostname=self.settings.host,
                    port=self.settings.port,
                    username=self.settings.username,
                    password=password,
                    identifier=self.settings.client_id or None,
                    will=will,
                ) as client:
                    try:
                        await self._on_connect(client)
                        async for message in client.messages:
                            await self._dispatch(message)
                    finally:
                        self._connected.clear()
                        self._client = None
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.warning(
                    "MQTT connection lost, reconnecting in %.1fs",
                    self.settings.reconnect_interval,
                    exc_info=True,
                )
                await asyncio.sleep(self.settings.reconnect_interval)

    async def _on_connect(self, client: Any) -> None:
        # Live from here on: publishes racing the replay go straight out.
        self._client = client
        for topic in sorted(self._subscriptions):
            await client.subscribe(topic, qos=self.settings.qos)
        for topic in list(self._retained):
            payload, qos = self._retained[topic]
            await client.publish(topic, payload, retain=True, qos=qos)
        self._connected.set()
        logger.info(
            "MQTT connected to %s:%d (%d subscriptions, %d retained topics)",
            self.settings.host,
            self.settings.port,
            len(self._subscriptions),
            len(self._retained),
        )

    async def _dispatch(self, message: Any) -> None:
        """Decode one inbound message and hand it to every callback."""
        topic = str(message.topic)
        if message.payload is None:
            logger.debug("Skipping message with None payload on %s", topic)
            return
        payload = (
            message.payload.decode("utf-8")
            if isinstance(message.payload, (bytes, bytearray))
            else str(message.payload)
        )
        for callback in self._callbacks:
            try:
                await callback(topic, payload)
            except Exception:
                logger.exception("Error in message callback for %s", topic)
