"""MQTT command topic routing.

Topic convention::

    {prefix}/{channel}/set    → command topic (subscribed, routed here)
    {prefix}/{channel}/state  → state topic (published, not routed)

The channel segment is passed to the controller as-is; the controller
decides which channel ids it supports.
"""

from __future__ import annotations

import logging
from typing import Protocol

from zeptrion2mqtt._errors import ErrorPublisher, InvalidCommand
from zeptrion2mqtt._models import ChannelId, Command, parse_command

logger = logging.getLogger(__name__)


class CommandTarget(Protocol):
    async def handle_command(self, channel: str, command: Command) -> None: ...


class CommandRouter:
    """Routes ``{prefix}/{channel}/set`` messages to a controller.

    Payloads that are not ON, OFF or REFRESH are logged and published
    as ``invalid_command`` error events.  Topics that don't match the
    command pattern are ignored.
    """

    def __init__(
        self,
        *,
        topic_prefix: str,
        target: CommandTarget,
        errors: ErrorPublisher | None = None,
    ) -> None:
        self._topic_prefix = topic_prefix
        self._target = target
        self._errors = errors

    @property
    def subscriptions(self) -> list[str]:
        """Command topics to subscribe, one per channel."""
        return [f"{self._topic_prefix}/{channel}/set" for channel in ChannelId]

    async def route(self, topic: str, payload: str) -> None:
        """Parse and forward one inbound message."""
        channel = self._extract_channel(topic)
        if channel is None:
            return

        logger.info("Command received: %s -> %r", channel, payload)
        try:
            command = parse_command(payload)
        except InvalidCommand as exc:
            logger.warning("Rejected command on %s: %s", topic, exc)
            if self._errors is not None:
                await self._errors.publish(exc)
            return

        await self._target.handle_command(channel, command)

    def _extract_channel(self, topic: str) -> str | None:
        """Return the channel segment of ``{prefix}/{channel}/set``, else None."""
        prefix = self._topic_prefix + "/"
        suffix = "/set"
        if not (topic.startswith(prefix) and topic.endswith(suffix)):
            return None
        middle = topic[len(prefix) : -len(suffix)]
        if "/" in middle or not middle:
            return None
        return middle
