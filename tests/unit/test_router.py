"""Tests for zeptrion2mqtt._router — command topic routing.

Test Techniques Used:
    - Equivalence Partitioning: Matching vs non-matching topics
    - Mock-based Isolation: AsyncMock as the command target
    - Error Condition Testing: Invalid payloads become error events
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest

from zeptrion2mqtt._errors import ErrorPublisher
from zeptrion2mqtt._models import Command
from zeptrion2mqtt._router import CommandRouter
from zeptrion2mqtt.testing import MockMqttClient


@pytest.fixture
def target() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def router(target: AsyncMock, mock_mqtt: MockMqttClient) -> CommandRouter:
    return CommandRouter(
        topic_prefix="home/zep",
        target=target,
        errors=ErrorPublisher(mqtt=mock_mqtt, topic_prefix="home/zep"),
    )


class TestSubscriptions:
    def test_one_set_topic_per_channel(self, router: CommandRouter) -> None:
        assert router.subscriptions == ["home/zep/ch1/set", "home/zep/ch2/set"]


class TestRoute:
    """Technique: Equivalence Partitioning on topics and payloads."""

    @pytest.mark.parametrize(
        ("payload", "command"),
        [("ON", Command.ON), ("off", Command.OFF), ("REFRESH", Command.REFRESH)],
    )
    async def test_forwards_parsed_command(
        self,
        router: CommandRouter,
        target: AsyncMock,
        payload: str,
        command: Command,
    ) -> None:
        await router.route("home/zep/ch1/set", payload)

        target.handle_command.assert_awaited_once_with("ch1", command)

    async def test_channel_segment_passed_verbatim(
        self, router: CommandRouter, target: AsyncMock
    ) -> None:
        """The controller, not the router, decides what a channel is."""
        await router.route("home/zep/ch7/set", "ON")

        target.handle_command.assert_awaited_once_with("ch7", Command.ON)

    @pytest.mark.parametrize(
        "topic",
        [
            "home/zep/ch1/state",
            "home/zep/ch1",
            "home/zep//set",
            "home/zep/a/b/set",
            "other/ch1/set",
            "home/zep/availability",
        ],
    )
    async def test_non_command_topics_ignored(
        self, router: CommandRouter, target: AsyncMock, topic: str
    ) -> None:
        await router.route(topic, "ON")

        target.handle_command.assert_not_awaited()


class TestInvalidPayload:
    """Technique: Error Condition Testing."""

    async def test_invalid_payload_publishes_error(
        self,
        router: CommandRouter,
        target: AsyncMock,
        mock_mqtt: MockMqttClient,
    ) -> None:
        await router.route("home/zep/ch2/set", "toggle")

        target.handle_command.assert_not_awaited()
        event = json.loads(mock_mqtt.last_payload("home/zep/error") or "{}")
        assert event["error_type"] == "invalid_command"
        assert "toggle" in event["message"]

    async def test_invalid_payload_without_publisher(self, target: AsyncMock) -> None:
        router = CommandRouter(topic_prefix="zep", target=target)

        await router.route("zep/ch1/set", "")

        target.handle_command.assert_not_awaited()
