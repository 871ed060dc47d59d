"""HTTP transport to the device.

Two requests make up the whole protocol::

    POST {endpoint}{control_path}   body "cmd=on" | "cmd=off"
                                    Content-Type: application/x-www-form-urlencoded
    GET  {endpoint}{status_path}    -> {"ch1": {"val": <int>}, "ch2": {"val": <int>}}

Only HTTP 200 counts as success.  Every call carries a 10 second
timeout.  Transport failures are converted to
:class:`~zeptrion2mqtt._errors.DeviceUnreachable` right here, so no
``httpx`` exception ever leaves this module.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

import httpx
from pydantic import ValidationError

from zeptrion2mqtt._errors import DeviceUnreachable, MalformedResponse
from zeptrion2mqtt._models import ChannelId, OnOff, StatusReport

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10.0
"""Hard timeout, in seconds, for every request to the device."""

_FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


@runtime_checkable
class DeviceTransport(Protocol):
    """Port for the two device requests."""

    async def send_command(self, channel: ChannelId, command: OnOff) -> None:
        """Submit an on/off command.

        Raises:
            DeviceUnreachable: If the device did not accept the command.
        """
        ...

    async def fetch_report(self) -> StatusReport:
        """Fetch and decode the current status report.

        Raises:
            DeviceUnreachable: On transport failure or non-200 status.
            MalformedResponse: If the body is not a status report.
        """
        ...


class HttpDeviceTransport:
    """:class:`DeviceTransport` over an ``httpx.AsyncClient``.

    The client is owned by the caller (the app opens and closes it),
    which lets tests pass a client built on ``httpx.MockTransport``.

    Args:
        client: Shared async HTTP client.
        endpoint: Base address of the device.
        control_path: Suffix for command requests; every ``{channel}`` is
            replaced by the channel id, other braces are kept as is.
        status_path: Suffix for status requests.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        *,
        client: httpx.AsyncClient,
        endpoint: str,
        control_path: str = "",
        status_path: str = "",
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        self._client = client
        self._endpoint = endpoint
        self._control_path = control_path
        self._status_path = status_path
        self._timeout = timeout

    def control_url(self, channel: ChannelId) -> str:
        """Command-submit target for *channel*."""
        return self._endpoint + self._control_path.replace("{channel}", channel.value)

    @property
    def status_url(self) -> str:
        """Status-report target."""
        return self._endpoint + self._status_path

    async def send_command(self, channel: ChannelId, command: OnOff) -> None:
        await self._request(
            "POST",
            self.control_url(channel),
            content=f"cmd={command.wire}",
            headers={"Content-Type": _FORM_CONTENT_TYPE},
        )

    async def fetch_report(self) -> StatusReport:
        response = await self._request("GET", self.status_url)
        try:
            return StatusReport.model_validate_json(response.content)
        except ValidationError as exc:
            msg = f"GET {self.status_url} returned an undecodable status report"
            raise MalformedResponse(msg) from exc

    async def _request(
        self,
        method: str,
        url: str,
        *,
        content: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        logger.debug("%s %s", method, url)
        try:
            response = await self._client.request(
                method,
                url,
                content=content,
                headers=headers,
                timeout=self._timeout,
            )
        except httpx.TimeoutException as exc:
            msg = f"{method} {url} timed out after {self._timeout}s"
            raise DeviceUnreachable(msg) from exc
        except httpx.HTTPError as exc:
            msg = f"{method} {url} failed: {exc}"
            raise DeviceUnreachable(msg) from exc

        if response.status_code != httpx.codes.OK:
            msg = f"{method} {url} returned HTTP {response.status_code}"
            raise DeviceUnreachable(msg)
        return response
