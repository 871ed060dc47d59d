"""Domain values: channels, commands, and the device status report.

The device reports each channel as an integer level::

    {"ch1": {"val": 1}, "ch2": {"val": 0}}

The level is stored as reported and the ON/OFF view is derived on
read (``val > 0`` is ON, everything else including negatives is OFF).
Only JSON integers are accepted: ``"1"``, ``true`` or ``1.0`` make the
report malformed.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, StrictInt

from zeptrion2mqtt._errors import InvalidCommand, UnsupportedChannel


class ChannelId(StrEnum):
    """The two independently switchable outputs of the device."""

    CH1 = "ch1"
    CH2 = "ch2"

    @classmethod
    def parse(cls, value: str) -> ChannelId:
        """Return the channel for *value* (case-insensitive).

        Raises:
            UnsupportedChannel: If *value* names no channel of the device.
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            msg = f"Unsupported channel {value!r}"
            raise UnsupportedChannel(msg) from None


class OnOff(StrEnum):
    """Published state of a channel."""

    ON = "ON"
    OFF = "OFF"

    @property
    def wire(self) -> str:
        """Token used in the ``cmd=`` form field."""
        return self.value.lower()


class Command(StrEnum):
    """Inbound request for a channel."""

    ON = "ON"
    OFF = "OFF"
    REFRESH = "REFRESH"


def parse_command(payload: str) -> Command:
    """Parse an inbound MQTT payload into a :class:`Command`.

    Surrounding whitespace and letter case are ignored.

    Raises:
        InvalidCommand: For anything other than ON, OFF or REFRESH.
    """
    try:
        return Command(payload.strip().upper())
    except ValueError:
        msg = f"Unknown command {payload!r}, expected ON, OFF or REFRESH"
        raise InvalidCommand(msg) from None


class ChannelLevel(BaseModel):
    """One channel slot of a status report."""

    model_config = ConfigDict(frozen=True)

    val: StrictInt

    @property
    def is_on(self) -> bool:
        return self.val > 0

    @property
    def state(self) -> OnOff:
        return OnOff.ON if self.is_on else OnOff.OFF


class StatusReport(BaseModel):
    """Decoded status report.  Immutable once built."""

    model_config = ConfigDict(frozen=True)

    ch1: ChannelLevel
    ch2: ChannelLevel

    def level(self, channel: ChannelId) -> ChannelLevel:
        """Return the slot for *channel*."""
        return self.ch1 if channel is ChannelId.CH1 else self.ch2

    def states(self) -> dict[ChannelId, OnOff]:
        """Return the ON/OFF view of both channels, in channel order."""
        return {channel: self.level(channel).state for channel in ChannelId}
