"""Monotonic clock port and system adapter.

The status cache measures report age against this clock.  Only the
*difference* between two ``now()`` calls is meaningful, so the epoch
of ``time.monotonic()`` does not matter and NTP steps cannot make a
cached report look younger or older than it is.
"""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class ClockPort(Protocol):
    """Monotonic clock used for cache expiry and uptime.

    The default implementation wraps ``time.monotonic()``.  Tests
    inject :class:`~zeptrion2mqtt.testing.FakeClock` to step time by
    hand across the cache TTL.
    """

    def now(self) -> float:
        """Return monotonic time in seconds."""
        ...


class SystemClock:
    """Production clock wrapping ``time.monotonic()``."""

    def now(self) -> float:
        """Return monotonic time in seconds."""
        return time.monotonic()
