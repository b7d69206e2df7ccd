"""
Time sources used wherever the current instant matters.
"""

from typing import Protocol

import pendulum
from pendulum import DateTime


class Clock(Protocol):
    """Anything that can tell the current time."""

    def now(self) -> DateTime:
        """Return the current instant as an aware datetime."""


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> DateTime:
        return pendulum.now("UTC")


class FixedClock:
    """A clock frozen at a given instant, for deterministic tests and replays."""

    def __init__(self, instant: DateTime):
        self._instant = instant

    def now(self) -> DateTime:
        return self._instant
