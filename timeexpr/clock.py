"""
Providers of the current instant.

Expressions using the keyword ``today`` and holders initialised to the current
time ask a clock for "now". The process default is a SystemClock; tests and
applications needing a reproducible "now" pass a FixedClock explicitly or
install one with :func:`set_clock`.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from dateutil import tz
from tzlocal import get_localzone

from .domain import Adjustment, TimeDomain, TimePoint


class Clock(ABC):
    """Base class for providers of the current instant."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current instant as a naive datetime in local wall time."""
        pass


class SystemClock(Clock):
    """The system clock, read in the configured or the local timezone."""

    def __init__(self, timezone: Optional[str] = None):
        self.timezone = timezone

    def _tzinfo(self):
        if self.timezone is None:
            return get_localzone()
        tzinfo = tz.gettz(self.timezone)
        if tzinfo is None:
            raise ValueError("Unknown timezone: %r" % (self.timezone,))
        return tzinfo

    def now(self) -> datetime:
        return datetime.now(self._tzinfo()).replace(tzinfo=None)

    def __repr__(self) -> str:
        return f"SystemClock(timezone={self.timezone!r})"


class FixedClock(Clock):
    """A clock which always returns the same instant."""

    def __init__(self, instant: datetime):
        self.instant = instant.replace(tzinfo=None)

    def now(self) -> datetime:
        return self.instant

    def __repr__(self) -> str:
        return f"FixedClock({self.instant.isoformat()})"


_default_clock: Clock = SystemClock()


def get_clock() -> Clock:
    return _default_clock


def set_clock(clock: Clock) -> Clock:
    """Install the process default clock and return the previous one."""
    global _default_clock
    previous = _default_clock
    _default_clock = clock
    return previous


def now(domain: TimeDomain, clock: Optional[Clock] = None) -> TimePoint:
    """
    Return the current time in a domain, adjusted downwards if the domain
    requires it (e.g. a Saturday in the workweek domain gives the Friday before).
    """
    clock = clock or _default_clock
    return domain.from_datetime(clock.now(), Adjustment.DOWN)
