"""
Calendar domains, points in time and ranges.

A time domain maps calendar fields (year, month, day, hour, ...) to a single
integer index at a fixed resolution. A domain may restrict the valid indexes
with a cycle, like the Monday to Friday ``workweek`` domain. Points in time
(TimePoint) and ranges (Range) are immutable values living in one domain.

Indexes are computed from a raw index in the base unit of the resolution:

- YEAR: the year number
- MONTH: ``year * 12 + month - 1``
- DAY: days since 0001-01-01 (a Monday), as given by ``date.toordinal() - 1``
- HOUR and finer: ``days * units_per_day + units since midnight``

The representable period is 0001-01-01 to 9999-12-31 in every domain.

Example::

    >>> from timeexpr.domain import DAILY, WORKWEEK, Adjustment
    >>> t = DAILY.time("2009-11-21")
    >>> str(t.convert(WORKWEEK, Adjustment.UP))
    '2009-11-23'
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum, IntEnum
from typing import Dict, Iterator, List, NamedTuple, Optional, Tuple

import regex as re
from dateutil.relativedelta import relativedelta

from .exceptions import (
    DomainMismatchError,
    TimeOverflowError,
    TimeParseError,
    UnknownDomainError,
)


# =============================================================================
# Enums
# =============================================================================

class Resolution(IntEnum):
    """Smallest unit of a domain, ordered from coarse to fine."""
    YEAR = 0
    MONTH = 1
    DAY = 2
    HOUR = 3
    MIN = 4
    SEC = 5
    MSEC = 6
    USEC = 7
    NSEC = 8


class Adjustment(Enum):
    """How to snap a time which is not valid in a domain onto a valid one."""
    NONE = "NONE"   # reject
    UP = "UP"       # move forward to the next valid time
    DOWN = "DOWN"   # move backward to the previous valid time


# units per day for sub-daily resolutions
UNITS_PER_DAY = {
    Resolution.HOUR: 24,
    Resolution.MIN: 24 * 60,
    Resolution.SEC: 24 * 60 * 60,
    Resolution.MSEC: 24 * 60 * 60 * 1000,
    Resolution.USEC: 24 * 60 * 60 * 1000 * 1000,
    Resolution.NSEC: 24 * 60 * 60 * 1000 * 1000 * 1000,
}

# nanoseconds per unit for sub-daily resolutions
NANOS_PER_UNIT = {
    resolution: 24 * 60 * 60 * 10 ** 9 // units
    for resolution, units in UNITS_PER_DAY.items()
}

MIN_YEAR = 1
MAX_YEAR = 9999


# =============================================================================
# Time parts
# =============================================================================

class TimeParts(NamedTuple):
    """Calendar fields of a time. Fractions of a second are in nanoseconds."""
    year: int
    month: int = 1
    day: int = 1
    hour: int = 0
    minute: int = 0
    second: int = 0
    nanos: int = 0

    def validate(self) -> "TimeParts":
        if not MIN_YEAR <= self.year <= MAX_YEAR:
            raise ValueError("year %d out of range" % self.year)
        # raises ValueError for an invalid month or day
        date(self.year, self.month, self.day)
        if not 0 <= self.hour < 24:
            raise ValueError("hour %d out of range" % self.hour)
        if not 0 <= self.minute < 60:
            raise ValueError("minute %d out of range" % self.minute)
        if not 0 <= self.second < 60:
            raise ValueError("second %d out of range" % self.second)
        if not 0 <= self.nanos < 10 ** 9:
            raise ValueError("fraction of second %d out of range" % self.nanos)
        return self

    def truncate(self, resolution: Resolution) -> "TimeParts":
        """Reset all fields finer than the resolution."""
        if resolution == Resolution.YEAR:
            return TimeParts(self.year)
        if resolution == Resolution.MONTH:
            return TimeParts(self.year, self.month)
        if resolution == Resolution.DAY:
            return TimeParts(self.year, self.month, self.day)
        nanos_per_unit = NANOS_PER_UNIT[resolution]
        nanos_of_day = ((self.hour * 60 + self.minute) * 60 + self.second) * 10 ** 9 + self.nanos
        nanos_of_day -= nanos_of_day % nanos_per_unit
        return _parts_from_day_nanos(self.year, self.month, self.day, nanos_of_day)


def _parts_from_day_nanos(year, month, day, nanos_of_day):
    seconds, nanos = divmod(nanos_of_day, 10 ** 9)
    minutes, second = divmod(seconds, 60)
    hour, minute = divmod(minutes, 60)
    return TimeParts(year, month, day, hour, minute, second, nanos)


def raw_index(resolution: Resolution, parts: TimeParts) -> int:
    """Compute the raw index of the time parts in the base unit of a resolution."""
    if resolution == Resolution.YEAR:
        return parts.year
    if resolution == Resolution.MONTH:
        return parts.year * 12 + parts.month - 1
    days = date(parts.year, parts.month, parts.day).toordinal() - 1
    if resolution == Resolution.DAY:
        return days
    nanos_of_day = ((parts.hour * 60 + parts.minute) * 60 + parts.second) * 10 ** 9 + parts.nanos
    return days * UNITS_PER_DAY[resolution] + nanos_of_day // NANOS_PER_UNIT[resolution]


def raw_parts(resolution: Resolution, raw: int) -> TimeParts:
    """Inverse of :func:`raw_index`."""
    if resolution == Resolution.YEAR:
        return TimeParts(raw)
    if resolution == Resolution.MONTH:
        year, month = divmod(raw, 12)
        return TimeParts(year, month + 1)
    if resolution == Resolution.DAY:
        d = date.fromordinal(raw + 1)
        return TimeParts(d.year, d.month, d.day)
    days, units = divmod(raw, UNITS_PER_DAY[resolution])
    d = date.fromordinal(days + 1)
    return _parts_from_day_nanos(d.year, d.month, d.day, units * NANOS_PER_UNIT[resolution])


# =============================================================================
# Scanning and formatting
# =============================================================================

RE_HYPHENATED = re.compile(
    r"^(\d{4})(?:-(\d\d)(?:-(\d\d)(?:[T ](\d\d)(?::(\d\d)(?::(\d\d)(?:[.,](\d{1,9}))?)?)?)?)?)?$"
)
RE_COMPACT = re.compile(
    r"^(\d{4})(?:(\d\d)(?:(\d\d)(?:T(\d\d)(?:(\d\d)(?:(\d\d)(?:[.,](\d{1,9}))?)?)?)?)?)?$"
)

FORMATS = {
    Resolution.YEAR: "{0:04d}",
    Resolution.MONTH: "{0:04d}-{1:02d}",
    Resolution.DAY: "{0:04d}-{1:02d}-{2:02d}",
    Resolution.HOUR: "{0:04d}-{1:02d}-{2:02d} {3:02d}",
    Resolution.MIN: "{0:04d}-{1:02d}-{2:02d} {3:02d}:{4:02d}",
    Resolution.SEC: "{0:04d}-{1:02d}-{2:02d} {3:02d}:{4:02d}:{5:02d}",
}

FRACTION_DIGITS = {
    Resolution.MSEC: 3,
    Resolution.USEC: 6,
    Resolution.NSEC: 9,
}


def scan(text: str) -> TimeParts:
    """
    Scan text like ``2009-11-20 10:30:00.5`` or ``20091120T1030`` into time parts.

    Missing fields default to the start of the period.

    Raises:
        ValueError: if the text is not a valid time
    """
    hyphenated = "-" in text
    match = (RE_HYPHENATED if hyphenated else RE_COMPACT).match(text)
    if not match:
        raise ValueError("unrecognized format")
    year, month, day, hour, minute, second, fraction = match.groups()
    nanos = int(fraction.ljust(9, "0")) if fraction else 0
    return TimeParts(
        int(year),
        int(month) if month else 1,
        int(day) if day else 1,
        int(hour) if hour else 0,
        int(minute) if minute else 0,
        int(second) if second else 0,
        nanos,
    ).validate()


def format_parts(resolution: Resolution, parts: TimeParts) -> str:
    if resolution in FORMATS:
        return FORMATS[resolution].format(*parts)
    digits = FRACTION_DIGITS[resolution]
    fraction = parts.nanos // 10 ** (9 - digits)
    return "%s.%0*d" % (FORMATS[Resolution.SEC].format(*parts), digits, fraction)


# =============================================================================
# Cycle
# =============================================================================

@dataclass(frozen=True)
class Cycle:
    """
    A repeating pattern of valid and invalid base-unit indexes.

    The pattern is aligned on raw index 0. With daily resolution raw index 0
    is a Monday, so ``Cycle((True,) * 5 + (False,) * 2)`` keeps Monday to Friday.
    """
    pattern: Tuple[bool, ...]
    _map: Tuple[int, ...] = field(init=False, repr=False, compare=False)
    _inverse: Tuple[int, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if not any(self.pattern):
            raise ValueError("cycle pattern has no valid position")
        mapping = []
        inverse = []
        for position, valid in enumerate(self.pattern):
            if valid:
                mapping.append(len(inverse))
                inverse.append(position)
            else:
                mapping.append(-1)
        object.__setattr__(self, "_map", tuple(mapping))
        object.__setattr__(self, "_inverse", tuple(inverse))

    @property
    def size(self) -> int:
        return len(self.pattern)

    @property
    def compressed_size(self) -> int:
        return len(self._inverse)

    def make_index(self, raw: int, adjustment: Adjustment = Adjustment.NONE) -> int:
        """
        Compress a raw index into a cycle index.

        Args:
            raw: index in the base unit
            adjustment: what to do when the raw index falls in a gap

        Returns:
            The compressed index.

        Raises:
            ValueError: if the raw index is in a gap and adjustment is NONE
        """
        step = {Adjustment.UP: 1, Adjustment.DOWN: -1}.get(adjustment)
        while True:
            cycles, position = divmod(raw, self.size)
            offset = self._map[position]
            if offset >= 0:
                return cycles * self.compressed_size + offset
            if step is None:
                raise ValueError("not a valid position in cycle %s" % self)
            raw += step

    def expand_index(self, index: int) -> int:
        cycles, position = divmod(index, self.compressed_size)
        return cycles * self.size + self._inverse[position]

    def __str__(self) -> str:
        return "".join("1" if valid else "0" for valid in self.pattern)


WEEKDAYS = Cycle((True, True, True, True, True, False, False))


# =============================================================================
# TimeDomain
# =============================================================================

@dataclass(frozen=True)
class TimeDomain:
    """A calendar at a given resolution, optionally restricted by a cycle."""
    label: str
    resolution: Resolution
    cycle: Optional[Cycle] = None
    min_index: int = field(init=False, repr=False, compare=False)
    max_index: int = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        lowest = raw_index(self.resolution, TimeParts(MIN_YEAR))
        highest = raw_index(self.resolution, TimeParts(MAX_YEAR, 12, 31, 23, 59, 59, 10 ** 9 - 1))
        if self.cycle is not None:
            lowest = self.cycle.make_index(lowest, Adjustment.UP)
            highest = self.cycle.make_index(highest, Adjustment.DOWN)
        object.__setattr__(self, "min_index", lowest)
        object.__setattr__(self, "max_index", highest)

    def compare_resolution_to(self, resolution: Resolution) -> int:
        """
        Compare the resolution of the domain with another one.

        Returns:
            A negative number if the domain is finer than the argument, zero
            if it is the same, a positive number if it is coarser.
        """
        return resolution - self.resolution

    def valid(self, index: int) -> bool:
        return self.min_index <= index <= self.max_index

    def pack(self, parts: TimeParts, adjustment: Adjustment = Adjustment.NONE) -> int:
        raw = raw_index(self.resolution, parts)
        index = raw if self.cycle is None else self.cycle.make_index(raw, adjustment)
        if not self.valid(index):
            raise ValueError("index %d out of range" % index)
        return index

    def unpack(self, index: int) -> TimeParts:
        raw = index if self.cycle is None else self.cycle.expand_index(index)
        return raw_parts(self.resolution, raw)

    def time(self, text: str, adjustment: Adjustment = Adjustment.NONE) -> "TimePoint":
        """
        Scan text into a point of this domain.

        Raises:
            TimeParseError: if the text is not a valid time for the domain
        """
        try:
            return TimePoint(self, self.pack(scan(text), adjustment))
        except ValueError as e:
            raise TimeParseError(text, self, str(e)) from e

    def from_parts(self, parts: TimeParts, adjustment: Adjustment = Adjustment.NONE) -> "TimePoint":
        try:
            return TimePoint(self, self.pack(parts.validate(), adjustment))
        except ValueError as e:
            raise TimeParseError(format_parts(Resolution.NSEC, parts), self, str(e)) from e

    def from_datetime(self, value: datetime, adjustment: Adjustment = Adjustment.DOWN) -> "TimePoint":
        parts = TimeParts(
            value.year, value.month, value.day,
            value.hour, value.minute, value.second, value.microsecond * 1000,
        )
        return self.from_parts(parts, adjustment)

    def __str__(self) -> str:
        return self.label


# =============================================================================
# TimePoint
# =============================================================================

@dataclass(frozen=True, eq=False)
class TimePoint:
    """An absolute time in a domain. Immutable."""
    domain: TimeDomain
    index: int

    def __post_init__(self):
        if not self.domain.valid(self.index):
            raise ValueError("index %d out of range for domain %s" % (self.index, self.domain))

    @property
    def parts(self) -> TimeParts:
        return self.domain.unpack(self.index)

    def add(self, increment: int) -> "TimePoint":
        """
        Return the time ``increment`` units after this one.

        Raises:
            TimeOverflowError: if the result is outside the domain
        """
        result = self.index + increment
        if not self.domain.valid(result):
            raise TimeOverflowError(self, increment)
        return TimePoint(self.domain, result)

    def sub(self, other: "TimePoint") -> int:
        """Return the number of units between other and this time, in the same domain."""
        if self.domain != other.domain:
            raise DomainMismatchError(other, self)
        return self.index - other.index

    def convert(self, domain: TimeDomain, adjustment: Adjustment = Adjustment.NONE) -> "TimePoint":
        """
        Convert into another domain. Fields finer than the target resolution
        are dropped, missing fields start the period.

        Raises:
            TimeParseError: if the time is not valid in the domain and adjustment is NONE
        """
        if domain == self.domain:
            return self
        parts = self.parts.truncate(domain.resolution)
        try:
            return TimePoint(domain, domain.pack(parts, adjustment))
        except ValueError as e:
            raise TimeParseError(str(self), domain, str(e)) from e

    def to_datetime(self) -> datetime:
        parts = self.parts
        return datetime(
            parts.year, parts.month, parts.day,
            parts.hour, parts.minute, parts.second, parts.nanos // 1000,
        )

    def interval(self) -> Tuple[datetime, datetime]:
        """
        Return the first and last datetime of the period denoted by this time.

        Returns:
            Tuple of (start, end) datetimes, end inclusive at microsecond precision.
        """
        start = self.to_datetime()
        step = _PERIOD_STEPS.get(self.domain.resolution)
        if step is None:
            return (start, start)
        return (start, start + step - relativedelta(microseconds=1))

    def _sort_key(self, other: "TimePoint") -> Tuple[int, int]:
        if self.domain == other.domain:
            return (self.index, other.index)
        resolution = max(self.domain.resolution, other.domain.resolution)
        return (raw_index(resolution, self.parts), raw_index(resolution, other.parts))

    def __eq__(self, other):
        if not isinstance(other, TimePoint):
            return NotImplemented
        return self.domain == other.domain and self.index == other.index

    def __hash__(self):
        return hash((self.domain, self.index))

    def __lt__(self, other):
        if not isinstance(other, TimePoint):
            return NotImplemented
        mine, theirs = self._sort_key(other)
        return mine < theirs

    def __gt__(self, other):
        if not isinstance(other, TimePoint):
            return NotImplemented
        mine, theirs = self._sort_key(other)
        return mine > theirs

    # times of different domains may be equal on the calendar without being ==
    def __le__(self, other):
        if not isinstance(other, TimePoint):
            return NotImplemented
        mine, theirs = self._sort_key(other)
        return mine <= theirs

    def __ge__(self, other):
        if not isinstance(other, TimePoint):
            return NotImplemented
        mine, theirs = self._sort_key(other)
        return mine >= theirs

    def __str__(self) -> str:
        return format_parts(self.domain.resolution, self.parts)

    def __repr__(self) -> str:
        return f"TimePoint({self.domain.label}, {self})"


_PERIOD_STEPS = {
    Resolution.YEAR: relativedelta(years=1),
    Resolution.MONTH: relativedelta(months=1),
    Resolution.DAY: relativedelta(days=1),
    Resolution.HOUR: relativedelta(hours=1),
    Resolution.MIN: relativedelta(minutes=1),
    Resolution.SEC: relativedelta(seconds=1),
    Resolution.MSEC: relativedelta(microseconds=1000),
}


# =============================================================================
# Range
# =============================================================================

class Range:
    """
    A closed interval of times in one domain, or an empty range.

    Examples:
        Range(DAILY)                                   # empty
        Range.of(DAILY.time("2009-11-19"), DAILY.time("2009-11-20"))
    """

    def __init__(self, domain: TimeDomain, first: int = 0, last: int = -1):
        self._domain = domain
        if first > last:
            first, last = 0, -1
        self._first = first
        self._last = last

    @classmethod
    def of(cls, first: TimePoint, last: TimePoint) -> "Range":
        """Build a range from two times of the same domain. first > last gives an empty range."""
        if first.domain != last.domain:
            raise DomainMismatchError(first, last)
        return cls(first.domain, first.index, last.index)

    @classmethod
    def parse(cls, domain: TimeDomain, first: str, last: str,
              adjustment: Adjustment = Adjustment.NONE) -> "Range":
        """
        Build a range from two texts. With UP the range is made larger when a
        bound must be adjusted, with DOWN it is made smaller.
        """
        first_adjustment, last_adjustment = _bound_adjustments(adjustment)
        return cls.of(domain.time(first, first_adjustment), domain.time(last, last_adjustment))

    @property
    def domain(self) -> TimeDomain:
        return self._domain

    @property
    def first(self) -> Optional[TimePoint]:
        if self.is_empty:
            return None
        return TimePoint(self._domain, self._first)

    @property
    def last(self) -> Optional[TimePoint]:
        if self.is_empty:
            return None
        return TimePoint(self._domain, self._last)

    @property
    def is_empty(self) -> bool:
        return self._first > self._last

    @property
    def size(self) -> int:
        return self._last - self._first + 1

    def convert(self, domain: TimeDomain, adjustment: Adjustment = Adjustment.NONE) -> "Range":
        if domain == self._domain:
            return self
        if self.is_empty:
            return Range(domain)
        first_adjustment, last_adjustment = _bound_adjustments(adjustment)
        return Range(
            domain,
            self.first.convert(domain, first_adjustment).index,
            self.last.convert(domain, last_adjustment).index,
        )

    def union(self, other: "Range") -> "Range":
        self._require_same_domain(other)
        if other.is_empty:
            return self
        if self.is_empty:
            return other
        return Range(self._domain, min(self._first, other._first), max(self._last, other._last))

    def intersection(self, other: "Range") -> "Range":
        self._require_same_domain(other)
        if self.is_empty or other.is_empty:
            return Range(self._domain)
        return Range(self._domain, max(self._first, other._first), min(self._last, other._last))

    def _require_same_domain(self, other: "Range") -> None:
        if self._domain != other._domain:
            raise ValueError(
                "ranges in different domains: %s, %s" % (self._domain.label, other._domain.label)
            )

    def __contains__(self, time) -> bool:
        if isinstance(time, TimePoint):
            if time.domain != self._domain:
                return False
            time = time.index
        return self._first <= time <= self._last

    def __iter__(self) -> Iterator[TimePoint]:
        for index in range(self._first, self._last + 1):
            yield TimePoint(self._domain, index)

    def __len__(self) -> int:
        return self.size

    def __eq__(self, other):
        if not isinstance(other, Range):
            return NotImplemented
        return (self._domain, self._first, self._last) == (other._domain, other._first, other._last)

    def __hash__(self):
        return hash((self._domain, self._first, self._last))

    def __str__(self) -> str:
        if self.is_empty:
            return "[]"
        return "[%s, %s]" % (self.first, self.last)

    def __repr__(self) -> str:
        return f"Range({self._domain.label}, {self})"


def _bound_adjustments(adjustment: Adjustment) -> Tuple[Adjustment, Adjustment]:
    if adjustment == Adjustment.UP:
        # make range larger if necessary
        return (Adjustment.DOWN, Adjustment.UP)
    if adjustment == Adjustment.DOWN:
        # make range smaller if necessary
        return (Adjustment.UP, Adjustment.DOWN)
    return (Adjustment.NONE, Adjustment.NONE)


# =============================================================================
# Catalog
# =============================================================================

YEARLY = TimeDomain("yearly", Resolution.YEAR)
MONTHLY = TimeDomain("monthly", Resolution.MONTH)
DAILY = TimeDomain("daily", Resolution.DAY)
WORKWEEK = TimeDomain("workweek", Resolution.DAY, WEEKDAYS)
HOURLY = TimeDomain("hourly", Resolution.HOUR)
MINUTELY = TimeDomain("minutely", Resolution.MIN)
DATETIME = TimeDomain("datetime", Resolution.SEC)
SYSTEMTIME = TimeDomain("systemtime", Resolution.MSEC)
MICROTIME = TimeDomain("microtime", Resolution.USEC)
NANOTIME = TimeDomain("nanotime", Resolution.NSEC)

_CATALOG: Dict[str, TimeDomain] = {
    d.label: d
    for d in (YEARLY, MONTHLY, DAILY, WORKWEEK, HOURLY, MINUTELY, DATETIME, SYSTEMTIME, MICROTIME, NANOTIME)
}


def get_domain(label) -> TimeDomain:
    """Return the domain with the given label. A TimeDomain is returned as is."""
    if isinstance(label, TimeDomain):
        return label
    try:
        return _CATALOG[label]
    except KeyError:
        raise UnknownDomainError(label) from None


def catalog_labels() -> List[str]:
    return list(_CATALOG)
