"""
Day expressions: symbolic times resolved on demand.

A day expression is a keyword or a date followed by zero or more positive or
negative offsets::

    expression := (today | start | end | date) (('+' | '-') integer)*
    date       := yyyy-mm-dd

Examples: ``today``, ``today-20``, ``end-2+1``, ``2009-11-20+3``.

To be resolved, an expression needs a context. The context is either a time
domain or a range. The keywords ``start`` and ``end`` stand for the bounds of
a range and can only be resolved against one. Expressions can be incremented
without being resolved: incrementing ``start`` by 2 gives ``start+2``.

Offsets of dates are applied as soon as the date is known, in the domain
the expression is parsed in: ``2009-11-23-1`` is the Friday before in the
workweek domain and one hour before midnight in the hourly one. Offsets of
``start`` and ``end`` are applied in the context domain. Offsets of ``today``
are applied in the context domain, except when the domain is finer than
daily: then the offset counts days, so that ``today-20`` means twenty days ago
in a domain with second resolution.

A new expression has no value. Resolving it before it was set is a bug and
raises ExpressionStateError.
"""

import logging
from enum import Enum
from typing import Optional, Tuple, Union

import regex as re

from .clock import Clock, now
from .domain import DAILY, Adjustment, Range, Resolution, TimeDomain, TimePoint
from .exceptions import (
    ContextError,
    ExpressionStateError,
    InvalidOffsetError,
    TimeExprError,
    TimeParseError,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

TODAY = "today"
START = "start"
END = "end"

# a date typed at the front of a longer expression is always yyyy-mm-dd
DATE_PREFIX_LENGTH = 10

# offsets are kept within the signed 32-bit range
MAX_OFFSET = 2 ** 31 - 1

RE_UNSIGNED = re.compile(r"[0-9]+")
RE_SIGN = re.compile(r"[+-]")


class Kind(Enum):
    """The variants of a day expression."""
    LITERAL = "LITERAL"
    TODAY = "TODAY"
    START = "START"
    END = "END"
    ERROR = "ERROR"


KEYWORDS = (
    (TODAY, Kind.TODAY),
    (START, Kind.START),
    (END, Kind.END),
)


def parse_offset(modifier: str) -> int:
    """
    Parse a chain of signed integers like ``+1+4-2`` and return their sum.

    Each term is a sign followed by decimal digits. A term which would take
    the sum out of the offset range is skipped; the sum never wraps around.

    Raises:
        ValueError: if the chain is malformed
    """
    total = 0
    position = 0
    while position < len(modifier):
        if modifier[position] not in "+-":
            raise ValueError(modifier)
        match = RE_SIGN.search(modifier, position + 1)
        end = match.start() if match else len(modifier)
        digits = modifier[position + 1:end]
        if not RE_UNSIGNED.fullmatch(digits):
            raise ValueError(modifier)
        term = int(digits)
        if term > MAX_OFFSET:
            raise ValueError(modifier)
        if modifier[position] == "-":
            term = -term
        if abs(total + term) <= MAX_OFFSET:
            total += term
        else:
            logger.debug(f"Offset term {term:+d} refused in '{modifier}', sum would be out of range")
        position = end
    return total


def offset_domain(domain: TimeDomain) -> TimeDomain:
    """Return the domain in which offsets of ``today`` are counted."""
    if domain.compare_resolution_to(Resolution.DAY) < 0:
        return DAILY
    return domain


# =============================================================================
# DayExpression
# =============================================================================

class DayExpression:
    """
    A symbolic time: a literal time, ``today``, ``start`` or ``end``, with a
    pending offset.

    Only literals hold a time, and a literal never keeps an offset: offsets
    are folded into the time immediately.
    """

    def __init__(self, adjustment: Adjustment, clock: Optional[Clock] = None):
        """
        Args:
            adjustment: used when a time must be converted into a domain where
                it is not valid
            clock: provider of the current instant, the process default if None
        """
        if adjustment is None:
            raise ValueError("adjustment null")
        if not isinstance(adjustment, Adjustment):
            raise TypeError("adjustment must be an Adjustment (%r given)" % (adjustment,))
        self.adjustment = adjustment
        self.clock = clock
        self.kind = Kind.ERROR
        self.time: Optional[TimePoint] = None
        self.offset = 0

    @classmethod
    def parse_day(cls, text: str, domain: Optional[TimeDomain] = None,
                  adjustment: Adjustment = Adjustment.NONE,
                  clock: Optional[Clock] = None) -> TimePoint:
        """
        Parse an expression as a date in the daily domain and resolve it in a domain.

        Example::

            >>> str(DayExpression.parse_day("2001-05-26+2"))
            '2001-05-28'
        """
        expr = cls(adjustment, clock)
        expr.set_expression(DAILY, text)
        return expr.get_date(domain or DAILY)

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    def copy(self) -> "DayExpression":
        """Return an independent copy, usable as a restore point."""
        duplicate = DayExpression(self.adjustment, self.clock)
        duplicate.reset(self)
        return duplicate

    def reset(self, model: Optional["DayExpression"]) -> None:
        """Change the expression to match the model. Do nothing if the model is None."""
        if model is None:
            return
        self.adjustment = model.adjustment
        self.clock = model.clock
        self.kind = model.kind
        self.time = model.time  # time points are immutable
        self.offset = model.offset

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    def is_today(self) -> bool:
        return self.kind is Kind.TODAY

    def need_context(self) -> bool:
        """Return True if the expression can only be resolved in a range."""
        kind = self.kind
        if kind is Kind.LITERAL or kind is Kind.TODAY:
            return False
        if kind is Kind.START or kind is Kind.END:
            return True
        if kind is Kind.ERROR:
            raise ExpressionStateError("expression was never set")
        raise AssertionError(kind)

    def set_time(self, time: TimePoint) -> None:
        """Make the expression a literal for the given time."""
        if time is None:
            raise ValueError("time null")
        self.kind = Kind.LITERAL
        self.time = time
        self.offset = 0

    def set_expression(self, domain: TimeDomain, text: str) -> None:
        """
        Parse text into the expression. On failure the expression is left unchanged.

        Raises:
            TimeParseError: if the text is not a valid expression for the domain
            InvalidOffsetError: if the offsets of the expression are malformed
            TimeOverflowError: if the offset moves a date out of the domain
        """
        if domain is None:
            raise ValueError("domain null")
        kind, time, offset = self._parse(domain, text)
        self.kind = kind
        self.time = time
        self.offset = offset

    def incr(self, increment: int) -> None:
        """
        Add to the pending offset. The offset of a literal is applied at once.

        If the new pending offset of a keyword would be out of range the
        offset is left alone. Literals are only bounded by their domain.

        Raises:
            ExpressionStateError: if the expression was never set
            TimeOverflowError: if a literal moves out of its domain
        """
        if self.kind is Kind.ERROR:
            raise ExpressionStateError("expression was never set")
        if increment == 0:
            return
        if self.kind is Kind.LITERAL:
            self.time = self.time.add(increment)
            return
        candidate = self.offset + increment
        if abs(candidate) > MAX_OFFSET:
            logger.debug(f"Increment {increment} refused for '{self.get_expression()}'")
            return
        self.offset = candidate

    def get_expression(self) -> str:
        """Return the expression as text, keywords in lower case."""
        kind = self.kind
        if kind is Kind.LITERAL:
            return str(self.time)
        if kind is Kind.TODAY:
            expression = TODAY
        elif kind is Kind.START:
            expression = START
        elif kind is Kind.END:
            expression = END
        elif kind is Kind.ERROR:
            raise ExpressionStateError("expression was never set")
        else:
            raise AssertionError(kind)
        if self.offset > 0:
            return "%s+%d" % (expression, self.offset)
        if self.offset < 0:
            return "%s%d" % (expression, self.offset)
        return expression

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    def get_date(self, context: Union[TimeDomain, Range]) -> Optional[TimePoint]:
        """
        Resolve the expression in a domain or in a range.

        When the context is a range, ``start`` and ``end`` resolve to its
        bounds. They resolve to None when the range is empty.

        Raises:
            ContextError: if ``start`` or ``end`` is resolved in a domain
            ExpressionStateError: if the expression was never set
        """
        if isinstance(context, Range):
            return self._get_date_in_range(context)
        return self._get_date_in_domain(context)

    def _get_date_in_domain(self, domain: TimeDomain) -> TimePoint:
        kind = self.kind
        if kind is Kind.LITERAL:
            return self.time.convert(domain, self.adjustment)
        if kind is Kind.TODAY:
            return self._resolve_today(domain)[1]
        if kind is Kind.START or kind is Kind.END:
            raise ContextError(self.get_expression())
        if kind is Kind.ERROR:
            raise ExpressionStateError("expression was never set")
        raise AssertionError(kind)

    def _get_date_in_range(self, context: Range) -> Optional[TimePoint]:
        kind = self.kind
        if kind is Kind.LITERAL or kind is Kind.TODAY:
            return self._get_date_in_domain(context.domain)
        if kind is Kind.START:
            return self._add_offset(context.first)
        if kind is Kind.END:
            return self._add_offset(context.last)
        if kind is Kind.ERROR:
            raise ExpressionStateError("expression was never set")
        raise AssertionError(kind)

    def _resolve_today(self, domain: TimeDomain) -> Tuple[TimePoint, TimePoint]:
        """
        Return ``today`` plus offset, in the domain where the offset is
        counted, and converted into the domain.
        """
        unit_domain = offset_domain(domain)
        time = self._add_offset(now(unit_domain, self.clock))
        if unit_domain == domain:
            return (time, time)
        return (time, time.convert(domain, Adjustment.DOWN))

    def _add_offset(self, time: Optional[TimePoint]) -> Optional[TimePoint]:
        if time is None:
            return None
        if self.offset != 0:
            return time.add(self.offset)
        return time

    # -------------------------------------------------------------------------
    # Parsing
    # -------------------------------------------------------------------------

    def _parse(self, domain: TimeDomain, text: str) -> Tuple[Kind, Optional[TimePoint], int]:
        time = None
        try:
            if len(text) > DATE_PREFIX_LENGTH:
                # dates are typed yyyy-mm-dd, whatever the domain
                time = domain.time(text[:DATE_PREFIX_LENGTH], self.adjustment)
                modifier = text[DATE_PREFIX_LENGTH:]
            else:
                time = domain.time(text, self.adjustment)
                modifier = ""
            kind = Kind.LITERAL
        except TimeParseError as e:
            kind, modifier = self._parse_keyword(text, e)

        offset = 0
        if modifier:
            try:
                offset = parse_offset(modifier)
            except ValueError:
                if time is None:
                    raise InvalidOffsetError(modifier, text) from None
                # maybe a time with a finer resolution, like 2009-11-20 10:30
                logger.debug(f"'{modifier}' is not an offset, parsing '{text}' as a single time")
                try:
                    time = domain.time(text, self.adjustment)
                except TimeParseError:
                    raise InvalidOffsetError(modifier, text) from None

        if kind is Kind.LITERAL and offset != 0:
            # offsets of dates count units of the domain
            time = time.add(offset)
            offset = 0
        return kind, time, offset

    @staticmethod
    def _parse_keyword(text: str, error: TimeExprError) -> Tuple[Kind, str]:
        lowered = text.lower()
        for keyword, kind in KEYWORDS:
            if lowered.startswith(keyword):
                return kind, lowered[len(keyword):]
        raise error

    # -------------------------------------------------------------------------
    # Range enforcement
    # -------------------------------------------------------------------------

    def enforce_valid_range(self, domain: TimeDomain, begin: "DayExpression", keep_begin: bool) -> bool:
        """
        Make sure ``begin`` does not resolve after this expression, the end
        of a range.

        When keep_begin is True this expression is modified, else ``begin``
        is. Only pairs which can be compared without a range are enforced:
        two expressions of the same kind, and ``today`` against a literal.
        Other pairs are left alone.

        Returns:
            False if either expression was never set, True otherwise.
        """
        if self.kind is Kind.ERROR or begin.kind is Kind.ERROR:
            return False
        rule = ENFORCEMENT_RULES[(self.kind, begin.kind)]
        rule(self, domain, begin, keep_begin)
        return True

    def _enforce_same_kind(self, domain: TimeDomain, begin: "DayExpression", keep_begin: bool) -> None:
        if self.kind is not Kind.LITERAL:
            if begin.offset > self.offset:
                logger.debug(f"Range repair: offsets {begin.offset} > {self.offset}")
                if keep_begin:
                    self.offset = begin.offset
                else:
                    begin.offset = self.offset
        elif begin.time > self.time:
            logger.debug(f"Range repair: {begin.time} > {self.time}")
            if keep_begin:
                self.set_time(begin.time)
            else:
                begin.set_time(self.time)

    def _enforce_today_before_literal(self, domain: TimeDomain, begin: "DayExpression", keep_begin: bool) -> None:
        begin_unit, begin_time = begin._resolve_today(domain)
        end_time = self._get_date_in_domain(domain)
        if begin_time <= end_time:
            return
        logger.debug(f"Range repair: today {begin_time} > {end_time}")
        if keep_begin:
            self.set_time(begin_time)
            return
        # move today back to the day of the end, counted in the unit of today's offset
        target = end_time.convert(begin_unit.domain, Adjustment.DOWN)
        gap = begin_unit.sub(target)
        if abs(begin.offset - gap) <= MAX_OFFSET:
            begin.offset -= gap
        else:
            begin.set_time(end_time)

    def _enforce_literal_before_today(self, domain: TimeDomain, begin: "DayExpression", keep_begin: bool) -> None:
        end_unit, end_time = self._resolve_today(domain)
        begin_time = begin._get_date_in_domain(domain)
        if begin_time <= end_time:
            return
        logger.debug(f"Range repair: {begin_time} > today {end_time}")
        if not keep_begin:
            begin.set_time(end_time)
            return
        # move today forward to the first unit not before the begin
        target = begin_time.convert(end_unit.domain, Adjustment.DOWN)
        if target.convert(domain, Adjustment.DOWN) < begin_time:
            target = target.add(1)
        gap = target.sub(end_unit)
        if abs(self.offset + gap) <= MAX_OFFSET:
            self.offset += gap
        else:
            self.set_time(begin_time)

    def _enforce_nothing(self, domain: TimeDomain, begin: "DayExpression", keep_begin: bool) -> None:
        # the pair cannot be ordered without a range
        pass

    # -------------------------------------------------------------------------

    def __eq__(self, other):
        if not isinstance(other, DayExpression):
            return NotImplemented
        return (self.adjustment, self.kind, self.time, self.offset) == (
            other.adjustment, other.kind, other.time, other.offset
        )

    def __repr__(self) -> str:
        if self.kind is Kind.ERROR:
            return f"DayExpression({self.adjustment.name}, unset)"
        return f"DayExpression({self.adjustment.name}, {self.get_expression()!r})"


# (end kind, begin kind) -> rule; every pair of set expressions is listed
ENFORCEMENT_RULES = {
    (Kind.LITERAL, Kind.LITERAL): DayExpression._enforce_same_kind,
    (Kind.LITERAL, Kind.TODAY): DayExpression._enforce_today_before_literal,
    (Kind.LITERAL, Kind.START): DayExpression._enforce_nothing,
    (Kind.LITERAL, Kind.END): DayExpression._enforce_nothing,
    (Kind.TODAY, Kind.LITERAL): DayExpression._enforce_literal_before_today,
    (Kind.TODAY, Kind.TODAY): DayExpression._enforce_same_kind,
    (Kind.TODAY, Kind.START): DayExpression._enforce_nothing,
    (Kind.TODAY, Kind.END): DayExpression._enforce_nothing,
    (Kind.START, Kind.LITERAL): DayExpression._enforce_nothing,
    (Kind.START, Kind.TODAY): DayExpression._enforce_nothing,
    (Kind.START, Kind.START): DayExpression._enforce_same_kind,
    (Kind.START, Kind.END): DayExpression._enforce_nothing,
    (Kind.END, Kind.LITERAL): DayExpression._enforce_nothing,
    (Kind.END, Kind.TODAY): DayExpression._enforce_nothing,
    (Kind.END, Kind.START): DayExpression._enforce_nothing,
    (Kind.END, Kind.END): DayExpression._enforce_same_kind,
}
