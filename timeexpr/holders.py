"""
Holders help applications edit times and ranges as text.

A RangeHolder keeps a pair of day expressions, the begin and the end of a
range, and makes sure after every change that the begin does not come after
the end. A DateHolder keeps a single day expression.
"""

import logging
from typing import Callable, Optional, Tuple, Union

from .clock import Clock, SystemClock, now
from .conf import apply_settings
from .domain import Adjustment, Range, Resolution, TimeDomain, TimePoint, get_domain
from .exceptions import MissingValueError, RangeInconsistencyError
from .expression import DayExpression, Kind

logger = logging.getLogger(__name__)


# number of units of a large increment, by resolution of the domain
LARGE_INCREMENTS = {
    Resolution.YEAR: 5,
    Resolution.MONTH: 12,
    Resolution.DAY: 15,
    Resolution.HOUR: 24,
    Resolution.MIN: 24 * 60,
    Resolution.SEC: 24 * 60 * 60,
    Resolution.MSEC: 24 * 60 * 60 * 1000,
    Resolution.USEC: 24 * 60 * 60 * 1000 * 1000,
    Resolution.NSEC: 24 * 60 * 60 * 1000 * 1000 * 1000,
}


def get_large_increment(resolution: Resolution) -> int:
    return LARGE_INCREMENTS[resolution]


def nudge_amount(domain: TimeDomain, expr: Optional[DayExpression], up: bool, large: bool) -> int:
    """
    Return the increment for a small or large step up or down. A large step
    on ``today`` counts days, like offsets of ``today``.
    """
    amount = 1
    if large:
        if expr is not None and expr.is_today():
            amount = get_large_increment(Resolution.DAY)
        else:
            amount = get_large_increment(domain.resolution)
    return amount if up else -amount


def _make_clock(clock: Optional[Clock], settings) -> Optional[Clock]:
    if clock is None and settings.TIMEZONE is not None:
        return SystemClock(settings.TIMEZONE)
    return clock


# =============================================================================
# RangeHolder
# =============================================================================

class RangeHolder:
    """
    A range as a pair of day expressions in a time domain.

    Times are adjusted upwards for the begin of the range and downwards for
    the end. Setting an empty begin or end empties the whole range.

    Example::

        >>> holder = RangeHolder("daily")
        >>> holder.set_begin("2009-11-20")
        >>> holder.set_end("2009-11-10")
        >>> holder.get_begin_text(), holder.get_end_text()
        ('2009-11-10', '2009-11-10')
    """

    begin_adjustment = Adjustment.UP
    end_adjustment = Adjustment.DOWN

    @apply_settings
    def __init__(self, domain: Union[TimeDomain, str, None] = None,
                 clock: Optional[Clock] = None, settings=None):
        """
        Create a holder with both bounds set to the current time.

        Args:
            domain: a domain or a domain label, DEFAULT_DOMAIN from settings if None
            clock: provider of the current instant
        """
        self.domain = get_domain(domain or settings.DEFAULT_DOMAIN)
        self.clock = _make_clock(clock, settings)
        self._begin: Optional[DayExpression] = None
        self._end: Optional[DayExpression] = None
        current = now(self.domain, self.clock)
        self._new_pair()
        self._begin.set_time(current)
        self._end.set_time(current)

    @classmethod
    def from_range(cls, range_: Range, clock: Optional[Clock] = None) -> "RangeHolder":
        holder = cls(range_.domain, clock=clock)
        holder.reset_range(range_)
        return holder

    def copy(self) -> "RangeHolder":
        duplicate = RangeHolder.__new__(RangeHolder)
        duplicate.domain = self.domain
        duplicate.clock = self.clock
        duplicate._begin, duplicate._end = self._snapshot()
        return duplicate

    def _new_pair(self) -> None:
        self._begin = DayExpression(self.begin_adjustment, self.clock)
        self._end = DayExpression(self.end_adjustment, self.clock)

    def _set_empty(self) -> None:
        self._begin = None
        self._end = None

    def is_empty(self) -> bool:
        return self._begin is None

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def _snapshot(self) -> Tuple[Optional[DayExpression], Optional[DayExpression]]:
        if self._begin is None:
            return (None, None)
        return (self._begin.copy(), self._end.copy())

    def _restore(self, snapshot) -> None:
        self._begin, self._end = snapshot

    def _transaction(self, mutation: Callable[[], None], keep_begin: Optional[bool]) -> None:
        """
        Apply a mutation, then enforce a valid range. If anything fails both
        bounds are restored to their state before the call.

        Args:
            mutation: the change to apply
            keep_begin: True when the begin was changed and the end must give
                way, False for the reverse, None to skip enforcement
        """
        snapshot = self._snapshot()
        try:
            mutation()
            if keep_begin is not None and self._begin is not None:
                if not self._end.enforce_valid_range(self.domain, self._begin, keep_begin):
                    raise RangeInconsistencyError(_safe_text(self._begin), _safe_text(self._end))
        except Exception as e:
            logger.warning(f"Range holder rolled back: {e}")
            self._restore(snapshot)
            raise

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def reset(self, domain: Union[TimeDomain, str]) -> None:
        """
        Change the time domain, keeping the texts of both bounds. Literal
        dates are validated again in the new domain. On failure the holder
        is left unchanged.
        """
        if domain is None:
            raise ValueError("domain null")
        domain = get_domain(domain)
        previous_domain = self.domain
        snapshot = self._snapshot()
        begin = self.get_begin_text()
        end = self.get_end_text()
        self.domain = domain
        try:
            self._transaction(lambda: self._set_bound(True, begin), None)
            self.set_end(end)
        except Exception:
            self.domain = previous_domain
            self._restore(snapshot)
            raise

    def reset_range(self, range_: Range) -> None:
        """Replace the content with a concrete range. An empty range empties the holder."""
        self.domain = range_.domain
        if range_.is_empty:
            self._set_empty()
        else:
            self._new_pair()
            self._begin.set_time(range_.first)
            self._end.set_time(range_.last)

    def _set_bound(self, begin: bool, text: Optional[str]) -> None:
        if not text:
            self._set_empty()
            return
        if self._begin is None:
            # a range has both bounds or none: start from a single time
            self._new_pair()
            self._begin.set_expression(self.domain, text)
            self._end.set_expression(self.domain, text)
        elif begin:
            self._begin.set_expression(self.domain, text)
        else:
            self._end.set_expression(self.domain, text)

    def set_begin(self, text: Optional[str]) -> None:
        """
        Set the begin of the range. A None or empty text empties the range.
        The end may be changed to keep the range valid.

        Raises:
            TimeParseError: if the text is not a valid day expression
            RangeInconsistencyError: if no valid range can be made
        """
        self._transaction(lambda: self._set_bound(True, text), True)

    def set_end(self, text: Optional[str]) -> None:
        """
        Set the end of the range. A None or empty text empties the range.
        The begin may be changed to keep the range valid.
        """
        self._transaction(lambda: self._set_bound(False, text), False)

    def incr_begin(self, increment: int) -> None:
        """
        Increment the begin of the range. If the range is empty, both bounds
        are set to the current time instead.
        """
        if increment == 0:
            return
        if self._begin is None:
            self.set_begin(str(now(self.domain, self.clock)))
        else:
            self._transaction(lambda: self._begin.incr(increment), True)

    def incr_end(self, increment: int) -> None:
        """
        Increment the end of the range. If the range is empty, both bounds
        are set to the current time instead.
        """
        if increment == 0:
            return
        if self._end is None:
            self.set_end(str(now(self.domain, self.clock)))
        else:
            self._transaction(lambda: self._end.incr(increment), False)

    def nudge_begin(self, up: bool, large: bool = False) -> None:
        """
        Move the begin up or down by one unit, or by a large amount which
        depends on the resolution of the domain.
        """
        self.incr_begin(nudge_amount(self.domain, self._begin, up, large))

    def nudge_end(self, up: bool, large: bool = False) -> None:
        self.incr_end(nudge_amount(self.domain, self._end, up, large))

    # -------------------------------------------------------------------------
    # Access
    # -------------------------------------------------------------------------

    def get_begin_text(self) -> str:
        """Return the text of the begin expression, or an empty string."""
        if self._begin is None:
            return ""
        return self._begin.get_expression()

    def get_end_text(self) -> str:
        if self._end is None:
            return ""
        return self._end.get_expression()

    def need_context(self) -> bool:
        """Return True if a bound can only be resolved in a range."""
        return (self._begin is not None and self._begin.need_context()) \
            or (self._end is not None and self._end.need_context())

    def get_range(self, context: Union[TimeDomain, Range, None] = None) -> Range:
        """
        Resolve the range in the holder's domain, in another domain, or in
        the context of a range.

        In the context of a range, inversions are never reported as errors:
        an inversion caused by ``start`` or ``end`` gives an empty range, and
        an inversion caused by adjustments during conversion, like the daily
        range [1980-11-22, 1980-11-22] becoming [1980-11-24, 1980-11-21] in
        the workweek domain, is fixed to [1980-11-21, 1980-11-21].
        """
        if context is None:
            context = self.domain
        if isinstance(context, Range):
            return self._get_range_in_range(context)
        if self._begin is None:
            return Range(context)
        return Range.of(self._begin.get_date(context), self._end.get_date(context))

    def _get_range_in_range(self, context: Range) -> Range:
        domain = context.domain
        if self._begin is None:
            return Range(domain)
        begin = self._begin.get_date(context)
        end = self._end.get_date(context)
        if begin is None or end is None:
            # start or end in an empty context
            return Range(domain)
        if begin > end:
            if self._begin.need_context() or self._end.need_context():
                return Range(domain)
            if self._begin.adjustment is Adjustment.UP:
                logger.debug(f"Range [{begin}, {end}] inverted by conversion, begin moved to {end}")
                repaired = self._begin.copy()
                repaired.set_time(end)
                begin = repaired.get_date(context)
        return Range.of(begin, end)

    def __repr__(self) -> str:
        return f"RangeHolder({self.domain.label}, [{self.get_begin_text()!r}, {self.get_end_text()!r}])"


def _safe_text(expr: DayExpression) -> str:
    if expr.kind is Kind.ERROR:
        return ""
    return expr.get_expression()


# =============================================================================
# DateHolder
# =============================================================================

class DateHolder:
    """
    A single day expression in a time domain. Times are adjusted downwards.

    An empty date is rejected unless allowed with :meth:`allow_empty_date`.
    """

    adjustment = Adjustment.DOWN

    @apply_settings
    def __init__(self, domain: Union[TimeDomain, str, None] = None,
                 clock: Optional[Clock] = None, settings=None):
        """Create a holder set to the current time."""
        self.domain = get_domain(domain or settings.DEFAULT_DOMAIN)
        self.clock = _make_clock(clock, settings)
        self._empty_ok = settings.ALLOW_EMPTY_DATE
        self._expr: Optional[DayExpression] = None
        self.reset_to_current_time()

    def allow_empty_date(self, allow: bool) -> None:
        self._empty_ok = allow

    def reset(self, domain: Union[TimeDomain, str]) -> None:
        """
        Change the time domain, keeping the text of the date. On failure the
        holder is left unchanged.
        """
        if domain is None:
            raise ValueError("domain null")
        domain = get_domain(domain)
        if domain == self.domain:
            return
        text = self.get_date_text()
        previous_domain = self.domain
        self.domain = domain
        try:
            self.set_date(text)
        except Exception:
            self.domain = previous_domain
            raise

    def reset_to_current_time(self) -> None:
        if self._expr is None:
            self._expr = DayExpression(self.adjustment, self.clock)
        self._expr.set_time(now(self.domain, self.clock))

    def set_date(self, text: Optional[str]) -> None:
        """
        Set the date from a day expression.

        Raises:
            MissingValueError: if the text is empty and empty dates are not allowed
            TimeParseError: if the text is not a valid day expression
        """
        if not text:
            if not self._empty_ok:
                raise MissingValueError()
            self._expr = None
            return
        expr = self._expr or DayExpression(self.adjustment, self.clock)
        expr.set_expression(self.domain, text)
        self._expr = expr

    def incr_date(self, increment: int) -> None:
        """Increment the date. If no date is set, set it to the current time instead."""
        if increment == 0:
            return
        if self._expr is None:
            self.reset_to_current_time()
        else:
            self._expr.incr(increment)

    def nudge_date(self, up: bool, large: bool = False) -> None:
        self.incr_date(nudge_amount(self.domain, self._expr, up, large))

    def get_date_text(self) -> str:
        """Return the text of the expression without resolving it, or an empty string."""
        if self._expr is None:
            return ""
        return self._expr.get_expression()

    def get_date(self, context: Union[TimeDomain, Range, None] = None) -> Optional[TimePoint]:
        """
        Resolve the date in the holder's domain, in another domain, or in
        the context of a range. Return None if no date is set.
        """
        if self._expr is None:
            return None
        return self._expr.get_date(self.domain if context is None else context)

    def __repr__(self) -> str:
        return f"DateHolder({self.domain.label}, {self.get_date_text()!r})"
