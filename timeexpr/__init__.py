__version__ = "1.0.0"

from .conf import apply_settings
from .clock import Clock, SystemClock, FixedClock, get_clock, set_clock, now
from .domain import (
    # Enums
    Resolution, Adjustment,
    # Calendar
    Cycle, TimeDomain, TimePoint, TimeParts, Range,
    # Catalog
    YEARLY, MONTHLY, DAILY, WORKWEEK, HOURLY, MINUTELY,
    DATETIME, SYSTEMTIME, MICROTIME, NANOTIME,
    get_domain, catalog_labels,
)
from .exceptions import (
    TimeExprError,
    TimeParseError,
    InvalidOffsetError,
    ContextError,
    RangeInconsistencyError,
    TimeOverflowError,
    MissingValueError,
    DomainMismatchError,
    UnknownDomainError,
    ExpressionStateError,
)
from .expression import DayExpression, Kind, parse_offset
from .holders import RangeHolder, DateHolder, LARGE_INCREMENTS, get_large_increment


@apply_settings
def resolve(text, domain=None, context=None, clock=None, settings=None):
    """Parse a day expression and resolve it to a time.

    :param text:
        A day expression, e.g. ``"today-5"``, ``"end-2"`` or ``"2009-11-20+3"``.
    :type text: str

    :param domain:
        A :class:`TimeDomain` or a domain label such as ``"workweek"``.
        Defaults to the domain of ``context`` or to ``DEFAULT_DOMAIN`` from settings.

    :param context:
        A :class:`Range` giving meaning to the keywords ``start`` and ``end``.

    :param clock:
        A :class:`Clock` providing the current instant for ``today``.

    :param settings:
        Configure customized behavior using settings defined in :mod:`timeexpr.conf.Settings`.
    :type settings: dict

    :return: Returns a :class:`TimePoint`, or None when ``start``/``end`` meet an empty context.

    :raises:
        ``TimeParseError``: invalid expression, ``ContextError``: ``start``/``end``
        without a context, ``SettingValidationError``: a provided setting is not valid.

    Example usage::

        >>> import timeexpr
        >>> str(timeexpr.resolve("2009-11-20-1", domain="workweek"))
        '2009-11-19'
        >>> context = timeexpr.Range.parse(timeexpr.WORKWEEK, "2009-11-19", "2009-11-20")
        >>> str(timeexpr.resolve("end-5", context=context))
        '2009-11-13'
    """
    if domain is None:
        domain = context.domain if context is not None else settings.DEFAULT_DOMAIN
    domain = get_domain(domain)
    if clock is None and settings.TIMEZONE is not None:
        clock = SystemClock(settings.TIMEZONE)

    expr = DayExpression(Adjustment.DOWN, clock)
    expr.set_expression(domain, text)
    if context is not None:
        return expr.get_date(context)
    return expr.get_date(domain)
