"""
Tests for day expressions.

"Now" is Friday 2009-11-20 10:30 unless stated otherwise.
"""

import pytest
from datetime import datetime

import timeexpr
from timeexpr.clock import FixedClock
from timeexpr.domain import (
    Adjustment, Range, DAILY, DATETIME, HOURLY, MONTHLY, NANOTIME, WORKWEEK, YEARLY,
)
from timeexpr.exceptions import (
    ContextError, ExpressionStateError, InvalidOffsetError,
    TimeOverflowError, TimeParseError,
)
from timeexpr.expression import (
    ENFORCEMENT_RULES, MAX_OFFSET, DayExpression, Kind, parse_offset,
)


@pytest.fixture
def clock():
    return FixedClock(datetime(2009, 11, 20, 10, 30))


def make(text, domain=DAILY, adjustment=Adjustment.DOWN, clock=None):
    expr = DayExpression(adjustment, clock or FixedClock(datetime(2009, 11, 20, 10, 30)))
    expr.set_expression(domain, text)
    return expr


class TestParseOffset:
    """Tests for chains of signed integers."""

    @pytest.mark.parametrize("modifier, expected", [
        ("", 0),
        ("+1", 1),
        ("-12", -12),
        ("+1+4-2", 3),
        ("-0", 0),
    ])
    def test_sum(self, modifier, expected):
        """The terms of the chain are summed."""
        assert parse_offset(modifier) == expected

    @pytest.mark.parametrize("modifier", ["+1--1", "1", "+", "+1_0", "+1 ", "+x", "++1"])
    def test_malformed(self, modifier):
        """Every term needs a sign and digits."""
        with pytest.raises(ValueError):
            parse_offset(modifier)

    def test_term_out_of_range_is_malformed(self):
        """A single term larger than the offset range is rejected."""
        with pytest.raises(ValueError):
            parse_offset("+%d" % (MAX_OFFSET + 1))

    def test_sum_does_not_wrap(self):
        """A term which would take the sum out of range is skipped."""
        assert parse_offset("+%d+1" % MAX_OFFSET) == MAX_OFFSET
        assert parse_offset("-%d-5+3" % MAX_OFFSET) == -MAX_OFFSET + 3


class TestSetExpression:
    """Tests for parsing text into expressions."""

    def test_today_with_offsets(self):
        """Offsets of a keyword are summed and kept pending."""
        expr = make("today+1+4-2")
        assert expr.kind is Kind.TODAY
        assert expr.get_expression() == "today+3"
        assert str(expr.get_date(DAILY)) == "2009-11-23"

    def test_keywords_ignore_case(self):
        """Keywords are matched without case and written in lower case."""
        assert make("TODAY-7").get_expression() == "today-7"
        assert make("Start").get_expression() == "start"

    @pytest.mark.parametrize("text", ["today", "start+3", "end-2", "2009-11-20", "today-7"])
    def test_round_trip(self, text):
        """Parsing the text of an expression gives an equal expression."""
        expr = make(text)
        again = make(expr.get_expression())
        assert again == expr

    def test_invalid_date(self):
        """A text which is neither a date nor a keyword is a parse error, not an offset error."""
        with pytest.raises(TimeParseError) as excinfo:
            make("20.11.2009")
        assert not isinstance(excinfo.value, InvalidOffsetError)

    def test_invalid_offset_after_date(self):
        """2005-05-15+1--1 has a malformed offset."""
        with pytest.raises(InvalidOffsetError) as excinfo:
            make("2005-05-15+1--1")
        assert excinfo.value.modifier == "+1--1"
        assert isinstance(excinfo.value, TimeParseError)

    def test_invalid_offset_after_keyword(self):
        """A keyword followed by garbage is an offset error."""
        with pytest.raises(InvalidOffsetError):
            make("today+x")

    def test_offset_of_date_is_applied(self):
        """The offset of a literal is folded into the time."""
        expr = make("2005-05-15+1")
        assert expr.kind is Kind.LITERAL
        assert expr.offset == 0
        assert expr.get_expression() == "2005-05-16"

    @pytest.mark.parametrize("domain, adjustment, text, expected", [
        (WORKWEEK, Adjustment.UP, "2009-11-23-1", "2009-11-20"),
        (WORKWEEK, Adjustment.DOWN, "2009-11-23-1", "2009-11-20"),
        (WORKWEEK, Adjustment.UP, "2009-11-21+1", "2009-11-24"),
        (WORKWEEK, Adjustment.DOWN, "2009-11-21+1", "2009-11-23"),
        (HOURLY, Adjustment.DOWN, "2009-11-20+1", "2009-11-20 01"),
        (HOURLY, Adjustment.DOWN, "2009-11-23-1", "2009-11-22 23"),
        (MONTHLY, Adjustment.DOWN, "2009-11-20+2", "2010-01"),
    ])
    def test_offset_of_date_counts_domain_units(self, domain, adjustment, text, expected):
        """The date is read in the domain first, then the offset moves it by domain units."""
        expr = make(text, domain, adjustment)
        assert expr.get_expression() == expected
        assert str(expr.get_date(domain)) == expected

    @pytest.mark.parametrize("domain", [DAILY, WORKWEEK, HOURLY, MONTHLY, DATETIME])
    @pytest.mark.parametrize("offset", [3, -4])
    def test_offset_of_date_equals_incr(self, domain, offset):
        """Parsing a date with an offset equals parsing the date, then incrementing."""
        parsed = make("2009-11-20%+d" % offset, domain)
        incremented = make("2009-11-20", domain)
        incremented.incr(offset)
        assert parsed == incremented

    def test_timestamp(self):
        """A time finer than a day is not mistaken for a date with an offset."""
        expr = make("2009-11-20 10:30:15", DATETIME)
        assert expr.get_expression() == "2009-11-20 10:30:15"

    def test_date_adjusted_into_domain(self):
        """A weekend date is adjusted in the workweek domain."""
        assert make("2009-11-21", WORKWEEK, Adjustment.UP).get_expression() == "2009-11-23"
        with pytest.raises(TimeParseError):
            make("2009-11-21", WORKWEEK, Adjustment.NONE)

    def test_offset_out_of_domain(self):
        """An offset moving a date out of the domain is an overflow."""
        with pytest.raises(TimeOverflowError):
            make("9999-12-31+1")

    def test_failure_leaves_expression_unchanged(self):
        """A failed parse keeps the previous value."""
        expr = make("today+2")
        with pytest.raises(TimeParseError):
            expr.set_expression(DAILY, "bogus")
        assert expr.get_expression() == "today+2"

    def test_domain_required(self):
        """A domain is needed to parse."""
        with pytest.raises(ValueError):
            DayExpression(Adjustment.DOWN).set_expression(None, "today")

    def test_adjustment_required(self):
        """An expression needs an adjustment."""
        with pytest.raises(ValueError):
            DayExpression(None)
        with pytest.raises(TypeError):
            DayExpression("UP")


class TestGetDate:
    """Tests for resolving expressions in a domain or a range."""

    def test_end_in_workweek(self):
        """end-5 in the range [2009-11-19, 2009-11-20] is a week before the end."""
        date = WORKWEEK.time("2009-11-20")
        context = Range.of(date.add(-1), date)
        assert str(make("end-5", WORKWEEK, Adjustment.UP).get_date(context)) == "2009-11-13"

    def test_start_in_workweek(self):
        """start+1 skips the weekend."""
        date = WORKWEEK.time("2009-11-20")
        context = Range.of(date, date.add(1))
        assert str(make("start+1", WORKWEEK, Adjustment.UP).get_date(context)) == "2009-11-23"

    def test_monthly(self):
        """Keywords in the monthly domain."""
        month = MONTHLY.time("2009-11")
        context = Range.of(month, month.add(42))
        assert str(make("start+1", MONTHLY).get_date(context)) == "2009-12"

        month = MONTHLY.time("3000-01")
        context = Range.of(month, month.add(42))
        assert str(make("start-1", MONTHLY).get_date(context)) == "2999-12"

    def test_yearly(self):
        """Keywords in the yearly domain."""
        year = YEARLY.time("2010-01-01")
        context = Range.of(year.add(-1), year)
        assert str(make("start", YEARLY).get_date(context)) == "2009"
        assert str(make("end-1", YEARLY).get_date(context)) == "2009"

    def test_keyword_needs_range(self):
        """start and end cannot be resolved in a domain."""
        expr = make("end-4")
        assert expr.need_context()
        with pytest.raises(ContextError) as excinfo:
            expr.get_date(DAILY)
        assert excinfo.value.expression == "end-4"

    def test_keyword_in_empty_range(self):
        """start and end resolve to None in an empty range."""
        assert make("start+1").get_date(Range(DAILY)) is None
        assert make("end").get_date(Range(DAILY)) is None

    def test_today_coarse(self):
        """Offsets of today count months in the monthly domain."""
        assert str(make("today-5", MONTHLY).get_date(MONTHLY)) == "2009-06"

    def test_today_fine(self):
        """Offsets of today count days in a domain finer than daily."""
        assert str(make("today-20", DATETIME).get_date(DATETIME)) == "2009-10-31 00:00:00"

    def test_today_on_weekend(self):
        """today on a Saturday is the Friday before in the workweek domain."""
        saturday = FixedClock(datetime(2009, 11, 21, 12))
        expr = make("today", WORKWEEK, clock=saturday)
        assert str(expr.get_date(WORKWEEK)) == "2009-11-20"

    def test_today_in_range(self):
        """today does not depend on the range."""
        context = Range.parse(DAILY, "2001-01-01", "2001-12-31")
        assert str(make("today").get_date(context)) == "2009-11-20"

    def test_literal_converted(self):
        """A literal is converted into the requested domain."""
        assert str(make("2009-11-20").get_date(MONTHLY)) == "2009-11"

    def test_unset(self):
        """An expression which was never set cannot be used."""
        expr = DayExpression(Adjustment.DOWN)
        with pytest.raises(ExpressionStateError):
            expr.get_date(DAILY)
        with pytest.raises(ExpressionStateError):
            expr.get_expression()
        with pytest.raises(ExpressionStateError):
            expr.need_context()
        with pytest.raises(ExpressionStateError):
            expr.incr(1)


class TestParseDay:
    """Tests for parsing dates in the daily domain."""

    def test_default(self):
        """An offset in days."""
        assert str(DayExpression.parse_day("2001-05-26+2")) == "2001-05-28"

    def test_workweek(self):
        """The Sunday before a Monday is adjusted down to the Friday."""
        assert str(DayExpression.parse_day("2008-05-26-1", WORKWEEK, Adjustment.DOWN)) == "2008-05-23"

    def test_monthly(self):
        """The offset counts days even when the result is monthly."""
        assert str(DayExpression.parse_day("2008-05-26+1", MONTHLY)) == "2008-05"
        assert str(DayExpression.parse_day("2008-05-26+10", MONTHLY)) == "2008-06"


class TestIncr:
    """Tests for incrementing expressions."""

    def test_literal(self):
        """Incrementing a literal moves the time."""
        expr = make("2005-05-15+1")
        expr.incr(-1)
        assert expr.get_expression() == "2005-05-15"
        assert str(expr.get_date(DAILY)) == "2005-05-15"

    def test_keyword(self):
        """Incrementing a keyword changes the pending offset."""
        expr = make("start")
        expr.incr(2)
        assert expr.get_expression() == "start+2"

    def test_increments_add_up(self):
        """Two increments equal one increment by their sum."""
        a = make("today")
        a.incr(5)
        a.incr(-3)
        b = make("today")
        b.incr(2)
        assert a == b
        assert a.get_date(DAILY) == b.get_date(DAILY)

    def test_offset_out_of_range_refused(self):
        """An increment taking the offset out of range is ignored."""
        expr = make("today")
        expr.incr(MAX_OFFSET)
        expr.incr(1)
        assert expr.offset == MAX_OFFSET
        expr.incr(-1)
        assert expr.offset == MAX_OFFSET - 1

    def test_literal_overflow(self):
        """A literal moving out of its domain keeps its time."""
        expr = make("9999-12-31")
        with pytest.raises(TimeOverflowError):
            expr.incr(1)
        assert expr.get_expression() == "9999-12-31"

    def test_literal_not_bounded_by_offset_range(self):
        """A literal moves by more than the offset range when its domain allows it."""
        expr = make("2009-11-20", NANOTIME)
        expr.incr(24 * 60 * 60 * 10 ** 9)
        assert expr.get_expression() == "2009-11-21 00:00:00.000000000"

    def test_copy_is_independent(self):
        """Changing a copy does not change the original."""
        expr = make("today+1")
        duplicate = expr.copy()
        duplicate.incr(1)
        assert expr.get_expression() == "today+1"
        assert duplicate.get_expression() == "today+2"


class TestEnforceValidRange:
    """Tests for keeping the begin of a range before its end."""

    @staticmethod
    def pair(begin, end, domain=DAILY):
        return make(begin, domain, Adjustment.UP), make(end, domain, Adjustment.DOWN)

    def test_same_keyword(self):
        """Offsets of the same keyword are compared."""
        begin, end = self.pair("today+3", "today")
        assert end.enforce_valid_range(DAILY, begin, True)
        assert end.get_expression() == "today+3"

        begin, end = self.pair("today+3", "today")
        assert end.enforce_valid_range(DAILY, begin, False)
        assert begin.get_expression() == "today"

    def test_literals(self):
        """Literals are compared as times."""
        begin, end = self.pair("2009-11-25", "2009-11-20")
        end.enforce_valid_range(DAILY, begin, True)
        assert end.get_expression() == "2009-11-25"

        begin, end = self.pair("2009-11-25", "2009-11-20")
        end.enforce_valid_range(DAILY, begin, False)
        assert begin.get_expression() == "2009-11-20"

    def test_valid_pair_unchanged(self):
        """A valid pair is left alone."""
        begin, end = self.pair("2009-11-10", "today")
        assert end.enforce_valid_range(DAILY, begin, True)
        assert (begin.get_expression(), end.get_expression()) == ("2009-11-10", "today")

    def test_today_before_literal(self):
        """A begin of today after a literal end is moved back, keeping it relative."""
        begin, end = self.pair("today", "2009-11-10")
        end.enforce_valid_range(DAILY, begin, False)
        assert begin.get_expression() == "today-10"
        assert str(begin.get_date(DAILY)) == "2009-11-10"

        begin, end = self.pair("today", "2009-11-10")
        end.enforce_valid_range(DAILY, begin, True)
        assert end.get_expression() == "2009-11-20"

    def test_literal_before_today(self):
        """An end of today before a literal begin is moved forward, keeping it relative."""
        begin, end = self.pair("2009-11-25", "today")
        end.enforce_valid_range(DAILY, begin, True)
        assert end.get_expression() == "today+5"

        begin, end = self.pair("2009-11-25", "today")
        end.enforce_valid_range(DAILY, begin, False)
        assert begin.get_expression() == "2009-11-20"

    def test_literal_before_today_fine_domain(self):
        """In a fine domain today moves by whole days, to the first day not before the begin."""
        begin, end = self.pair("2009-11-25 12:00:00", "today", DATETIME)
        end.enforce_valid_range(DATETIME, begin, True)
        assert end.get_expression() == "today+6"
        assert begin.get_date(DATETIME) <= end.get_date(DATETIME)

    def test_keyword_pairs_are_permissive(self):
        """Pairs needing a range to be compared are not enforced."""
        begin, end = self.pair("start+100", "2009-11-01")
        assert end.enforce_valid_range(DAILY, begin, True)
        assert (begin.get_expression(), end.get_expression()) == ("start+100", "2009-11-01")

    def test_unset_expression(self):
        """Enforcement fails when an expression was never set."""
        begin = make("today")
        end = DayExpression(Adjustment.DOWN)
        assert not end.enforce_valid_range(DAILY, begin, True)
        assert not begin.enforce_valid_range(DAILY, end, False)

    def test_every_pair_has_a_rule(self):
        """Every pair of set kinds has a rule, permissive pairs explicitly."""
        kinds = [Kind.LITERAL, Kind.TODAY, Kind.START, Kind.END]
        assert set(ENFORCEMENT_RULES) == {(e, b) for e in kinds for b in kinds}
        permissive = [pair for pair, rule in ENFORCEMENT_RULES.items()
                      if rule is DayExpression._enforce_nothing]
        assert len(permissive) == 10
        assert (Kind.START, Kind.END) in permissive
        assert (Kind.LITERAL, Kind.TODAY) not in permissive


class TestResolve:
    """Tests for the resolve shortcut."""

    def test_domain_label(self, clock):
        """The day before a Friday in the workweek domain."""
        assert str(timeexpr.resolve("2009-11-20-1", domain="workweek", clock=clock)) == "2009-11-19"

    def test_context(self, clock):
        """The domain is taken from the context."""
        context = Range.parse(WORKWEEK, "2009-11-19", "2009-11-20")
        assert str(timeexpr.resolve("end-5", context=context, clock=clock)) == "2009-11-13"

    def test_default_domain_setting(self, clock):
        """The default domain comes from the settings."""
        result = timeexpr.resolve("today", clock=clock, settings={"DEFAULT_DOMAIN": "monthly"})
        assert str(result) == "2009-11"

    def test_missing_context(self, clock):
        """start needs a context."""
        with pytest.raises(ContextError):
            timeexpr.resolve("start", clock=clock)
