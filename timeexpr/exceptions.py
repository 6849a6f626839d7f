"""
Error taxonomy for timeexpr.

Recoverable errors derive from TimeExprError (a ValueError) and keep the
offending input on the instance. Programming errors, like resolving an
expression that was never set, derive from ExpressionStateError and are not
meant to be caught by callers.
"""


class TimeExprError(ValueError):
    """Base class for all recoverable timeexpr errors."""


class TimeParseError(TimeExprError):
    """Text is not a valid time for the requested domain."""

    def __init__(self, text, domain=None, reason=None):
        self.text = text
        self.domain = domain
        self.reason = reason
        message = "Invalid time %r" % (text,)
        if domain is not None:
            message += " in domain %r" % (str(domain),)
        if reason:
            message += ": %s" % reason
        super().__init__(message)


class InvalidOffsetError(TimeParseError):
    """The offset part of an expression (e.g. ``+1--1``) is malformed."""

    def __init__(self, modifier, text):
        self.modifier = modifier
        super().__init__(text, reason="invalid offset %r" % (modifier,))


class ContextError(TimeExprError):
    """A ``start`` or ``end`` expression was resolved without a range."""

    def __init__(self, expression):
        self.expression = expression
        super().__init__(
            "Expression %r can only be resolved in the context of a range" % (expression,)
        )


class RangeInconsistencyError(TimeExprError):
    """Range enforcement failed; the holder was restored to its previous state."""

    def __init__(self, begin_text, end_text):
        self.begin_text = begin_text
        self.end_text = end_text
        super().__init__(
            "Cannot make a valid range from begin %r and end %r" % (begin_text, end_text)
        )


class TimeOverflowError(TimeExprError):
    """Point arithmetic went outside the representable range of the domain."""

    def __init__(self, time, increment):
        self.time = time
        self.increment = increment
        super().__init__("Adding %d to %s is out of range" % (increment, time))


class MissingValueError(TimeExprError):
    """An empty date was given where a date is required."""

    def __init__(self):
        super().__init__("A date is required")


class DomainMismatchError(TimeExprError):
    """Two times from different domains were combined."""

    def __init__(self, first, last):
        self.first = first
        self.last = last
        super().__init__(
            "Times %s and %s are in different domains (%s, %s)"
            % (first, last, first.domain.label, last.domain.label)
        )


class UnknownDomainError(TimeExprError, LookupError):
    """No domain is registered under the label."""

    def __init__(self, label):
        self.label = label
        super().__init__("Unknown time domain: %r" % (label,))


class ExpressionStateError(RuntimeError):
    """An expression was used before it was given a value. This is a bug in the caller."""
