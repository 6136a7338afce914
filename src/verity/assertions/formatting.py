"""Failure message rendering."""

from __future__ import annotations

from typing import Any

from verity.assertions.base import PREDICATE_KINDS, Expectation, Kind

_MAX_REPR = 200

_PREDICATE_TEXT = {
    Kind.TRUE: "should be true",
    Kind.FALSE: "should be false",
    Kind.EMPTY: "should be empty",
    Kind.NOT_EMPTY: "should not be empty",
    Kind.NOT_NONE: "should not be None",
    Kind.FAIL: "failed",
}


def show(value: Any) -> str:
    try:
        text = repr(value)
    except Exception:
        return f"<unrepresentable {type(value).__name__}>"
    if len(text) > _MAX_REPR:
        return f"{text[:_MAX_REPR]}... ({len(text) - _MAX_REPR} more chars)"
    return text


def _type_label(expected: Any) -> str:
    if isinstance(expected, tuple):
        return " or ".join(_type_label(t) for t in expected)
    return getattr(expected, "__name__", None) or show(expected)


def custom_text(expectation: Expectation) -> str | None:
    """Interpolate the caller message with its positional arguments."""
    if not expectation.message:
        return None
    if not expectation.args:
        return expectation.message
    try:
        return expectation.message.format(*expectation.args)
    except Exception as exc:
        return f"{expectation.message} (bad message arguments {show(expectation.args)}: {exc})"


def _clause(expectation: Expectation) -> str:
    kind = expectation.kind
    actual = expectation.actual
    expected = expectation.expected

    if kind is Kind.EQUAL:
        return f"expected {show(expected)}, got {show(actual)}"
    if kind is Kind.NOT_EQUAL:
        return f"expected a value other than {show(expected)}, got {show(actual)}"
    if kind is Kind.ALMOST_EQUAL:
        return f"expected {show(expected)} +/- {show(expectation.delta)}, got {show(actual)}"
    if kind is Kind.NONE:
        return f"expected None, got {show(actual)}"
    if kind is Kind.CONTAINS:
        return f"expected a value containing {show(expected)}, got {show(actual)}"
    if kind is Kind.NOT_CONTAINS:
        return f"expected a value not containing {show(expected)}, got {show(actual)}"
    if kind is Kind.LENGTH:
        return f"expected length {show(expected)}, got {show(actual)}"
    if kind is Kind.INSTANCE:
        return f"expected instance of {_type_label(expected)}, got {type(actual).__name__}"
    if kind is Kind.ERROR:
        wanted = "an exception" if expected is None else _type_label(expected)
        return f"expected {wanted}, got {show(actual)}"
    if kind is Kind.NO_ERROR:
        return f"expected no error, got {show(actual)}"
    raise ValueError(f"Unknown expectation kind: '{kind}'")


def render_message(expectation: Expectation, detail: str | None = None) -> str:
    """Render the diagnostic for a failed expectation.

    Produces ``"<custom>: expected <expected>, got <actual>"``. Predicate
    kinds (truthiness, emptiness, ...) carry no expected/actual clause, so
    the custom message alone is used when one was given. ``detail`` comes
    from the comparator and is appended in parentheses.
    """
    custom = custom_text(expectation)

    if expectation.kind in PREDICATE_KINDS:
        text = custom or _PREDICATE_TEXT[expectation.kind]
    else:
        clause = _clause(expectation)
        text = f"{custom}: {clause}" if custom else clause

    if detail:
        text = f"{text} ({detail})"
    return text
