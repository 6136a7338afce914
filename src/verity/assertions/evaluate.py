"""Evaluation of expectations into outcomes."""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable

from verity.assertions.base import Expectation, Kind, Outcome, SourceLocation
from verity.assertions.compare import (
    MATCH,
    Comparison,
    Shape,
    compare_contains,
    compare_equal,
    length_of,
    shape_of,
    type_name,
)
from verity.assertions.formatting import render_message, show


def _malformed(reason: str) -> Comparison:
    return Comparison(False, reason=reason, malformed=True)


def _truthiness(value: Any) -> bool | Comparison:
    try:
        return bool(value)
    except Exception as exc:
        return _malformed(f"truth value of {type_name(value)} is ambiguous: {exc}")


def check_equal(expectation: Expectation) -> Comparison:
    return compare_equal(expectation.actual, expectation.expected)


def check_not_equal(expectation: Expectation) -> Comparison:
    return Comparison(not compare_equal(expectation.actual, expectation.expected))


def check_almost_equal(expectation: Expectation) -> Comparison:
    actual, expected, delta = expectation.actual, expectation.expected, expectation.delta
    if shape_of(actual) is not Shape.NUMBER or shape_of(expected) is not Shape.NUMBER:
        return _malformed(
            f"almost_equal needs numbers, got {type_name(actual)} and {type_name(expected)}"
        )
    if shape_of(delta) is not Shape.NUMBER:
        return _malformed(f"delta must be a number, got {type_name(delta)}")
    try:
        if delta < 0:
            return _malformed(f"delta must not be negative, got {show(delta)}")
        difference = abs(actual - expected)
        # NaN is the only value not equal to itself.
        if difference != difference:
            return Comparison(False, reason="difference is NaN")
        if difference <= delta:
            return MATCH
    except (TypeError, ArithmeticError) as exc:
        return _malformed(
            f"cannot compare {type_name(actual)} and {type_name(expected)} "
            f"within {type_name(delta)}: {exc!r}"
        )
    return Comparison(False, reason=f"difference {show(difference)} exceeds {show(delta)}")


def check_true(expectation: Expectation) -> Comparison:
    truth = _truthiness(expectation.actual)
    if isinstance(truth, Comparison):
        return truth
    return Comparison(truth)


def check_false(expectation: Expectation) -> Comparison:
    truth = _truthiness(expectation.actual)
    if isinstance(truth, Comparison):
        return truth
    return Comparison(not truth)


def check_none(expectation: Expectation) -> Comparison:
    return Comparison(expectation.actual is None)


def check_not_none(expectation: Expectation) -> Comparison:
    return Comparison(expectation.actual is not None)


def check_contains(expectation: Expectation) -> Comparison:
    return compare_contains(expectation.actual, expectation.expected)


def check_not_contains(expectation: Expectation) -> Comparison:
    result = compare_contains(expectation.actual, expectation.expected)
    if result.malformed:
        return result
    return Comparison(not result.matched)


def check_length(expectation: Expectation) -> Comparison:
    length = length_of(expectation.actual)
    if length is None:
        return _malformed(f"{type_name(expectation.actual)} has no length")
    if length == expectation.expected:
        return MATCH
    return Comparison(False, reason=f"has length {length}")


def _is_empty(value: Any) -> bool | Comparison:
    if value is None:
        return True
    length = length_of(value)
    if length is None:
        return _malformed(f"{type_name(value)} has no length")
    return length == 0


def check_empty(expectation: Expectation) -> Comparison:
    empty = _is_empty(expectation.actual)
    if isinstance(empty, Comparison):
        return empty
    return Comparison(empty)


def check_not_empty(expectation: Expectation) -> Comparison:
    empty = _is_empty(expectation.actual)
    if isinstance(empty, Comparison):
        return empty
    return Comparison(not empty)


def check_instance(expectation: Expectation) -> Comparison:
    try:
        return Comparison(isinstance(expectation.actual, expectation.expected))
    except TypeError as exc:
        return _malformed(f"invalid type argument: {exc}")


def check_error(expectation: Expectation) -> Comparison:
    actual, expected = expectation.actual, expectation.expected
    if actual is None:
        return Comparison(False)
    if not isinstance(actual, BaseException):
        return _malformed(f"{type_name(actual)} is not an exception")
    if expected is None:
        return MATCH
    try:
        return Comparison(isinstance(actual, expected))
    except TypeError as exc:
        return _malformed(f"invalid exception type: {exc}")


def check_no_error(expectation: Expectation) -> Comparison:
    actual = expectation.actual
    if actual is None:
        return MATCH
    if not isinstance(actual, BaseException):
        return _malformed(f"{type_name(actual)} is not an exception")
    return Comparison(False)


def check_fail(expectation: Expectation) -> Comparison:
    return Comparison(False)


_CHECKS: dict[Kind, Callable[[Expectation], Comparison]] = {
    Kind.EQUAL: check_equal,
    Kind.NOT_EQUAL: check_not_equal,
    Kind.ALMOST_EQUAL: check_almost_equal,
    Kind.TRUE: check_true,
    Kind.FALSE: check_false,
    Kind.NONE: check_none,
    Kind.NOT_NONE: check_not_none,
    Kind.CONTAINS: check_contains,
    Kind.NOT_CONTAINS: check_not_contains,
    Kind.LENGTH: check_length,
    Kind.EMPTY: check_empty,
    Kind.NOT_EMPTY: check_not_empty,
    Kind.INSTANCE: check_instance,
    Kind.ERROR: check_error,
    Kind.NO_ERROR: check_no_error,
    Kind.FAIL: check_fail,
}


def evaluate_expectation(
    expectation: Expectation,
    *,
    location: SourceLocation | None = None,
) -> Outcome:
    """Run the check for ``expectation.kind`` and build its Outcome.

    The message is rendered only when the check fails. Raises ValueError for
    unknown kinds.
    """
    try:
        kind = Kind(expectation.kind)
    except ValueError:
        raise ValueError(f"Unknown expectation kind: '{expectation.kind}'") from None
    if expectation.kind is not kind:
        expectation = replace(expectation, kind=kind)

    result = _CHECKS[kind](expectation)
    if result:
        return Outcome(passed=True, location=location, kind=kind)

    return Outcome(
        passed=False,
        message=render_message(expectation, result.reason),
        location=location,
        kind=kind,
    )
