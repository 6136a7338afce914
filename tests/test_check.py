"""Tests for the continuing and halting assertion surfaces."""

import pytest

import verity.assertions.evaluate as evaluate_module
from verity.assertions.base import Expectation, Kind
from verity.check import Checker, Requirer, caller_location, check, require
from verity.context import RunContext, finalize, invoke
from verity.errors import TestHalted


# --- free functions ---


def test_check_returns_success_flag(ctx):
    assert check(ctx, Expectation(Kind.EQUAL, actual=3, expected=1 + 2)) is True
    assert check(ctx, Expectation(Kind.EQUAL, actual=5, expected=4)) is False
    assert len(ctx.failures) == 1


def test_require_returns_none_on_success(ctx):
    assert require(ctx, Expectation(Kind.TRUE, actual=True)) is None
    assert ctx.halted is False


def test_require_raises_halt_for_its_context(ctx):
    with pytest.raises(TestHalted) as exc_info:
        require(ctx, Expectation(Kind.NONE, actual=1))
    assert exc_info.value.context is ctx
    assert ctx.halted is True
    assert finalize(ctx) == (False, ["expected None, got 1"])


def test_halt_is_not_an_ordinary_exception():
    assert not issubclass(TestHalted, Exception)


# --- scenarios ---


def test_single_passing_check_passes(ctx):
    def body(t):
        t.check.equal(3, 1 + 2)

    invoke(ctx, body)
    assert finalize(ctx) == (True, [])


def test_continuing_mode_reports_only_failures():
    def body(t):
        t.check.equal(4, 5)
        t.check.equal(2, 2)

    ctx = RunContext("scenario-2")
    invoke(ctx, body)
    assert finalize(ctx) == (False, ["expected 4, got 5"])


def test_halting_mode_skips_remaining_statements():
    reached = []

    def body(t):
        t.require.none({"id": 1})
        reached.append("after")
        t.check.equal(1, 2)

    ctx = RunContext("scenario-3")
    invoke(ctx, body)
    passed, failures = finalize(ctx)
    assert passed is False
    assert failures == ["expected None, got {'id': 1}"]
    assert reached == []


def test_n_continuing_failures_in_call_order():
    def body(t):
        for i in range(5):
            t.check.equal(i, i + 10, "step {}", i)

    ctx = RunContext("many")
    invoke(ctx, body)
    _, failures = finalize(ctx)
    assert failures == [f"step {i}: expected {i}, got {i + 10}" for i in range(5)]


def test_halting_after_continuing_failures_keeps_both_in_order():
    def body(t):
        t.check.true(False, "first")
        t.require.fail("second")
        t.check.fail("third")

    ctx = RunContext("mixed")
    invoke(ctx, body)
    assert finalize(ctx) == (False, ["first", "second"])


def test_swallowed_halt_does_not_record_later_failures():
    def body(t):
        try:
            t.require.equal(1, 2)
        except TestHalted:
            pass
        t.check.equal(3, 4)

    ctx = RunContext("swallow")
    invoke(ctx, body)
    assert finalize(ctx) == (False, ["expected 1, got 2"])


# --- formatter instrumentation ---


def test_formatter_runs_once_per_failure(mocker):
    spy = mocker.spy(evaluate_module, "render_message")

    def body(t):
        for value in range(10):
            t.check.equal(value, value)
        t.check.equal(1, 2)
        t.check.contains([1, 2], 3)
        t.check.true(True)

    ctx = RunContext("counted")
    invoke(ctx, body)
    assert spy.call_count == len(ctx.failures) == 2


def test_formatter_not_invoked_on_success_path(mocker):
    spy = mocker.spy(evaluate_module, "render_message")
    ctx = RunContext("quiet")
    Checker(ctx).equal({"a": [1]}, {"a": [1]})
    Requirer(ctx).contains("abc", "b")
    assert spy.call_count == 0


# --- scoped evaluators ---


def test_scoped_evaluators_bind_their_context():
    ctx = RunContext("bound")
    checker = Checker(ctx)
    assert checker.context is ctx
    assert checker.not_equal(1, 2) is True
    assert checker.almost_equal(1.0, 1.05, 0.1) is True
    assert checker.length([1, 2], 2) is True
    assert checker.is_instance("x", str) is True
    assert checker.not_contains("abc", "z") is True
    assert checker.empty([]) is True
    assert checker.not_empty([0]) is True
    assert checker.no_error(None) is True
    assert checker.false(0) is True
    assert checker.not_none(0) is True
    assert ctx.failures == ()


def test_raises_returns_caught_exception(ctx):
    def explode(value):
        raise KeyError(value)

    caught = ctx.check.raises(KeyError, explode, "k")
    assert isinstance(caught, KeyError)
    assert ctx.failures == ()


def test_raises_records_failure_when_nothing_raised(ctx):
    def quiet():
        return 1

    assert ctx.check.raises(ValueError, quiet) is None
    _, failures = finalize(ctx)
    assert len(failures) == 1
    assert failures[0].endswith("quiet(): expected ValueError, got None")


def test_error_with_type(ctx):
    assert ctx.check.error(ValueError("x"), exc_type=ValueError) is True
    assert ctx.check.error(ValueError("x"), "while {}", "parsing", exc_type=KeyError) is False
    assert finalize(ctx)[1] == ["while parsing: expected KeyError, got ValueError('x')"]


def test_malformed_expectation_is_a_plain_failure():
    def body(t):
        t.check.contains(42, 4)
        t.check.equal(1, 1)

    ctx = RunContext("malformed")
    invoke(ctx, body)
    passed, failures = finalize(ctx)
    assert passed is False
    assert failures == ["expected a value containing 4, got 42 (cannot check containment in int)"]
    assert ctx.halted is False


# --- source locations ---


def test_failure_location_points_at_calling_line(ctx):
    ctx.check.equal(1, 2)  # the failing call
    (outcome,) = ctx.failures
    assert outcome.location.filename == __file__
    assert outcome.location.function == "test_failure_location_points_at_calling_line"
    with open(__file__) as f:
        line = f.read().splitlines()[outcome.location.lineno - 1]
    assert "the failing call" in line


def test_caller_location_outside_package():
    location = caller_location()
    assert location.filename == __file__


def test_raises_names_callable_without_formatting_it(ctx):
    class Weird:
        def __call__(self):
            return None

    weird = Weird()
    weird.__qualname__ = "make{0}"
    assert ctx.check.raises(ValueError, weird) is None
    assert finalize(ctx)[1] == ["make{0}(): expected ValueError, got None"]


def test_continuing_check_survives_unrepresentable_values():
    class BadRepr:
        def __repr__(self):
            raise RuntimeError("no repr")

    reached = []

    def body(t):
        t.check.equal(BadRepr(), BadRepr())
        t.check.equal(1, 2, "id {:d}", None)
        reached.append("after")

    ctx = RunContext("rendering")
    invoke(ctx, body)
    passed, failures = finalize(ctx)
    assert reached == ["after"]
    assert ctx.halted is False
    assert passed is False
    assert failures[0] == "expected <unrepresentable BadRepr>, got <unrepresentable BadRepr>"
    assert failures[1].startswith("id {:d} (bad message arguments (None,): ")
