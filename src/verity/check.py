"""Continuing (``check``) and halting (``require``) assertion surfaces."""

from __future__ import annotations

import functools
import inspect
import os
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Callable

from verity.assertions.base import Expectation, Kind, SourceLocation
from verity.assertions.evaluate import evaluate_expectation

if TYPE_CHECKING:
    from verity.context import RunContext

_PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__)) + os.sep


@functools.lru_cache(maxsize=1024)
def _is_internal(filename: str) -> bool:
    return os.path.abspath(filename).startswith(_PACKAGE_DIR)


def caller_location() -> SourceLocation | None:
    """Location of the innermost stack frame outside this package."""
    frame = inspect.currentframe()
    try:
        while frame is not None:
            code = frame.f_code
            if not _is_internal(code.co_filename):
                return SourceLocation(code.co_filename, frame.f_lineno, code.co_name)
            frame = frame.f_back
        return None
    finally:
        del frame


def check(context: RunContext, expectation: Expectation) -> bool:
    """Evaluate ``expectation``; record a failure on ``context`` and carry on.

    Returns whether the expectation held so callers may branch on it.
    """
    outcome = evaluate_expectation(expectation)
    if outcome.passed:
        return True
    context.record(replace(outcome, location=caller_location()))
    return False


def require(context: RunContext, expectation: Expectation) -> None:
    """Evaluate ``expectation``; on failure record it and halt the test.

    The halt unwinds to the boundary that invoked the test owning
    ``context`` and nowhere further.
    """
    outcome = evaluate_expectation(expectation)
    if outcome.passed:
        return
    context.halt(replace(outcome, location=caller_location()))


class Checker:
    """Continuing-mode evaluator bound to one RunContext.

    Methods taking both values use ``(expected, actual)`` order. Every
    method accepts an optional message and positional arguments that are
    interpolated with ``str.format`` only when the check fails::

        t.check.equal(200, response.status, "GET {} failed", url)
    """

    def __init__(self, context: RunContext):
        self.context = context

    def _evaluate(self, expectation: Expectation) -> bool:
        return check(self.context, expectation)

    def equal(self, expected: Any, actual: Any, msg: str | None = None, *args: Any) -> bool:
        return self._evaluate(
            Expectation(Kind.EQUAL, actual=actual, expected=expected, message=msg, args=args)
        )

    def not_equal(self, unexpected: Any, actual: Any, msg: str | None = None, *args: Any) -> bool:
        return self._evaluate(
            Expectation(Kind.NOT_EQUAL, actual=actual, expected=unexpected, message=msg, args=args)
        )

    def almost_equal(
        self, expected: Any, actual: Any, delta: float, msg: str | None = None, *args: Any
    ) -> bool:
        return self._evaluate(
            Expectation(
                Kind.ALMOST_EQUAL,
                actual=actual,
                expected=expected,
                delta=delta,
                message=msg,
                args=args,
            )
        )

    def true(self, value: Any, msg: str | None = None, *args: Any) -> bool:
        return self._evaluate(Expectation(Kind.TRUE, actual=value, message=msg, args=args))

    def false(self, value: Any, msg: str | None = None, *args: Any) -> bool:
        return self._evaluate(Expectation(Kind.FALSE, actual=value, message=msg, args=args))

    def none(self, value: Any, msg: str | None = None, *args: Any) -> bool:
        return self._evaluate(Expectation(Kind.NONE, actual=value, message=msg, args=args))

    def not_none(self, value: Any, msg: str | None = None, *args: Any) -> bool:
        return self._evaluate(Expectation(Kind.NOT_NONE, actual=value, message=msg, args=args))

    def contains(self, container: Any, item: Any, msg: str | None = None, *args: Any) -> bool:
        return self._evaluate(
            Expectation(Kind.CONTAINS, actual=container, expected=item, message=msg, args=args)
        )

    def not_contains(self, container: Any, item: Any, msg: str | None = None, *args: Any) -> bool:
        return self._evaluate(
            Expectation(Kind.NOT_CONTAINS, actual=container, expected=item, message=msg, args=args)
        )

    def length(self, value: Any, expected: int, msg: str | None = None, *args: Any) -> bool:
        return self._evaluate(
            Expectation(Kind.LENGTH, actual=value, expected=expected, message=msg, args=args)
        )

    def empty(self, value: Any, msg: str | None = None, *args: Any) -> bool:
        return self._evaluate(Expectation(Kind.EMPTY, actual=value, message=msg, args=args))

    def not_empty(self, value: Any, msg: str | None = None, *args: Any) -> bool:
        return self._evaluate(Expectation(Kind.NOT_EMPTY, actual=value, message=msg, args=args))

    def is_instance(self, value: Any, cls: type | tuple[type, ...], msg: str | None = None, *args: Any) -> bool:
        return self._evaluate(
            Expectation(Kind.INSTANCE, actual=value, expected=cls, message=msg, args=args)
        )

    def error(
        self,
        err: BaseException | None,
        msg: str | None = None,
        *args: Any,
        exc_type: type[BaseException] | tuple[type[BaseException], ...] | None = None,
    ) -> bool:
        """Check that ``err`` is an exception, optionally of ``exc_type``."""
        return self._evaluate(
            Expectation(Kind.ERROR, actual=err, expected=exc_type, message=msg, args=args)
        )

    def no_error(self, err: BaseException | None, msg: str | None = None, *args: Any) -> bool:
        return self._evaluate(Expectation(Kind.NO_ERROR, actual=err, message=msg, args=args))

    def raises(
        self,
        exc_type: type[Exception] | tuple[type[Exception], ...],
        fn: Callable[..., Any],
        *args: Any,
        **kwargs: Any,
    ) -> Exception | None:
        """Call ``fn(*args, **kwargs)`` and check that it raises ``exc_type``.

        Returns the caught exception (``None`` if nothing was raised).
        """
        caught: Exception | None = None
        try:
            fn(*args, **kwargs)
        except Exception as exc:
            caught = exc
        name = getattr(fn, "__qualname__", None) or type(fn).__name__
        self._evaluate(
            Expectation(
                Kind.ERROR, actual=caught, expected=exc_type, message="{}()", args=(name,)
            )
        )
        return caught

    def fail(self, msg: str | None = None, *args: Any) -> bool:
        return self._evaluate(Expectation(Kind.FAIL, message=msg, args=args))


class Requirer(Checker):
    """Halting-mode evaluator: a failed check unwinds the current test.

    Same methods as :class:`Checker`; they only return when the check holds.
    """

    def _evaluate(self, expectation: Expectation) -> bool:
        require(self.context, expectation)
        return True
