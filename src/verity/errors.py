"""Control-flow signals raised through test bodies."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from verity.context import RunContext


class TestHalted(BaseException):
    """Unwinds a test body after a halting failure.

    Derives from BaseException so that ``except Exception`` blocks in test
    code do not swallow it. Only the boundary of ``context`` may catch it.
    """

    __test__ = False

    def __init__(self, context: RunContext):
        super().__init__(f"test '{context.path}' halted")
        self.context = context


class TestSkipped(BaseException):
    """Ends a test body early without failing it."""

    __test__ = False

    def __init__(self, context: RunContext, reason: str):
        super().__init__(reason)
        self.context = context
        self.reason = reason


class HaltEscapeError(BaseException):
    """A halt or skip crossed a test boundary it does not belong to.

    This means the harness lost track of test boundaries (for example a
    parent's ``require`` called from inside a sub-test). It is fatal for the
    whole run and is never recorded as an ordinary failure.
    """

    def __init__(self, signal: TestHalted | TestSkipped, boundary: RunContext):
        super().__init__(
            f"'{signal.context.path}' unwound past the boundary of '{boundary.path}'"
        )
        self.signal = signal
        self.boundary = boundary
