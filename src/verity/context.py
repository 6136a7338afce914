"""Per-test run state, the test boundary, and result finalization."""

from __future__ import annotations

import logging
import threading
import time
import traceback
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Iterator

from verity.assertions.base import Kind, Outcome, SourceLocation
from verity.assertions.formatting import show
from verity.check import Checker, Requirer
from verity.errors import HaltEscapeError, TestHalted, TestSkipped

TestFunc = Callable[["RunContext"], None]


@dataclass
class TestReport:
    """Finalized result of one test or sub-test.

    Attributes:
        name: Test name as registered (sub-tests: name passed to ``run``).
        path: Slash-separated name including all parents.
        passed: No failures recorded here or in any sub-test.
        failures: Rendered failure messages in call order.
        locations: ``file:line`` for each entry in ``failures`` ("" if unknown).
        halted: The test body was unwound by a halting failure.
        skipped: The test called ``skip``.
        children: Reports of sub-tests in the order they were started.
    """

    __test__ = False

    name: str
    path: str
    passed: bool
    failures: list[str] = field(default_factory=list)
    locations: list[str] = field(default_factory=list)
    halted: bool = False
    skipped: bool = False
    skip_reason: str | None = None
    duration_seconds: float = 0.0
    logs: list[str] = field(default_factory=list)
    children: list[TestReport] = field(default_factory=list)

    def located_failures(self) -> list[str]:
        return [
            f"{location}: {message}" if location else message
            for location, message in zip(self.locations, self.failures)
        ]

    def walk(self) -> Iterator[TestReport]:
        """Yield this report followed by every descendant, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class RunContext:
    """State of one test (or sub-test) invocation.

    Test functions receive their context as the only argument and reach the
    assertion surface through it::

        def test_add(t):
            t.check.equal(3, add(1, 2))
            t.require.not_none(lookup("x"))

    A context is owned by the test that created it. Sub-tests get their own
    context from :meth:`run`; nothing here is shared between contexts.
    """

    def __init__(
        self,
        name: str,
        *,
        parent: RunContext | None = None,
        logger: logging.Logger | None = None,
        max_workers: int = 4,
    ):
        self.name = name
        self.parent = parent
        self.path = name if parent is None else f"{parent.path}/{name}"
        if logger is None:
            logger = parent.logger if parent is not None else logging.getLogger("verity")
        self.logger = logger
        self.max_workers = max_workers
        self.duration_seconds = 0.0

        self._lock = threading.Lock()
        self._failures: list[Outcome] = []
        self._failed = False
        self._halted = False
        self._skip_reason: str | None = None
        self._children: list[RunContext] = []
        self._pending: list[tuple[RunContext, TestFunc]] = []
        self._child_names: dict[str, int] = {}
        self._logs: list[str] = []

        self.check = Checker(self)
        self.require = Requirer(self)

    def __repr__(self) -> str:
        return f"RunContext({self.path!r})"

    @property
    def failures(self) -> tuple[Outcome, ...]:
        with self._lock:
            return tuple(self._failures)

    @property
    def halted(self) -> bool:
        return self._halted

    @property
    def skipped(self) -> bool:
        return self._skip_reason is not None

    @property
    def ended(self) -> bool:
        return self._halted or self._skip_reason is not None

    @property
    def failed(self) -> bool:
        """True once this test or any sub-test recorded a failure."""
        if self._failed:
            return True
        with self._lock:
            children = list(self._children)
        return any(child.failed for child in children)

    @property
    def passed(self) -> bool:
        return not self.failed

    def record(self, outcome: Outcome) -> bool:
        """Append a failed outcome. Returns False if the test already ended."""
        with self._lock:
            if self._halted or self._skip_reason is not None:
                ended = True
            else:
                ended = False
                self._failures.append(outcome)
                self._failed = True
        if ended:
            self.logger.warning(
                f"[{self.path}] ignoring failure after the test ended: {outcome.describe()}"
            )
            return False
        self.logger.info(f"[{self.path}] FAIL {outcome.describe()}")
        return True

    def halt(self, outcome: Outcome) -> None:
        """Record ``outcome`` and unwind the test body."""
        if self.record(outcome):
            with self._lock:
                self._halted = True
            self.logger.debug(f"[{self.path}] halted")
        raise TestHalted(self)

    def record_error(self, exc: BaseException) -> None:
        """Record an exception that escaped the test body and mark it halted."""
        label = "unexpected exit" if isinstance(exc, SystemExit) else "unexpected error"
        frames = traceback.extract_tb(exc.__traceback__)
        location = None
        if frames:
            last = frames[-1]
            location = SourceLocation(last.filename, last.lineno or 0, last.name)
        outcome = Outcome(
            passed=False,
            message=f"{label}: {show(exc)}",
            location=location,
            kind=Kind.FAIL,
        )
        self.logger.debug(
            f"[{self.path}] {label}:\n"
            + "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        )
        if self.record(outcome):
            with self._lock:
                self._halted = True

    def skip(self, reason: str = "") -> None:
        """End the test now without failing it."""
        with self._lock:
            if self._skip_reason is None and not self._halted:
                self._skip_reason = reason
        self.logger.info(f"[{self.path}] SKIP {reason}")
        raise TestSkipped(self, reason)

    def log(self, message: str, *args: Any) -> None:
        text = message.format(*args) if args else message
        with self._lock:
            self._logs.append(text)
        self.logger.debug(f"[{self.path}] {text}")

    def run(self, name: str, fn: TestFunc, *, parallel: bool = False) -> bool:
        """Run ``fn`` as a sub-test with its own context.

        A halt inside the sub-test stops only the sub-test. With
        ``parallel=True`` the sub-test is queued and runs concurrently with
        its parallel siblings once this test's body returns; the call then
        returns True without waiting.
        """
        with self._lock:
            count = self._child_names.get(name, 0)
            self._child_names[name] = count + 1
        unique = name if count == 0 else f"{name}#{count:02d}"

        child = RunContext(
            unique, parent=self, logger=self.logger, max_workers=self.max_workers
        )
        with self._lock:
            self._children.append(child)

        if parallel:
            with self._lock:
                self._pending.append((child, fn))
            self.logger.debug(f"[{child.path}] queued for parallel run")
            return True

        invoke(child, fn)
        return child.passed

    def run_pending(self) -> None:
        """Run queued parallel sub-tests and wait for all of them."""
        with self._lock:
            pending, self._pending = self._pending, []
        if not pending:
            return
        workers = max(1, min(self.max_workers, len(pending)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(invoke, child, fn) for child, fn in pending]
            for future in futures:
                # Re-raises HaltEscapeError from a worker.
                future.result()

    def report(self) -> TestReport:
        with self._lock:
            failures = list(self._failures)
            children = list(self._children)
            logs = list(self._logs)
        return TestReport(
            name=self.name,
            path=self.path,
            passed=self.passed,
            failures=[outcome.message or "" for outcome in failures],
            locations=[str(o.location) if o.location else "" for o in failures],
            halted=self._halted,
            skipped=self.skipped,
            skip_reason=self._skip_reason,
            duration_seconds=self.duration_seconds,
            logs=logs,
            children=[child.report() for child in children],
        )


def invoke(context: RunContext, fn: TestFunc) -> TestReport:
    """Run a test body inside its boundary and return its report.

    Catches the halt or skip raised for ``context`` and records any other
    exception, ``SystemExit`` included, as a failure. ``KeyboardInterrupt``
    propagates to the runner. A halt or skip raised for a different context
    becomes :class:`HaltEscapeError`, which is never caught here.
    """
    start = time.perf_counter()
    context.logger.debug(f"[{context.path}] start")
    try:
        fn(context)
    except (TestHalted, TestSkipped) as signal:
        if signal.context is not context:
            context.logger.critical(
                f"[{context.path}] halt from '{signal.context.path}' escaped its test boundary"
            )
            raise HaltEscapeError(signal, context) from signal
    except (Exception, SystemExit) as exc:
        context.record_error(exc)

    context.run_pending()
    context.duration_seconds = time.perf_counter() - start
    status = "PASS" if context.passed else "FAIL"
    context.logger.debug(
        f"[{context.path}] {status} ({context.duration_seconds:.3f}s)"
    )
    return context.report()


def finalize(context: RunContext) -> tuple[bool, list[str]]:
    """Return ``(passed, failure messages in call order)`` for ``context``."""
    return context.passed, [outcome.message or "" for outcome in context.failures]
