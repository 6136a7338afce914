"""Structured assertions with continuing and halting modes."""

from verity.assertions import Expectation, Kind, Outcome, compare_contains, compare_equal
from verity.check import Checker, Requirer, check, require
from verity.context import RunContext, TestReport, finalize, invoke
from verity.errors import HaltEscapeError, TestHalted, TestSkipped
from verity.suite import Suite, load_suite

__all__ = [
    "Checker",
    "Expectation",
    "HaltEscapeError",
    "Kind",
    "Outcome",
    "Requirer",
    "RunContext",
    "Suite",
    "TestHalted",
    "TestReport",
    "TestSkipped",
    "check",
    "compare_contains",
    "compare_equal",
    "finalize",
    "invoke",
    "load_suite",
    "require",
]
