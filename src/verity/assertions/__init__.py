"""Assertion system: expectations, structural comparison and diagnostics."""

from verity.assertions.base import Expectation, Kind, Outcome, SourceLocation
from verity.assertions.compare import Comparison, compare_contains, compare_equal
from verity.assertions.evaluate import evaluate_expectation
from verity.assertions.formatting import render_message

__all__ = [
    "Comparison",
    "Expectation",
    "Kind",
    "Outcome",
    "SourceLocation",
    "compare_contains",
    "compare_equal",
    "evaluate_expectation",
    "render_message",
]
