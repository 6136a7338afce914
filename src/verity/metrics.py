from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

import numpy as np

from verity.context import TestReport

if TYPE_CHECKING:
    from verity.runner import IterationResult


@dataclass
class MetricStatistics:
    """Statistics for a single metric across iterations."""

    avg: float | None
    min: float | None
    max: float | None
    stddev: float | None

    def to_dict(self) -> dict[str, float | None]:
        return asdict(self)


@dataclass
class RepeatSummary:
    """Summary of repeated iterations of one test."""

    count: int
    passed_count: int
    pass_rate: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class AggregatedResult:
    """One test folded across all of its iterations.

    ``report`` is the first failing iteration's report, or the first
    iteration's when every iteration passed.
    """

    name: str
    passed: bool
    skipped: bool
    report: TestReport
    duration_stats: MetricStatistics
    repeat: RepeatSummary

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "passed": self.passed,
            "skipped": self.skipped,
            "report": self.report.to_dict(),
            "duration_stats": self.duration_stats.to_dict(),
            "repeat": self.repeat.to_dict(),
        }


def compute_stats(values: list[float | int | None]) -> MetricStatistics:
    """Compute avg, min, max, stddev for a list of numeric values."""
    nums = [v for v in values if v is not None]
    if not nums:
        return MetricStatistics(avg=None, min=None, max=None, stddev=None)

    arr = np.array(nums)
    return MetricStatistics(
        avg=round(float(np.mean(arr)), 4),
        min=round(float(np.min(arr)), 4),
        max=round(float(np.max(arr)), 4),
        stddev=round(float(np.std(arr)), 4),
    )


def aggregate_results(run_results: list[IterationResult]) -> AggregatedResult:  # type: ignore[name-defined]
    """Aggregate iterations of one test into a single result with stats."""
    if not run_results:
        raise ValueError("cannot aggregate an empty list of iterations")

    ordered = sorted(run_results, key=lambda r: r.iteration_index)
    iteration_count = len(ordered)
    passed_count = sum(1 for run in ordered if run.report.passed)

    representative = next(
        (run.report for run in ordered if not run.report.passed), ordered[0].report
    )

    return AggregatedResult(
        name=representative.name,
        passed=passed_count == iteration_count,
        skipped=all(run.report.skipped for run in ordered),
        report=representative,
        duration_stats=compute_stats([run.report.duration_seconds for run in ordered]),
        repeat=RepeatSummary(
            count=iteration_count,
            passed_count=passed_count,
            pass_rate=round(passed_count / iteration_count * 100, 1),
        ),
    )


def summarize(all_results: dict[str, dict[str, AggregatedResult]]) -> dict[str, Any]:
    """Totals for a whole run."""
    results = [r for tests in all_results.values() for r in tests.values()]
    total = len(results)
    passed = sum(1 for r in results if r.passed and not r.skipped)
    skipped = sum(1 for r in results if r.skipped and r.passed)
    failed = sum(1 for r in results if not r.passed)
    ran = passed + failed
    durations = compute_stats([r.duration_stats.avg for r in results])

    return {
        "total": total,
        "passed": passed,
        "failed": failed,
        "skipped": skipped,
        "pass_rate": round(passed / ran * 100, 2) if ran else 0.0,
        "duration_seconds": durations.to_dict(),
    }
