import pytest

from verity.context import TestReport
from verity.metrics import aggregate_results, compute_stats, summarize
from verity.runner import IterationResult


def _iteration(index: int, passed: bool, duration: float = 1.0, skipped: bool = False):
    report = TestReport(
        name="t",
        path="t",
        passed=passed,
        failures=[] if passed else [f"failure in {index}"],
        locations=[] if passed else [""],
        skipped=skipped,
        duration_seconds=duration,
    )
    return IterationResult(report=report, iteration_index=index)


def test_compute_stats_basic():
    stats = compute_stats([1.0, 2.0, 3.0])
    assert stats.avg == 2.0
    assert stats.min == 1.0
    assert stats.max == 3.0
    assert stats.stddev == pytest.approx(0.8165, abs=1e-4)


def test_compute_stats_ignores_none():
    stats = compute_stats([None, 4, None])
    assert stats.avg == 4.0
    assert stats.stddev == 0.0


def test_compute_stats_all_none():
    stats = compute_stats([None, None])
    assert stats.to_dict() == {"avg": None, "min": None, "max": None, "stddev": None}


def test_aggregate_all_passed():
    agg = aggregate_results([_iteration(0, True, 1.0), _iteration(1, True, 3.0)])
    assert agg.passed is True
    assert agg.repeat.count == 2
    assert agg.repeat.passed_count == 2
    assert agg.repeat.pass_rate == 100.0
    assert agg.duration_stats.avg == 2.0
    assert agg.report.failures == []


def test_aggregate_uses_first_failing_iteration_as_report():
    agg = aggregate_results(
        [_iteration(2, False), _iteration(0, True), _iteration(1, False)]
    )
    assert agg.passed is False
    assert agg.repeat.passed_count == 1
    assert agg.repeat.pass_rate == pytest.approx(33.3)
    assert agg.report.failures == ["failure in 1"]


def test_aggregate_empty_raises():
    with pytest.raises(ValueError):
        aggregate_results([])


def test_aggregate_to_dict_roundtrips_nested_report():
    data = aggregate_results([_iteration(0, False)]).to_dict()
    assert data["report"]["failures"] == ["failure in 0"]
    assert data["repeat"] == {"count": 1, "passed_count": 0, "pass_rate": 0.0}


def test_summarize_counts():
    results = {
        "s": {
            "ok": aggregate_results([_iteration(0, True, 2.0)]),
            "bad": aggregate_results([_iteration(0, False, 4.0)]),
            "skip": aggregate_results([_iteration(0, True, skipped=True)]),
        }
    }
    summary = summarize(results)
    assert summary["total"] == 3
    assert summary["passed"] == 1
    assert summary["failed"] == 1
    assert summary["skipped"] == 1
    assert summary["pass_rate"] == 50.0
    assert summary["duration_seconds"]["max"] == 4.0
