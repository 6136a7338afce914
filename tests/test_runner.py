import threading

import pytest
import yaml
from junitparser import JUnitXml

from verity.errors import HaltEscapeError
from verity.runner import Runner
from verity.suite import Suite


@pytest.fixture
def math_suite():
    suite = Suite("math")

    @suite.test
    def addition(t):
        t.check.equal(3, 1 + 2)

    @suite.test
    def mismatch(t):
        t.check.equal(4, 5)
        t.check.equal(2, 2)

    @suite.test
    def guarded(t):
        t.require.not_none(None, "lookup returned nothing")
        t.check.fail("not reached")

    return suite


def test_runner_creates_run_directory(tmp_path, math_suite):
    runner = Runner(suites=[math_suite], output_dir=tmp_path / "runs")
    run_dir = runner.execute()

    assert run_dir.exists()
    assert (run_dir / "junit.xml").exists()
    assert (run_dir / "meta.yaml").exists()
    assert (run_dir / "debug.log").exists()


def test_runner_captures_results(tmp_path, math_suite):
    runner = Runner(suites=[math_suite], output_dir=tmp_path / "runs")
    runner.execute()

    results = runner.results["math"]
    assert results["addition"].passed is True
    assert results["mismatch"].report.failures == ["expected 4, got 5"]
    assert results["guarded"].report.failures == ["lookup returned nothing"]
    assert results["guarded"].report.halted is True
    assert runner.failed is True


def test_runner_writes_junit_cases(tmp_path, math_suite):
    run_dir = Runner(suites=[math_suite], output_dir=tmp_path / "runs").execute()

    xml = JUnitXml.fromfile(str(run_dir / "junit.xml"))
    suite = next(iter(xml))
    assert suite.name == "math"
    assert suite.tests == 3
    assert suite.failures == 2
    cases = {case.name: case for case in suite}
    assert not cases["addition"].result
    assert cases["mismatch"].result[0].message == "expected 4, got 5"


def test_runner_meta(tmp_path, math_suite):
    run_dir = Runner(suites=[math_suite], output_dir=tmp_path / "runs", repeat=2).execute()

    meta = yaml.safe_load((run_dir / "meta.yaml").read_text())
    assert meta["suites"] == ["math"]
    assert meta["repeat"] == 2
    assert meta["tests"] == ["math/addition", "math/mismatch", "math/guarded"]
    assert meta["summary"]["failed"] == 2
    assert "interrupted" not in meta


def test_runner_progress_output(tmp_path, math_suite, capsys):
    Runner(suites=[math_suite], output_dir=tmp_path / "runs").execute()
    out = capsys.readouterr().out
    assert "Running 3 test(s) with parallelism 1..." in out
    assert "PASS  math / addition" in out
    assert "FAIL  math / mismatch (1 failure(s)" in out


def test_runner_filter(tmp_path, math_suite):
    runner = Runner(
        suites=[math_suite], output_dir=tmp_path / "runs", test_filter="math/addition"
    )
    runner.execute()
    assert list(runner.results["math"]) == ["addition"]
    assert runner.failed is False


def test_runner_filter_without_match_raises(tmp_path, math_suite):
    runner = Runner(suites=[math_suite], output_dir=tmp_path / "runs", test_filter="nope")
    with pytest.raises(ValueError, match="No test matches"):
        runner.execute()


def test_runner_repeat_aggregates(tmp_path):
    suite = Suite("flaky")
    calls = []

    @suite.test
    def sometimes(t):
        calls.append(1)
        t.check.true(len(calls) % 2 == 0, "odd call")

    runner = Runner(suites=[suite], output_dir=tmp_path / "runs", repeat=4)
    runner.execute()

    result = runner.results["flaky"]["sometimes"]
    assert result.repeat.count == 4
    assert result.repeat.passed_count == 2
    assert result.passed is False


def test_parallel_tests_get_fresh_contexts(tmp_path):
    suite = Suite("concurrent")
    seen = []
    lock = threading.Lock()

    def make(n):
        def body(t):
            with lock:
                seen.append(t)
            t.check.equal(n, -n, "worker {}", n)

        return body

    for n in range(1, 7):
        suite.add(f"w{n}", make(n), parallel=True)

    runner = Runner(suites=[suite], output_dir=tmp_path / "runs", parallel=3)
    runner.execute()

    assert len({id(t) for t in seen}) == 6
    for n in range(1, 7):
        assert runner.results["concurrent"][f"w{n}"].report.failures == [
            f"worker {n}: expected {n}, got {-n}"
        ]


def test_serial_tests_run_before_parallel_tests(tmp_path):
    suite = Suite("ordering")
    order = []

    suite.add("p", lambda t: order.append("p"), parallel=True)
    suite.add("s1", lambda t: order.append("s1"))
    suite.add("s2", lambda t: order.append("s2"))

    Runner(suites=[suite], output_dir=tmp_path / "runs", parallel=2).execute()
    assert order == ["s1", "s2", "p"]


def test_halt_escape_aborts_run(tmp_path):
    suite = Suite("broken")

    @suite.test
    def misuse(t):
        t.run("child", lambda c: t.require.fail("parent halted from child"))

    runner = Runner(suites=[suite], output_dir=tmp_path / "runs")
    with pytest.raises(HaltEscapeError):
        runner.execute()


def test_subtests_appear_in_junit(tmp_path):
    suite = Suite("nested")

    @suite.test
    def parent(t):
        t.run("ok", lambda c: c.check.equal(1, 1))
        t.run("bad", lambda c: c.check.equal(1, 2))

    run_dir = Runner(suites=[suite], output_dir=tmp_path / "runs").execute()
    xml = JUnitXml.fromfile(str(run_dir / "junit.xml"))
    cases = {case.name: case for case in next(iter(xml))}
    assert set(cases) == {"parent", "parent/ok", "parent/bad"}
    assert cases["parent"].result[0].message == "sub-test failed"
    assert not cases["parent/ok"].result
    assert cases["parent/bad"].result[0].message == "expected 1, got 2"
