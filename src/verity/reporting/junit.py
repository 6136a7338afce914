from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

from junitparser import Failure, JUnitXml, Skipped, TestCase, TestSuite

if TYPE_CHECKING:
    from verity.metrics import AggregatedResult


def write_junit(
    run_dir: Path, all_results: dict[str, dict[str, AggregatedResult]]
) -> Path:
    """Write junit.xml from aggregated results, return path.

    One suite per registered Suite, one case per test and per sub-test.
    """
    xml = JUnitXml()

    for suite_name, tests in all_results.items():
        suite = TestSuite(suite_name)
        total_time = 0.0

        for test_name, result in tests.items():
            if result.repeat.count > 1:
                suite.add_property(f"{test_name}.pass_rate", str(result.repeat.pass_rate))
                avg = result.duration_stats.avg
                if avg is not None:
                    suite.add_property(f"{test_name}.duration_avg", str(avg))

            for report in result.report.walk():
                case = TestCase(report.path)
                case.classname = suite_name
                case.time = round(report.duration_seconds, 6)
                if report.failures:
                    failure = Failure(report.failures[0])
                    failure.text = "\n".join(report.located_failures())
                    case.result = failure
                elif not report.passed:
                    case.result = Failure("sub-test failed")
                elif report.skipped:
                    case.result = Skipped(report.skip_reason or "")
                suite.add_testcase(case)

            total_time += result.report.duration_seconds

        passed = sum(1 for r in tests.values() if r.passed)
        if tests:
            suite.add_property("pass_rate", str(round(passed / len(tests) * 100, 2)))

        # Set time after add_testcase (add_testcase resets it via update_statistics)
        suite.time = round(total_time, 6)

        # Use append (not +=) to preserve properties and time
        xml.append(suite)

    junit_path = run_dir / "junit.xml"
    xml.write(str(junit_path), pretty=True)
    return junit_path


def _read_suites(junit_path: Path) -> list[dict[str, Any]]:
    xml = JUnitXml.fromfile(str(junit_path))

    suites = []
    for suite in xml:
        cases = []
        for case in suite:
            result = None
            if case.result:
                first = case.result[0]
                result = {
                    "status": type(first).__name__,
                    "message": first.message or "",
                    "text": first.text or "",
                }
            cases.append(
                {
                    "name": case.name,
                    "depth": case.name.count("/"),
                    "time": case.time,
                    "result": result,
                }
            )
        suites.append(
            {
                "name": suite.name,
                "tests": suite.tests,
                "failures": suite.failures,
                "skipped": suite.skipped,
                "time": suite.time,
                "properties": {p.name: p.value for p in suite.properties()},
                "cases": cases,
            }
        )
    return suites


def generate_report(run_dir: Path) -> Path:
    """Render junit.xml -> report.html using the Jinja2 template, return path."""
    import yaml
    from jinja2 import Environment, FileSystemLoader

    junit_path = run_dir / "junit.xml"
    report_path = run_dir / "report.html"

    meta: dict = {}
    meta_path = run_dir / "meta.yaml"
    if meta_path.exists():
        meta = yaml.safe_load(meta_path.read_text()) or {}

    suites = _read_suites(junit_path)
    total_tests = sum(s["tests"] for s in suites)
    total_failures = sum(s["failures"] for s in suites)
    total_skipped = sum(s["skipped"] for s in suites)

    tmpl_dir = Path(__file__).parent / "templates"
    env = Environment(loader=FileSystemLoader(str(tmpl_dir)), autoescape=True)
    template = env.get_template("report.html.j2")

    html = template.render(
        suites=suites,
        total_tests=total_tests,
        total_failures=total_failures,
        total_skipped=total_skipped,
        run_dir=str(run_dir),
        meta=meta,
    )
    report_path.write_text(html, encoding="utf-8")
    return report_path
