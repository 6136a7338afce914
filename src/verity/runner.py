from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from verity.context import RunContext, TestReport, invoke
from verity.errors import HaltEscapeError
from verity.metrics import AggregatedResult, aggregate_results, summarize
from verity.suite import Suite, TestCase
from verity.verbose import close_logger, setup_logger

SuiteName = str
TestName = str


@dataclass
class IterationResult:
    report: TestReport
    iteration_index: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class Runner:
    """Runs registered suites and writes the run directory."""

    def __init__(
        self,
        suites: list[Suite],
        output_dir: Path,
        test_filter: str | None = None,
        verbose: bool = False,
        parallel: int = 1,
        repeat: int = 1,
    ):
        self.suites = suites
        self.output_dir = output_dir
        self.test_filter = test_filter
        self.verbose = verbose
        self.parallel = parallel
        self.repeat = repeat
        self.interrupted = False
        self.results: dict[SuiteName, dict[TestName, AggregatedResult]] = {}

    @property
    def failed(self) -> bool:
        return any(
            not result.passed
            for tests in self.results.values()
            for result in tests.values()
        )

    def _selected(self) -> list[tuple[Suite, TestCase]]:
        selected = []
        for suite in self.suites:
            for case in suite.cases:
                if self.test_filter and self.test_filter not in (
                    case.name,
                    f"{suite.name}/{case.name}",
                    suite.name,
                ):
                    continue
                selected.append((suite, case))
        return selected

    def execute(self) -> Path:
        """Run every selected test. Returns the run directory."""
        run_id = datetime.now(timezone.utc).strftime("%Y-%m-%d_%H%M%S_%f")
        run_dir = self.output_dir / run_id
        run_dir.mkdir(parents=True, exist_ok=True)

        logger = setup_logger(
            run_dir / "debug.log", verbose=self.verbose, logger_name=f"verity_{run_id}"
        )
        try:
            self._execute(run_dir, logger)
        finally:
            close_logger(logger)
        return run_dir

    def _execute(self, run_dir: Path, logger: logging.Logger) -> None:
        logger.debug("Starting test run")

        selected = self._selected()
        if self.test_filter and not selected:
            raise ValueError(f"No test matches '{self.test_filter}'")

        jobs = [
            (suite, case, iteration)
            for suite, case in selected
            for iteration in range(self.repeat)
        ]
        serial_jobs = [job for job in jobs if not job[1].parallel]
        parallel_jobs = [job for job in jobs if job[1].parallel]

        print(f"Running {len(jobs)} test(s) with parallelism {self.parallel}...")

        iteration_results: dict[SuiteName, dict[TestName, list[IterationResult]]] = {}
        for suite, case in selected:
            iteration_results.setdefault(suite.name, {})[case.name] = []

        completed_count = 0

        def _collect(suite_name: str, test_name: str, result: IterationResult) -> None:
            nonlocal completed_count
            completed_count += 1
            report = result.report
            if report.skipped and report.passed:
                status = "SKIP"
            else:
                status = "PASS" if report.passed else "FAIL"
            n_failures = sum(len(r.failures) for r in report.walk())
            label = f"{suite_name} / {test_name}"
            if self.repeat > 1:
                label += f" iter-{result.iteration_index}"
            print(
                f"  [{completed_count}/{len(jobs)}] {status}  {label} "
                f"({n_failures} failure(s), {report.duration_seconds:.2f}s)"
            )
            iteration_results[suite_name][test_name].append(result)

        try:
            # Serial tests run first, in registration order.
            for suite, case, iteration in serial_jobs:
                result = self._run_test(suite, case, logger, iteration)
                _collect(suite.name, case.name, result)

            if parallel_jobs:
                self._run_parallel(parallel_jobs, logger, _collect)
        except KeyboardInterrupt:
            self.interrupted = True
            logger.warning("Run interrupted by user (Ctrl+C). Saving partial results...")
        except HaltEscapeError as e:
            logger.critical(f"Aborting run: {e}")
            raise

        # Build final results: always aggregate (single run is just 1 iteration)
        all_results: dict[SuiteName, dict[TestName, AggregatedResult]] = {}
        for suite_name, tests in iteration_results.items():
            for test_name, results_list in tests.items():
                # Skip tests with no completed results (can happen during interrupts)
                if not results_list:
                    continue
                all_results.setdefault(suite_name, {})[test_name] = aggregate_results(
                    results_list
                )
        self.results = all_results

        logger.debug(
            f"Run finished: {'FAIL' if self.failed else 'PASS'} "
            f"({completed_count}/{len(jobs)} test iterations completed)"
        )
        self._write_results(run_dir, all_results)

    def _run_parallel(self, jobs, logger: logging.Logger, collect) -> None:
        with ThreadPoolExecutor(max_workers=self.parallel) as executor:
            future_to_test = {
                executor.submit(self._run_test, suite, case, logger, iteration): (
                    suite.name,
                    case.name,
                )
                for suite, case, iteration in jobs
            }
            try:
                for future in as_completed(future_to_test):
                    suite_name, test_name = future_to_test[future]
                    collect(suite_name, test_name, future.result())
            except BaseException:
                cancelled_count = 0
                for future in future_to_test:
                    # this only cancels tasks not yet started
                    if future.cancel():
                        cancelled_count += 1
                logger.info(
                    f"Cancelled {cancelled_count} pending test(s). Running tests will complete naturally."
                )
                raise

    def _run_test(
        self,
        suite: Suite,
        case: TestCase,
        logger: logging.Logger,
        iteration: int,
    ) -> IterationResult:
        """Run one iteration of one test in a fresh context."""
        logger.debug(f"Running test '{suite.name}/{case.name}' iteration {iteration}")
        context = RunContext(case.name, logger=logger, max_workers=self.parallel)
        report = invoke(context, case.func)
        return IterationResult(report=report, iteration_index=iteration)

    def _write_results(
        self,
        run_dir: Path,
        all_results: dict[SuiteName, dict[TestName, AggregatedResult]],
    ) -> None:
        """Write junit.xml and meta.yaml to the run directory."""
        from verity.reporting.junit import write_junit

        write_junit(run_dir, all_results)

        import importlib.metadata

        try:
            verity_version = importlib.metadata.version("verity")
        except importlib.metadata.PackageNotFoundError:
            verity_version = "unknown"

        meta: dict[str, Any] = {
            "run_id": run_dir.name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "suites": [suite.name for suite in self.suites],
            "tests": [
                f"{suite_name}/{test_name}"
                for suite_name, tests in all_results.items()
                for test_name in tests
            ],
            "verity_version": verity_version,
            "parallel": self.parallel,
            "repeat": self.repeat,
            "summary": summarize(all_results),
        }
        if self.interrupted:
            meta["interrupted"] = True

        (run_dir / "meta.yaml").write_text(yaml.dump(meta, default_flow_style=False))
