"""Plain-text failure listing for the terminal."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from verity.metrics import AggregatedResult


def render_failures(all_results: dict[str, dict[str, AggregatedResult]]) -> str:
    lines: list[str] = []
    for suite_name, tests in all_results.items():
        for result in tests.values():
            if result.passed:
                continue
            for report in result.report.walk():
                if report.passed:
                    continue
                indent = "    " * report.path.count("/")
                lines.append(f"{indent}--- FAIL: {suite_name} / {report.path}")
                for line in report.located_failures():
                    lines.append(f"{indent}    {line}")
                if report.halted:
                    lines.append(f"{indent}    (halted; remaining statements not run)")
            if result.repeat.count > 1:
                lines.append(
                    f"    passed {result.repeat.passed_count}/{result.repeat.count} iterations"
                )
    return "\n".join(lines)
