from __future__ import annotations

import sys
from pathlib import Path

import typer

app = typer.Typer(name="verity", help="Run structured assertion test suites")

EXIT_FAILED = 1
EXIT_HALT_ESCAPE = 2


@app.command()
def run(
    config: str = typer.Argument(help="Path to verity YAML config"),
    test: str | None = typer.Option(
        None, help="Run only this test ('name', 'suite/name' or 'suite')"
    ),
    output_dir: str | None = typer.Option(
        None, help="Output directory for run results (overrides config)"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output to terminal"
    ),
    parallel: int | None = typer.Option(
        None, "--parallel", "-p", min=1, max=100, help="Number of parallel tests to run"
    ),
    repeat: int | None = typer.Option(
        None, "--repeat", "-r", min=1, max=100, help="Number of times to repeat each test"
    ),
    html: bool = typer.Option(
        True, "--html/--no-html", help="Render report.html after the run"
    ),
):
    """Run the suites listed in a config file."""
    from pydantic import ValidationError

    from verity.config import load_config
    from verity.errors import HaltEscapeError
    from verity.reporting.console import render_failures
    from verity.reporting.junit import generate_report
    from verity.runner import Runner
    from verity.suite import load_suite

    config_path = Path(config)
    if not config_path.exists():
        typer.echo(f"Error: config file not found: {config}", err=True)
        raise typer.Exit(EXIT_FAILED)

    try:
        run_config = load_config(config_path)
    except (ValidationError, ValueError) as e:
        typer.echo(f"Error: invalid config {config}: {e}", err=True)
        raise typer.Exit(EXIT_FAILED)

    for path in reversed(run_config.paths):
        if path not in sys.path:
            sys.path.insert(0, path)

    try:
        suites = [load_suite(ref) for ref in run_config.suites]
    except (ImportError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(EXIT_FAILED)

    runner = Runner(
        suites=suites,
        output_dir=Path(output_dir or run_config.output_dir),
        test_filter=test,
        verbose=verbose,
        parallel=parallel or run_config.parallel,
        repeat=repeat or run_config.repeat,
    )

    try:
        run_dir = runner.execute()
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(EXIT_FAILED)
    except HaltEscapeError as e:
        typer.echo(f"Fatal: halt escaped its test boundary: {e}", err=True)
        raise typer.Exit(EXIT_HALT_ESCAPE)

    failures = render_failures(runner.results)
    if failures:
        typer.echo(failures)

    if runner.interrupted:
        typer.echo(f"Partial run saved: {run_dir}")
    else:
        typer.echo(f"Run complete: {run_dir}")
    if html:
        typer.echo(f"Report: {generate_report(run_dir)}")
    if not verbose:
        typer.echo(f"Debug log: {run_dir / 'debug.log'}")

    # Exit with non-zero if any test failed or run was interrupted
    if runner.interrupted or runner.failed:
        raise typer.Exit(EXIT_FAILED)


@app.command()
def report(
    run_dir: str = typer.Argument(help="Path to run output directory"),
):
    """Regenerate the HTML report from a previous run."""
    from verity.reporting.junit import generate_report

    run_path = Path(run_dir)
    if not run_path.exists() or not (run_path / "junit.xml").exists():
        typer.echo(f"Error: not a valid run directory: {run_dir}", err=True)
        raise typer.Exit(EXIT_FAILED)

    report_path = generate_report(run_path)
    typer.echo(f"Report generated: {report_path}")


_EXAMPLE_CONFIG = """\
suites:
  - example_tests:suite
paths: ["."]
output_dir: runs
parallel: 1
repeat: 1
"""

_EXAMPLE_TESTS = '''\
from verity import Suite

suite = Suite("example")


@suite.test
def arithmetic(t):
    t.check.equal(3, 1 + 2)
    t.check.contains("hello, world", "world")


@suite.test
def lookup(t):
    table = {"a": 1}
    t.require.contains(table, "a")
    t.check.equal(1, table["a"])
'''


@app.command()
def init(
    dir: str = typer.Option("verity", "--dir", help="Directory to initialize project in"),
):
    """Initialize a new project with an example config and suite."""
    project_dir = Path(dir)
    project_dir.mkdir(parents=True, exist_ok=True)

    config = project_dir / "verity.yaml"
    if config.exists():
        typer.echo(f"verity.yaml already exists in {dir}, skipping.")
        return

    config.write_text(_EXAMPLE_CONFIG)
    (project_dir / "example_tests.py").write_text(_EXAMPLE_TESTS)

    typer.echo(f"Initialized verity project in {dir}:")
    typer.echo("  verity.yaml       - run config")
    typer.echo("  example_tests.py  - example suite")


@app.command()
def schema(
    dir: str = typer.Option(
        "verity", "--dir", help="Project directory for default schema/doc outputs"
    ),
    out: str | None = typer.Option(
        None,
        help="Output path for JSON Schema (defaults to <dir>/schemas/verity.schema.json)",
    ),
    doc: str | None = typer.Option(
        None, help="Output path for schema docs (defaults to <dir>/docs/schema.md)"
    ),
):
    """Generate JSON Schema and docs for the config YAML format."""
    from verity.schema import write_json_schema, write_schema_doc

    project_dir = Path(dir)
    out_path = (
        Path(out) if out is not None else project_dir / "schemas" / "verity.schema.json"
    )
    doc_path = Path(doc) if doc is not None else project_dir / "docs" / "schema.md"
    write_json_schema(out_path)
    write_schema_doc(doc_path)
    typer.echo(f"Wrote schema: {out_path}")
    typer.echo(f"Wrote docs: {doc_path}")


def main() -> None:
    app()
