"""Command line entry point: ``matrix-runner build`` and ``matrix-runner base``."""

import asyncio
import signal
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from matrix_runner.builder.providers.dagger_provider import DaggerEnvironmentProvider
from matrix_runner.common.dto.build import MatrixReport
from matrix_runner.common.config.constants import FailPolicy, ReportFormat
from matrix_runner.common.config.settings import get_settings
from matrix_runner.common.config.logging_config import setup_logging, get_logger
from matrix_runner.common.exceptions.base_exceptions import MatrixRunnerException
from matrix_runner.monitoring.tracing import setup_tracing, shutdown_tracing
from matrix_runner.orchestrator.main import MatrixRunnerService


app = typer.Typer(no_args_is_help=True, help="Build a source tree across a matrix of runtime versions.")

_console = Console()
logger = get_logger(__name__)


def _configure(log_level: Optional[str], json_logs: Optional[bool]) -> None:
    settings = get_settings()
    setup_logging(
        log_level=(log_level or ("DEBUG" if settings.debug else settings.log_level)).upper(),
        json_format=settings.json_logs if json_logs is None else json_logs,
        log_dir=settings.log_dir,
    )
    # debug mode also prints spans to the console
    if settings.tracing_enabled or settings.debug:
        setup_tracing(settings.tracing_service_name)


def _print_summary(report: MatrixReport) -> None:
    table = Table(title="Build matrix")
    table.add_column("Version", style="bright_green", no_wrap=True)
    table.add_column("Image", style="white")
    table.add_column("Status")
    table.add_column("Failed step", style="dim")

    for result in report:
        status = "[green]succeeded[/green]" if result.is_successful else "[red]failed[/red]"
        table.add_row(result.label, result.target.base_image, status, result.failed_step or "")

    _console.print(table)


async def _run(service: MatrixRunnerService, versions: Optional[List[str]]) -> MatrixReport:
    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        service.cancel()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except NotImplementedError:
            logger.debug(f"Signal handler for {sig!r} not supported on this platform")

    async with service.provider:
        return await service.build_matrix(versions)


@app.command()
def build(
    source: Path = typer.Argument(Path("."), help="Source directory to build"),
    node_versions: Optional[List[str]] = typer.Option(
        None, "--node-version", "-n", help="Runtime version to build (repeatable)"
    ),
    fail_fast: bool = typer.Option(False, "--fail-fast", help="Cancel remaining entries after the first failure"),
    lint: Optional[bool] = typer.Option(None, "--lint/--no-lint", help="Run the lint step"),
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", "-o", help="Write a per-version directory tree"),
    report_format: ReportFormat = typer.Option(ReportFormat.TEXT, "--format", "-f"),
    max_parallel: Optional[int] = typer.Option(None, "--max-parallel", min=1),
    log_level: Optional[str] = typer.Option(None, "--log-level"),
    json_logs: Optional[bool] = typer.Option(None, "--json-logs/--plain-logs"),
) -> None:
    """Run the build pipeline once per runtime version and print the combined report."""

    _configure(log_level, json_logs)
    settings = get_settings()
    if lint is not None:
        settings = settings.model_copy(update={"run_lint": lint})

    service = MatrixRunnerService(
        DaggerEnvironmentProvider(),
        source,
        settings=settings,
        output_dir=output_dir,
        fail_policy=FailPolicy.FAIL_FAST if fail_fast else None,
        max_parallel=max_parallel,
    )

    try:
        report = asyncio.run(_run(service, node_versions or None))
    except MatrixRunnerException as e:
        _console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=2)
    finally:
        shutdown_tracing()

    typer.echo(service.render(report, report_format))
    _print_summary(report)
    if output_dir is not None:
        _console.print(f"[green]Report tree written to:[/green] {output_dir}")

    raise typer.Exit(code=report.exit_code)


@app.command()
def base(
    source: Path = typer.Argument(Path("."), help="Source directory to mount"),
    node_version: str = typer.Option("latest", "--node-version", "-n"),
) -> None:
    """Show the base environment plan for one runtime version."""

    _configure(None, None)
    service = MatrixRunnerService(DaggerEnvironmentProvider(), source)
    try:
        environment = service.base(node_version)
    except MatrixRunnerException as e:
        _console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=2)
    typer.echo(environment.describe())


def main() -> None:
    app()


if __name__ == "__main__":
    main()
