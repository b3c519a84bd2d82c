"""Main CLI entry point using Typer."""

import logging
import signal
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Tuple

import typer
from rich.console import Console
from rich.table import Table

from .. import __version__
from ..aws.client import create_boto_session
from ..aws.credentials import CredentialValidationError, validate_credentials
from ..criteria import load_criteria_file, parse
from ..errors import ConfigError
from ..models.filter_clause import CriteriaModel
from ..models.report import Report, RunMode
from ..registry.aws_types import AWS_RESOURCE_TYPES, build_aws_registry
from ..registry.registry import ResourceRegistry
from ..report.reporter import SweepReporter
from ..sweep.audit import AuditStorage
from ..sweep.controller import RunController
from ..sweep.matcher import Matcher
from ..sweep.orchestrator import DeletionOrchestrator
from ..utils.logging import setup_logging
from .config import Config

logger = logging.getLogger(__name__)

# Create Typer app
app = typer.Typer(
    name="awsweeper",
    help="AWSweeper - delete AWS resources selected by a YAML criteria document",
    add_completion=False,
)

# Create Rich console for output
console = Console()

# Global config
config: Optional[Config] = None


@app.callback()
def main(
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="AWS profile name"),
    region: Optional[str] = typer.Option(None, "--region", "-r", help="AWS region"),
    config_file: Optional[str] = typer.Option(None, "--config", help="Settings file (default: ~/.awsweeper/config.yaml)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress output except errors"),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored output"),
):
    """AWSweeper - delete AWS resources selected by a YAML criteria document."""
    global config

    # Load configuration
    try:
        config = Config.load(config_file)
    except ConfigError as e:
        console.print(f"✗ Configuration error: {e}", style="bold red")
        raise typer.Exit(code=1)

    # Override with CLI options
    if profile:
        config.aws_profile = profile
    if region:
        config.region = region

    # Setup logging
    log_level = "ERROR" if quiet else ("DEBUG" if verbose else config.log_level)
    setup_logging(level=log_level, verbose=verbose)

    # Disable colors if requested
    if no_color:
        console.no_color = True


@app.command()
def version():
    """Show version information."""
    console.print(f"awsweeper version {__version__}")


@app.command("types")
def list_types():
    """List supported resource types in deletion order."""
    table = Table(title="Resource types")
    table.add_column("Type", style="bold cyan")
    table.add_column("Rank", justify="right")
    table.add_column("Service")
    table.add_column("Description")

    for resource_type in sorted(AWS_RESOURCE_TYPES, key=lambda t: (t.dependency_rank, t.name)):
        table.add_row(
            resource_type.name,
            str(resource_type.dependency_rank),
            resource_type.service,
            resource_type.description,
        )

    console.print(table)


def build_registry(profile: Optional[str], region: Optional[str]) -> Tuple[ResourceRegistry, str]:
    """Validate credentials and build the AWS resource type registry.

    Returns:
        Tuple of (registry, AWS account id)

    Raises:
        CredentialValidationError: If credentials cannot be used
    """
    identity = validate_credentials(profile, region)
    logger.info(f"Using AWS account {identity['account_id']}")
    session = create_boto_session(profile_name=profile, region_name=region)
    registry = build_aws_registry(session=session, region_name=region or session.region_name)
    return registry, identity["account_id"]


def load_criteria(path: Path, registry: ResourceRegistry) -> CriteriaModel:
    """Load and validate a criteria document.

    Raises:
        ConfigError: If the document is missing or invalid
    """
    return parse(load_criteria_file(path), registry)


def _build_controller(
    registry: ResourceRegistry,
    max_attempts: Optional[int] = None,
    max_workers: Optional[int] = None,
    retry_delay: Optional[float] = None,
) -> RunController:
    assert config is not None
    workers = max_workers or config.max_workers
    matcher = Matcher(registry, max_workers=workers, list_attempts=config.list_attempts)

    def orchestrator_factory() -> DeletionOrchestrator:
        return DeletionOrchestrator(
            registry,
            max_attempts=max_attempts or config.max_attempts,
            max_workers=workers,
            retry_delay=config.retry_delay if retry_delay is None else retry_delay,
            on_result=lambda result: logger.debug(
                f"{result.resource_type} {result.resource_id}: {result.status.value}"
            ),
        )

    return RunController(registry, matcher=matcher, orchestrator_factory=orchestrator_factory)


def _print_report(report: Report, reporter: SweepReporter) -> None:
    if report.results:
        console.print(reporter.build_table(report))
    else:
        console.print("No matching resources found.")

    for resource_type, message in report.list_errors:
        console.print(f"✗ Could not list {resource_type}: {message}", style="bold red")

    summary = reporter.generate_summary(report)
    if report.mode == RunMode.PLAN:
        console.print(f"\n[bold]{summary['skipped_count']} resource(s) would be deleted[/bold]")
    else:
        console.print(
            f"\n[bold]Deleted: {summary['deleted_count']}  "
            f"Already gone: {summary['already_gone_count']}  "
            f"Failed: {summary['failed_count']}[/bold]"
        )
    if report.cancelled:
        console.print("⚠ Run was cancelled before completion", style="bold yellow")


def _export(report: Report, reporter: SweepReporter, export: Optional[str], format: str) -> None:
    if not export:
        return

    if format.lower() == "json":
        reporter.export_json(report, export)
        console.print(f"\n✓ Exported report to: [cyan]{export}[/cyan] (JSON)")
    elif format.lower() == "csv":
        reporter.export_csv(report, export)
        console.print(f"\n✓ Exported report to: [cyan]{export}[/cyan] (CSV)")
    else:
        console.print(f"✗ Invalid format: {format}. Must be 'json' or 'csv'", style="bold red")
        raise typer.Exit(code=1)


@contextmanager
def cancellation(timeout: Optional[float] = None) -> Iterator[threading.Event]:
    """Yield an event set on SIGINT or after timeout seconds."""
    cancel_event = threading.Event()

    def handle_sigint(signum, frame):
        if cancel_event.is_set():
            raise KeyboardInterrupt
        console.print("\n⚠ Cancelling: waiting for in-flight deletions to finish...", style="bold yellow")
        cancel_event.set()

    previous_handler = None
    try:
        previous_handler = signal.signal(signal.SIGINT, handle_sigint)
    except ValueError:
        # Not on the main thread; rely on the timeout only
        logger.debug("Cannot install SIGINT handler outside the main thread")

    timer = None
    if timeout:
        timer = threading.Timer(timeout, cancel_event.set)
        timer.daemon = True
        timer.start()

    try:
        yield cancel_event
    finally:
        if timer is not None:
            timer.cancel()
        if previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)


@app.command()
def plan(
    criteria_file: Path = typer.Argument(..., help="YAML criteria document"),
    export: Optional[str] = typer.Option(None, "--export", help="Export report to file"),
    format: str = typer.Option("json", "--format", "-f", help="Export format: json or csv"),
):
    """Show which resources match the criteria without deleting anything.

    Examples:
        # Preview a cleanup
        awsweeper plan sweep.yaml

        # Export the plan as CSV
        awsweeper plan sweep.yaml --export plan.csv --format csv
    """
    assert config is not None
    try:
        registry, _ = build_registry(config.aws_profile, config.region)
        criteria = load_criteria(criteria_file, registry)

        controller = _build_controller(registry)
        report = controller.run(RunMode.PLAN, criteria)

        reporter = SweepReporter()
        _print_report(report, reporter)
        _export(report, reporter, export, format)

        if report.has_failures:
            raise typer.Exit(code=1)

    except typer.Exit:
        raise
    except ConfigError as e:
        console.print(f"✗ Invalid criteria: {e}", style="bold red")
        raise typer.Exit(code=1)
    except CredentialValidationError as e:
        console.print(f"✗ {e}", style="bold red")
        raise typer.Exit(code=1)
    except Exception as e:
        console.print(f"✗ Error during plan: {e}", style="bold red")
        logger.exception("Error in plan command")
        raise typer.Exit(code=2)


@app.command()
def apply(
    criteria_file: Path = typer.Argument(..., help="YAML criteria document"),
    yes: bool = typer.Option(False, "--yes", "-y", "--force", help="Delete without asking for confirmation"),
    max_attempts: Optional[int] = typer.Option(None, "--max-attempts", min=1, help="Delete attempts per resource"),
    max_workers: Optional[int] = typer.Option(None, "--max-workers", min=1, help="Concurrent provider calls"),
    retry_delay: Optional[float] = typer.Option(None, "--retry-delay", min=0, help="Seconds between retry passes"),
    timeout: Optional[float] = typer.Option(None, "--timeout", min=0, help="Cancel the run after this many seconds"),
    audit_dir: Optional[str] = typer.Option(None, "--audit-dir", help="Audit log directory"),
    no_audit: bool = typer.Option(False, "--no-audit", help="Do not write an audit log"),
    export: Optional[str] = typer.Option(None, "--export", help="Export report to file"),
    format: str = typer.Option("json", "--format", "-f", help="Export format: json or csv"),
):
    """Delete every resource matching the criteria.

    Shows the plan first and asks for confirmation unless --yes is given.
    Press Ctrl+C once to stop issuing new deletions; in-flight deletions
    finish and a partial report is printed.

    Examples:
        # Delete after confirmation
        awsweeper apply sweep.yaml

        # Delete without prompting, giving up after 10 minutes
        awsweeper apply sweep.yaml --yes --timeout 600
    """
    assert config is not None
    try:
        registry, account_id = build_registry(config.aws_profile, config.region)
        criteria = load_criteria(criteria_file, registry)

        controller = _build_controller(registry, max_attempts, max_workers, retry_delay)
        reporter = SweepReporter()

        plan_report = controller.run(RunMode.PLAN, criteria)
        _print_report(plan_report, reporter)

        if not plan_report.results:
            raise typer.Exit(code=1 if plan_report.has_failures else 0)

        if not yes:
            confirmed = typer.confirm(f"Delete {len(plan_report.results)} resource(s)?", default=False)
            if not confirmed:
                console.print("Cancelled. Nothing was deleted.")
                raise typer.Exit(code=0)

        with cancellation(timeout) as cancel_event:
            # Only what the user was shown may be deleted
            report = controller.run(
                RunMode.APPLY, criteria, cancel_event=cancel_event, restrict_to=plan_report.matched()
            )

        _print_report(report, reporter)

        if not no_audit:
            audit_storage = AuditStorage(audit_dir or config.audit_dir)
            audit_file = audit_storage.log_report(report, account_id=account_id, region=config.region)
            console.print(f"Audit log: [cyan]{audit_file}[/cyan]")

        _export(report, reporter, export, format)

        if report.has_failures:
            raise typer.Exit(code=1)

    except typer.Exit:
        raise
    except ConfigError as e:
        console.print(f"✗ Invalid criteria: {e}", style="bold red")
        raise typer.Exit(code=1)
    except CredentialValidationError as e:
        console.print(f"✗ {e}", style="bold red")
        raise typer.Exit(code=1)
    except Exception as e:
        console.print(f"✗ Error during apply: {e}", style="bold red")
        logger.exception("Error in apply command")
        raise typer.Exit(code=2)


def cli_main():
    """Entry point for console script."""
    app()


if __name__ == "__main__":
    cli_main()
