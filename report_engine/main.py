"""
Competitive Report Engine - CLI Entry Point.
Operational CLI using Click and Rich.
"""

import sys
import asyncio
import json
import logging
from contextlib import asynccontextmanager
from functools import wraps
from pathlib import Path
from typing import AsyncIterator, Optional

import click
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.panel import Panel
from rich.table import Table
from rich.logging import RichHandler

from report_engine import __version__
from report_engine.config.settings import get_settings, Settings
from report_engine.models.schemas import (
    ComparativeReportRequest,
    GenerationOptions,
    GenerationRequest,
    IntelligentReportRequest,
)
from report_engine.pipeline.orchestrator import ReportGenerator
from report_engine.pipeline.templates import get_report_template, list_report_templates
from report_engine.services.sql_store import (
    SQLProjectStore,
    SQLReportStore,
    create_engine_from_settings,
    create_session_maker,
    init_models,
)
from report_engine.services.validation_service import ValidationService
from report_engine.utils.logger import setup_logging

# Initialize Rich Console
console = Console()

STATUS_STYLES = {
    "healthy": "green",
    "warning": "yellow",
    "critical": "red",
}

# =============================================================================
# Helper Functions
# =============================================================================

def async_command(f):
    """Decorator to run async click commands."""
    @wraps(f)
    def wrapper(*args, **kwargs):
        return asyncio.run(f(*args, **kwargs))
    return wrapper


def setup_logger(verbose: bool):
    """Configure logging based on verbosity."""
    level = "DEBUG" if verbose else "WARNING"
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )
    setup_logging(level=level, json_format=False, use_stdlib=True)
    # Silence third-party libs
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("anthropic").setLevel(logging.WARNING)


@asynccontextmanager
async def open_stores(settings: Settings) -> AsyncIterator[tuple[SQLProjectStore, SQLReportStore]]:
    """Open the configured database and yield project and report stores."""
    engine = create_engine_from_settings(settings)
    try:
        await init_models(engine)
        session_maker = create_session_maker(engine)
        yield SQLProjectStore(session_maker), SQLReportStore(session_maker)
    finally:
        await engine.dispose()


def _status_markup(status: str) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status.upper()}[/{style}]"

# =============================================================================
# CLI Group
# =============================================================================

@click.group()
@click.version_option(version=__version__)
def cli():
    """Competitive Report Engine"""
    pass

# =============================================================================
# Commands
# =============================================================================

@cli.command()
@click.argument('project_id')
@click.option('--fallback', is_flag=True, help='Allow degraded output when data or AI is unavailable')
@click.option('--task-id', default=None, help='Caller-supplied task id')
@click.option('--verbose', is_flag=True, help='Detailed logging')
@async_command
async def generate(project_id: str, fallback: bool, task_id: Optional[str], verbose: bool):
    """
    Generate the initial competitive report for a project.

    PROJECT_ID: The project to report on
    """
    setup_logger(verbose)

    console.print(Panel.fit(f"[bold blue]Initial Report Generation[/bold blue]\nProject: [cyan]{project_id}[/cyan]"))

    try:
        settings = get_settings()
        request = GenerationRequest(
            project_id=project_id,
            task_id=task_id,
            options=GenerationOptions(fallback_to_partial_data=fallback),
        )

        async with open_stores(settings) as (project_store, report_store):
            async with ReportGenerator(
                settings=settings,
                project_store=project_store,
                report_store=report_store,
            ) as generator:
                with Progress(
                    SpinnerColumn(),
                    TextColumn("[progress.description]{task.description}"),
                    console=console,
                    transient=True,
                ) as progress:
                    progress.add_task(description="Generating report...", total=None)
                    response = await generator.generate_initial_report(request)

        if not response.success:
            console.print(f"\n[bold red]Generation failed ({response.error_type}):[/bold red] {response.error}")
            console.print(f"Correlation ID: {response.correlation_id}")
            sys.exit(1)

        report = response.report
        table = Table(title="Report Summary")
        table.add_column("Field", style="cyan")
        table.add_column("Value", style="magenta")
        table.add_row("Report ID", report.id)
        table.add_row("Title", report.title)
        table.add_row("Status", str(report.status))
        table.add_row("Report Type", str(report.metadata.report_type))
        table.add_row("Analysis Method", str(report.metadata.analysis_method))
        table.add_row("Data Completeness", f"{report.metadata.data_completeness_score}%")
        table.add_row("Processing Time", f"{response.processing_time_ms} ms")
        table.add_row("Correlation ID", response.correlation_id)

        console.print("\n[bold green]Report generated![/bold green]")
        console.print(table)
        if response.message:
            console.print(f"\n[yellow]{response.message}[/yellow]")

    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            console.print_exception()
        sys.exit(1)


@cli.command()
@click.argument('request_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--intelligent', is_flag=True, help='Return actionable insights with the report')
@click.option('--enhance', is_flag=True, help='Request AI-enhanced content (implies --intelligent)')
@click.option('--verbose', is_flag=True, help='Detailed logging')
@async_command
async def comparative(request_file: str, intelligent: bool, enhance: bool, verbose: bool):
    """
    Render a comparative report from a saved analysis.

    REQUEST_FILE: JSON file with project_id, product, analysis and options
    """
    setup_logger(verbose)

    try:
        payload = json.loads(Path(request_file).read_text(encoding="utf-8"))
        if intelligent or enhance:
            payload["enhance_with_ai"] = enhance
            request = IntelligentReportRequest.model_validate(payload)
        else:
            request = ComparativeReportRequest.model_validate(payload)
    except (json.JSONDecodeError, PydanticValidationError) as e:
        console.print(f"[bold red]Invalid request file:[/bold red] {e}")
        sys.exit(1)

    console.print(Panel.fit(
        f"[bold blue]Comparative Report[/bold blue]\n"
        f"Project: [cyan]{request.project_id}[/cyan]  Template: [cyan]{request.options.template}[/cyan]"
    ))

    try:
        settings = get_settings()
        async with open_stores(settings) as (project_store, report_store):
            async with ReportGenerator(
                settings=settings,
                project_store=project_store,
                report_store=report_store,
            ) as generator:
                if isinstance(request, IntelligentReportRequest):
                    response = await generator.generate_intelligent_report(request)
                else:
                    response = await generator.generate_comparative_report(request)
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        sys.exit(1)

    if not response.success:
        console.print(f"\n[bold red]Generation failed ({response.error_type}):[/bold red] {response.error}")
        sys.exit(1)

    console.print(f"\n[bold green]Report generated![/bold green] {response.report.title}")
    console.print(f"Report ID: {response.report.id}")
    console.print(f"Sections: {len(response.report.sections)}  Tokens: {response.tokens_used}  Cost: ${response.cost:.4f}")
    for warning in response.warnings:
        console.print(f"[yellow]Warning: {warning}[/yellow]")
    for insight in getattr(response, "actionable_insights", []):
        console.print(f"  • {insight}")


@cli.command(name="list-templates")
def list_templates():
    """List the available comparative report templates."""
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Template")
    table.add_column("Name")
    table.add_column("Sections")
    for name in list_report_templates():
        template = get_report_template(name)
        table.add_row(name, template.display_name, str(len(template.sections)))
    console.print(table)


@cli.command(name="check-report")
@click.argument('report_id')
@click.option('--verbose', is_flag=True, help='Detailed logging')
@async_command
async def check_report(report_id: str, verbose: bool):
    """
    Check the integrity of a stored report.

    REPORT_ID: The report to check
    """
    setup_logger(verbose)
    settings = get_settings()

    async with open_stores(settings) as (_, report_store):
        result = await ValidationService(report_store).validate_report_integrity(report_id)

    status = "[green]Valid[/green]" if result.is_valid else "[red]Invalid[/red]"
    console.print(f"Report [cyan]{report_id}[/cyan]: {status} (zombie risk: {result.zombie_risk})")
    if result.report_data:
        console.print(
            f"Status: {result.report_data.status}  Versions: {result.report_data.version_count}  "
            f"Has content: {result.report_data.has_content}"
        )
    for issue in result.issues:
        console.print(f"  [red]•[/red] {issue}")

    if not result.is_valid:
        sys.exit(1)


@cli.command(name="detect-zombies")
@click.option('--project-id', default=None, help='Restrict the scan to one project')
@click.option('--verbose', is_flag=True, help='Detailed logging')
@async_command
async def detect_zombies(project_id: Optional[str], verbose: bool):
    """List completed reports that have no stored versions."""
    setup_logger(verbose)
    settings = get_settings()

    async with open_stores(settings) as (project_store, report_store):
        result = await ValidationService(report_store, project_store).detect_zombie_reports(project_id)

    if result.error:
        console.print(f"[bold red]Detection failed:[/bold red] {result.error}")
        sys.exit(1)

    if not result.zombies_found:
        console.print("[green]No zombie reports found.[/green]")
        return

    table = Table(title=f"Zombie Reports ({result.zombies_found})", show_header=True, header_style="bold magenta")
    table.add_column("Report ID", no_wrap=True)
    table.add_column("Project")
    table.add_column("Title")
    table.add_column("Created")
    for info in result.reports:
        table.add_row(
            info.report_id,
            info.project_name or info.project_id,
            info.report_name,
            info.created_at.isoformat(timespec="seconds"),
        )
    console.print(table)


@cli.command(name="recover-zombies")
@click.option('--project-id', default=None, help='Restrict recovery to one project')
@click.option('--verbose', is_flag=True, help='Detailed logging')
@async_command
async def recover_zombies(project_id: Optional[str], verbose: bool):
    """Append emergency versions to every zombie report."""
    setup_logger(verbose)
    settings = get_settings()

    async with open_stores(settings) as (project_store, report_store):
        result = await ValidationService(report_store, project_store).recover_all_zombie_reports(project_id)

    if result.error:
        console.print(f"[bold red]Recovery failed:[/bold red] {result.error}")
        sys.exit(1)

    console.print(Panel.fit(
        f"Found: {result.total_found}\n"
        f"[green]Recovered: {result.recovered}[/green]\n"
        f"[red]Failed: {result.failed}[/red]\n"
        f"Recovery rate: {result.recovery_rate}%",
        title="Zombie Recovery",
    ))

    if result.failed:
        sys.exit(1)


@cli.command(name="project-health")
@click.argument('project_id')
@click.option('--verbose', is_flag=True, help='Detailed logging')
@async_command
async def project_health(project_id: str, verbose: bool):
    """
    Summarize report health for a project.

    PROJECT_ID: The project to inspect
    """
    setup_logger(verbose)
    settings = get_settings()

    async with open_stores(settings) as (project_store, report_store):
        health = await ValidationService(report_store, project_store).validate_project_reports(project_id)

    last = health.last_report_date.isoformat(timespec="seconds") if health.last_report_date else "never"
    console.print(Panel.fit(
        f"[bold]{health.project_name}[/bold] ({health.project_id})\n"
        f"Status: {_status_markup(health.status)}\n"
        f"Reports: {health.total_reports}  Zombies: {health.zombie_reports}  Last report: {last}",
        title="Project Report Health",
    ))
    for issue in health.issues:
        console.print(f"  [red]Issue:[/red] {issue}")
    for recommendation in health.recommendations:
        console.print(f"  [cyan]Recommendation:[/cyan] {recommendation}")

    if health.status == "critical":
        sys.exit(1)


@cli.command(name="validate-setup")
def validate_setup():
    """Check API keys and environment configuration."""
    console.print("[bold]Validating Setup...[/bold]")

    try:
        settings = get_settings()

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Check")
        table.add_column("Status")
        table.add_column("Details")

        # Check Anthropic
        has_key = settings.has_ai_credentials()
        status = "[green]Pass[/green]" if has_key else "[yellow]Warn[/yellow]"
        details = "configured" if has_key else "missing; reports fall back to templates"
        table.add_row("Anthropic API Key", status, details)

        # Configuration
        table.add_row("Database", "[blue]Info[/blue]", settings.database_url)
        table.add_row("Reports Dir", "[green]Pass[/green]", str(settings.reports_dir))
        table.add_row("Environment", "[blue]Info[/blue]", settings.app_env)
        table.add_row(
            "Budgets",
            "[blue]Info[/blue]",
            f"AI {settings.ai_analysis_timeout_seconds:g}s / total {settings.generation_timeout_seconds:g}s",
        )

        console.print(table)

        if not has_key:
            console.print("\n[yellow]Warning: No Anthropic API key configured. AI analysis is disabled.[/yellow]")

    except Exception as e:
        console.print(f"[bold red]Configuration Error:[/bold red] {e}")
        sys.exit(1)

if __name__ == "__main__":
    cli()
