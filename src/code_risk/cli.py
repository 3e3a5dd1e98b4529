"""Command-line interface for the repository risk profiler."""

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .analysis.analyzer import AnalysisResult, CodeAnalyzer
from .analysis.risk import RiskAggregator, RiskReport
from .exceptions import CodeRiskError
from .git.history import GitHistoryAnalyzer
from .git.models import GitHistoryReport
from .git.repository import GitCloner
from .ingestion.models import RepositoryRef
from .ingestion.pipeline import IngestionPipeline
from .logging import configure_logging, get_logger
from .parsing.extractors import EntityExtractor
from .parsing.languages import Language, detect_language
from .service import RiskProfiler
from .storage.memory import InMemoryStore


app = typer.Typer(
    name="code-risk",
    help="Repository risk profiler: security findings, code entities and bus factor",
    add_completion=False
)
console = Console()
logger = get_logger(__name__)

SEVERITY_STYLES = {
    "critical": "bold red",
    "high": "red",
    "medium": "yellow",
    "low": "cyan",
}

RISK_LEVEL_STYLES = {
    "CRITICAL": "bold red",
    "HIGH": "red",
    "MEDIUM": "yellow",
    "LOW": "green",
    "UNKNOWN": "dim",
}


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Repository risk profiler."""
    if verbose:
        configure_logging(level="DEBUG", log_format="console")


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"[green]code-risk v{__version__}[/green]")


@app.command()
def scan(
    path: Path = typer.Argument(..., help="Directory to scan", exists=True, file_okay=False, resolve_path=True),
    max_files: Optional[int] = typer.Option(None, "--max-files", help="Maximum files to analyze"),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON"),
) -> None:
    """Scan a local source tree for security findings and report its risk score."""
    store = InMemoryStore()
    pipeline = IngestionPipeline(store, max_files=max_files)
    analyzer = CodeAnalyzer(store)

    try:
        documents, discovered, skipped = pipeline.collect_files("local", path)
        entities, findings = analyzer.analyze_documents(None, documents)
    except CodeRiskError as e:
        console.print(f"[red]Scan failed: {e}[/red]")
        raise typer.Exit(1)

    report = RiskAggregator().generate_report(findings, entity_count=len(entities), file_count=len(documents))

    if as_json:
        typer.echo(report.model_dump_json(indent=2))
        return

    console.print(f"Scanned [bold]{len(documents)}[/bold] files ({skipped} skipped, {discovered} discovered)")
    display_report(report)


@app.command()
def entities(
    file: Path = typer.Argument(..., help="Source file", exists=True, dir_okay=False, resolve_path=True),
    as_json: bool = typer.Option(False, "--json", help="Print entities as JSON"),
) -> None:
    """List functions and classes in a source file."""
    language = detect_language(file.name)
    if language == Language.UNKNOWN:
        console.print(f"[red]Unsupported file type: {file.suffix or file.name}[/red]")
        raise typer.Exit(1)

    source = file.read_text(encoding='utf-8', errors='replace')
    result = EntityExtractor().extract_source(source, language, file.name)

    if as_json:
        typer.echo(result.model_dump_json(indent=2))
        return

    table = Table(title=f"Entities in {file.name} ({language.value})")
    table.add_column("Kind", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Lines", justify="right")
    table.add_column("Complexity", justify="right")

    for entity in result.entities:
        table.add_row(
            entity.kind.value,
            entity.name,
            f"{entity.start_line}-{entity.end_line}",
            str(entity.complexity)
        )

    console.print(table)
    if result.imports:
        console.print(f"Imports: {', '.join(result.imports)}")
    if result.parse_errors:
        console.print(f"[yellow]{len(result.parse_errors)} node(s) could not be extracted[/yellow]")


@app.command("bus-factor")
def bus_factor(
    repo_path: Path = typer.Argument(..., help="Local git repository", exists=True, file_okay=False, resolve_path=True),
    as_json: bool = typer.Option(False, "--json", help="Print the history report as JSON"),
) -> None:
    """Compute bus factor, knowledge silos and critical files from git history."""
    try:
        log_text = GitCloner().read_commit_log(repo_path)
    except CodeRiskError as e:
        console.print(f"[red]Cannot read git history: {e}[/red]")
        raise typer.Exit(1)

    report = GitHistoryAnalyzer().analyze(log_text)

    if as_json:
        typer.echo(report.model_dump_json(indent=2, exclude={'file_ownership'}))
        return

    display_history(report)
    if report.degraded:
        raise typer.Exit(1)


@app.command()
def analyze(
    owner: str = typer.Argument(..., help="Repository owner"),
    name: str = typer.Argument(..., help="Repository name"),
    clone_url: Optional[str] = typer.Option(None, "--clone-url", help="Clone from this URL instead of GitHub"),
    branch: Optional[str] = typer.Option(None, "--branch", help="Branch to analyze"),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON"),
) -> None:
    """Clone and fully analyze a repository through the job queues."""
    ref = RepositoryRef(owner=owner, name=name, clone_url=clone_url, branch=branch)

    if not as_json:
        console.print(f"Analyzing [bold]{ref.full_name}[/bold]...")

    try:
        result = asyncio.run(_analyze(ref))
    except CodeRiskError as e:
        console.print(f"[red]Analysis failed: {e}[/red]")
        raise typer.Exit(1)

    if as_json:
        typer.echo(result.model_dump_json(indent=2, include={'repository_id', 'risk_score', 'report', 'history'}))
        return

    console.print(Panel(
        f"[bold]{ref.full_name}[/bold]\n"
        f"Files: {result.report.file_count}  Entities: {len(result.entities)}  "
        f"Findings: {len(result.findings)}",
        title="Analysis complete"
    ))
    display_report(result.report)
    if result.history is not None:
        display_history(result.history)


async def _analyze(ref: RepositoryRef) -> AnalysisResult:
    profiler = RiskProfiler(InMemoryStore())
    try:
        repository = await profiler.register(ref)
        return await profiler.analyze(repository.id)
    finally:
        await profiler.stop()


def display_report(report: RiskReport) -> None:
    """Print risk score, severity summary and top findings."""
    summary = report.summary
    style = "bold red" if report.risk_score >= 60 else "yellow" if report.risk_score >= 20 else "green"
    console.print(f"Risk score: [{style}]{report.risk_score}/100[/{style}]")

    table = Table(title="Findings by severity")
    table.add_column("Severity", style="cyan")
    table.add_column("Count", justify="right")
    for severity in ("critical", "high", "medium", "low"):
        table.add_row(f"[{SEVERITY_STYLES[severity]}]{severity}[/]", str(getattr(summary, severity)))
    table.add_row("total", str(summary.total))
    console.print(table)

    if report.top_risks:
        top = Table(title="Top risks")
        top.add_column("Severity")
        top.add_column("Rule", style="cyan")
        top.add_column("Location", style="green")
        top.add_column("Evidence")
        for finding in report.top_risks:
            severity = finding.severity.value
            top.add_row(
                f"[{SEVERITY_STYLES[severity]}]{severity}[/]",
                finding.rule_id,
                f"{finding.file_path}:{finding.line_number}",
                finding.evidence
            )
        console.print(top)


def display_history(report: GitHistoryReport) -> None:
    """Print bus factor, silos and critical files."""
    if report.degraded:
        console.print(f"[red]Git history analysis failed: {report.error}[/red]")
        return

    level = report.risk_level.value
    console.print(
        f"Bus factor: [bold]{report.bus_factor}[/bold] "
        f"([{RISK_LEVEL_STYLES[level]}]{level}[/]) - "
        f"{report.total_commits} commits, {report.unique_authors} authors, "
        f"{report.single_owner_percentage}% single-owner files"
    )

    if report.knowledge_silos:
        silos = Table(title="Knowledge silos")
        silos.add_column("Owner", style="cyan")
        silos.add_column("Area", style="green")
        silos.add_column("Files", justify="right")
        silos.add_column("Risk")
        for silo in report.knowledge_silos:
            silos.add_row(silo.owner, silo.area, str(silo.files), silo.risk.value)
        console.print(silos)

    if report.critical_files:
        critical = Table(title="Critical files")
        critical.add_column("File", style="green")
        critical.add_column("Owner", style="cyan")
        critical.add_column("Commits", justify="right")
        critical.add_column("Ownership", justify="right")
        critical.add_column("Risk")
        for item in report.critical_files:
            critical.add_row(
                item.file_path, item.owner, str(item.commits), f"{item.ownership_percentage}%", item.risk.value
            )
        console.print(critical)


if __name__ == "__main__":
    app()
