"""Main CLI interface for NodeShield."""

import asyncio
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn

from .. import __version__
from ..advisories import OfflineAdvisoryDatabase, OSVAdvisoryDatabase, VulnerabilityDatabase
from ..advisories.base import Alternative
from ..core.config import OutputFormat, ScanConfig, ScanMode
from ..core.errors import NodeShieldError
from ..core.matcher import Severity
from ..core.scanner import ScanResult, VulnerabilityScanner
from ..fix import AutoFixer
from ..output.formatters import ConsoleFormatter, CSVFormatter, JSONFormatter
from ..utils.logging import get_logger, setup_logging

app = typer.Typer(
    name="nodeshield",
    help="Scan Node.js project dependencies for known vulnerabilities and fix them",
    add_completion=False
)

console = Console()
logger = get_logger("CLI")


def _create_database(config: ScanConfig) -> VulnerabilityDatabase:
    """Build the advisory source selected by the config."""
    if config.mode is ScanMode.OFFLINE:
        return OfflineAdvisoryDatabase(config.database_path)
    return OSVAdvisoryDatabase(
        timeout=config.request_timeout,
        max_alternatives=config.max_alternatives
    )


async def _run_scan(config: ScanConfig) -> ScanResult:
    async with _create_database(config) as database:
        scanner = VulnerabilityScanner(config, database)
        return await scanner.scan()


async def _find_alternatives(config: ScanConfig, package_name: str) -> List[Alternative]:
    async with _create_database(config) as database:
        scanner = VulnerabilityScanner(config, database)
        return await scanner.find_alternatives(package_name)


def _display_results(result: ScanResult, output: OutputFormat) -> None:
    if output is OutputFormat.JSON:
        typer.echo(JSONFormatter().dumps(result))
    elif output is OutputFormat.CSV:
        typer.echo(CSVFormatter().format_findings(result.vulnerabilities), nl=False)
    else:
        ConsoleFormatter(console).format_scan_results(result)


def _auto_fix(config: ScanConfig, result: ScanResult, assume_yes: bool) -> None:
    """Show fix plans, ask for confirmation and apply them."""
    formatter = ConsoleFormatter(console)
    fixer = AutoFixer(config.path, regenerate_lockfile=config.regenerate_lockfile)

    console.print("\n[blue bold]Analyzing automatic fixes...[/blue bold]")
    report = fixer.plan(result.vulnerabilities)
    formatter.format_fix_plans(report)

    if not report.plans:
        console.print("[yellow]No automatic fixes available[/yellow]")
        return

    if not assume_yes and not typer.confirm("Apply these fixes?", default=False):
        console.print("[yellow]Fixes cancelled[/yellow]")
        return

    with console.status("Applying fixes..."):
        fixer.apply(report)
    formatter.format_fix_outcome(report)


@app.command()
def scan(
    path: Path = typer.Argument(
        Path("."),
        help="Path to the project directory to scan"
    ),
    fix: bool = typer.Option(
        False,
        "--fix",
        "-f",
        help="Automatically fix vulnerabilities when possible"
    ),
    output: OutputFormat = typer.Option(
        OutputFormat.TABLE,
        "--output",
        "-o",
        help="Output format"
    ),
    severity: Severity = typer.Option(
        Severity.LOW,
        "--severity",
        "-s",
        envvar="NODESHIELD_SEVERITY",
        help="Minimum severity level to report"
    ),
    alternatives: bool = typer.Option(
        False,
        "--alternatives",
        help="Show alternative packages for vulnerable dependencies"
    ),
    mode: ScanMode = typer.Option(
        ScanMode.ONLINE,
        "--mode",
        "-m",
        envvar="NODESHIELD_MODE",
        help="Advisory source: 'online' (OSV API) or 'offline' (local database)"
    ),
    database_path: Optional[Path] = typer.Option(
        None,
        "--database",
        envvar="NODESHIELD_DATABASE",
        help="Path to a local advisory database (required for offline mode)"
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Apply fixes without asking for confirmation"
    ),
    no_install: bool = typer.Option(
        False,
        "--no-install",
        help="Do not run npm install after updating package.json"
    ),
    report: Optional[Path] = typer.Option(
        None,
        "--report",
        help="Save the full results as JSON to this file"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging"
    )
) -> None:
    """Scan package.json and package-lock.json for vulnerabilities."""
    setup_logging(verbose=verbose)

    try:
        if not path.exists():
            console.print(f"[red]Error: Path does not exist: {path}[/red]")
            raise typer.Exit(1)

        config = ScanConfig(
            path=path,
            min_severity=severity,
            output=output,
            fix=fix,
            alternatives=alternatives,
            mode=mode,
            database_path=database_path,
            regenerate_lockfile=not no_install,
        )

        if config.output is OutputFormat.TABLE:
            console.print(f"[blue bold]Scanning {config.path}...[/blue bold]")
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
                transient=True
            ) as progress:
                progress.add_task("Checking dependencies against advisories...", total=None)
                result = asyncio.run(_run_scan(config))
        else:
            result = asyncio.run(_run_scan(config))

        _display_results(result, config.output)

        if report:
            JSONFormatter(report).save_results(result.to_dict())
            if config.output is OutputFormat.TABLE:
                console.print(f"\n[green]Results saved to {report}[/green]")

        if config.fix and result.vulnerabilities:
            _auto_fix(config, result, assume_yes=yes)

    except typer.Exit:
        raise
    except (NodeShieldError, ValueError, OSError) as e:
        logger.error(f"Scan failed: {e}")
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


@app.command("check-alternatives")
def check_alternatives(
    package: str = typer.Argument(..., help="Package name to find alternatives for"),
    mode: ScanMode = typer.Option(
        ScanMode.ONLINE,
        "--mode",
        "-m",
        envvar="NODESHIELD_MODE",
        help="Advisory source: 'online' or 'offline'"
    ),
    database_path: Optional[Path] = typer.Option(
        None,
        "--database",
        envvar="NODESHIELD_DATABASE",
        help="Path to a local advisory database (required for offline mode)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging")
) -> None:
    """Find alternative packages for a specific dependency."""
    setup_logging(verbose=verbose)

    try:
        config = ScanConfig(mode=mode, database_path=database_path)
        alternatives = asyncio.run(_find_alternatives(config, package))
    except (NodeShieldError, ValueError, OSError) as e:
        logger.error(f"Alternative lookup failed: {e}")
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"\n[blue bold]Alternatives for {package}:[/blue bold]")
    if not alternatives:
        console.print("[yellow]No alternatives found[/yellow]")
        return

    ConsoleFormatter(console).format_alternative_list(alternatives)


@app.command()
def info() -> None:
    """Show information about NodeShield."""
    console.print(Panel(
        f"[bold blue]NodeShield[/bold blue] v{__version__}\n\n"
        "Scans package.json and package-lock.json against known\n"
        "vulnerabilities, suggests alternatives and updates vulnerable\n"
        "direct dependencies to patched versions.",
        title="Information"
    ))

    console.print(f"\n[bold]Advisory sources:[/bold] {', '.join(m.value for m in ScanMode)}")
    console.print(f"[bold]Output formats:[/bold] {', '.join(f.value for f in OutputFormat)}")
    console.print(f"[bold]Severity levels:[/bold] {', '.join(s.value for s in Severity)}")


def main() -> None:
    """Main entry point for NodeShield CLI."""
    app()


if __name__ == "__main__":
    main()
