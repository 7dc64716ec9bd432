"""Output formatters for NodeShield results."""

import csv
import io
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..advisories.base import Alternative
from ..core.matcher import Finding, ScanSummary
from ..core.remediation import FixReport
from ..core.scanner import ScanResult
from ..utils.logging import get_logger


SEVERITY_STYLES = {
    "critical": "red bold",
    "high": "red",
    "moderate": "yellow",
    "low": "bright_black",
}


def severity_style(severity: Optional[str]) -> str:
    """Get color style for severity level."""
    if not severity:
        return "white"
    return SEVERITY_STYLES.get(severity.lower(), "white")


def _truncate(text: str, limit: int = 40) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


class ConsoleFormatter:
    """Rich console formatter for NodeShield output."""

    def __init__(self, console: Optional[Console] = None) -> None:
        """Initialize the console formatter.

        Args:
            console: Rich console instance
        """
        self.console = console or Console()

    def format_scan_results(self, result: ScanResult) -> None:
        """Display summary, findings and alternatives.

        Args:
            result: Scan result
        """
        self.console.print("\n[bold blue]Vulnerability Scan Results[/bold blue]")
        self.format_summary(result.summary)

        if not result.vulnerabilities:
            self.console.print(Panel("No vulnerabilities found!", style="green"))
            return

        self.console.print(self._create_vulnerabilities_table(result.vulnerabilities))
        self._show_severe_details(result.vulnerabilities)

        if result.alternatives:
            self.format_alternatives(result.alternatives)

    def format_summary(self, summary: ScanSummary) -> None:
        lines = [
            f"Total dependencies: [blue]{summary.total}[/blue]",
            f"Vulnerable packages: [red]{summary.vulnerable}[/red]",
        ]
        for severity in ("critical", "high", "moderate", "low"):
            count = getattr(summary, severity)
            if count > 0:
                style = severity_style(severity)
                lines.append(f"{severity.capitalize()}: [{style}]{count}[/{style}]")

        style = "red" if summary.vulnerable else "green"
        self.console.print(Panel("\n".join(lines), title="Summary", style=style))

    def _create_vulnerabilities_table(self, findings: List[Finding]) -> Table:
        table = Table(title="Vulnerabilities")

        table.add_column("Package", style="cyan", no_wrap=True)
        table.add_column("Version", style="blue")
        table.add_column("Severity")
        table.add_column("Title", style="white")
        table.add_column("Type", style="magenta")

        for finding in findings:
            table.add_row(
                finding.package,
                finding.installed_version or "unknown",
                Text(finding.severity.upper(), style=severity_style(finding.severity)),
                _truncate(finding.title),
                "Direct" if finding.is_direct else "Transitive",
            )

        return table

    def _show_severe_details(self, findings: List[Finding]) -> None:
        """Show details for critical and high severity findings."""
        severe = [f for f in findings if f.severity in ("critical", "high")]
        if not severe:
            return

        self.console.print("\n[red bold]Critical & High Severity Details:[/red bold]")
        for finding in severe:
            details = (
                f"[bold]Severity:[/bold] {finding.severity.upper()}\n"
                f"[bold]Title:[/bold] {finding.title}\n"
                f"[bold]Recommendation:[/bold] {finding.recommendation or 'n/a'}"
            )
            if finding.references:
                details += f"\n[bold]References:[/bold] {', '.join(finding.references[:2])}"

            self.console.print(Panel(
                details,
                title=f"{finding.package} ({finding.installed_version or 'unknown'})",
                style=severity_style(finding.severity),
            ))

    def format_alternatives(self, alternatives: Dict[str, List[Alternative]]) -> None:
        self.console.print("\n[bold blue]Alternative Packages:[/bold blue]")

        for package_name, alts in alternatives.items():
            self.console.print(f"\n[yellow bold]{package_name}[/yellow bold] alternatives:")
            self.format_alternative_list(alts)

    def format_alternative_list(self, alternatives: List[Alternative]) -> None:
        for index, alt in enumerate(alternatives, 1):
            self.console.print(f"  {index}. [green]{alt.name}[/green] - {alt.description}")
            self.console.print(
                f"     Quality: [blue]{round(alt.quality * 100)}%[/blue] | "
                f"Popularity: [blue]{round(alt.stars * 100)}%[/blue] | "
                f"Weekly downloads: [blue]{alt.downloads}[/blue]"
            )

    def format_fix_plans(self, report: FixReport) -> None:
        """Show proposed fixes and findings that need manual work."""
        if report.plans:
            self.console.print("\n[white]Proposed fixes:[/white]")
            for index, plan in enumerate(report.plans, 1):
                warning = " [red](breaking)[/red]" if plan.breaking else ""
                self.console.print(
                    f"{index}. [cyan]{plan.package_name}[/cyan]: "
                    f"[bright_black]{plan.current_range}[/bright_black] → "
                    f"[green]{plan.target_range}[/green]{warning}"
                )
                self.console.print(f"   [bright_black]{plan.reason}[/bright_black]")

        if report.unfixable:
            names = ", ".join(dict.fromkeys(f.package for f in report.unfixable))
            self.console.print(f"\n[yellow]Not automatically fixable:[/yellow] {names}")
            self.console.print(
                "[bright_black]These are transitive dependencies or have no known patched version.[/bright_black]"
            )

    def format_fix_outcome(self, report: FixReport) -> None:
        for package_name in report.applied:
            self.console.print(f"[green]✓ Updated {package_name}[/green]")
        for package_name, reason in report.failed.items():
            self.console.print(f"[red]✗ Failed to update {package_name}: {reason}[/red]")

        if report.applied:
            self.console.print("\n[green bold]Fixes applied successfully![/green bold]")
            self.console.print("[bright_black]Run the scan again to verify the fixes.[/bright_black]")
        else:
            self.console.print("[yellow]No fixes were applied[/yellow]")


class JSONFormatter:
    """JSON formatter for NodeShield output."""

    def __init__(self, output_file: Optional[Path] = None) -> None:
        """Initialize the JSON formatter.

        Args:
            output_file: Optional output file path
        """
        self.output_file = output_file
        self.logger = get_logger("JSONFormatter")

    def format_scan_results(self, result: ScanResult) -> Dict[str, Any]:
        return result.to_dict()

    def dumps(self, result: ScanResult) -> str:
        return json.dumps(self.format_scan_results(result), indent=2, ensure_ascii=False)

    def save_results(self, results: Dict[str, Any], output_file: Optional[Path] = None) -> None:
        """Save results to JSON file.

        Args:
            results: Results dictionary
            output_file: Output file path (uses instance default if None)
        """
        file_path = output_file or self.output_file
        if not file_path:
            raise ValueError("No output file specified")

        try:
            with open(file_path, 'w', encoding='utf-8') as f:
                json.dump(results, f, indent=2, ensure_ascii=False)

            self.logger.info(f"Results saved to {file_path}")
        except IOError as e:
            self.logger.error(f"Failed to save results to {file_path}: {e}")
            raise


class CSVFormatter:
    """CSV formatter for findings."""

    HEADER = ["Package", "Version", "Severity", "Title", "Type", "Recommendation"]

    def format_findings(self, findings: List[Finding]) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(self.HEADER)

        for finding in findings:
            writer.writerow([
                finding.package,
                finding.installed_version or "",
                finding.severity,
                finding.title,
                "Direct" if finding.is_direct else "Transitive",
                finding.recommendation,
            ])

        return buffer.getvalue()
