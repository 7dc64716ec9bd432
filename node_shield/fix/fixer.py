"""Apply fix plans to package.json and regenerate the lock file."""

import json
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

from ..core.errors import FixApplicationError
from ..core.matcher import Finding
from ..core.parsers import PackageManifestParser
from ..core.remediation import FixReport, RemediationPlanner
from ..utils.logging import get_logger
from ..utils.transaction import file_transaction
from .installer import NpmInstaller


class AutoFixer:
    """Plans and applies dependency updates for one project directory.

    Only one fixer may mutate a given directory at a time.
    """

    def __init__(
        self,
        project_path: Union[str, Path],
        planner: Optional[RemediationPlanner] = None,
        installer: Optional[NpmInstaller] = None,
        regenerate_lockfile: bool = True
    ) -> None:
        """Initialize the fixer.

        Args:
            project_path: Project directory containing package.json
            planner: Remediation planner
            installer: Runs the package manager to rebuild the lock file
            regenerate_lockfile: Rebuild package-lock.json after updating
                package.json
        """
        self.parser = PackageManifestParser(project_path)
        self.planner = planner or RemediationPlanner()
        self.installer = installer or NpmInstaller()
        self.regenerate_lockfile = regenerate_lockfile
        self.logger = get_logger("AutoFixer")

    @property
    def project_path(self) -> Path:
        return self.parser.project_path

    def plan(self, findings: Iterable[Finding]) -> FixReport:
        """Plan fixes against the current package.json.

        Args:
            findings: Findings from a scan

        Returns:
            Report listing plans and unfixable findings
        """
        manifest = self.parser.parse_manifest()
        return self.planner.plan_fixes(findings, manifest)

    def apply(self, report: FixReport) -> FixReport:
        """Apply the planned fixes inside a file transaction.

        A failure to update one package is recorded and the others are still
        applied. A failure to write package.json or rebuild the lock file
        restores both files.

        Args:
            report: Report produced by plan()

        Returns:
            The same report with applied and failed packages filled in

        Raises:
            FixApplicationError: If writing or lock regeneration failed
        """
        if not report.plans:
            self.logger.info("No automatic fixes available")
            return report

        manifest_data = self.parser.parse_manifest().raw

        try:
            with file_transaction(self.parser.manifest_path, self.parser.lockfile_path):
                for plan in report.plans:
                    try:
                        updated = self.planner.apply_fix(plan, manifest_data)
                    except Exception as e:
                        self.logger.error(f"Failed to update {plan.package_name}: {e}")
                        report.failed[plan.package_name] = str(e)
                        continue

                    if not updated:
                        report.failed[plan.package_name] = f"not declared in {plan.declaration_kind}"
                    elif plan.package_name not in report.applied:
                        report.applied.append(plan.package_name)

                if report.applied:
                    self._write_manifest(manifest_data)
                    if self.regenerate_lockfile:
                        self._regenerate_lockfile()
        except FixApplicationError:
            report.applied.clear()
            raise
        except Exception as e:
            report.applied.clear()
            raise FixApplicationError(f"Failed to apply fixes: {e}") from e

        return report

    def fix_vulnerabilities(self, findings: Iterable[Finding]) -> FixReport:
        """Plan and apply fixes in one step."""
        return self.apply(self.plan(findings))

    def _write_manifest(self, manifest_data: Dict[str, Any]) -> None:
        with open(self.parser.manifest_path, 'w', encoding='utf-8') as f:
            json.dump(manifest_data, f, indent=2, ensure_ascii=False)
            f.write("\n")

    def _regenerate_lockfile(self) -> None:
        """Remove package-lock.json and let npm rebuild it."""
        if self.parser.lockfile_path.exists():
            self.parser.lockfile_path.unlink()

        self.logger.info("Regenerating package-lock.json...")
        result = self.installer.install(self.project_path)
        if not result.ok:
            detail = result.stderr.strip()[:500]
            raise FixApplicationError(
                f"'{' '.join(result.command)}' failed with exit code {result.exit_code}: {detail}"
            )
