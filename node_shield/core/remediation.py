"""Fix planning for vulnerable direct dependencies."""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..utils.logging import get_logger
from .errors import RangeParseError
from .matcher import Finding
from .parsers import ParsedManifest
from .versions import extract_version, greater_than, major_of


UNKNOWN_PATCH = "unknown"


@dataclass
class FixPlan:
    """A proposed, not yet applied, version update."""

    package_name: str
    current_version: Optional[str]
    current_range: str
    target_version: str
    target_range: str
    declaration_kind: str
    severity: str
    reason: str
    breaking: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "package": self.package_name,
            "currentVersion": self.current_version,
            "currentRange": self.current_range,
            "newVersion": self.target_version,
            "newRange": self.target_range,
            "depType": self.declaration_kind,
            "severity": self.severity,
            "reason": self.reason,
            "breaking": self.breaking,
        }


@dataclass
class FixReport:
    """Outcome of planning (and optionally applying) fixes."""

    plans: List[FixPlan] = field(default_factory=list)
    unfixable: List[Finding] = field(default_factory=list)
    applied: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)


class RemediationPlanner:
    """Chooses patched versions and classifies updates as breaking or safe."""

    def __init__(self) -> None:
        self.logger = get_logger("RemediationPlanner")

    @staticmethod
    def locate(package_name: str, manifest: ParsedManifest) -> Optional[Tuple[str, str]]:
        """Find the declaration kind and range of a direct dependency.

        Kinds are searched in priority order and the first match wins.
        """
        return manifest.find_declaration(package_name)

    @staticmethod
    def is_fixable(finding: Finding) -> bool:
        """True for direct findings whose patched range is known."""
        return bool(
            finding.is_direct
            and finding.patched_versions
            and finding.patched_versions != UNKNOWN_PATCH
        )

    def find_best_patched_version(
        self,
        current_version: Optional[str],
        patched_versions: Optional[str]
    ) -> Optional[str]:
        """Pick the first patched version newer than the current one.

        Clauses are tried in order and the first qualifying one wins, so
        ">=0.9.0, >=2.0.0" with current 1.0.0 yields "2.0.0".

        Args:
            current_version: Installed version
            patched_versions: Comma-separated patched clauses or "unknown"

        Returns:
            Target version, or None if no clause qualifies
        """
        if not patched_versions or patched_versions == UNKNOWN_PATCH:
            return None

        try:
            for clause in patched_versions.split(","):
                version = extract_version(clause.strip())
                if version and greater_than(version, current_version):
                    return version
        except RangeParseError as e:
            self.logger.debug(f"Cannot compare against {current_version}: {e}")
            return None

        return None

    def determine_update_strategy(
        self,
        current_version: Optional[str],
        target_version: str
    ) -> Tuple[str, str, bool]:
        """Classify an update.

        Args:
            current_version: Installed version
            target_version: Chosen patched version

        Returns:
            (new range, reason, breaking)
        """
        try:
            same_major = major_of(current_version) == major_of(target_version)
        except RangeParseError:
            return target_version, f"Update to specific version {target_version}", True

        if same_major:
            return f"^{target_version}", f"Update to patched version {target_version}", False

        return (
            f"^{target_version}",
            f"Major version update to {target_version} (may contain breaking changes)",
            True,
        )

    def plan_fix(self, finding: Finding, manifest: ParsedManifest) -> Optional[FixPlan]:
        """Compute a fix plan for one finding.

        Args:
            finding: Matched vulnerability
            manifest: Parsed package.json

        Returns:
            Fix plan, or None for transitive packages or when no patched
            version qualifies
        """
        declaration = self.locate(finding.package, manifest)
        if declaration is None:
            # Transitive only: not directly fixable from package.json
            return None
        kind, current_range = declaration

        target_version = self.find_best_patched_version(finding.installed_version, finding.patched_versions)
        if not target_version:
            return None

        target_range, reason, breaking = self.determine_update_strategy(finding.installed_version, target_version)

        return FixPlan(
            package_name=finding.package,
            current_version=finding.installed_version,
            current_range=current_range,
            target_version=target_version,
            target_range=target_range,
            declaration_kind=kind,
            severity=finding.severity,
            reason=reason,
            breaking=breaking,
        )

    def plan_fixes(self, findings: Iterable[Finding], manifest: ParsedManifest) -> FixReport:
        """Plan fixes for every automatically fixable finding.

        Args:
            findings: Findings from a scan
            manifest: Parsed package.json

        Returns:
            Report with plans and the findings that cannot be fixed
        """
        report = FixReport()

        for finding in findings:
            plan = self.plan_fix(finding, manifest) if self.is_fixable(finding) else None
            if plan is None:
                report.unfixable.append(finding)
            else:
                report.plans.append(plan)

        return report

    def apply_fix(self, plan: FixPlan, manifest_data: Dict[str, Any]) -> bool:
        """Rewrite the declared range in an in-memory package.json object.

        Args:
            plan: Fix plan to apply
            manifest_data: Raw package.json object, mutated in place

        Returns:
            True if the entry was updated
        """
        section = manifest_data.get(plan.declaration_kind)
        if not isinstance(section, dict) or plan.package_name not in section:
            self.logger.warning(f"{plan.package_name} is no longer declared in {plan.declaration_kind}")
            return False

        section[plan.package_name] = plan.target_range
        self.logger.info(f"Updated {plan.package_name} in {plan.declaration_kind}")
        return True
