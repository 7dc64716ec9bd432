"""Core vulnerability matching logic for NodeShield."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

from ..utils.logging import get_logger
from .parsers import ResolvedDependency, is_version_vulnerable


class Severity(str, Enum):
    """Advisory severity, ordered low < moderate < high < critical."""

    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return SEVERITY_RANKS[self.value]


SEVERITY_RANKS: Dict[str, int] = {
    "low": 0,
    "moderate": 1,
    "high": 2,
    "critical": 3,
}

# Labels used by other advisory feeds
SEVERITY_ALIASES: Dict[str, str] = {
    "medium": "moderate",
}


def normalize_severity(label: Union[Severity, str, None]) -> str:
    """Lowercase a severity label and map aliases such as "medium"."""
    if isinstance(label, Severity):
        return label.value
    severity = str(label or "low").lower()
    return SEVERITY_ALIASES.get(severity, severity)


def severity_rank(severity: Union[Severity, str, None]) -> int:
    """Rank a severity; unknown values rank as low.

    Args:
        severity: Severity enum member or string

    Returns:
        Rank from 0 (low) to 3 (critical)
    """
    if isinstance(severity, Severity):
        return severity.rank
    if isinstance(severity, str):
        return SEVERITY_RANKS.get(normalize_severity(severity), 0)
    return 0


@dataclass
class AdvisoryRecord:
    """A known vulnerability affecting a range of versions of one package."""

    id: str
    package_name: str
    severity: str
    vulnerable_versions: str
    patched_versions: str = "unknown"
    title: str = ""
    overview: str = ""
    recommendation: str = ""
    references: List[str] = field(default_factory=list)
    source: str = ""

    def __post_init__(self) -> None:
        """Validate advisory data."""
        if not self.id:
            raise ValueError("Advisory ID cannot be empty")
        if not self.package_name:
            raise ValueError("Advisory package name cannot be empty")
        self.severity = normalize_severity(self.severity)
        if not self.patched_versions:
            self.patched_versions = "unknown"
        if not self.title:
            self.title = "No title available"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AdvisoryRecord":
        """Build an advisory from npm advisory JSON or attribute names.

        Args:
            data: Advisory dictionary using either "module_name" /
                "vulnerable_versions" / "patched_versions" keys or the
                attribute names of this class

        Returns:
            Advisory record

        Raises:
            ValueError: If required fields are missing
        """
        references = data.get("references") or []
        if isinstance(references, str):
            references = [line.strip() for line in references.splitlines() if line.strip()]

        return cls(
            id=str(data.get("id") or ""),
            package_name=data.get("module_name") or data.get("package_name") or "",
            severity=str(data.get("severity") or "low"),
            vulnerable_versions=data.get("vulnerable_versions") or "",
            patched_versions=data.get("patched_versions") or "unknown",
            title=data.get("title") or "",
            overview=data.get("overview") or "",
            recommendation=data.get("recommendation") or "",
            references=list(references),
            source=data.get("source") or "",
        )


@dataclass
class Finding:
    """An advisory matched against an installed dependency."""

    id: str
    package: str
    installed_version: Optional[str]
    severity: str
    title: str
    overview: str
    recommendation: str
    vulnerable_versions: str
    patched_versions: str
    references: List[str]
    is_direct: bool
    declaration_kind: str
    source: str = ""

    @classmethod
    def from_match(cls, dependency: ResolvedDependency, advisory: AdvisoryRecord) -> "Finding":
        return cls(
            id=advisory.id,
            package=advisory.package_name,
            installed_version=dependency.installed_version,
            severity=advisory.severity,
            title=advisory.title,
            overview=advisory.overview,
            recommendation=advisory.recommendation,
            vulnerable_versions=advisory.vulnerable_versions,
            patched_versions=advisory.patched_versions,
            references=list(advisory.references),
            is_direct=dependency.is_direct,
            declaration_kind=dependency.declaration_kind,
            source=advisory.source,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "package": self.package,
            "installedVersion": self.installed_version,
            "severity": self.severity,
            "title": self.title,
            "overview": self.overview,
            "recommendation": self.recommendation,
            "vulnerableVersions": self.vulnerable_versions,
            "patchedVersions": self.patched_versions,
            "references": self.references,
            "isDirect": self.is_direct,
            "dependencyType": self.declaration_kind,
            "source": self.source,
        }


@dataclass
class ScanSummary:
    """Dependency and finding counts for one scan."""

    total: int = 0
    vulnerable: int = 0
    critical: int = 0
    high: int = 0
    moderate: int = 0
    low: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "vulnerable": self.vulnerable,
            "critical": self.critical,
            "high": self.high,
            "moderate": self.moderate,
            "low": self.low,
        }


@dataclass
class MatchResult:
    findings: List[Finding] = field(default_factory=list)
    summary: ScanSummary = field(default_factory=ScanSummary)


class VulnerabilityMatcher:
    """Matches resolved dependencies against advisory records."""

    def __init__(self) -> None:
        self.logger = get_logger("VulnerabilityMatcher")

    def match_all(
        self,
        dependencies: Iterable[ResolvedDependency],
        advisories: Iterable[AdvisoryRecord],
        min_severity: Union[Severity, str] = Severity.LOW
    ) -> MatchResult:
        """Match dependencies against advisories.

        Every matching advisory yields its own finding, even when several
        concern the same package.

        Args:
            dependencies: Flattened dependency set of the project
            advisories: Advisory feed (may include unrelated packages)
            min_severity: Lowest severity to report

        Returns:
            Findings and summary counts
        """
        dependencies = list(dependencies)
        by_name = {dep.name: dep for dep in dependencies}
        min_rank = severity_rank(min_severity)

        result = MatchResult(summary=ScanSummary(total=len(dependencies)))

        for advisory in advisories:
            dependency = by_name.get(advisory.package_name)
            if dependency is None:
                continue

            if not is_version_vulnerable(dependency.installed_version, advisory.vulnerable_versions):
                self.logger.debug(
                    f"NO MATCH: {dependency.name} {dependency.installed_version} does not match {advisory.id}"
                )
                continue

            if severity_rank(advisory.severity) < min_rank:
                self.logger.debug(f"Skipping {advisory.id}: severity {advisory.severity} below threshold")
                continue

            self.logger.debug(f"MATCH: {dependency.name} {dependency.installed_version} matches {advisory.id}")
            result.findings.append(Finding.from_match(dependency, advisory))

            bucket = advisory.severity
            if bucket in SEVERITY_RANKS:
                setattr(result.summary, bucket, getattr(result.summary, bucket) + 1)

        result.summary.vulnerable = len(result.findings)
        return result
