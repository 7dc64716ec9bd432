"""Scan orchestration: parse, fetch advisories, match, suggest alternatives."""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..advisories.base import Alternative, VulnerabilityDatabase
from ..utils.logging import get_logger
from .config import ScanConfig
from .errors import AdvisoryFetchError, NodeShieldError
from .matcher import Finding, ScanSummary, VulnerabilityMatcher
from .parsers import PackageManifestParser, ResolvedDependency


@dataclass
class ScanResult:
    """Everything one scan produced."""

    summary: ScanSummary
    vulnerabilities: List[Finding] = field(default_factory=list)
    dependencies: List[ResolvedDependency] = field(default_factory=list)
    alternatives: Dict[str, List[Alternative]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary.to_dict(),
            "vulnerabilities": [finding.to_dict() for finding in self.vulnerabilities],
            "dependencies": [dep.to_dict() for dep in self.dependencies],
            "alternatives": {
                name: [alt.to_dict() for alt in alts]
                for name, alts in self.alternatives.items()
            },
        }


class VulnerabilityScanner:
    """Runs one scan of a project directory."""

    def __init__(
        self,
        config: ScanConfig,
        database: VulnerabilityDatabase,
        parser: Optional[PackageManifestParser] = None,
        matcher: Optional[VulnerabilityMatcher] = None
    ) -> None:
        """Initialize the scanner.

        Args:
            config: Scan options
            database: Source of advisories and alternatives
            parser: Manifest parser (defaults to one bound to config.path)
            matcher: Vulnerability matcher
        """
        self.config = config
        self.database = database
        self.parser = parser or PackageManifestParser(config.path)
        self.matcher = matcher or VulnerabilityMatcher()
        self.logger = get_logger("VulnerabilityScanner")

    async def scan(self) -> ScanResult:
        """Scan the project.

        Returns:
            Scan result

        Raises:
            ManifestNotFoundError: If package.json is missing
            AdvisoryFetchError: If advisories cannot be retrieved
        """
        dependencies = self.parser.get_all_dependencies()
        self.logger.info(f"Resolved {len(dependencies)} dependencies")

        try:
            advisories = await self.database.get_vulnerabilities(dependencies)
        except NodeShieldError:
            raise
        except Exception as e:
            raise AdvisoryFetchError(f"Failed to fetch vulnerability data: {e}") from e

        matched = self.matcher.match_all(dependencies, advisories, self.config.min_severity)

        result = ScanResult(
            summary=matched.summary,
            vulnerabilities=matched.findings,
            dependencies=dependencies,
        )

        if self.config.alternatives and result.vulnerabilities:
            result.alternatives = await self.collect_alternatives(result.vulnerabilities)

        return result

    async def collect_alternatives(self, findings: List[Finding]) -> Dict[str, List[Alternative]]:
        """Look up alternatives for the first few vulnerable packages.

        At most config.max_alternatives packages are queried, to stay within
        the remote rate limit. A failed lookup only drops that package.

        Args:
            findings: Findings of the scan

        Returns:
            Non-empty alternative lists keyed by package name
        """
        packages = list(dict.fromkeys(f.package for f in findings))[:self.config.max_alternatives]
        semaphore = asyncio.Semaphore(self.config.alternatives_concurrency)

        async def lookup(package_name: str) -> List[Alternative]:
            async with semaphore:
                return await self.database.get_package_alternatives(package_name)

        results = await asyncio.gather(*(lookup(name) for name in packages), return_exceptions=True)

        alternatives: Dict[str, List[Alternative]] = {}
        for package_name, outcome in zip(packages, results):
            if isinstance(outcome, Exception):
                self.logger.warning(f"Failed to get alternatives for {package_name}: {outcome}")
            elif outcome:
                alternatives[package_name] = list(outcome)
        return alternatives

    async def find_alternatives(self, package_name: str) -> List[Alternative]:
        """Look up alternatives for one package; errors propagate."""
        return await self.database.get_package_alternatives(package_name)
