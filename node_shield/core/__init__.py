"""Core parsing, matching and remediation logic for NodeShield."""

from .matcher import AdvisoryRecord, Finding, Severity, VulnerabilityMatcher
from .parsers import PackageManifestParser, ResolvedDependency
from .remediation import FixPlan, FixReport, RemediationPlanner

__all__ = [
    "AdvisoryRecord",
    "Finding",
    "Severity",
    "VulnerabilityMatcher",
    "PackageManifestParser",
    "ResolvedDependency",
    "FixPlan",
    "FixReport",
    "RemediationPlanner",
]
