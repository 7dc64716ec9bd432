"""NodeShield - scan Node.js project dependencies for known vulnerabilities and fix them."""

__version__ = "0.1.0"

from .core.matcher import VulnerabilityMatcher
from .core.parsers import PackageManifestParser
from .core.remediation import RemediationPlanner
from .core.scanner import VulnerabilityScanner
from .advisories import OSVAdvisoryDatabase, OfflineAdvisoryDatabase
from .fix import AutoFixer
from .output.formatters import ConsoleFormatter, JSONFormatter

__all__ = [
    "VulnerabilityMatcher",
    "PackageManifestParser",
    "RemediationPlanner",
    "VulnerabilityScanner",
    "OSVAdvisoryDatabase",
    "OfflineAdvisoryDatabase",
    "AutoFixer",
    "ConsoleFormatter",
    "JSONFormatter",
]
