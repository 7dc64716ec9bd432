"""Node.js manifest and lock file parsers."""

from .base import (
    DEPENDENCY_KINDS,
    TRANSITIVE,
    ParsedLockfile,
    ParsedManifest,
    ResolvedDependency,
)
from .nodejs import PackageManifestParser, is_version_vulnerable

__all__ = [
    "DEPENDENCY_KINDS",
    "TRANSITIVE",
    "ParsedLockfile",
    "ParsedManifest",
    "ResolvedDependency",
    "PackageManifestParser",
    "is_version_vulnerable",
]
