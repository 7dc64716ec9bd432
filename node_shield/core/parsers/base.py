"""Data models produced by the dependency parsers."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple


# Fixed priority order used wherever "first match wins" applies
DEPENDENCY_KINDS = (
    "dependencies",
    "devDependencies",
    "peerDependencies",
    "optionalDependencies",
)

TRANSITIVE = "transitive"


@dataclass(frozen=True)
class ResolvedDependency:
    """A package in the flattened dependency set of one scan."""

    name: str
    requested_version: Optional[str] = None
    installed_version: Optional[str] = None
    declaration_kind: str = TRANSITIVE
    is_direct: bool = False

    def __post_init__(self) -> None:
        """Validate the dependency."""
        if not self.name:
            raise ValueError("Dependency name cannot be empty")

        if self.declaration_kind not in DEPENDENCY_KINDS + (TRANSITIVE,):
            raise ValueError(f"Unknown declaration kind: {self.declaration_kind}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "requestedVersion": self.requested_version,
            "installedVersion": self.installed_version,
            "type": self.declaration_kind,
            "isDirect": self.is_direct,
        }


@dataclass
class ParsedManifest:
    """Normalized contents of a package.json file."""

    name: str = "unknown"
    version: str = "0.0.0"
    dependencies: Dict[str, str] = field(default_factory=dict)
    devDependencies: Dict[str, str] = field(default_factory=dict)
    peerDependencies: Dict[str, str] = field(default_factory=dict)
    optionalDependencies: Dict[str, str] = field(default_factory=dict)
    source_file: Optional[Path] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    def get_kind(self, kind: str) -> Dict[str, str]:
        """Get the dependency mapping for a declaration kind.

        Args:
            kind: One of DEPENDENCY_KINDS

        Returns:
            Mapping of package name to declared range
        """
        if kind not in DEPENDENCY_KINDS:
            raise ValueError(f"Unknown dependency kind: {kind}")
        return getattr(self, kind)

    def find_declaration(self, name: str) -> Optional[Tuple[str, str]]:
        """Find where a package is declared.

        Kinds are checked in DEPENDENCY_KINDS order and the first match wins.

        Args:
            name: Package name

        Returns:
            (kind, declared range) or None if not a direct dependency
        """
        for kind in DEPENDENCY_KINDS:
            mapping = self.get_kind(kind)
            if name in mapping:
                return kind, mapping[name]
        return None


@dataclass
class ParsedLockfile:
    """Contents of a package-lock.json file."""

    lockfile_version: int = 1
    packages: Dict[str, Any] = field(default_factory=dict)
    dependencies: Dict[str, Any] = field(default_factory=dict)
    source_file: Optional[Path] = None

    @property
    def is_flat(self) -> bool:
        """True for npm v7+ lock files (flat package-path map)."""
        return self.lockfile_version >= 2
