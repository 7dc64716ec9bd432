"""Node.js manifest and lock file parsing."""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from ...utils.logging import get_logger
from ..errors import LockfileUnreadableError, ManifestError, ManifestNotFoundError
from ..versions import RangeCheck, evaluate
from .base import (
    DEPENDENCY_KINDS,
    TRANSITIVE,
    ParsedLockfile,
    ParsedManifest,
    ResolvedDependency,
)


MANIFEST_FILE = "package.json"
LOCKFILE_FILE = "package-lock.json"

NODE_MODULES_PREFIX = "node_modules/"


def is_version_vulnerable(installed_version: Optional[str], vulnerable_range: Optional[str]) -> bool:
    """Check whether an installed version falls inside a vulnerable range.

    Unparseable input is treated as not vulnerable and logged as a warning.

    Args:
        installed_version: Resolved version of the dependency
        vulnerable_range: Advisory range expression

    Returns:
        True if the version is vulnerable
    """
    if installed_version is None:
        return False

    result = evaluate(installed_version, vulnerable_range)
    if result is RangeCheck.PARSE_FAILURE:
        get_logger("PackageManifestParser").warning(
            f"Error checking version {installed_version} against range {vulnerable_range}"
        )
        return False

    return result is RangeCheck.SATISFIED


def package_name_from_path(package_path: str) -> Optional[str]:
    """Map a flat lock file key to a package name.

    Nested install locations collapse to the trailing package name, e.g.
    "node_modules/a/node_modules/@scope/b" maps to "@scope/b".

    Args:
        package_path: Key of the lock file "packages" map

    Returns:
        Package name, or None for keys outside node_modules
    """
    if not package_path.startswith(NODE_MODULES_PREFIX):
        return None
    return package_path.rsplit(NODE_MODULES_PREFIX, 1)[1] or None


class PackageManifestParser:
    """Reads package.json and package-lock.json from one project directory."""

    def __init__(self, project_path: Union[str, Path]) -> None:
        """Initialize the parser.

        Args:
            project_path: Project directory containing package.json
        """
        self.project_path = Path(project_path)
        self.manifest_path = self.project_path / MANIFEST_FILE
        self.lockfile_path = self.project_path / LOCKFILE_FILE
        self.logger = get_logger("PackageManifestParser")

    def parse_manifest(self) -> ParsedManifest:
        """Parse package.json.

        Returns:
            Parsed manifest with defaults for missing fields

        Raises:
            ManifestNotFoundError: If package.json does not exist
            ManifestError: If package.json is not a JSON object
        """
        if not self.manifest_path.is_file():
            raise ManifestNotFoundError(
                f"package.json not found in the specified directory: {self.project_path}"
            )

        try:
            with open(self.manifest_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
            raise ManifestError(f"Failed to parse package.json: {e}") from e

        if not isinstance(data, dict):
            raise ManifestError("Failed to parse package.json: top-level value is not an object")

        manifest = ParsedManifest(
            name=data.get("name") or "unknown",
            version=data.get("version") or "0.0.0",
            source_file=self.manifest_path,
            raw=data,
        )

        for kind in DEPENDENCY_KINDS:
            section = data.get(kind)
            if isinstance(section, dict):
                setattr(manifest, kind, dict(section))
            elif section is not None:
                self.logger.warning(f"Ignoring non-object '{kind}' section in package.json")

        return manifest

    def parse_lockfile(self) -> Optional[ParsedLockfile]:
        """Parse package-lock.json.

        Returns:
            Parsed lock file, or None if it is absent or unreadable
        """
        if not self.lockfile_path.exists():
            self.logger.info("package-lock.json not found, using package.json only")
            return None

        try:
            return self._read_lockfile()
        except LockfileUnreadableError as e:
            self.logger.warning(f"Failed to parse package-lock.json: {e}")
            return None

    def _read_lockfile(self) -> ParsedLockfile:
        try:
            with open(self.lockfile_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
            raise LockfileUnreadableError(str(e)) from e

        if not isinstance(data, dict):
            raise LockfileUnreadableError("top-level value is not an object")

        lockfile_version = data.get("lockfileVersion", 1)
        if isinstance(lockfile_version, bool) or not isinstance(lockfile_version, int):
            raise LockfileUnreadableError(f"invalid lockfileVersion: {lockfile_version!r}")

        packages = data.get("packages") or {}
        dependencies = data.get("dependencies") or {}
        if not isinstance(packages, dict) or not isinstance(dependencies, dict):
            raise LockfileUnreadableError("'packages' and 'dependencies' must be objects")

        return ParsedLockfile(
            lockfile_version=lockfile_version,
            packages=packages,
            dependencies=dependencies,
            source_file=self.lockfile_path,
        )

    def get_all_dependencies(self) -> List[ResolvedDependency]:
        """Build the flattened dependency set from manifest and lock file.

        Returns:
            One record per package name, in no particular order

        Raises:
            ManifestNotFoundError: If package.json does not exist
        """
        manifest = self.parse_manifest()
        lockfile = self.parse_lockfile()
        return self.merge(manifest, lockfile)

    def merge(
        self,
        manifest: ParsedManifest,
        lockfile: Optional[ParsedLockfile]
    ) -> List[ResolvedDependency]:
        """Merge manifest declarations with lock file resolutions.

        Args:
            manifest: Parsed package.json
            lockfile: Parsed package-lock.json, or None

        Returns:
            List of resolved dependencies
        """
        records: Dict[str, Dict[str, Any]] = {}

        for kind in DEPENDENCY_KINDS:
            for name, specifier in manifest.get_kind(kind).items():
                records[name] = {
                    "name": name,
                    "requested_version": specifier,
                    "installed_version": specifier,
                    "declaration_kind": kind,
                    "is_direct": True,
                }

        if lockfile is not None:
            if lockfile.is_flat:
                entries = self._walk_flat_packages(lockfile.packages)
            else:
                entries = self._walk_nested_dependencies(lockfile.dependencies)

            for name, version in entries:
                self._record_resolution(records, name, version)

        self.logger.debug(f"Resolved {len(records)} dependencies for {manifest.name}")
        return [ResolvedDependency(**record) for record in records.values() if record["name"]]

    def _record_resolution(
        self,
        records: Dict[str, Dict[str, Any]],
        name: str,
        version: Optional[str]
    ) -> None:
        existing = records.get(name)
        if existing:
            if version is not None:
                existing["installed_version"] = version
            return

        # Only in the lock graph: pulled in by another package
        records[name] = {
            "name": name,
            "requested_version": version,
            "installed_version": version,
            "declaration_kind": TRANSITIVE,
            "is_direct": False,
        }

    def _walk_flat_packages(self, packages: Dict[str, Any]) -> List[Tuple[str, Optional[str]]]:
        """Walk a lockfileVersion >= 2 "packages" map.

        Args:
            packages: Map of install path to package info

        Returns:
            (name, version) pairs in key order
        """
        entries = []
        for package_path, info in packages.items():
            if package_path == "":
                continue  # root project

            name = package_name_from_path(package_path)
            if not name:
                self.logger.debug(f"Skipping non node_modules entry: {package_path}")
                continue

            entries.append((name, self._entry_version(info)))
        return entries

    def _walk_nested_dependencies(self, dependencies: Dict[str, Any]) -> List[Tuple[str, Optional[str]]]:
        """Depth-first walk of a lockfileVersion 1 "dependencies" tree.

        Args:
            dependencies: Tree keyed by package name

        Returns:
            (name, version) pairs, each parent before its children
        """
        entries = []
        for name, info in dependencies.items():
            entries.append((name, self._entry_version(info)))

            nested = info.get("dependencies") if isinstance(info, dict) else None
            if isinstance(nested, dict):
                entries.extend(self._walk_nested_dependencies(nested))
        return entries

    @staticmethod
    def _entry_version(info: Any) -> Optional[str]:
        if isinstance(info, dict):
            version = info.get("version")
            if isinstance(version, str):
                return version
        return None

    @staticmethod
    def is_version_vulnerable(installed_version: Optional[str], vulnerable_range: Optional[str]) -> bool:
        return is_version_vulnerable(installed_version, vulnerable_range)
