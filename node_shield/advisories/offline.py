"""Offline advisory database backed by local JSON files."""

import json
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..core.matcher import AdvisoryRecord
from ..core.parsers import ResolvedDependency
from ..utils.logging import get_logger
from .base import Alternative, VulnerabilityDatabase


class OfflineAdvisoryDatabase(VulnerabilityDatabase):
    """Reads npm-style advisories from a JSON file or a directory of them.

    Each file holds either a list of advisories or an object with an
    "advisories" list and an optional "alternatives" mapping of package
    name to suggested replacements.
    """

    def __init__(self, database_path: Path) -> None:
        """Initialize the offline database.

        Args:
            database_path: JSON file or directory of JSON files
        """
        self.database_path = Path(database_path)
        if not self.database_path.exists():
            raise ValueError(f"Database path does not exist: {self.database_path}")

        self.logger = get_logger("OfflineAdvisoryDatabase")
        self._package_index: Dict[str, List[AdvisoryRecord]] = {}
        self._alternatives: Dict[str, List[Alternative]] = {}
        self._loaded = False

    def load(self) -> None:
        """Load and index every advisory file."""
        self._package_index.clear()
        self._alternatives.clear()

        count = 0
        for data in self._read_files():
            advisories, alternatives = self._split_document(data)

            for advisory_data in advisories:
                advisory = self._parse_advisory(advisory_data)
                if advisory:
                    self._package_index.setdefault(advisory.package_name, []).append(advisory)
                    count += 1

            for package_name, entries in alternatives.items():
                if not isinstance(entries, list):
                    continue
                parsed = [alt for alt in (self._parse_alternative(e) for e in entries) if alt]
                self._alternatives.setdefault(package_name, []).extend(parsed)

        self._loaded = True
        self.logger.info(f"Loaded {count} advisories for {len(self._package_index)} packages")

    def _read_files(self) -> Iterator[Any]:
        if self.database_path.is_file():
            files = [self.database_path]
        else:
            files = sorted(self.database_path.rglob("*.json"))

        for advisory_file in files:
            try:
                with open(advisory_file, 'r', encoding='utf-8') as f:
                    yield json.load(f)
            except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
                self.logger.warning(f"Failed to parse {advisory_file}: {e}")
                continue

    @staticmethod
    def _split_document(data: Any) -> Tuple[List[Any], Dict[str, Any]]:
        if isinstance(data, list):
            return data, {}
        if isinstance(data, dict):
            if "advisories" in data:
                advisories = data.get("advisories") or []
                alternatives = data.get("alternatives") or {}
                return (
                    advisories if isinstance(advisories, list) else [],
                    alternatives if isinstance(alternatives, dict) else {},
                )
            # A single advisory object
            return [data], {}
        return [], {}

    def _parse_advisory(self, data: Any) -> Optional[AdvisoryRecord]:
        if not isinstance(data, dict):
            return None
        try:
            return AdvisoryRecord.from_dict(data)
        except ValueError as e:
            self.logger.warning(f"Failed to parse advisory {data.get('id', 'unknown')}: {e}")
            return None

    def _parse_alternative(self, data: Any) -> Optional[Alternative]:
        if not isinstance(data, dict):
            return None
        try:
            return Alternative.from_dict(data)
        except (TypeError, ValueError) as e:
            self.logger.warning(f"Failed to parse alternative {data.get('name', 'unknown')}: {e}")
            return None

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    async def get_vulnerabilities(self, dependencies: List[ResolvedDependency]) -> List[AdvisoryRecord]:
        self._ensure_loaded()

        advisories = []
        for name in dict.fromkeys(dep.name for dep in dependencies):
            advisories.extend(self._package_index.get(name, []))
        return advisories

    async def get_package_alternatives(self, package_name: str) -> List[Alternative]:
        self._ensure_loaded()
        return list(self._alternatives.get(package_name, []))

    def get_database_stats(self) -> Dict[str, int]:
        """Get database statistics.

        Returns:
            Package and advisory counts
        """
        self._ensure_loaded()
        return {
            "total_packages": len(self._package_index),
            "total_advisories": sum(len(a) for a in self._package_index.values()),
            "packages_with_alternatives": len(self._alternatives),
        }
