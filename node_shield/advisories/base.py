"""Interface for vulnerability data sources."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List

from ..core.matcher import AdvisoryRecord
from ..core.parsers import ResolvedDependency


@dataclass
class Alternative:
    """A suggested replacement package."""

    name: str
    description: str = ""
    quality: float = 0.0
    stars: float = 0.0
    downloads: int = 0

    def __post_init__(self) -> None:
        """Validate alternative data."""
        if not self.name:
            raise ValueError("Alternative name cannot be empty")
        if not 0.0 <= self.quality <= 1.0:
            raise ValueError("Quality must be between 0.0 and 1.0")
        if not 0.0 <= self.stars <= 1.0:
            raise ValueError("Stars must be between 0.0 and 1.0")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Alternative":
        return cls(
            name=data.get("name") or "",
            description=data.get("description") or "",
            quality=float(data.get("quality") or 0.0),
            stars=float(data.get("stars") or 0.0),
            downloads=int(data.get("downloads") or 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "quality": self.quality,
            "stars": self.stars,
            "downloads": self.downloads,
        }


class VulnerabilityDatabase(ABC):
    """Abstract source of advisories and alternative-package suggestions."""

    @abstractmethod
    async def get_vulnerabilities(self, dependencies: List[ResolvedDependency]) -> List[AdvisoryRecord]:
        """Fetch advisories for the given dependencies.

        Implementations may return advisories for other packages; the
        matcher filters by name.

        Args:
            dependencies: Resolved dependencies of the project

        Returns:
            List of advisories

        Raises:
            AdvisoryFetchError: If the data source cannot be queried
        """

    @abstractmethod
    async def get_package_alternatives(self, package_name: str) -> List[Alternative]:
        """Suggest alternative packages.

        Args:
            package_name: Package to replace

        Returns:
            List of alternatives, possibly empty
        """

    async def close(self) -> None:
        """Release any held resources."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
