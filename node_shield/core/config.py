"""Scan configuration for NodeShield."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from .matcher import Severity


class OutputFormat(str, Enum):
    TABLE = "table"
    JSON = "json"
    CSV = "csv"


class ScanMode(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


@dataclass
class ScanConfig:
    """Options for one scan run."""

    path: Path = Path(".")
    min_severity: Union[Severity, str] = Severity.LOW
    output: Union[OutputFormat, str] = OutputFormat.TABLE
    fix: bool = False
    alternatives: bool = False
    mode: Union[ScanMode, str] = ScanMode.ONLINE
    database_path: Optional[Path] = None
    max_alternatives: int = 5
    alternatives_concurrency: int = 5
    request_timeout: float = 30.0
    regenerate_lockfile: bool = True

    def __post_init__(self) -> None:
        """Validate configuration."""
        self.path = Path(self.path)
        self.min_severity = Severity(self.min_severity)
        self.output = OutputFormat(self.output)
        self.mode = ScanMode(self.mode)

        if self.mode is ScanMode.OFFLINE:
            if self.database_path is None:
                raise ValueError("Database path is required for offline mode")
            self.database_path = Path(self.database_path)
            if not self.database_path.exists():
                raise ValueError(f"Database path does not exist: {self.database_path}")

        if self.max_alternatives < 0:
            raise ValueError("max_alternatives cannot be negative")
        if self.alternatives_concurrency < 1:
            raise ValueError("alternatives_concurrency must be at least 1")
