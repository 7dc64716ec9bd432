"""Output formatters for NodeShield."""

from .formatters import ConsoleFormatter, CSVFormatter, JSONFormatter

__all__ = [
    "ConsoleFormatter",
    "CSVFormatter",
    "JSONFormatter",
]
