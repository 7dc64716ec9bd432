"""Utility functions and helpers for NodeShield."""

from .logging import setup_logging, get_logger
from .transaction import FileTransaction, file_transaction

__all__ = [
    "setup_logging",
    "get_logger",
    "FileTransaction",
    "file_transaction",
]
