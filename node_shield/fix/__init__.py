"""Automatic remediation of vulnerable direct dependencies."""

from .fixer import AutoFixer
from .installer import CommandResult, NpmInstaller

__all__ = [
    "AutoFixer",
    "CommandResult",
    "NpmInstaller",
]
