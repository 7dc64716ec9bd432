"""Vulnerability data sources for NodeShield."""

from .base import Alternative, VulnerabilityDatabase
from .online import OSVAdvisoryDatabase
from .offline import OfflineAdvisoryDatabase

__all__ = [
    "Alternative",
    "VulnerabilityDatabase",
    "OSVAdvisoryDatabase",
    "OfflineAdvisoryDatabase",
]
