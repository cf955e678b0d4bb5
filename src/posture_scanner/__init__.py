"""
Posture Scanner - cloud security posture scanning engine

Runs a catalog of configuration-audit checks against collected AWS metadata,
aggregates their results into a single worst-status verdict and optionally
remediates what they find.
"""

__version__ = "1.0.0"

from .core.framework import SecurityCheck, Result, Status
from .core.provider import AWSProvider
from .core.engine import ScanEngine, ScanReport
from .core.registry import CheckRegistry
from .core.settings import ScanSettings

__all__ = [
    "SecurityCheck",
    "Result",
    "Status",
    "AWSProvider",
    "ScanEngine",
    "ScanReport",
    "CheckRegistry",
    "ScanSettings",
]
