"""Core framework components for the posture scanner"""

from .framework import SecurityCheck, Result, Status, Capability
from .registry import CheckRegistry
from .planner import ScanPlan, SelectionFilter, plan_api_calls
from .scheduler import CheckScheduler
from .pipeline import ResultPipeline
from .remediation import RemediationCoordinator, TransactionLog
from .engine import ScanEngine, ScanReport

__all__ = [
    "SecurityCheck",
    "Result",
    "Status",
    "Capability",
    "CheckRegistry",
    "ScanPlan",
    "SelectionFilter",
    "plan_api_calls",
    "CheckScheduler",
    "ResultPipeline",
    "RemediationCoordinator",
    "TransactionLog",
    "ScanEngine",
    "ScanReport",
]
