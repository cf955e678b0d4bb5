"""
Core framework classes and interfaces for security checks
"""

import logging
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, FrozenSet, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .snapshot import Snapshot
    from .settings import ScanSettings


ANY = "any"


class Status(IntEnum):
    """Result status, ordered by how much attention it warrants"""
    OK = 0
    WARN = 1
    FAIL = 2
    ERROR = 3


class Capability(Enum):
    """Operations a catalog entry declares it implements"""
    RUN = "run"
    REMEDIATE = "remediate"
    ROLLBACK = "rollback"


@dataclass(frozen=True)
class Result:
    """A single graded finding emitted by a check"""
    status: Status
    message: str
    region: str = ANY
    resource: str = ANY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": int(self.status),
            "status_name": Status(self.status).name,
            "message": self.message,
            "region": self.region,
            "resource": self.resource,
        }


@dataclass(frozen=True)
class AlternateRuntimeSpec:
    """Declarative payload evaluated by a versioned alternate runtime"""
    payload: Dict[str, Any]
    version: Optional[str] = None


@dataclass(frozen=True)
class RemediationInput:
    """A named remediation parameter, used by remediation front ends"""
    name: str
    description: str = ""
    regex: str = ""
    required: bool = False


class SecurityCheck:
    """Base class for catalog entries.

    Subclasses set the descriptor attributes and implement ``run``. Checks
    that can fix what they find add ``Capability.REMEDIATE`` (and
    ``Capability.ROLLBACK`` when they can undo it) to ``capabilities`` and
    override the matching methods.
    """

    check_id: str = ""
    title: str = ""
    category: str = ""
    domain: str = ""
    severity: str = "Medium"
    description: str = ""
    more_info: str = ""
    recommended_action: str = ""
    apis: List[str] = []
    apis_remediate: List[str] = []
    compliance: Dict[str, str] = {}
    account_scopes: List[str] = []
    asl: Optional[AlternateRuntimeSpec] = None
    capabilities: FrozenSet[Capability] = frozenset({Capability.RUN})

    remediation_description: str = ""
    remediation_min_version: str = ""
    remediation_inputs: Dict[str, RemediationInput] = {}
    actions: Dict[str, List[str]] = {}
    permissions: Dict[str, List[str]] = {}

    def __init__(self):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def run(self, snapshot: 'Snapshot', settings: 'ScanSettings') -> List[Result]:
        """Evaluate the check against the snapshot and return its results"""
        raise NotImplementedError

    def remediate(self, config, snapshot: 'Snapshot', settings: Dict[str, Any],
                  resource: str) -> Dict[str, Any]:
        """Fix a failing resource and return a description of the applied action"""
        raise NotImplementedError(f"{self.check_id} does not support remediation")

    def rollback(self, config, snapshot: 'Snapshot', settings: Dict[str, Any],
                 resource: str) -> None:
        """Restore the state recorded before remediation"""
        raise NotImplementedError(f"{self.check_id} does not support rollback")

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def add_result(self, results: List[Result], status: int, message: str,
                   region: str = None, resource: str = None):
        """Helper method to append a result"""
        results.append(Result(
            status=Status(status),
            message=message,
            region=region or ANY,
            resource=resource or ANY,
        ))

    def to_dict(self) -> Dict[str, Any]:
        """Descriptor metadata for reports"""
        return {
            "id": self.check_id,
            "title": self.title,
            "category": self.category,
            "domain": self.domain,
            "severity": self.severity,
            "description": self.description,
            "recommended_action": self.recommended_action,
            "compliance": dict(self.compliance),
        }

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.check_id}>"


@dataclass
class CheckOutcome:
    """What one check invocation produced"""
    check: SecurityCheck
    results: List[Result] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None
