"""
Scan settings
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


DEFAULT_REGIONS = [
    'us-east-1', 'us-east-2', 'us-west-1', 'us-west-2',
    'eu-west-1', 'eu-west-2', 'eu-central-1', 'ap-southeast-1',
    'ap-southeast-2', 'ap-northeast-1'
]

DEFAULT_MAX_WORKERS = 10
DEFAULT_CHECK_TIMEOUT = 300


@dataclass
class ScanSettings:
    """Options controlling check selection, execution and remediation"""
    plugin: Optional[str] = None
    compliance: List[str] = field(default_factory=list)
    account_type: Optional[str] = None
    suppress: List[str] = field(default_factory=list)
    remediate: List[str] = field(default_factory=list)
    run_asl: bool = False
    ignore_ok: bool = False
    exit_code: bool = False
    skip_paginate: bool = False
    govcloud: bool = False
    china: bool = False
    regions: List[str] = field(default_factory=lambda: list(DEFAULT_REGIONS))
    default_region: str = 'us-east-1'
    max_workers: int = DEFAULT_MAX_WORKERS
    check_timeout: float = DEFAULT_CHECK_TIMEOUT
    remediation_inputs: Dict[str, Dict[str, str]] = field(default_factory=dict)

    def __post_init__(self):
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if self.check_timeout <= 0:
            raise ValueError("check_timeout must be positive")
        if self.govcloud:
            self.default_region = 'us-gov-west-1'
        elif self.china:
            self.default_region = 'cn-north-1'

    def describe(self) -> List[str]:
        """Human readable notes about the active customization options"""
        notes = []
        if self.compliance:
            notes.append(f"Using compliance modes: {', '.join(self.compliance)}")
        if self.govcloud:
            notes.append("Using AWS GovCloud mode")
        if self.china:
            notes.append("Using AWS China mode")
        if self.ignore_ok:
            notes.append("Ignoring passing results")
        if self.skip_paginate:
            notes.append("Skipping AWS pagination mode")
        if self.suppress:
            notes.append("Suppressing results based on suppress flags")
        if self.remediate:
            notes.append(f"Remediating checks: {', '.join(self.remediate)}")
        if self.plugin:
            notes.append(f"Testing check: {self.plugin}")
        return notes
