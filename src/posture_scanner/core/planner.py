"""
API call planning for the selected checks
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from .exceptions import NoWorkError
from .framework import SecurityCheck
from .registry import CheckRegistry

logger = logging.getLogger(__name__)


@dataclass
class SelectionFilter:
    """Which catalog entries a scan should run"""
    plugin: Optional[str] = None
    compliance: Sequence[str] = ()
    account_type: Optional[str] = None

    @classmethod
    def from_settings(cls, settings) -> 'SelectionFilter':
        return cls(
            plugin=settings.plugin,
            compliance=tuple(settings.compliance or ()),
            account_type=settings.account_type,
        )

    def skip_reason(self, check: SecurityCheck) -> Optional[str]:
        """Return why a check is excluded, or None if it is selected"""
        if self.plugin and self.plugin != check.check_id:
            return "it does not match the requested check"

        if (self.account_type and check.account_scopes
                and self.account_type not in check.account_scopes):
            return f"it is not for {self.account_type} accounts"

        if self.compliance:
            if not check.compliance:
                return "it is not used for compliance programs"
            if not any(program in check.compliance for program in self.compliance):
                return (f"it did not match compliance programs "
                        f"{', '.join(self.compliance)}")
        return None


@dataclass
class ScanPlan:
    """API calls to collect and the checks to run against them"""
    api_calls: List[str] = field(default_factory=list)
    selected: List[SecurityCheck] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


def _extend_unique(target: List[str], items: Iterable[str]):
    for item in items or ():
        if item not in target:
            target.append(item)


def plan_api_calls(registry: CheckRegistry, selection: SelectionFilter,
                   remediate_ids: Iterable[str] = ()) -> ScanPlan:
    """Compute the deduplicated API calls needed for the selected checks"""
    remediate_ids = set(remediate_ids or ())

    if selection.plugin and selection.plugin not in registry:
        raise NoWorkError(f"Invalid plugin: {selection.plugin}")

    plan = ScanPlan()
    for check in registry:
        reason = selection.skip_reason(check)
        if reason:
            logger.debug(f"Skipping check {check.title} because {reason}")
            plan.skipped.append(check.check_id)
            continue

        plan.selected.append(check)
        _extend_unique(plan.api_calls, check.apis)
        # Remediation needs its own data collected as well
        if check.check_id in remediate_ids:
            _extend_unique(plan.api_calls, check.apis_remediate)

    if not plan.selected:
        raise NoWorkError("No checks matched the selection")

    logger.info(f"Found {len(plan.api_calls)} API calls to make for "
                f"{len(plan.selected)} checks")
    return plan
