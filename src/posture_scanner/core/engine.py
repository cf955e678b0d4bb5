"""
Core scanning engine that orchestrates security checks
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .collector import Collector
from .exceptions import CollectorError, NoWorkError
from .framework import CheckOutcome, Result
from .output import OutputHandler
from .pipeline import ResultPipeline
from .planner import ScanPlan, SelectionFilter, plan_api_calls
from .registry import CheckRegistry
from .remediation import RemediationCoordinator, TransactionLog
from .runtime import RuntimeRegistry, default_runtime_registry
from .scheduler import CheckScheduler
from .settings import ScanSettings
from .snapshot import Snapshot
from .suppress import SuppressionFilter

logger = logging.getLogger(__name__)


@dataclass
class ScanReport:
    """Everything a finished scan hands back to its caller"""
    verdict: int = 0
    plan: Optional[ScanPlan] = None
    results: Dict[str, List[Result]] = field(default_factory=dict)
    outcomes: List[CheckOutcome] = field(default_factory=list)
    remediation: Optional[RemediationCoordinator] = None
    nothing_to_scan: bool = False

    @property
    def transaction_log(self) -> Optional[TransactionLog]:
        return self.remediation.log if self.remediation else None

    @property
    def failed_checks(self) -> List[str]:
        return [outcome.check.check_id for outcome in self.outcomes if not outcome.succeeded]


class ScanEngine:
    """Core scanning engine that orchestrates security checks"""

    def __init__(self, collector: Collector, registry: CheckRegistry = None,
                 output: OutputHandler = None, runtimes: RuntimeRegistry = None,
                 remediation_config: Any = None, transaction_log: TransactionLog = None):
        self.collector = collector
        self.registry = registry if registry is not None else CheckRegistry()
        self.output = output
        self.runtimes = runtimes or default_runtime_registry()
        self.remediation_config = remediation_config
        self.transaction_log = transaction_log

    def plan(self, settings: ScanSettings) -> ScanPlan:
        """Determine which checks run and which API calls they need"""
        logger.info("Determining API calls to make...")
        return plan_api_calls(self.registry, SelectionFilter.from_settings(settings),
                              settings.remediate)

    def _remediation(self, settings: ScanSettings) -> Optional[RemediationCoordinator]:
        if not settings.remediate:
            return None
        return RemediationCoordinator(
            config=self.remediation_config,
            remediate_ids=settings.remediate,
            log=self.transaction_log,
            settings=settings,
            max_workers=settings.max_workers,
        )

    def run_scan(self, settings: ScanSettings) -> ScanReport:
        """Plan, collect, run checks and return the aggregated verdict.

        Remediation started during the scan may still be running when this
        returns; call ``report.remediation.wait()`` before relying on the
        transaction log being complete.
        """
        for note in settings.describe():
            logger.info(note)

        try:
            plan = self.plan(settings)
        except NoWorkError as e:
            logger.info(f"Nothing to scan: {e}")
            return ScanReport(verdict=0, nothing_to_scan=True)

        snapshot = self._collect(plan, settings)
        if self.output is not None:
            self.output.write_collection(snapshot)

        logger.info("Metadata collection complete. Analyzing...")

        coordinator = self._remediation(settings)
        pipeline = ResultPipeline(
            settings,
            self.output if self.output is not None else _NullOutput(),
            suppression=SuppressionFilter(settings.suppress),
            coordinator=coordinator,
            snapshot=snapshot,
        )
        scheduler = CheckScheduler(max_workers=settings.max_workers,
                                   timeout=settings.check_timeout,
                                   runtimes=self.runtimes)
        outcomes = scheduler.run(plan.selected, snapshot, settings, on_complete=pipeline.process)

        if self.output is not None:
            self.output.close()

        verdict = int(pipeline.verdict.value)
        logger.info(f"Scan complete. Worst status: {verdict}")
        return ScanReport(
            verdict=verdict,
            plan=plan,
            results=pipeline.results,
            outcomes=outcomes,
            remediation=coordinator,
        )

    def _collect(self, plan: ScanPlan, settings: ScanSettings):
        if not plan.api_calls:
            return Snapshot()

        logger.info("Collecting metadata. This may take several minutes...")
        try:
            snapshot = self.collector.collect(plan.api_calls, settings)
        except CollectorError:
            raise
        except Exception as e:
            raise CollectorError(f"Unable to obtain API metadata: {e}") from e

        if not snapshot:
            raise CollectorError("Unable to obtain API metadata: No data returned")
        return snapshot


class _NullOutput(OutputHandler):

    def write_result(self, result, check, compliance=None):
        pass
