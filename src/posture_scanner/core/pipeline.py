"""
Result filtering, annotation and aggregation
"""

import logging
import threading
from typing import Dict, List, Optional, Sequence

from .framework import Result, SecurityCheck, Status
from .snapshot import Snapshot
from .suppress import SuppressionFilter, suppression_key

logger = logging.getLogger(__name__)


class VerdictAccumulator:
    """Worst status seen so far, safe to update from several threads"""

    def __init__(self):
        self._value = Status.OK
        self._lock = threading.Lock()

    def record(self, status: int):
        with self._lock:
            if status > self._value:
                self._value = Status(status)

    @property
    def value(self) -> Status:
        with self._lock:
            return self._value


def compliance_note(check: SecurityCheck, programs: Sequence[str]) -> Optional[str]:
    """Justifications of the requested programs, or None if none apply"""
    notes = [f"{program.upper()}: {check.compliance[program]}"
             for program in programs or ()
             if check.compliance and check.compliance.get(program)]
    return '; '.join(notes) or None


class ResultPipeline:
    """Suppresses, annotates, forwards and aggregates check results"""

    def __init__(self, settings, output, suppression: SuppressionFilter = None,
                 coordinator=None, snapshot: Snapshot = None):
        self.settings = settings
        self.output = output
        if suppression is None:
            suppression = SuppressionFilter(settings.suppress)
        self.suppression = suppression
        self.coordinator = coordinator
        self.snapshot = snapshot
        self.verdict = VerdictAccumulator()
        self.results: Dict[str, List[Result]] = {}
        self._output_lock = threading.Lock()
        self._results_lock = threading.Lock()

    def process(self, check: SecurityCheck, results: List[Result]) -> List[Result]:
        """Run one check's results through the pipeline, keeping their order"""
        if not results:
            logger.warning(f"Check {check.title} returned no results. "
                           f"There may be a problem with this check.")
            return []

        accepted = []
        for result in results:
            # Suppressed results never reach the output or the exit code
            if self.suppression(suppression_key(check.check_id, result.region, result.resource)):
                logger.debug(f"Suppressed {check.check_id} result for {result.resource}")
                continue

            accepted.append(result)
            note = compliance_note(check, self.settings.compliance)

            if not (self.settings.ignore_ok and result.status == Status.OK):
                with self._output_lock:
                    self.output.write_result(result, check, note)

            self.verdict.record(result.status)

            if self.coordinator is not None:
                self.coordinator.dispatch(check, result, self.snapshot)

        with self._results_lock:
            self.results.setdefault(check.check_id, []).extend(accepted)
        return accepted
