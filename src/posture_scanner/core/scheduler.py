"""
Bounded-concurrency execution of selected checks
"""

import logging
import threading
import concurrent.futures
from typing import Callable, Iterable, List, Optional

from .exceptions import AlternateRuntimeResolutionError, CheckExecutionError
from .framework import CheckOutcome, Result, SecurityCheck
from .runtime import RuntimeRegistry, default_runtime_registry
from .settings import DEFAULT_CHECK_TIMEOUT, DEFAULT_MAX_WORKERS
from .snapshot import Snapshot

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[SecurityCheck, List[Result]], None]


class CheckScheduler:
    """Runs checks against a snapshot with at most ``max_workers`` in flight.

    Each check body runs in its own daemon thread that its scheduler slot
    joins with ``timeout``. A check that hangs is reported as failed and
    gives its slot back; the abandoned thread is left to finish on its own.
    """

    def __init__(self, max_workers: int = DEFAULT_MAX_WORKERS,
                 timeout: float = DEFAULT_CHECK_TIMEOUT,
                 runtimes: RuntimeRegistry = None):
        self.max_workers = max_workers
        self.timeout = timeout
        self.runtimes = runtimes or default_runtime_registry()

    def _invoke(self, check: SecurityCheck, snapshot: Snapshot, settings) -> List[Result]:
        if check.asl is not None and settings.run_asl:
            logger.info(f"Using custom ASL for check: {check.title}")
            return self.runtimes.run(check.asl, snapshot, check.apis)
        return check.run(snapshot, settings)

    def _call_with_timeout(self, check: SecurityCheck, snapshot: Snapshot,
                           settings) -> List[Result]:
        outcome = {}

        def target():
            try:
                outcome['results'] = self._invoke(check, snapshot, settings)
            except Exception as e:
                outcome['error'] = e

        worker = threading.Thread(target=target, name=f"check-{check.check_id}", daemon=True)
        worker.start()
        worker.join(self.timeout)

        if worker.is_alive():
            raise CheckExecutionError(check.check_id, f"timed out after {self.timeout}s")
        if 'error' in outcome:
            raise outcome['error']
        return list(outcome.get('results') or [])

    def _supervise(self, check: SecurityCheck, snapshot: Snapshot, settings,
                   on_complete: Optional[CompletionCallback]) -> CheckOutcome:
        try:
            results = self._call_with_timeout(check, snapshot, settings)
        except (AlternateRuntimeResolutionError, CheckExecutionError) as e:
            logger.error(f"Check {check.title} failed: {e}")
            return CheckOutcome(check, error=e)
        except Exception as e:
            error = CheckExecutionError(check.check_id, str(e))
            logger.error(f"Check {check.title} failed: {e}")
            return CheckOutcome(check, error=error)

        if on_complete is not None:
            try:
                on_complete(check, results)
            except Exception as e:
                logger.error(f"Processing results of {check.title} failed: {e}")
                return CheckOutcome(check, results, error=e)
        return CheckOutcome(check, results)

    def run(self, checks: Iterable[SecurityCheck], snapshot: Snapshot, settings,
            on_complete: CompletionCallback = None) -> List[CheckOutcome]:
        """Run every check; returns once all of them have completed or failed"""
        checks = list(checks)
        if not checks:
            return []

        logger.info(f"Running {len(checks)} security checks...")
        outcomes = []
        with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_check = {executor.submit(self._supervise, check, snapshot, settings, on_complete): check
                               for check in checks}

            for future in concurrent.futures.as_completed(future_to_check):
                check = future_to_check[future]
                outcome = future.result()
                if outcome.succeeded:
                    logger.info(f"Completed check: {check.title} "
                                f"({len(outcome.results)} results)")
                outcomes.append(outcome)

        logger.info(f"Analysis complete. {len(outcomes)} checks executed")
        return outcomes
