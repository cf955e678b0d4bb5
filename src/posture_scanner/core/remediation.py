"""
Remediation and rollback coordination

Remediation attempts run on their own executor and are never awaited by the
scan itself. Every attempt writes into a shared three phase transaction log
(``pre_remediate``, ``remediate``, ``post_remediate``), each phase holding
``actions[check_id][resource]`` cells. Writes for one check are serialized
with a per-check lock, so attempts on different resources of the same check
can finish in any order without losing each other's cells.
"""

import copy
import json
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait as wait_futures
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .exceptions import RemediationError
from .framework import Capability, Result, SecurityCheck, Status
from .snapshot import Snapshot

logger = logging.getLogger(__name__)

PRE_REMEDIATE = 'pre_remediate'
REMEDIATE = 'remediate'
POST_REMEDIATE = 'post_remediate'
PHASES = (PRE_REMEDIATE, REMEDIATE, POST_REMEDIATE)


class CellState(Enum):
    UNSTARTED = "unstarted"
    PRE_RECORDED = "pre_recorded"
    REMEDIATED = "remediated"
    REMEDIATION_FAILED = "remediation_failed"
    ROLLED_BACK = "rolled_back"


class TransactionLog:
    """Shared, lock-guarded remediation transaction log"""

    def __init__(self, data: Dict[str, Any] = None):
        self._data: Dict[str, Any] = data if data is not None else {}
        for phase in PHASES:
            self._data.setdefault(phase, {}).setdefault('actions', {})
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def load(cls, path: str) -> 'TransactionLog':
        """Load a log written by a previous run, or start an empty one"""
        log_path = Path(path)
        if not log_path.exists():
            return cls()
        with open(log_path, 'r', encoding='utf-8') as f:
            return cls(json.load(f))

    def save(self, path: str):
        log_path = Path(path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(log_path, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent=2, sort_keys=True, default=str)
        logger.info(f"Transaction log saved to: {log_path}")

    def lock_for(self, check_id: str) -> threading.RLock:
        with self._locks_guard:
            if check_id not in self._locks:
                self._locks[check_id] = threading.RLock()
            return self._locks[check_id]

    def _actions(self, phase: str, check_id: str) -> Dict[str, Any]:
        return self._data[phase]['actions'].setdefault(check_id, {})

    def initialize(self, check_id: str, resource: str):
        """Create the cells for a resource in every phase if they are absent"""
        with self.lock_for(check_id):
            for phase in PHASES:
                self._actions(phase, check_id).setdefault(resource, {})

    def record(self, phase: str, check_id: str, resource: str, fields: Dict[str, Any]):
        if phase not in PHASES:
            raise ValueError(f"Unknown transaction phase: {phase}")
        with self.lock_for(check_id):
            self._actions(phase, check_id).setdefault(resource, {}).update(fields)

    def record_error(self, check_id: str, resource: str, error: Any, key: str = 'error'):
        """Record a failed attempt for the check and in the resource's remediate cell"""
        message = str(error)
        with self.lock_for(check_id):
            actions = self._actions(REMEDIATE, check_id)
            actions[key] = message
            actions.setdefault(resource, {})[key] = message

    def cell(self, phase: str, check_id: str, resource: str) -> Dict[str, Any]:
        with self.lock_for(check_id):
            return copy.deepcopy(self._data[phase]['actions'].get(check_id, {}).get(resource, {}))

    def has_pre_state(self, check_id: str, resource: str) -> bool:
        return bool(self.cell(PRE_REMEDIATE, check_id, resource))

    def to_dict(self) -> Dict[str, Any]:
        """Consistent deep copy, taken check by check under each check's lock"""
        result = {phase: {'actions': {}} for phase in PHASES}
        for phase in PHASES:
            for check_id in list(self._data[phase]['actions']):
                with self.lock_for(check_id):
                    result[phase]['actions'][check_id] = copy.deepcopy(
                        self._data[phase]['actions'][check_id])
        for extra in self._data:
            if extra not in PHASES:
                result[extra] = copy.deepcopy(self._data[extra])
        return result


class TransactionWriter:
    """The slice of the transaction log one remediation attempt writes to"""

    def __init__(self, log: TransactionLog, check_id: str, resource: str):
        self.log = log
        self.check_id = check_id
        self.resource = resource

    def record_pre(self, **fields):
        self.log.record(PRE_REMEDIATE, self.check_id, self.resource, fields)

    def record_summary(self, **fields):
        self.log.record(REMEDIATE, self.check_id, self.resource, fields)

    def record_post(self, **fields):
        self.log.record(POST_REMEDIATE, self.check_id, self.resource, fields)

    def pre_state(self) -> Dict[str, Any]:
        return self.log.cell(PRE_REMEDIATE, self.check_id, self.resource)

    def summary(self) -> Dict[str, Any]:
        return self.log.cell(REMEDIATE, self.check_id, self.resource)


@dataclass
class RemediationOutcome:
    check_id: str
    resource: str
    action: Optional[Dict[str, Any]] = None
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class RemediationCoordinator:
    """Dispatches remediation for failing results and tracks each cell's state"""

    _REMEDIABLE = {CellState.UNSTARTED, CellState.REMEDIATION_FAILED, CellState.ROLLED_BACK}

    def __init__(self, config, remediate_ids=(), log: TransactionLog = None,
                 settings=None, max_workers: int = 4):
        self.config = config
        self.remediate_ids = set(remediate_ids or ())
        self.log = log if log is not None else TransactionLog()
        self.settings = settings
        self._executor = ThreadPoolExecutor(max_workers=max_workers,
                                            thread_name_prefix='remediation')
        self._futures: List[Future] = []
        self._states: Dict[Tuple[str, str], CellState] = {}
        self._active = set()
        self._state_lock = threading.Lock()

    def state(self, check_id: str, resource: str) -> CellState:
        with self._state_lock:
            return self._states.get((check_id, resource), CellState.UNSTARTED)

    def _begin(self, key: Tuple[str, str], allowed, operation: str) -> CellState:
        with self._state_lock:
            if key in self._active:
                raise RemediationError(f"{operation} already in progress for {key[0]} on {key[1]}")
            current = self._states.get(key, CellState.UNSTARTED)
            if current not in allowed:
                raise RemediationError(
                    f"Cannot {operation} {key[0]} on {key[1]} from state {current.value}")
            self._active.add(key)
            return current

    def _finish(self, key: Tuple[str, str], state: Optional[CellState]):
        with self._state_lock:
            if state is not None:
                self._states[key] = state
            self._active.discard(key)

    def _attempt_settings(self, check: SecurityCheck, resource: str, region: str) -> Dict[str, Any]:
        inputs = {}
        default_region = 'us-east-1'
        if self.settings is not None:
            inputs = dict(self.settings.remediation_inputs.get(check.check_id, {}))
            default_region = self.settings.default_region
        if not region or region == 'any':
            region = default_region
        return {
            'region': region,
            'default_region': default_region,
            'inputs': inputs,
            'remediation_file': TransactionWriter(self.log, check.check_id, resource),
        }

    def should_remediate(self, check: SecurityCheck, result: Result) -> bool:
        return (result.status == Status.FAIL
                and check.check_id in self.remediate_ids
                and check.supports(Capability.REMEDIATE))

    def dispatch(self, check: SecurityCheck, result: Result,
                 snapshot: Snapshot) -> Optional[Future]:
        """Start remediating a failing result without waiting for it"""
        if not self.should_remediate(check, result):
            return None

        key = (check.check_id, result.resource)
        try:
            self._begin(key, self._REMEDIABLE, 'remediate')
        except RemediationError as e:
            logger.warning(str(e))
            return None

        self.log.initialize(check.check_id, result.resource)
        with self._state_lock:
            self._states[key] = CellState.PRE_RECORDED

        settings = self._attempt_settings(check, result.resource, result.region)
        future = self._executor.submit(self._remediate, check, result.resource, snapshot, settings)
        with self._state_lock:
            self._futures.append(future)
        return future

    def _remediate(self, check: SecurityCheck, resource: str, snapshot: Snapshot,
                   settings: Dict[str, Any]) -> RemediationOutcome:
        key = (check.check_id, resource)
        writer = settings['remediation_file']
        try:
            action = check.remediate(self.config, snapshot, settings, resource)
        except Exception as e:
            self.log.record_error(check.check_id, resource, e)
            self._finish(key, CellState.REMEDIATION_FAILED)
            logger.error(f"Remediation of {check.check_id} on {resource} failed: {e}")
            return RemediationOutcome(check.check_id, resource, error=RemediationError(str(e)))

        if not writer.summary():
            writer.record_summary(Action=action)
        self._finish(key, CellState.REMEDIATED)
        logger.info(f"Remediated {check.check_id} on {resource}: {action}")
        return RemediationOutcome(check.check_id, resource, action=action)

    def rollback(self, check: SecurityCheck, resource: str, snapshot: Snapshot,
                 region: str = None) -> bool:
        """Undo a remediation using the recorded pre-remediation facts.

        Returns False when the check has no rollback implementation.
        """
        if not check.supports(Capability.ROLLBACK):
            logger.warning(f"Rollback support for {check.check_id} has not yet been implemented")
            self.log.record(REMEDIATE, check.check_id, resource, {'rollback': 'not implemented'})
            return False

        key = (check.check_id, resource)
        # A failed attempt may have applied part of its changes
        allowed = {CellState.REMEDIATED, CellState.REMEDIATION_FAILED}
        if self.state(*key) == CellState.UNSTARTED and self.log.has_pre_state(*key):
            # Cell restored from a previous run's log
            allowed.add(CellState.UNSTARTED)
        self._begin(key, allowed, 'roll back')

        settings = self._attempt_settings(check, resource, region)
        try:
            check.rollback(self.config, snapshot, settings, resource)
        except Exception as e:
            self.log.record_error(check.check_id, resource, e, key='rollback_error')
            self._finish(key, None)
            raise RemediationError(f"Rollback of {check.check_id} on {resource} failed: {e}") from e

        self.log.record(REMEDIATE, check.check_id, resource, {'rollback': 'completed'})
        self._finish(key, CellState.ROLLED_BACK)
        logger.info(f"Rolled back {check.check_id} on {resource}")
        return True

    def pending(self) -> int:
        with self._state_lock:
            return sum(1 for future in self._futures if not future.done())

    def wait(self, timeout: float = None) -> List[RemediationOutcome]:
        """Block until every dispatched remediation has finished"""
        with self._state_lock:
            futures = list(self._futures)
        done, _ = wait_futures(futures, timeout=timeout)
        return [future.result() for future in futures if future in done]

    def shutdown(self, wait: bool = True):
        self._executor.shutdown(wait=wait)
