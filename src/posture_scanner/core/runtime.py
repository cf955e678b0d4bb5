"""
Alternate runtime (ASL) registry and the built-in version 1 interpreter

ASL checks describe their logic as data instead of code. A payload names the
collected call to evaluate and a list of conditions describing the compliant
state of every item it returned::

    {
        "service": "lambda",
        "api": "listFunctions",
        "resource": "FunctionArn",
        "conditions": [
            {"property": "Runtime", "op": "NE", "value": "python2.7"}
        ],
        "logical": "AND"
    }
"""

import logging
import re
import threading
from typing import Any, Callable, Dict, List, Optional

from .exceptions import AlternateRuntimeResolutionError
from .framework import AlternateRuntimeSpec, Result, Status
from .snapshot import Snapshot

logger = logging.getLogger(__name__)

Interpreter = Callable[[Snapshot, Dict[str, Any], List[str]], List[Result]]

CURRENT_VERSION = "1"


class RuntimeRegistry:
    """Maps ASL version tags to interpreter implementations"""

    def __init__(self, current_version: str = CURRENT_VERSION):
        self.current_version = current_version
        self._interpreters: Dict[str, Interpreter] = {}
        self._lock = threading.Lock()

    def register(self, version: str, interpreter: Interpreter):
        with self._lock:
            self._interpreters[str(version)] = interpreter

    def resolve(self, version: Optional[str] = None) -> Interpreter:
        """Return the interpreter for a version, defaulting to the current one"""
        version = str(version or self.current_version)
        with self._lock:
            interpreter = self._interpreters.get(version)
        if interpreter is None:
            raise AlternateRuntimeResolutionError(version)
        return interpreter

    def versions(self) -> List[str]:
        with self._lock:
            return sorted(self._interpreters)

    def run(self, spec: AlternateRuntimeSpec, snapshot: Snapshot,
            apis: List[str]) -> List[Result]:
        interpreter = self.resolve(spec.version)
        return interpreter(snapshot, spec.payload, list(apis))


def _lookup(item: Any, path: str) -> Any:
    """Resolve a dotted property path inside a collected item"""
    value = item
    for part in path.split('.'):
        if isinstance(value, dict):
            value = value.get(part)
        elif isinstance(value, list) and part.isdigit() and int(part) < len(value):
            value = value[int(part)]
        else:
            return None
    return value


def _compare(op: str, actual: Any, expected: Any) -> bool:
    op = op.upper()
    if op == 'EXISTS':
        return actual is not None
    if op == 'NOTEXISTS':
        return actual is None
    if op == 'ISEMPTY':
        return not actual
    if op == 'ISNOTEMPTY':
        return bool(actual)
    if op == 'EQ':
        return actual == expected
    if op == 'NE':
        return actual != expected
    if op == 'GT':
        return actual is not None and actual > expected
    if op == 'LT':
        return actual is not None and actual < expected
    if op == 'CONTAINS':
        return actual is not None and expected in actual
    if op == 'NOTCONTAINS':
        return actual is None or expected not in actual
    if op == 'MATCHES':
        return actual is not None and re.search(str(expected), str(actual)) is not None
    raise ValueError(f"Unsupported ASL operator: {op}")


def evaluate_v1(snapshot: Snapshot, payload: Dict[str, Any], apis: List[str]) -> List[Result]:
    """Evaluate a version 1 ASL payload against the snapshot"""
    service = payload['service']
    api = payload['api']
    resource_path = payload.get('resource')
    conditions = payload.get('conditions') or []
    combine = any if str(payload.get('logical', 'AND')).upper() == 'OR' else all

    results = []
    for region in snapshot.regions(service, api):
        entry = snapshot.get(service, api, region)
        if entry is None:
            continue
        if entry.error is not None or entry.data is None:
            results.append(Result(Status.ERROR,
                                  f"Unable to query {service}:{api}: {entry.describe_error()}",
                                  region))
            continue

        items = entry.data if isinstance(entry.data, list) else [entry.data]
        if not items:
            results.append(Result(Status.OK, f"No {service} resources found", region))
            continue

        for item in items:
            resource = _lookup(item, resource_path) if resource_path else None
            outcomes = [_compare(c['op'], _lookup(item, c['property']), c.get('value'))
                        for c in conditions]
            failed = [c for c, outcome in zip(conditions, outcomes) if not outcome]
            if not conditions or combine(outcomes):
                message = payload.get('pass_message') or 'All conditions passed'
                results.append(Result(Status.OK, message, region, resource))
            else:
                detail = ', '.join(f"{c['property']} {c['op']} {c.get('value')}" for c in failed)
                message = payload.get('fail_message') or f"Conditions not met: {detail}"
                results.append(Result(Status.FAIL, message, region, resource))
    return results


def default_runtime_registry() -> RuntimeRegistry:
    registry = RuntimeRegistry()
    registry.register("1", evaluate_v1)
    return registry
