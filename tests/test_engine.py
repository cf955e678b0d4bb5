"""
End-to-end scans through the engine with canned collectors
"""

import logging

import pytest

from conftest import RecordingOutput, StaticCheck, entry
from posture_scanner.core.collector import Collector, StaticCollector
from posture_scanner.core.engine import ScanEngine
from posture_scanner.core.exceptions import CollectorError
from posture_scanner.core.framework import Status
from posture_scanner.core.registry import CheckRegistry
from posture_scanner.core.settings import ScanSettings
from posture_scanner.core.snapshot import Snapshot

COLLECTION = {'sts': {'getCallerIdentity': {'us-east-1': entry({'Account': '123456789012'})}}}


class BrokenCollector(Collector):
    def collect(self, api_calls, settings):
        raise RuntimeError('throttled')


def test_nothing_to_scan(caplog):
    output = RecordingOutput()
    engine = ScanEngine(StaticCollector(COLLECTION), registry=CheckRegistry([]), output=output)

    with caplog.at_level(logging.INFO, logger='posture_scanner.core.engine'):
        report = engine.run_scan(ScanSettings(regions=['us-east-1']))

    assert report.verdict == 0
    assert report.nothing_to_scan
    assert caplog.text.count("Nothing to scan") == 1
    assert output.calls == 0


def test_worst_status_wins():
    output = RecordingOutput()
    registry = CheckRegistry([
        StaticCheck('passing', [(0, 'fine', 'us-east-1', 'a')], apis=['STS:getCallerIdentity']),
        StaticCheck('failing', [(2, 'broken', 'us-east-1', 'b')], apis=['STS:getCallerIdentity']),
    ])
    engine = ScanEngine(StaticCollector(COLLECTION), registry=registry, output=output)

    report = engine.run_scan(ScanSettings(regions=['us-east-1']))

    assert report.verdict == Status.FAIL
    assert len(output.written) == 2
    assert len(output.collections) == 1
    assert output.closed
    assert set(report.results) == {'passing', 'failing'}


def test_suppressed_failure_is_invisible():
    output = RecordingOutput()
    registry = CheckRegistry([
        StaticCheck('noisy', [(2, 'broken', 'us-east-1', 'b')], apis=['STS:getCallerIdentity']),
    ])
    engine = ScanEngine(StaticCollector(COLLECTION), registry=registry, output=output)

    report = engine.run_scan(ScanSettings(regions=['us-east-1'], suppress=['noisy:*:*']))

    assert report.verdict == 0
    assert output.written == []


def test_failed_check_does_not_affect_verdict():
    class Exploding(StaticCheck):
        def run(self, snapshot, settings):
            raise TypeError('bad data')

    registry = CheckRegistry([
        Exploding('exploding', apis=['STS:getCallerIdentity']),
        StaticCheck('warning', [(1, 'hmm')], apis=['STS:getCallerIdentity']),
    ])
    engine = ScanEngine(StaticCollector(COLLECTION), registry=registry, output=RecordingOutput())

    report = engine.run_scan(ScanSettings(regions=['us-east-1']))

    assert report.verdict == Status.WARN
    assert report.failed_checks == ['exploding']


def test_collector_failure():
    registry = CheckRegistry([StaticCheck('a', [(0, 'ok')], apis=['STS:getCallerIdentity'])])
    engine = ScanEngine(BrokenCollector(), registry=registry, output=RecordingOutput())

    with pytest.raises(CollectorError, match="Unable to obtain API metadata: throttled"):
        engine.run_scan(ScanSettings(regions=['us-east-1']))


def test_collector_returning_nothing():
    registry = CheckRegistry([StaticCheck('a', [(0, 'ok')], apis=['STS:getCallerIdentity'])])
    engine = ScanEngine(StaticCollector({}), registry=registry, output=RecordingOutput())

    with pytest.raises(CollectorError, match="No data returned"):
        engine.run_scan(ScanSettings(regions=['us-east-1']))


def test_checks_without_apis_skip_collection():
    registry = CheckRegistry([StaticCheck('offline', [(0, 'ok')])])
    output = RecordingOutput()
    engine = ScanEngine(BrokenCollector(), registry=registry, output=output)

    report = engine.run_scan(ScanSettings(regions=['us-east-1']))

    assert report.verdict == 0
    assert isinstance(output.collections[0], Snapshot)
    assert not output.collections[0]


def test_plan_is_reported():
    registry = CheckRegistry([
        StaticCheck('a', [(0, 'ok')], apis=['STS:getCallerIdentity']),
        StaticCheck('b', [(0, 'ok')], apis=['IAM:listRoles']),
    ])
    engine = ScanEngine(StaticCollector(COLLECTION), registry=registry)

    report = engine.run_scan(ScanSettings(regions=['us-east-1'], plugin='b'))

    assert report.plan.api_calls == ['IAM:listRoles']
    assert report.plan.skipped == ['a']
    assert report.remediation is None
