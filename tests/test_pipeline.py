"""
Tests for result suppression, annotation and aggregation
"""

import logging
from unittest.mock import MagicMock

from conftest import RecordingOutput, StaticCheck
from posture_scanner.core.framework import Result, Status
from posture_scanner.core.pipeline import ResultPipeline, VerdictAccumulator, compliance_note
from posture_scanner.core.settings import ScanSettings
from posture_scanner.core.suppress import SuppressionFilter


def results_of(check):
    return check.run(None, None)


def test_verdict_is_worst_status():
    verdict = VerdictAccumulator()
    assert verdict.value == Status.OK

    for status in (1, 0, 3, 2):
        verdict.record(status)

    assert verdict.value == Status.ERROR


def test_results_forwarded_in_order(settings):
    output = RecordingOutput()
    pipeline = ResultPipeline(settings, output)
    check = StaticCheck('check', [(0, 'first', 'us-east-1', 'a'), (2, 'second', 'us-east-1', 'b')])

    accepted = pipeline.process(check, results_of(check))

    assert [r.message for r in accepted] == ['first', 'second']
    assert [r.message for _, r, _ in output.written] == ['first', 'second']
    assert pipeline.verdict.value == Status.FAIL
    assert pipeline.results['check'] == accepted


def test_suppressed_results_do_not_count():
    output = RecordingOutput()
    settings = ScanSettings(regions=['us-east-1'], suppress=['check:us-east-1:bad'])
    pipeline = ResultPipeline(settings, output)
    check = StaticCheck('check', [(0, 'fine', 'us-east-1', 'good'), (2, 'broken', 'us-east-1', 'bad')])

    accepted = pipeline.process(check, results_of(check))

    assert [r.resource for r in accepted] == ['good']
    assert len(output.written) == 1
    assert pipeline.verdict.value == Status.OK


def test_explicit_empty_filter_overrides_settings_rules():
    output = RecordingOutput()
    settings = ScanSettings(regions=['us-east-1'], suppress=['check:us-east-1:bad'])
    pipeline = ResultPipeline(settings, output, suppression=SuppressionFilter([]))
    check = StaticCheck('check', [(0, 'fine', 'us-east-1', 'good'), (2, 'broken', 'us-east-1', 'bad')])

    accepted = pipeline.process(check, results_of(check))

    assert [r.resource for r in accepted] == ['good', 'bad']
    assert len(output.written) == 2
    assert pipeline.verdict.value == Status.FAIL


def test_ignore_ok_hides_but_still_counts():
    output = RecordingOutput()
    settings = ScanSettings(regions=['us-east-1'], ignore_ok=True)
    pipeline = ResultPipeline(settings, output)
    check = StaticCheck('check', [(0, 'fine'), (1, 'meh')])

    accepted = pipeline.process(check, results_of(check))

    assert len(accepted) == 2
    assert [r.status for _, r, _ in output.written] == [Status.WARN]
    assert pipeline.verdict.value == Status.WARN


def test_empty_results_warn(settings, caplog):
    pipeline = ResultPipeline(settings, RecordingOutput())
    check = StaticCheck('quiet', title='Quiet Check')

    with caplog.at_level(logging.WARNING):
        assert pipeline.process(check, []) == []

    assert "Check Quiet Check returned no results" in caplog.text
    assert pipeline.verdict.value == Status.OK


def test_compliance_note():
    check = StaticCheck('check', compliance={'hipaa': 'HIPAA text', 'pci': 'PCI text'})

    assert compliance_note(check, []) is None
    assert compliance_note(check, ['cis']) is None
    assert compliance_note(check, ['pci']) == 'PCI: PCI text'
    assert compliance_note(check, ['hipaa', 'pci']) == 'HIPAA: HIPAA text; PCI: PCI text'
    assert compliance_note(StaticCheck('plain'), ['pci']) is None


def test_compliance_note_passed_to_output():
    output = RecordingOutput()
    settings = ScanSettings(regions=['us-east-1'], compliance=['pci'])
    pipeline = ResultPipeline(settings, output)
    check = StaticCheck('check', [(2, 'broken')], compliance={'pci': 'PCI text'})

    pipeline.process(check, results_of(check))

    assert output.written[0][2] == 'PCI: PCI text'


def test_every_accepted_result_offered_to_coordinator(settings):
    coordinator = MagicMock()
    snapshot = object()
    pipeline = ResultPipeline(ScanSettings(regions=['us-east-1'], suppress=['check:*:skip']),
                              RecordingOutput(), coordinator=coordinator, snapshot=snapshot)
    check = StaticCheck('check', [(2, 'a', 'us-east-1', 'keep'), (2, 'b', 'us-east-1', 'skip')])

    pipeline.process(check, results_of(check))

    coordinator.dispatch.assert_called_once_with(
        check, Result(Status.FAIL, 'a', 'us-east-1', 'keep'), snapshot)
