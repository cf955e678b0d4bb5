"""
Tests for API call planning and check selection
"""

import logging

import pytest

from conftest import StaticCheck
from posture_scanner.core.exceptions import NoWorkError
from posture_scanner.core.planner import SelectionFilter, plan_api_calls
from posture_scanner.core.registry import CheckRegistry
from posture_scanner.core.settings import ScanSettings


@pytest.fixture
def registry():
    return CheckRegistry([
        StaticCheck('alpha', apis=['Lambda:listFunctions', 'IAM:listRoles'],
                    compliance={'hipaa': 'HIPAA text'}),
        StaticCheck('beta', apis=['IAM:listRoles', 'S3:listBuckets'],
                    apis_remediate=['S3:getPublicAccessBlock'],
                    compliance={'pci': 'PCI text'}),
        StaticCheck('gamma', apis=['EC2:describeSecurityGroups'],
                    account_scopes=['organization']),
    ])


def test_all_checks_selected_without_filter(registry):
    plan = plan_api_calls(registry, SelectionFilter())

    assert [check.check_id for check in plan.selected] == ['alpha', 'beta', 'gamma']
    assert plan.api_calls == ['Lambda:listFunctions', 'IAM:listRoles',
                              'S3:listBuckets', 'EC2:describeSecurityGroups']
    assert plan.skipped == []


def test_api_calls_cover_every_selected_check(registry):
    plan = plan_api_calls(registry, SelectionFilter())

    assert len(plan.api_calls) == len(set(plan.api_calls))
    for check in plan.selected:
        assert set(check.apis) <= set(plan.api_calls)


def test_remediation_apis_only_when_requested(registry):
    plan = plan_api_calls(registry, SelectionFilter())
    assert 'S3:getPublicAccessBlock' not in plan.api_calls

    plan = plan_api_calls(registry, SelectionFilter(), remediate_ids=['beta'])
    assert plan.api_calls == ['Lambda:listFunctions', 'IAM:listRoles', 'S3:listBuckets',
                              'S3:getPublicAccessBlock', 'EC2:describeSecurityGroups']

    plan = plan_api_calls(registry, SelectionFilter(), remediate_ids=['alpha'])
    assert 'S3:getPublicAccessBlock' not in plan.api_calls


def test_single_plugin(registry):
    plan = plan_api_calls(registry, SelectionFilter(plugin='beta'))

    assert [check.check_id for check in plan.selected] == ['beta']
    assert plan.api_calls == ['IAM:listRoles', 'S3:listBuckets']
    assert plan.skipped == ['alpha', 'gamma']


def test_invalid_plugin(registry):
    with pytest.raises(NoWorkError, match="Invalid plugin: missing"):
        plan_api_calls(registry, SelectionFilter(plugin='missing'))


def test_compliance_filter(registry):
    plan = plan_api_calls(registry, SelectionFilter(compliance=('pci',)))
    assert [check.check_id for check in plan.selected] == ['beta']

    plan = plan_api_calls(registry, SelectionFilter(compliance=('pci', 'hipaa')))
    assert [check.check_id for check in plan.selected] == ['alpha', 'beta']


def test_compliance_filter_with_no_match(registry):
    with pytest.raises(NoWorkError):
        plan_api_calls(registry, SelectionFilter(compliance=('cis',)))


def test_account_type_filter(registry):
    plan = plan_api_calls(registry, SelectionFilter(account_type='organization'))
    assert [check.check_id for check in plan.selected] == ['alpha', 'beta', 'gamma']

    # Checks without declared scopes apply to every account type
    plan = plan_api_calls(registry, SelectionFilter(account_type='single'))
    assert [check.check_id for check in plan.selected] == ['alpha', 'beta']


def test_check_without_apis_is_still_selected():
    registry = CheckRegistry([StaticCheck('static')])

    plan = plan_api_calls(registry, SelectionFilter())

    assert plan.api_calls == []
    assert [check.check_id for check in plan.selected] == ['static']


def test_skipped_checks_logged(registry, caplog):
    with caplog.at_level(logging.DEBUG, logger='posture_scanner.core.planner'):
        plan_api_calls(registry, SelectionFilter(plugin='alpha'))

    assert "Skipping check Check beta" in caplog.text
    assert "Skipping check Check gamma" in caplog.text


def test_selection_from_settings():
    settings = ScanSettings(plugin='alpha', compliance=['pci'], account_type='organization')

    selection = SelectionFilter.from_settings(settings)

    assert selection.plugin == 'alpha'
    assert selection.compliance == ('pci',)
    assert selection.account_type == 'organization'


def test_empty_registry():
    with pytest.raises(NoWorkError):
        plan_api_calls(CheckRegistry([]), SelectionFilter())
