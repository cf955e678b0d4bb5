"""
Tests for metadata collection, using moto to mock AWS
"""

import json

import boto3
import pytest
from moto import mock_aws

from posture_scanner.checks.s3 import S3BucketPublicReadCheck
from posture_scanner.core.collector import AWSCollector, StaticCollector, split_call
from posture_scanner.core.exceptions import CollectorError
from posture_scanner.core.framework import Status
from posture_scanner.core.provider import AWSProvider
from posture_scanner.core.settings import ScanSettings

TRUST_POLICY = json.dumps({
    "Version": "2012-10-17",
    "Statement": [{"Effect": "Allow", "Principal": {"Service": "lambda.amazonaws.com"},
                   "Action": "sts:AssumeRole"}],
})


@pytest.fixture
def aws_credentials(monkeypatch):
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def collector(aws_credentials):
    with mock_aws():
        yield AWSCollector(AWSProvider(region='us-east-1'), max_workers=4)


def test_split_call():
    assert split_call('IAM:listRoles') == ('IAM', 'listRoles')
    with pytest.raises(ValueError):
        split_call('listRoles')


def test_malformed_call_becomes_collector_error(collector):
    with pytest.raises(CollectorError):
        collector.collect(['nonsense'], ScanSettings(regions=['us-east-1']))


def test_global_calls_stored_under_default_region(collector):
    iam = boto3.client('iam', region_name='us-east-1')
    iam.create_role(RoleName='tagged', AssumeRolePolicyDocument=TRUST_POLICY,
                    Tags=[{'Key': 'team', 'Value': 'security'}])
    iam.create_role(RoleName='bare', AssumeRolePolicyDocument=TRUST_POLICY)

    snapshot = collector.collect(['IAM:getRole'], ScanSettings(regions=['eu-west-1', 'us-west-2']))

    roles = snapshot.get('iam', 'listRoles', 'us-east-1')
    assert sorted(role['RoleName'] for role in roles.data) == ['bare', 'tagged']
    assert snapshot.get('iam', 'listRoles', 'eu-west-1') is None
    tagged = snapshot.get('iam', 'getRole', 'us-east-1', 'tagged')
    assert tagged.ok
    assert tagged.data['Role']['Tags'] == [{'Key': 'team', 'Value': 'security'}]


def test_regional_calls_per_region(collector):
    snapshot = collector.collect(['EC2:describeSecurityGroups'],
                                 ScanSettings(regions=['us-east-1', 'eu-west-1']))

    assert sorted(snapshot.regions('ec2', 'describeSecurityGroups')) == ['eu-west-1', 'us-east-1']
    for region in ('us-east-1', 'eu-west-1'):
        groups = snapshot.get('ec2', 'describeSecurityGroups', region)
        assert groups.ok
        assert any(group['GroupName'] == 'default' for group in groups.data)


def test_errors_are_recorded_not_raised(collector):
    s3 = boto3.client('s3', region_name='us-east-1')
    s3.create_bucket(Bucket='no-policy')

    snapshot = collector.collect(['S3:getBucketPolicy'], ScanSettings(regions=['us-east-1']))

    policy = snapshot.get('s3', 'getBucketPolicy', 'us-east-1', 'no-policy')
    assert policy.error['code'] == 'NoSuchBucketPolicy'
    assert policy.data is None


def test_public_bucket_found_end_to_end(collector):
    s3 = boto3.client('s3', region_name='us-east-1')
    s3.create_bucket(Bucket='public-bucket')
    s3.put_bucket_acl(Bucket='public-bucket', ACL='public-read')
    s3.create_bucket(Bucket='private-bucket')
    check = S3BucketPublicReadCheck()
    settings = ScanSettings(regions=['us-east-1'])

    results = check.run(collector.collect(check.apis, settings), settings)

    statuses = {r.resource: r.status for r in results}
    assert statuses == {'arn:aws:s3:::public-bucket': Status.FAIL,
                        'arn:aws:s3:::private-bucket': Status.OK}


def test_static_collector_from_file(tmp_path):
    path = tmp_path / 'collection.json'
    path.write_text(json.dumps({'sts': {'getCallerIdentity': {'us-east-1': {
        'error': None, 'data': {'Account': '123456789012'}}}}}))

    snapshot = StaticCollector.from_file(str(path)).collect([], None)

    assert snapshot.get('STS', 'GetCallerIdentity', 'us-east-1').data['Account'] == '123456789012'


def test_static_collector_bad_file(tmp_path):
    path = tmp_path / 'broken.json'
    path.write_text('{not json')

    with pytest.raises(CollectorError):
        StaticCollector.from_file(str(path))
