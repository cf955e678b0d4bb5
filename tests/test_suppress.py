"""
Tests for result suppression rules
"""

from posture_scanner.core.suppress import SuppressionFilter, suppression_key


def test_key_substitutes_any():
    assert suppression_key('check') == 'check:any:any'
    assert suppression_key('check', 'us-east-1', None) == 'check:us-east-1:any'
    assert suppression_key('check', 'us-east-1', 'arn:aws:s3:::b') == 'check:us-east-1:arn:aws:s3:::b'


def test_exact_rule():
    suppression = SuppressionFilter(['check:us-east-1:res'])

    assert suppression('check:us-east-1:res')
    assert not suppression('check:us-east-1:res2')
    assert not suppression('other:us-east-1:res')


def test_wildcard_rules():
    suppression = SuppressionFilter(['check:*:*', '*:eu-west-1:*'])

    assert suppression.is_suppressed('check', 'us-east-1', 'anything')
    assert suppression.is_suppressed('other', 'eu-west-1', 'arn:aws:lambda:eu-west-1:1:function:f')
    assert not suppression.is_suppressed('other', 'us-east-1', 'res')


def test_rule_metacharacters_are_literal():
    suppression = SuppressionFilter(['check:us-east-1:arn:aws:s3:::my.bucket'])

    assert suppression('check:us-east-1:arn:aws:s3:::my.bucket')
    assert not suppression('check:us-east-1:arn:aws:s3:::myxbucket')


def test_matching_is_idempotent():
    suppression = SuppressionFilter(['check:*:res-*'])
    key = suppression_key('check', 'us-west-2', 'res-1')

    assert suppression(key) == suppression(key) is True


def test_empty_rules():
    suppression = SuppressionFilter(['', '  '])

    assert not suppression
    assert not suppression('check:any:any')
