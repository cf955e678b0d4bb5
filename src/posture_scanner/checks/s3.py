"""
S3 security checks
"""

import json
from typing import List

from ..core.exceptions import RemediationError
from ..core.framework import Capability, Result, SecurityCheck
from ..core.snapshot import describe_missing

PUBLIC_GROUPS = ('AllUsers', 'AuthenticatedUsers')

BLOCK_ALL_PUBLIC_ACCESS = {
    'BlockPublicAcls': True,
    'IgnorePublicAcls': True,
    'BlockPublicPolicy': True,
    'RestrictPublicBuckets': True,
}


def acl_is_public(acl: dict) -> bool:
    """True if a bucket ACL grants read to everyone or to any AWS user"""
    for grant in acl.get('Grants', []):
        grantee = grant.get('Grantee', {})
        if grantee.get('Type') != 'Group':
            continue
        uri = grantee.get('URI', '') or ''
        if any(group in uri for group in PUBLIC_GROUPS) and \
                grant.get('Permission') in ('READ', 'FULL_CONTROL'):
            return True
    return False


def policy_is_public(policy_text: str) -> bool:
    """True if a bucket policy allows any principal"""
    try:
        policy = json.loads(policy_text)
    except (TypeError, ValueError):
        return False

    statements = policy.get('Statement', [])
    if isinstance(statements, dict):
        statements = [statements]
    for statement in statements:
        if statement.get('Effect') != 'Allow' or statement.get('Condition'):
            continue
        principal = statement.get('Principal')
        if principal == '*':
            return True
        if isinstance(principal, dict) and principal.get('AWS') in ('*', ['*']):
            return True
    return False


class S3BucketPublicReadCheck(SecurityCheck):
    """Check for S3 buckets with public read access"""

    check_id = "s3_bucket_public_read"
    title = "S3 buckets should not allow public read access"
    category = "S3"
    domain = "Storage"
    severity = "High"
    description = "Ensures S3 bucket ACLs and policies do not grant read access to everyone."
    more_info = "Public buckets are a common cause of data exposure."
    recommended_action = "Remove public grants and enable S3 Block Public Access on the bucket."
    apis = ['S3:listBuckets', 'S3:getBucketAcl', 'S3:getBucketPolicy']
    apis_remediate = ['S3:getPublicAccessBlock']
    compliance = {
        'cis': 'CIS 2.1.5 requires S3 buckets to be configured with Block Public Access.',
        'pci': 'PCI requires that cardholder data is not publicly readable.',
        'hipaa': 'HIPAA requires PHI to be protected from unauthorized access.',
    }
    capabilities = frozenset({Capability.RUN, Capability.REMEDIATE, Capability.ROLLBACK})
    remediation_description = "Enables S3 Block Public Access on the bucket."
    actions = {
        'remediate': ['s3:putPublicAccessBlock'],
        'rollback': ['s3:putPublicAccessBlock', 's3:deletePublicAccessBlock'],
    }
    permissions = {
        'remediate': ['s3:PutBucketPublicAccessBlock'],
        'rollback': ['s3:PutBucketPublicAccessBlock'],
    }

    def run(self, snapshot, settings) -> List[Result]:
        results = []
        region = settings.default_region

        list_buckets = snapshot.get('s3', 'listBuckets', region)
        if list_buckets is None:
            return results

        if list_buckets.error or list_buckets.data is None:
            self.add_result(results, 3, f"Unable to query for S3 buckets: {list_buckets.describe_error()}", region)
            return results

        if not list_buckets.data:
            self.add_result(results, 0, 'No S3 buckets found', region)
            return results

        for bucket in list_buckets.data:
            bucket_name = bucket.get('Name')
            if not bucket_name:
                continue
            resource = f"arn:aws:s3:::{bucket_name}"

            acl = snapshot.get('s3', 'getBucketAcl', region, bucket_name)
            if acl is None or acl.error or not acl.data:
                self.add_result(results, 3, f"Unable to query bucket ACL: {describe_missing(acl)}",
                                region, resource)
                continue

            public_read = acl_is_public(acl.data)

            # NoSuchBucketPolicy just means there is nothing to evaluate
            policy = snapshot.get('s3', 'getBucketPolicy', region, bucket_name)
            if policy is not None and policy.error is None and policy.data:
                public_read = public_read or policy_is_public(policy.data)

            if public_read:
                self.add_result(results, 2, 'Bucket allows public read access', region, resource)
            else:
                self.add_result(results, 0, 'Bucket does not allow public read access', region, resource)

        return results

    @staticmethod
    def _bucket_name(resource: str) -> str:
        return resource.split(':::')[-1]

    def remediate(self, config, snapshot, settings, resource):
        bucket_name = self._bucket_name(resource)
        region = settings['default_region']
        transaction = settings['remediation_file']

        current = snapshot.get('s3', 'getPublicAccessBlock', region, bucket_name)
        if current is not None and current.error is None and current.data:
            transaction.record_pre(PublicAccessBlockConfiguration=current.data)
        else:
            transaction.record_pre(PublicAccessBlockConfiguration=None)

        s3_client = config.get_client('s3', region)
        s3_client.put_public_access_block(
            Bucket=bucket_name,
            PublicAccessBlockConfiguration=BLOCK_ALL_PUBLIC_ACCESS
        )

        transaction.record_post(PublicAccessBlockConfiguration=BLOCK_ALL_PUBLIC_ACCESS)
        transaction.record_summary(Action='BlockPublicAccess', Bucket=bucket_name)
        return {'Bucket': bucket_name, 'action': self.actions['remediate']}

    def rollback(self, config, snapshot, settings, resource):
        bucket_name = self._bucket_name(resource)
        transaction = settings['remediation_file']
        pre_state = transaction.pre_state()
        if 'PublicAccessBlockConfiguration' not in pre_state:
            raise RemediationError(f"No pre-remediation state recorded for {resource}")

        s3_client = config.get_client('s3', settings['default_region'])
        previous = pre_state['PublicAccessBlockConfiguration']
        if previous:
            s3_client.put_public_access_block(Bucket=bucket_name,
                                              PublicAccessBlockConfiguration=previous)
        else:
            s3_client.delete_public_access_block(Bucket=bucket_name)
        self.logger.info(f"Restored public access settings of {bucket_name}")
