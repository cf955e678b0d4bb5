"""Bundled security check catalog"""

from typing import List

from ..core.framework import SecurityCheck
from .awslambda import LambdaMissingExecutionRoleCheck, LambdaMultipleRoleCheck, LambdaOldRuntimesCheck
from .ec2 import EC2SecurityGroupOpenPortsCheck
from .iam import IAMRoleHasTagsCheck, IAMUserWithoutMFACheck
from .s3 import S3BucketPublicReadCheck


def default_checks() -> List[SecurityCheck]:
    """Fresh instances of every bundled check, in catalog order"""
    return [
        EC2SecurityGroupOpenPortsCheck(),
        IAMRoleHasTagsCheck(),
        IAMUserWithoutMFACheck(),
        LambdaMissingExecutionRoleCheck(),
        LambdaMultipleRoleCheck(),
        LambdaOldRuntimesCheck(),
        S3BucketPublicReadCheck(),
    ]


__all__ = [
    "default_checks",
    "EC2SecurityGroupOpenPortsCheck",
    "IAMRoleHasTagsCheck",
    "IAMUserWithoutMFACheck",
    "LambdaMissingExecutionRoleCheck",
    "LambdaMultipleRoleCheck",
    "LambdaOldRuntimesCheck",
    "S3BucketPublicReadCheck",
]
