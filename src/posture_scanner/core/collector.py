"""
Provider metadata collection

Turns ``Service:action`` call identifiers into the nested collection the
checks read from. Calls that need a parent item (``Lambda:getFunction`` needs
every function from ``Lambda:listFunctions``) are collected once per item and
stored under the item's key.
"""

import json
import logging
import concurrent.futures
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from botocore import xform_name
from botocore.exceptions import BotoCoreError, ClientError

from .exceptions import CollectorError
from .provider import AWSProvider
from .snapshot import Snapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallSpec:
    """How to issue one API call and where its data lives in the response"""
    result_key: Optional[str] = None
    global_service: bool = False
    depends_on: Optional[str] = None
    parent_field: Optional[str] = None
    param: Optional[str] = None


CALL_SPECS: Dict[str, CallSpec] = {
    'Lambda:listFunctions': CallSpec('Functions'),
    'Lambda:getFunction': CallSpec(None, False, 'Lambda:listFunctions', 'FunctionName', 'FunctionName'),
    'IAM:listRoles': CallSpec('Roles', True),
    'IAM:getRole': CallSpec(None, True, 'IAM:listRoles', 'RoleName', 'RoleName'),
    'IAM:listRoleTags': CallSpec('Tags', True, 'IAM:listRoles', 'RoleName', 'RoleName'),
    'IAM:listUsers': CallSpec('Users', True),
    'IAM:listMFADevices': CallSpec('MFADevices', True, 'IAM:listUsers', 'UserName', 'UserName'),
    'IAM:getLoginProfile': CallSpec('LoginProfile', True, 'IAM:listUsers', 'UserName', 'UserName'),
    'S3:listBuckets': CallSpec('Buckets', True),
    'S3:getBucketAcl': CallSpec(None, True, 'S3:listBuckets', 'Name', 'Bucket'),
    'S3:getBucketPolicy': CallSpec('Policy', True, 'S3:listBuckets', 'Name', 'Bucket'),
    'S3:getPublicAccessBlock': CallSpec('PublicAccessBlockConfiguration', True, 'S3:listBuckets', 'Name', 'Bucket'),
    'EC2:describeSecurityGroups': CallSpec('SecurityGroups'),
    'STS:getCallerIdentity': CallSpec(None, True),
}


def split_call(api_call: str):
    service, _, action = api_call.partition(':')
    if not service or not action:
        raise ValueError(f"Malformed API call identifier: {api_call}")
    return service, action


class Collector:
    """Collector boundary: API call identifiers in, snapshot out"""

    def collect(self, api_calls: List[str], settings) -> Snapshot:
        raise NotImplementedError


class StaticCollector(Collector):
    """Serves a collection gathered earlier, e.g. loaded from a JSON file"""

    def __init__(self, collection: Dict[str, Any]):
        self.collection = collection

    @classmethod
    def from_file(cls, path: str) -> 'StaticCollector':
        try:
            with open(Path(path), 'r', encoding='utf-8') as f:
                return cls(json.load(f))
        except (OSError, ValueError) as e:
            raise CollectorError(f"Unable to load collection from {path}: {e}") from e

    def collect(self, api_calls: List[str], settings) -> Snapshot:
        return Snapshot(self.collection)


class AWSCollector(Collector):
    """Collects AWS API metadata with boto3"""

    def __init__(self, provider: AWSProvider, max_workers: int = 10):
        self.provider = provider
        self.max_workers = max_workers

    @staticmethod
    def _error(e: Exception) -> Dict[str, Any]:
        if isinstance(e, ClientError):
            error = e.response.get('Error', {})
            return {'code': error.get('Code'), 'message': error.get('Message', str(e))}
        return {'code': e.__class__.__name__, 'message': str(e)}

    def _call(self, service: str, action: str, region: str, spec: CallSpec,
              params: Dict[str, Any], paginate: bool) -> Dict[str, Any]:
        try:
            client = self.provider.get_client(service.lower(), region)
            method = xform_name(action)
            if paginate and spec.result_key and client.can_paginate(method):
                response = client.get_paginator(method).paginate(**params).build_full_result()
            else:
                response = getattr(client, method)(**params)
        except (BotoCoreError, ClientError, AttributeError) as e:
            logger.debug(f"{service}:{action} failed in {region}: {e}")
            return {'error': self._error(e), 'data': None}

        response.pop('ResponseMetadata', None)
        data = response.get(spec.result_key) if spec.result_key else response
        return {'error': None, 'data': data}

    def _ordered(self, api_calls: List[str]) -> List[str]:
        """Put parent calls ahead of the calls that depend on them"""
        ordered = []

        def visit(call):
            if call in ordered:
                return
            parent = CALL_SPECS.get(call, CallSpec()).depends_on
            if parent:
                visit(parent)
            ordered.append(call)

        for call in api_calls:
            visit(call)
        return ordered

    def _collect_call(self, api_call: str, regions: List[str], collection: Dict[str, Any],
                      paginate: bool, executor):
        service, action = split_call(api_call)
        spec = CALL_SPECS.get(api_call, CallSpec())
        target = collection.setdefault(service.lower(), {}).setdefault(action, {})

        futures = {}
        for region in regions:
            if not spec.depends_on:
                futures[executor.submit(self._call, service, action, region, spec, {}, paginate)] = (region, None)
                continue

            parent_service, parent_action = split_call(spec.depends_on)
            parent = collection.get(parent_service.lower(), {}).get(parent_action, {}).get(region)
            if not parent or parent.get('error') or not parent.get('data'):
                continue
            for item in parent['data']:
                key = item.get(spec.parent_field) if isinstance(item, dict) else None
                if not key:
                    continue
                futures[executor.submit(self._call, service, action, region, spec,
                                        {spec.param: key}, paginate)] = (region, key)

        for future in concurrent.futures.as_completed(futures):
            region, key = futures[future]
            if key is None:
                target[region] = future.result()
            else:
                target.setdefault(region, {})[key] = future.result()

    def collect(self, api_calls: List[str], settings) -> Snapshot:
        """Collect every call across the configured regions"""
        collection: Dict[str, Any] = {}
        paginate = not settings.skip_paginate

        with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            for api_call in self._ordered(api_calls):
                spec = CALL_SPECS.get(api_call, CallSpec())
                regions = [settings.default_region] if spec.global_service else list(settings.regions)
                try:
                    self._collect_call(api_call, regions, collection, paginate, executor)
                except ValueError as e:
                    raise CollectorError(str(e)) from e

        return Snapshot(collection)
