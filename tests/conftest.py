"""
Shared fixtures for the posture scanner tests
"""

import pytest

from posture_scanner.core.framework import SecurityCheck
from posture_scanner.core.output import OutputHandler
from posture_scanner.core.settings import ScanSettings
from posture_scanner.core.snapshot import Snapshot


class StaticCheck(SecurityCheck):
    """Check that returns a fixed list of (status, message, region, resource) tuples"""

    def __init__(self, check_id, results=(), apis=(), compliance=None, **attrs):
        super().__init__()
        self.check_id = check_id
        self.title = attrs.pop('title', f"Check {check_id}")
        self.category = attrs.pop('category', 'Test')
        self.apis = list(apis)
        self.compliance = compliance or {}
        self.canned = list(results)
        self.calls = 0
        for name, value in attrs.items():
            setattr(self, name, value)

    def run(self, snapshot, settings):
        self.calls += 1
        results = []
        for status, message, *location in self.canned:
            self.add_result(results, status, message, *location)
        return results


class RecordingOutput(OutputHandler):
    """Output handler that keeps everything it is given"""

    def __init__(self):
        self.collections = []
        self.written = []
        self.closed = False

    def write_collection(self, snapshot, cloud='aws'):
        self.collections.append(snapshot)

    def write_result(self, result, check, compliance=None):
        self.written.append((check.check_id, result, compliance))

    def close(self):
        self.closed = True

    @property
    def calls(self):
        return len(self.collections) + len(self.written) + int(self.closed)


@pytest.fixture
def settings():
    return ScanSettings(regions=['us-east-1'])


@pytest.fixture
def empty_snapshot():
    return Snapshot()


def entry(data=None, error=None):
    return {'error': error, 'data': data}


@pytest.fixture
def make_check():
    return StaticCheck


@pytest.fixture
def recording_output():
    return RecordingOutput()
