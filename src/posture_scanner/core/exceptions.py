"""
Scanner error taxonomy
"""


class ScannerError(Exception):
    """Base class for all scanner errors"""


class NoWorkError(ScannerError):
    """The selection left nothing to scan"""


class CollectorError(ScannerError):
    """Provider metadata could not be collected"""


class CheckExecutionError(ScannerError):
    """A check raised or timed out"""

    def __init__(self, check_id: str, message: str):
        super().__init__(f"{check_id}: {message}")
        self.check_id = check_id


class AlternateRuntimeResolutionError(ScannerError):
    """No alternate runtime is registered for the requested version"""

    def __init__(self, version: str):
        super().__init__(f"ASL: Wrong ASL Version: {version}")
        self.version = version


class RemediationError(ScannerError):
    """A remediation or rollback attempt failed"""
