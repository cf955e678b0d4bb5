"""
Registry for managing security checks
"""

from typing import Dict, Iterator, List, Optional
from .framework import SecurityCheck


class CheckRegistry:
    """Registry for managing security checks"""

    def __init__(self, checks: List[SecurityCheck] = None):
        self.checks: Dict[str, SecurityCheck] = {}
        if checks is None:
            self._register_default_checks()
        else:
            for check in checks:
                self.register_check(check)

    def _register_default_checks(self):
        """Register the bundled check catalog"""
        from ..checks import default_checks

        for check in default_checks():
            self.register_check(check)

    def register_check(self, check: SecurityCheck):
        """Register a security check"""
        if not check.check_id:
            raise ValueError(f"{check!r} has no check_id")
        if check.check_id in self.checks:
            raise ValueError(f"Duplicate check id: {check.check_id}")
        self.checks[check.check_id] = check

    def get_check(self, check_id: str) -> Optional[SecurityCheck]:
        """Get a specific check by ID"""
        return self.checks.get(check_id)

    def __contains__(self, check_id: str) -> bool:
        return check_id in self.checks

    def __iter__(self) -> Iterator[SecurityCheck]:
        return iter(list(self.checks.values()))

    def __len__(self):
        return len(self.checks)
