"""
Result suppression rules
"""

import re
from typing import Iterable, List, Pattern

from .framework import ANY


def suppression_key(check_id: str, region: str = None, resource: str = None) -> str:
    """Build the ``check:region:resource`` key a rule is matched against"""
    return ':'.join([check_id, region or ANY, resource or ANY])


class SuppressionFilter:
    """Matches result keys against ``check:region:resource`` rules.

    ``*`` matches any run of characters, so ``myCheck:*:*`` silences every
    result of ``myCheck`` and ``*:us-east-1:*`` silences a whole region.
    """

    def __init__(self, rules: Iterable[str] = None):
        self.rules: List[str] = [rule.strip() for rule in (rules or []) if rule and rule.strip()]
        self._patterns: List[Pattern] = [self._compile(rule) for rule in self.rules]

    @staticmethod
    def _compile(rule: str) -> Pattern:
        parts = [re.escape(part) for part in rule.split('*')]
        return re.compile('^' + '.*'.join(parts) + '$')

    def __call__(self, key: str) -> bool:
        return any(pattern.match(key) for pattern in self._patterns)

    def is_suppressed(self, check_id: str, region: str = None, resource: str = None) -> bool:
        return self(suppression_key(check_id, region, resource))

    def __bool__(self):
        return bool(self._patterns)
