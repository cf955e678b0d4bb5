"""
Read-only view over collected provider metadata
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional


@dataclass(frozen=True)
class SnapshotEntry:
    """Outcome of one collected API call"""
    error: Any = None
    data: Any = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.data is not None

    def describe_error(self) -> str:
        """Short description of why this entry has no usable data"""
        if self.error is None:
            return "No data returned"
        if isinstance(self.error, Mapping) and self.error.get("message"):
            return str(self.error["message"])
        return str(self.error)


def describe_missing(entry: Optional[SnapshotEntry]) -> str:
    if entry is None:
        return "No data returned"
    return entry.describe_error()


class Snapshot:
    """Nested ``service -> action -> region [-> key]`` mapping of results.

    The collector writes the mapping once; afterwards it is shared by every
    running check and never modified.
    """

    def __init__(self, collection: Mapping[str, Any] = None):
        self._collection = MappingProxyType(dict(collection or {}))

    @staticmethod
    def _normalize(name: str) -> str:
        return name[:1].lower() + name[1:] if name else name

    def _node(self, service: str, action: str, region: str):
        actions = self._collection.get(service.lower())
        if not isinstance(actions, Mapping):
            return None
        regions = actions.get(self._normalize(action))
        if not isinstance(regions, Mapping):
            return None
        return regions.get(region)

    def get(self, service: str, action: str, region: str,
            key: str = None) -> Optional[SnapshotEntry]:
        """Return the entry for a call, or None when it was never collected"""
        node = self._node(service, action, region)
        if key is not None and isinstance(node, Mapping):
            node = node.get(key)
        if not isinstance(node, Mapping):
            return None
        return SnapshotEntry(error=node.get("error"), data=node.get("data"))

    def regions(self, service: str, action: str) -> List[str]:
        """Regions for which a call was collected"""
        actions = self._collection.get(service.lower()) or {}
        return list((actions.get(self._normalize(action)) or {}).keys())

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._collection)

    def __len__(self):
        return len(self._collection)

    def __bool__(self):
        return bool(self._collection)
