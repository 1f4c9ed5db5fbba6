"""
Record Store contract
Keyed, queryable document store shared by the local and remote variants.
"""

import copy
import logging
import operator
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from dataclasses import dataclass
from collections import defaultdict

from errors import ConnectivityError, RecordNotFoundError
from tools.records import encode_payload


logger = logging.getLogger(__name__)


OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


@dataclass(frozen=True)
class Filter:
    """Equality / range predicate on one document field"""
    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in OPERATORS:
            raise ValueError(f"Unsupported filter operator: {self.op}")

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "op": self.op, "value": encode_payload(self.value)}


def where(field: str, op: str, value: Any) -> Filter:
    return Filter(field, op, value)


class RecordStore(ABC):
    """
    Document-oriented key/value store

    Both the device-local store and the remote store honour this contract.
    Any call on a remote variant may raise ConnectivityError.
    """

    @abstractmethod
    async def get(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Fetch one document or None"""

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Documents matching every filter"""

    @abstractmethod
    async def upsert(self, collection: str, record_id: str, payload: Dict[str, Any]) -> None:
        """Create or fully replace the document with this id"""

    @abstractmethod
    async def delete(self, collection: str, record_id: str) -> None:
        """Remove a document; deleting a missing id is a no-op"""

    async def require(self, collection: str, record_id: str) -> Dict[str, Any]:
        """get() that raises RecordNotFoundError instead of returning None"""
        record = await self.get(collection, record_id)
        if record is None:
            raise RecordNotFoundError(collection, record_id)
        return record


class InMemoryRecordStore(RecordStore):
    """
    Dict-backed store

    Values are held in JSON form (datetimes as ISO strings), the same shape a
    document database hands back. Setting ``online = False`` makes every call
    raise ConnectivityError, which is how tests simulate a dropped network.
    """

    def __init__(self, online: bool = True):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = defaultdict(dict)
        self.online = online
        self.calls: List[Tuple[str, str, Optional[str]]] = []

    def _check_online(self, method: str, collection: str, record_id: Optional[str] = None):
        self.calls.append((method, collection, record_id))
        if not self.online:
            raise ConnectivityError(f"Store unreachable during {method} {collection}")

    async def get(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        self._check_online("get", collection, record_id)
        record = self._collections[collection].get(record_id)
        return copy.deepcopy(record) if record is not None else None

    async def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        self._check_online("query", collection)
        encoded = [(f.field, OPERATORS[f.op], encode_payload(f.value)) for f in filters]

        def matches(doc: Dict[str, Any]) -> bool:
            for field_name, op, value in encoded:
                current = doc.get(field_name)
                if current is None and value is not None:
                    return False
                try:
                    if not op(current, value):
                        return False
                except TypeError:
                    return False
            return True

        results = [copy.deepcopy(d) for d in self._collections[collection].values() if matches(d)]

        if order_by:
            # Documents without the field sort last in either direction
            present = [d for d in results if d.get(order_by) is not None]
            missing = [d for d in results if d.get(order_by) is None]
            present.sort(key=lambda d: d[order_by], reverse=descending)
            results = present + missing
        if limit is not None:
            results = results[:limit]
        return results

    async def upsert(self, collection: str, record_id: str, payload: Dict[str, Any]) -> None:
        self._check_online("upsert", collection, record_id)
        document = encode_payload(dict(payload))
        document["id"] = record_id
        self._collections[collection][record_id] = document

    async def delete(self, collection: str, record_id: str) -> None:
        self._check_online("delete", collection, record_id)
        self._collections[collection].pop(record_id, None)

    def snapshot(self, collection: str) -> Dict[str, Dict[str, Any]]:
        """Copy of a whole collection, for assertions"""
        return copy.deepcopy(self._collections[collection])
