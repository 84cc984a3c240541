"""In-memory keyed record store.

Stands in for the device database and the hosted tables the reminder engine
reads from. Records are dataclasses carrying an ``id`` attribute and are
grouped into named collections. The engine only relies on single-record
create/read/update/delete plus simple filtered listing, so any persistence
backend offering those can replace this class.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, List, Optional

from core.errors import NotFoundError, StoreError


class RecordStore:
    """Simple mutable record repository keyed by collection and id."""

    def __init__(self) -> None:
        self._collections: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------
    def create(self, collection: str, record: Any) -> Any:
        with self._lock:
            table = self._collections.setdefault(collection, {})
            if record.id in table:
                raise StoreError(f"{collection} record {record.id} already exists")
            table[record.id] = record
            return record

    def get(self, collection: str, record_id: str) -> Optional[Any]:
        with self._lock:
            return self._collections.get(collection, {}).get(record_id)

    def require(self, collection: str, record_id: str) -> Any:
        record = self.get(collection, record_id)
        if record is None:
            raise NotFoundError(f"{collection} record {record_id} not found")
        return record

    def update(self, collection: str, record: Any) -> Any:
        with self._lock:
            table = self._collections.get(collection, {})
            if record.id not in table:
                raise NotFoundError(f"{collection} record {record.id} not found")
            table[record.id] = record
            return record

    def delete(self, collection: str, record_id: str) -> bool:
        with self._lock:
            return self._collections.get(collection, {}).pop(record_id, None) is not None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def list(self, collection: str, where: Optional[Callable[[Any], bool]] = None) -> List[Any]:
        with self._lock:
            records = list(self._collections.get(collection, {}).values())
        if where is None:
            return records
        return [record for record in records if where(record)]


record_store = RecordStore()
"""Module-level singleton used by the API routes."""
