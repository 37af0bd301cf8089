"""
Entity store interface and an in-memory implementation.

The importer and exporter only ever talk to a store through four calls:
    find_one(kind, **criteria)
    find_all(kind, order_by=None, **criteria)
    save(record) -> bool
    delete_all(kind, **criteria) -> int

Criteria are equality tests joined with AND. A host application adapts
its own persistence layer to EntityStore; InMemoryStore is used by the
tests, the demo script and callers without a database.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Sequence, Type, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")
OrderBy = Union[None, str, Sequence[str]]


class EntityStore(ABC):
    """Persistence collaborator used by the import and export engines."""

    #: Validation messages of the most recent failed save()
    last_errors: List[str]

    @abstractmethod
    def find_one(self, kind: Type[T], **criteria: Any) -> Optional[T]:
        """Return the first record of kind matching criteria, or None."""

    @abstractmethod
    def find_all(self, kind: Type[T], order_by: OrderBy = None, **criteria: Any) -> List[T]:
        """Return every record of kind matching criteria."""

    @abstractmethod
    def save(self, record: Any) -> bool:
        """Insert or update a record. Returns False if it fails validation."""

    @abstractmethod
    def delete_all(self, kind: Type[Any], **criteria: Any) -> int:
        """Delete matching records and return how many were removed."""


class InMemoryStore(EntityStore):
    """
    Dictionary-backed EntityStore.

    Records are copied on the way in and on the way out, so a caller
    mutating a record it found sees no effect until it calls save().
    Surrogate keys are assigned sequentially per kind on first save.
    """

    def __init__(self):
        self._tables: Dict[type, Dict[int, Any]] = {}
        self._next_id: Dict[type, int] = {}
        self.last_errors: List[str] = []

    # ========================================================================
    # EntityStore API
    # ========================================================================

    def find_one(self, kind, **criteria):
        for record in self._scan(kind, criteria):
            return replace(record)
        return None

    def find_all(self, kind, order_by=None, **criteria):
        records = [replace(r) for r in self._scan(kind, criteria)]
        if order_by:
            fields = (order_by,) if isinstance(order_by, str) else tuple(order_by)
            pk = kind.PRIMARY_KEY
            records.sort(key=lambda r: tuple(getattr(r, f) for f in fields) + (getattr(r, pk),))
        return records

    def save(self, record) -> bool:
        errors = record.validate()
        if errors:
            self.last_errors = list(errors)
            logger.debug("Rejected %s: %s", type(record).__name__, "; ".join(errors))
            return False
        self.last_errors = []

        kind = type(record)
        pk = kind.PRIMARY_KEY
        table = self._tables.setdefault(kind, {})
        key = getattr(record, pk)
        if key is None:
            key = self._allocate_id(kind)
            setattr(record, pk, key)
        else:
            self._next_id[kind] = max(self._next_id.get(kind, 1), key + 1)
        table[key] = replace(record)
        return True

    def delete_all(self, kind, **criteria) -> int:
        table = self._tables.get(kind, {})
        doomed = [getattr(r, kind.PRIMARY_KEY) for r in self._scan(kind, criteria)]
        for key in doomed:
            del table[key]
        return len(doomed)

    # ========================================================================
    # Convenience
    # ========================================================================

    def get(self, kind: Type[T], key: int) -> Optional[T]:
        """Fetch by surrogate key."""
        record = self._tables.get(kind, {}).get(key)
        return None if record is None else replace(record)

    def count(self, kind: Type[Any], **criteria: Any) -> int:
        return sum(1 for _ in self._scan(kind, criteria))

    def kinds(self) -> List[type]:
        return [k for k, table in self._tables.items() if table]

    def load(self, records: Iterable[Any]) -> None:
        """Insert records keeping their surrogate keys (used by deserialization)."""
        for record in records:
            if not self.save(record):
                raise ValueError(
                    f"Cannot load {type(record).__name__}: {'; '.join(self.last_errors)}"
                )

    # ========================================================================
    # Internal
    # ========================================================================

    def _allocate_id(self, kind: type) -> int:
        key = self._next_id.get(kind, 1)
        self._next_id[kind] = key + 1
        return key

    def _scan(self, kind, criteria):
        table = self._tables.get(kind, {})
        for key in sorted(table):
            record = table[key]
            if all(getattr(record, name) == value for name, value in criteria.items()):
                yield record


__all__ = ["EntityStore", "InMemoryStore"]
