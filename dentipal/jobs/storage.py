"""
Marketplace storage layer.

Persistence is a key/item gateway over named collections, each with a
declared key schema. Engines only depend on the ``PersistenceGateway``
protocol; the backend provides a Supabase implementation and tests use
``InMemoryGateway``.
"""

import copy
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)

Item = Dict[str, Any]
Key = Dict[str, Any]


class StorageError(Exception):
    """A gateway call failed."""


class ConditionalCheckFailedError(StorageError):
    """A conditional put found an existing item under the same key."""


@dataclass(frozen=True)
class KeySchema:
    """Partition (and optional sort) attribute names of a collection."""

    partition: str
    sort: Optional[str] = None

    @property
    def attributes(self) -> Tuple[str, ...]:
        return (self.partition, self.sort) if self.sort else (self.partition,)

    def key_of(self, item: Item) -> Tuple[Any, ...]:
        try:
            return tuple(item[name] for name in self.attributes)
        except KeyError as exc:
            raise StorageError(f"Item is missing key attribute {exc.args[0]!r}") from None

    def key_dict(self, item: Item) -> Key:
        return {name: item[name] for name in self.attributes}


# Collection names
JOB_POSTINGS = "job_postings"
JOB_APPLICATIONS = "job_applications"
JOB_INVITATIONS = "job_invitations"
JOB_NEGOTIATIONS = "job_negotiations"
PROFESSIONAL_PROFILES = "professional_profiles"
CLINICS = "clinics"
CLINIC_PROFILES = "clinic_profiles"

KEY_SCHEMAS: Dict[str, KeySchema] = {
    JOB_POSTINGS: KeySchema("jobId"),
    JOB_APPLICATIONS: KeySchema("jobId", "professionalUserSub"),
    JOB_INVITATIONS: KeySchema("jobId", "professionalUserSub"),
    JOB_NEGOTIATIONS: KeySchema("applicationId", "negotiationId"),
    PROFESSIONAL_PROFILES: KeySchema("userSub"),
    CLINICS: KeySchema("clinicId"),
    CLINIC_PROFILES: KeySchema("clinicId", "userSub"),
}


def key_schema(collection: str) -> KeySchema:
    try:
        return KEY_SCHEMAS[collection]
    except KeyError:
        raise StorageError(f"Unknown collection: {collection}") from None


@dataclass
class BatchDeleteResult:
    """Outcome of one batch delete call."""

    deleted: int = 0
    failed_keys: List[Key] = field(default_factory=list)


class PersistenceGateway(Protocol):
    """Protocol for marketplace persistence backends."""

    def get(self, collection: str, key: Key) -> Optional[Item]:
        """Get one item by its full key."""
        ...

    def put(self, collection: str, item: Item, if_absent: bool = False) -> None:
        """Write an item (last write wins).

        With ``if_absent`` the write is conditional and raises
        ``ConditionalCheckFailedError`` if the key already exists.
        """
        ...

    def query(self, collection: str, where: Optional[Dict[str, Any]] = None) -> List[Item]:
        """List items whose attributes equal every value in ``where``."""
        ...

    def batch_get(self, collection: str, keys: List[Key]) -> List[Item]:
        """Get the items that exist among ``keys``."""
        ...

    def delete(self, collection: str, key: Key) -> bool:
        """Delete one item. Returns True if it existed."""
        ...

    def batch_delete(self, collection: str, keys: List[Key]) -> BatchDeleteResult:
        """Delete up to one batch of keys."""
        ...


class InMemoryGateway:
    """In-memory gateway for testing and local development."""

    def __init__(self):
        """Initialize empty storage."""
        self._data: Dict[str, Dict[Tuple[Any, ...], Item]] = {name: {} for name in KEY_SCHEMAS}
        self._lock = threading.Lock()

    def _table(self, collection: str) -> Dict[Tuple[Any, ...], Item]:
        key_schema(collection)
        return self._data[collection]

    # === Reads ===

    def get(self, collection: str, key: Key) -> Optional[Item]:
        table = self._table(collection)
        item = table.get(key_schema(collection).key_of(key))
        return copy.deepcopy(item) if item is not None else None

    def query(self, collection: str, where: Optional[Dict[str, Any]] = None) -> List[Item]:
        table = self._table(collection)
        conditions = where or {}
        with self._lock:
            items = [
                item
                for item in table.values()
                if all(item.get(name) == value for name, value in conditions.items())
            ]
        return copy.deepcopy(items)

    def batch_get(self, collection: str, keys: List[Key]) -> List[Item]:
        found = []
        for key in keys:
            item = self.get(collection, key)
            if item is not None:
                found.append(item)
        return found

    # === Writes ===

    def put(self, collection: str, item: Item, if_absent: bool = False) -> None:
        table = self._table(collection)
        key = key_schema(collection).key_of(item)
        with self._lock:
            if if_absent and key in table:
                raise ConditionalCheckFailedError(f"{collection} item {key} already exists")
            table[key] = copy.deepcopy(item)

    def delete(self, collection: str, key: Key) -> bool:
        table = self._table(collection)
        with self._lock:
            return table.pop(key_schema(collection).key_of(key), None) is not None

    def batch_delete(self, collection: str, keys: List[Key]) -> BatchDeleteResult:
        result = BatchDeleteResult()
        for key in keys:
            if self.delete(collection, key):
                result.deleted += 1
        return result

    def count(self, collection: str) -> int:
        """Number of items in a collection."""
        return len(self._table(collection))
