"""Database utilities: Supabase-backed persistence gateway and marketplace dependency."""

from typing import Annotated, Any

from fastapi import Depends
from postgrest.exceptions import APIError

from dentipal.jobs.marketplace import Marketplace
from dentipal.jobs.storage import (
    BatchDeleteResult,
    ConditionalCheckFailedError,
    InMemoryGateway,
    Item,
    Key,
    PersistenceGateway,
    StorageError,
    key_schema,
)
from supabase import Client, create_client

from .config import Settings, get_settings
from .logging_config import get_logger

logger = get_logger("dentipal.api.database")

# Postgres unique_violation
UNIQUE_VIOLATION = "23505"

_supabase_client: Client | None = None
_memory_gateway: InMemoryGateway | None = None


def get_supabase_client(settings: Settings | None = None) -> Client:
    """Get cached Supabase client."""
    global _supabase_client
    if _supabase_client is None:
        if settings is None:
            settings = get_settings()
        if not settings.supabase_url:
            raise ValueError("SUPABASE_URL must be set when STORAGE_BACKEND=supabase")
        # Prefer new secret key, fall back to legacy service_role_key
        api_key = settings.supabase_secret_key or settings.supabase_service_role_key
        if not api_key:
            raise ValueError("Either SUPABASE_SECRET_KEY or SUPABASE_SERVICE_ROLE_KEY must be set")
        _supabase_client = create_client(settings.supabase_url, api_key)
    return _supabase_client


def _quote(value: Any) -> str:
    """Quote a value for a PostgREST ``or`` filter."""
    text = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


class SupabaseGateway:
    """Persistence gateway with one PostgREST table per collection.

    Tables are named ``<prefix><collection>`` with one column per item
    attribute and a unique constraint over the collection's key attributes.
    """

    def __init__(self, client: Client, table_prefix: str = ""):
        self.client = client
        self.table_prefix = table_prefix

    def _table(self, collection: str):
        key_schema(collection)
        return self.client.table(f"{self.table_prefix}{collection}")

    @staticmethod
    def _where(query, conditions: dict[str, Any]):
        for name, value in conditions.items():
            query = query.eq(name, value)
        return query

    def _execute(self, collection: str, operation: str, query):
        try:
            return query.execute()
        except APIError as e:
            if operation == "insert" and getattr(e, "code", None) == UNIQUE_VIOLATION:
                raise ConditionalCheckFailedError(f"{collection} item already exists") from e
            logger.error(f"{operation} on {collection} failed: {e}")
            raise StorageError(f"{operation} on {collection} failed") from e
        except Exception as e:
            logger.error(f"{operation} on {collection} failed: {e}")
            raise StorageError(f"{operation} on {collection} failed") from e

    # === Reads ===

    def get(self, collection: str, key: Key) -> Item | None:
        schema = key_schema(collection)
        query = self._where(self._table(collection).select("*"), schema.key_dict(key)).limit(1)
        result = self._execute(collection, "get", query)
        return result.data[0] if result.data else None

    def query(self, collection: str, where: dict[str, Any] | None = None) -> list[Item]:
        query = self._where(self._table(collection).select("*"), where or {})
        result = self._execute(collection, "query", query)
        return result.data or []

    def batch_get(self, collection: str, keys: list[Key]) -> list[Item]:
        if not keys:
            return []
        schema = key_schema(collection)
        if schema.sort is None:
            values = [k[schema.partition] for k in keys]
            query = self._table(collection).select("*").in_(schema.partition, values)
            return self._execute(collection, "batch_get", query).data or []
        found = []
        for key in keys:
            item = self.get(collection, key)
            if item is not None:
                found.append(item)
        return found

    # === Writes ===

    def put(self, collection: str, item: Item, if_absent: bool = False) -> None:
        schema = key_schema(collection)
        schema.key_of(item)
        table = self._table(collection)
        if if_absent:
            self._execute(collection, "insert", table.insert(item))
        else:
            self._execute(collection, "upsert", table.upsert(item, on_conflict=",".join(schema.attributes)))

    def delete(self, collection: str, key: Key) -> bool:
        schema = key_schema(collection)
        query = self._where(self._table(collection).delete(), schema.key_dict(key))
        result = self._execute(collection, "delete", query)
        return bool(result.data)

    def batch_delete(self, collection: str, keys: list[Key]) -> BatchDeleteResult:
        if not keys:
            return BatchDeleteResult()
        schema = key_schema(collection)
        table = self._table(collection)
        if schema.sort is None:
            query = table.delete().in_(schema.partition, [k[schema.partition] for k in keys])
        else:
            clauses = ",".join(
                f"and({schema.partition}.eq.{_quote(k[schema.partition])},{schema.sort}.eq.{_quote(k[schema.sort])})"
                for k in keys
            )
            query = table.delete().or_(clauses)
        result = self._execute(collection, "batch_delete", query)
        return BatchDeleteResult(deleted=len(result.data or []))


def get_gateway(settings: Settings) -> PersistenceGateway:
    """Gateway for the configured storage backend."""
    global _memory_gateway
    if settings.storage_backend == "memory":
        if _memory_gateway is None:
            _memory_gateway = InMemoryGateway()
        return _memory_gateway
    return SupabaseGateway(get_supabase_client(settings), settings.table_prefix)


def get_marketplace(settings: Annotated[Settings, Depends(get_settings)]) -> Marketplace:
    """FastAPI dependency for the marketplace engines."""
    return Marketplace(get_gateway(settings), settings.marketplace_config())


# Type alias for dependency injection
MarketplaceDep = Annotated[Marketplace, Depends(get_marketplace)]
