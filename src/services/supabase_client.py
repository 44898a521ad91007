"""Supabase client wrapper and generic table access."""

import os
from typing import Optional
from supabase import create_client, Client
from supabase.client import ClientOptions
from src.utils.errors import SupabaseError
from src.utils.query import Filters
import logging

logger = logging.getLogger(__name__)

# Global client instance (singleton pattern)
_client: Optional[Client] = None


def get_supabase_client() -> Client:
    """Get or create Supabase client singleton."""
    global _client

    if _client is None:
        url = os.environ.get("SUPABASE_URL")
        key = os.environ.get("SUPABASE_SERVICE_ROLE_KEY")

        if not url or not key:
            raise SupabaseError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")

        options = ClientOptions(
            auto_refresh_token=False,
            persist_session=False,
        )

        _client = create_client(url, key, options)
        logger.info("Supabase client initialized", extra={"supabase_url": url})

    return _client


async def close_supabase_client() -> None:
    """Drop the client singleton."""
    global _client
    if _client:
        _client = None
        logger.info("Supabase client closed")


class SupabaseClient:
    """Async context manager for Supabase client."""

    def __init__(self, client: Optional[Client] = None):
        self._override = client
        self.client: Optional[Client] = None

    async def __aenter__(self) -> Client:
        self.client = self._override or get_supabase_client()
        return self.client

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            logger.error(
                "Supabase operation error",
                extra={"error": str(exc_val), "type": exc_type.__name__}
            )
        return False


def _is_unique_violation(error: Exception) -> bool:
    text = str(error).lower()
    return "duplicate key" in text or "23505" in text


class SupabaseTable:
    """
    One PostgREST table.

    Every client failure is re-raised as SupabaseError. Rows are plain dicts;
    services validate them into models.
    """

    table_name: str = ""
    id_column: str = "id"
    search_columns: tuple[str, ...] = ()

    def __init__(self, client: Optional[Client] = None, table_name: Optional[str] = None):
        self._client = client
        if table_name:
            self.table_name = table_name

    def _table(self, client: Client):
        return client.table(self.table_name)

    def _on_unique_violation(self, error: Exception) -> None:
        """Hook for tables with meaningful unique constraints."""
        return None

    async def find_by_id(self, record_id: str) -> Optional[dict]:
        async with SupabaseClient(self._client) as client:
            try:
                result = self._table(client).select("*").eq(self.id_column, record_id).execute()
            except Exception as e:
                raise SupabaseError(f"Failed to get {self.table_name} record {record_id}: {e}")
            return result.data[0] if result.data else None

    async def find_one(self, filters: Filters, sort: Optional[str] = None, desc: bool = False) -> Optional[dict]:
        async with SupabaseClient(self._client) as client:
            try:
                query = filters.apply(self._table(client).select("*"))
                if sort:
                    query = query.order(sort, desc=desc)
                result = query.limit(1).execute()
            except Exception as e:
                raise SupabaseError(f"Failed to query {self.table_name}: {e}")
            return result.data[0] if result.data else None

    async def insert(self, row: dict) -> dict:
        async with SupabaseClient(self._client) as client:
            try:
                result = self._table(client).insert(row).execute()
            except Exception as e:
                if _is_unique_violation(e):
                    self._on_unique_violation(e)
                raise SupabaseError(f"Failed to create {self.table_name} record: {e}")
            if result.data:
                return result.data[0]
            raise SupabaseError(f"Failed to create {self.table_name} record: no data returned")

    async def update_by_id(self, record_id: str, patch: dict) -> Optional[dict]:
        """Unconditional update. Returns the updated row, or None if absent."""
        return await self.update_where(record_id, {}, patch)

    async def update_where(self, record_id: str, expected: dict, patch: dict) -> Optional[dict]:
        """
        Conditional update: applies only when every expected column still holds
        its expected value. Returns the updated row, or None when nothing matched.
        """
        async with SupabaseClient(self._client) as client:
            try:
                query = self._table(client).update(patch).eq(self.id_column, record_id)
                for column, value in expected.items():
                    query = query.is_(column, "null") if value is None else query.eq(column, value)
                result = query.execute()
            except Exception as e:
                raise SupabaseError(f"Failed to update {self.table_name} record {record_id}: {e}")
            return result.data[0] if result.data else None

    async def delete_by_id(self, record_id: str) -> bool:
        async with SupabaseClient(self._client) as client:
            try:
                result = self._table(client).delete().eq(self.id_column, record_id).execute()
            except Exception as e:
                raise SupabaseError(f"Failed to delete {self.table_name} record {record_id}: {e}")
            return bool(result.data)

    async def count(self, filters: Optional[Filters] = None) -> int:
        async with SupabaseClient(self._client) as client:
            try:
                query = self._table(client).select(self.id_column, count="exact")
                if filters:
                    query = filters.apply(query)
                result = query.execute()
            except Exception as e:
                raise SupabaseError(f"Failed to count {self.table_name}: {e}")
            return result.count or 0

    async def find_page(
        self,
        filters: Optional[Filters],
        sort: str,
        desc: bool,
        page: int,
        limit: int,
    ) -> tuple[list[dict], int]:
        """Fetch one page plus the exact total under the same predicate."""
        start = (page - 1) * limit
        async with SupabaseClient(self._client) as client:
            try:
                query = self._table(client).select("*", count="exact")
                if filters:
                    query = filters.apply(query)
                result = query.order(sort, desc=desc).range(start, start + limit - 1).execute()
            except Exception as e:
                raise SupabaseError(f"Failed to list {self.table_name}: {e}")
            rows = result.data or []
            total = result.count if result.count is not None else len(rows)
            return rows, total

    async def select_rows(self, columns: str = "*", filters: Optional[Filters] = None) -> list[dict]:
        async with SupabaseClient(self._client) as client:
            try:
                query = self._table(client).select(columns)
                if filters:
                    query = filters.apply(query)
                result = query.execute()
            except Exception as e:
                raise SupabaseError(f"Failed to read {self.table_name}: {e}")
            return result.data or []

    def __repr__(self) -> str:
        return f"{type(self).__name__}(table={self.table_name!r})"
