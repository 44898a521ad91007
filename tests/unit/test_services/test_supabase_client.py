"""Tests for the supabase table wrapper."""

import pytest
from unittest.mock import MagicMock, patch

from src.services import supabase_client
from src.services.stores import IdentityStore, VerificationRequestStore
from src.services.supabase_client import SupabaseTable, get_supabase_client
from src.utils.errors import DuplicateIdentityError, SupabaseError
from src.utils.query import Filters
from tests.utils.factories import create_identity_row


@pytest.mark.unit
def test_get_supabase_client_requires_credentials(monkeypatch):
    monkeypatch.setattr(supabase_client, "_client", None)
    monkeypatch.delenv("SUPABASE_URL", raising=False)

    with pytest.raises(SupabaseError):
        get_supabase_client()


@pytest.mark.unit
def test_get_supabase_client_is_singleton(monkeypatch):
    monkeypatch.setattr(supabase_client, "_client", None)
    with patch.object(supabase_client, "create_client", return_value=MagicMock()) as create:
        first = get_supabase_client()
        second = get_supabase_client()

    assert first is second
    create.assert_called_once()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_where_adds_expected_columns():
    client = MagicMock()
    query = client.table.return_value.update.return_value
    query.eq.return_value = query
    query.is_.return_value = query
    query.execute.return_value = MagicMock(data=[{"id": "r1", "status": "approved"}])
    table = SupabaseTable(client=client, table_name="things")

    row = await table.update_where("r1", {"status": "pending", "reviewed_by": None}, {"status": "approved"})

    assert row == {"id": "r1", "status": "approved"}
    client.table.assert_called_with("things")
    client.table.return_value.update.assert_called_with({"status": "approved"})
    query.eq.assert_any_call("id", "r1")
    query.eq.assert_any_call("status", "pending")
    query.is_.assert_called_with("reviewed_by", "null")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_where_returns_none_when_nothing_matched():
    client = MagicMock()
    query = client.table.return_value.update.return_value
    query.eq.return_value = query
    query.execute.return_value = MagicMock(data=[])

    assert await SupabaseTable(client=client, table_name="things").update_where("r1", {}, {"a": 1}) is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_client_errors_become_supabase_errors():
    client = MagicMock()
    client.table.side_effect = Exception("connection reset")
    table = SupabaseTable(client=client, table_name="things")

    with pytest.raises(SupabaseError, match="connection reset"):
        await table.find_by_id("r1")
    with pytest.raises(SupabaseError):
        await table.count()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_find_page_uses_one_predicate_for_rows_and_count(fake_supabase):
    table = SupabaseTable(client=fake_supabase, table_name="things")
    fake_supabase.seed("things", *[{"id": str(i), "n": i, "kind": "a" if i % 2 else "b"} for i in range(7)])

    rows, total = await table.find_page(Filters().eq("kind", "a"), "n", True, page=1, limit=2)

    assert total == 3
    assert [r["n"] for r in rows] == [5, 3]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_identity_unique_violation(fake_supabase):
    store = IdentityStore(client=fake_supabase)
    row = create_identity_row(email="taken@example.com")
    await store.insert(row)

    with pytest.raises(DuplicateIdentityError):
        await store.insert(create_identity_row(email="taken@example.com"))
    assert await store.find_by_email("  TAKEN@example.com ") is not None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_find_latest_by_user(fake_supabase):
    store = VerificationRequestStore(client=fake_supabase)
    fake_supabase.seed(
        "verification_requests",
        {"id": "old", "user_id": "u1", "requested_at": "2024-01-01T00:00:00+00:00"},
        {"id": "new", "user_id": "u1", "requested_at": "2024-06-01T00:00:00+00:00"},
        {"id": "other", "user_id": "u2", "requested_at": "2024-07-01T00:00:00+00:00"},
    )

    latest = await store.find_latest_by_user("u1")

    assert latest["id"] == "new"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_delete_and_select_rows(fake_supabase):
    table = SupabaseTable(client=fake_supabase, table_name="things")
    fake_supabase.seed("things", {"id": "a", "price": 1}, {"id": "b", "price": 2})

    assert await table.delete_by_id("a") is True
    assert await table.delete_by_id("a") is False
    assert await table.select_rows("price") == [{"price": 2}]
