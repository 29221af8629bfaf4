"""Tests for the Supabase-backed listing store."""

import pytest
from unittest.mock import MagicMock, patch
from gamehire.models.listing import ListingStatus
from gamehire.services.listing_store import get_listing_store
from gamehire.services.supabase_listing_store import SupabaseListingStore
from gamehire.utils.config import LeasingConfig
from gamehire.utils.errors import AlreadyListed, ListingNotFound, StoreError, VersionConflict
from tests.utils.factories import create_listing


def _row(**overrides):
    return create_listing(owner_user_id="U1", version=1, **overrides).model_dump(mode="json")


@pytest.fixture
def mock_table():
    table = MagicMock()
    # Every filter returns the same query object so chains of .eq() resolve
    query = MagicMock()
    query.eq.return_value = query
    table.select.return_value = query
    table.update.return_value = query
    table.delete.return_value = query
    return table


@pytest.fixture
def supabase_store(mock_table):
    client = MagicMock()
    client.table.return_value = mock_table
    return SupabaseListingStore(client=client, table="player_listings")


@pytest.mark.unit
def test_get_existing(supabase_store, mock_table):
    row = _row()
    mock_table.select.return_value.execute.return_value = MagicMock(data=[row])

    listing = supabase_store.get(row["id"])

    assert listing.id == row["id"]
    mock_table.select.assert_called_once_with("*")
    mock_table.select.return_value.eq.assert_called_once_with("id", row["id"])


@pytest.mark.unit
def test_get_missing(supabase_store, mock_table):
    mock_table.select.return_value.execute.return_value = MagicMock(data=[])

    with pytest.raises(ListingNotFound):
        supabase_store.get("missing")


@pytest.mark.unit
def test_client_error_wrapped(supabase_store, mock_table):
    mock_table.select.return_value.execute.side_effect = Exception("connection refused")

    with pytest.raises(StoreError) as exc_info:
        supabase_store.get("any")
    assert "connection refused" in str(exc_info.value)


@pytest.mark.unit
def test_find_by_owner(supabase_store, mock_table):
    row = _row()
    mock_table.select.return_value.execute.return_value = MagicMock(data=[row])

    assert supabase_store.find_by_owner("U1").owner_user_id == "U1"
    mock_table.select.return_value.eq.assert_called_once_with("owner_user_id", "U1")


@pytest.mark.unit
def test_insert_sets_version(supabase_store, mock_table):
    listing = create_listing(owner_user_id="U1")
    mock_table.insert.return_value.execute.return_value = MagicMock(
        data=[{**listing.model_dump(mode="json"), "version": 1}]
    )

    created = supabase_store.insert(listing)

    inserted_row = mock_table.insert.call_args[0][0]
    assert inserted_row["version"] == 1
    assert inserted_row["status"] == "AVAILABLE"
    assert inserted_row["created_at"] is not None
    assert created.version == 1


@pytest.mark.unit
def test_insert_duplicate_owner(supabase_store, mock_table):
    mock_table.insert.return_value.execute.side_effect = Exception(
        'duplicate key value violates unique constraint "player_listings_owner_user_id_key"'
    )

    with pytest.raises(AlreadyListed):
        supabase_store.insert(create_listing(owner_user_id="U1"))


@pytest.mark.unit
def test_insert_other_failure(supabase_store, mock_table):
    mock_table.insert.return_value.execute.side_effect = Exception("timeout")

    with pytest.raises(StoreError):
        supabase_store.insert(create_listing(owner_user_id="U1"))


@pytest.mark.unit
def test_put_conditional_update(supabase_store, mock_table):
    """Test the update is filtered on id and the expected version."""
    row = _row(rating=4.0)
    listing = create_listing(owner_user_id="U1", id=row["id"], version=1)
    query = mock_table.update.return_value
    query.execute.return_value = MagicMock(data=[{**row, "version": 2}])

    saved = supabase_store.put(listing, expected_version=1)

    assert saved.version == 2
    assert mock_table.update.call_args[0][0]["version"] == 2
    query.eq.assert_any_call("id", row["id"])
    query.eq.assert_any_call("version", 1)


@pytest.mark.unit
def test_put_conflict(supabase_store, mock_table):
    """Test zero updated rows is a version conflict."""
    listing = create_listing(owner_user_id="U1", version=1)
    query = mock_table.update.return_value
    # update and the follow-up version read share the chained query mock
    query.execute.side_effect = [MagicMock(data=[]), MagicMock(data=[{"version": 3}])]

    with pytest.raises(VersionConflict) as exc_info:
        supabase_store.put(listing, expected_version=1)

    assert exc_info.value.expected == 1
    assert exc_info.value.actual == 3


@pytest.mark.unit
def test_put_without_version_upserts(supabase_store, mock_table):
    listing = create_listing(owner_user_id="U1")
    mock_table.select.return_value.execute.return_value = MagicMock(data=[{"version": 4}])
    mock_table.upsert.return_value.execute.return_value = MagicMock(
        data=[{**listing.model_dump(mode="json"), "version": 5}]
    )

    saved = supabase_store.put(listing)

    assert mock_table.upsert.call_args[0][0]["version"] == 5
    assert saved.version == 5


@pytest.mark.unit
def test_delete(supabase_store, mock_table):
    mock_table.delete.return_value.execute.return_value = MagicMock(data=[_row()])

    supabase_store.delete("abc")

    mock_table.delete.return_value.eq.assert_called_once_with("id", "abc")


@pytest.mark.unit
def test_delete_missing(supabase_store, mock_table):
    mock_table.delete.return_value.execute.return_value = MagicMock(data=[])

    with pytest.raises(ListingNotFound):
        supabase_store.delete("abc")


@pytest.mark.unit
def test_list_available_by_filters_status(supabase_store, mock_table):
    query = mock_table.select.return_value
    query.execute.return_value = MagicMock(data=[_row(game_name="Valorant")])

    listings = supabase_store.list_available_by("game_name", "Valorant")

    assert [l.game_name for l in listings] == ["Valorant"]
    query.eq.assert_any_call("game_name", "Valorant")
    query.eq.assert_any_call("status", "AVAILABLE")


@pytest.mark.unit
def test_list_by_status_empty(supabase_store, mock_table):
    mock_table.select.return_value.execute.return_value = MagicMock(data=None)

    assert supabase_store.list_by_status(ListingStatus.HIRED) == []


@pytest.mark.unit
def test_configured_backend(monkeypatch):
    """Test LISTING_STORE_BACKEND=supabase builds the Supabase store."""
    monkeypatch.setattr(LeasingConfig, "LISTING_STORE_BACKEND", "supabase")

    with patch("gamehire.services.supabase_client.create_client") as mock_create:
        store = get_listing_store()
        assert isinstance(store, SupabaseListingStore)
        assert store.table == LeasingConfig.LISTINGS_TABLE
        mock_create.assert_not_called()


@pytest.mark.unit
def test_missing_credentials(monkeypatch):
    monkeypatch.setattr(LeasingConfig, "SUPABASE_URL", None)
    store = SupabaseListingStore()

    with pytest.raises(StoreError):
        store.get("abc")


@pytest.mark.unit
def test_supabase_client_singleton(monkeypatch):
    """Test the client is built once with session persistence disabled."""
    from gamehire.services.supabase_client import get_supabase_client

    monkeypatch.setattr(LeasingConfig, "SUPABASE_URL", "https://test.supabase.co")
    monkeypatch.setattr(LeasingConfig, "SUPABASE_SERVICE_ROLE_KEY", "test-key")

    with patch("gamehire.services.supabase_client.create_client") as mock_create:
        first = get_supabase_client()
        second = get_supabase_client()

    assert first is second
    mock_create.assert_called_once()
    url, key, options = mock_create.call_args[0]
    assert (url, key) == ("https://test.supabase.co", "test-key")
    assert options.persist_session is False
    assert options.auto_refresh_token is False
