"""Supabase-backed listing store.

Expects a table shaped like :class:`~gamehire.models.listing.Listing` with a
unique constraint on ``owner_user_id``. Compare-and-write is a conditional
update filtered on both ``id`` and ``version``; zero returned rows means the
row moved on (or vanished) since it was read.
"""

from datetime import datetime, timezone
from typing import Any, List, Optional

from supabase import Client

from gamehire.models.listing import Listing, ListingStatus
from gamehire.services.listing_store import LOOKUP_FIELDS, ListingStore
from gamehire.services.supabase_client import get_supabase_client
from gamehire.utils.config import LeasingConfig
from gamehire.utils.errors import AlreadyListed, ListingNotFound, StoreError, VersionConflict
from gamehire.utils.logging import get_structured_logger, mask_user_id

logger = get_structured_logger(__name__, component="supabase_listing_store")


class SupabaseListingStore(ListingStore):
    """Listing store over the ``player_listings`` table."""

    def __init__(self, client: Optional[Client] = None, table: Optional[str] = None):
        self._client = client
        self.table = table or LeasingConfig.LISTINGS_TABLE

    def _table(self):
        client = self._client or get_supabase_client()
        return client.table(self.table)

    def _execute(self, query, action: str) -> Any:
        try:
            return query.execute()
        except Exception as e:
            logger.error("Supabase operation error", action=action, error=str(e))
            raise StoreError(f"Failed to {action}: {e}") from e

    @staticmethod
    def _to_row(listing: Listing) -> dict:
        return listing.model_dump(mode="json")

    @staticmethod
    def _first(result) -> Optional[Listing]:
        if result.data and len(result.data) > 0:
            return Listing.model_validate(result.data[0])
        return None

    def get(self, listing_id: str) -> Listing:
        result = self._execute(
            self._table().select("*").eq("id", listing_id),
            "get listing",
        )
        listing = self._first(result)
        if listing is None:
            raise ListingNotFound(listing_id)
        return listing

    def find_by_owner(self, owner_user_id: str) -> Optional[Listing]:
        result = self._execute(
            self._table().select("*").eq("owner_user_id", owner_user_id),
            "find listing by owner",
        )
        return self._first(result)

    def insert(self, listing: Listing) -> Listing:
        now = datetime.now(timezone.utc).isoformat()
        row = self._to_row(listing.model_copy(
            update={"version": 1, "created_at": now, "updated_at": now}
        ))
        try:
            result = self._table().insert(row).execute()
        except Exception as e:
            # Unique constraint on owner_user_id lost the race to another create
            if "duplicate key" in str(e).lower():
                raise AlreadyListed(listing.owner_user_id) from e
            raise StoreError(f"Failed to create listing: {e}") from e

        created = self._first(result)
        if created is None:
            raise StoreError("Failed to create listing: no data returned")
        logger.debug(
            "Listing inserted",
            listing_id=created.id,
            owner_user_id=mask_user_id(created.owner_user_id)
        )
        return created

    def put(self, listing: Listing, expected_version: Optional[int] = None) -> Listing:
        now = datetime.now(timezone.utc).isoformat()

        if expected_version is None:
            next_version = (self._read_version(listing.id) or 0) + 1
            row = self._to_row(listing.model_copy(update={"version": next_version, "updated_at": now}))
            saved = self._first(self._execute(self._table().upsert(row), "upsert listing"))
            if saved is None:
                raise StoreError(f"Failed to upsert listing: {listing.id}")
            return saved

        row = self._to_row(listing.model_copy(
            update={"version": expected_version + 1, "updated_at": now}
        ))
        result = self._execute(
            self._table().update(row).eq("id", listing.id).eq("version", expected_version),
            "update listing",
        )
        saved = self._first(result)
        if saved is None:
            raise VersionConflict(listing.id, expected_version, self._read_version(listing.id))
        return saved

    def _read_version(self, listing_id: str) -> Optional[int]:
        result = self._execute(
            self._table().select("version").eq("id", listing_id),
            "read listing version",
        )
        return result.data[0]["version"] if result.data else None

    def delete(self, listing_id: str) -> None:
        result = self._execute(
            self._table().delete().eq("id", listing_id),
            "delete listing",
        )
        if not result.data:
            raise ListingNotFound(listing_id)

    def list_all(self) -> List[Listing]:
        return self._select(self._table().select("*"), "list listings")

    def list_by_status(self, status: ListingStatus) -> List[Listing]:
        return self._select(
            self._table().select("*").eq("status", ListingStatus(status).value),
            "list listings by status",
        )

    def list_available_by(self, field: str, value: str) -> List[Listing]:
        if field not in LOOKUP_FIELDS:
            raise StoreError(f"Unsupported lookup field: {field}")
        query = (
            self._table()
            .select("*")
            .eq(field, value)
            .eq("status", ListingStatus.AVAILABLE.value)
        )
        return self._select(query, f"list available listings by {field}")

    def list_hired_by(self, user_id: str) -> List[Listing]:
        return self._select(
            self._table().select("*").eq("hired_by_user_id", user_id),
            "list listings hired by user",
        )

    def _select(self, query, action: str) -> List[Listing]:
        result = self._execute(query, action)
        return [Listing.model_validate(row) for row in (result.data or [])]
