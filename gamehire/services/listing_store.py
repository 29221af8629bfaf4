"""Listing store contract and the process-local adapter."""

import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, List, Optional

from gamehire.models.listing import Listing, ListingStatus
from gamehire.utils.config import LeasingConfig
from gamehire.utils.errors import AlreadyListed, ListingNotFound, StoreError, VersionConflict
from gamehire.utils.logging import get_structured_logger, mask_user_id

logger = get_structured_logger(__name__, component="listing_store")

# Descriptive fields that the available-listing lookups may filter on
LOOKUP_FIELDS = ("game_name", "rank", "role", "server")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ListingStore(ABC):
    """Record storage for player listings, keyed by listing id.

    ``put`` is a compare-and-write: when ``expected_version`` is given the
    write only lands if the stored version still matches, otherwise
    :class:`VersionConflict` is raised and nothing changes. Every successful
    write bumps ``version`` by one.
    """

    @abstractmethod
    def get(self, listing_id: str) -> Listing:
        """Return the listing or raise :class:`ListingNotFound`."""

    @abstractmethod
    def find_by_owner(self, owner_user_id: str) -> Optional[Listing]:
        """Return the owner's listing, or ``None``."""

    @abstractmethod
    def insert(self, listing: Listing) -> Listing:
        """Insert a new listing unless its owner already has one."""

    @abstractmethod
    def put(self, listing: Listing, expected_version: Optional[int] = None) -> Listing:
        """Write the listing, optionally guarded by ``expected_version``."""

    @abstractmethod
    def delete(self, listing_id: str) -> None:
        """Remove the listing or raise :class:`ListingNotFound`."""

    @abstractmethod
    def list_all(self) -> List[Listing]:
        ...

    @abstractmethod
    def list_by_status(self, status: ListingStatus) -> List[Listing]:
        ...

    @abstractmethod
    def list_available_by(self, field: str, value: str) -> List[Listing]:
        """Available listings whose descriptive ``field`` equals ``value``."""

    @abstractmethod
    def list_hired_by(self, user_id: str) -> List[Listing]:
        ...


class InMemoryListingStore(ListingStore):
    """Dict-backed store. A single lock makes every read-compare-write atomic.

    Listings are copied on the way in and out so callers never hold a
    reference to stored state.
    """

    def __init__(self) -> None:
        self._listings: Dict[str, Listing] = {}
        self._lock = threading.Lock()

    def get(self, listing_id: str) -> Listing:
        with self._lock:
            listing = self._listings.get(listing_id)
        if listing is None:
            raise ListingNotFound(listing_id)
        return listing.model_copy(deep=True)

    def find_by_owner(self, owner_user_id: str) -> Optional[Listing]:
        with self._lock:
            listing = self._find_by_owner_locked(owner_user_id)
        return listing.model_copy(deep=True) if listing else None

    def insert(self, listing: Listing) -> Listing:
        with self._lock:
            if self._find_by_owner_locked(listing.owner_user_id) is not None:
                raise AlreadyListed(listing.owner_user_id)
            if listing.id in self._listings:
                raise StoreError(f"Listing id already exists: {listing.id}")
            now = _now()
            stored = listing.model_copy(
                update={"version": 1, "created_at": now, "updated_at": now},
                deep=True,
            )
            self._listings[stored.id] = stored

        logger.debug(
            "Listing inserted",
            listing_id=stored.id,
            owner_user_id=mask_user_id(stored.owner_user_id)
        )
        return stored.model_copy(deep=True)

    def put(self, listing: Listing, expected_version: Optional[int] = None) -> Listing:
        with self._lock:
            current = self._listings.get(listing.id)
            if expected_version is not None:
                actual = current.version if current else None
                if actual != expected_version:
                    raise VersionConflict(listing.id, expected_version, actual)
            elif current is None:
                owner = self._find_by_owner_locked(listing.owner_user_id)
                if owner is not None:
                    raise AlreadyListed(listing.owner_user_id)

            now = _now()
            stored = listing.model_copy(
                update={
                    "version": (current.version if current else 0) + 1,
                    "created_at": current.created_at if current else now,
                    "updated_at": now,
                },
                deep=True,
            )
            self._listings[stored.id] = stored

        return stored.model_copy(deep=True)

    def delete(self, listing_id: str) -> None:
        with self._lock:
            if self._listings.pop(listing_id, None) is None:
                raise ListingNotFound(listing_id)

    def list_all(self) -> List[Listing]:
        return self._select(lambda listing: True)

    def list_by_status(self, status: ListingStatus) -> List[Listing]:
        return self._select(lambda listing: listing.status == status)

    def list_available_by(self, field: str, value: str) -> List[Listing]:
        if field not in LOOKUP_FIELDS:
            raise StoreError(f"Unsupported lookup field: {field}")
        return self._select(
            lambda listing: listing.status == ListingStatus.AVAILABLE
            and getattr(listing, field) == value
        )

    def list_hired_by(self, user_id: str) -> List[Listing]:
        return self._select(lambda listing: listing.hired_by_user_id == user_id)

    def _select(self, predicate) -> List[Listing]:
        with self._lock:
            return [
                listing.model_copy(deep=True)
                for listing in self._listings.values()
                if predicate(listing)
            ]

    def _find_by_owner_locked(self, owner_user_id: str) -> Optional[Listing]:
        """Caller must hold ``self._lock``."""
        for listing in self._listings.values():
            if listing.owner_user_id == owner_user_id:
                return listing
        return None


# Global store instance
_listing_store: Optional[ListingStore] = None


def get_listing_store() -> ListingStore:
    """Get or create the configured listing store."""
    global _listing_store
    if _listing_store is None:
        backend = LeasingConfig.LISTING_STORE_BACKEND
        if backend == "memory":
            _listing_store = InMemoryListingStore()
        elif backend == "supabase":
            from gamehire.services.supabase_listing_store import SupabaseListingStore
            _listing_store = SupabaseListingStore()
        else:
            raise StoreError(f"Unknown LISTING_STORE_BACKEND: {backend}")
        logger.info("Listing store initialized", backend=backend)
    return _listing_store


def reset_listing_store() -> None:
    global _listing_store
    _listing_store = None
