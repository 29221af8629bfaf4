"""Leasing engine - the hire / return / rate state machine over listings."""

import math
import uuid
from datetime import date, timedelta
from typing import Any, Callable, List, Mapping, Optional, Union

from gamehire.models.caller import Caller
from gamehire.models.listing import LEASE_FIELDS, Listing, ListingFields, ListingStatus
from gamehire.services.listing_store import ListingStore, get_listing_store
from gamehire.utils.config import LeasingConfig
from gamehire.utils.errors import (
    AlreadyListed,
    ConcurrentModification,
    InvalidHours,
    InvalidQuery,
    InvalidRating,
    InvalidStatus,
    LeasingError,
    NotAuthorized,
    NotAvailable,
    NotHired,
    VersionConflict,
)
from gamehire.utils.logging import get_structured_logger, log_timing, mask_user_id

logger = get_structured_logger(__name__, component="leasing_engine")

# Placeholder lease length; not derived from the hours hired
RETURN_AFTER = timedelta(days=1)

MIN_RATING = 0.0
MAX_RATING = 5.0

_CLEARED_LEASE = {name: None for name in LEASE_FIELDS}


class LeasingEngine:
    """Applies leasing operations to listings held in a :class:`ListingStore`.

    Every mutating operation is a read-validate-write sequence. The write
    carries the version that was read; if another writer got there first the
    store raises :class:`VersionConflict` and the engine re-reads and
    re-validates, up to ``conflict_retries`` times. Re-validation is what turns
    a lost hire race into :class:`NotAvailable`. Validation always happens
    before the write, so a rejected operation leaves the store untouched.

    Authorization beyond the capability checks below (owner or ADMIN for
    edits, ADMIN for status override and deletion) is the request layer's job.
    """

    def __init__(self, store: ListingStore, conflict_retries: Optional[int] = None):
        self.store = store
        self.conflict_retries = (
            LeasingConfig.LEASE_CONFLICT_RETRIES if conflict_retries is None else conflict_retries
        )

    # ------------------------------------------------------------------
    # Listing lifecycle
    # ------------------------------------------------------------------

    def create(self, caller: Caller, fields: Union[ListingFields, Mapping[str, Any]]) -> Listing:
        """List a player for ``caller``.

        Status, lease fields and rating are never taken from the input: a new
        listing is always AVAILABLE and unrated.
        """
        fields = _coerce_fields(fields)
        owner = caller.user_id

        if self.store.find_by_owner(owner) is not None:
            logger.info("Create rejected: owner already listed", owner_user_id=mask_user_id(owner))
            raise AlreadyListed(owner)

        listing = Listing(
            id=uuid.uuid4().hex,
            owner_user_id=owner,
            status=ListingStatus.AVAILABLE,
            **fields.model_dump(),
        )
        with log_timing("create_listing", logger=logger, listing_id=listing.id):
            created = self.store.insert(listing)

        logger.info(
            "Listing created",
            listing_id=created.id,
            owner_user_id=mask_user_id(owner),
            game_name=created.game_name
        )
        return created

    def update(
        self,
        caller: Caller,
        listing_id: str,
        fields: Union[ListingFields, Mapping[str, Any]],
        requested_status: Optional[Union[ListingStatus, str]] = None,
    ) -> Listing:
        """Overwrite the descriptive fields of a listing.

        When ``requested_status`` is given it is written verbatim, exactly as
        :meth:`override_status` would, and so needs ADMIN. Lease fields are
        never touched here.
        """
        fields = _coerce_fields(fields)
        status = None
        if requested_status is not None:
            self._require_admin(caller, "override_status")
            status = _coerce_status(requested_status)

        def apply(listing: Listing) -> Listing:
            if not (caller.is_admin or listing.owner_user_id == caller.user_id):
                raise NotAuthorized("Only the owner or an admin may edit this listing")
            changes = fields.model_dump()
            if status is not None:
                changes["status"] = status
            return listing.model_copy(update=changes)

        updated = self._transition(caller, listing_id, "update", apply)
        if status is not None:
            self._warn_override(updated)
        return updated

    def override_status(
        self,
        caller: Caller,
        listing_id: str,
        status: Union[ListingStatus, str],
    ) -> Listing:
        """Administrative status correction that bypasses hire/return rules."""
        self._require_admin(caller, "override_status")
        status = _coerce_status(status)

        updated = self._transition(
            caller,
            listing_id,
            "override_status",
            lambda listing: listing.model_copy(update={"status": status}),
        )
        self._warn_override(updated)
        return updated

    def delete(self, caller: Caller, listing_id: str) -> None:
        """Remove a listing whatever its status."""
        self._require_admin(caller, "delete")
        self.store.delete(listing_id)
        logger.info("Listing deleted", listing_id=listing_id, caller=mask_user_id(caller.user_id))

    # ------------------------------------------------------------------
    # Leasing transitions
    # ------------------------------------------------------------------

    def hire(self, caller: Caller, listing_id: str, hours: Optional[int]) -> Listing:
        """AVAILABLE -> HIRED for ``hours`` hours, hired by ``caller``.

        There is no self-hire check; the request layer decides who may hire.
        """
        if isinstance(hours, bool) or not isinstance(hours, int) or hours < 1:
            logger.info("Hire rejected", listing_id=listing_id, error_code=InvalidHours.code)
            raise InvalidHours()

        def apply(listing: Listing) -> Listing:
            if listing.status != ListingStatus.AVAILABLE:
                raise NotAvailable(f"Game player {listing.id} is not available for hire")
            today = date.today()
            return listing.model_copy(update={
                "status": ListingStatus.HIRED,
                "hired_by_user_id": caller.user_id,
                "hire_date": today,
                "hours_hired": hours,
                "return_date": today + RETURN_AFTER,
            })

        return self._transition(caller, listing_id, "hire", apply)

    def return_player(self, caller: Caller, listing_id: str) -> Listing:
        """HIRED -> AVAILABLE, clearing every lease field."""
        def apply(listing: Listing) -> Listing:
            if listing.status != ListingStatus.HIRED:
                raise NotHired(f"Game player {listing.id} is not currently hired")
            return listing.model_copy(update={"status": ListingStatus.AVAILABLE, **_CLEARED_LEASE})

        return self._transition(caller, listing_id, "return", apply)

    def rate(self, caller: Caller, listing_id: str, value: Optional[float]) -> Listing:
        """Fold ``value`` into the running rating.

        The first rating is stored as-is; after that the new rating is the
        mean of the stored rating and ``value``, so recent ratings weigh more
        than a true historical mean would give them.
        """
        value = _coerce_rating(value)

        def apply(listing: Listing) -> Listing:
            if listing.rating is None:
                rating = value
            else:
                rating = (listing.rating + value) / 2
            return listing.model_copy(update={"rating": rating})

        return self._transition(caller, listing_id, "rate", apply)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get(self, listing_id: str) -> Listing:
        return self.store.get(_require_key("ID", listing_id))

    def list_all(self) -> List[Listing]:
        return self.store.list_all()

    def list_by_status(self, status: Union[ListingStatus, str]) -> List[Listing]:
        if isinstance(status, str):
            _require_key("Status", status)
        return self.store.list_by_status(_coerce_status(status))

    def list_available(self) -> List[Listing]:
        return self.store.list_by_status(ListingStatus.AVAILABLE)

    def list_by_game(self, game_name: str) -> List[Listing]:
        return self.store.list_available_by("game_name", _require_key("Game name", game_name))

    def list_by_rank(self, rank: str) -> List[Listing]:
        return self.store.list_available_by("rank", _require_key("Rank", rank))

    def list_by_role(self, role: str) -> List[Listing]:
        return self.store.list_available_by("role", _require_key("Role", role))

    def list_by_server(self, server: str) -> List[Listing]:
        return self.store.list_available_by("server", _require_key("Server", server))

    def list_hired_by(self, user_id: str) -> List[Listing]:
        return self.store.list_hired_by(_require_key("User ID", user_id))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _transition(
        self,
        caller: Caller,
        listing_id: str,
        operation: str,
        apply: Callable[[Listing], Listing],
    ) -> Listing:
        conflicts = 0
        with log_timing(operation, logger=logger, listing_id=listing_id):
            while True:
                current = self.store.get(listing_id)
                try:
                    updated = apply(current)
                except LeasingError as e:
                    logger.info(
                        f"{operation.capitalize()} rejected",
                        listing_id=listing_id,
                        listing_status=current.status.value,
                        caller=mask_user_id(caller.user_id),
                        error_code=e.code
                    )
                    raise

                try:
                    saved = self.store.put(updated, expected_version=current.version)
                except VersionConflict as conflict:
                    if conflicts >= self.conflict_retries:
                        logger.warning(
                            "Giving up after repeated version conflicts",
                            listing_id=listing_id,
                            operation=operation,
                            conflicts=conflicts + 1
                        )
                        raise ConcurrentModification() from conflict
                    conflicts += 1
                    logger.debug(
                        "Version conflict, re-reading listing",
                        listing_id=listing_id,
                        operation=operation,
                        expected_version=conflict.expected,
                        actual_version=conflict.actual
                    )
                    continue

                logger.info(
                    f"{operation.capitalize()} applied",
                    listing_id=listing_id,
                    listing_status=saved.status.value,
                    version=saved.version,
                    caller=mask_user_id(caller.user_id)
                )
                return saved

    @staticmethod
    def _require_admin(caller: Caller, operation: str) -> None:
        if not caller.is_admin:
            logger.info(
                "Admin operation rejected",
                operation=operation,
                caller=mask_user_id(caller.user_id),
                error_code=NotAuthorized.code
            )
            raise NotAuthorized(f"{operation} requires the ADMIN role")

    @staticmethod
    def _warn_override(listing: Listing) -> None:
        logger.warning(
            "Listing status overridden",
            listing_id=listing.id,
            listing_status=listing.status.value,
            lease_consistent=listing.lease_consistent()
        )


def _coerce_fields(fields: Union[ListingFields, Mapping[str, Any]]) -> ListingFields:
    if isinstance(fields, ListingFields):
        # A full Listing is also a ListingFields; keep only the descriptive part
        return ListingFields.model_validate(fields.model_dump(include=set(ListingFields.model_fields)))
    return ListingFields.model_validate(dict(fields))


def _coerce_status(status: Union[ListingStatus, str]) -> ListingStatus:
    try:
        return ListingStatus(status)
    except ValueError as e:
        raise InvalidStatus(f"Status must be AVAILABLE or HIRED, got {status!r}") from e


def _coerce_rating(value: Any) -> float:
    if value is None or isinstance(value, bool):
        raise InvalidRating()
    try:
        rating = float(value)
    except (TypeError, ValueError) as e:
        raise InvalidRating() from e
    if math.isnan(rating) or not MIN_RATING <= rating <= MAX_RATING:
        raise InvalidRating()
    return rating


def _require_key(label: str, value: Optional[str]) -> str:
    if value is None or not str(value).strip():
        raise InvalidQuery(f"{label} cannot be null or empty")
    return value


# Global engine instance
_leasing_engine: Optional[LeasingEngine] = None


def get_leasing_engine() -> LeasingEngine:
    """Get or create the engine over the configured listing store."""
    global _leasing_engine
    if _leasing_engine is None:
        _leasing_engine = LeasingEngine(get_listing_store())
    return _leasing_engine


def reset_leasing_engine() -> None:
    global _leasing_engine
    _leasing_engine = None
