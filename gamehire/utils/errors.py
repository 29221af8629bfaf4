"""Error handling utilities."""

from typing import Optional


class GameHireError(Exception):
    """Base exception for the game player hire backend."""
    code = "error"
    http_status = 500

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__


class LeasingError(GameHireError):
    """Recoverable leasing failure surfaced to the caller."""
    code = "leasing_error"
    http_status = 400


class ListingNotFound(LeasingError):
    """Game player listing not found."""
    code = "not_found"
    http_status = 404

    def __init__(self, listing_id: str):
        super().__init__(f"Game player not found with id: {listing_id}")
        self.listing_id = listing_id


class AlreadyListed(LeasingError):
    """User already has a game player listing."""
    code = "already_listed"
    http_status = 409

    def __init__(self, owner_user_id: str):
        super().__init__(f"User {owner_user_id} already has a game player listing")
        self.owner_user_id = owner_user_id


class NotAvailable(LeasingError):
    """Game player is not available for hire."""
    code = "not_available"
    http_status = 409


class NotHired(LeasingError):
    """Game player is not currently hired."""
    code = "not_hired"
    http_status = 409


class InvalidHours(LeasingError):
    """Hours must be at least 1."""
    code = "invalid_hours"


class InvalidRating(LeasingError):
    """Rating must be between 0 and 5."""
    code = "invalid_rating"


class InvalidStatus(LeasingError):
    """Status must be AVAILABLE or HIRED."""
    code = "invalid_status"


class InvalidQuery(LeasingError):
    """Lookup key cannot be null or empty."""
    code = "invalid_query"


class NotAuthorized(LeasingError):
    """Caller is not allowed to perform this operation."""
    code = "not_authorized"
    http_status = 403


class ConcurrentModification(LeasingError):
    """Listing was modified concurrently, retry the request."""
    code = "concurrent_modification"
    http_status = 409


class StoreError(GameHireError):
    """Listing store operation error."""
    code = "store_error"
    http_status = 503


class VersionConflict(StoreError):
    """Stored listing version does not match the expected version."""
    code = "version_conflict"
    http_status = 409

    def __init__(self, listing_id: str, expected: Optional[int], actual: Optional[int]):
        super().__init__(
            f"Version conflict on {listing_id}: expected {expected}, found {actual}"
        )
        self.listing_id = listing_id
        self.expected = expected
        self.actual = actual
