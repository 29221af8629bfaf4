"""Leasing backend configuration read from the environment."""

import os


class LeasingConfig:
    """Centralized leasing configuration."""

    LISTING_STORE_BACKEND = os.environ.get("LISTING_STORE_BACKEND", "memory").lower()
    LISTINGS_TABLE = os.environ.get("LISTINGS_TABLE", "player_listings")
    # Re-read/re-validate attempts after a version conflict
    LEASE_CONFLICT_RETRIES = int(os.environ.get("LEASE_CONFLICT_RETRIES", "1"))
    SUPABASE_URL = os.environ.get("SUPABASE_URL")
    SUPABASE_SERVICE_ROLE_KEY = os.environ.get("SUPABASE_SERVICE_ROLE_KEY")

    @classmethod
    def reload(cls) -> None:
        """Re-read all settings from the current environment."""
        cls.LISTING_STORE_BACKEND = os.environ.get("LISTING_STORE_BACKEND", "memory").lower()
        cls.LISTINGS_TABLE = os.environ.get("LISTINGS_TABLE", "player_listings")
        cls.LEASE_CONFLICT_RETRIES = int(os.environ.get("LEASE_CONFLICT_RETRIES", "1"))
        cls.SUPABASE_URL = os.environ.get("SUPABASE_URL")
        cls.SUPABASE_SERVICE_ROLE_KEY = os.environ.get("SUPABASE_SERVICE_ROLE_KEY")
