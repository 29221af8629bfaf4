"""Supabase client singleton used by the listing store."""

from typing import Optional
from supabase import create_client, Client
from supabase.client import ClientOptions
from gamehire.utils.config import LeasingConfig
from gamehire.utils.errors import StoreError
import logging

logger = logging.getLogger(__name__)

_client: Optional[Client] = None


def get_supabase_client() -> Client:
    """Get or create Supabase client singleton."""
    global _client

    if _client is None:
        url = LeasingConfig.SUPABASE_URL
        key = LeasingConfig.SUPABASE_SERVICE_ROLE_KEY

        if not url or not key:
            raise StoreError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")

        # Server-side service role: no user session to refresh or persist
        options = ClientOptions(
            auto_refresh_token=False,
            persist_session=False,
        )

        _client = create_client(url, key, options)
        logger.info("Supabase client initialized", extra={"url": url})

    return _client


def close_supabase_client() -> None:
    """Drop the cached client; the next call to get_supabase_client rebuilds it."""
    global _client
    if _client:
        _client = None
        logger.info("Supabase client closed")
