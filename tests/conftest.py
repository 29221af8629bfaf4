"""Shared pytest fixtures and configuration."""

import os
import pytest

# Set test environment variables
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LISTING_STORE_BACKEND", "memory")
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-key")
os.environ.setdefault("LOG_FORMAT", "text")

from gamehire.models.caller import ADMIN_ROLE
from gamehire.services.leasing_engine import LeasingEngine, reset_leasing_engine
from gamehire.services.listing_store import InMemoryListingStore, reset_listing_store
from gamehire.services.supabase_client import close_supabase_client
from tests.utils.factories import create_caller, create_listing_fields_data


@pytest.fixture(autouse=True)
def _reset_singletons():
    """Drop module-level store/engine/client singletons between tests."""
    yield
    reset_leasing_engine()
    reset_listing_store()
    close_supabase_client()


@pytest.fixture
def store():
    return InMemoryListingStore()


@pytest.fixture
def engine(store):
    return LeasingEngine(store, conflict_retries=1)


@pytest.fixture
def owner():
    return create_caller(user_id="U1")


@pytest.fixture
def hirer():
    return create_caller(user_id="U2")


@pytest.fixture
def admin():
    return create_caller(user_id="ADMIN1", roles=[ADMIN_ROLE])


@pytest.fixture
def listing_fields():
    return create_listing_fields_data(game_name="Valorant", rank="Diamond", role="Duelist", server="NA")


@pytest.fixture
def available_listing(engine, owner, listing_fields):
    """A freshly created AVAILABLE listing owned by ``owner``."""
    return engine.create(owner, listing_fields)


@pytest.fixture
def hired_listing(engine, hirer, available_listing):
    """``available_listing`` hired by ``hirer`` for 3 hours."""
    return engine.hire(hirer, available_listing.id, 3)
