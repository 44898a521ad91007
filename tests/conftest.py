"""Shared pytest fixtures and configuration."""

import os
import pytest
from unittest.mock import Mock
from freezegun import freeze_time

# Set test environment variables
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-key")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from src.services.auth_service import AuthService, hash_password
from src.services.blob_storage import BlobStorage
from src.services.lead_service import LeadService
from src.services.listing_service import ListingService
from src.services.stores import IdentityStore, LeadStore, ListingStore, VerificationRequestStore
from src.services.user_verification import UserVerificationService
from src.utils.config import WorkflowConfig
from tests.utils.factories import TEST_PASSWORD, create_identity_row
from tests.utils.fake_supabase import FakeSupabase


@pytest.fixture
def mock_supabase_client():
    """Mock Supabase client for testing."""
    client = Mock()
    client.table = Mock(return_value=Mock())
    return client


@pytest.fixture
def fake_supabase():
    """In-memory supabase double."""
    return FakeSupabase()


@pytest.fixture
def config():
    """Workflow configuration for tests."""
    return WorkflowConfig(environment="test", bcrypt_rounds=4)


@pytest.fixture
def identity_store(fake_supabase):
    return IdentityStore(client=fake_supabase)


@pytest.fixture
def request_store(fake_supabase):
    return VerificationRequestStore(client=fake_supabase)


@pytest.fixture
def listing_store(fake_supabase):
    return ListingStore(client=fake_supabase)


@pytest.fixture
def lead_store(fake_supabase):
    return LeadStore(client=fake_supabase)


@pytest.fixture
def blob_storage(fake_supabase, config):
    return BlobStorage(client=fake_supabase, config=config)


@pytest.fixture
def verification_service(request_store, identity_store, config):
    return UserVerificationService(requests=request_store, identities=identity_store, config=config)


@pytest.fixture
def listing_service(listing_store, identity_store, blob_storage, config):
    return ListingService(listings=listing_store, identities=identity_store, storage=blob_storage, config=config)


@pytest.fixture
def lead_service(lead_store, identity_store, config):
    return LeadService(leads=lead_store, identities=identity_store, config=config)


@pytest.fixture
def auth_service(identity_store, verification_service, config):
    return AuthService(identities=identity_store, verification=verification_service, config=config)


@pytest.fixture
def seed_identity(fake_supabase):
    """Insert an identity row and return it."""
    def _seed(role: str = "user", **overrides) -> dict:
        row = create_identity_row(role=role, **overrides)
        fake_supabase.seed("identities", row)
        return row
    return _seed


@pytest.fixture
def admin(seed_identity):
    return seed_identity(role="admin")


@pytest.fixture
def super_admin(seed_identity):
    return seed_identity(role="super_admin")


@pytest.fixture
def agent(seed_identity):
    return seed_identity(role="user")


@pytest.fixture
def password_hash():
    return hash_password(TEST_PASSWORD, rounds=4)


@pytest.fixture
def freeze_time_fixture():
    """Fixture for freezing time in tests."""
    with freeze_time("2024-12-09 12:00:00") as frozen_time:
        yield frozen_time


@pytest.fixture(scope="function")
def reset_environment(monkeypatch):
    """Reset environment variables for each test."""
    original_env = os.environ.copy()
    yield
    os.environ.clear()
    os.environ.update(original_env)
