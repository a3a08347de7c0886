"""
Shared test fixtures.
"""
import os

from cryptography.fernet import Fernet

# Set test environment before genie_gateway imports read it
os.environ["CONNECTOR_ENCRYPTION_KEY"] = Fernet.generate_key().decode()
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest

from tests.fakes import FakeSupabase


@pytest.fixture(autouse=True)
def reset_singletons():
    """Fresh encryption/config singletons and no locks left over from another event loop."""
    from genie_gateway.core.config import reset_config_manager
    from genie_gateway.infrastructure.security.encryption import reset_encryption_service
    from genie_gateway.services import campaign_service, token_refresh_service

    reset_encryption_service()
    reset_config_manager()
    token_refresh_service._refresh_locks.clear()
    campaign_service._tenant_semaphores.clear()
    yield


@pytest.fixture
def fake_supabase():
    return FakeSupabase()


@pytest.fixture
def store(fake_supabase):
    from genie_gateway.infrastructure.storage.credential_store import CredentialStore
    return CredentialStore(fake_supabase)


@pytest.fixture
def app(fake_supabase):
    """Application wired to the in-memory Supabase."""
    from genie_gateway.api.v1.dependencies import get_supabase
    from genie_gateway.main import create_app

    application = create_app()
    application.dependency_overrides[get_supabase] = lambda: fake_supabase
    return application


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def login(app):
    """Authenticate every request as the given user."""
    from genie_gateway.api.v1.dependencies import CurrentUser, get_current_user

    def _login(tenant_id="T1", role="user", user_id="user-1", is_super_admin=False):
        user = CurrentUser(
            id=user_id,
            email=f"{user_id}@example.com",
            tenant_id=tenant_id,
            role=role,
            is_super_admin=is_super_admin,
        )
        app.dependency_overrides[get_current_user] = lambda: user
        return user

    return _login
