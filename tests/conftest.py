"""
Shared pytest fixtures.

Every test gets its own SQLite file through aiosqlite, and bcrypt runs at its
minimum work factor to keep the suite fast.
"""

import pytest

from oauth2_store.core.config import Settings
from oauth2_store.models.dto.client_models import Client
from oauth2_store.models.dto.request_models import Request, Session
from oauth2_store.store import Store


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'oauth2.db'}",
        HASHER_WORK_FACTOR=4,
    )


@pytest.fixture
async def store(test_settings):
    store = Store.from_settings(test_settings)
    await store.configure()
    yield store
    await store.close()


@pytest.fixture
def client_template():
    return Client(
        id="c1",
        name="Test Client",
        secret="s3cr3t",
        redirect_uris=["https://app.example.com/callback"],
        grant_types=["authorization_code", "refresh_token"],
        response_types=["code"],
        scopes=["openid", "profile"],
        allowed_audiences=["https://api.example.com"],
        allowed_tenant_access=["tenant-a"],
        contacts=["ops@example.com"],
    )


@pytest.fixture
async def stored_client(store, client_template):
    return await store.clients.create(client_template)


@pytest.fixture
def make_request(stored_client):
    def _make(**overrides) -> Request:
        values = {
            "client": stored_client,
            "requested_scopes": ["openid", "profile"],
            "granted_scopes": ["openid"],
            "requested_audience": ["https://api.example.com"],
            "granted_audience": ["https://api.example.com"],
            "form": {"redirect_uri": ["https://app.example.com/callback"]},
            "session": Session(subject="user-1", username="alice"),
        }
        values.update(overrides)
        return Request(**values)

    return _make
