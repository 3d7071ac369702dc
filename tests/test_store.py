import logging

import pytest
from sqlalchemy.exc import SQLAlchemyError

from oauth2_store.common.exceptions import (
    NotFoundError,
    StorageConnectionError,
    StorageError,
)
from oauth2_store.core.config import Settings
from oauth2_store.models.dto.client_models import Client
from oauth2_store.repositories import client_repo
from oauth2_store.store import Store, new_default_store


async def test_new_default_store_is_ready_to_use(test_settings):
    store = await new_default_store(test_settings)
    try:
        await store.clients.create(Client(id="c1", secret="s3cr3t"))
        await store.clients.authenticate("c1", "s3cr3t")
    finally:
        await store.close()


async def test_data_survives_reopening(test_settings):
    async with Store.from_settings(test_settings) as store:
        await store.clients.create(Client(id="c1", secret="s3cr3t"))

    async with Store.from_settings(test_settings) as store:
        assert (await store.clients.get("c1")).id == "c1"
        with pytest.raises(NotFoundError):
            await store.users.get("u1")


async def test_managers_log_under_the_given_logger(test_settings):
    async with Store.from_settings(test_settings, logger=logging.getLogger("authz.store")) as store:
        assert store.clients.logger.name == "authz.store.clients"
        assert store.requests.logger.name == "authz.store.requests"
        assert store.requests.clients is store.clients
        assert store.hasher.work_factor == 4


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------

async def test_unreachable_database_is_retryable(tmp_path):
    config = Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'oauth2.db'}",
        HASHER_WORK_FACTOR=4,
    )
    store = Store.from_settings(config)
    try:
        with pytest.raises(StorageConnectionError) as exc_info:
            await store.clients.get("c1")
    finally:
        await store.close()

    assert exc_info.value.retryable is True
    assert exc_info.value.status_code == 503


async def test_other_engine_failures_are_plain_storage_errors(store, monkeypatch):
    async def failing_lookup(db, client_id):
        raise SQLAlchemyError("engine exploded")

    monkeypatch.setattr(client_repo, "get_client_by_id", failing_lookup)

    with pytest.raises(StorageError) as exc_info:
        await store.clients.get("c1")

    assert type(exc_info.value) is StorageError
    assert exc_info.value.retryable is False
    assert "engine exploded" not in exc_info.value.message
