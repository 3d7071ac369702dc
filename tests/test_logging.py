import io
import logging

import pytest

from oauth2_store.common.exceptions import NotFoundError
from oauth2_store.core.logging_config import STORE_LOGGER_NAME, setup_logging


@pytest.fixture
def stream():
    output = io.StringIO()
    yield output

    store_logger = logging.getLogger(STORE_LOGGER_NAME)
    store_logger.handlers.clear()
    store_logger.setLevel(logging.NOTSET)
    store_logger.propagate = True


def test_structured_fields_are_appended(stream):
    setup_logging("debug", stream=stream)

    logging.getLogger("oauth2_store.clients").debug(
        "resource not found",
        extra={"collection": "clients", "method": "get", "id": "c1"},
    )

    line = stream.getvalue().strip()
    assert "[DEBUG] oauth2_store.clients: resource not found" in line
    assert line.endswith("[collection=clients method=get id=c1]")


def test_level_filters_records(stream):
    setup_logging("warning", stream=stream)

    store_logger = logging.getLogger("oauth2_store.users")
    store_logger.info("upgrading legacy secret hash")
    store_logger.warning("failed to authenticate secret", extra={"collection": "users"})

    output = stream.getvalue()
    assert "upgrading legacy secret hash" not in output
    assert "failed to authenticate secret [collection=users]" in output


def test_setup_is_repeatable(stream):
    setup_logging("info", stream=stream)
    store_logger = setup_logging("info", stream=stream)

    assert len(store_logger.handlers) == 1
    assert store_logger.propagate is False


async def test_manager_logs_not_found(store, stream):
    setup_logging("debug", stream=stream)

    with pytest.raises(NotFoundError):
        await store.clients.get("missing")

    assert "resource not found [collection=clients method=get id=missing]" in stream.getvalue()
