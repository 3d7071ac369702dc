from typing import Dict

import pytest

from oauth2_store.common.exceptions import (
    AuthFailureError,
    ConflictError,
    InvalidatedAuthorizeCodeError,
    NotFoundError,
    SessionDecodeError,
)
from oauth2_store.models.dto.client_models import REDACTED
from oauth2_store.models.dto.request_models import ListRequestsRequest, Request, Session
from oauth2_store.models.dto.user_models import User
from oauth2_store.models.entities import SESSION_ENTITIES, Entity


class OpenIDSession(Session):
    nonce: str = ""
    id_token_claims: Dict[str, str] = {}


class NonceSession(Session):
    nonce: str


# ---------------------------------------------------------------------------
# Round trips
# ---------------------------------------------------------------------------

async def test_pkce_session_lifecycle(store, make_request):
    request = make_request()
    await store.requests.create_pkce_request_session("sig1", request)

    loaded = await store.requests.get_pkce_request_session("sig1")
    assert loaded.id == request.id
    assert loaded.client == request.client
    assert loaded.granted_scopes == ["openid"]
    assert loaded.requested_scopes == ["openid", "profile"]
    assert loaded.granted_audience == ["https://api.example.com"]
    assert loaded.form == request.form

    await store.requests.delete_pkce_request_session("sig1")

    with pytest.raises(NotFoundError):
        await store.requests.get_pkce_request_session("sig1")
    with pytest.raises(NotFoundError):
        await store.requests.delete_pkce_request_session("sig1")


@pytest.mark.parametrize("entity", SESSION_ENTITIES)
async def test_every_kind_round_trips(store, make_request, entity):
    request = make_request()
    await store.requests.create_session(entity, "sig1", request)

    assert await store.requests.get_session(entity, "sig1") == request


async def test_session_payload_is_parsed_with_destination_class(store, make_request):
    session = OpenIDSession(subject="user-1", nonce="n-0S6", id_token_claims={"acr": "1"})
    await store.requests.create_openid_connect_session("code-1", make_request(session=session))

    loaded = await store.requests.get_openid_connect_session("code-1", OpenIDSession())

    assert isinstance(loaded.session, OpenIDSession)
    assert loaded.session == session


async def test_payload_not_fitting_destination_is_a_storage_error(store, make_request):
    await store.requests.create_pkce_request_session("sig1", make_request())

    with pytest.raises(SessionDecodeError) as exc_info:
        await store.requests.get_pkce_request_session("sig1", NonceSession(nonce="n-0S6"))

    assert exc_info.value.retryable is False
    assert "alice" not in str(exc_info.value)
    assert "user-1" not in str(exc_info.value)


async def test_stored_record_keeps_user_and_client(store, make_request):
    await store.requests.create_access_token_session("sig1", make_request())

    stored = await store.requests.get_by_signature(Entity.ACCESS_TOKENS, "sig1")

    assert stored.client_id == "c1"
    assert stored.user_id == "alice"
    assert stored.session["subject"] == "user-1"
    assert stored.active


async def test_duplicate_signature_conflicts(store, make_request):
    first = make_request()
    await store.requests.create_authorize_code_session("code-1", first)

    with pytest.raises(ConflictError):
        await store.requests.create_authorize_code_session("code-1", make_request(granted_scopes=[]))

    assert (await store.requests.get_authorize_code_session("code-1")).granted_scopes == ["openid"]


async def test_signatures_are_unique_per_collection(store, make_request):
    await store.requests.create_access_token_session("sig1", make_request())
    await store.requests.create_refresh_token_session("sig1", make_request())

    assert (await store.requests.get_refresh_token_session("sig1")).client.id == "c1"


async def test_deleted_client_makes_session_unreadable(store, make_request):
    await store.requests.create_refresh_token_session("sig1", make_request())
    await store.clients.delete("c1")

    with pytest.raises(NotFoundError):
        await store.requests.get_refresh_token_session("sig1")


async def test_update_keeps_signature_and_create_time(store, make_request):
    await store.requests.create_access_token_session("sig1", make_request())
    stored = await store.requests.get_by_signature(Entity.ACCESS_TOKENS, "sig1")

    updated = await store.requests.update(
        Entity.ACCESS_TOKENS,
        "sig1",
        stored.model_copy(update={"signature": "other", "create_time": 1, "granted_scopes": ["openid", "profile"]}),
    )

    assert updated.signature == "sig1"
    assert updated.create_time == stored.create_time
    assert updated.granted_scopes == ["openid", "profile"]
    assert updated.update_time > 0

    with pytest.raises(NotFoundError):
        await store.requests.update(Entity.ACCESS_TOKENS, "missing", stored)


# ---------------------------------------------------------------------------
# Authorization codes
# ---------------------------------------------------------------------------

async def test_invalidated_authorize_code(store, make_request):
    request = make_request()
    await store.requests.create_authorize_code_session("code-1", request)

    await store.requests.invalidate_authorize_code_session("code-1")

    with pytest.raises(InvalidatedAuthorizeCodeError) as exc_info:
        await store.requests.get_authorize_code_session("code-1")
    rebuilt = exc_info.value.request
    assert rebuilt.id == request.id
    assert rebuilt.granted_scopes == request.granted_scopes
    assert rebuilt.client.id == "c1"
    assert rebuilt.client.secret == REDACTED

    with pytest.raises(NotFoundError):
        await store.requests.invalidate_authorize_code_session("missing")


# ---------------------------------------------------------------------------
# Token revocation
# ---------------------------------------------------------------------------

async def test_revoke_access_token_by_request_id(store, make_request):
    request = make_request()
    await store.requests.create_access_token_session("sig1", request)

    link = await store.cache.get(Entity.CACHE_ACCESS_TOKENS, request.id)
    assert link.signature == "sig1"

    await store.requests.revoke_access_token(request.id)

    with pytest.raises(NotFoundError):
        await store.requests.get_access_token_session("sig1")
    with pytest.raises(NotFoundError):
        await store.cache.get(Entity.CACHE_ACCESS_TOKENS, request.id)
    with pytest.raises(NotFoundError):
        await store.requests.revoke_access_token(request.id)


async def test_revoke_refresh_token_leaves_access_token(store, make_request):
    request = make_request()
    await store.requests.create_access_token_session("at-sig", request)
    await store.requests.create_refresh_token_session("rt-sig", request)

    await store.requests.revoke_refresh_token(request.id)

    with pytest.raises(NotFoundError):
        await store.requests.get_refresh_token_session("rt-sig")
    assert (await store.requests.get_access_token_session("at-sig")).id == request.id


async def test_delete_token_session_removes_cache_link(store, make_request):
    request = make_request()
    await store.requests.create_access_token_session("sig1", request)

    await store.requests.delete_access_token_session("sig1")

    with pytest.raises(NotFoundError):
        await store.cache.get(Entity.CACHE_ACCESS_TOKENS, request.id)


async def test_reused_request_id_rolls_back_whole_session(store, make_request):
    request = make_request()
    await store.requests.create_access_token_session("sig1", request)

    with pytest.raises(ConflictError):
        await store.requests.create_access_token_session("sig2", request)

    with pytest.raises(NotFoundError):
        await store.requests.get_access_token_session("sig2")
    assert (await store.cache.get(Entity.CACHE_ACCESS_TOKENS, request.id)).signature == "sig1"


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

async def test_list_filters(store, make_request):
    await store.requests.create_access_token_session("sig1", make_request(requested_at=1))
    await store.requests.create_access_token_session(
        "sig2",
        make_request(requested_at=2, granted_scopes=["openid", "profile"], session=Session(subject="user-2")),
    )

    async def signatures(**filter):
        stored = await store.requests.list(Entity.ACCESS_TOKENS, ListRequestsRequest(**filter))
        return [record.signature for record in stored]

    assert await signatures() == ["sig1", "sig2"]
    assert await signatures(client_id="c1") == ["sig1", "sig2"]
    assert await signatures(client_id="c2") == []
    assert await signatures(user_id="user-2") == ["sig2"]
    assert await signatures(granted_scopes_intersection=["openid", "profile"]) == ["sig2"]
    assert await signatures(granted_scopes_union=["profile", "email"]) == ["sig2"]
    assert await signatures(scopes_intersection=["openid", "profile"]) == ["sig1", "sig2"]
    assert await signatures(scopes_union=["email"]) == []


# ---------------------------------------------------------------------------
# Passthroughs
# ---------------------------------------------------------------------------

async def test_authenticate_resource_owner(store):
    await store.users.create(User(username="alice", password="correct horse"))

    assert await store.requests.authenticate("alice", "correct horse") is None
    with pytest.raises(AuthFailureError):
        await store.requests.authenticate("alice", "wrong")


async def test_get_client_passthrough(store, stored_client):
    assert await store.requests.get_client("c1") == stored_client


async def test_configure_is_idempotent(store, make_request):
    await store.requests.create_pkce_request_session("sig1", make_request())

    await store.configure()

    assert (await store.requests.get_pkce_request_session("sig1")).client.id == "c1"


def test_request_grants_are_deduplicated():
    request = Request(granted_scopes=["openid"])
    request.grant_scope("openid")
    request.grant_scope("email")
    request.grant_audience("https://api.example.com")
    request.grant_audience("https://api.example.com")

    assert request.granted_scopes == ["openid", "email"]
    assert request.granted_audience == ["https://api.example.com"]
