import logging
from typing import List, Optional

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from oauth2_store.common.exceptions import (
    ConflictError,
    InvalidatedAuthorizeCodeError,
    NotFoundError,
    SessionDecodeError,
)
from oauth2_store.models.dto.cache_models import SessionCache
from oauth2_store.models.dto.client_models import Client
from oauth2_store.models.dto.request_models import (
    ListRequestsRequest,
    Request,
    Session,
    StoredRequest,
)
from oauth2_store.models.entities import Entity
from oauth2_store.repositories import session_repo
from oauth2_store.services.base import (
    LOG_CONFLICT,
    LOG_NOT_FOUND,
    BaseManager,
    now,
)
from oauth2_store.services.cache.cache_services import CacheManager
from oauth2_store.services.clients.client_services import ClientManager
from oauth2_store.services.users.user_services import UserManager


# Token sessions that keep a request id -> signature link for revocation
CACHE_LINKS = {
    Entity.ACCESS_TOKENS: Entity.CACHE_ACCESS_TOKENS,
    Entity.REFRESH_TOKENS: Entity.CACHE_REFRESH_TOKENS,
}


class RequestManager(BaseManager):
    """
    Session request records for every grant kind.

    All kinds share one record shape; the ``Entity`` passed to the generic
    methods picks the table. The ``*_session`` methods per grant kind are thin
    wrappers the OAuth2 engine calls directly.
    """

    entity = "requests"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clients: ClientManager,
        users: UserManager,
        cache: CacheManager,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(session_factory, logger)
        self.clients = clients
        self.users = users
        self.cache = cache

    def _log_fields(self, entity: Entity, method: str, **fields) -> dict:
        return {"collection": entity.value, "method": method, **fields}

    # ---------------------------------------------------------------------------
    # Stored records
    # ---------------------------------------------------------------------------

    async def create(
        self,
        entity: Entity,
        stored: StoredRequest,
        *,
        db: Optional[AsyncSession] = None,
    ) -> StoredRequest:
        stored = stored.model_copy(deep=True)
        if stored.create_time == 0:
            stored.create_time = now()

        async with self._scope(db) as db_session:
            try:
                record = await session_repo.create_session_record(db_session, entity, stored)
            except ConflictError:
                self.logger.debug(LOG_CONFLICT, extra=self._log_fields(entity, "create", id=stored.request_id))
                raise
            return StoredRequest.model_validate(record)

    async def get_by_signature(
        self,
        entity: Entity,
        signature: str,
        *,
        db: Optional[AsyncSession] = None,
    ) -> StoredRequest:
        async with self._scope(db) as db_session:
            record = await session_repo.get_session_record(db_session, entity, signature)
            if record is None:
                self.logger.debug(LOG_NOT_FOUND, extra=self._log_fields(entity, "get_by_signature"))
                raise NotFoundError(message="session not found")
            return StoredRequest.model_validate(record)

    async def list(
        self,
        entity: Entity,
        filter: Optional[ListRequestsRequest] = None,
        *,
        db: Optional[AsyncSession] = None,
    ) -> List[StoredRequest]:
        async with self._scope(db) as db_session:
            records = await session_repo.list_session_records(db_session, entity, filter or ListRequestsRequest())
            return [StoredRequest.model_validate(record) for record in records]

    async def update(
        self,
        entity: Entity,
        signature: str,
        stored: StoredRequest,
        *,
        db: Optional[AsyncSession] = None,
    ) -> StoredRequest:
        """Replace a record's fields; the signature and create time are kept."""
        values = stored.model_dump(exclude={"signature", "create_time"})
        values["update_time"] = now()

        async with self._scope(db) as db_session:
            record = await session_repo.update_session_record(db_session, entity, signature, values)
            if record is None:
                self.logger.debug(LOG_NOT_FOUND, extra=self._log_fields(entity, "update"))
                raise NotFoundError(message="session not found")
            return StoredRequest.model_validate(record)

    async def delete_by_signature(
        self,
        entity: Entity,
        signature: str,
        *,
        db: Optional[AsyncSession] = None,
    ) -> None:
        async with self._scope(db) as db_session:
            if not await session_repo.delete_session_record(db_session, entity, signature):
                self.logger.debug(LOG_NOT_FOUND, extra=self._log_fields(entity, "delete_by_signature"))
                raise NotFoundError(message="session not found")

    # ---------------------------------------------------------------------------
    # Protocol sessions
    # ---------------------------------------------------------------------------

    async def create_session(
        self,
        entity: Entity,
        signature: str,
        request: Request,
        *,
        db: Optional[AsyncSession] = None,
    ) -> None:
        """
        Persist a request under ``signature``.

        Token sessions also record a request id -> signature link in the same
        transaction, so either both rows are written or neither is.

        Raises:
            ConflictError: The signature (or the request id link) is taken.
        """
        stored = StoredRequest.from_request(signature, request)

        async with self._scope(db) as db_session:
            await self.create(entity, stored, db=db_session)

            cache_entity = CACHE_LINKS.get(entity)
            if cache_entity is not None:
                await self.cache.create(
                    cache_entity,
                    SessionCache(id=request.id, signature=signature),
                    db=db_session,
                )

    async def get_session(
        self,
        entity: Entity,
        signature: str,
        session: Optional[Session] = None,
        *,
        db: Optional[AsyncSession] = None,
    ) -> Request:
        """
        Load a request and rebuild it around its owning client.

        Args:
            entity: Session collection to read from.
            signature: Signature the request was stored under.
            session: Destination session; the stored payload is parsed with
                its class.

        Raises:
            NotFoundError: No record has this signature, or its client has
                since been deleted.
            SessionDecodeError: The stored payload does not fit the
                destination session class.
            InvalidatedAuthorizeCodeError: The authorization code was
                invalidated. The rebuilt request, with its client secret
                redacted, is attached to the error.
        """
        async with self._scope(db) as db_session:
            stored = await self.get_by_signature(entity, signature, db=db_session)
            client = await self.clients.get_client(stored.client_id, db=db_session)

        try:
            request = stored.to_request(client, session)
        except ValidationError as e:
            # The payload may hold claims, keep it out of the error
            self.logger.error(
                "stored session does not fit destination",
                extra=self._log_fields(entity, "get_session", error=type(e).__name__),
            )
            raise SessionDecodeError(message="stored session payload could not be decoded") from e

        if entity is Entity.AUTHORIZATION_CODES and not stored.active:
            self.logger.debug("authorization code has been invalidated", extra=self._log_fields(entity, "get_session"))
            raise InvalidatedAuthorizeCodeError(
                request=request.model_copy(update={"client": client.redacted()}),
            )

        return request

    async def delete_session(
        self,
        entity: Entity,
        signature: str,
        *,
        db: Optional[AsyncSession] = None,
    ) -> None:
        async with self._scope(db) as db_session:
            await self.delete_by_signature(entity, signature, db=db_session)

            cache_entity = CACHE_LINKS.get(entity)
            if cache_entity is not None:
                await self.cache.delete_by_value(cache_entity, signature, db=db_session)

    async def _revoke(self, entity: Entity, request_id: str, db: Optional[AsyncSession]) -> None:
        cache_entity = CACHE_LINKS[entity]

        async with self._scope(db) as db_session:
            link = await self.cache.get(cache_entity, request_id, db=db_session)
            if not await session_repo.delete_session_record(db_session, entity, link.signature):
                # Session already gone, only the dangling link is left to clear
                self.logger.debug(LOG_NOT_FOUND, extra=self._log_fields(entity, "revoke", id=request_id))
            await self.cache.delete_by_value(cache_entity, link.signature, db=db_session)

    # ---------------------------------------------------------------------------
    # Authorization codes
    # ---------------------------------------------------------------------------

    async def create_authorize_code_session(self, code: str, request: Request, *, db: Optional[AsyncSession] = None) -> None:
        await self.create_session(Entity.AUTHORIZATION_CODES, code, request, db=db)

    async def get_authorize_code_session(
        self,
        code: str,
        session: Optional[Session] = None,
        *,
        db: Optional[AsyncSession] = None,
    ) -> Request:
        return await self.get_session(Entity.AUTHORIZATION_CODES, code, session, db=db)

    async def invalidate_authorize_code_session(self, code: str, *, db: Optional[AsyncSession] = None) -> None:
        """Mark a code as used; later reads raise ``InvalidatedAuthorizeCodeError``."""
        entity = Entity.AUTHORIZATION_CODES
        async with self._scope(db) as db_session:
            record = await session_repo.update_session_record(
                db_session,
                entity,
                code,
                {"active": False, "update_time": now()},
            )
            if record is None:
                self.logger.debug(LOG_NOT_FOUND, extra=self._log_fields(entity, "invalidate_authorize_code_session"))
                raise NotFoundError(message="session not found")

    async def delete_authorize_code_session(self, code: str, *, db: Optional[AsyncSession] = None) -> None:
        await self.delete_session(Entity.AUTHORIZATION_CODES, code, db=db)

    # ---------------------------------------------------------------------------
    # Access tokens
    # ---------------------------------------------------------------------------

    async def create_access_token_session(self, signature: str, request: Request, *, db: Optional[AsyncSession] = None) -> None:
        await self.create_session(Entity.ACCESS_TOKENS, signature, request, db=db)

    async def get_access_token_session(
        self,
        signature: str,
        session: Optional[Session] = None,
        *,
        db: Optional[AsyncSession] = None,
    ) -> Request:
        return await self.get_session(Entity.ACCESS_TOKENS, signature, session, db=db)

    async def delete_access_token_session(self, signature: str, *, db: Optional[AsyncSession] = None) -> None:
        await self.delete_session(Entity.ACCESS_TOKENS, signature, db=db)

    async def revoke_access_token(self, request_id: str, *, db: Optional[AsyncSession] = None) -> None:
        """
        Remove the access token issued for ``request_id``.

        Raises:
            NotFoundError: Nothing links this request id to an access token.
        """
        await self._revoke(Entity.ACCESS_TOKENS, request_id, db)

    # ---------------------------------------------------------------------------
    # Refresh tokens
    # ---------------------------------------------------------------------------

    async def create_refresh_token_session(self, signature: str, request: Request, *, db: Optional[AsyncSession] = None) -> None:
        await self.create_session(Entity.REFRESH_TOKENS, signature, request, db=db)

    async def get_refresh_token_session(
        self,
        signature: str,
        session: Optional[Session] = None,
        *,
        db: Optional[AsyncSession] = None,
    ) -> Request:
        return await self.get_session(Entity.REFRESH_TOKENS, signature, session, db=db)

    async def delete_refresh_token_session(self, signature: str, *, db: Optional[AsyncSession] = None) -> None:
        await self.delete_session(Entity.REFRESH_TOKENS, signature, db=db)

    async def revoke_refresh_token(self, request_id: str, *, db: Optional[AsyncSession] = None) -> None:
        await self._revoke(Entity.REFRESH_TOKENS, request_id, db)

    # ---------------------------------------------------------------------------
    # PKCE
    # ---------------------------------------------------------------------------

    async def create_pkce_request_session(self, signature: str, request: Request, *, db: Optional[AsyncSession] = None) -> None:
        await self.create_session(Entity.PKCE_SESSIONS, signature, request, db=db)

    async def get_pkce_request_session(
        self,
        signature: str,
        session: Optional[Session] = None,
        *,
        db: Optional[AsyncSession] = None,
    ) -> Request:
        return await self.get_session(Entity.PKCE_SESSIONS, signature, session, db=db)

    async def delete_pkce_request_session(self, signature: str, *, db: Optional[AsyncSession] = None) -> None:
        await self.delete_session(Entity.PKCE_SESSIONS, signature, db=db)

    # ---------------------------------------------------------------------------
    # OpenID Connect
    # ---------------------------------------------------------------------------

    async def create_openid_connect_session(self, authorize_code: str, request: Request, *, db: Optional[AsyncSession] = None) -> None:
        await self.create_session(Entity.OPENID_CONNECT_SESSIONS, authorize_code, request, db=db)

    async def get_openid_connect_session(
        self,
        authorize_code: str,
        session: Optional[Session] = None,
        *,
        db: Optional[AsyncSession] = None,
    ) -> Request:
        return await self.get_session(Entity.OPENID_CONNECT_SESSIONS, authorize_code, session, db=db)

    async def delete_openid_connect_session(self, authorize_code: str, *, db: Optional[AsyncSession] = None) -> None:
        await self.delete_session(Entity.OPENID_CONNECT_SESSIONS, authorize_code, db=db)

    # ---------------------------------------------------------------------------
    # Resource owner password credentials
    # ---------------------------------------------------------------------------

    async def authenticate(self, username: str, secret: str, *, db: Optional[AsyncSession] = None) -> None:
        """Check a resource owner's password without handing back the user record."""
        await self.users.authenticate(username, secret, db=db)

    async def get_client(self, client_id: str, *, db: Optional[AsyncSession] = None) -> Client:
        return await self.clients.get_client(client_id, db=db)
