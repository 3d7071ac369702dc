import uuid
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from oauth2_store.common.exceptions import (
    AccessDeniedError,
    ConflictError,
    NotFoundError,
)
from oauth2_store.models.dto.client_models import Client, ListClientsRequest
from oauth2_store.models.entities import Entity
from oauth2_store.repositories import client_repo
from oauth2_store.services.base import (
    LOG_CONFLICT,
    LOG_NOT_FOUND,
    CredentialManager,
    now,
)
from oauth2_store.services.migration import AuthFunc, authenticate_migration


class ClientManager(CredentialManager):
    """Storage for OAuth 2.0 client registrations."""

    entity = Entity.CLIENTS.value

    # ---------------------------------------------------------------------------
    # Internal helpers
    # ---------------------------------------------------------------------------

    async def _get(self, db: AsyncSession, client_id: str, method: str) -> Client:
        record = await client_repo.get_client_by_id(db, client_id)
        if record is None:
            self.logger.debug(LOG_NOT_FOUND, extra=self._fields(method, id=client_id))
            raise NotFoundError(message=f"client {client_id} not found")
        return Client.model_validate(record)

    async def _write(self, db: AsyncSession, client_id: str, values: dict, method: str) -> Client:
        record = await client_repo.update_client(db, client_id, values)
        if record is None:
            self.logger.debug(LOG_NOT_FOUND, extra=self._fields(method, id=client_id))
            raise NotFoundError(message=f"client {client_id} not found")
        return Client.model_validate(record)

    # ---------------------------------------------------------------------------
    # CRUD
    # ---------------------------------------------------------------------------

    async def create(self, client: Client, *, db: Optional[AsyncSession] = None) -> Client:
        """
        Store a new client, hashing its secret.

        An id and create time are assigned when the caller leaves them empty.

        Raises:
            ConflictError: A client with the same id already exists.
            HashError: The secret could not be hashed.
        """
        client = client.model_copy(deep=True)
        if not client.id:
            client.id = str(uuid.uuid4())
        if client.create_time == 0:
            client.create_time = now()

        client.secret = await self._hash(client.secret, "create", id=client.id)

        async with self._scope(db) as session:
            try:
                record = await client_repo.create_client(session, client)
            except ConflictError:
                self.logger.debug(LOG_CONFLICT, extra=self._fields("create", id=client.id))
                raise
            return Client.model_validate(record)

    async def get(self, client_id: str, *, db: Optional[AsyncSession] = None) -> Client:
        async with self._scope(db) as session:
            return await self._get(session, client_id, "get")

    async def get_client(self, client_id: str, *, db: Optional[AsyncSession] = None) -> Client:
        """Client lookup used by the protocol engine and by request reconstruction."""
        async with self._scope(db) as session:
            return await self._get(session, client_id, "get_client")

    async def list(
        self,
        filter: Optional[ListClientsRequest] = None,
        *,
        db: Optional[AsyncSession] = None,
    ) -> List[Client]:
        async with self._scope(db) as session:
            records = await client_repo.list_clients(session, filter or ListClientsRequest())
            return [Client.model_validate(record) for record in records]

    async def update(
        self,
        client_id: str,
        updated_client: Client,
        *,
        db: Optional[AsyncSession] = None,
    ) -> Client:
        """
        Replace a client's fields.

        The id can't be changed. A blank secret, or one equal to the stored
        hash, keeps the stored hash; anything else is hashed as a new secret.
        Hashing happens before the transaction opens.

        Raises:
            NotFoundError: No client with this id exists.
        """
        updated_client = updated_client.model_copy(deep=True)
        updated_client.id = client_id

        new_hash = ""
        if updated_client.secret:
            new_hash = await self._hash(updated_client.secret, "update", id=client_id)

        async with self._scope(db) as session:
            current = await self._get(session, client_id, "update")

            updated_client.update_time = now()
            if updated_client.create_time == 0:
                updated_client.create_time = current.create_time

            if updated_client.secret in ("", current.secret):
                updated_client.secret = current.secret
            else:
                updated_client.secret = new_hash

            return await self._write(session, client_id, updated_client.model_dump(), "update")

    async def migrate(self, migrated_client: Client, *, db: Optional[AsyncSession] = None) -> Client:
        """
        Upsert a client record exactly as given.

        Meant for bulk migration from another datastore, so the secret is
        stored as supplied (normally a legacy hash) and upgraded later through
        :meth:`authenticate_migration`. An existing record keeps its create
        time and gets a fresh update time; a new one keeps the supplied
        create time or is stamped now. On PostgreSQL and SQLite the upsert is
        a single statement, so concurrent migrations of one id never conflict.
        """
        migrated_client = migrated_client.model_copy(deep=True)
        if not migrated_client.id:
            migrated_client.id = str(uuid.uuid4())
        if migrated_client.create_time == 0:
            migrated_client.create_time = now()

        async with self._scope(db) as session:
            try:
                record = await client_repo.migrate_client(session, migrated_client, update_time=now())
            except ConflictError:
                self.logger.debug(LOG_CONFLICT, extra=self._fields("migrate", id=migrated_client.id))
                raise
            return Client.model_validate(record)

    async def delete(self, client_id: str, *, db: Optional[AsyncSession] = None) -> None:
        async with self._scope(db) as session:
            if not await client_repo.delete_client(session, client_id):
                self.logger.debug(LOG_NOT_FOUND, extra=self._fields("delete", id=client_id))
                raise NotFoundError(message=f"client {client_id} not found")

    # ---------------------------------------------------------------------------
    # Authentication
    # ---------------------------------------------------------------------------

    async def authenticate(
        self,
        client_id: str,
        secret: str,
        *,
        db: Optional[AsyncSession] = None,
    ) -> Client:
        """
        Verify a client's credentials.

        Raises:
            NotFoundError: No client with this id exists.
            AccessDeniedError: The client is disabled.
            AuthFailureError: The secret does not match.
        """
        async with self._scope(db) as session:
            client = await self._get(session, client_id, "authenticate")

        if client.public:
            # No secret to check
            self.logger.debug("public client allowed access", extra=self._fields("authenticate", id=client_id))
            return client

        if client.disabled:
            self.logger.debug("disabled client denied access", extra=self._fields("authenticate", id=client_id))
            raise AccessDeniedError(message="client is disabled")

        await self._compare(client.secret, secret, "authenticate", id=client_id)
        return client

    async def authenticate_migration(
        self,
        current_auth: AuthFunc,
        client_id: str,
        secret: str,
        *,
        db: Optional[AsyncSession] = None,
    ) -> Client:
        """
        Authenticate through a legacy hash check, upgrading the stored hash on
        success. See ``oauth2_store.services.migration``.
        """
        fields = self._fields("authenticate_migration", id=client_id)

        async def persist(client: Client, new_hash: str) -> Client:
            async with self._scope(db) as session:
                return await self._write(
                    session,
                    client_id,
                    {"secret": new_hash, "update_time": now()},
                    "authenticate_migration",
                )

        return await authenticate_migration(
            current_auth,
            secret,
            compare=lambda hashed, plain: self._compare(hashed, plain, "authenticate_migration", id=client_id),
            rehash=lambda plain: self._hash(plain, "authenticate_migration", id=client_id),
            persist=persist,
            logger=self.logger,
            fields=fields,
        )

    # ---------------------------------------------------------------------------
    # Scopes
    # ---------------------------------------------------------------------------

    async def grant_scopes(
        self,
        client_id: str,
        scopes: List[str],
        *,
        db: Optional[AsyncSession] = None,
    ) -> Client:
        async with self._scope(db) as session:
            client = await self._get(session, client_id, "grant_scopes")
            client.enable_scope_access(*scopes)
            # Blank keeps the stored hash without re-hashing it
            client.secret = ""
            return await self.update(client_id, client, db=session)

    async def remove_scopes(
        self,
        client_id: str,
        scopes: List[str],
        *,
        db: Optional[AsyncSession] = None,
    ) -> Client:
        async with self._scope(db) as session:
            client = await self._get(session, client_id, "remove_scopes")
            client.disable_scope_access(*scopes)
            # Blank keeps the stored hash without re-hashing it
            client.secret = ""
            return await self.update(client_id, client, db=session)
