import uuid
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from oauth2_store.common.exceptions import (
    AccessDeniedError,
    ConflictError,
    NotFoundError,
)
from oauth2_store.models.dto.user_models import ListUsersRequest, User
from oauth2_store.models.entities import Entity
from oauth2_store.models.persistance.users import UserRecord
from oauth2_store.repositories import user_repo
from oauth2_store.services.base import (
    LOG_CONFLICT,
    LOG_NOT_FOUND,
    CredentialManager,
    now,
)
from oauth2_store.services.migration import AuthFunc, authenticate_migration


class UserManager(CredentialManager):
    """Storage for resource owner credentials."""

    entity = Entity.USERS.value

    def _found(self, record: Optional[UserRecord], method: str, **fields) -> User:
        if record is None:
            self.logger.debug(LOG_NOT_FOUND, extra=self._fields(method, **fields))
            raise NotFoundError(message="user not found")
        return User.model_validate(record)

    async def create(self, user: User, *, db: Optional[AsyncSession] = None) -> User:
        """
        Store a new user, hashing its password.

        Raises:
            ConflictError: The id or the username is already taken.
            HashError: The password could not be hashed.
        """
        user = user.model_copy(deep=True)
        if not user.id:
            user.id = str(uuid.uuid4())
        if user.create_time == 0:
            user.create_time = now()

        user.password = await self._hash(user.password, "create", id=user.id)

        async with self._scope(db) as session:
            try:
                record = await user_repo.create_user(session, user)
            except ConflictError:
                self.logger.debug(LOG_CONFLICT, extra=self._fields("create", id=user.id))
                raise
            return User.model_validate(record)

    async def get(self, user_id: str, *, db: Optional[AsyncSession] = None) -> User:
        async with self._scope(db) as session:
            record = await user_repo.get_user_by_id(session, user_id)
            return self._found(record, "get", id=user_id)

    async def get_by_username(self, username: str, *, db: Optional[AsyncSession] = None) -> User:
        async with self._scope(db) as session:
            record = await user_repo.get_user_by_username(session, username)
            return self._found(record, "get_by_username")

    async def list(
        self,
        filter: Optional[ListUsersRequest] = None,
        *,
        db: Optional[AsyncSession] = None,
    ) -> List[User]:
        async with self._scope(db) as session:
            records = await user_repo.list_users(session, filter or ListUsersRequest())
            return [User.model_validate(record) for record in records]

    async def update(
        self,
        user_id: str,
        updated_user: User,
        *,
        db: Optional[AsyncSession] = None,
    ) -> User:
        """
        Replace a user's fields, keeping the stored hash when the password is
        blank or unchanged. Hashing happens before the transaction opens.

        Raises:
            NotFoundError: No user with this id exists.
            ConflictError: The new username is taken by another user.
        """
        updated_user = updated_user.model_copy(deep=True)
        updated_user.id = user_id

        new_hash = ""
        if updated_user.password:
            new_hash = await self._hash(updated_user.password, "update", id=user_id)

        async with self._scope(db) as session:
            current = self._found(await user_repo.get_user_by_id(session, user_id), "update", id=user_id)

            updated_user.update_time = now()
            if updated_user.create_time == 0:
                updated_user.create_time = current.create_time

            if updated_user.password in ("", current.password):
                updated_user.password = current.password
            else:
                updated_user.password = new_hash

            try:
                record = await user_repo.update_user(session, user_id, updated_user.model_dump())
            except ConflictError:
                self.logger.debug(LOG_CONFLICT, extra=self._fields("update", id=user_id))
                raise
            return self._found(record, "update", id=user_id)

    async def migrate(self, migrated_user: User, *, db: Optional[AsyncSession] = None) -> User:
        """Upsert a user record exactly as given, password included."""
        migrated_user = migrated_user.model_copy(deep=True)
        if not migrated_user.id:
            migrated_user.id = str(uuid.uuid4())
        if migrated_user.create_time == 0:
            migrated_user.create_time = now()

        async with self._scope(db) as session:
            try:
                record = await user_repo.migrate_user(session, migrated_user, update_time=now())
            except ConflictError:
                self.logger.debug(LOG_CONFLICT, extra=self._fields("migrate", id=migrated_user.id))
                raise
            return User.model_validate(record)

    async def delete(self, user_id: str, *, db: Optional[AsyncSession] = None) -> None:
        async with self._scope(db) as session:
            if not await user_repo.delete_user(session, user_id):
                self.logger.debug(LOG_NOT_FOUND, extra=self._fields("delete", id=user_id))
                raise NotFoundError(message="user not found")

    async def _check(self, user: User, secret: str, method: str) -> User:
        if user.disabled:
            self.logger.debug("disabled user denied access", extra=self._fields(method, id=user.id))
            raise AccessDeniedError(message="user is disabled")

        await self._compare(user.password, secret, method, id=user.id)
        return user

    async def authenticate(
        self,
        username: str,
        secret: str,
        *,
        db: Optional[AsyncSession] = None,
    ) -> User:
        """
        Verify a resource owner's username and password.

        Raises:
            NotFoundError: No user has this username.
            AccessDeniedError: The user is disabled.
            AuthFailureError: The password does not match.
        """
        user = await self.get_by_username(username, db=db)
        return await self._check(user, secret, "authenticate")

    async def authenticate_by_id(
        self,
        user_id: str,
        secret: str,
        *,
        db: Optional[AsyncSession] = None,
    ) -> User:
        user = await self.get(user_id, db=db)
        return await self._check(user, secret, "authenticate_by_id")

    async def authenticate_migration(
        self,
        current_auth: AuthFunc,
        user_id: str,
        secret: str,
        *,
        db: Optional[AsyncSession] = None,
    ) -> User:
        async def persist(user: User, new_hash: str) -> User:
            async with self._scope(db) as session:
                record = await user_repo.update_user(
                    session,
                    user_id,
                    {"password": new_hash, "update_time": now()},
                )
                return self._found(record, "authenticate_migration", id=user_id)

        return await authenticate_migration(
            current_auth,
            secret,
            compare=lambda hashed, plain: self._compare(hashed, plain, "authenticate_migration", id=user_id),
            rehash=lambda plain: self._hash(plain, "authenticate_migration", id=user_id),
            persist=persist,
            logger=self.logger,
            fields=self._fields("authenticate_migration", id=user_id),
        )
