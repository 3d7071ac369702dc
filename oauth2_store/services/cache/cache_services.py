from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from oauth2_store.common.exceptions import ConflictError, NotFoundError
from oauth2_store.models.dto.cache_models import SessionCache
from oauth2_store.models.entities import Entity
from oauth2_store.repositories import cache_repo
from oauth2_store.services.base import (
    LOG_CONFLICT,
    LOG_NOT_FOUND,
    BaseManager,
    now,
)


class CacheManager(BaseManager):
    """
    Key to signature links kept alongside token sessions.

    Entries have no expiry of their own; they are created and removed together
    with the session records they point at.
    """

    entity = "cache"

    def _log_fields(self, entity: Entity, method: str, key: str) -> dict:
        return {"collection": entity.value, "method": method, "id": key}

    async def create(
        self,
        entity: Entity,
        cache: SessionCache,
        *,
        db: Optional[AsyncSession] = None,
    ) -> SessionCache:
        cache = cache.model_copy()
        if cache.create_time == 0:
            cache.create_time = now()

        async with self._scope(db) as session:
            try:
                record = await cache_repo.create_cache(session, entity, cache)
            except ConflictError:
                self.logger.debug(LOG_CONFLICT, extra=self._log_fields(entity, "create", cache.id))
                raise
            return SessionCache.model_validate(record)

    async def get(
        self,
        entity: Entity,
        key: str,
        *,
        db: Optional[AsyncSession] = None,
    ) -> SessionCache:
        async with self._scope(db) as session:
            record = await cache_repo.get_cache(session, entity, key)
            if record is None:
                self.logger.debug(LOG_NOT_FOUND, extra=self._log_fields(entity, "get", key))
                raise NotFoundError(message="cache entry not found")
            return SessionCache.model_validate(record)

    async def update(
        self,
        entity: Entity,
        key: str,
        cache: SessionCache,
        *,
        db: Optional[AsyncSession] = None,
    ) -> SessionCache:
        """Point an existing key at a new signature."""
        async with self._scope(db) as session:
            record = await cache_repo.update_cache(
                session,
                entity,
                key,
                signature=cache.signature,
                update_time=now(),
            )
            if record is None:
                self.logger.debug(LOG_NOT_FOUND, extra=self._log_fields(entity, "update", key))
                raise NotFoundError(message="cache entry not found")
            return SessionCache.model_validate(record)

    async def delete(
        self,
        entity: Entity,
        key: str,
        *,
        db: Optional[AsyncSession] = None,
    ) -> None:
        async with self._scope(db) as session:
            if not await cache_repo.delete_cache(session, entity, key):
                self.logger.debug(LOG_NOT_FOUND, extra=self._log_fields(entity, "delete", key))
                raise NotFoundError(message="cache entry not found")

    async def delete_by_value(
        self,
        entity: Entity,
        signature: str,
        *,
        db: Optional[AsyncSession] = None,
    ) -> int:
        """
        Remove every entry pointing at ``signature``.

        Returns:
            The number of entries removed, zero included.
        """
        async with self._scope(db) as session:
            return await cache_repo.delete_cache_by_signature(session, entity, signature)
