from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from oauth2_store.models.dto.cache_models import SessionCache
from oauth2_store.models.entities import Entity
from oauth2_store.models.persistance.cache import CACHE_TABLES, CacheRecordMixin
from oauth2_store.repositories.utils import flush_or_conflict


def _table(entity: Entity) -> type[CacheRecordMixin]:
    try:
        return CACHE_TABLES[entity]
    except KeyError:
        raise ValueError(f"{entity} is not a cache collection") from None


async def create_cache(
    db: AsyncSession,
    entity: Entity,
    cache: SessionCache,
) -> CacheRecordMixin:
    record = _table(entity)(**cache.model_dump())

    db.add(record)
    await flush_or_conflict(db, entity.value)
    return record


async def get_cache(
    db: AsyncSession,
    entity: Entity,
    key: str,
) -> CacheRecordMixin | None:
    table = _table(entity)
    stmt = select(table).where(table.id == key)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def update_cache(
    db: AsyncSession,
    entity: Entity,
    key: str,
    *,
    signature: str,
    update_time: int,
) -> CacheRecordMixin | None:
    record = await get_cache(db, entity, key)
    if record is None:
        return None

    record.signature = signature
    record.update_time = update_time
    await flush_or_conflict(db, entity.value)
    return record


async def delete_cache(
    db: AsyncSession,
    entity: Entity,
    key: str,
) -> bool:
    table = _table(entity)
    result = await db.execute(delete(table).where(table.id == key))
    return result.rowcount > 0


async def delete_cache_by_signature(
    db: AsyncSession,
    entity: Entity,
    signature: str,
) -> int:
    table = _table(entity)
    result = await db.execute(delete(table).where(table.signature == signature))
    return result.rowcount
