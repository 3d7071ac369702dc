from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from oauth2_store.models.dto.request_models import ListRequestsRequest, StoredRequest
from oauth2_store.models.entities import Entity
from oauth2_store.models.persistance.sessions import SESSION_TABLES, SessionRecordMixin
from oauth2_store.repositories.utils import (
    contains_all,
    contains_any,
    flush_or_conflict,
)


def _table(entity: Entity) -> type[SessionRecordMixin]:
    try:
        return SESSION_TABLES[entity]
    except KeyError:
        raise ValueError(f"{entity} is not a session collection") from None


async def create_session_record(
    db: AsyncSession,
    entity: Entity,
    stored: StoredRequest,
) -> SessionRecordMixin:
    record = _table(entity)(**stored.model_dump())

    db.add(record)
    await flush_or_conflict(db, entity.value)
    return record


async def get_session_record(
    db: AsyncSession,
    entity: Entity,
    signature: str,
) -> SessionRecordMixin | None:
    table = _table(entity)
    stmt = select(table).where(table.signature == signature)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


def _matches(record: SessionRecordMixin, filter: ListRequestsRequest) -> bool:
    if filter.scopes_intersection and not contains_all(record.requested_scopes, filter.scopes_intersection):
        return False
    if filter.scopes_union and not contains_any(record.requested_scopes, filter.scopes_union):
        return False
    if filter.granted_scopes_intersection and not contains_all(record.granted_scopes, filter.granted_scopes_intersection):
        return False
    if filter.granted_scopes_union and not contains_any(record.granted_scopes, filter.granted_scopes_union):
        return False
    return True


async def list_session_records(
    db: AsyncSession,
    entity: Entity,
    filter: ListRequestsRequest,
) -> list[SessionRecordMixin]:
    """
    Records matching every set field of ``filter``.

    ``client_id`` and ``user_id`` narrow the SQL query through indexed or
    plain columns; the scope filters are matched in Python on the rows that
    remain, so pass a client or user id when listing large tables.
    """
    table = _table(entity)
    stmt = select(table).order_by(table.requested_at, table.signature)
    if filter.client_id:
        stmt = stmt.where(table.client_id == filter.client_id)
    if filter.user_id:
        stmt = stmt.where(table.user_id == filter.user_id)

    result = await db.execute(stmt)
    return [record for record in result.scalars() if _matches(record, filter)]


async def update_session_record(
    db: AsyncSession,
    entity: Entity,
    signature: str,
    values: dict[str, Any],
) -> SessionRecordMixin | None:
    record = await get_session_record(db, entity, signature)
    if record is None:
        return None

    for key, value in values.items():
        setattr(record, key, value)

    await flush_or_conflict(db, entity.value)
    return record


async def delete_session_record(
    db: AsyncSession,
    entity: Entity,
    signature: str,
) -> bool:
    table = _table(entity)
    result = await db.execute(delete(table).where(table.signature == signature))
    return result.rowcount > 0
