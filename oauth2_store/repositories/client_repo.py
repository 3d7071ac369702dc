from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from oauth2_store.models.dto.client_models import Client, ListClientsRequest
from oauth2_store.models.entities import Entity
from oauth2_store.models.persistance.clients import ClientRecord
from oauth2_store.repositories.utils import (
    contains_all,
    contains_any,
    flush_or_conflict,
    upsert_or_conflict,
)


async def create_client(
    db: AsyncSession,
    client: Client,
) -> ClientRecord:
    record = ClientRecord(**client.model_dump())

    db.add(record)
    await flush_or_conflict(db, Entity.CLIENTS.value)
    return record


async def get_client_by_id(
    db: AsyncSession,
    client_id: str,
) -> ClientRecord | None:
    stmt = select(ClientRecord).where(ClientRecord.id == client_id)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


def _matches(record: ClientRecord, filter: ListClientsRequest) -> bool:
    # JSON list columns are matched here to stay portable across dialects
    if filter.allowed_tenant_access and filter.allowed_tenant_access not in record.allowed_tenant_access:
        return False
    if filter.redirect_uri and filter.redirect_uri not in record.redirect_uris:
        return False
    if filter.grant_type and filter.grant_type not in record.grant_types:
        return False
    if filter.response_type and filter.response_type not in record.response_types:
        return False
    if filter.scopes_intersection and not contains_all(record.scopes, filter.scopes_intersection):
        return False
    if filter.scopes_union and not contains_any(record.scopes, filter.scopes_union):
        return False
    if filter.contact and filter.contact not in record.contacts:
        return False
    return True


async def list_clients(
    db: AsyncSession,
    filter: ListClientsRequest,
) -> list[ClientRecord]:
    """
    Clients matching every set field of ``filter``, ordered by id.

    Only the boolean fields narrow the SQL query. The JSON list fields are
    matched in Python, so those filters read every remaining row. That suits
    client tables, which stay small; a large deployment would push the
    checks down with a dialect JSON operator.
    """
    stmt = select(ClientRecord).order_by(ClientRecord.id)
    if filter.public:
        stmt = stmt.where(ClientRecord.public.is_(True))
    if filter.disabled:
        stmt = stmt.where(ClientRecord.disabled.is_(True))

    result = await db.execute(stmt)
    return [record for record in result.scalars() if _matches(record, filter)]


async def update_client(
    db: AsyncSession,
    client_id: str,
    values: dict[str, Any],
) -> ClientRecord | None:
    record = await get_client_by_id(db, client_id)
    if record is None:
        return None

    for key, value in values.items():
        setattr(record, key, value)

    await flush_or_conflict(db, Entity.CLIENTS.value)
    return record


async def migrate_client(
    db: AsyncSession,
    client: Client,
    update_time: int,
) -> ClientRecord:
    """
    Insert the client, or overwrite the existing row with the same id.

    An overwrite keeps the stored ``create_time`` and sets ``update_time``.
    """
    upserted = await upsert_or_conflict(
        db,
        ClientRecord,
        client.model_dump(),
        keep=("create_time",),
        overrides={"update_time": update_time},
        entity=Entity.CLIENTS.value,
    )
    if not upserted:
        record = await get_client_by_id(db, client.id)
        if record is None:
            return await create_client(db, client)

        values = client.model_dump(exclude={"create_time"})
        values["update_time"] = update_time
        return await update_client(db, client.id, values)

    stmt = (
        select(ClientRecord)
        .where(ClientRecord.id == client.id)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    return result.scalar_one()


async def delete_client(
    db: AsyncSession,
    client_id: str,
) -> bool:
    stmt = delete(ClientRecord).where(ClientRecord.id == client_id)
    result = await db.execute(stmt)
    return result.rowcount > 0
