from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from oauth2_store.models.dto.user_models import ListUsersRequest, User
from oauth2_store.models.entities import Entity
from oauth2_store.models.persistance.users import UserRecord
from oauth2_store.repositories.utils import flush_or_conflict, upsert_or_conflict


async def create_user(
    db: AsyncSession,
    user: User,
) -> UserRecord:
    record = UserRecord(**user.model_dump())

    db.add(record)
    await flush_or_conflict(db, Entity.USERS.value)
    return record


async def get_user_by_id(
    db: AsyncSession,
    user_id: str,
) -> UserRecord | None:
    stmt = select(UserRecord).where(UserRecord.id == user_id)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_user_by_username(
    db: AsyncSession,
    username: str,
) -> UserRecord | None:
    stmt = select(UserRecord).where(UserRecord.username == username)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def list_users(
    db: AsyncSession,
    filter: ListUsersRequest,
) -> list[UserRecord]:
    """Users matching every set field of ``filter``, ordered by username."""
    stmt = select(UserRecord).order_by(UserRecord.username)
    if filter.person_id:
        stmt = stmt.where(UserRecord.person_id == filter.person_id)
    if filter.username:
        stmt = stmt.where(UserRecord.username == filter.username)
    if filter.first_name:
        stmt = stmt.where(UserRecord.first_name == filter.first_name)
    if filter.last_name:
        stmt = stmt.where(UserRecord.last_name == filter.last_name)
    if filter.disabled:
        stmt = stmt.where(UserRecord.disabled.is_(True))

    result = await db.execute(stmt)
    records = list(result.scalars())
    # JSON list membership, checked on the rows the columns above let through
    if filter.allowed_tenant_access:
        records = [
            record for record in records
            if filter.allowed_tenant_access in record.allowed_tenant_access
        ]
    return records


async def update_user(
    db: AsyncSession,
    user_id: str,
    values: dict[str, Any],
) -> UserRecord | None:
    record = await get_user_by_id(db, user_id)
    if record is None:
        return None

    for key, value in values.items():
        setattr(record, key, value)

    # Renaming onto a taken username trips the unique index
    await flush_or_conflict(db, Entity.USERS.value)
    return record


async def migrate_user(
    db: AsyncSession,
    user: User,
    update_time: int,
) -> UserRecord:
    upserted = await upsert_or_conflict(
        db,
        UserRecord,
        user.model_dump(),
        keep=("create_time",),
        overrides={"update_time": update_time},
        entity=Entity.USERS.value,
    )
    if not upserted:
        record = await get_user_by_id(db, user.id)
        if record is None:
            return await create_user(db, user)

        values = user.model_dump(exclude={"create_time"})
        values["update_time"] = update_time
        return await update_user(db, user.id, values)

    stmt = (
        select(UserRecord)
        .where(UserRecord.id == user.id)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    return result.scalar_one()


async def delete_user(
    db: AsyncSession,
    user_id: str,
) -> bool:
    stmt = delete(UserRecord).where(UserRecord.id == user_id)
    result = await db.execute(stmt)
    return result.rowcount > 0
