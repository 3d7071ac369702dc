from typing import Any, Iterable

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from oauth2_store.common.exceptions import ConflictError


# Dialects with a native INSERT ... ON CONFLICT DO UPDATE
UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


async def flush_or_conflict(db: AsyncSession, entity: str) -> None:
    """
    Flush pending writes, turning unique key violations into ``ConflictError``.

    Uniqueness is never pre-checked; the constraint is the source of truth.
    """
    try:
        await db.flush()
    except IntegrityError as e:
        raise ConflictError(message=f"resource already exists in {entity}") from e


async def upsert_or_conflict(
    db: AsyncSession,
    table: Any,
    values: dict[str, Any],
    *,
    keep: Iterable[str],
    overrides: dict[str, Any],
    entity: str,
) -> bool:
    """
    Insert ``values`` or overwrite the row holding the same primary key, in
    one statement.

    Args:
        keep: Columns an overwrite leaves untouched.
        overrides: Values an overwrite sets instead of the inserted ones.

    Returns:
        ``False`` when the dialect has no native upsert and nothing was
        written; callers fall back to read then write.

    Raises:
        ConflictError: Another unique constraint than the primary key
            rejected the row.
    """
    insert = UPSERT_INSERTS.get(db.get_bind().dialect.name)
    if insert is None:
        return False

    stmt = insert(table).values(**values)
    primary_key = [column.name for column in table.__table__.primary_key]
    skipped = set(keep) | set(primary_key)
    updates = {name: stmt.excluded[name] for name in values if name not in skipped}
    updates.update(overrides)

    try:
        await db.execute(stmt.on_conflict_do_update(index_elements=primary_key, set_=updates))
    except IntegrityError as e:
        raise ConflictError(message=f"resource already exists in {entity}") from e
    return True


def contains_all(values: Iterable[str], required: Iterable[str]) -> bool:
    return set(required).issubset(values)


def contains_any(values: Iterable[str], candidates: Iterable[str]) -> bool:
    return not set(values).isdisjoint(candidates)
