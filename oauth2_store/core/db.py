from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from oauth2_store.core.config import Settings, settings


Base = declarative_base()


def build_engine(config: Settings = settings) -> AsyncEngine:
    return create_async_engine(
        config.DATABASE_URL,
        echo=config.DEBUG,
        future=True,
        pool_pre_ping=config.DATABASE_POOL_PRE_PING,
    )


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """
    Create every table and unique index the store relies on.

    ``create_all`` checks for existing tables first, so running this on every
    startup is a no-op once the schema is in place.
    """
    # Registers the mapped classes on Base.metadata
    from oauth2_store.models.persistance import (  # noqa: F401
        cache,
        clients,
        sessions,
        users,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db(engine: AsyncEngine) -> None:
    await engine.dispose()
