import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from oauth2_store.common.hasher import BCryptHasher, Hasher
from oauth2_store.core.config import Settings, settings
from oauth2_store.core.db import build_engine, build_sessionmaker, close_db, init_db
from oauth2_store.services.cache.cache_services import CacheManager
from oauth2_store.services.clients.client_services import ClientManager
from oauth2_store.services.requests.request_services import RequestManager
from oauth2_store.services.users.user_services import UserManager


class Store:
    """
    Entry point wiring the managers onto one engine and hasher.

    The engine's connection pool is the only state shared between calls;
    each manager operation checks a connection out for its own duration.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        hasher: Optional[Hasher] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.engine = engine
        self.hasher = hasher or BCryptHasher(work_factor=settings.HASHER_WORK_FACTOR)
        self.session_factory = build_sessionmaker(engine)

        logger = logger or logging.getLogger("oauth2_store")
        self.cache = CacheManager(self.session_factory, logger=logger.getChild("cache"))
        self.clients = ClientManager(self.session_factory, self.hasher, logger=logger.getChild("clients"))
        self.users = UserManager(self.session_factory, self.hasher, logger=logger.getChild("users"))
        self.requests = RequestManager(
            self.session_factory,
            clients=self.clients,
            users=self.users,
            cache=self.cache,
            logger=logger.getChild("requests"),
        )

    @classmethod
    def from_settings(
        cls,
        config: Settings = settings,
        logger: Optional[logging.Logger] = None,
    ) -> "Store":
        return cls(
            build_engine(config),
            hasher=BCryptHasher(work_factor=config.HASHER_WORK_FACTOR),
            logger=logger,
        )

    async def configure(self) -> None:
        """Create tables and unique indexes. Safe to call on every startup."""
        await init_db(self.engine)

    async def close(self) -> None:
        await close_db(self.engine)

    async def __aenter__(self) -> "Store":
        await self.configure()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


async def new_default_store(config: Settings = settings) -> Store:
    """Build a store from settings and configure its tables."""
    store = Store.from_settings(config)
    await store.configure()
    return store
