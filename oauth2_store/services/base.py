import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy.exc import (
    DisconnectionError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from oauth2_store.common.exceptions import (
    AuthFailureError,
    ConflictError,
    HashError,
    StorageConnectionError,
    StorageError,
)
from oauth2_store.common.hasher import Hasher

# Log messages shared by every manager
LOG_ERROR = "datastore error"
LOG_CONFLICT = "resource conflict"
LOG_NOT_FOUND = "resource not found"
LOG_NOT_HASHABLE = "unable to hash secret"


def now() -> int:
    return int(time.time())


class BaseManager:
    """
    Shared plumbing for the managers.

    Every public operation runs inside :meth:`_scope`, which either reuses the
    session passed in by the caller (so nested manager calls share one
    transaction) or opens a fresh session and transaction that is committed or
    rolled back and closed on every exit path.
    """

    entity: str = ""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        logger: Optional[logging.Logger] = None,
    ):
        self.session_factory = session_factory
        self.logger = logger or logging.getLogger(type(self).__module__)

    def _fields(self, method: str, **fields) -> dict:
        return {"collection": self.entity, "method": method, **fields}

    @asynccontextmanager
    async def _scope(self, db: Optional[AsyncSession] = None) -> AsyncIterator[AsyncSession]:
        try:
            if db is not None:
                yield db
                return

            async with self.session_factory() as session:
                async with session.begin():
                    yield session
        except StorageError:
            raise
        except IntegrityError as e:
            raise ConflictError(message=f"resource already exists in {self.entity}") from e
        except (OperationalError, InterfaceError, DisconnectionError) as e:
            self.logger.error(LOG_ERROR, extra={"collection": self.entity, "error": type(e).__name__})
            raise StorageConnectionError(message="datastore unavailable") from e
        except SQLAlchemyError as e:
            self.logger.error(LOG_ERROR, extra={"collection": self.entity, "error": type(e).__name__})
            raise StorageError(message="datastore error") from e


class CredentialManager(BaseManager):
    """
    Base for managers that own hashed secrets.

    Hashing is CPU bound, so it runs in a worker thread to keep the event loop
    free for other requests.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        hasher: Hasher,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(session_factory, logger)
        self.hasher = hasher

    async def _hash(self, secret: str, method: str, **fields) -> str:
        try:
            return await asyncio.to_thread(self.hasher.hash, secret)
        except HashError:
            self.logger.error(LOG_NOT_HASHABLE, extra=self._fields(method, **fields))
            raise

    async def _compare(self, hashed: str, secret: str, method: str, **fields) -> None:
        try:
            await asyncio.to_thread(self.hasher.compare, hashed, secret)
        except AuthFailureError:
            self.logger.warning("failed to authenticate secret", extra=self._fields(method, **fields))
            raise
