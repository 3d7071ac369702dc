from sqlalchemy import (
    BigInteger,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from oauth2_store.core.db import Base
from oauth2_store.models.entities import Entity


class CacheRecordMixin:
    # Revocable identifier, usually the request id
    id: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
    )

    signature: Mapped[str] = mapped_column(String(512), nullable=False, index=True)
    create_time: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    update_time: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


class AccessTokenCacheRecord(CacheRecordMixin, Base):
    __tablename__ = Entity.CACHE_ACCESS_TOKENS.value


class RefreshTokenCacheRecord(CacheRecordMixin, Base):
    __tablename__ = Entity.CACHE_REFRESH_TOKENS.value


CACHE_TABLES: dict[Entity, type[CacheRecordMixin]] = {
    Entity.CACHE_ACCESS_TOKENS: AccessTokenCacheRecord,
    Entity.CACHE_REFRESH_TOKENS: RefreshTokenCacheRecord,
}
