from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    String,
    JSON,
)
from sqlalchemy.orm import Mapped, mapped_column

from oauth2_store.core.db import Base
from oauth2_store.models.entities import Entity


class SessionRecordMixin:
    """
    Columns shared by every grant kind.

    The tables only differ by name and by what the signature is a digest of.
    """

    # Digest of the code/token, unique per table
    signature: Mapped[str] = mapped_column(
        String(512),
        primary_key=True,
    )

    request_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    create_time: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    update_time: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    requested_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    client_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    requested_scopes: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    granted_scopes: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    requested_audience: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    granted_audience: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    form: Mapped[dict[str, list[str]]] = mapped_column(JSON, nullable=False, default=dict)

    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Caller defined session payload, stored as-is
    session: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)


class AuthorizeCodeRecord(SessionRecordMixin, Base):
    __tablename__ = Entity.AUTHORIZATION_CODES.value


class AccessTokenRecord(SessionRecordMixin, Base):
    __tablename__ = Entity.ACCESS_TOKENS.value


class RefreshTokenRecord(SessionRecordMixin, Base):
    __tablename__ = Entity.REFRESH_TOKENS.value


class PKCESessionRecord(SessionRecordMixin, Base):
    __tablename__ = Entity.PKCE_SESSIONS.value


class OpenIDConnectSessionRecord(SessionRecordMixin, Base):
    __tablename__ = Entity.OPENID_CONNECT_SESSIONS.value


SESSION_TABLES: dict[Entity, type[SessionRecordMixin]] = {
    Entity.AUTHORIZATION_CODES: AuthorizeCodeRecord,
    Entity.ACCESS_TOKENS: AccessTokenRecord,
    Entity.REFRESH_TOKENS: RefreshTokenRecord,
    Entity.PKCE_SESSIONS: PKCESessionRecord,
    Entity.OPENID_CONNECT_SESSIONS: OpenIDConnectSessionRecord,
}
