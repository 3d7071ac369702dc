from sqlalchemy import (
    BigInteger,
    Boolean,
    String,
    Text,
    JSON,
)
from sqlalchemy.orm import Mapped, mapped_column

from oauth2_store.core.db import Base
from oauth2_store.models.entities import Entity


class ClientRecord(Base):
    __tablename__ = Entity.CLIENTS.value

    # The primary key doubles as the unique index on the client id
    id: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
    )

    create_time: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    update_time: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    # Policy
    allowed_audiences: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    allowed_regions: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    allowed_tenant_access: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    grant_types: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    response_types: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    scopes: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    redirect_uris: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    disabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Always a hash, never the plaintext secret
    secret: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Metadata
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    owner: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    policy_uri: Mapped[str] = mapped_column(Text, nullable=False, default="")
    terms_of_service_uri: Mapped[str] = mapped_column(Text, nullable=False, default="")
    client_uri: Mapped[str] = mapped_column(Text, nullable=False, default="")
    logo_uri: Mapped[str] = mapped_column(Text, nullable=False, default="")
    contacts: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
