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


class UserRecord(Base):
    __tablename__ = Entity.USERS.value

    id: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
    )

    create_time: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    update_time: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    username: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
    )

    # Always a hash, never the plaintext password
    password: Mapped[str] = mapped_column(Text, nullable=False, default="")

    disabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    allowed_tenant_access: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    person_id: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    first_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    profile_uri: Mapped[str] = mapped_column(Text, nullable=False, default="")
