# app/models/user.py
from __future__ import annotations

import uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, Boolean, DateTime, ForeignKey, func

from app.db.session import Base
from app.db.types import GUID


class User(Base):
    __tablename__ = "users"

    # Generamos el UUID en Python para que funcione en SQLite y Postgres.
    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4, nullable=False)

    email: Mapped[str] = mapped_column(String(320), unique=True, index=True, nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    cpf: Mapped[str | None] = mapped_column(String(14), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(40), nullable=True)

    hashed_password: Mapped[str] = mapped_column(String, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_superuser: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_login_at = mapped_column(DateTime(timezone=True), nullable=True)

    # Auditoría
    created_at = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    addresses: Mapped[list["Address"]] = relationship(
        "Address", back_populates="user", cascade="all, delete-orphan", order_by="Address.created_at"
    )


class Address(Base):
    __tablename__ = "addresses"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4, nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)

    recipient_name: Mapped[str] = mapped_column(String(200), nullable=False)
    street:       Mapped[str] = mapped_column(String(200), nullable=False)
    number:       Mapped[str] = mapped_column(String(20), nullable=False)
    complement:   Mapped[str | None] = mapped_column(String(120), nullable=True)
    neighborhood: Mapped[str] = mapped_column(String(120), nullable=False)
    city:         Mapped[str] = mapped_column(String(120), nullable=False)
    state:        Mapped[str] = mapped_column(String(2), nullable=False)
    cep:          Mapped[str] = mapped_column(String(9), nullable=False)
    phone:        Mapped[str | None] = mapped_column(String(40), nullable=True)

    created_at = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="addresses")
