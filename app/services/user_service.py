from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import get_password_hash, verify_password
from app.db.operations import flush_async, refresh_async
from app.models.user import Address, User
from app.schemas.user import AddressCreate, AddressUpdate, PasswordChange, UserCreate, UserUpdate
from app.services.exceptions import (
    BusinessRuleError,
    ConflictError,
    DomainValidationError,
    ResourceNotFoundError,
)


async def get_by_email(db: AsyncSession, email: str) -> User | None:
    stmt = select(User).where(User.email == email.lower()).limit(1)
    result = await db.execute(stmt)
    return result.scalars().first()


async def get_by_id(db: AsyncSession, user_id: uuid.UUID) -> User | None:
    return await db.get(User, user_id)


async def create_user(db: AsyncSession, data: UserCreate, *, is_superuser: bool = False) -> User:
    if await get_by_email(db, data.email):
        raise ConflictError("Email already registered")

    user = User(
        email=data.email.lower(),
        full_name=data.full_name,
        cpf=data.cpf,
        phone=data.phone,
        hashed_password=get_password_hash(data.password),
        is_superuser=is_superuser,
    )
    db.add(user)
    try:
        await flush_async(db, user)
    except IntegrityError as exc:
        raise ConflictError("Email already registered") from exc
    await refresh_async(db, user)
    return user


async def authenticate(db: AsyncSession, email: str, password: str) -> User | None:
    user = await get_by_email(db, email)
    if not user or not user.hashed_password:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


async def mark_login(db: AsyncSession, user: User) -> User:
    user.last_login_at = datetime.now(timezone.utc)
    db.add(user)
    await flush_async(db, user)
    return user


async def update_user(db: AsyncSession, user: User, changes: UserUpdate) -> User:
    data = changes.model_dump(exclude_unset=True)
    for field, value in data.items():
        setattr(user, field, value)
    db.add(user)
    await flush_async(db, user)
    await refresh_async(db, user)
    return user


async def change_password(db: AsyncSession, user: User, data: PasswordChange) -> User:
    if not user.hashed_password or not verify_password(data.current_password, user.hashed_password):
        raise BusinessRuleError("Current password is incorrect")
    if data.new_password == data.current_password:
        raise BusinessRuleError("New password must differ from the current one")
    user.hashed_password = get_password_hash(data.new_password)
    db.add(user)
    await flush_async(db, user)
    return user


# --- Direcciones ---

async def list_addresses(db: AsyncSession, user_id: uuid.UUID) -> list[Address]:
    stmt = select(Address).where(Address.user_id == user_id).order_by(Address.created_at)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_address(db: AsyncSession, user_id: uuid.UUID, address_id: uuid.UUID) -> Address:
    """Address owned by ``user_id``; someone else's address is reported as missing."""
    stmt = select(Address).where(Address.id == address_id, Address.user_id == user_id).limit(1)
    result = await db.execute(stmt)
    address = result.scalars().first()
    if address is None:
        raise ResourceNotFoundError("Address not found")
    return address


async def add_address(db: AsyncSession, user_id: uuid.UUID, data: AddressCreate) -> Address:
    payload = data.model_dump()
    payload["state"] = payload["state"].upper()
    address = Address(user_id=user_id, **payload)
    db.add(address)
    await flush_async(db, address)
    await refresh_async(db, address)
    return address


_REQUIRED_ADDRESS_FIELDS = frozenset(
    {"recipient_name", "street", "number", "neighborhood", "city", "state", "cep"}
)


async def update_address(
    db: AsyncSession, user_id: uuid.UUID, address_id: uuid.UUID, changes: AddressUpdate
) -> Address:
    address = await get_address(db, user_id, address_id)
    data = changes.model_dump(exclude_unset=True)
    cleared = sorted(field for field in _REQUIRED_ADDRESS_FIELDS if field in data and data[field] is None)
    if cleared:
        raise DomainValidationError(f"Address fields cannot be cleared: {', '.join(cleared)}")
    if data.get("state"):
        data["state"] = data["state"].upper()
    for field, value in data.items():
        setattr(address, field, value)
    db.add(address)
    await flush_async(db, address)
    await refresh_async(db, address)
    return address


async def delete_address(db: AsyncSession, user_id: uuid.UUID, address_id: uuid.UUID) -> None:
    address = await get_address(db, user_id, address_id)
    await db.delete(address)
    await flush_async(db)


def address_snapshot(address: Address) -> dict:
    return {
        "recipient_name": address.recipient_name,
        "street": address.street,
        "number": address.number,
        "complement": address.complement,
        "neighborhood": address.neighborhood,
        "city": address.city,
        "state": address.state,
        "cep": address.cep,
        "phone": address.phone,
    }
