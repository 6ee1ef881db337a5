from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.operations import flush_async, refresh_async
from app.domain.cart import CouponRule
from app.domain.enums import CouponType
from app.models.coupon import Coupon
from app.schemas.coupon import CouponCreate, CouponUpdate
from app.services.cart_pricing import normalize_coupon_code
from app.services.exceptions import ConflictError, DomainValidationError, ResourceNotFoundError


def to_rule(coupon: Coupon) -> CouponRule:
    return CouponRule(
        code=coupon.code,
        type=coupon.type,
        value=float(coupon.value),
        min_purchase_value=float(coupon.min_purchase_value or 0),
        description=coupon.description,
    )


class SqlCouponBook:
    """Coupon lookup for the cart engine: only active, non-expired coupons are visible."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def get_coupon_by_code(self, code: str) -> CouponRule | None:
        now = datetime.now(timezone.utc)
        stmt = (
            select(Coupon)
            .where(Coupon.code == normalize_coupon_code(code))
            .where(Coupon.is_active.is_(True))
            .where(or_(Coupon.expires_at.is_(None), Coupon.expires_at > now))
            .limit(1)
        )
        result = await self._db.execute(stmt)
        coupon = result.scalars().first()
        return to_rule(coupon) if coupon is not None else None


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite guarda la fecha sin offset: todo se almacena en UTC
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


async def get_coupon(db: AsyncSession, coupon_id: uuid.UUID) -> Coupon:
    coupon = await db.get(Coupon, coupon_id)
    if coupon is None:
        raise ResourceNotFoundError("Coupon not found")
    return coupon


async def list_coupons(db: AsyncSession, *, active: bool | None = None) -> list[Coupon]:
    stmt = select(Coupon)
    if active is not None:
        stmt = stmt.where(Coupon.is_active.is_(active))
    result = await db.execute(stmt.order_by(Coupon.created_at.desc(), Coupon.code))
    return list(result.scalars().all())


async def create_coupon(db: AsyncSession, payload: CouponCreate) -> Coupon:
    code = normalize_coupon_code(payload.code)
    exists = await db.execute(select(Coupon.id).where(Coupon.code == code).limit(1))
    if exists.scalar_one_or_none() is not None:
        raise ConflictError("Coupon code already exists")

    data = payload.model_dump(exclude={"code"})
    data["expires_at"] = _as_utc(data.get("expires_at"))
    coupon = Coupon(**data, code=code)
    db.add(coupon)
    try:
        await flush_async(db, coupon)
    except IntegrityError as exc:
        raise ConflictError("Coupon code already exists") from exc
    await refresh_async(db, coupon)
    return coupon


async def update_coupon(db: AsyncSession, coupon: Coupon, changes: CouponUpdate) -> Coupon:
    data = changes.model_dump(exclude_unset=True)
    new_type = data.get("type", coupon.type)
    new_value = data.get("value", coupon.value)
    if new_type == CouponType.percentage and float(new_value) > 100:
        raise DomainValidationError("A percentage coupon cannot exceed 100")
    if "expires_at" in data:
        data["expires_at"] = _as_utc(data["expires_at"])

    for field, value in data.items():
        setattr(coupon, field, value)
    db.add(coupon)
    await flush_async(db, coupon)
    await refresh_async(db, coupon)
    return coupon


async def delete_coupon(db: AsyncSession, coupon: Coupon) -> None:
    # Los carritos que lo tengan aplicado lo pierden en la próxima mutación.
    await db.delete(coupon)
    await flush_async(db)
