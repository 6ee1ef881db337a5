from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import settings
from app.domain.cart import CartOwner
from app.models.cart import Cart
from app.services.cart_service import CartService
from app.services.catalog_service import SqlCatalog
from app.services.coupon_service import SqlCouponBook
from app.services.exceptions import ConflictError


class SqlCartStore:
    """Cart persistence on the current AsyncSession. Commits are left to the caller."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def _refresh(self, cart: Cart) -> None:
        await self._db.refresh(cart)
        await self._db.refresh(cart, attribute_names=["items"])

    async def find_cart(self, owner: CartOwner) -> Cart | None:
        stmt = select(Cart).options(selectinload(Cart.items))
        if owner.user_id is not None:
            stmt = stmt.where(Cart.user_id == owner.user_id)
        elif owner.guest_cart_id is not None:
            stmt = stmt.where(Cart.guest_cart_id == owner.guest_cart_id)
        else:
            return None

        result = await self._db.execute(stmt.limit(1))
        return result.scalars().first()

    async def create_cart(self, owner: CartOwner) -> Cart:
        cart = Cart(
            user_id=owner.user_id,
            guest_cart_id=owner.guest_cart_id,
            currency=settings.STORE_CURRENCY,
            items=[],
            items_subtotal=0,
            items_discount=0,
            coupon_discount=0,
            total_discount=0,
            grand_total=0,
            total_item_count=0,
        )
        self._db.add(cart)
        try:
            await self._db.flush()
        except IntegrityError as exc:
            raise ConflictError("A cart already exists for this owner") from exc
        await self._refresh(cart)
        return cart

    async def save(self, cart: Cart) -> Cart:
        # Tocar updated_at garantiza un UPDATE en carts y con él el chequeo de versión.
        cart.updated_at = datetime.now(timezone.utc)
        self._db.add(cart)
        try:
            await self._db.flush()
        except StaleDataError as exc:
            raise ConflictError("The cart was modified by another request; please retry") from exc
        await self._refresh(cart)
        return cart

    async def delete_guest_cart(self, guest_cart_id: str) -> None:
        cart = await self.find_cart(CartOwner(guest_cart_id=guest_cart_id))
        if cart is None:
            return
        await self._db.delete(cart)
        await self._db.flush()

    async def commit(self) -> None:
        try:
            await self._db.commit()
        except StaleDataError as exc:
            raise ConflictError("The cart was modified by another request; please retry") from exc


def build_cart_service(db: AsyncSession) -> CartService:
    return CartService(SqlCatalog(db), SqlCouponBook(db), SqlCartStore(db))
