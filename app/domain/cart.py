# app/domain/cart.py
"""Value objects and collaborator contracts for the cart engine.

The engine in ``app.services.cart_service`` only talks to the catalog, the
coupon book and the cart store through the protocols below, so the SQLAlchemy
adapters can be swapped for in-memory doubles.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from app.domain.enums import CouponStatus, CouponType

if TYPE_CHECKING:
    from app.models.cart import Cart


@dataclass(frozen=True)
class CartOwner:
    """Identity a cart is keyed by: a registered user xor a guest cart id."""

    user_id: uuid.UUID | None = None
    guest_cart_id: str | None = None

    def __post_init__(self) -> None:
        if self.user_id is not None and self.guest_cart_id is not None:
            raise ValueError("A cart owner is either a user or a guest, not both")

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None and self.guest_cart_id is None

    @property
    def key(self) -> str:
        if self.user_id is not None:
            return f"user:{self.user_id}"
        if self.guest_cart_id is not None:
            return f"guest:{self.guest_cart_id}"
        return "anonymous"


@dataclass(frozen=True)
class ProductSnapshot:
    id: uuid.UUID
    name: str
    price: float
    stock_quantity: int
    promotional_price: float | None = None
    is_promotion_active: bool = False
    main_image_url: str | None = None


@dataclass(frozen=True)
class CouponRule:
    code: str
    type: CouponType
    value: float
    min_purchase_value: float = 0.0
    description: str | None = None


@dataclass(frozen=True)
class CartNotice:
    """Advisory detail attached to a successful mutation."""

    coupon_status: CouponStatus
    reason: str
    coupon_code: str | None = None


@dataclass
class CartResult:
    cart: "Cart"
    new_guest_cart_id: str | None = None
    notice: CartNotice | None = None


class CatalogLookup(Protocol):
    async def get_product(self, product_id: uuid.UUID) -> ProductSnapshot | None: ...


class CouponLookup(Protocol):
    async def get_coupon_by_code(self, code: str) -> CouponRule | None: ...


class CartStore(Protocol):
    async def find_cart(self, owner: CartOwner) -> "Cart | None": ...

    async def create_cart(self, owner: CartOwner) -> "Cart": ...

    async def save(self, cart: "Cart") -> "Cart": ...

    async def delete_guest_cart(self, guest_cart_id: str) -> None: ...

    async def commit(self) -> None: ...
