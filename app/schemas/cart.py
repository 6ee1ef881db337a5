from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.domain.cart import CartResult
from app.domain.enums import CouponStatus


class CartItemAdd(BaseModel):
    product_id: UUID
    quantity: int = Field(default=1, gt=0)


class CartItemUpdate(BaseModel):
    quantity: int = Field(..., gt=0)


class CartMerge(BaseModel):
    guest_cart_id: str = Field(..., min_length=1, max_length=64)


class CartItemRead(BaseModel):
    product_id: UUID
    name: str
    image_url: str | None
    quantity: int
    list_price: float
    promotional_price: float | None
    unit_price: float
    line_total: float

    model_config = ConfigDict(from_attributes=True)


class CartSummary(BaseModel):
    items_subtotal: float
    items_discount: float
    coupon_discount: float
    total_discount: float
    grand_total: float
    total_item_count: int

    model_config = ConfigDict(from_attributes=True)


class CartCoupon(BaseModel):
    code: str
    description: str | None = None


class CartNoticeRead(BaseModel):
    coupon_status: CouponStatus
    reason: str
    coupon_code: str | None = None


class CartRead(BaseModel):
    user_id: UUID | None = None
    guest_cart_id: str | None = None
    currency: str
    summary: CartSummary
    coupon: CartCoupon | None = None
    items: list[CartItemRead] = Field(default_factory=list)
    notice: CartNoticeRead | None = None

    @classmethod
    def from_result(cls, result: CartResult) -> "CartRead":
        cart = result.cart
        coupon = None
        if cart.active_coupon_code and cart.coupon_snapshot:
            coupon = CartCoupon(**cart.coupon_snapshot)
        notice = None
        if result.notice is not None:
            notice = CartNoticeRead(
                coupon_status=result.notice.coupon_status,
                reason=result.notice.reason,
                coupon_code=result.notice.coupon_code,
            )
        return cls(
            user_id=cart.user_id,
            guest_cart_id=cart.guest_cart_id,
            currency=cart.currency,
            summary=CartSummary.model_validate(cart),
            coupon=coupon,
            items=[CartItemRead.model_validate(item) for item in cart.items],
            notice=notice,
        )
