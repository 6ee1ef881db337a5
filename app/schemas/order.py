from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.domain.enums import OrderStatus


class CheckoutRequest(BaseModel):
    address_id: UUID
    payment_method: str = Field(default="pix", min_length=1, max_length=40)
    coupon_code: Optional[str] = Field(default=None, max_length=40)


class PaymentMethodRead(BaseModel):
    identifier: str
    name: str

    model_config = ConfigDict(from_attributes=True)


class PaymentMethodCreate(BaseModel):
    identifier: str = Field(..., min_length=1, max_length=40, pattern=r"^[a-zA-Z0-9_-]+$")
    name: str = Field(..., min_length=1, max_length=120)
    is_enabled: bool = True


class PaymentMethodUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    is_enabled: Optional[bool] = None


class PaymentMethodAdminRead(PaymentMethodRead):
    id: UUID
    is_enabled: bool
    created_at: datetime


class OrderItemRead(BaseModel):
    product_id: UUID
    name: str
    image_url: Optional[str]
    quantity: int
    list_price: float
    promotional_price: Optional[float]
    unit_price: float
    line_total: float

    model_config = ConfigDict(from_attributes=True)


class OrderTotals(BaseModel):
    subtotal: float
    items_discount: float
    coupon_discount: float
    total_discount: float
    total: float

    model_config = ConfigDict(from_attributes=True)


class OrderRead(BaseModel):
    id: UUID
    order_number: str
    status: OrderStatus
    currency: str
    coupon_code: Optional[str]
    shipping_address: dict
    payment_method: str
    payment: Optional[dict]
    items: List[OrderItemRead] = Field(default_factory=list)
    created_at: datetime

    subtotal: float
    items_discount: float
    coupon_discount: float
    total_discount: float
    total: float

    model_config = ConfigDict(from_attributes=True)
