from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ProductBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    price: float = Field(..., gt=0)
    promotional_price: float | None = Field(default=None, gt=0)
    is_promotion_active: bool = False
    stock_quantity: int = Field(default=0, ge=0)
    main_image_url: str | None = Field(default=None, max_length=512)


class ProductCreate(ProductBase):
    slug: str | None = Field(default=None, max_length=220)
    active: bool = True

    @model_validator(mode="after")
    def check_promotion(self) -> "ProductCreate":
        if self.is_promotion_active and self.promotional_price is None:
            raise ValueError("promotional_price is required when the promotion is active")
        if self.promotional_price is not None and self.promotional_price >= self.price:
            raise ValueError("promotional_price must be lower than price")
        return self


class ProductUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    price: float | None = Field(default=None, gt=0)
    promotional_price: float | None = Field(default=None, gt=0)
    is_promotion_active: bool | None = None
    stock_quantity: int | None = Field(default=None, ge=0)
    main_image_url: str | None = Field(default=None, max_length=512)
    active: bool | None = None


class ProductRead(ProductBase):
    id: UUID
    slug: str
    active: bool
    created_at: datetime
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class PaginatedProducts(BaseModel):
    total: int
    page: int
    pages: int
    limit: int
    items: list[ProductRead]
