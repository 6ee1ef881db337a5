from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.domain.enums import CouponType


class CouponCreate(BaseModel):
    code: str = Field(..., min_length=3, max_length=40)
    description: str | None = Field(default=None, max_length=255)
    type: CouponType
    value: float = Field(..., gt=0)
    min_purchase_value: float = Field(default=0, ge=0)
    is_active: bool = True
    expires_at: datetime | None = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, value: str) -> str:
        return value.strip().upper()

    @model_validator(mode="after")
    def check_percentage(self) -> "CouponCreate":
        if self.type == CouponType.percentage and self.value > 100:
            raise ValueError("A percentage coupon cannot exceed 100")
        return self


class CouponUpdate(BaseModel):
    description: str | None = Field(default=None, max_length=255)
    type: CouponType | None = None
    value: float | None = Field(default=None, gt=0)
    min_purchase_value: float | None = Field(default=None, ge=0)
    is_active: bool | None = None
    expires_at: datetime | None = None


class CouponRead(BaseModel):
    id: UUID
    code: str
    description: str | None
    type: CouponType
    value: float
    min_purchase_value: float
    is_active: bool
    expires_at: datetime | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CouponApply(BaseModel):
    code: str = Field(..., min_length=1, max_length=40)


class CouponPreview(BaseModel):
    code: str
    description: str | None
    eligible_subtotal: float
    discount: float
    total: float
