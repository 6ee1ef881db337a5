# app/domain/enums.py
import enum


class CouponType(str, enum.Enum):
    fixed = "fixed"
    percentage = "percentage"


class OrderStatus(str, enum.Enum):
    awaiting_payment = "awaiting_payment"
    paid = "paid"
    shipped = "shipped"
    delivered = "delivered"
    cancelled = "cancelled"


class CouponStatus(str, enum.Enum):
    removed = "REMOVED"
