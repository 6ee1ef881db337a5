import uuid

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Boolean, String, Enum, ForeignKey, Numeric, Integer, DateTime, func, JSON

from app.db.session import Base
from app.db.types import GUID
from app.domain.enums import OrderStatus


class PaymentMethod(Base):
    __tablename__ = "payment_methods"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    identifier: Mapped[str] = mapped_column(String(40), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    # Formato AAAAMMDD-NNNN, secuencial por día
    order_number: Mapped[str] = mapped_column(String(32), unique=True, index=True, nullable=False)
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        GUID(), ForeignKey("users.id", ondelete="SET NULL"), index=True, nullable=True
    )

    status: Mapped[OrderStatus] = mapped_column(
        Enum(OrderStatus), default=OrderStatus.awaiting_payment, nullable=False
    )
    currency: Mapped[str] = mapped_column(String(3), default="BRL", nullable=False)

    # Totales copiados del carrito al momento del checkout
    subtotal:        Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    items_discount:  Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    coupon_discount: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    total_discount:  Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    total:           Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    coupon_code: Mapped[str | None] = mapped_column(String(40), nullable=True)

    shipping_address: Mapped[dict] = mapped_column(JSON, nullable=False)
    payment_method: Mapped[str] = mapped_column(String(40), nullable=False)
    payment: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    created_at = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = mapped_column(DateTime(timezone=True), onupdate=func.now())

    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.position"
    )


class OrderItem(Base):
    __tablename__ = "order_items"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    product_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    image_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    list_price: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False)
    promotional_price: Mapped[float | None] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=True)
    unit_price: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False)
    line_total: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False)

    order = relationship("Order", back_populates="items")
