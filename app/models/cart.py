# app/models/cart.py
import uuid

from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    func,
)

from app.db.session import Base
from app.db.types import GUID


class Cart(Base):
    __tablename__ = "carts"
    __table_args__ = (
        UniqueConstraint("user_id", name="uq_carts_user_id"),
        UniqueConstraint("guest_cart_id", name="uq_carts_guest_cart_id"),
        # Exactamente un dueño: usuario registrado o invitado, nunca ambos.
        CheckConstraint("(user_id IS NULL) <> (guest_cart_id IS NULL)", name="ck_carts_single_owner"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4, nullable=False)
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        GUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=True
    )
    guest_cart_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), default="BRL", nullable=False)

    # Sumario derivado: lo escribe sólo cart_pricing.recompute_totals
    items_subtotal: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), default=0, nullable=False)
    items_discount: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), default=0, nullable=False)
    coupon_discount: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), default=0, nullable=False)
    total_discount: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), default=0, nullable=False)
    grand_total: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), default=0, nullable=False)
    total_item_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    active_coupon_code: Mapped[str | None] = mapped_column(String(40), nullable=True)
    coupon_snapshot: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    items: Mapped[list["CartItem"]] = relationship(
        "CartItem",
        back_populates="cart",
        order_by="CartItem.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
    )

    # Cada UPDATE verifica la versión leída: dos escrituras concurrentes no se pisan.
    __mapper_args__ = {"version_id_col": version}


class CartItem(Base):
    __tablename__ = "cart_items"
    __table_args__ = (
        UniqueConstraint("cart_id", "product_id", name="uq_cart_items_cart_product"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4, nullable=False)
    cart_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("carts.id", ondelete="CASCADE"), nullable=False)
    product_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Snapshot de presentación tomado al agregar
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    image_url: Mapped[str | None] = mapped_column(String(512), nullable=True)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    list_price: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False)
    promotional_price: Mapped[float | None] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=True)
    unit_price: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False)
    line_total: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False)

    created_at = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    cart = relationship("Cart", back_populates="items")
