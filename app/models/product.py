import uuid

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Boolean, Numeric, DateTime, func, Integer, Text, CheckConstraint

from app.db.session import Base
from app.db.types import GUID


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(220), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # precios: "price" es el precio lleno, el promocional sólo cuenta con la promoción activa
    price:               Mapped[float]        = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False)
    promotional_price:   Mapped[float | None] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=True)
    is_promotion_active: Mapped[bool]         = mapped_column(Boolean, default=False, nullable=False)

    stock_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    main_image_url: Mapped[str | None] = mapped_column(String(512), nullable=True)

    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = mapped_column(DateTime(timezone=True), onupdate=func.now())
