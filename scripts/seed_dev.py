"""Seed script for a development storefront: users, catalog, coupons and PIX."""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass
from pathlib import Path

# Ensure project root is on PYTHONPATH when running as a script.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from sqlalchemy import select

from app.core.config import settings
from app.db.session_async import AsyncSessionLocal
from app.domain.enums import CouponType
from app.initial_data import ensure_payment_methods
from app.models.coupon import Coupon
from app.models.product import Product
from app.schemas.user import UserCreate
from app.services import user_service
from app.utils.slugify import slugify


@dataclass(frozen=True, slots=True)
class DevUser:
    email: str
    full_name: str
    password: str
    is_superuser: bool = False


@dataclass(frozen=True, slots=True)
class DevProduct:
    name: str
    price: float
    stock_quantity: int
    promotional_price: float | None = None
    description: str | None = None

    @property
    def slug(self) -> str:
        return slugify(self.name)


@dataclass(frozen=True, slots=True)
class DevCoupon:
    code: str
    type: CouponType
    value: float
    min_purchase_value: float = 0
    description: str | None = None


DEV_USERS: tuple[DevUser, ...] = (
    DevUser(email="admin.dev@example.com", full_name="Dev Admin", password="AdminDev123!", is_superuser=True),
    DevUser(email="cliente.dev@example.com", full_name="Dev Customer", password="UserDev123!"),
)

DEV_PRODUCTS: tuple[DevProduct, ...] = (
    DevProduct(name="Camiseta Básica", price=100.0, promotional_price=90.0, stock_quantity=10),
    DevProduct(name="Caneca Térmica", price=60.0, stock_quantity=25),
    DevProduct(name="Mochila Urbana", price=250.0, promotional_price=199.9, stock_quantity=5),
    DevProduct(name="Boné Aba Curva", price=50.0, stock_quantity=3),
)

DEV_COUPONS: tuple[DevCoupon, ...] = (
    DevCoupon(code="SAVE10", type=CouponType.percentage, value=10, min_purchase_value=50, description="10% off"),
    DevCoupon(code="BIG20", type=CouponType.fixed, value=20, min_purchase_value=500, description="R$ 20 off"),
)


async def seed_dev() -> dict[str, int]:
    """Insert whatever is missing; running it twice creates nothing new."""
    logger = logging.getLogger("seed_dev")
    logger.info("Seeding development data into %s", settings.ASYNC_DATABASE_URL)
    created = {"users": 0, "products": 0, "coupons": 0, "payment_methods": 0}

    async with AsyncSessionLocal() as session:
        for dev_user in DEV_USERS:
            if await user_service.get_by_email(session, dev_user.email):
                continue
            await user_service.create_user(
                session,
                UserCreate(email=dev_user.email, full_name=dev_user.full_name, password=dev_user.password),
                is_superuser=dev_user.is_superuser,
            )
            created["users"] += 1

        for dev_product in DEV_PRODUCTS:
            exists = await session.execute(select(Product.id).where(Product.slug == dev_product.slug).limit(1))
            if exists.scalar_one_or_none() is not None:
                continue
            session.add(
                Product(
                    name=dev_product.name,
                    slug=dev_product.slug,
                    description=dev_product.description,
                    price=dev_product.price,
                    promotional_price=dev_product.promotional_price,
                    is_promotion_active=dev_product.promotional_price is not None,
                    stock_quantity=dev_product.stock_quantity,
                )
            )
            created["products"] += 1

        for dev_coupon in DEV_COUPONS:
            exists = await session.execute(select(Coupon.id).where(Coupon.code == dev_coupon.code).limit(1))
            if exists.scalar_one_or_none() is not None:
                continue
            session.add(
                Coupon(
                    code=dev_coupon.code,
                    type=dev_coupon.type,
                    value=dev_coupon.value,
                    min_purchase_value=dev_coupon.min_purchase_value,
                    description=dev_coupon.description,
                )
            )
            created["coupons"] += 1

        created["payment_methods"] = await ensure_payment_methods(session)
        await session.commit()

    logger.info("Seed finished: %s", created)
    return created


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    asyncio.run(seed_dev())


if __name__ == "__main__":
    main()
