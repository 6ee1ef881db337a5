import pytest
from sqlalchemy import func, select

from app.db.session_async import AsyncSessionLocal
from app.models.coupon import Coupon
from app.models.order import PaymentMethod
from scripts.seed_dev import DEV_COUPONS, DEV_PRODUCTS, DEV_USERS, seed_dev


@pytest.mark.asyncio
async def test_seed_is_idempotent():
    first = await seed_dev()
    assert first == {
        "users": len(DEV_USERS),
        "products": len(DEV_PRODUCTS),
        "coupons": len(DEV_COUPONS),
        "payment_methods": 1,
    }

    second = await seed_dev()
    assert second == {"users": 0, "products": 0, "coupons": 0, "payment_methods": 0}

    async with AsyncSessionLocal() as session:
        assert await session.scalar(select(func.count()).select_from(Coupon)) == len(DEV_COUPONS)
        method = (await session.execute(select(PaymentMethod))).scalars().one()
        assert method.identifier == "pix"
        assert method.is_enabled is True
