from __future__ import annotations

from fastapi import APIRouter, Depends, Security, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.db.operations import commit_async, rollback_async
from app.db.session_async import get_async_db
from app.models.user import User
from app.schemas.coupon import CouponApply, CouponPreview
from app.schemas.order import CheckoutRequest, OrderRead, PaymentMethodRead
from app.services import checkout_service

router = APIRouter(prefix="/checkout", tags=["checkout"])


@router.get("/payment-methods", response_model=list[PaymentMethodRead])
async def payment_methods(db: AsyncSession = Depends(get_async_db)):
    return await checkout_service.list_payment_methods(db)


@router.post("/coupon-preview", response_model=CouponPreview)
async def coupon_preview(
    payload: CouponApply,
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["orders:write"]),
):
    try:
        return await checkout_service.preview_coupon(db, current_user.id, payload.code)
    finally:
        # Vista previa: nada de lo calculado se persiste
        await rollback_async(db)


@router.post("", response_model=OrderRead, status_code=status.HTTP_201_CREATED)
async def create_order(
    payload: CheckoutRequest,
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["orders:write"]),
):
    try:
        order = await checkout_service.create_order(db, current_user.id, payload)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    return order
