from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Security
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.db.session_async import get_async_db
from app.models.user import User
from app.schemas.order import OrderRead
from app.services import checkout_service

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("", response_model=list[OrderRead])
async def list_my_orders(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["orders:read"]),
):
    return await checkout_service.list_orders(db, current_user.id, limit=limit, offset=offset)


@router.get("/{order_number}", response_model=OrderRead)
async def get_my_order(
    order_number: str,
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["orders:read"]),
):
    return await checkout_service.get_order(db, current_user.id, order_number)
