from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_cart_owner, get_cart_service, get_current_shopper
from app.core.config import settings
from app.core.rate_limiter import client_ip, rate_limit
from app.db.operations import rollback_async
from app.db.session_async import get_async_db
from app.domain.cart import CartOwner, CartResult
from app.models.user import User
from app.schemas.cart import CartItemAdd, CartItemUpdate, CartMerge, CartRead
from app.schemas.coupon import CouponApply
from app.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


def _render(result: CartResult, response: Response) -> CartRead:
    if result.new_guest_cart_id:
        # El cliente debe reenviar este id en el header para seguir usando el carrito
        response.headers[settings.CART_GUEST_HEADER] = result.new_guest_cart_id
    return CartRead.from_result(result)


async def _run(db: AsyncSession, operation) -> CartResult:
    try:
        return await operation
    except Exception:
        await rollback_async(db)
        raise


def _coupon_rate_key(request) -> str:
    guest = request.headers.get(settings.CART_GUEST_HEADER)
    return guest or client_ip(request) or "anonymous"


@router.get("", response_model=CartRead)
async def read_cart(
    response: Response,
    owner: CartOwner = Depends(get_cart_owner),
    service: CartService = Depends(get_cart_service),
    db: AsyncSession = Depends(get_async_db),
):
    result = await _run(db, service.get_cart(owner))
    return _render(result, response)


@router.post("/items", response_model=CartRead, status_code=status.HTTP_201_CREATED)
async def add_cart_item(
    payload: CartItemAdd,
    response: Response,
    owner: CartOwner = Depends(get_cart_owner),
    service: CartService = Depends(get_cart_service),
    db: AsyncSession = Depends(get_async_db),
):
    result = await _run(db, service.add_item(owner, payload.product_id, payload.quantity))
    return _render(result, response)


@router.patch("/items/{product_id}", response_model=CartRead)
async def update_cart_item(
    product_id: uuid.UUID,
    payload: CartItemUpdate,
    response: Response,
    owner: CartOwner = Depends(get_cart_owner),
    service: CartService = Depends(get_cart_service),
    db: AsyncSession = Depends(get_async_db),
):
    result = await _run(db, service.update_item_quantity(owner, product_id, payload.quantity))
    return _render(result, response)


@router.delete("/items/{product_id}", response_model=CartRead)
async def remove_cart_item(
    product_id: uuid.UUID,
    response: Response,
    owner: CartOwner = Depends(get_cart_owner),
    service: CartService = Depends(get_cart_service),
    db: AsyncSession = Depends(get_async_db),
):
    result = await _run(db, service.remove_item(owner, product_id))
    return _render(result, response)


@router.post(
    "/coupon",
    response_model=CartRead,
    dependencies=[
        Depends(
            rate_limit(
                limit=settings.RATE_LIMIT_COUPON_PER_MINUTE,
                period_seconds=settings.RATE_LIMIT_COUPON_WINDOW_SECONDS,
                scope="cart:coupon",
                identifier=_coupon_rate_key,
            )
        )
    ],
)
async def apply_coupon(
    payload: CouponApply,
    response: Response,
    owner: CartOwner = Depends(get_cart_owner),
    service: CartService = Depends(get_cart_service),
    db: AsyncSession = Depends(get_async_db),
):
    result = await _run(db, service.apply_coupon(owner, payload.code))
    return _render(result, response)


@router.delete("/coupon", response_model=CartRead)
async def remove_coupon(
    response: Response,
    owner: CartOwner = Depends(get_cart_owner),
    service: CartService = Depends(get_cart_service),
    db: AsyncSession = Depends(get_async_db),
):
    result = await _run(db, service.remove_coupon(owner))
    return _render(result, response)


@router.post("/merge", response_model=CartRead)
async def merge_guest_cart(
    payload: CartMerge,
    response: Response,
    current_user: User = Depends(get_current_shopper),
    service: CartService = Depends(get_cart_service),
    db: AsyncSession = Depends(get_async_db),
):
    result = await _run(db, service.merge_guest_cart(current_user.id, payload.guest_cart_id))
    return _render(result, response)
