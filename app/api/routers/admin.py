from math import ceil
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_admin
from app.db.operations import commit_async, rollback_async
from app.db.session_async import get_async_db
from app.models.user import User as UserModel
from app.schemas.coupon import CouponCreate, CouponRead, CouponUpdate
from app.schemas.order import PaymentMethodAdminRead, PaymentMethodCreate, PaymentMethodUpdate
from app.schemas.product import PaginatedProducts, ProductCreate, ProductRead, ProductUpdate
from app.services import catalog_service, checkout_service, coupon_service

router = APIRouter(prefix="/admin", tags=["admin"])


# ---------- Catálogo ----------
@router.get("/products", response_model=PaginatedProducts)
async def list_products(
    search: str | None = Query(None, description="texto a buscar"),
    active: bool | None = Query(None, description="filtrar por estado; sin valor lista todos"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_async_db),
    _: UserModel = Depends(get_current_admin),
):
    items, total = await catalog_service.list_products(
        db, search=search, active=active, limit=limit, offset=offset
    )
    return {
        "total": total,
        "page": (offset // limit) + 1,
        "pages": ceil(total / limit) if total else 1,
        "limit": limit,
        "items": items,
    }


@router.get("/products/{product_id}", response_model=ProductRead)
async def get_product(
    product_id: UUID,
    db: AsyncSession = Depends(get_async_db),
    _: UserModel = Depends(get_current_admin),
):
    return await catalog_service.get_product_or_404(db, product_id, include_inactive=True)


@router.post("/products", response_model=ProductRead, status_code=status.HTTP_201_CREATED)
async def create_product(
    payload: ProductCreate,
    db: AsyncSession = Depends(get_async_db),
    _: UserModel = Depends(get_current_admin),
):
    try:
        product = await catalog_service.create_product(db, payload)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    return product


@router.patch("/products/{product_id}", response_model=ProductRead)
async def update_product(
    product_id: UUID,
    payload: ProductUpdate,
    db: AsyncSession = Depends(get_async_db),
    _: UserModel = Depends(get_current_admin),
):
    product = await catalog_service.get_product_or_404(db, product_id, include_inactive=True)
    try:
        product = await catalog_service.update_product(db, product, payload)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    return product


@router.delete("/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def deactivate_product(
    product_id: UUID,
    db: AsyncSession = Depends(get_async_db),
    _: UserModel = Depends(get_current_admin),
):
    product = await catalog_service.get_product_or_404(db, product_id, include_inactive=True)
    try:
        await catalog_service.deactivate_product(db, product)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------- Cupones ----------
@router.get("/coupons", response_model=list[CouponRead])
async def list_coupons(
    active: bool | None = Query(None, description="filtrar por estado"),
    db: AsyncSession = Depends(get_async_db),
    _: UserModel = Depends(get_current_admin),
):
    return await coupon_service.list_coupons(db, active=active)


@router.get("/coupons/{coupon_id}", response_model=CouponRead)
async def get_coupon(
    coupon_id: UUID,
    db: AsyncSession = Depends(get_async_db),
    _: UserModel = Depends(get_current_admin),
):
    return await coupon_service.get_coupon(db, coupon_id)


@router.post("/coupons", response_model=CouponRead, status_code=status.HTTP_201_CREATED)
async def create_coupon(
    payload: CouponCreate,
    db: AsyncSession = Depends(get_async_db),
    _: UserModel = Depends(get_current_admin),
):
    try:
        coupon = await coupon_service.create_coupon(db, payload)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    return coupon


@router.patch("/coupons/{coupon_id}", response_model=CouponRead)
async def update_coupon(
    coupon_id: UUID,
    payload: CouponUpdate,
    db: AsyncSession = Depends(get_async_db),
    _: UserModel = Depends(get_current_admin),
):
    coupon = await coupon_service.get_coupon(db, coupon_id)
    try:
        coupon = await coupon_service.update_coupon(db, coupon, payload)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    return coupon


@router.delete("/coupons/{coupon_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_coupon(
    coupon_id: UUID,
    db: AsyncSession = Depends(get_async_db),
    _: UserModel = Depends(get_current_admin),
):
    coupon = await coupon_service.get_coupon(db, coupon_id)
    await coupon_service.delete_coupon(db, coupon)
    await commit_async(db)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------- Medios de pago ----------
@router.get("/payment-methods", response_model=list[PaymentMethodAdminRead])
async def list_payment_methods(
    db: AsyncSession = Depends(get_async_db),
    _: UserModel = Depends(get_current_admin),
):
    return await checkout_service.list_all_payment_methods(db)


@router.post("/payment-methods", response_model=PaymentMethodAdminRead, status_code=status.HTTP_201_CREATED)
async def create_payment_method(
    payload: PaymentMethodCreate,
    db: AsyncSession = Depends(get_async_db),
    _: UserModel = Depends(get_current_admin),
):
    try:
        method = await checkout_service.create_payment_method(db, payload)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    return method


@router.patch("/payment-methods/{method_id}", response_model=PaymentMethodAdminRead)
async def update_payment_method(
    method_id: UUID,
    payload: PaymentMethodUpdate,
    db: AsyncSession = Depends(get_async_db),
    _: UserModel = Depends(get_current_admin),
):
    method = await checkout_service.get_payment_method_by_id(db, method_id)
    method = await checkout_service.update_payment_method(db, method, payload)
    await commit_async(db)
    return method
