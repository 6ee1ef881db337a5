from math import ceil
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session_async import get_async_db
from app.schemas.product import PaginatedProducts, ProductRead
from app.services import catalog_service

router = APIRouter(prefix="/products", tags=["products"])


# ---------- Endpoints Públicos (sin seguridad) ----------
@router.get("", response_model=PaginatedProducts)
async def public_list(
    search: str | None = Query(None, description="texto a buscar"),
    on_sale: bool | None = Query(None, description="sólo productos con promoción activa"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_async_db),
):
    items, total = await catalog_service.list_products(
        db,
        search=search,
        on_sale=on_sale,
        limit=limit,
        offset=offset,
    )
    page = (offset // limit) + 1
    pages = ceil(total / limit) if total else 1

    return {
        "total": total,
        "page": page,
        "pages": pages,
        "limit": limit,
        "items": items,
    }


@router.get("/{product_id}", response_model=ProductRead)
async def public_get(product_id: UUID, db: AsyncSession = Depends(get_async_db)):
    return await catalog_service.get_product_or_404(db, product_id)
