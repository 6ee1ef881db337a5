from __future__ import annotations

import uuid

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.operations import flush_async, refresh_async
from app.domain.cart import ProductSnapshot
from app.models.product import Product
from app.schemas.product import ProductCreate, ProductUpdate
from app.services.exceptions import ConflictError, DomainValidationError, ResourceNotFoundError
from app.utils.slugify import generate_unique_slug, slug_taken, slugify


def to_snapshot(product: Product) -> ProductSnapshot:
    return ProductSnapshot(
        id=product.id,
        name=product.name,
        price=float(product.price),
        stock_quantity=int(product.stock_quantity),
        promotional_price=float(product.promotional_price) if product.promotional_price is not None else None,
        is_promotion_active=bool(product.is_promotion_active),
        main_image_url=product.main_image_url,
    )


class SqlCatalog:
    """Product lookup used by the cart engine. Inactive products do not exist for it."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def get_product(self, product_id: uuid.UUID) -> ProductSnapshot | None:
        product = await get_product(self._db, product_id, include_inactive=False)
        if product is None:
            return None
        return to_snapshot(product)


async def get_product(db: AsyncSession, product_id: uuid.UUID, *, include_inactive: bool = False) -> Product | None:
    stmt = select(Product).where(Product.id == product_id)
    if not include_inactive:
        stmt = stmt.where(Product.active.is_(True))
    result = await db.execute(stmt.limit(1))
    return result.scalars().first()


async def get_product_or_404(db: AsyncSession, product_id: uuid.UUID, *, include_inactive: bool = False) -> Product:
    product = await get_product(db, product_id, include_inactive=include_inactive)
    if product is None:
        raise ResourceNotFoundError("Product not found")
    return product


async def list_products(
    db: AsyncSession,
    *,
    search: str | None = None,
    on_sale: bool | None = None,
    active: bool | None = True,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[Product], int]:
    """Catalog page plus total count. ``active=None`` lists inactive products too (admin)."""
    stmt = select(Product)
    if active is not None:
        stmt = stmt.where(Product.active.is_(active))
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(or_(Product.name.ilike(pattern), Product.description.ilike(pattern)))
    if on_sale is not None:
        stmt = stmt.where(Product.is_promotion_active.is_(on_sale))

    total = await db.scalar(select(func.count()).select_from(stmt.subquery()))
    result = await db.execute(stmt.order_by(Product.created_at.desc(), Product.name).limit(limit).offset(offset))
    return list(result.scalars().all()), int(total or 0)


def _check_prices(price: float, promotional_price: float | None, is_promotion_active: bool) -> None:
    if is_promotion_active and promotional_price is None:
        raise DomainValidationError("promotional_price is required when the promotion is active")
    if promotional_price is not None and promotional_price >= price:
        raise DomainValidationError("promotional_price must be lower than price")


async def create_product(db: AsyncSession, payload: ProductCreate) -> Product:
    data = payload.model_dump()
    raw_slug = (data.pop("slug", None) or "").strip()
    if raw_slug:
        slug = slugify(raw_slug)
        if not slug or await slug_taken(db, Product, slug):
            raise ConflictError("Product slug already exists")
    else:
        slug = await generate_unique_slug(db, Product, data["name"])

    product = Product(**data, slug=slug)
    db.add(product)
    try:
        await flush_async(db, product)
    except IntegrityError as exc:
        raise ConflictError("Unable to create product due to integrity violation") from exc
    await refresh_async(db, product)
    return product


async def update_product(db: AsyncSession, product: Product, changes: ProductUpdate) -> Product:
    data = changes.model_dump(exclude_unset=True)
    _check_prices(
        data.get("price", product.price),
        data.get("promotional_price", product.promotional_price),
        data.get("is_promotion_active", product.is_promotion_active),
    )
    # Los carritos conservan el precio congelado al agregar; cambiar el precio acá no los toca.
    for field, value in data.items():
        setattr(product, field, value)

    db.add(product)
    try:
        await flush_async(db, product)
    except IntegrityError as exc:
        raise ConflictError("Unable to update product due to integrity violation") from exc
    await refresh_async(db, product)
    return product


async def deactivate_product(db: AsyncSession, product: Product) -> Product:
    # Baja lógica: los pedidos y carritos existentes conservan su snapshot
    product.active = False
    db.add(product)
    await flush_async(db, product)
    return product
