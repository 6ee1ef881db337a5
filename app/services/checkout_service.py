"""Checkout: turns the user's cart into an order with a mock PIX charge."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.config import settings
from app.core.logging import domain_event, get_logger
from app.core.metrics import record_checkout
from app.db.operations import flush_async, refresh_async
from app.domain.cart import CartOwner
from app.domain.enums import OrderStatus
from app.models.cart import Cart
from app.models.order import Order, OrderItem, PaymentMethod
from app.models.product import Product
from app.schemas.coupon import CouponPreview
from app.schemas.order import CheckoutRequest, PaymentMethodCreate, PaymentMethodUpdate
from app.services import cart_pricing, user_service
from app.services.cart_store import build_cart_service
from app.services.exceptions import BusinessRuleError, ConflictError, ResourceNotFoundError
from app.services.payment_providers import PaymentProviderError, pix

logger = get_logger("app.checkout")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def list_payment_methods(db: AsyncSession) -> list[PaymentMethod]:
    stmt = select(PaymentMethod).where(PaymentMethod.is_enabled.is_(True)).order_by(PaymentMethod.name)
    result = await db.execute(stmt)
    return list(result.scalars().all())


# --- Medios de pago (admin) ---

async def list_all_payment_methods(db: AsyncSession) -> list[PaymentMethod]:
    result = await db.execute(select(PaymentMethod).order_by(PaymentMethod.identifier))
    return list(result.scalars().all())


async def get_payment_method_by_id(db: AsyncSession, method_id: uuid.UUID) -> PaymentMethod:
    method = await db.get(PaymentMethod, method_id)
    if method is None:
        raise ResourceNotFoundError("Payment method not found")
    return method


async def create_payment_method(db: AsyncSession, payload: PaymentMethodCreate) -> PaymentMethod:
    identifier = payload.identifier.strip().lower()
    exists = await db.execute(select(PaymentMethod.id).where(PaymentMethod.identifier == identifier).limit(1))
    if exists.scalar_one_or_none() is not None:
        raise ConflictError("Payment method already exists")

    method = PaymentMethod(identifier=identifier, name=payload.name, is_enabled=payload.is_enabled)
    db.add(method)
    try:
        await flush_async(db, method)
    except IntegrityError as exc:
        raise ConflictError("Payment method already exists") from exc
    await refresh_async(db, method)
    return method


async def update_payment_method(db: AsyncSession, method: PaymentMethod, changes: PaymentMethodUpdate) -> PaymentMethod:
    for field, value in changes.model_dump(exclude_unset=True).items():
        setattr(method, field, value)
    db.add(method)
    await flush_async(db, method)
    await refresh_async(db, method)
    return method


async def _get_payment_method(db: AsyncSession, identifier: str) -> PaymentMethod:
    stmt = select(PaymentMethod).where(PaymentMethod.identifier == identifier.strip().lower()).limit(1)
    result = await db.execute(stmt)
    method = result.scalars().first()
    if method is None:
        raise ResourceNotFoundError("Payment method not found")
    if not method.is_enabled:
        raise BusinessRuleError("Payment method is not available")
    return method


async def next_order_number(db: AsyncSession, today: datetime | None = None) -> str:
    """``YYYYMMDD-NNNN``: one more than the highest number issued today (UTC)."""
    prefix = (today or _utcnow()).strftime("%Y%m%d")
    stmt = select(func.max(Order.order_number)).where(Order.order_number.like(f"{prefix}-%"))
    last = await db.scalar(stmt)
    sequence = 1
    if last:
        try:
            sequence = int(last.rsplit("-", 1)[1]) + 1
        except (IndexError, ValueError):
            sequence = 1
    return f"{prefix}-{sequence:0{settings.ORDER_NUMBER_DIGITS}d}"


async def _reserve_stock(db: AsyncSession, cart: Cart) -> None:
    product_ids = [item.product_id for item in cart.items]
    stmt = select(Product).where(Product.id.in_(product_ids)).with_for_update()
    result = await db.execute(stmt)
    products = {product.id: product for product in result.scalars().all()}

    for item in cart.items:
        product = products.get(item.product_id)
        if product is None or not product.active:
            raise ConflictError(f"Product '{item.name}' is no longer available")
        if item.quantity > product.stock_quantity:
            raise ConflictError(f"Insufficient stock for product '{item.name}'")
        product.stock_quantity -= item.quantity
        db.add(product)


def _charge(payment_method: str, charge: pix.PixCharge) -> dict:
    if payment_method != "pix":
        raise BusinessRuleError(f"Payment method '{payment_method}' is not supported")
    return pix.process_pix_payment(charge)


async def preview_coupon(db: AsyncSession, user_id: uuid.UUID, code: str) -> CouponPreview:
    """Price ``code`` against the user's cart without touching it."""
    service = build_cart_service(db)
    cart, _ = await service.get_or_create_cart(CartOwner(user_id=user_id))
    coupon, subtotal = await service.check_coupon(cart, code)
    discount = cart_pricing.coupon_discount(coupon, subtotal)
    return CouponPreview(
        code=coupon.code,
        description=coupon.description,
        eligible_subtotal=subtotal,
        discount=discount,
        total=round(subtotal - discount, 2),
    )


async def create_order(db: AsyncSession, user_id: uuid.UUID, payload: CheckoutRequest) -> Order:
    """Create an order from the user's cart. The caller commits or rolls back."""
    address = await user_service.get_address(db, user_id, payload.address_id)
    method = await _get_payment_method(db, payload.payment_method)

    service = build_cart_service(db)
    async with service.checkout_session(CartOwner(user_id=user_id), payload.coupon_code) as priced:
        cart = priced.cart
        await _reserve_stock(db, cart)

        order_number = await next_order_number(db)
        try:
            payment = _charge(method.identifier, pix.PixCharge(
                recipient_name=address.recipient_name,
                total=float(cart.grand_total),
                order_number=order_number,
            ))
        except PaymentProviderError as exc:
            record_checkout(method.identifier, "payment_failed")
            logger.error(
                "Payment provider failed",
                extra={"order_number": order_number, "payment_method": method.identifier, "error": str(exc)},
            )
            raise

        order = Order(
            order_number=order_number,
            user_id=user_id,
            status=OrderStatus.awaiting_payment,
            currency=cart.currency,
            subtotal=cart.items_subtotal,
            items_discount=cart.items_discount,
            coupon_discount=cart.coupon_discount,
            total_discount=cart.total_discount,
            total=cart.grand_total,
            coupon_code=cart.active_coupon_code,
            shipping_address=user_service.address_snapshot(address),
            payment_method=method.identifier,
            payment=payment,
            items=[
                OrderItem(
                    product_id=item.product_id,
                    position=index,
                    name=item.name,
                    image_url=item.image_url,
                    quantity=item.quantity,
                    list_price=item.list_price,
                    promotional_price=item.promotional_price,
                    unit_price=item.unit_price,
                    line_total=item.line_total,
                )
                for index, item in enumerate(cart.items)
            ],
        )
        db.add(order)
        try:
            await flush_async(db)
        except IntegrityError as exc:
            raise ConflictError("Could not allocate an order number; please retry") from exc

        await service.empty_cart(cart)

    await refresh_async(db, order)
    await refresh_async(db, order, attribute_names=["items"])
    record_checkout(method.identifier, "success")
    domain_event(
        logger,
        "checkout.order_created",
        order_number=order.order_number,
        user_id=str(user_id),
        total=float(order.total),
        coupon_code=order.coupon_code,
    )
    return order


async def list_orders(db: AsyncSession, user_id: uuid.UUID, *, limit: int = 50, offset: int = 0) -> list[Order]:
    stmt = (
        select(Order)
        .options(selectinload(Order.items))
        .where(Order.user_id == user_id)
        .order_by(Order.created_at.desc(), Order.order_number.desc())
        .offset(offset)
        .limit(limit)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_order(db: AsyncSession, user_id: uuid.UUID, order_number: str) -> Order:
    stmt = (
        select(Order)
        .options(selectinload(Order.items))
        .where(Order.user_id == user_id, Order.order_number == order_number)
        .limit(1)
    )
    result = await db.execute(stmt)
    order = result.scalars().first()
    if order is None:
        raise ResourceNotFoundError("Order not found")
    return order
