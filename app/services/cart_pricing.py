"""Pure pricing rules for carts.

Nothing here touches the database: every function works on a ``Cart`` /
``CartItem`` (persistent or transient) and on the snapshots from
``app.domain.cart``.
"""

from __future__ import annotations

from app.domain.cart import CouponRule, ProductSnapshot
from app.domain.enums import CouponType
from app.models.cart import Cart, CartItem


def _money(value: float) -> float:
    return round(float(value), 2)


def normalize_coupon_code(code: str) -> str:
    return code.strip().upper()


def effective_unit_price(product: ProductSnapshot) -> float:
    """Promotional price while the promotion is active, list price otherwise."""
    if product.is_promotion_active and product.promotional_price is not None:
        return _money(product.promotional_price)
    return _money(product.price)


def line_total(quantity: int, unit_price: float) -> float:
    return _money(quantity * float(unit_price))


def build_line(product: ProductSnapshot, quantity: int) -> CartItem:
    """New cart line with the price snapshot frozen at add time."""
    unit_price = effective_unit_price(product)
    promotional_price = None
    if product.is_promotion_active and product.promotional_price is not None:
        promotional_price = _money(product.promotional_price)
    return CartItem(
        product_id=product.id,
        name=product.name,
        image_url=product.main_image_url,
        quantity=quantity,
        list_price=_money(product.price),
        promotional_price=promotional_price,
        unit_price=unit_price,
        line_total=line_total(quantity, unit_price),
    )


def copy_line(line: CartItem) -> CartItem:
    return CartItem(
        product_id=line.product_id,
        name=line.name,
        image_url=line.image_url,
        quantity=line.quantity,
        list_price=line.list_price,
        promotional_price=line.promotional_price,
        unit_price=line.unit_price,
        line_total=line_total(line.quantity, line.unit_price),
    )


def find_line(cart: Cart, product_id) -> CartItem | None:
    return next((item for item in cart.items if item.product_id == product_id), None)


def set_quantity(line: CartItem, quantity: int) -> None:
    # El precio unitario queda congelado: sólo cambia la cantidad.
    line.quantity = quantity
    line.line_total = line_total(quantity, line.unit_price)


def eligible_subtotal(cart: Cart) -> float:
    """Sum of line totals: after item promotions, before any coupon."""
    return _money(sum(float(item.line_total) for item in cart.items))


def meets_minimum(coupon: CouponRule, subtotal: float) -> bool:
    return subtotal >= float(coupon.min_purchase_value)


def coupon_discount(coupon: CouponRule, subtotal: float) -> float:
    if coupon.type == CouponType.fixed:
        return _money(min(float(coupon.value), subtotal))
    return _money(subtotal * float(coupon.value) / 100)


def attach_coupon(cart: Cart, coupon: CouponRule, subtotal: float) -> None:
    cart.active_coupon_code = coupon.code
    cart.coupon_snapshot = {"code": coupon.code, "description": coupon.description}
    cart.coupon_discount = coupon_discount(coupon, subtotal)


def clear_coupon(cart: Cart) -> None:
    cart.active_coupon_code = None
    cart.coupon_snapshot = None
    cart.coupon_discount = 0.0


def recompute_totals(cart: Cart) -> Cart:
    """Rebuild every derived field of the cart from its lines and coupon discount."""
    subtotal = 0.0
    items_discount = 0.0
    item_count = 0
    for item in cart.items:
        item.line_total = line_total(item.quantity, item.unit_price)
        subtotal += float(item.list_price) * item.quantity
        if item.promotional_price is not None:
            items_discount += (float(item.list_price) - float(item.promotional_price)) * item.quantity
        item_count += item.quantity

    if not cart.active_coupon_code:
        clear_coupon(cart)

    cart.items_subtotal = _money(subtotal)
    cart.items_discount = _money(items_discount)
    cart.coupon_discount = _money(cart.coupon_discount or 0)
    cart.total_discount = _money(cart.items_discount + cart.coupon_discount)
    cart.grand_total = _money(cart.items_subtotal - cart.total_discount)
    cart.total_item_count = item_count
    return cart
