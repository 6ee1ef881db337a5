# tests/test_cart_pricing.py
import uuid

import pytest

from app.domain.cart import CouponRule, ProductSnapshot
from app.domain.enums import CouponType
from app.models.cart import Cart
from app.services import cart_pricing


def _cart() -> Cart:
    return Cart(items=[], coupon_discount=0.0)


def _product(price=100.0, promo=None, active=False, stock=10) -> ProductSnapshot:
    return ProductSnapshot(
        id=uuid.uuid4(),
        name="Camiseta",
        price=price,
        stock_quantity=stock,
        promotional_price=promo,
        is_promotion_active=active,
    )


def test_unit_price_uses_promotion_only_while_active():
    assert cart_pricing.effective_unit_price(_product(100, 90, active=True)) == 90
    assert cart_pricing.effective_unit_price(_product(100, 90, active=False)) == 100


def test_build_line_freezes_price_snapshot():
    line = cart_pricing.build_line(_product(100, 90, active=True), 2)
    assert line.unit_price == 90
    assert line.list_price == 100
    assert line.promotional_price == 90
    assert line.line_total == 180

    inactive = cart_pricing.build_line(_product(100, 90, active=False), 1)
    # promoción cargada pero apagada: no cuenta como descuento
    assert inactive.promotional_price is None
    assert inactive.unit_price == 100


def test_recompute_totals_with_promotion_and_coupon():
    cart = _cart()
    cart.items.append(cart_pricing.build_line(_product(100, 90, active=True), 2))
    coupon = CouponRule(code="SAVE10", type=CouponType.percentage, value=10, min_purchase_value=50)
    cart_pricing.attach_coupon(cart, coupon, cart_pricing.eligible_subtotal(cart))

    cart_pricing.recompute_totals(cart)

    assert cart.items_subtotal == 200
    assert cart.items_discount == 20
    assert cart.coupon_discount == 18
    assert cart.total_discount == 38
    assert cart.grand_total == 162
    assert cart.total_item_count == 2
    assert cart.grand_total == pytest.approx(cart.items_subtotal - cart.items_discount - cart.coupon_discount)


def test_recompute_clears_discount_without_active_code():
    cart = _cart()
    cart.items.append(cart_pricing.build_line(_product(50), 1))
    cart.coupon_discount = 5.0

    cart_pricing.recompute_totals(cart)

    assert cart.coupon_discount == 0
    assert cart.grand_total == 50


def test_fixed_coupon_never_exceeds_subtotal():
    coupon = CouponRule(code="OFF30", type=CouponType.fixed, value=30)
    assert cart_pricing.coupon_discount(coupon, 20.0) == 20.0
    assert cart_pricing.coupon_discount(coupon, 100.0) == 30.0


def test_percentage_coupon_is_rounded_to_cents():
    coupon = CouponRule(code="P10", type=CouponType.percentage, value=10)
    assert cart_pricing.coupon_discount(coupon, 10.01) == 1.0


def test_minimum_purchase_is_inclusive():
    coupon = CouponRule(code="MIN", type=CouponType.fixed, value=5, min_purchase_value=50)
    assert cart_pricing.meets_minimum(coupon, 50.0)
    assert not cart_pricing.meets_minimum(coupon, 49.99)


def test_set_quantity_keeps_frozen_unit_price():
    line = cart_pricing.build_line(_product(100, 90, active=True), 1)
    cart_pricing.set_quantity(line, 3)
    assert line.unit_price == 90
    assert line.line_total == 270


def test_normalize_coupon_code():
    assert cart_pricing.normalize_coupon_code("  save10 ") == "SAVE10"
