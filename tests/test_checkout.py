import uuid
from datetime import datetime, timezone

import pytest
from httpx import AsyncClient

from app.models.product import Product
from app.services.payment_providers import PaymentProviderError, pix
from conftest import API, auth


async def _agregar(client: AsyncClient, headers: dict, product, quantity: int = 1) -> None:
    resp = await client.post(
        f"{API}/cart/items", json={"product_id": str(product.id), "quantity": quantity}, headers=headers
    )
    assert resp.status_code == 201, resp.text


def _checkout_body(address, **extra) -> dict:
    return {"address_id": str(address.id), "payment_method": "pix", **extra}


@pytest.mark.asyncio
async def test_payment_methods_lists_enabled_only(client: AsyncClient, pix_method, db_session):
    from app.models.order import PaymentMethod

    db_session.add(PaymentMethod(identifier="boleto", name="Boleto", is_enabled=False))
    db_session.commit()

    resp = await client.get(f"{API}/checkout/payment-methods")
    assert resp.status_code == 200
    assert resp.json() == [{"identifier": "pix", "name": "PIX"}]


@pytest.mark.asyncio
async def test_checkout_creates_order_and_empties_cart(
    client: AsyncClient, user_token: str, user_address, pix_method, make_product, make_coupon, db_session
):
    product = make_product(name="Fone", price=100.0, promotional_price=90.0, is_promotion_active=True, stock_quantity=5)
    make_coupon(code="SAVE10", value=10, min_purchase_value=50)
    headers = auth(user_token)
    await _agregar(client, headers, product, 2)

    resp = await client.post(f"{API}/checkout", json=_checkout_body(user_address, coupon_code="save10"), headers=headers)
    assert resp.status_code == 201, resp.text
    order = resp.json()

    today = datetime.now(timezone.utc).strftime("%Y%m%d")
    assert order["order_number"] == f"{today}-0001"
    assert order["status"] == "awaiting_payment"
    assert order["coupon_code"] == "SAVE10"
    assert (order["subtotal"], order["items_discount"], order["coupon_discount"], order["total"]) == (
        200.0, 20.0, 18.0, 162.0,
    )
    assert order["shipping_address"]["cep"] == "01001-000"
    assert order["items"][0]["unit_price"] == 90.0
    assert order["payment"]["method"] == "pix"
    assert order["payment"]["transaction_id"] == f"PIX_{order['order_number']}"
    qr_code = order["payment"]["qr_code"]
    assert qr_code.startswith("000201")
    assert "5406162.00" in qr_code
    assert qr_code[-4:] == pix.crc16_ccitt(qr_code[:-4])

    cart = (await client.get(f"{API}/cart", headers=headers)).json()
    assert cart["items"] == []
    assert cart["coupon"] is None
    assert cart["summary"]["grand_total"] == 0.0

    db_session.expire_all()
    assert db_session.get(Product, product.id).stock_quantity == 3


@pytest.mark.asyncio
async def test_order_numbers_are_sequential_per_day(
    client: AsyncClient, user_token: str, user_address, pix_method, make_product
):
    product = make_product(price=10.0, stock_quantity=10)
    headers = auth(user_token)
    numbers = []
    for _ in range(2):
        await _agregar(client, headers, product)
        resp = await client.post(f"{API}/checkout", json=_checkout_body(user_address), headers=headers)
        assert resp.status_code == 201, resp.text
        numbers.append(resp.json()["order_number"])

    today = datetime.now(timezone.utc).strftime("%Y%m%d")
    assert numbers == [f"{today}-0001", f"{today}-0002"]

    resp = await client.get(f"{API}/orders", headers=headers)
    assert resp.status_code == 200
    assert sorted(order["order_number"] for order in resp.json()) == numbers

    resp = await client.get(f"{API}/orders/{numbers[0]}", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["total"] == 10.0

    resp = await client.get(f"{API}/orders/{today}-9999", headers=headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_payment_failure_keeps_cart_and_stock(
    client: AsyncClient, user_token: str, user_address, pix_method, make_product, monkeypatch, db_session
):
    product = make_product(price=50.0, stock_quantity=4)
    headers = auth(user_token)
    await _agregar(client, headers, product, 2)

    def _boom(charge):
        raise PaymentProviderError("PSP down")

    monkeypatch.setattr(pix, "process_pix_payment", _boom)

    resp = await client.post(f"{API}/checkout", json=_checkout_body(user_address), headers=headers)
    assert resp.status_code == 502
    assert resp.json()["detail"] == "Payment provider unavailable, please try again"

    cart = (await client.get(f"{API}/cart", headers=headers)).json()
    assert cart["items"][0]["quantity"] == 2

    resp = await client.get(f"{API}/orders", headers=headers)
    assert resp.json() == []

    db_session.expire_all()
    assert db_session.get(Product, product.id).stock_quantity == 4


@pytest.mark.asyncio
async def test_checkout_empty_cart_is_rejected(client: AsyncClient, user_token: str, user_address, pix_method):
    resp = await client.post(f"{API}/checkout", json=_checkout_body(user_address), headers=auth(user_token))
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Your cart is empty"


@pytest.mark.asyncio
async def test_checkout_rechecks_stock(
    client: AsyncClient, user_token: str, user_address, pix_method, make_product, db_session
):
    product = make_product(name="Raro", price=20.0, stock_quantity=2)
    headers = auth(user_token)
    await _agregar(client, headers, product, 2)

    db_session.expire_all()
    stored = db_session.get(Product, product.id)
    stored.stock_quantity = 1
    db_session.commit()

    resp = await client.post(f"{API}/checkout", json=_checkout_body(user_address), headers=headers)
    assert resp.status_code == 409
    assert "Raro" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_checkout_address_must_belong_to_user(
    client: AsyncClient, admin_token: str, user_address, pix_method, make_product
):
    product = make_product(price=20.0)
    headers = auth(admin_token)
    await _agregar(client, headers, product)

    resp = await client.post(f"{API}/checkout", json=_checkout_body(user_address), headers=headers)
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Address not found"


@pytest.mark.asyncio
async def test_checkout_payment_method_errors(
    client: AsyncClient, user_token: str, user_address, make_product, db_session
):
    from app.models.order import PaymentMethod

    db_session.add(PaymentMethod(identifier="pix", name="PIX", is_enabled=False))
    db_session.commit()
    product = make_product(price=20.0)
    headers = auth(user_token)
    await _agregar(client, headers, product)

    resp = await client.post(f"{API}/checkout", json=_checkout_body(user_address), headers=headers)
    assert resp.status_code == 400

    resp = await client.post(
        f"{API}/checkout", json=_checkout_body(user_address, payment_method="cash"), headers=headers
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_checkout_with_unmet_coupon_is_rejected(
    client: AsyncClient, user_token: str, user_address, pix_method, make_product, make_coupon
):
    product = make_product(price=100.0)
    make_coupon(code="BIG", value=10, min_purchase_value=500)
    headers = auth(user_token)
    await _agregar(client, headers, product)

    resp = await client.post(f"{API}/checkout", json=_checkout_body(user_address, coupon_code="BIG"), headers=headers)
    assert resp.status_code == 400

    cart = (await client.get(f"{API}/cart", headers=headers)).json()
    assert cart["items"][0]["quantity"] == 1


@pytest.mark.asyncio
async def test_coupon_preview_does_not_change_cart(
    client: AsyncClient, user_token: str, make_product, make_coupon
):
    product = make_product(price=100.0, promotional_price=90.0, is_promotion_active=True)
    make_coupon(code="SAVE10", value=10, min_purchase_value=50, description="10% off")
    headers = auth(user_token)
    await _agregar(client, headers, product, 2)

    resp = await client.post(f"{API}/checkout/coupon-preview", json={"code": "save10"}, headers=headers)
    assert resp.status_code == 200, resp.text
    assert resp.json() == {
        "code": "SAVE10",
        "description": "10% off",
        "eligible_subtotal": 180.0,
        "discount": 18.0,
        "total": 162.0,
    }

    cart = (await client.get(f"{API}/cart", headers=headers)).json()
    assert cart["coupon"] is None
    assert cart["summary"]["grand_total"] == 180.0


@pytest.mark.asyncio
async def test_checkout_requires_authentication(client: AsyncClient):
    resp = await client.post(f"{API}/checkout", json={"address_id": str(uuid.uuid4())})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_admin_manages_payment_methods(client: AsyncClient, admin_token: str, user_token: str):
    headers = auth(admin_token)

    resp = await client.post(f"{API}/admin/payment-methods", json={"identifier": "PIX", "name": "PIX"}, headers=headers)
    assert resp.status_code == 201, resp.text
    method = resp.json()
    assert method["identifier"] == "pix"

    resp = await client.post(f"{API}/admin/payment-methods", json={"identifier": "pix", "name": "Outro"}, headers=headers)
    assert resp.status_code == 409

    resp = await client.patch(f"{API}/admin/payment-methods/{method['id']}", json={"is_enabled": False}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["is_enabled"] is False

    assert (await client.get(f"{API}/checkout/payment-methods")).json() == []
    resp = await client.get(f"{API}/admin/payment-methods", headers=headers)
    assert [item["identifier"] for item in resp.json()] == ["pix"]

    resp = await client.get(f"{API}/admin/payment-methods", headers=auth(user_token))
    assert resp.status_code == 403
