import uuid

import pytest
from httpx import AsyncClient

from conftest import API, auth


@pytest.mark.asyncio
async def test_coupon_crud(client: AsyncClient, admin_token: str):
    headers = auth(admin_token)

    resp = await client.post(
        f"{API}/admin/coupons",
        json={"code": " summer15 ", "type": "percentage", "value": 15, "min_purchase_value": 100},
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    coupon = resp.json()
    assert coupon["code"] == "SUMMER15"
    assert coupon["is_active"] is True

    resp = await client.post(
        f"{API}/admin/coupons", json={"code": "SUMMER15", "type": "fixed", "value": 5}, headers=headers
    )
    assert resp.status_code == 409

    resp = await client.get(f"{API}/admin/coupons/{coupon['id']}", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["min_purchase_value"] == 100.0

    resp = await client.patch(f"{API}/admin/coupons/{coupon['id']}", json={"is_active": False}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["is_active"] is False

    resp = await client.get(f"{API}/admin/coupons", params={"active": False}, headers=headers)
    assert [item["code"] for item in resp.json()] == ["SUMMER15"]
    resp = await client.get(f"{API}/admin/coupons", params={"active": True}, headers=headers)
    assert resp.json() == []

    resp = await client.patch(f"{API}/admin/coupons/{coupon['id']}", json={"value": 150}, headers=headers)
    assert resp.status_code == 422

    resp = await client.delete(f"{API}/admin/coupons/{coupon['id']}", headers=headers)
    assert resp.status_code == 204
    resp = await client.get(f"{API}/admin/coupons/{coupon['id']}", headers=headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_percentage_above_100_is_rejected(client: AsyncClient, admin_token: str):
    resp = await client.post(
        f"{API}/admin/coupons",
        json={"code": "TOOMUCH", "type": "percentage", "value": 120},
        headers=auth(admin_token),
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_deleted_coupon_drops_from_cart(client: AsyncClient, admin_token: str, user_token: str, make_product):
    product = make_product(price=100.0)
    headers = auth(user_token)
    resp = await client.post(
        f"{API}/admin/coupons", json={"code": "GONE5", "type": "fixed", "value": 5}, headers=auth(admin_token)
    )
    coupon_id = resp.json()["id"]
    await client.post(f"{API}/cart/items", json={"product_id": str(product.id), "quantity": 1}, headers=headers)
    resp = await client.post(f"{API}/cart/coupon", json={"code": "GONE5"}, headers=headers)
    assert resp.json()["summary"]["grand_total"] == 95.0

    await client.delete(f"{API}/admin/coupons/{coupon_id}", headers=auth(admin_token))

    resp = await client.patch(f"{API}/cart/items/{product.id}", json={"quantity": 2}, headers=headers)
    body = resp.json()
    assert body["coupon"] is None
    assert body["notice"]["coupon_status"] == "REMOVED"
    assert body["summary"]["grand_total"] == 200.0


@pytest.mark.asyncio
async def test_coupon_admin_requires_admin(client: AsyncClient, user_token: str):
    resp = await client.get(f"{API}/admin/coupons", headers=auth(user_token))
    assert resp.status_code == 403
    resp = await client.get(f"{API}/admin/coupons/{uuid.uuid4()}", headers=auth(user_token))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_expiry_with_offset_is_stored_in_utc(client: AsyncClient, admin_token: str, user_token: str, make_product):
    from datetime import datetime, timedelta, timezone

    product = make_product(price=100.0)
    headers = auth(user_token)
    await client.post(f"{API}/cart/items", json={"product_id": str(product.id), "quantity": 1}, headers=headers)

    # vencido hace una hora, escrito en hora de +05:00
    expired = (datetime.now(timezone.utc) - timedelta(hours=1)).astimezone(timezone(timedelta(hours=5)))
    # vigente una hora más, escrito en hora de -05:00
    valid = (datetime.now(timezone.utc) + timedelta(hours=1)).astimezone(timezone(timedelta(hours=-5)))

    for code, expires_at in (("PAST5", expired), ("LATER5", valid)):
        resp = await client.post(
            f"{API}/admin/coupons",
            json={"code": code, "type": "fixed", "value": 5, "expires_at": expires_at.isoformat()},
            headers=auth(admin_token),
        )
        assert resp.status_code == 201, resp.text

    resp = await client.post(f"{API}/cart/coupon", json={"code": "PAST5"}, headers=headers)
    assert resp.status_code == 404
    resp = await client.post(f"{API}/cart/coupon", json={"code": "LATER5"}, headers=headers)
    assert resp.status_code == 200, resp.text


@pytest.mark.asyncio
async def test_update_expiry_with_offset_is_stored_in_utc(client: AsyncClient, admin_token: str, user_token: str, make_product):
    from datetime import datetime, timedelta, timezone

    product = make_product(price=100.0)
    headers = auth(user_token)
    await client.post(f"{API}/cart/items", json={"product_id": str(product.id), "quantity": 1}, headers=headers)
    resp = await client.post(
        f"{API}/admin/coupons", json={"code": "SOON5", "type": "fixed", "value": 5}, headers=auth(admin_token)
    )
    coupon_id = resp.json()["id"]

    expired = (datetime.now(timezone.utc) - timedelta(hours=1)).astimezone(timezone(timedelta(hours=5)))
    resp = await client.patch(
        f"{API}/admin/coupons/{coupon_id}", json={"expires_at": expired.isoformat()}, headers=auth(admin_token)
    )
    assert resp.status_code == 200

    resp = await client.post(f"{API}/cart/coupon", json={"code": "SOON5"}, headers=headers)
    assert resp.status_code == 404
