import uuid

import pytest
from httpx import AsyncClient

from conftest import API, auth


@pytest.mark.asyncio
async def test_public_list_and_get(client: AsyncClient, make_product):
    visible = make_product(name="Camiseta Azul", price=80.0, promotional_price=70.0, is_promotion_active=True)
    make_product(name="Camiseta Verde", price=80.0)
    make_product(name="Camiseta Oculta", price=80.0, active=False)

    resp = await client.get(f"{API}/products", params={"search": "camiseta"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 2
    assert {item["name"] for item in body["items"]} == {"Camiseta Azul", "Camiseta Verde"}

    resp = await client.get(f"{API}/products", params={"on_sale": True})
    assert [item["id"] for item in resp.json()["items"]] == [str(visible.id)]

    resp = await client.get(f"{API}/products", params={"limit": 1, "offset": 1})
    assert resp.json()["page"] == 2
    assert resp.json()["pages"] == 2
    assert len(resp.json()["items"]) == 1

    resp = await client.get(f"{API}/products/{visible.id}")
    assert resp.status_code == 200
    assert resp.json()["promotional_price"] == 70.0


@pytest.mark.asyncio
async def test_inactive_or_missing_product_is_404(client: AsyncClient, make_product):
    hidden = make_product(name="Fora de linha", active=False)
    assert (await client.get(f"{API}/products/{hidden.id}")).status_code == 404
    assert (await client.get(f"{API}/products/{uuid.uuid4()}")).status_code == 404


@pytest.mark.asyncio
async def test_admin_creates_and_updates_product(client: AsyncClient, admin_token: str):
    headers = auth(admin_token)
    payload = {"name": "Jaqueta Jeans", "price": 300.0, "stock_quantity": 4}

    resp = await client.post(f"{API}/admin/products", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    product = resp.json()
    assert product["slug"] == "jaqueta-jeans"

    resp = await client.post(f"{API}/admin/products", json=payload, headers=headers)
    assert resp.status_code == 201
    assert resp.json()["slug"] == "jaqueta-jeans-2"

    resp = await client.post(f"{API}/admin/products", json={**payload, "slug": "jaqueta-jeans"}, headers=headers)
    assert resp.status_code == 409

    resp = await client.patch(
        f"{API}/admin/products/{product['id']}",
        json={"promotional_price": 250.0, "is_promotion_active": True},
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["is_promotion_active"] is True

    resp = await client.patch(
        f"{API}/admin/products/{product['id']}", json={"promotional_price": 400.0}, headers=headers
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_create_product_validation(client: AsyncClient, admin_token: str):
    resp = await client.post(
        f"{API}/admin/products",
        json={"name": "Promo sem preço", "price": 10.0, "is_promotion_active": True},
        headers=auth(admin_token),
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_price_change_keeps_cart_price(client: AsyncClient, admin_token: str, user_token: str, make_product):
    product = make_product(name="Relógio", price=100.0)
    headers = auth(user_token)
    await client.post(f"{API}/cart/items", json={"product_id": str(product.id), "quantity": 1}, headers=headers)

    resp = await client.patch(f"{API}/admin/products/{product.id}", json={"price": 150.0}, headers=auth(admin_token))
    assert resp.status_code == 200

    resp = await client.post(f"{API}/cart/items", json={"product_id": str(product.id), "quantity": 1}, headers=headers)
    line = resp.json()["items"][0]
    assert (line["unit_price"], line["line_total"]) == (100.0, 200.0)


@pytest.mark.asyncio
async def test_non_admin_cannot_manage_products(client: AsyncClient, user_token: str):
    resp = await client.post(
        f"{API}/admin/products", json={"name": "X", "price": 1.0}, headers=auth(user_token)
    )
    assert resp.status_code == 403
    resp = await client.post(f"{API}/admin/products", json={"name": "X", "price": 1.0})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_admin_lists_and_reads_inactive_products(client: AsyncClient, admin_token: str, make_product):
    headers = auth(admin_token)
    make_product(name="Bolsa Ativa")
    hidden = make_product(name="Bolsa Inativa", active=False)

    resp = await client.get(f"{API}/admin/products", params={"search": "bolsa"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["total"] == 2

    resp = await client.get(f"{API}/admin/products", params={"search": "bolsa", "active": False}, headers=headers)
    assert [item["id"] for item in resp.json()["items"]] == [str(hidden.id)]

    resp = await client.get(f"{API}/admin/products/{hidden.id}", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["active"] is False
    assert (await client.get(f"{API}/admin/products/{uuid.uuid4()}", headers=headers)).status_code == 404


@pytest.mark.asyncio
async def test_admin_delete_deactivates_product(client: AsyncClient, admin_token: str, user_token: str, make_product):
    product = make_product(name="Tenis Antigo")

    resp = await client.delete(f"{API}/admin/products/{product.id}", headers=auth(user_token))
    assert resp.status_code == 403

    resp = await client.delete(f"{API}/admin/products/{product.id}", headers=auth(admin_token))
    assert resp.status_code == 204

    assert (await client.get(f"{API}/products/{product.id}")).status_code == 404
    resp = await client.post(f"{API}/cart/items", json={"product_id": str(product.id), "quantity": 1})
    assert resp.status_code == 404

    # la baja es lógica: el admin todavía lo ve y puede reactivarlo
    resp = await client.patch(f"{API}/admin/products/{product.id}", json={"active": True}, headers=auth(admin_token))
    assert resp.status_code == 200
    assert (await client.get(f"{API}/products/{product.id}")).status_code == 200
