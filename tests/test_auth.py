import uuid

import pytest
from httpx import AsyncClient

from conftest import API, auth, login


@pytest.mark.asyncio
async def test_register_login_and_me(client: AsyncClient):
    email = f"Nova-{uuid.uuid4().hex[:6]}@Example.com"
    resp = await client.post(
        f"{API}/auth/register",
        json={"email": email, "password": "Senha1234", "full_name": "Nova Cliente", "cpf": "123.456.789-09"},
    )
    assert resp.status_code == 201, resp.text
    assert resp.json()["email"] == email.lower()
    assert resp.json()["is_superuser"] is False

    resp = await login(client, email, "Senha1234")
    assert resp.status_code == 200, resp.text
    tokens = resp.json()
    assert tokens["token_type"] == "bearer"
    assert tokens["user"]["email"] == email.lower()

    resp = await client.get(f"{API}/users/me", headers=auth(tokens["access_token"]))
    assert resp.status_code == 200
    assert resp.json()["full_name"] == "Nova Cliente"

    resp = await client.put(f"{API}/users/me", json={"phone": "11988887777"}, headers=auth(tokens["access_token"]))
    assert resp.status_code == 200
    assert resp.json()["phone"] == "11988887777"


@pytest.mark.asyncio
async def test_register_duplicate_email_conflict(client: AsyncClient, normal_user):
    resp = await client.post(f"{API}/auth/register", json={"email": normal_user.email, "password": "Senha1234"})
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_register_short_password(client: AsyncClient):
    resp = await client.post(f"{API}/auth/register", json={"email": "curta@example.com", "password": "123"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, normal_user):
    resp = await login(client, normal_user.email, "wrong-password")
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_refresh_token(client: AsyncClient, normal_user):
    tokens = (await login(client, normal_user.email, "User1234")).json()

    resp = await client.post(f"{API}/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert resp.status_code == 200, resp.text
    access = resp.json()["access_token"]
    assert (await client.get(f"{API}/users/me", headers=auth(access))).status_code == 200

    resp = await client.post(f"{API}/auth/refresh", json={"refresh_token": tokens["access_token"]})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_me_requires_token(client: AsyncClient):
    assert (await client.get(f"{API}/users/me")).status_code == 401
    resp = await client.get(f"{API}/users/me", headers=auth("not-a-token"))
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_address_book(client: AsyncClient, user_token: str):
    headers = auth(user_token)
    resp = await client.post(
        f"{API}/users/me/addresses",
        json={
            "recipient_name": "Maria Silva",
            "street": "Av. Paulista",
            "number": "1000",
            "neighborhood": "Bela Vista",
            "city": "São Paulo",
            "state": "sp",
            "cep": "01310-100",
        },
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    address = resp.json()
    assert address["state"] == "SP"

    resp = await client.get(f"{API}/users/me/addresses", headers=headers)
    assert [item["id"] for item in resp.json()] == [address["id"]]

    resp = await client.delete(f"{API}/users/me/addresses/{address['id']}", headers=headers)
    assert resp.status_code == 204
    resp = await client.delete(f"{API}/users/me/addresses/{address['id']}", headers=headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_invalid_cep_is_rejected(client: AsyncClient, user_token: str):
    resp = await client.post(
        f"{API}/users/me/addresses",
        json={
            "recipient_name": "X",
            "street": "Rua",
            "number": "1",
            "neighborhood": "Centro",
            "city": "Rio",
            "state": "RJ",
            "cep": "ABC",
        },
        headers=auth(user_token),
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_logout_revokes_access_and_refresh_tokens(client: AsyncClient, normal_user):
    tokens = (await login(client, normal_user.email, "User1234")).json()
    headers = auth(tokens["access_token"])

    resp = await client.post(f"{API}/auth/logout", json={"refresh_token": tokens["refresh_token"]}, headers=headers)
    assert resp.status_code == 204

    assert (await client.get(f"{API}/users/me", headers=headers)).status_code == 401
    resp = await client.post(f"{API}/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert resp.status_code == 401

    # una sesión nueva no se ve afectada
    fresh = (await login(client, normal_user.email, "User1234")).json()
    assert (await client.get(f"{API}/users/me", headers=auth(fresh["access_token"]))).status_code == 200


@pytest.mark.asyncio
async def test_logout_rejects_foreign_refresh_token(client: AsyncClient, normal_user, admin_user):
    user_tokens = (await login(client, normal_user.email, "User1234")).json()
    admin_tokens = (await login(client, admin_user.email, "Admin1234")).json()

    resp = await client.post(
        f"{API}/auth/logout",
        json={"refresh_token": admin_tokens["refresh_token"]},
        headers=auth(user_tokens["access_token"]),
    )
    assert resp.status_code == 401
    resp = await client.post(f"{API}/auth/refresh", json={"refresh_token": admin_tokens["refresh_token"]})
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_change_password(client: AsyncClient, normal_user, user_token: str):
    headers = auth(user_token)
    resp = await client.post(
        f"{API}/users/me/password",
        json={"current_password": "wrong-one", "new_password": "Nova12345"},
        headers=headers,
    )
    assert resp.status_code == 400

    resp = await client.post(
        f"{API}/users/me/password",
        json={"current_password": "User1234", "new_password": "curta"},
        headers=headers,
    )
    assert resp.status_code == 422

    resp = await client.post(
        f"{API}/users/me/password",
        json={"current_password": "User1234", "new_password": "Nova12345"},
        headers=headers,
    )
    assert resp.status_code == 204

    assert (await login(client, normal_user.email, "User1234")).status_code == 400
    assert (await login(client, normal_user.email, "Nova12345")).status_code == 200


@pytest.mark.asyncio
async def test_address_detail_and_update(client: AsyncClient, user_token: str, admin_token: str, user_address):
    headers = auth(user_token)
    url = f"{API}/users/me/addresses/{user_address.id}"

    resp = await client.get(url, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["street"] == "Rua das Flores"

    resp = await client.patch(url, json={"number": "456", "state": "rj", "complement": "Apto 12"}, headers=headers)
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert (body["number"], body["state"], body["complement"]) == ("456", "RJ", "Apto 12")
    assert body["city"] == "São Paulo"

    resp = await client.patch(url, json={"complement": None}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["complement"] is None

    resp = await client.patch(url, json={"street": None}, headers=headers)
    assert resp.status_code == 422

    # la dirección de otro usuario se reporta como inexistente
    assert (await client.get(url, headers=auth(admin_token))).status_code == 404
    resp = await client.patch(url, json={"number": "1"}, headers=auth(admin_token))
    assert resp.status_code == 404
