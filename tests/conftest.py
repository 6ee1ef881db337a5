# tests/conftest.py
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import os
import uuid
from typing import Callable, Generator

import pytest
import pytest_asyncio
import httpx
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.ext.asyncio import AsyncSession

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-the-suite")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("ASYNC_DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from app.main import app
from app.db.session import Base
from app.db.session_async import AsyncSessionLocal
from app.core.rate_limiter import get_rate_limiter
from app.core.token_blacklist import get_token_blacklist
from app.core.security import get_password_hash
from app.domain.enums import CouponType
from app.models.coupon import Coupon
from app.models.order import PaymentMethod
from app.models.product import Product
from app.models.user import Address, User

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

sync_engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=sync_engine)

API = "/api/v1"


# ---------- Fixtures ----------
@pytest.fixture(scope="session", autouse=True)
def setup_database():
    """Crea las tablas en SQLite solo una vez por sesión de tests."""
    import app.models.user      # noqa: F401
    import app.models.product   # noqa: F401
    import app.models.coupon    # noqa: F401
    import app.models.cart      # noqa: F401
    import app.models.order     # noqa: F401

    Base.metadata.create_all(bind=sync_engine)
    yield
    Base.metadata.drop_all(bind=sync_engine)


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    with sync_engine.begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(table.delete())


@pytest.fixture(autouse=True)
def reset_in_memory_stores():
    yield
    get_rate_limiter().reset()
    get_token_blacklist().reset()


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Provee una sesión corta para preparar datos."""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest_asyncio.fixture(scope="function")
async def client():
    """Provee un AsyncClient enlazado a la app sin overrides adicionales."""
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def async_db_session() -> AsyncSession:
    """Provee una AsyncSession para pruebas asíncronas directas."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.rollback()


# --- Usuarios ---

def _make_user(db_session: Session, prefix: str, password: str, *, is_superuser: bool = False) -> User:
    user = User(
        email=f"{prefix}-{uuid.uuid4().hex[:8]}@example.com",
        full_name=f"Test {prefix.title()}",
        hashed_password=get_password_hash(password),
        is_superuser=is_superuser,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture(scope="function")
def admin_user(db_session: Session) -> User:
    return _make_user(db_session, "admin", "Admin1234", is_superuser=True)


@pytest.fixture(scope="function")
def normal_user(db_session: Session) -> User:
    return _make_user(db_session, "user", "User1234")


# --- Tokens ---

async def login(client: httpx.AsyncClient, email: str, password: str, headers: dict | None = None) -> httpx.Response:
    return await client.post(
        f"{API}/auth/login",
        data={"username": email, "password": password},
        headers={"Content-Type": "application/x-www-form-urlencoded", **(headers or {})},
    )


@pytest_asyncio.fixture(scope="function")
async def admin_token(client: httpx.AsyncClient, admin_user: User) -> str:
    resp = await login(client, admin_user.email, "Admin1234")
    assert resp.status_code == 200, resp.text
    return resp.json()["access_token"]


@pytest_asyncio.fixture(scope="function")
async def user_token(client: httpx.AsyncClient, normal_user: User) -> str:
    resp = await login(client, normal_user.email, "User1234")
    assert resp.status_code == 200, resp.text
    return resp.json()["access_token"]


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# --- Catálogo, cupones, pagos ---

@pytest.fixture(scope="function")
def make_product(db_session: Session) -> Callable[..., Product]:
    def _make(
        name: str = "Produto",
        price: float = 100.0,
        stock_quantity: int = 10,
        promotional_price: float | None = None,
        is_promotion_active: bool = False,
        active: bool = True,
    ) -> Product:
        product = Product(
            name=name,
            slug=f"{name.lower().replace(' ', '-')}-{uuid.uuid4().hex[:6]}",
            price=price,
            promotional_price=promotional_price,
            is_promotion_active=is_promotion_active,
            stock_quantity=stock_quantity,
            active=active,
        )
        db_session.add(product)
        db_session.commit()
        db_session.refresh(product)
        return product

    return _make


@pytest.fixture(scope="function")
def make_coupon(db_session: Session) -> Callable[..., Coupon]:
    def _make(
        code: str = "SAVE10",
        type: CouponType = CouponType.percentage,
        value: float = 10,
        min_purchase_value: float = 0,
        is_active: bool = True,
        expires_at=None,
        description: str | None = None,
    ) -> Coupon:
        coupon = Coupon(
            code=code,
            type=type,
            value=value,
            min_purchase_value=min_purchase_value,
            is_active=is_active,
            expires_at=expires_at,
            description=description,
        )
        db_session.add(coupon)
        db_session.commit()
        db_session.refresh(coupon)
        return coupon

    return _make


@pytest.fixture(scope="function")
def pix_method(db_session: Session) -> PaymentMethod:
    method = PaymentMethod(identifier="pix", name="PIX", is_enabled=True)
    db_session.add(method)
    db_session.commit()
    db_session.refresh(method)
    return method


@pytest.fixture(scope="function")
def user_address(db_session: Session, normal_user: User) -> Address:
    address = Address(
        user_id=normal_user.id,
        recipient_name="Maria Silva",
        street="Rua das Flores",
        number="123",
        neighborhood="Centro",
        city="São Paulo",
        state="SP",
        cep="01001-000",
        phone="11999990000",
    )
    db_session.add(address)
    db_session.commit()
    db_session.refresh(address)
    return address
