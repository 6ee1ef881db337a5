# app/api/deps.py
import uuid

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import OAuth2PasswordBearer, SecurityScopes
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.security import decode_access_token
from app.core.token_blacklist import is_token_revoked
from app.db.session_async import get_async_db
from app.domain.cart import CartOwner
from app.models.user import User
from app.schemas.user import TokenPayload
from app.services.cart_service import CartService
from app.services.cart_store import build_cart_service


OAUTH_SCOPES = {
    "admin": "Acceso total de administrador.",
    "users:me": "Acceso al perfil del propio usuario.",
    "cart:write": "Permiso para gestionar el carrito y fusionar carritos invitados.",
    "orders:read": "Permiso para leer los pedidos propios.",
    "orders:write": "Permiso para hacer checkout.",
}

MAX_GUEST_CART_ID_LENGTH = 64


oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_STR}/auth/login",
    scopes=OAUTH_SCOPES,
)

oauth2_scheme_optional = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_STR}/auth/login",
    scopes=OAUTH_SCOPES,
    auto_error=False,
)


async def _decode_token(token: str) -> tuple[TokenPayload, list[str]]:
    payload = decode_access_token(token)
    if await is_token_revoked(payload):
        raise JWTError("Token revoked")
    token_data = TokenPayload(**payload)
    token_scopes: list[str] = payload.get("scopes", []) or []
    return token_data, token_scopes


async def _get_user_by_id(db: AsyncSession, user_id: str | None) -> User | None:
    if not user_id:
        return None
    try:
        user_uuid = uuid.UUID(str(user_id))
    except ValueError:
        return None
    return await db.get(User, user_uuid)


async def get_current_user(
    security_scopes: SecurityScopes,
    db: AsyncSession = Depends(get_async_db),
    token: str = Depends(oauth2_scheme),
) -> User:
    cred_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": f'Bearer scope="{security_scopes.scope_str}"'},
    )

    try:
        token_data, token_scopes = await _decode_token(token)
    except JWTError:
        raise cred_exc

    if token_data.sub is None:
        raise cred_exc

    user = await _get_user_by_id(db, token_data.sub)
    if user is None:
        raise cred_exc

    if security_scopes.scopes:
        if "admin" not in token_scopes:
            for scope in security_scopes.scopes:
                if scope not in token_scopes:
                    raise HTTPException(
                        status_code=status.HTTP_403_FORBIDDEN,
                        detail="Not enough permissions",
                        headers={"WWW-Authenticate": f'Bearer scope="{security_scopes.scope_str}"'},
                    )
    return user


async def get_optional_user(
    db: AsyncSession = Depends(get_async_db),
    token: str | None = Depends(oauth2_scheme_optional),
) -> User | None:
    if not token:
        return None

    try:
        token_data, _ = await _decode_token(token)
    except JWTError:
        return None

    if token_data.sub is None:
        return None

    user = await _get_user_by_id(db, token_data.sub)
    if user is None or not user.is_active:
        return None
    return user


def get_current_active_user(
    current_user: User = Security(get_current_user, scopes=["users:me"])
) -> User:
    if not current_user.is_active:
        raise HTTPException(status_code=400, detail="Inactive user")
    return current_user


def get_current_shopper(
    current_user: User = Security(get_current_user, scopes=["cart:write"])
) -> User:
    if not current_user.is_active:
        raise HTTPException(status_code=400, detail="Inactive user")
    return current_user


def get_current_admin(
    current_user: User = Security(get_current_user, scopes=["admin"])
) -> User:
    if not current_user.is_active:
        raise HTTPException(status_code=400, detail="Inactive user")
    if not current_user.is_superuser:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin only")
    return current_user


def guest_cart_id_from(request: Request) -> str | None:
    raw = request.headers.get(settings.CART_GUEST_HEADER)
    if raw is None or not raw.strip():
        return None
    guest_cart_id = raw.strip()
    if len(guest_cart_id) > MAX_GUEST_CART_ID_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"{settings.CART_GUEST_HEADER} is too long",
        )
    return guest_cart_id


async def get_cart_owner(
    request: Request,
    current_user: User | None = Depends(get_optional_user),
) -> CartOwner:
    """Token válido -> carrito del usuario; si no, el header de invitado; si no, anónimo."""
    if current_user is not None:
        return CartOwner(user_id=current_user.id)
    return CartOwner(guest_cart_id=guest_cart_id_from(request))


def get_cart_service(db: AsyncSession = Depends(get_async_db)) -> CartService:
    return build_cart_service(db)
