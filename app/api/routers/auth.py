from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.security import OAuth2PasswordRequestForm
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_cart_service, get_current_active_user, guest_cart_id_from, oauth2_scheme
from app.core.config import settings
from app.core.logging import get_logger, security_alert
from app.core.metrics import record_login_attempt
from app.core.rate_limiter import client_ip, rate_limit
from app.core.security import (
    create_access_token,
    create_refresh_token,
    decode_access_token,
    decode_refresh_token,
)
from app.core.token_blacklist import is_token_revoked, revoke_token
from app.db.operations import commit_async, rollback_async
from app.db.session_async import get_async_db
from app.models.user import User
from app.schemas.auth import LogoutRequest, RefreshRequest, TokenPair, TokenRefresh
from app.schemas.cart import CartRead
from app.schemas.user import UserCreate, UserRead
from app.services.cart_service import CartService
from app.services.user_service import authenticate, create_user, mark_login

router = APIRouter(prefix="/auth", tags=["auth"])

auth_logger = get_logger("app.auth")


def _get_user_scopes(user: User) -> list[str]:
    """Centraliza la lógica de asignación de scopes según el rol del usuario."""
    user_scopes = ["users:me", "cart:write", "orders:read", "orders:write"]
    if user.is_superuser:
        user_scopes.append("admin")
    return user_scopes


@router.post(
    "/register",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[
        Depends(
            rate_limit(
                limit=settings.RATE_LIMIT_REGISTRATION_PER_MINUTE,
                period_seconds=settings.RATE_LIMIT_REGISTRATION_WINDOW_SECONDS,
                scope="auth:register",
            )
        )
    ],
)
async def register(
    data: UserCreate,
    db: AsyncSession = Depends(get_async_db),
):
    try:
        user = await create_user(db, data)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    auth_logger.info("User registered", extra={"user_id": str(user.id)})
    return user


@router.post(
    "/login",
    response_model=TokenPair,
    dependencies=[
        Depends(
            rate_limit(
                limit=settings.RATE_LIMIT_LOGIN_PER_MINUTE,
                period_seconds=settings.RATE_LIMIT_LOGIN_WINDOW_SECONDS,
                scope="auth:login",
            )
        )
    ],
)
async def login(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_async_db),
    cart_service: CartService = Depends(get_cart_service),
):
    user = await authenticate(db, form_data.username, form_data.password)
    if not user or not user.is_active:
        record_login_attempt("failure")
        security_alert(
            "Failed login attempt",
            email=form_data.username,
            client_ip=client_ip(request),
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Incorrect email or password",
        )

    record_login_attempt("success")
    user_scopes = _get_user_scopes(user)
    access = create_access_token(subject=user.id, extra={"scopes": user_scopes})
    refresh = create_refresh_token(subject=user.id, extra={"scopes": user_scopes})

    await mark_login(db, user)
    await commit_async(db)

    # Si el cliente venía comprando como invitado, su carrito pasa al usuario
    cart = None
    guest_cart_id = guest_cart_id_from(request)
    if guest_cart_id:
        try:
            result = await cart_service.merge_guest_cart(user.id, guest_cart_id)
        except Exception:
            await rollback_async(db)
            raise
        cart = CartRead.from_result(result)

    auth_logger.info(
        "User authenticated",
        extra={
            "user_id": str(user.id),
            "client_ip": client_ip(request),
            "guest_cart_merged": bool(guest_cart_id),
        },
    )

    return {
        "access_token": access,
        "refresh_token": refresh,
        "token_type": "bearer",
        "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        "user": UserRead.model_validate(user),
        "cart": cart,
    }


@router.post("/refresh", response_model=TokenRefresh)
async def refresh_token(payload: RefreshRequest):
    try:
        data = decode_refresh_token(payload.refresh_token)
        user_id = data["sub"]
        token_scopes = data.get("scopes", []) or []
        if await is_token_revoked(data):
            raise JWTError("Refresh token revoked")
    except (JWTError, KeyError) as exc:
        security_alert("Refresh token validation failed", reason=str(exc))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
        ) from exc

    new_access = create_access_token(subject=user_id, extra={"scopes": token_scopes})
    return {
        "access_token": new_access,
        "token_type": "bearer",
        "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    }


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    payload: LogoutRequest | None = None,
    token: str = Depends(oauth2_scheme),
    current_user: User = Depends(get_current_active_user),
):
    refresh_claims = None
    if payload is not None and payload.refresh_token:
        try:
            refresh_claims = decode_refresh_token(payload.refresh_token)
        except JWTError as exc:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid refresh token",
            ) from exc
        if refresh_claims.get("sub") != str(current_user.id):
            security_alert("Logout with another user's refresh token", user_id=str(current_user.id))
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid refresh token",
            )

    # get_current_active_user ya validó la firma del access token
    await revoke_token(decode_access_token(token))
    if refresh_claims is not None:
        await revoke_token(refresh_claims)

    auth_logger.info("User logged out", extra={"user_id": str(current_user.id)})
    return Response(status_code=status.HTTP_204_NO_CONTENT)
