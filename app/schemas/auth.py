# app/schemas/auth.py
from pydantic import BaseModel, Field

from app.schemas.cart import CartRead
from app.schemas.user import UserRead


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = Field(default="bearer")
    expires_in: int
    user: UserRead
    # Presente cuando el login fusionó un carrito invitado
    cart: CartRead | None = None


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenRefresh(BaseModel):
    access_token: str
    token_type: str = Field(default="bearer")
    expires_in: int


class LogoutRequest(BaseModel):
    # Si se envía, el refresh token también queda revocado
    refresh_token: str | None = None
