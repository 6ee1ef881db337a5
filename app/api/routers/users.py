from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_active_user
from app.db.operations import commit_async
from app.db.session_async import get_async_db
from app.models.user import User as UserModel
from app.schemas.user import AddressCreate, AddressRead, AddressUpdate, PasswordChange, UserRead, UserUpdate
from app.services import user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserRead)
async def read_me(current_user: UserModel = Depends(get_current_active_user)):
    return current_user


@router.put("/me", response_model=UserRead)
async def update_me(
    payload: UserUpdate,
    db: AsyncSession = Depends(get_async_db),
    current_user: UserModel = Depends(get_current_active_user),
):
    user = await user_service.update_user(db, current_user, payload)
    await commit_async(db)
    return user


@router.post("/me/password", status_code=status.HTTP_204_NO_CONTENT)
async def change_my_password(
    payload: PasswordChange,
    db: AsyncSession = Depends(get_async_db),
    current_user: UserModel = Depends(get_current_active_user),
):
    await user_service.change_password(db, current_user, payload)
    await commit_async(db)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me/addresses", response_model=list[AddressRead])
async def list_my_addresses(
    db: AsyncSession = Depends(get_async_db),
    current_user: UserModel = Depends(get_current_active_user),
):
    return await user_service.list_addresses(db, current_user.id)


@router.post("/me/addresses", response_model=AddressRead, status_code=status.HTTP_201_CREATED)
async def add_my_address(
    payload: AddressCreate,
    db: AsyncSession = Depends(get_async_db),
    current_user: UserModel = Depends(get_current_active_user),
):
    address = await user_service.add_address(db, current_user.id, payload)
    await commit_async(db)
    return address


@router.get("/me/addresses/{address_id}", response_model=AddressRead)
async def read_my_address(
    address_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_db),
    current_user: UserModel = Depends(get_current_active_user),
):
    return await user_service.get_address(db, current_user.id, address_id)


@router.patch("/me/addresses/{address_id}", response_model=AddressRead)
async def update_my_address(
    address_id: uuid.UUID,
    payload: AddressUpdate,
    db: AsyncSession = Depends(get_async_db),
    current_user: UserModel = Depends(get_current_active_user),
):
    address = await user_service.update_address(db, current_user.id, address_id, payload)
    await commit_async(db)
    return address


@router.delete("/me/addresses/{address_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_my_address(
    address_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_db),
    current_user: UserModel = Depends(get_current_active_user),
):
    await user_service.delete_address(db, current_user.id, address_id)
    await commit_async(db)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
