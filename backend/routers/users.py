# routers/users.py — The signed-in user's own profile
from typing import Optional, List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user, CurrentUser, CREDENTIAL_PROVIDER
from database import get_db_session
from models import User, Account
from schemas import ProfileOut, profile_out

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None


class AccountInfo(BaseModel):
    has_password: bool
    providers: List[str]


async def _get_user(db: AsyncSession, user_id: str) -> User:
    user = (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("/me", response_model=ProfileOut)
async def get_profile(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    return profile_out(await _get_user(db, user.id))


@router.patch("/me", response_model=ProfileOut)
async def update_profile(
    data: ProfileUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Update name and/or email; a new email must be verified again"""
    user_obj = await _get_user(db, user.id)

    if data.email is not None and data.email != user_obj.email:
        taken = await db.execute(select(User.id).where(User.email == data.email))
        if taken.scalar_one_or_none():
            raise HTTPException(status_code=409, detail="Email is already in use")
        user_obj.email = data.email
        user_obj.email_verified = False

    if data.name is not None:
        user_obj.name = data.name

    await db.commit()
    await db.refresh(user_obj)
    return profile_out(user_obj)


@router.get("/me/accounts", response_model=AccountInfo)
async def get_account_info(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Linked sign-in methods, e.g. whether a password is set"""
    result = await db.execute(select(Account.provider_id).where(Account.user_id == user.id))
    providers = list(result.scalars().all())
    return AccountInfo(has_password=CREDENTIAL_PROVIDER in providers, providers=providers)
