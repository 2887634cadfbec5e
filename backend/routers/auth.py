# routers/auth.py — Authentication endpoints with token revocation
import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import (
    AuthService, UserRegister, UserLogin, TokenResponse, RefreshRequest,
    get_current_user, CurrentUser, enabled_providers, BASE_URL,
    ACCESS_TOKEN_EXPIRE_MINUTES, REFRESH_TOKEN_EXPIRE_DAYS,
)
from database import get_db_session
from models import User, AuditLog, AuditEventType

router = APIRouter(prefix="/api/auth", tags=["Authentication"])
logger = logging.getLogger("plainboard.auth")


def _build_token_response(user_obj: User) -> TokenResponse:
    """Build token response from a user ORM instance"""
    token_data = {"sub": user_obj.id, "email": user_obj.email}
    return TokenResponse(
        access_token=AuthService.create_access_token(token_data),
        refresh_token=AuthService.create_refresh_token(token_data),
        expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user={
            "id": user_obj.id,
            "email": user_obj.email,
            "name": user_obj.name or "",
            "image": user_obj.image,
            "email_verified": bool(user_obj.email_verified),
        },
    )


@router.post("/register", response_model=TokenResponse)
async def register(
    user_data: UserRegister,
    db: AsyncSession = Depends(get_db_session),
):
    """Register a new user with email and password"""
    user = await AuthService.register_user(user_data, db)
    return _build_token_response(user)


@router.post("/login", response_model=TokenResponse)
async def login(
    credentials: UserLogin,
    request: Request,
    db: AsyncSession = Depends(get_db_session),
):
    """Authenticate and receive tokens"""
    user = await AuthService.authenticate_user(
        credentials.email, credentials.password, db, request
    )
    if not user:
        logger.warning(f"Failed login for {credentials.email}")
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return _build_token_response(user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(
    refresh_req: RefreshRequest,
    db: AsyncSession = Depends(get_db_session),
):
    """Exchange a refresh token for a new token pair"""
    payload = AuthService.verify_token(refresh_req.refresh_token)

    if payload.get("type") != "refresh":
        raise HTTPException(status_code=401, detail="Invalid token type. Expected refresh token.")

    jti = payload.get("jti")
    if jti and await AuthService.is_token_revoked(jti, db):
        raise HTTPException(status_code=401, detail="Refresh token has been revoked")

    result = await db.execute(select(User).where(User.id == payload.get("sub")))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    # Single use: the presented refresh token cannot be replayed
    if jti:
        exp = payload.get("exp")
        expires_at = (
            datetime.fromtimestamp(exp, tz=timezone.utc) if exp
            else datetime.now(timezone.utc) + timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS)
        )
        await AuthService.revoke_token(jti, user.id, expires_at, db)

    return _build_token_response(user)


@router.post("/logout")
async def logout(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Revoke the access token used for this request"""
    db.add(AuditLog(
        event_type=AuditEventType.USER_LOGOUT,
        user_id=user.id,
        resource_type="user",
        resource_id=user.id,
    ))
    if user.token_jti:
        expires_at = user.token_expires_at or (
            datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
        )
        await AuthService.revoke_token(user.token_jti, user.id, expires_at, db)
    else:
        await db.commit()

    logger.info(f"User {user.id} logged out")
    return {"status": "logged_out", "message": "Session terminated"}


@router.get("/session")
async def get_session(user: CurrentUser = Depends(get_current_user)):
    """The authenticated user behind the presented token"""
    return {
        "user": {"id": user.id, "email": user.email, "name": user.name},
        "expires_at": user.token_expires_at.isoformat() if user.token_expires_at else None,
    }


@router.get("/providers")
async def list_providers():
    """Sign-in methods enabled on this deployment"""
    return {"base_url": BASE_URL, "providers": enabled_providers()}
