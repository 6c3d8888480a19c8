# routers/auth.py — Login, logout and session introspection
from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from auth import (
    AuthService, CurrentUser, get_optional_user,
    SESSION_COOKIE_NAME, SESSION_COOKIE_SECURE, SESSION_TTL_HOURS,
)
from database import get_db_session
from schemas import LoginRequest, UserOut

router = APIRouter(prefix="/api", tags=["Authentication"])


@router.post("/login")
async def login(
    credentials: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
):
    """Verify credentials and start a session (HttpOnly cookie)"""
    user = await AuthService.authenticate_user(credentials.username, credentials.password, db)
    token, _ = AuthService.create_session_token(user)
    response.set_cookie(
        SESSION_COOKIE_NAME,
        token,
        max_age=SESSION_TTL_HOURS * 3600,
        httponly=True,
        samesite="lax",
        secure=SESSION_COOKIE_SECURE,
    )
    return {"success": True, "user": UserOut(id=user.id, username=user.username)}


@router.post("/logout")
async def logout(
    response: Response,
    user: Optional[CurrentUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db_session),
):
    """End the current session; succeeds without one too"""
    if user:
        await AuthService.revoke_session(user, db)
    response.delete_cookie(SESSION_COOKIE_NAME)
    return {"success": True}


@router.get("/me")
async def me(user: Optional[CurrentUser] = Depends(get_optional_user)):
    return {"user": user.public() if user else None}
