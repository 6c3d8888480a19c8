# auth.py — Credential verification and session store for the board
# Features:
# - bcrypt password hashes
# - Signed session tokens (JWT with JTI) in an HttpOnly cookie, 24h TTL
# - Bearer header accepted for API clients
# - Logout revocation list
# - Brute force protection

import os
import uuid
import secrets
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, Tuple
from collections import defaultdict

import bcrypt
from jose import jwt, JWTError, ExpiredSignatureError
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db_session
from errors import Unauthorized, InvalidCredentials, TooManyAttempts
from models import User, RevokedSession

logger = logging.getLogger("tasktracker.auth")

# ============================================================
# CONFIGURATION
# ============================================================

SESSION_SECRET = os.getenv("SESSION_SECRET", "")
if not SESSION_SECRET or SESSION_SECRET == "tasktracker-secret-change-this":
    SESSION_SECRET = secrets.token_urlsafe(64)
    logger.warning(
        "SESSION_SECRET not set or insecure. Generated ephemeral key; "
        "sessions will not survive a restart."
    )

ALGORITHM = "HS256"
SESSION_TTL_HOURS = int(os.getenv("SESSION_TTL_HOURS", "24"))
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "tasktracker_session")
SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "false").lower() == "true"
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))
MAX_LOGIN_ATTEMPTS = 5
LOGIN_LOCKOUT_MINUTES = 15

bearer = HTTPBearer(auto_error=False)

# In-memory brute force tracker, per process
_login_attempts: Dict[str, list] = defaultdict(list)


# ============================================================
# SCHEMAS
# ============================================================

class CurrentUser(BaseModel):
    id: int
    username: str
    session_id: str
    expires_at: datetime

    def public(self) -> Dict[str, Any]:
        return {"id": self.id, "username": self.username}


# ============================================================
# AUTH SERVICE
# ============================================================

class AuthService:
    """Password checks, session tokens and revocation"""

    @staticmethod
    def hash_password(password: str) -> str:
        salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    @staticmethod
    def verify_password(password: str, password_hash: str) -> bool:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))

    @staticmethod
    def create_session_token(user: User, ttl: Optional[timedelta] = None) -> Tuple[str, datetime]:
        now = datetime.now(timezone.utc)
        expires_at = now + (ttl or timedelta(hours=SESSION_TTL_HOURS))
        payload = {
            "sub": str(user.id),
            "username": user.username,
            "type": "session",
            "iat": now,
            "exp": expires_at,
            "jti": str(uuid.uuid4()),
        }
        return jwt.encode(payload, SESSION_SECRET, algorithm=ALGORITHM), expires_at

    @staticmethod
    def decode_session_token(token: str) -> Dict[str, Any]:
        try:
            payload = jwt.decode(token, SESSION_SECRET, algorithms=[ALGORITHM])
        except ExpiredSignatureError:
            raise Unauthorized("Session expired")
        except JWTError:
            raise Unauthorized("Invalid session")
        if payload.get("type") != "session" or not payload.get("sub") or not payload.get("jti"):
            raise Unauthorized("Invalid session")
        return payload

    @staticmethod
    def _check_brute_force(username: str) -> None:
        """Check if login attempts exceed threshold"""
        now = datetime.now(timezone.utc)
        cutoff = now - timedelta(minutes=LOGIN_LOCKOUT_MINUTES)
        _login_attempts[username] = [t for t in _login_attempts[username] if t > cutoff]
        if len(_login_attempts[username]) >= MAX_LOGIN_ATTEMPTS:
            raise TooManyAttempts(f"Too many login attempts. Try again in {LOGIN_LOCKOUT_MINUTES} minutes.")

    @staticmethod
    def _record_failed_attempt(username: str) -> None:
        _login_attempts[username].append(datetime.now(timezone.utc))

    @staticmethod
    def _clear_attempts(username: str) -> None:
        _login_attempts.pop(username, None)

    @staticmethod
    async def authenticate_user(username: str, password: str, db: AsyncSession) -> User:
        AuthService._check_brute_force(username)

        result = await db.execute(select(User).where(User.username == username))
        user = result.scalar_one_or_none()

        if not user or not AuthService.verify_password(password, user.password_hash):
            AuthService._record_failed_attempt(username)
            logger.info(f"Failed login for '{username}'")
            raise InvalidCredentials("Invalid credentials")

        AuthService._clear_attempts(username)
        return user

    @staticmethod
    async def is_session_revoked(jti: str, db: AsyncSession) -> bool:
        result = await db.execute(select(RevokedSession.id).where(RevokedSession.jti == jti))
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def revoke_session(user: "CurrentUser", db: AsyncSession) -> None:
        db.add(RevokedSession(jti=user.session_id, user_id=user.id, expires_at=user.expires_at))
        await db.commit()
        logger.info(f"Session revoked for '{user.username}'")

    @staticmethod
    async def resolve_session(token: str, db: AsyncSession) -> CurrentUser:
        """Map a session token to the authenticated identity"""
        payload = AuthService.decode_session_token(token)

        if await AuthService.is_session_revoked(payload["jti"], db):
            raise Unauthorized("Session has been revoked")

        try:
            user_id = int(payload["sub"])
        except (TypeError, ValueError):
            raise Unauthorized("Invalid session")

        result = await db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if not user:
            raise Unauthorized("User not found")

        return CurrentUser(
            id=user.id,
            username=user.username,
            session_id=payload["jti"],
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )


# ============================================================
# FASTAPI DEPENDENCIES
# ============================================================

def extract_session_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    """Session cookie first, then an Authorization: Bearer header"""
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if token:
        return token
    if credentials is not None and credentials.scheme.lower() == "bearer":
        return credentials.credentials
    return None


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    db: AsyncSession = Depends(get_db_session),
) -> Optional[CurrentUser]:
    token = extract_session_token(request, credentials)
    if not token:
        return None
    try:
        return await AuthService.resolve_session(token, db)
    except Unauthorized:
        return None


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    db: AsyncSession = Depends(get_db_session),
) -> CurrentUser:
    token = extract_session_token(request, credentials)
    if not token:
        raise Unauthorized("Unauthorized")
    return await AuthService.resolve_session(token, db)
