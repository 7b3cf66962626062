import logging
import uuid
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError, VerificationError, InvalidHashError
from jose import jwt, JWTError
from fastapi import Request, HTTPException, Depends, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .config import JWT_SECRET, COOKIE_SECURE, COOKIE_DOMAIN
from .database import get_db
from .errors import InvalidUser, Unauthorized
from .models import User

logger = logging.getLogger(__name__)

ph = PasswordHasher()

JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_TTL = timedelta(hours=1)
REFRESH_TOKEN_TTL = timedelta(days=7)


@dataclass(frozen=True)
class SessionUser:
    id: uuid.UUID | None
    email: str | None


@dataclass(frozen=True)
class Session:
    """Identity carried by the request's access token."""

    user: SessionUser | None


def hash_password(password: str) -> str:
    return ph.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    if not isinstance(hashed, str) or not hashed:
        return False
    try:
        return ph.verify(hashed, password)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


def create_token(user_id: uuid.UUID | None, ttl: timedelta, email: str | None = None) -> str:
    payload = {"exp": datetime.now(timezone.utc) + ttl}
    if user_id:
        payload["sub"] = str(user_id)
    if email:
        payload["email"] = email
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def create_access_token(user_id: uuid.UUID | None, email: str | None = None) -> str:
    return create_token(user_id, ACCESS_TOKEN_TTL, email=email)


def create_refresh_token(user_id: uuid.UUID | None, email: str | None = None) -> str:
    return create_token(user_id, REFRESH_TOKEN_TTL, email=email)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")


def set_auth_cookies(response: Response, user: User) -> str:
    access = create_access_token(user.id, user.email)
    refresh = create_refresh_token(user.id, user.email)
    csrf_token = secrets.token_hex(32)

    cookie_kwargs = dict(
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="lax",
        path="/",
    )
    if COOKIE_DOMAIN:
        cookie_kwargs["domain"] = COOKIE_DOMAIN

    response.set_cookie("access_token", access, max_age=int(ACCESS_TOKEN_TTL.total_seconds()), **cookie_kwargs)
    response.set_cookie("refresh_token", refresh, max_age=int(REFRESH_TOKEN_TTL.total_seconds()), **cookie_kwargs)
    # CSRF token: readable by JS (not httpOnly)
    response.set_cookie(
        "csrf_token", csrf_token,
        max_age=int(REFRESH_TOKEN_TTL.total_seconds()),
        httponly=False,
        secure=COOKIE_SECURE,
        samesite="lax",
        path="/",
    )
    return csrf_token


def clear_auth_cookies(response: Response):
    for name in ("access_token", "refresh_token", "csrf_token"):
        response.delete_cookie(name, path="/")


def _parse_user_id(value) -> uuid.UUID | None:
    if not value:
        return None
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def session_from_claims(payload: dict) -> Session:
    user_id = _parse_user_id(payload.get("sub"))
    email = payload.get("email") or None
    if user_id is None and email is None:
        return Session(user=None)
    return Session(user=SessionUser(id=user_id, email=email.lower() if email else None))


def get_session(request: Request) -> Session | None:
    token = request.cookies.get("access_token")
    if not token:
        return None
    try:
        payload = decode_token(token)
    except HTTPException:
        return None
    return session_from_claims(payload)


def require_session(session: Session | None = Depends(get_session)) -> Session:
    if session is None:
        raise Unauthorized()
    return session


def require_session_user_id(session: Session = Depends(require_session)) -> uuid.UUID:
    """Direct identity from the session; no email fallback."""
    if session.user is None or session.user.id is None:
        raise InvalidUser("No user ID in session")
    return session.user.id


async def resolve_user_id(session: Session, db: AsyncSession) -> uuid.UUID:
    """Session user id, falling back to a lookup by the session's email."""
    if session.user is None:
        raise InvalidUser("No user in session")
    if session.user.id is not None:
        return session.user.id
    if session.user.email:
        user_id = await db.scalar(select(User.id).where(User.email == session.user.email))
        if user_id is not None:
            logger.debug("Resolved session identity by email lookup")
            return user_id
    raise InvalidUser("Invalid user ID")


async def get_current_user(session: Session = Depends(require_session), db: AsyncSession = Depends(get_db)) -> User:
    user_id = await resolve_user_id(session, db)
    user = await db.get(User, user_id)
    if not user:
        raise Unauthorized("User not found")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is disabled")
    return user


def verify_csrf(request: Request):
    """Verify CSRF token on state-changing requests."""
    csrf_cookie = request.cookies.get("csrf_token")
    csrf_header = request.headers.get("x-csrf-token")
    if not csrf_cookie or not csrf_header or csrf_cookie != csrf_header:
        raise HTTPException(status_code=403, detail="CSRF token mismatch")
