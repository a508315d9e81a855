"""Authentication for MindWell.

Users sign in with e-mail and password; an unknown e-mail creates a new
account on the spot (login-or-signup).  Passwords are hashed with bcrypt.
Tokens are signed with HS256 via python-jose and carry the user's id and
e-mail; request handlers receive them as ``{"userId": ..., "email": ...}``.
"""

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mindwell.models.db.user import User

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# JWT configuration
# ---------------------------------------------------------------------------
JWT_SECRET = os.getenv("JWT_SECRET", "mindwell-dev-secret-change-in-production")
JWT_ALGORITHM = "HS256"
JWT_EXPIRY_HOURS = int(os.getenv("JWT_EXPIRY_HOURS", "24"))


class InvalidCredentialsError(Exception):
    """E-mail exists but the password does not match."""


# ---------------------------------------------------------------------------
# Password hashing (direct bcrypt)
# ---------------------------------------------------------------------------
def _hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def _verify_password(password: str, hashed: str) -> bool:
    return bcrypt.checkpw(password.encode(), hashed.encode())


# ---------------------------------------------------------------------------
# HTTPBearer scheme
# ---------------------------------------------------------------------------
security = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


async def login_or_signup(
    db: AsyncSession, email: str, password: str
) -> tuple[User, bool]:
    """Authenticate *email*/*password*, creating the account if it is new.

    Returns:
        ``(user, is_new_user)``.

    Raises:
        InvalidCredentialsError: If the account exists and the password is wrong.
    """
    email = email.lower().strip()
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if user is None:
        user = User(email=email, hashed_password=_hash_password(password))
        db.add(user)
        await db.flush()
        await db.refresh(user)
        logger.info(f"Signed up new user {user.id}")
        return user, True

    if not _verify_password(password, user.hashed_password):
        raise InvalidCredentialsError(email)
    return user, False


def create_access_token(user_id: str, email: str) -> str:
    """Create a signed JWT containing the user's id and email."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "userId": user_id,
        "email": email,
        "exp": now + timedelta(hours=JWT_EXPIRY_HOURS),
        "iat": now,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> dict[str, Any]:
    """FastAPI dependency -- extract and validate the Bearer JWT.

    Returns ``{"userId": ..., "email": ...}`` taken from the token claims.
    """
    token: str | None = None

    if credentials is not None:
        token = credentials.credentials
    else:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired. Please login again.",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
    except JWTError as exc:
        logger.warning("JWT validation failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc

    user_id: str = payload.get("userId") or payload.get("sub") or ""
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )
    return {"userId": user_id, "email": payload.get("email", "")}
