"""Authentication router -- login or sign up."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from mindwell.auth import InvalidCredentialsError, create_access_token, login_or_signup
from mindwell.deps import get_db
from mindwell.models.auth import LoginRequest, LoginResponse
from mindwell.security import log_security_event, rate_limit_auth

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


# ---------------------------------------------------------------------------
# POST /auth/login
# ---------------------------------------------------------------------------


@router.post("/login", response_model=LoginResponse)
@rate_limit_auth()
async def login(
    request: Request,
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """Sign in, creating the account first when the e-mail is new."""
    try:
        user, is_new_user = await login_or_signup(db, body.email, body.password)
    except InvalidCredentialsError as e:
        log_security_event("login_failure", request, {"email": body.email})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        ) from e

    return LoginResponse(
        message=(
            "User signed up successfully"
            if is_new_user
            else "User signed in successfully"
        ),
        token=create_access_token(user.id, user.email),
    )
