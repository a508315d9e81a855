"""Shared dependencies for all MindWell API routers.

Centralises the database session, authentication dependency, provider
handle and small error helpers so that router modules can
``from mindwell.deps import ...`` without importing ``main``.
"""

import logging

from fastapi import HTTPException, Request, status

from mindwell.auth import get_current_user
from mindwell.database import get_db, get_session_factory
from mindwell.openai_provider import ProviderHandle

logger = logging.getLogger(__name__)

__all__ = [
    "get_current_user",
    "get_db",
    "get_session_factory",
    "get_provider",
    "_safe_error",
]


def get_provider(request: Request) -> ProviderHandle:
    """Return the provider handle initialised during application startup."""
    provider = getattr(request.app.state, "provider", None)
    if provider is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Model provider is not initialised.",
        )
    return provider


def _safe_error(operation: str, e: Exception) -> str:
    """Log the full exception but return a safe message without internal details.

    Keeps stack traces and database internals out of API responses while
    preserving full diagnostics in server logs.
    """
    logger.exception("Error during %s: %s", operation, e)
    return f"{operation} failed. Please try again or contact support."
