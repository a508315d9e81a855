"""Health-check router."""

from datetime import datetime, timezone

from fastapi import APIRouter, Request

from mindwell import __version__, database

router = APIRouter(tags=["health"])


@router.get("/")
async def root():
    """Health check"""
    return {"status": "ok", "message": "MindWell API is running"}


@router.get("/health")
async def health_check(request: Request):
    """Report whether the database and model provider are configured."""
    db_ready = database.async_session_factory is not None
    ai_ready = getattr(request.app.state, "provider", None) is not None
    degraded = [
        name for name, ready in (("database", db_ready), ("ai", ai_ready)) if not ready
    ]
    return {
        "status": "healthy" if not degraded else "degraded",
        "version": __version__,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {
            "database": "configured" if db_ready else "unconfigured",
            "ai": "available" if ai_ready else "unavailable",
        },
        "degraded": degraded or None,
    }
