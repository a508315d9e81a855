"""
MindWell API - FastAPI backend for the mental-health chat application
"""

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mindwell import __version__
from mindwell.database import engine, init_db
from mindwell.openai_provider import initialize_provider
from mindwell.routers import auth, chat, health
from mindwell.security import setup_security

# Load environment variables from .env file
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# =============================================================================
# CORS Configuration
# =============================================================================
# Production accepts HTTPS origins only; development defaults to localhost.

ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()


def _allowed_origins() -> list[str]:
    if ENVIRONMENT == "production":
        raw = os.getenv("ALLOWED_ORIGINS", "")
    else:
        raw = os.getenv(
            "ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:5173"
        )

    origins = []
    for origin in (o.strip() for o in raw.split(",")):
        if not origin:
            continue
        if ENVIRONMENT == "production" and (
            not origin.startswith("https://")
            or "localhost" in origin
            or "127.0.0.1" in origin
        ):
            logger.warning(f"[CORS] Rejecting origin in production: {origin}")
            continue
        origins.append(origin)

    if not origins:
        raise ValueError("CORS configuration error: No valid allowed origins configured")
    return origins


ALLOWED_ORIGINS = _allowed_origins()
logger.info(f"[CORS] Environment: {ENVIRONMENT}, allowed origins: {ALLOWED_ORIGINS}")


# =============================================================================
# Lifecycle
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and initialise the model provider before serving."""
    await init_db()
    app.state.provider = await initialize_provider()
    logger.info("MindWell API started")
    yield
    if engine is not None:
        await engine.dispose()
    logger.info("MindWell API shutdown complete")


app = FastAPI(
    title="MindWell API",
    description="Mental-health chat backend with streamed model answers",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Requested-With"],
)

# Must run after CORS middleware is added
setup_security(app, ALLOWED_ORIGINS)

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(chat.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
