"""
OpenAI Provider for the MindWell chat service.

This module owns the OpenAI client configuration and the knowledge-base
vector store used by the file-search tool.  Nothing here runs at import
time: the application lifespan calls :func:`initialize_provider`, which
fails fast on missing credentials or an unreachable API, and stores the
resulting :class:`ProviderHandle` on ``app.state.provider``.

Environment Variables:
- OPENAI_API_KEY: OpenAI API key (required)
- OPENAI_CHAT_MODEL: Model used for chat turns (default: gpt-4.1)
- OPENAI_VECTOR_STORE_NAME: Knowledge-base vector store name (default: mental-health)
- OPENAI_VECTOR_STORE_ID: Pre-provisioned vector store id; skips the lookup
- KNOWLEDGE_BASE_DIR: Directory whose files are uploaded when the store is created

Usage:
    from mindwell.openai_provider import initialize_provider

    provider = await initialize_provider()
    provider.client.responses.create(model=provider.model, ...)
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional

from openai import AsyncOpenAI

logger = logging.getLogger(__name__)

# Vector store expires after a year without use
VECTOR_STORE_EXPIRY_DAYS = 365


# =============================================================================
# Configuration Loading
# =============================================================================


def _get_required_env(name: str) -> str:
    """Get a required environment variable or raise an error."""
    if value := os.getenv(name):
        return value
    raise ValueError(
        f"Missing required environment variable: {name}. "
        f"OpenAI configuration is required for this application."
    )


def _get_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    """Get an optional environment variable with a default value."""
    return os.getenv(name, default)


class OpenAIConfig:
    """OpenAI configuration container."""

    def __init__(self):
        """Load configuration from environment variables."""
        self.api_key = _get_required_env("OPENAI_API_KEY")
        self.chat_model = _get_optional_env("OPENAI_CHAT_MODEL", "gpt-4.1")
        self.vector_store_name = _get_optional_env(
            "OPENAI_VECTOR_STORE_NAME", "mental-health"
        )
        self.vector_store_id = _get_optional_env("OPENAI_VECTOR_STORE_ID", None)
        self.knowledge_base_dir = _get_optional_env("KNOWLEDGE_BASE_DIR", None)

    def log_configuration(self):
        """Log the current configuration (without sensitive data)."""
        logger.info("OpenAI Configuration:")
        logger.info(f"  Chat Model: {self.chat_model}")
        logger.info(f"  Vector Store Name: {self.vector_store_name}")
        logger.info(f"  Vector Store ID: {self.vector_store_id or '(resolve by name)'}")
        logger.info(f"  Knowledge Base Dir: {self.knowledge_base_dir or '(none)'}")


# =============================================================================
# Provider Handle
# =============================================================================


@dataclass
class ProviderHandle:
    """Everything a turn needs to call the model."""

    client: Any
    model: str
    vector_store_id: Optional[str] = None

    @property
    def vector_store_ids(self) -> List[str]:
        return [self.vector_store_id] if self.vector_store_id else []


# =============================================================================
# Knowledge Base
# =============================================================================


def _knowledge_base_files(directory: Optional[str]) -> List[Path]:
    if not directory:
        return []
    root = Path(directory)
    if not root.is_dir():
        raise ValueError(f"KNOWLEDGE_BASE_DIR is not a directory: {directory}")
    return sorted(p for p in root.iterdir() if p.is_file() and not p.name.startswith("."))


async def _upload_file(client: AsyncOpenAI, vector_store_id: str, path: Path) -> None:
    uploaded = await client.files.create(file=path, purpose="assistants")
    await client.vector_stores.files.create(
        vector_store_id=vector_store_id, file_id=uploaded.id
    )
    logger.info(f"Uploaded {path.name} to vector store {vector_store_id}")


async def get_or_create_vector_store(client: AsyncOpenAI, config: OpenAIConfig) -> str:
    """Return the id of the knowledge-base vector store, creating it if needed.

    An existing store is matched by name.  A new store is created with an
    inactivity expiry and populated with every file in
    ``config.knowledge_base_dir``.
    """
    async for store in client.vector_stores.list():
        if store.name == config.vector_store_name:
            logger.info(f"Using existing vector store {store.id}")
            return store.id

    files = _knowledge_base_files(config.knowledge_base_dir)
    store = await client.vector_stores.create(
        name=config.vector_store_name,
        expires_after={"anchor": "last_active_at", "days": VECTOR_STORE_EXPIRY_DAYS},
    )
    await asyncio.gather(*(_upload_file(client, store.id, path) for path in files))
    logger.info(f"Created vector store {store.id} with {len(files)} file(s)")
    return store.id


# =============================================================================
# Initialization
# =============================================================================


async def initialize_provider(
    config: Optional[OpenAIConfig] = None,
    client: Optional[AsyncOpenAI] = None,
) -> ProviderHandle:
    """Build the provider handle used by every chat turn.

    Raises:
        ValueError: If required configuration is missing.
        openai.OpenAIError: If the vector store cannot be resolved.
    """
    config = config or OpenAIConfig()
    config.log_configuration()
    client = client or AsyncOpenAI(api_key=config.api_key)

    vector_store_id = config.vector_store_id or await get_or_create_vector_store(
        client, config
    )
    logger.info(f"OpenAI provider ready (model={config.chat_model})")
    return ProviderHandle(
        client=client, model=config.chat_model, vector_store_id=vector_store_id
    )
