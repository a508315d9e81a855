"""
Shared fixtures for the MindWell backend tests.

Persistence tests run against a throwaway SQLite file (aiosqlite) with
NullPool, so every ``asyncio.run`` scenario opens fresh connections on its
own event loop.
"""

import asyncio
import os
import sys
import uuid
from types import SimpleNamespace
from typing import Any, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.pool import NullPool

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from mindwell.database import create_session_factory, init_db  # noqa: E402
from mindwell.models.db.chat import ChatThread  # noqa: E402
from mindwell.models.db.prompt import PromptText  # noqa: E402
from mindwell.models.db.user import User  # noqa: E402
from mindwell.models.messages import BotMessage, UserMessage, dump_chats  # noqa: E402
from mindwell.openai_provider import ProviderHandle  # noqa: E402


# ============================================================================
# DATABASE
# ============================================================================


@pytest.fixture
def session_factory(tmp_path):
    """Session factory bound to a fresh SQLite database with all tables."""
    engine, factory = create_session_factory(
        f"sqlite+aiosqlite:///{tmp_path / 'mindwell-test.db'}",
        poolclass=NullPool,
    )
    asyncio.run(init_db(engine))
    yield factory
    asyncio.run(engine.dispose())


class Seeder:
    """Insert test rows through a session factory."""

    def __init__(self, factory):
        self.factory = factory

    async def user(
        self,
        email: str = "student@example.com",
        user_type: Optional[str] = "student",
        country: Optional[str] = "India",
    ) -> User:
        async with self.factory() as db:
            user = User(
                email=email,
                hashed_password="not-a-real-hash",
                user_type=user_type,
                country=country,
            )
            db.add(user)
            await db.commit()
            return user

    async def thread(
        self,
        user_id: str,
        chats: Optional[List[Any]] = None,
        mode: str = "test",
        title: Optional[str] = "My thread",
    ) -> ChatThread:
        async with self.factory() as db:
            thread = ChatThread(
                thread_id=f"thread_{uuid.uuid4().hex}",
                user_id=user_id,
                title=title,
                mode=mode,
                chats=dump_chats(chats or []),
            )
            db.add(thread)
            await db.commit()
            return thread

    async def prompt(self, text: str = "You are a supportive counsellor.") -> None:
        async with self.factory() as db:
            db.add(PromptText(prompt=text))
            await db.commit()

    async def reload_thread(self, pk: str) -> ChatThread:
        async with self.factory() as db:
            return await db.get(ChatThread, pk)


@pytest.fixture
def seed(session_factory):
    return Seeder(session_factory)


# ============================================================================
# TEST DATA FACTORIES
# ============================================================================


def make_user_message(text: str = "I feel anxious", **kwargs) -> UserMessage:
    return UserMessage(message=text, **kwargs)


def make_bot_message(text: str = "That sounds hard.", **kwargs) -> BotMessage:
    return BotMessage(response=text, **kwargs)


# ============================================================================
# FAKE PROVIDER
# ============================================================================


class FakeStream:
    """Async-iterable stand-in for ``openai.AsyncStream``."""

    def __init__(self, events: List[Any]):
        self._events = events
        self.closed = False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for event in self._events:
            yield event

    async def close(self):
        self.closed = True


def delta_event(text: str) -> SimpleNamespace:
    return SimpleNamespace(type="response.output_text.delta", delta=text)


def completed_event(text: str) -> SimpleNamespace:
    return SimpleNamespace(
        type="response.completed",
        response=SimpleNamespace(output_text=text, output=[]),
    )


def failed_event(message: str = "Upstream exploded") -> SimpleNamespace:
    return SimpleNamespace(
        type="response.failed",
        response=SimpleNamespace(error=SimpleNamespace(message=message)),
    )


def make_provider(events: List[Any]) -> ProviderHandle:
    """Provider handle whose client streams *events*."""
    client = MagicMock()
    client.responses.create = AsyncMock(return_value=FakeStream(events))
    return ProviderHandle(client=client, model="gpt-test", vector_store_id="vs_test")
