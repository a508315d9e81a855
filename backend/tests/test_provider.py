"""
Tests for the OpenAI provider: the streaming wrapper and vector store setup.

Usage:
    cd backend && pytest tests/test_provider.py -v
"""

import asyncio
import os
import sys
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from conftest import FakeStream, completed_event, delta_event, failed_event  # noqa: E402
from mindwell.chat.provider_stream import (  # noqa: E402
    DEFAULT_FAILURE_MESSAGE,
    CompletedEvent,
    FailedEvent,
    TextDeltaEvent,
    stream_response,
)
from mindwell.openai_provider import (  # noqa: E402
    OpenAIConfig,
    ProviderHandle,
    get_or_create_vector_store,
    initialize_provider,
)


def client_streaming(events):
    client = MagicMock()
    client.responses.create = AsyncMock(return_value=FakeStream(events))
    return client


async def _collect(client, **kwargs):
    return [
        event
        async for event in stream_response(
            client, model="m", input=[], instructions="i", **kwargs
        )
    ]


# ============================================================================
# stream_response
# ============================================================================


class TestStreamResponse:
    def test_deltas_then_completion(self):
        client = client_streaming(
            [delta_event("a"), delta_event(""), delta_event("b"), completed_event("ab")]
        )
        events = asyncio.run(_collect(client, vector_store_ids=["vs_1"]))

        assert events == [
            TextDeltaEvent("a"),
            TextDeltaEvent("b"),
            CompletedEvent("ab"),
        ]
        assert client.responses.create.return_value.closed
        kwargs = client.responses.create.call_args.kwargs
        assert kwargs["tools"] == [{"type": "file_search", "vector_store_ids": ["vs_1"]}]

    def test_tools_omitted_without_vector_store(self):
        client = client_streaming([completed_event("x")])
        asyncio.run(_collect(client))
        assert "tools" not in client.responses.create.call_args.kwargs

    def test_unrelated_events_are_skipped(self):
        client = client_streaming(
            [SimpleNamespace(type="response.created"), completed_event("done")]
        )
        assert asyncio.run(_collect(client)) == [CompletedEvent("done")]

    def test_completed_text_falls_back_to_output_items(self):
        response = SimpleNamespace(
            output_text="",
            output=[SimpleNamespace(content=[SimpleNamespace(text="from items")])],
        )
        client = client_streaming([SimpleNamespace(type="response.completed", response=response)])
        assert asyncio.run(_collect(client)) == [CompletedEvent("from items")]

    def test_failed_response(self):
        client = client_streaming([failed_event("rate limited"), delta_event("late")])
        events = asyncio.run(_collect(client))
        assert events == [FailedEvent("rate limited")]
        assert client.responses.create.return_value.closed

    def test_error_event_without_message(self):
        client = client_streaming([SimpleNamespace(type="error", message=None)])
        assert asyncio.run(_collect(client)) == [FailedEvent(DEFAULT_FAILURE_MESSAGE)]

    def test_early_close_closes_upstream(self):
        client = client_streaming([delta_event("a"), delta_event("b")])

        async def scenario():
            events = stream_response(client, model="m", input=[], instructions="i")
            first = await events.__anext__()
            await events.aclose()
            return first

        assert asyncio.run(scenario()) == TextDeltaEvent("a")
        assert client.responses.create.return_value.closed


# ============================================================================
# Vector store and initialisation
# ============================================================================


@pytest.fixture
def config(monkeypatch, tmp_path):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("OPENAI_VECTOR_STORE_NAME", "kb")
    monkeypatch.setenv("KNOWLEDGE_BASE_DIR", str(tmp_path))
    monkeypatch.delenv("OPENAI_VECTOR_STORE_ID", raising=False)
    monkeypatch.delenv("OPENAI_CHAT_MODEL", raising=False)
    (tmp_path / "coping.md").write_text("breathe")
    (tmp_path / "sleep.md").write_text("rest")
    (tmp_path / ".hidden").write_text("skip")
    return OpenAIConfig()


def vector_store_client(existing):
    client = MagicMock()
    client.vector_stores.list = MagicMock(return_value=FakeStream(existing))
    client.vector_stores.create = AsyncMock(return_value=SimpleNamespace(id="vs_new"))
    client.vector_stores.files.create = AsyncMock()
    client.files.create = AsyncMock(side_effect=lambda **kw: SimpleNamespace(id=kw["file"].name))
    return client


class TestVectorStore:
    def test_existing_store_is_reused(self, config):
        client = vector_store_client(
            [SimpleNamespace(id="vs_other", name="other"), SimpleNamespace(id="vs_kb", name="kb")]
        )
        assert asyncio.run(get_or_create_vector_store(client, config)) == "vs_kb"
        client.vector_stores.create.assert_not_called()

    def test_missing_store_is_created_and_populated(self, config):
        client = vector_store_client([])

        store_id = asyncio.run(get_or_create_vector_store(client, config))

        assert store_id == "vs_new"
        create_kwargs = client.vector_stores.create.call_args.kwargs
        assert create_kwargs["name"] == "kb"
        assert create_kwargs["expires_after"] == {"anchor": "last_active_at", "days": 365}
        attached = sorted(
            call.kwargs["file_id"] for call in client.vector_stores.files.create.call_args_list
        )
        assert attached == ["coping.md", "sleep.md"]


class TestInitializeProvider:
    def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(ValueError, match="OPENAI_API_KEY"):
            asyncio.run(initialize_provider())

    def test_configured_store_id_skips_lookup(self, config):
        config.vector_store_id = "vs_fixed"
        client = vector_store_client([])

        handle = asyncio.run(initialize_provider(config, client))

        assert handle == ProviderHandle(client=client, model="gpt-4.1", vector_store_id="vs_fixed")
        assert handle.vector_store_ids == ["vs_fixed"]
        client.vector_stores.list.assert_not_called()
