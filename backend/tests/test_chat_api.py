"""
API tests for the chat router.

The app is exercised through ``TestClient`` without entering its lifespan;
the session factory and provider are swapped in with dependency overrides
and rate limiting is switched off.

Usage:
    cd backend && pytest tests/test_chat_api.py -v
"""

import asyncio
import json
import os
import sys
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from conftest import (  # noqa: E402
    completed_event,
    delta_event,
    make_bot_message,
    make_provider,
    make_user_message,
)
from mindwell.auth import create_access_token  # noqa: E402
from mindwell.deps import get_provider, get_session_factory  # noqa: E402
from mindwell.main import app  # noqa: E402
from mindwell.models.chat import VoteRequest  # noqa: E402
from mindwell.models.messages import load_chats  # noqa: E402
from mindwell.security import limiter  # noqa: E402

ANSWER = '{"response":"Take a slow breath.","followupQuestions":["Better?"]}'


@pytest.fixture
def api(session_factory, seed):
    """Test client wired to the temporary database and a scripted provider."""
    state = {"provider": make_provider([delta_event(ANSWER), completed_event(ANSWER)])}
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_provider] = lambda: state["provider"]
    previous = limiter.enabled
    limiter.enabled = False

    async def setup():
        user = await seed.user()
        await seed.prompt()
        return user

    user = asyncio.run(setup())
    client = TestClient(app)
    client.headers["Authorization"] = f"Bearer {create_access_token(user.id, user.email)}"
    yield SimpleNamespace(client=client, user=user, state=state)

    app.dependency_overrides.clear()
    limiter.enabled = previous


def parse_events(body: str):
    return [
        json.loads(block[len("data: "):]) for block in body.split("\n\n") if block.strip()
    ]


def stream_body(thread, **kwargs):
    body = {"threadId": thread.thread_id, "mode": "test", "responseType": {}}
    body.update(kwargs)
    return body


# ============================================================================
# POST /chat/stream
# ============================================================================


class TestChatStream:
    def test_requires_authentication(self, api, seed):
        thread = asyncio.run(seed.thread(api.user.id))
        response = api.client.post(
            "/chat/stream",
            json=stream_body(thread, question="hi"),
            headers={"Authorization": ""},
        )
        assert response.status_code == 401

    def test_streams_text_then_end(self, api, seed):
        thread = asyncio.run(seed.thread(api.user.id))

        response = api.client.post(
            "/chat/stream", json=stream_body(thread, question="I'm stressed")
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"
        events = parse_events(response.text)
        assert events[0] == {"type": "text", "content": "Take a slow breath."}
        assert events[-1]["type"] == "end"
        assert events[-1]["content"]["followup_questions"] == ["Better?"]

        saved = asyncio.run(seed.reload_thread(thread.id))
        assert [c.type for c in load_chats(saved.chats)] == ["user", "bot"]

    def test_validation_error_is_plain_json(self, api, seed):
        thread = asyncio.run(seed.thread(api.user.id))

        response = api.client.post("/chat/stream", json=stream_body(thread, question=" "))

        assert response.status_code == 400
        assert response.headers["content-type"].startswith("application/json")
        assert response.json()["detail"] == "Question is required."
        api.state["provider"].client.responses.create.assert_not_called()

    def test_unknown_thread_is_rejected(self, api):
        response = api.client.post(
            "/chat/stream",
            json={"threadId": "thread_nope", "mode": "test", "responseType": {}, "question": "x"},
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid user ID or thread ID."

    def test_regenerate_of_unknown_bot_is_rejected(self, api, seed):
        thread = asyncio.run(
            seed.thread(api.user.id, chats=[make_user_message("q"), make_bot_message("a")])
        )
        response = api.client.post(
            "/chat/stream", json=stream_body(thread, regenerate=True, botId="missing")
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Bot message not found."

    def test_response_type_is_required(self, api, seed):
        thread = asyncio.run(seed.thread(api.user.id))
        response = api.client.post(
            "/chat/stream",
            json={"threadId": thread.thread_id, "mode": "test", "question": "hi"},
        )
        assert 400 <= response.status_code < 500

    def test_provider_failure_is_an_in_band_error(self, api, seed):
        thread = asyncio.run(seed.thread(api.user.id))
        api.state["provider"] = make_provider([delta_event('{"response":"Ta')])

        response = api.client.post("/chat/stream", json=stream_body(thread, question="hi"))

        assert response.status_code == 200
        events = parse_events(response.text)
        assert [e["type"] for e in events] == ["text", "error"]
        saved = asyncio.run(seed.reload_thread(thread.id))
        assert saved.chats == []

    def test_missing_provider_is_unavailable(self, api, seed):
        thread = asyncio.run(seed.thread(api.user.id))
        del app.dependency_overrides[get_provider]

        response = api.client.post("/chat/stream", json=stream_body(thread, question="hi"))

        assert response.status_code == 503


# ============================================================================
# Threads and votes
# ============================================================================


class TestThreads:
    def test_create_list_and_history(self, api):
        created = api.client.post(
            "/chat/threads", json={"title": "Sleep", "category": "rest", "mode": "TEST"}
        )
        assert created.status_code == 200
        payload = created.json()
        assert payload["message"] == "Thread created successfully."
        assert payload["mode"] == "test"
        thread_id = payload["threadId"]

        listed = api.client.post("/chat/threads/list", json={"mode": "test"})
        assert listed.status_code == 200
        assert [t["threadId"] for t in listed.json()["threads"]] == [thread_id]

        history = api.client.get(f"/chat/threads/{thread_id}/history")
        assert history.status_code == 200
        assert history.json()["chats"] == []

    def test_page_past_the_end_is_404(self, api, seed):
        asyncio.run(seed.thread(api.user.id))
        response = api.client.post("/chat/threads/list", json={"mode": "test", "page": 9})
        assert response.status_code == 404
        assert response.json()["detail"] == "Page not found. Please check the page number."

    def test_history_of_unknown_thread_is_404(self, api):
        response = api.client.get("/chat/threads/thread_nope/history")
        assert response.status_code == 404


class TestVotes:
    def test_vote_on_bot_message(self, api, seed):
        bot = make_bot_message("a")
        thread = asyncio.run(seed.thread(api.user.id, chats=[make_user_message("q"), bot]))

        response = api.client.post(
            "/chat/vote",
            json={
                "threadId": thread.thread_id,
                "messageId": bot.id,
                "action": "upvote",
            },
        )

        assert response.status_code == 200
        assert response.json() == {
            "message": "Vote recorded.",
            "messageId": bot.id,
            "upvotes": 1,
            "downvotes": 0,
        }

    def test_vote_on_unknown_message_is_404(self, api, seed):
        thread = asyncio.run(seed.thread(api.user.id))
        response = api.client.post(
            "/chat/vote",
            json={
                "threadId": thread.thread_id,
                "messageId": "nope",
                "action": "downvote",
            },
        )
        assert response.status_code == 404
        assert response.json()["detail"] == "Bot message not found."

    def test_vote_is_not_scoped_by_mode(self, api, seed):
        bot = make_bot_message("a")
        thread = asyncio.run(
            seed.thread(api.user.id, chats=[make_user_message("q"), bot], mode="live")
        )
        body = {"threadId": thread.thread_id, "messageId": bot.id, "action": "downvote"}

        assert "mode" not in VoteRequest.model_fields
        response = api.client.post("/chat/vote", json=body)
        assert response.status_code == 200
        assert response.json()["downvotes"] == 1


class TestHealth:
    def test_root(self, api):
        assert api.client.get("/").json()["status"] == "ok"

    def test_health_reports_missing_provider(self, api):
        body = api.client.get("/health").json()
        assert body["services"]["ai"] == "unavailable"
        assert "ai" in body["degraded"]
