"""Chat router -- threads, votes and the streaming turn endpoint."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mindwell.chat.threads import (
    MessageNotFoundError,
    PageNotFoundError,
    ThreadNotFoundError,
    add_vote,
    create_thread,
    get_thread_history,
    list_threads,
)
from mindwell.chat.turn_processor import (
    TurnRequest,
    TurnValidationError,
    prepare_turn,
    stream_turn,
)
from mindwell.deps import (
    _safe_error,
    get_current_user,
    get_db,
    get_provider,
    get_session_factory,
)
from mindwell.models.chat import (
    ChatStreamRequest,
    CreateThreadRequest,
    ThreadListRequest,
    VoteRequest,
)
from mindwell.openai_provider import ProviderHandle
from mindwell.security import rate_limit_chat_stream

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/chat", tags=["chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
    "Connection": "keep-alive",
}


# ---------------------------------------------------------------------------
# POST /chat/threads
# ---------------------------------------------------------------------------


@router.post("/threads")
async def create_chat_thread(
    body: CreateThreadRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create an empty conversation thread for the caller."""
    user_id = current_user["userId"]
    try:
        thread = await create_thread(db, user_id, body.title, body.category, body.mode)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("Thread creation", e),
        ) from e

    return {
        "message": "Thread created successfully.",
        "userId": user_id,
        "threadId": thread.thread_id,
        "title": thread.title,
        "category": thread.category,
        "mode": thread.mode,
        "created_at": thread.created_at,
        "updated_at": thread.updated_at,
    }


# ---------------------------------------------------------------------------
# POST /chat/threads/list
# ---------------------------------------------------------------------------


@router.post("/threads/list")
async def list_chat_threads(
    body: ThreadListRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Return one page of the caller's threads for a mode, newest first."""
    try:
        return await list_threads(
            db, current_user["userId"], body.mode, page=body.page, limit=body.limit
        )
    except PageNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Page not found. Please check the page number.",
        ) from e


# ---------------------------------------------------------------------------
# GET /chat/threads/{thread_id}/history
# ---------------------------------------------------------------------------


@router.get("/threads/{thread_id}/history")
async def chat_thread_history(
    thread_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Return a thread and its full transcript."""
    try:
        return await get_thread_history(db, thread_id, current_user["userId"])
    except ThreadNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Thread not found."
        ) from e


# ---------------------------------------------------------------------------
# POST /chat/vote
# ---------------------------------------------------------------------------


@router.post("/vote")
async def vote_on_message(
    body: VoteRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Up- or down-vote a bot message. A new vote replaces the caller's old one."""
    try:
        message = await add_vote(
            db, body.thread_id, body.message_id, current_user["userId"], body.action
        )
    except ThreadNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Thread not found."
        ) from e
    except MessageNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Bot message not found."
        ) from e

    return {
        "message": "Vote recorded.",
        "messageId": message.id,
        "upvotes": len(message.upvotes),
        "downvotes": len(message.downvotes),
    }


# ---------------------------------------------------------------------------
# POST /chat/stream
# ---------------------------------------------------------------------------


@router.post("/stream")
@rate_limit_chat_stream()
async def chat_stream(
    request: Request,
    body: ChatStreamRequest,
    current_user: dict = Depends(get_current_user),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    provider: ProviderHandle = Depends(get_provider),
):
    """
    Run one conversation turn and stream the answer as Server-Sent Events.

    Validation happens before the stream opens, so client errors come back
    as a plain JSON 400 response.  Once streaming starts every outcome is
    reported in-band as a terminal ``end`` or ``error`` event.
    """
    turn = TurnRequest(
        thread_id=body.thread_id,
        user_id=current_user["userId"],
        mode=body.mode,
        response_type=body.response_type,
        question=body.question,
        answer=body.answer,
        regenerate=body.regenerate,
        bot_id=body.bot_id,
        avatar=body.avatar,
    )
    try:
        prepared = await prepare_turn(session_factory, turn)
    except TurnValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("Chat turn", e),
        ) from e

    return StreamingResponse(
        stream_turn(session_factory, provider, prepared),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
