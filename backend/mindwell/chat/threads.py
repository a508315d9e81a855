"""Thread, user and prompt persistence for the chat service.

Provides async database functions for reading and writing chat threads and
the records a conversation turn depends on.  All functions accept an
``AsyncSession``; callers own the transaction (``get_db`` commits for
request-scoped work, the turn processor commits its own sessions).

The transcript of a thread is a JSON document (``chat_threads.chats``).
Writers never overwrite it blindly: :func:`save_thread_chats` re-reads the
document, applies a mutation function and writes it back with a
``version``-guarded UPDATE, retrying against the fresh copy when another
writer got there first.
"""

from __future__ import annotations

import logging
import math
import uuid
from typing import Any, Callable, Dict, List, Optional, Union

from sqlalchemy import func, select, update as sa_update
from sqlalchemy.ext.asyncio import AsyncSession

from mindwell.models.db.base import utcnow
from mindwell.models.db.chat import ChatThread
from mindwell.models.db.prompt import PromptText
from mindwell.models.db.user import User
from mindwell.models.messages import (
    BotMessage,
    UserMessage,
    Vote,
    dump_chats,
    load_chats,
)

logger = logging.getLogger(__name__)

ChatList = List[Union[UserMessage, BotMessage]]

# Maximum number of user/bot messages included as model context
HISTORY_WINDOW_SIZE = 20

# Attempts for a version-checked thread write before giving up
MAX_SAVE_ATTEMPTS = 3


class ThreadConflictError(RuntimeError):
    """The thread kept changing underneath a version-checked write."""


class ThreadNotFoundError(LookupError):
    pass


class MessageNotFoundError(LookupError):
    pass


class PageNotFoundError(LookupError):
    pass


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def get_thread_for_user(
    db: AsyncSession, thread_id: str, user_id: str
) -> Optional[ChatThread]:
    """Return the thread with handle *thread_id* if *user_id* owns it."""
    result = await db.execute(
        select(ChatThread).where(
            ChatThread.thread_id == thread_id,
            ChatThread.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def get_user(db: AsyncSession, user_id: str) -> Optional[User]:
    return await db.get(User, user_id)


async def get_prompt_text(db: AsyncSession) -> Optional[str]:
    """Return the current system-prompt template, or ``None`` if unset."""
    result = await db.execute(
        select(PromptText.prompt).order_by(PromptText.updated_at.desc()).limit(1)
    )
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Transcript helpers (pure)
# ---------------------------------------------------------------------------


def build_history_window(
    chats: ChatList, limit: int = HISTORY_WINDOW_SIZE
) -> List[Dict[str, str]]:
    """Project the last *limit* user/bot messages to ``{role, content}``.

    Order is preserved; the window is recomputed every turn and never stored.
    """
    window = []
    for item in chats:
        if isinstance(item, UserMessage):
            window.append({"role": "user", "content": item.message})
        elif isinstance(item, BotMessage):
            window.append({"role": "bot", "content": item.response})
    if limit <= 0:
        return []
    return window[-limit:]


def find_bot_index(chats: ChatList, bot_id: str) -> Optional[int]:
    """Return the index of the bot message with *bot_id*, or ``None``."""
    for index, item in enumerate(chats):
        if isinstance(item, BotMessage) and item.id == bot_id:
            return index
    return None


def find_preceding_user(chats: ChatList, bot_index: int) -> Optional[int]:
    """Scan backward from *bot_index* for the nearest user message."""
    for index in range(bot_index - 1, -1, -1):
        if isinstance(chats[index], UserMessage):
            return index
    return None


# ---------------------------------------------------------------------------
# Version-checked writes
# ---------------------------------------------------------------------------


async def _load_thread_row(db: AsyncSession, thread_pk: str) -> Any:
    result = await db.execute(
        select(ChatThread.chats, ChatThread.version).where(ChatThread.id == thread_pk)
    )
    return result.one_or_none()


async def save_thread_chats(
    db: AsyncSession,
    thread_pk: str,
    mutate: Callable[[ChatList], None],
    *,
    mode: Optional[str] = None,
    max_attempts: int = MAX_SAVE_ATTEMPTS,
) -> ChatList:
    """Apply *mutate* to the stored transcript and write it back.

    The current ``chats`` document and ``version`` are read, *mutate* edits
    the typed message list in place, and the result is written with
    ``UPDATE ... WHERE id = :pk AND version = :version``.  If no row matched,
    another writer committed in between: the document is reloaded and
    *mutate* is applied again to the fresh copy.

    Args:
        db: Active async database session. The caller commits.
        thread_pk: Primary key of the ``chat_threads`` row.
        mutate: Function editing the message list in place. Must be safe to
            call more than once.
        mode: When given, stored on the thread together with the transcript.
        max_attempts: Write attempts before giving up.

    Returns:
        The message list as written.

    Raises:
        ThreadNotFoundError: If the thread row no longer exists.
        ThreadConflictError: If every attempt lost the version race.
    """
    for attempt in range(1, max_attempts + 1):
        row = await _load_thread_row(db, thread_pk)
        if row is None:
            raise ThreadNotFoundError(thread_pk)

        chats = load_chats(row.chats)
        mutate(chats)

        values: Dict[str, Any] = {
            "chats": dump_chats(chats),
            "version": row.version + 1,
            "updated_at": utcnow(),
        }
        if mode is not None:
            values["mode"] = mode

        result = await db.execute(
            sa_update(ChatThread)
            .where(ChatThread.id == thread_pk, ChatThread.version == row.version)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return chats

        logger.warning(
            f"Version conflict saving thread {thread_pk} "
            f"(attempt {attempt}/{max_attempts})"
        )

    raise ThreadConflictError(
        f"Thread {thread_pk} changed concurrently {max_attempts} times"
    )


async def touch_user_activity(db: AsyncSession, user_id: str) -> None:
    """Record the user's last activity time."""
    await db.execute(
        sa_update(User)
        .where(User.id == user_id)
        .values(updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )


# ---------------------------------------------------------------------------
# Thread CRUD
# ---------------------------------------------------------------------------


async def create_thread(
    db: AsyncSession,
    user_id: str,
    title: str,
    category: Optional[str],
    mode: str,
) -> ChatThread:
    """Create an empty thread and return it with its generated handle."""
    thread = ChatThread(
        thread_id=f"thread_{uuid.uuid4().hex}",
        user_id=user_id,
        title=title,
        category=category,
        mode=mode.lower(),
        chats=[],
    )
    db.add(thread)
    await db.flush()
    await db.refresh(thread)
    logger.info(f"Created thread {thread.thread_id} for user {user_id}")
    return thread


def thread_summary(thread: ChatThread) -> Dict[str, Any]:
    return {
        "threadId": thread.thread_id,
        "title": thread.title or "Untitled",
        "category": thread.category,
        "mode": thread.mode,
        "created_at": thread.created_at,
        "updated_at": thread.updated_at,
    }


async def list_threads(
    db: AsyncSession,
    user_id: str,
    mode: str,
    page: int = 1,
    limit: int = 10,
) -> Dict[str, Any]:
    """Return one page of the user's threads in *mode*, newest first.

    Raises:
        PageNotFoundError: If *page* is past the last page of a non-empty list.
    """
    conditions = (ChatThread.user_id == user_id, ChatThread.mode == mode.lower())

    total = (
        await db.execute(select(func.count()).select_from(ChatThread).where(*conditions))
    ).scalar_one()

    if total == 0:
        return {
            "threads": [],
            "totalPages": 0,
            "currentPage": page,
            "pageSize": limit,
            "totalThreads": 0,
            "message": "No threads found for this user.",
        }

    total_pages = math.ceil(total / limit)
    if page > total_pages:
        raise PageNotFoundError(page)

    result = await db.execute(
        select(ChatThread)
        .where(*conditions)
        .order_by(ChatThread.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return {
        "threads": [thread_summary(t) for t in result.scalars().all()],
        "totalPages": total_pages,
        "currentPage": page,
        "pageSize": limit,
        "totalThreads": total,
        "message": "Fetched all threads successfully.",
    }


async def get_thread_history(
    db: AsyncSession, thread_id: str, user_id: str
) -> Dict[str, Any]:
    """Return the thread summary with its full transcript.

    Raises:
        ThreadNotFoundError: If the user has no thread with this handle.
    """
    thread = await get_thread_for_user(db, thread_id, user_id)
    if thread is None:
        raise ThreadNotFoundError(thread_id)
    return {**thread_summary(thread), "chats": thread.chats or []}


async def add_vote(
    db: AsyncSession,
    thread_id: str,
    message_id: str,
    user_id: str,
    action: str,
) -> BotMessage:
    """Record *user_id*'s vote on a bot message, replacing any earlier vote.

    Raises:
        ThreadNotFoundError: If the user has no thread with this handle.
        MessageNotFoundError: If no bot message has *message_id*.
    """
    thread = await get_thread_for_user(db, thread_id, user_id)
    if thread is None:
        raise ThreadNotFoundError(thread_id)

    voted: Dict[str, BotMessage] = {}

    def _apply_vote(chats: ChatList) -> None:
        index = find_bot_index(chats, message_id)
        if index is None:
            raise MessageNotFoundError(message_id)
        bot = chats[index]
        bot.upvotes = [v for v in bot.upvotes if v.user_id != user_id]
        bot.downvotes = [v for v in bot.downvotes if v.user_id != user_id]
        vote = Vote(user_id=user_id, action=action)
        if action == "upvote":
            bot.upvotes.append(vote)
        else:
            bot.downvotes.append(vote)
        voted["message"] = bot

    await save_thread_chats(db, thread.id, _apply_vote)
    return voted["message"]
