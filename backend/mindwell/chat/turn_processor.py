"""Conversation turn processor.

Orchestrates one chat turn:

1. ``prepare_turn`` validates the request, loads the thread and user
   concurrently, resolves the question (recovering it on regenerate), builds
   the history window and composes the model input and instructions.  Every
   failure here happens before any response bytes are sent and is raised as
   an exception for the router to turn into a JSON error.
2. ``stream_turn`` is an async generator of SSE strings.  It relays the
   revealed ``response`` text as ``text`` events, and on completion parses the
   answer, writes the thread back and finishes with an ``end`` event.  Any
   failure after the stream has opened becomes a terminal ``error`` event.

Nothing is persisted unless the provider reports completion.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mindwell.chat.avatars import get_avatar_info
from mindwell.chat.envelope import EnvelopeParseError, parse_response_envelope
from mindwell.chat.prompts import build_instructions, build_model_input
from mindwell.chat.provider_stream import (
    CompletedEvent,
    FailedEvent,
    TextDeltaEvent,
    stream_response,
)
from mindwell.chat.sse import sse_end, sse_error, sse_text
from mindwell.chat.stream_parser import ResponseFieldScanner
from mindwell.chat.threads import (
    ChatList,
    build_history_window,
    find_bot_index,
    find_preceding_user,
    get_prompt_text,
    get_thread_for_user,
    get_user,
    save_thread_chats,
    touch_user_activity,
)
from mindwell.models.db.base import new_id
from mindwell.models.db.chat import ChatThread, Scratchpad
from mindwell.models.db.user import User
from mindwell.models.messages import BotMessage, ScratchpadNote, UserMessage, load_chats
from mindwell.openai_provider import ProviderHandle

logger = logging.getLogger(__name__)

SessionFactory = async_sessionmaker[AsyncSession]

GENERIC_STREAM_ERROR = "An error occurred while generating the response."
UNSAVED_RESPONSE_ERROR = "The response was generated but could not be saved."


class TurnValidationError(ValueError):
    """The request is invalid; reported to the client as HTTP 400."""


class TurnConfigurationError(RuntimeError):
    """The service is missing something it needs to answer (HTTP 500)."""


@dataclass
class TurnRequest:
    """One conversation turn as received from the client."""

    thread_id: str
    user_id: str
    mode: str
    response_type: Dict[str, Any] = field(default_factory=dict)
    question: Optional[str] = None
    answer: Optional[str] = None
    regenerate: bool = False
    bot_id: Optional[str] = None
    avatar: Optional[str] = None


@dataclass
class PreparedTurn:
    """A validated turn, ready to be sent to the model."""

    request: TurnRequest
    thread_pk: str
    mode: str
    question: Optional[str]
    model_input: List[Dict[str, Any]]
    instructions: str
    history: List[Dict[str, str]]
    user_message: Optional[UserMessage] = None


# ---------------------------------------------------------------------------
# Preparation (before the stream opens)
# ---------------------------------------------------------------------------


def _check_request(request: TurnRequest) -> Optional[str]:
    """Validate the request fields; return the avatar persona if one is set."""
    if request.regenerate and not request.bot_id:
        raise TurnValidationError("botId is required when regenerating.")
    if (
        not request.regenerate
        and not request.response_type
        and not (request.question or "").strip()
    ):
        raise TurnValidationError("Question is required.")
    if request.avatar:
        persona = get_avatar_info(request.avatar)
        if persona is None:
            raise TurnValidationError("Avatar not found.")
        return persona
    return None


async def _load_thread_and_user(
    session_factory: SessionFactory, thread_id: str, user_id: str
) -> Tuple[Optional[ChatThread], Optional[User]]:
    # One AsyncSession cannot run two statements at once, so each lookup
    # gets its own short-lived session.
    async def _thread() -> Optional[ChatThread]:
        async with session_factory() as db:
            return await get_thread_for_user(db, thread_id, user_id)

    async def _user() -> Optional[User]:
        async with session_factory() as db:
            return await get_user(db, user_id)

    thread, user = await asyncio.gather(_thread(), _user())
    return thread, user


def _resolve_regenerate(chats: ChatList, bot_id: str) -> Tuple[str, ChatList]:
    """Return the recovered question and the transcript before it."""
    bot_index = find_bot_index(chats, bot_id)
    if bot_index is None:
        raise TurnValidationError("Bot message not found.")
    user_index = find_preceding_user(chats, bot_index)
    if user_index is None:
        raise TurnValidationError("No preceding question found for this bot message.")
    return chats[user_index].message, chats[:user_index]


async def prepare_turn(
    session_factory: SessionFactory, request: TurnRequest
) -> PreparedTurn:
    """Validate *request* and compose everything the model call needs.

    Raises:
        TurnValidationError: For client errors (unknown thread/user, missing
            question, unresolvable regenerate target, unknown avatar).
        TurnConfigurationError: If no system-prompt template is stored.
    """
    persona = _check_request(request)

    thread, user = await _load_thread_and_user(
        session_factory, request.thread_id, request.user_id
    )
    if thread is None or user is None:
        raise TurnValidationError("Invalid user ID or thread ID.")

    chats = load_chats(thread.chats)
    question = request.question
    context = chats
    if request.regenerate:
        question, context = _resolve_regenerate(chats, request.bot_id)

    async with session_factory() as db:
        prompt = await get_prompt_text(db)
    if not prompt:
        raise TurnConfigurationError("Prompt text not found in database")

    history = build_history_window(context)

    user_message = None
    if not request.regenerate and not request.response_type:
        user_message = UserMessage(message=question, avatar=request.avatar)

    return PreparedTurn(
        request=request,
        thread_pk=thread.id,
        mode=(request.mode or "").lower(),
        question=question,
        model_input=build_model_input(
            question,
            request.answer,
            user.country,
            user.user_type,
            request.response_type,
            history,
        ),
        instructions=build_instructions(prompt, persona),
        history=history,
        user_message=user_message,
    )


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


def apply_turn_mutation(
    chats: ChatList,
    bot: BotMessage,
    *,
    user_message: Optional[UserMessage] = None,
    regenerate_id: Optional[str] = None,
) -> None:
    """Apply the finished turn to *chats* in place.

    - regenerate: update the target bot message in place, keeping its id;
      append instead if the target has disappeared since validation
    - no user message (structured ``responseType`` turn): append the bot only
    - otherwise: append the user message, then the bot message
    """
    if regenerate_id is not None:
        index = find_bot_index(chats, regenerate_id)
        if index is not None:
            target = chats[index]
            target.response = bot.response
            target.followup_questions = list(bot.followup_questions)
            target.scratchpad = bot.scratchpad
            if bot.avatar is not None:
                target.avatar = bot.avatar
            target.updated_at = bot.updated_at
            return
        logger.warning(
            f"Regenerate target {regenerate_id} vanished before save; appending"
        )
        chats.append(bot)
        return

    if user_message is not None:
        chats.append(user_message)
    chats.append(bot)


async def _persist_turn(
    session_factory: SessionFactory, prepared: PreparedTurn, bot: BotMessage
) -> BotMessage:
    request = prepared.request
    regenerate_id = bot.id if request.regenerate else None

    def _mutate(chats: ChatList) -> None:
        apply_turn_mutation(
            chats,
            bot,
            user_message=prepared.user_message,
            regenerate_id=regenerate_id,
        )

    async with session_factory() as db:
        try:
            chats = await save_thread_chats(
                db, prepared.thread_pk, _mutate, mode=prepared.mode
            )
            if bot.scratchpad is not None:
                db.add(
                    Scratchpad(
                        user_id=request.user_id,
                        thread_id=request.thread_id,
                        scratchpad_id=bot.scratchpad.scratchpad_id,
                        message_id=bot.id,
                    )
                )
            await touch_user_activity(db, request.user_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    index = find_bot_index(chats, bot.id)
    return chats[index] if index is not None else bot


# ---------------------------------------------------------------------------
# Streaming (after the stream opens)
# ---------------------------------------------------------------------------


async def stream_turn(
    session_factory: SessionFactory,
    provider: ProviderHandle,
    prepared: PreparedTurn,
) -> AsyncGenerator[str, None]:
    """Run the model call for *prepared* and yield SSE-formatted strings.

    Yields ``text`` events while the model writes its ``response`` field,
    then exactly one terminal ``end`` or ``error`` event.
    """
    request = prepared.request
    scanner = ResponseFieldScanner("response")
    output_text: Optional[str] = None

    try:
        events = stream_response(
            provider.client,
            model=provider.model,
            input=prepared.model_input,
            instructions=prepared.instructions,
            vector_store_ids=provider.vector_store_ids,
        )
        try:
            async for event in events:
                if isinstance(event, TextDeltaEvent):
                    new_text = scanner.feed(event.delta)
                    if new_text:
                        yield sse_text(new_text)
                elif isinstance(event, FailedEvent):
                    yield sse_error(event.message)
                    return
                elif isinstance(event, CompletedEvent):
                    output_text = event.output_text
        finally:
            await events.aclose()
    except Exception as e:
        logger.error(f"Model stream error for thread {request.thread_id}: {e}")
        yield sse_error(GENERIC_STREAM_ERROR)
        return

    if output_text is None:
        logger.error(f"Model stream for thread {request.thread_id} ended early")
        yield sse_error(GENERIC_STREAM_ERROR)
        return

    try:
        envelope = parse_response_envelope(output_text)
    except EnvelopeParseError as e:
        logger.error(f"Unparseable model output for thread {request.thread_id}: {e}")
        yield sse_error("Failed to parse the model response.")
        return
    except Exception as e:
        logger.exception(f"Failed to read model output for thread {request.thread_id}: {e}")
        yield sse_error(GENERIC_STREAM_ERROR)
        return

    try:
        bot = BotMessage(
            id=request.bot_id if request.regenerate else new_id(),
            response=envelope.main_content,
            followup_questions=envelope.followup_questions,
            avatar=request.avatar,
            scratchpad=ScratchpadNote(
                scratchpad_id=envelope.scratchpad_id,
                scratchpad_text=envelope.scratchpad_text,
            ),
        )
    except Exception as e:
        logger.exception(f"Failed to build bot message for thread {request.thread_id}: {e}")
        yield sse_error(GENERIC_STREAM_ERROR)
        return

    try:
        saved = await _persist_turn(session_factory, prepared, bot)
    except Exception as e:
        logger.error(f"Failed to save turn for thread {request.thread_id}: {e}")
        yield sse_error(
            UNSAVED_RESPONSE_ERROR,
            persisted=False,
            message=bot.model_dump(mode="json"),
        )
        return

    try:
        terminal = sse_end(saved.model_dump(mode="json"))
    except Exception as e:
        logger.exception(f"Failed to serialise bot message for thread {request.thread_id}: {e}")
        terminal = sse_error(GENERIC_STREAM_ERROR)
    else:
        logger.info(f"Turn completed for thread {request.thread_id} (bot {saved.id})")
    yield terminal
