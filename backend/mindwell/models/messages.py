"""
Chat transcript message models.

A thread's transcript is a list of messages discriminated by ``type``:

- UserMessage (``type="user"``): free text typed by the user
- BotMessage (``type="bot"``): generated answer with follow-up questions,
  optional scratchpad note and votes

Messages are stored as JSON inside ``chat_threads.chats``; ``load_chats`` and
``dump_chats`` convert between the stored form and these models.
"""

from datetime import datetime
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from mindwell.models.db.base import new_id, utcnow


class Vote(BaseModel):
    """One user's vote on a bot message."""

    user_id: str
    action: Literal["upvote", "downvote"]
    created_at: datetime = Field(default_factory=utcnow)


class ScratchpadNote(BaseModel):
    """Auxiliary note the model attaches to its answer."""

    scratchpad_id: str = ""
    scratchpad_text: str = ""


class UserMessage(BaseModel):
    type: Literal["user"] = "user"
    id: str = Field(default_factory=new_id)
    message: str = ""
    avatar: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class BotMessage(BaseModel):
    type: Literal["bot"] = "bot"
    id: str = Field(default_factory=new_id)
    response: str = ""
    followup_questions: List[str] = Field(default_factory=list)
    avatar: Optional[str] = None
    scratchpad: Optional[ScratchpadNote] = None
    upvotes: List[Vote] = Field(default_factory=list)
    downvotes: List[Vote] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


ChatItem = Annotated[Union[UserMessage, BotMessage], Field(discriminator="type")]

_chat_items = TypeAdapter(List[ChatItem])


def load_chats(raw: Optional[List[Any]]) -> List[Union[UserMessage, BotMessage]]:
    """Validate a stored ``chats`` document into typed messages."""
    return _chat_items.validate_python(raw or [])


def dump_chats(items: List[Union[UserMessage, BotMessage]]) -> List[dict]:
    """Serialise typed messages into the JSON-safe stored form."""
    return _chat_items.dump_python(items, mode="json")
