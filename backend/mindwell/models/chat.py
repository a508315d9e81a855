"""
Chat Models for Chat Endpoints

This module provides Pydantic request models for the chat API endpoints.

Supports:
- ChatStreamRequest: Request model for the streaming turn endpoint
- CreateThreadRequest: Request model for thread creation
- ThreadListRequest: Request model for the paginated thread list
- VoteRequest: Request model for voting on a bot message
"""

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ChatStreamRequest(BaseModel):
    """Request model for the streaming chat endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    thread_id: str = Field(..., alias="threadId", min_length=1)
    mode: str = Field(..., description="Operational variant, e.g. 'test' or 'live'")
    response_type: Dict[str, Any] = Field(
        ...,
        alias="responseType",
        description="Structured form/assessment payload; empty for free chat",
    )
    question: Optional[str] = Field(None, max_length=8000)
    answer: Optional[str] = Field(
        None, max_length=8000, description="Answer to a follow-up question"
    )
    regenerate: bool = False
    bot_id: Optional[str] = Field(
        None, alias="botId", description="Bot message to regenerate"
    )
    avatar: Optional[str] = Field(None, description="Counsellor persona name")


class CreateThreadRequest(BaseModel):
    """Request model for creating a chat thread."""

    title: str = Field(..., min_length=1, max_length=200)
    category: Optional[str] = None
    mode: str = Field(..., min_length=1)


class ThreadListRequest(BaseModel):
    """Request model for listing the caller's threads."""

    mode: str = Field(..., min_length=1)
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)


class VoteRequest(BaseModel):
    """Request model for voting on a bot message."""

    model_config = ConfigDict(populate_by_name=True)

    thread_id: str = Field(..., alias="threadId")
    message_id: str = Field(..., alias="messageId")
    action: Literal["upvote", "downvote"]
