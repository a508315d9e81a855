"""Chat ORM models.

Tables
------
- chat_threads  (one conversation; its transcript lives in the ``chats`` JSON document)
- scratchpads   (scratchpad notes attached to bot messages)
"""

from typing import Optional

from sqlalchemy import Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from mindwell.models.db.base import Base, JSONDocument, TimestampMixin, new_id

__all__ = ["ChatThread", "Scratchpad"]


class ChatThread(TimestampMixin, Base):
    """A conversation thread owned by one user.

    ``chats`` holds the ordered list of serialised user/bot messages. The
    whole list is rewritten by a single UPDATE guarded by ``version``.
    """

    __tablename__ = "chat_threads"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    thread_id: Mapped[str] = mapped_column(Text, nullable=False, unique=True, index=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    mode: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    chats: Mapped[list] = mapped_column(JSONDocument, default=list, nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class Scratchpad(TimestampMixin, Base):
    """Scratchpad note generated alongside a bot message."""

    __tablename__ = "scratchpads"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    thread_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    scratchpad_id: Mapped[str] = mapped_column(Text, nullable=False)
    message_id: Mapped[str] = mapped_column(Text, nullable=False)
