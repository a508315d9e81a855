"""Prompt template ORM model.

The table is treated as a singleton: the turn processor reads the first row.
"""

from typing import Optional

from sqlalchemy import Text
from sqlalchemy.orm import Mapped, mapped_column

from mindwell.models.db.base import Base, TimestampMixin, new_id

__all__ = ["PromptText"]


class PromptText(TimestampMixin, Base):
    __tablename__ = "prompt_texts"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    prompt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
