from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from app.models.base import IDModel, TimestampModel

DEFAULT_SESSION_TITLE = 'New Chat'


class ChatSession(IDModel, TimestampModel, SQLModel, table=True):
    """One conversation document; ``messages`` holds the whole ordered transcript."""

    __tablename__ = 'chat_sessions'

    user_id: str = Field(index=True)
    title: str = DEFAULT_SESSION_TITLE
    messages: list[dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
