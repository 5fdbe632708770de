from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from app.models.base import utc_now
from app.models.enums import ChatRole


class ChatTurn(BaseModel):
    role: ChatRole
    content: str


class ChatRequest(BaseModel):
    messages: list[ChatTurn]


class ChatResponse(BaseModel):
    message: str
    usage: Optional[dict[str, Any]] = None


class ChatSessionCreate(BaseModel):
    title: Optional[str] = None


class ChatSessionRename(BaseModel):
    title: str = Field(..., min_length=1)


class ChatMessageIn(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    role: ChatRole
    content: str
    timestamp: datetime = Field(default_factory=utc_now)


class ChatMessageOut(BaseModel):
    id: str
    role: ChatRole
    content: str
    timestamp: datetime


class ChatSessionOut(BaseModel):
    id: str
    user_id: str
    title: str
    messages: list[ChatMessageOut] = []
    created_at: datetime
    updated_at: datetime
