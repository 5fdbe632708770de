from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Protocol, Sequence
from uuid import uuid4

import httpx
from loguru import logger

from app.client.api import ApiError
from app.models.base import utc_now
from app.models.enums import ChatRole
from app.schemas.chat import (
    ChatMessageIn,
    ChatMessageOut,
    ChatResponse,
    ChatSessionOut,
    ChatTurn,
)

GREETING_TEXT = "Hello! I'm your AI assistant powered by DeepSeek. How can I help you today?"
GREETING_ID = 'greeting'
SESSION_TITLE_MAX_LEN = 50

_REQUEST_ERRORS = (ApiError, httpx.HTTPError)


class ChatBackend(Protocol):
    async def send_chat(self, turns: Sequence[ChatTurn]) -> ChatResponse: ...


class SessionBackend(Protocol):
    async def create_session(self, title: Optional[str] = None) -> ChatSessionOut: ...

    async def append_message(self, session_id: str, message: ChatMessageIn) -> list[ChatMessageOut]: ...


class ConversationState(str, Enum):
    IDLE = 'idle'
    SENDING = 'sending'
    FAILED = 'failed'


class ConversationBusyError(RuntimeError):
    pass


@dataclass(frozen=True)
class VisibleMessage:
    role: ChatRole
    content: str
    id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=utc_now)
    synthetic: bool = False

    @classmethod
    def greeting(cls) -> VisibleMessage:
        return cls(role=ChatRole.ASSISTANT, content=GREETING_TEXT, id=GREETING_ID, synthetic=True)

    @classmethod
    def from_stored(cls, message: ChatMessageOut) -> VisibleMessage:
        return cls(role=message.role, content=message.content, id=message.id, timestamp=message.timestamp)

    def to_turn(self) -> ChatTurn:
        return ChatTurn(role=self.role, content=self.content)

    def to_stored(self) -> ChatMessageIn:
        return ChatMessageIn(id=self.id, role=self.role, content=self.content, timestamp=self.timestamp)


def session_title_from(text: str) -> str:
    title = ' '.join(text.split())
    if len(title) > SESSION_TITLE_MAX_LEN:
        title = title[:SESSION_TITLE_MAX_LEN].rstrip() + '...'
    return title or 'New Chat'


class ConversationController:
    """Drives one visible conversation against the chat gateway.

    States: IDLE -> SENDING -> (IDLE | FAILED). The user's turn is shown
    optimistically and removed again when the gateway call fails. Accepted
    turns are mirrored into the session store on a best-effort basis.
    """

    def __init__(self, gateway: ChatBackend, store: Optional[SessionBackend] = None) -> None:
        self._gateway = gateway
        self.store = store
        self.messages: list[VisibleMessage] = [VisibleMessage.greeting()]
        self.state = ConversationState.IDLE
        self.error: Optional[str] = None
        self.session_id: Optional[str] = None

    @property
    def sending(self) -> bool:
        return self.state is ConversationState.SENDING

    def history(self) -> list[ChatTurn]:
        return [message.to_turn() for message in self.messages if not message.synthetic]

    def _ensure_not_sending(self) -> None:
        if self.sending:
            raise ConversationBusyError('A message is already being sent')

    def _reset(self, stored: Sequence[ChatMessageOut] = ()) -> None:
        self.messages = [VisibleMessage.greeting(), *(VisibleMessage.from_stored(item) for item in stored)]
        self.state = ConversationState.IDLE
        self.error = None

    def _rollback(self, message: VisibleMessage) -> None:
        self.messages = [item for item in self.messages if item.id != message.id]

    async def send(self, text: str) -> Optional[VisibleMessage]:
        if not text.strip():
            return None
        self._ensure_not_sending()

        user_message = VisibleMessage(role=ChatRole.USER, content=text)
        self.messages.append(user_message)
        self.state = ConversationState.SENDING
        self.error = None

        try:
            response = await self._gateway.send_chat(self.history())
        except _REQUEST_ERRORS as exc:
            logger.warning('conversation.send_failed', error=str(exc))
            self._rollback(user_message)
            self.error = exc.message if isinstance(exc, ApiError) else 'An error occurred'
            self.state = ConversationState.FAILED
            return None
        except Exception:
            logger.exception('conversation.send_crashed')
            self._rollback(user_message)
            self.error = 'An error occurred'
            self.state = ConversationState.FAILED
            raise

        reply = VisibleMessage(role=ChatRole.ASSISTANT, content=response.message)
        self.messages.append(reply)
        try:
            await self._mirror(user_message, reply)
        finally:
            self.state = ConversationState.IDLE
        return reply

    async def _mirror(self, user_message: VisibleMessage, reply: VisibleMessage) -> None:
        if self.store is None:
            return
        if self.session_id is None:
            try:
                created = await self.store.create_session(session_title_from(user_message.content))
            except _REQUEST_ERRORS as exc:
                logger.error('conversation.session_create_failed', error=str(exc))
                self.error = 'Failed to save this conversation'
                return
            self.session_id = created.id
        for message in (user_message, reply):
            try:
                await self.store.append_message(self.session_id, message.to_stored())
            except _REQUEST_ERRORS as exc:
                # Best effort: the visible conversation is kept as is.
                logger.error(
                    'conversation.mirror_failed',
                    session_id=self.session_id,
                    message_id=message.id,
                    error=str(exc),
                )
                return

    def new_chat(self) -> None:
        self._ensure_not_sending()
        self._reset()
        self.session_id = None

    def switch_session(self, session: ChatSessionOut) -> None:
        self._ensure_not_sending()
        self._reset(session.messages)
        self.session_id = session.id

    def clear(self) -> None:
        self._ensure_not_sending()
        self._reset()
