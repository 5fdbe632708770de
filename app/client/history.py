from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

import httpx
from loguru import logger

from app.client.api import ApiError
from app.schemas.chat import ChatSessionOut

_REQUEST_ERRORS = (ApiError, httpx.HTTPError)


class SessionListBackend(Protocol):
    async def list_sessions(self) -> list[ChatSessionOut]: ...

    async def rename_session(self, session_id: str, title: str) -> ChatSessionOut: ...

    async def delete_session(self, session_id: str) -> None: ...


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime, now: Optional[datetime] = None) -> str:
    """Label a session by clock time today, weekday this week, month and day otherwise."""
    value = _as_utc(value)
    now = _as_utc(now) if now else datetime.now(timezone.utc)
    age = now - value
    if age < timedelta(hours=24):
        return value.strftime('%H:%M')
    if age < timedelta(days=7):
        return value.strftime('%a')
    return f"{value:%b} {value.day}"


class HistoryPanel:
    def __init__(
        self,
        api: SessionListBackend,
        *,
        on_select: Callable[[ChatSessionOut], None],
        on_new_chat: Callable[[], None],
    ) -> None:
        self._api = api
        self._on_select = on_select
        self._on_new_chat = on_new_chat
        self.sessions: list[ChatSessionOut] = []
        self.current_session_id: Optional[str] = None
        self.loading = False
        self.error: Optional[str] = None

    async def refresh(self) -> list[ChatSessionOut]:
        self.loading = True
        self.error = None
        try:
            self.sessions = await self._api.list_sessions()
        except _REQUEST_ERRORS as exc:
            logger.error('history.load_failed', error=str(exc))
            self.error = 'Failed to load chat history'
        finally:
            self.loading = False
        return self.sessions

    def _find(self, session_id: str) -> ChatSessionOut:
        for session in self.sessions:
            if session.id == session_id:
                return session
        raise LookupError(f"Unknown chat session: {session_id}")

    def select(self, session_id: str) -> ChatSessionOut:
        session = self._find(session_id)
        self.current_session_id = session.id
        self._on_select(session)
        return session

    def new_chat(self) -> None:
        self.current_session_id = None
        self._on_new_chat()

    async def rename(self, session_id: str, title: str) -> bool:
        title = title.strip()
        if not title:
            return False
        try:
            updated = await self._api.rename_session(session_id, title)
        except _REQUEST_ERRORS as exc:
            logger.error('history.rename_failed', session_id=session_id, error=str(exc))
            self.error = 'Failed to rename chat'
            return False
        self.sessions = [updated if item.id == session_id else item for item in self.sessions]
        return True

    async def delete(self, session_id: str, confirm: Callable[[], bool] = lambda: True) -> bool:
        if not confirm():
            return False
        try:
            await self._api.delete_session(session_id)
        except _REQUEST_ERRORS as exc:
            logger.error('history.delete_failed', session_id=session_id, error=str(exc))
            self.error = 'Failed to delete chat'
            return False
        self.sessions = [item for item in self.sessions if item.id != session_id]
        if self.current_session_id == session_id:
            self.new_chat()
        return True
