from typing import Any, Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.core.errors import SessionNotFoundError, StoreError
from app.models.base import utc_now
from app.models.chat_session import DEFAULT_SESSION_TITLE, ChatSession
from app.schemas.chat import ChatMessageIn


class SessionStore:
    """Persistence facade for chat session documents.

    Each operation is a single read-modify-write of one row. ``append`` rewrites
    the whole ``messages`` array, so two concurrent appends to the same session
    race and the later write wins.
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def _commit(self, record: ChatSession, event: str) -> ChatSession:
        try:
            self._db.add(record)
            self._db.commit()
            self._db.refresh(record)
        except SQLAlchemyError as exc:
            self._db.rollback()
            logger.error(event, session_id=record.id, error=str(exc))
            raise StoreError(f'{event}: {exc}') from exc
        return record

    def create(self, owner_id: str, title: Optional[str] = None) -> ChatSession:
        record = ChatSession(user_id=owner_id, title=title or DEFAULT_SESSION_TITLE, messages=[])
        return self._commit(record, 'session_store.create_failed')

    def list_for_owner(self, owner_id: str) -> list[ChatSession]:
        statement = (
            select(ChatSession)
            .where(ChatSession.user_id == owner_id)
            .order_by(ChatSession.updated_at.desc())
        )
        try:
            return list(self._db.exec(statement).all())
        except SQLAlchemyError as exc:
            logger.error('session_store.list_failed', owner_id=owner_id, error=str(exc))
            raise StoreError(f'session_store.list_failed: {exc}') from exc

    def get(self, session_id: str) -> ChatSession:
        try:
            record = self._db.exec(select(ChatSession).where(ChatSession.id == session_id)).first()
        except SQLAlchemyError as exc:
            logger.error('session_store.get_failed', session_id=session_id, error=str(exc))
            raise StoreError(f'session_store.get_failed: {exc}') from exc
        if record is None:
            raise SessionNotFoundError(session_id)
        return record

    def append(self, session_id: str, message: ChatMessageIn) -> list[dict[str, Any]]:
        record = self.get(session_id)
        # Whole-array rewrite; assigning a new list marks the JSON column dirty.
        record.messages = [*record.messages, message.model_dump(mode='json')]
        record.updated_at = utc_now()
        record = self._commit(record, 'session_store.append_failed')
        return list(record.messages)

    def rename(self, session_id: str, title: str) -> ChatSession:
        record = self.get(session_id)
        record.title = title
        record.updated_at = utc_now()
        return self._commit(record, 'session_store.rename_failed')

    def delete(self, session_id: str) -> None:
        record = self.get(session_id)
        try:
            self._db.delete(record)
            self._db.commit()
        except SQLAlchemyError as exc:
            self._db.rollback()
            logger.error('session_store.delete_failed', session_id=session_id, error=str(exc))
            raise StoreError(f'session_store.delete_failed: {exc}') from exc
