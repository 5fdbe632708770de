from fastapi import APIRouter, Depends, HTTPException, status
from app.api.deps import get_session_store
from app.core.errors import SessionNotFoundError, StoreError
from app.models.chat_session import ChatSession
from app.models.user import User
from app.schemas.chat import (
    ChatMessageIn,
    ChatMessageOut,
    ChatSessionCreate,
    ChatSessionOut,
    ChatSessionRename,
)
from app.services.auth_service import get_current_user
from app.services.session_store import SessionStore

router = APIRouter(prefix='/chats', tags=['chats'])


def _to_session_out(record: ChatSession) -> ChatSessionOut:
    return ChatSessionOut(
        id=record.id,
        user_id=record.user_id,
        title=record.title,
        messages=[ChatMessageOut.model_validate(item) for item in record.messages],
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _store_failure(exc: StoreError) -> HTTPException:
    if isinstance(exc, SessionNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Chat session not found')
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail='Chat storage unavailable')


def _ensure_session(store: SessionStore, session_id: str, user: User) -> ChatSession:
    try:
        record = store.get(session_id)
    except StoreError as exc:
        raise _store_failure(exc) from exc
    if record.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Not allowed')
    return record


@router.post('', response_model=ChatSessionOut, status_code=status.HTTP_201_CREATED)
def create_chat_session(
    payload: ChatSessionCreate,
    store: SessionStore = Depends(get_session_store),
    user: User = Depends(get_current_user),
) -> ChatSessionOut:
    try:
        record = store.create(user.id, payload.title)
    except StoreError as exc:
        raise _store_failure(exc) from exc
    return _to_session_out(record)


@router.get('', response_model=list[ChatSessionOut])
def list_chat_sessions(
    store: SessionStore = Depends(get_session_store),
    user: User = Depends(get_current_user),
) -> list[ChatSessionOut]:
    try:
        sessions = store.list_for_owner(user.id)
    except StoreError as exc:
        raise _store_failure(exc) from exc
    return [_to_session_out(record) for record in sessions]


@router.get('/{session_id}', response_model=ChatSessionOut)
def get_chat_session(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
    user: User = Depends(get_current_user),
) -> ChatSessionOut:
    return _to_session_out(_ensure_session(store, session_id, user))


@router.patch('/{session_id}', response_model=ChatSessionOut)
def rename_chat_session(
    session_id: str,
    payload: ChatSessionRename,
    store: SessionStore = Depends(get_session_store),
    user: User = Depends(get_current_user),
) -> ChatSessionOut:
    _ensure_session(store, session_id, user)
    try:
        record = store.rename(session_id, payload.title)
    except StoreError as exc:
        raise _store_failure(exc) from exc
    return _to_session_out(record)


@router.delete('/{session_id}')
def delete_chat_session(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
    user: User = Depends(get_current_user),
) -> dict:
    _ensure_session(store, session_id, user)
    try:
        store.delete(session_id)
    except StoreError as exc:
        raise _store_failure(exc) from exc
    return {'status': 'ok'}


@router.post('/{session_id}/messages', response_model=list[ChatMessageOut], status_code=status.HTTP_201_CREATED)
def append_chat_message(
    session_id: str,
    payload: ChatMessageIn,
    store: SessionStore = Depends(get_session_store),
    user: User = Depends(get_current_user),
) -> list[ChatMessageOut]:
    _ensure_session(store, session_id, user)
    try:
        messages = store.append(session_id, payload)
    except StoreError as exc:
        raise _store_failure(exc) from exc
    return [ChatMessageOut.model_validate(item) for item in messages]
