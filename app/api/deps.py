from fastapi import Depends, Request
from sqlmodel import Session

from app.db.session import get_session
from app.services.chat_gateway import ChatGateway
from app.services.session_store import SessionStore


def get_chat_gateway(request: Request) -> ChatGateway:
    return request.app.state.chat_gateway


def get_session_store(session: Session = Depends(get_session)) -> SessionStore:
    return SessionStore(session)
