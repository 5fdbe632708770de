from __future__ import annotations

from typing import Optional

from app.client.api import ChatApiClient
from app.client.auth import AuthProvider
from app.client.conversation import ConversationController, VisibleMessage
from app.client.history import HistoryPanel
from app.schemas.user import UserOut


class ChatPage:
    """Wires the auth provider, history panel and conversation around one API client."""

    def __init__(self, api: ChatApiClient) -> None:
        self.api = api
        self.auth = AuthProvider(api)
        self.conversation = ConversationController(api)
        self.history = HistoryPanel(
            api,
            on_select=self.conversation.switch_session,
            on_new_chat=self.conversation.new_chat,
        )
        self.auth.subscribe(self._on_user_changed)

    def _on_user_changed(self, user: Optional[UserOut]) -> None:
        # Stored history is only available to a signed-in user.
        self.conversation.store = self.api if user else None
        if user is None:
            self.history.sessions = []
            self.history.current_session_id = None

    async def start(self) -> Optional[UserOut]:
        user = await self.auth.resolve()
        if user:
            await self.history.refresh()
        return user

    async def sign_in(self, email: str, password: str) -> UserOut:
        user = await self.auth.sign_in(email, password)
        await self.history.refresh()
        return user

    async def sign_out(self) -> None:
        await self.auth.sign_out()
        self.conversation.new_chat()

    async def send(self, text: str) -> Optional[VisibleMessage]:
        reply = await self.conversation.send(text)
        session_id = self.conversation.session_id
        if reply and session_id and session_id != self.history.current_session_id:
            self.history.current_session_id = session_id
            await self.history.refresh()
        return reply
