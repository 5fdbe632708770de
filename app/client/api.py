from __future__ import annotations

from typing import Any, Optional, Sequence, TypeVar

import httpx
from loguru import logger
from pydantic import BaseModel, ValidationError

from app.schemas.auth import TokenResponse
from app.schemas.chat import (
    ChatMessageIn,
    ChatMessageOut,
    ChatResponse,
    ChatSessionOut,
    ChatTurn,
)
from app.schemas.user import UserOut


class ApiError(Exception):
    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"{status_code}: {message}")


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or 'Request failed'
    if isinstance(body, dict):
        for key in ('error', 'detail'):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
            if value:
                return str(value)
    return response.reason_phrase or 'Request failed'


INVALID_RESPONSE_STATUS = 502
INVALID_RESPONSE_MESSAGE = 'Invalid response from server'

_Model = TypeVar('_Model', bound=BaseModel)


def _validated(model: type[_Model], data: Any) -> _Model:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        logger.debug('chat_client.invalid_body', model=model.__name__, errors=exc.error_count())
        raise ApiError(INVALID_RESPONSE_STATUS, INVALID_RESPONSE_MESSAGE) from exc


def _validated_list(model: type[_Model], data: Any) -> list[_Model]:
    if not isinstance(data, list):
        raise ApiError(INVALID_RESPONSE_STATUS, INVALID_RESPONSE_MESSAGE)
    return [_validated(model, item) for item in data]


class ChatApiClient:
    """HTTP client for the chat service.

    Owns the bearer tokens for the signed-in user; everything else is stateless.
    """

    def __init__(self, http: httpx.AsyncClient, *, prefix: str = '/api') -> None:
        self._http = http
        self._prefix = prefix.rstrip('/')
        self.access_token: Optional[str] = None
        self.refresh_token: Optional[str] = None

    @property
    def authenticated(self) -> bool:
        return self.access_token is not None

    def _headers(self) -> dict[str, str]:
        if not self.access_token:
            return {}
        return {'Authorization': f"Bearer {self.access_token}"}

    async def _request(self, method: str, path: str, *, json: Any = None) -> Any:
        response = await self._http.request(
            method,
            f"{self._prefix}{path}",
            json=json,
            headers=self._headers(),
        )
        if response.is_error:
            message = _error_message(response)
            logger.debug('chat_client.request_failed', method=method, path=path, status=response.status_code)
            raise ApiError(response.status_code, message)
        try:
            return response.json()
        except ValueError as exc:
            # A 2xx page from a proxy or captive portal is not an API answer.
            logger.debug('chat_client.non_json_body', method=method, path=path, status=response.status_code)
            raise ApiError(INVALID_RESPONSE_STATUS, INVALID_RESPONSE_MESSAGE) from exc

    def _store_tokens(self, tokens: TokenResponse) -> TokenResponse:
        self.access_token = tokens.access_token
        self.refresh_token = tokens.refresh_token
        return tokens

    def clear_tokens(self) -> None:
        self.access_token = None
        self.refresh_token = None

    async def register(self, email: str, password: str, display_name: Optional[str] = None) -> UserOut:
        data = await self._request(
            'POST',
            '/auth/register',
            json={'email': email, 'password': password, 'display_name': display_name},
        )
        return _validated(UserOut, data)

    async def login(self, email: str, password: str) -> TokenResponse:
        data = await self._request('POST', '/auth/login', json={'email': email, 'password': password})
        return self._store_tokens(_validated(TokenResponse, data))

    async def refresh(self) -> TokenResponse:
        if not self.refresh_token:
            raise ApiError(401, 'Not signed in')
        data = await self._request('POST', '/auth/refresh', json={'refresh_token': self.refresh_token})
        return self._store_tokens(_validated(TokenResponse, data))

    async def logout(self) -> None:
        token = self.refresh_token
        self.clear_tokens()
        if token:
            await self._request('POST', '/auth/logout', json={'refresh_token': token})

    async def me(self) -> UserOut:
        return _validated(UserOut, await self._request('GET', '/auth/me'))

    async def send_chat(self, turns: Sequence[ChatTurn]) -> ChatResponse:
        payload = {'messages': [turn.model_dump(mode='json') for turn in turns]}
        return _validated(ChatResponse, await self._request('POST', '/chat', json=payload))

    async def create_session(self, title: Optional[str] = None) -> ChatSessionOut:
        data = await self._request('POST', '/chats', json={'title': title})
        return _validated(ChatSessionOut, data)

    async def list_sessions(self) -> list[ChatSessionOut]:
        data = await self._request('GET', '/chats')
        return _validated_list(ChatSessionOut, data)

    async def get_session(self, session_id: str) -> ChatSessionOut:
        return _validated(ChatSessionOut, await self._request('GET', f"/chats/{session_id}"))

    async def append_message(self, session_id: str, message: ChatMessageIn) -> list[ChatMessageOut]:
        data = await self._request(
            'POST',
            f"/chats/{session_id}/messages",
            json=message.model_dump(mode='json'),
        )
        return _validated_list(ChatMessageOut, data)

    async def rename_session(self, session_id: str, title: str) -> ChatSessionOut:
        data = await self._request('PATCH', f"/chats/{session_id}", json={'title': title})
        return _validated(ChatSessionOut, data)

    async def delete_session(self, session_id: str) -> None:
        await self._request('DELETE', f"/chats/{session_id}")
