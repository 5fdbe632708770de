from __future__ import annotations

from typing import Callable, Optional

import httpx
from loguru import logger

from app.client.api import ApiError, ChatApiClient
from app.schemas.user import UserOut

AuthObserver = Callable[[Optional[UserOut]], None]


class AuthProvider:
    """Tracks the signed-in user and notifies observers when it changes.

    ``loading`` stays true until the first identity resolution finishes. Token
    storage and refresh live in the server and in :class:`ChatApiClient`.
    """

    def __init__(self, api: ChatApiClient) -> None:
        self._api = api
        self._observers: list[AuthObserver] = []
        self.user: Optional[UserOut] = None
        self.loading = True

    def subscribe(self, observer: AuthObserver) -> Callable[[], None]:
        self._observers.append(observer)
        if not self.loading:
            observer(self.user)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _set_user(self, user: Optional[UserOut]) -> None:
        self.user = user
        self.loading = False
        for observer in list(self._observers):
            observer(user)

    async def _current_user(self) -> UserOut:
        try:
            return await self._api.me()
        except ApiError as exc:
            if exc.status_code != 401 or not self._api.refresh_token:
                raise
        await self._api.refresh()
        return await self._api.me()

    async def resolve(self) -> Optional[UserOut]:
        user: Optional[UserOut] = None
        if self._api.authenticated:
            try:
                user = await self._current_user()
            except ApiError as exc:
                if exc.status_code != 401:
                    self.loading = False
                    raise
                logger.info('auth.session_expired')
                self._api.clear_tokens()
            except httpx.HTTPError:
                self.loading = False
                raise
        self._set_user(user)
        return user

    async def sign_in(self, email: str, password: str) -> UserOut:
        await self._api.login(email, password)
        user = await self._api.me()
        logger.info('auth.signed_in', user_id=user.id)
        self._set_user(user)
        return user

    async def sign_out(self) -> None:
        try:
            await self._api.logout()
        except (ApiError, httpx.HTTPError) as exc:
            # Local identity is dropped regardless; the server token simply expires.
            logger.warning('auth.sign_out_failed', error=str(exc))
        finally:
            self._set_user(None)
