"""
Identity provider.

The core only cares whether a user is signed in and, if so, under which uid.
Listeners are notified in registration order on every change.
"""

import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

AuthListener = Callable[[str | None], Awaitable[None]]


class IdentityProvider:

    def __init__(self, uid: str | None = None):
        self._uid = uid
        self._listeners: list[AuthListener] = []

    @property
    def current_uid(self) -> str | None:
        return self._uid

    def on_auth_change(self, callback: AuthListener) -> Callable[[], None]:
        """
        Register a listener for sign-in/sign-out.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    async def sign_in(self, uid: str) -> None:
        if not uid:
            raise ValueError("uid must be a non-empty string")
        if uid == self._uid:
            return
        self._uid = uid
        logger.info(f"Identity established for user {uid}")
        await self._notify()

    async def sign_out(self) -> None:
        if self._uid is None:
            return
        logger.info(f"Identity cleared for user {self._uid}")
        self._uid = None
        await self._notify()

    async def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                await listener(self._uid)
            except Exception as e:
                logger.exception(f"Auth listener {getattr(listener, '__qualname__', listener)} failed: {e}")
