import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx
from loguru import logger

from pinjected_google_auth.collaborators import Clock
from pinjected_google_auth.exceptions import GoogleAuthError, TokenRefreshFailed

DEFAULT_EAGER_REFRESH_THRESHOLD_MILLIS = 5 * 60 * 1000


@dataclass(frozen=True)
class Token:
    access_token: str
    expiry_epoch_millis: Optional[int] = None


class TokenCache:
    """
    Holds the current access token of one credential.

    A refresh is due when there is no token, or when
    ``now + eager_refresh_threshold_millis >= expiry_epoch_millis``.
    A token without an expiry is used until replaced.
    """

    def __init__(
        self,
        eager_refresh_threshold_millis: int = DEFAULT_EAGER_REFRESH_THRESHOLD_MILLIS,
    ):
        if eager_refresh_threshold_millis < 0:
            raise ValueError(
                f"eager_refresh_threshold_millis must be >= 0, got {eager_refresh_threshold_millis}"
            )
        self.eager_refresh_threshold_millis = eager_refresh_threshold_millis
        self.token: Optional[Token] = None
        self._lock = asyncio.Lock()

    def needs_refresh(self, now_millis: int) -> bool:
        if self.token is None:
            return True
        if self.token.expiry_epoch_millis is None:
            return False
        return now_millis + self.eager_refresh_threshold_millis >= self.token.expiry_epoch_millis

    def clear(self):
        self.token = None

    async def a_get(self, clock: Clock, a_refresh: Callable[[], Awaitable[Token]]) -> str:
        if not self.needs_refresh(clock.now_millis()):
            return self.token.access_token
        async with self._lock:
            # another caller may have refreshed while we waited
            if self.needs_refresh(clock.now_millis()):
                try:
                    token = await a_refresh()
                except TokenRefreshFailed:
                    raise
                except (GoogleAuthError, httpx.HTTPError, KeyError, ValueError, OSError) as e:
                    raise TokenRefreshFailed(f"failed to refresh access token: {e}") from e
                self.token = token
                logger.debug(f"access token refreshed, expires at {token.expiry_epoch_millis}")
            return self.token.access_token
