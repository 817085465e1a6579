"""In-memory token slot for providers that exchange a secret per run."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from aitools_auth.auth.models.tokens import TOKEN_EXPIRY_BUFFER_SECS
from aitools_auth.auth.primitives.locks import ReadWriteLock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachedToken:
    token: str
    expires_at: float  # clock() timestamp

    def is_valid(self, buffer_seconds: float, now: float) -> bool:
        return now + buffer_seconds < self.expires_at


class MemoryTokenCache:
    """One token slot per provider instance.

    Reads are shared, writes exclusive. ``get()`` never returns a token whose
    remaining lifetime is below the buffer.
    """

    def __init__(
        self,
        buffer_seconds: float = TOKEN_EXPIRY_BUFFER_SECS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.buffer_seconds = buffer_seconds
        self._clock = clock
        self._lock = ReadWriteLock()
        self._cached: CachedToken | None = None

    async def get(self) -> str | None:
        async with self._lock.read():
            cached = self._cached
            if cached is not None and cached.is_valid(
                self.buffer_seconds, self._clock()
            ):
                return cached.token
        return None

    async def set(self, token: str, expires_in_secs: float) -> None:
        async with self._lock.write():
            self._cached = CachedToken(
                token=token, expires_at=self._clock() + expires_in_secs
            )
        logger.debug(f"Cached token in memory for {expires_in_secs:.0f}s")

    async def clear(self) -> None:
        async with self._lock.write():
            self._cached = None
