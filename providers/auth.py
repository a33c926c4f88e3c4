# providers/auth.py
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from providers.exceptions import AuthRateLimitExceeded

log = logging.getLogger(__name__)

TOKEN_BUFFER = timedelta(minutes=2)
AUTH_COOLDOWN = timedelta(seconds=300)  # CJ: 1 auth call / 300 s


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class TokenCacheState:
    access_token: Optional[str] = None
    token_expiry: Optional[datetime] = None
    last_auth_request: Optional[datetime] = None


@dataclass(frozen=True)
class TokenGrant:
    access_token: str
    expires_at: Optional[datetime] = None
    refresh_token: Optional[str] = None
    refresh_expires_at: Optional[datetime] = None


class AuthTokenCache:
    """
    Holds the supplier bearer token and decides when we may ask for a new one.

    The supplier locks accounts that hit the auth endpoint more than once per
    cooldown window, so a second request inside the window is refused here
    instead of being sent.
    """

    def __init__(
        self,
        state: Optional[TokenCacheState] = None,
        *,
        buffer: timedelta = TOKEN_BUFFER,
        cooldown: timedelta = AUTH_COOLDOWN,
        now: Callable[[], datetime] = _utcnow,
        on_change: Optional[Callable[[TokenCacheState], None]] = None,
    ):
        self.state = state or TokenCacheState()
        self.buffer = buffer
        self.cooldown = cooldown
        self._now = now
        self._on_change = on_change
        self._lock = threading.Lock()

    def _is_fresh(self, now: datetime) -> bool:
        if not self.state.access_token:
            return False
        if self.state.token_expiry is None:
            return True
        return now < self.state.token_expiry - self.buffer

    def get_token(self, request_token: Callable[[], TokenGrant]) -> str:
        with self._lock:
            now = self._now()
            if self._is_fresh(now):
                return self.state.access_token  # type: ignore[return-value]

            last = self.state.last_auth_request
            if last is not None and now - last < self.cooldown:
                wait = int((self.cooldown - (now - last)).total_seconds())
                raise AuthRateLimitExceeded(
                    f"Auth cooldown active, next token request allowed in {wait}s"
                )

            self.state.last_auth_request = now
            try:
                grant = request_token()
                self.state.access_token = grant.access_token
                self.state.token_expiry = grant.expires_at
                log.info("auth.token_received expires=%s", grant.expires_at)
            finally:
                if self._on_change:
                    self._on_change(self.state)
            return grant.access_token

    def invalidate(self) -> None:
        with self._lock:
            self.state.access_token = None
            self.state.token_expiry = None


_caches: Dict[str, AuthTokenCache] = {}
_caches_lock = threading.Lock()


def token_cache_for(
    key: str,
    *,
    seed: Optional[TokenCacheState] = None,
    on_change: Optional[Callable[[TokenCacheState], None]] = None,
) -> AuthTokenCache:
    """
    One cache per supplier account for the whole process. `seed` (tokens
    persisted on the account) is only used the first time.
    """
    key = (key or "").lower()
    with _caches_lock:
        cache = _caches.get(key)
        if cache is None:
            cache = AuthTokenCache(seed, on_change=on_change)
            _caches[key] = cache
        elif on_change is not None:
            cache._on_change = on_change
        return cache


def reset_token_caches() -> None:
    with _caches_lock:
        _caches.clear()
