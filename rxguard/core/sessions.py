"""Session repositories and the session authenticator.

A session repository maps an opaque session key to an actor id with a TTL.
Repositories are injected wherever they are needed; there is no
process-wide session map. Issuing keys and verifying credentials belong to
the surrounding authentication layer.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple

import redis

from rxguard.core.config import get_settings
from rxguard.core.errors import AuthenticationError, NotFoundError, ValidationError
from rxguard.core.rbac.actor import Actor
from rxguard.core.store import ActorStore

logger = logging.getLogger(__name__)


def _ttl(ttl: Optional[int], default: int) -> int:
    ttl = default if ttl is None else ttl
    if ttl <= 0:
        raise ValidationError(f"Session TTL must be positive, got {ttl}", code="INVALID_TTL")
    return ttl


class SessionRepository(ABC):
    """Key-value store of session key -> actor id."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Actor id for a live session, or ``None`` if missing or expired."""

    @abstractmethod
    def put(self, key: str, actor_id: str, ttl: Optional[int] = None) -> None:
        """Bind ``key`` to ``actor_id`` for ``ttl`` seconds (settings default)."""

    @abstractmethod
    def expire(self, key: str) -> bool:
        """Drop a session. Returns True if it existed."""


class InMemorySessionRepository(SessionRepository):
    """Single-process repository, mainly for tests and embedded use."""

    def __init__(self, default_ttl: Optional[int] = None, clock: Callable[[], float] = time.monotonic):
        self.default_ttl = _ttl(default_ttl, get_settings().session_ttl_seconds)
        self._clock = clock
        self._sessions: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._sessions.get(key)
            if entry is None:
                return None
            actor_id, expires_at = entry
            if self._clock() >= expires_at:
                del self._sessions[key]
                return None
            return actor_id

    def put(self, key: str, actor_id: str, ttl: Optional[int] = None) -> None:
        ttl = _ttl(ttl, self.default_ttl)
        with self._lock:
            self._sessions[key] = (actor_id, self._clock() + ttl)

    def expire(self, key: str) -> bool:
        with self._lock:
            return self._sessions.pop(key, None) is not None


class RedisSessionRepository(SessionRepository):
    """Redis-backed repository shared across processes."""

    def __init__(
        self,
        client: Optional[redis.Redis] = None,
        *,
        key_prefix: Optional[str] = None,
        default_ttl: Optional[int] = None,
    ):
        settings = get_settings()
        self.client = client or redis.Redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        self.key_prefix = key_prefix if key_prefix is not None else settings.session_key_prefix
        self.default_ttl = _ttl(default_ttl, settings.session_ttl_seconds)

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def get(self, key: str) -> Optional[str]:
        value = self.client.get(self._key(key))
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    def put(self, key: str, actor_id: str, ttl: Optional[int] = None) -> None:
        self.client.setex(self._key(key), _ttl(ttl, self.default_ttl), actor_id)

    def expire(self, key: str) -> bool:
        return bool(self.client.delete(self._key(key)))


class SessionAuthenticator:
    """Resolves a session key into a fresh actor snapshot."""

    def __init__(self, sessions: SessionRepository, store: ActorStore):
        self.sessions = sessions
        self.store = store

    def authenticate(self, session_key: Optional[str]) -> Actor:
        """
        Raises:
            AuthenticationError: If the session is missing, expired, or its
                actor no longer exists or is inactive
        """
        if not session_key:
            raise AuthenticationError()

        actor_id = self.sessions.get(session_key)
        if actor_id is None:
            raise AuthenticationError("Session expired or invalid")

        try:
            actor = self.store.get_by_id(actor_id)
        except NotFoundError:
            logger.warning(f"Session references missing actor {actor_id}; expiring it")
            self.sessions.expire(session_key)
            raise AuthenticationError("Session expired or invalid") from None

        if not actor.is_active:
            raise AuthenticationError("Account is disabled")
        return actor
