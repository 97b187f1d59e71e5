"""Best-effort response cache keyed by (prompt, persona, phase)."""

import hashlib
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable

from ideation.models import PersonaId, PhaseId

logger = logging.getLogger(__name__)


def cache_key(prompt: str, persona_id: PersonaId, phase_id: PhaseId) -> str:
    digest = hashlib.sha256(prompt.encode("utf-8")).hexdigest()
    return f"{phase_id.value}:{persona_id.value}:{digest}"


class ResponseCache(ABC):
    """Injected collaborator. Misses and failures must never block orchestration."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...


class TTLResponseCache(ResponseCache):
    """In-memory cache with per-entry expiry. The owner decides its lifetime."""

    def __init__(self, ttl_sec: float = 3600.0, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl_sec = ttl_sec
        self._clock = clock
        self._entries: dict[str, tuple[float, str]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            logger.debug("Cache miss: %s", key)
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            logger.debug("Cache expired: %s", key)
            return None
        logger.debug("Cache hit: %s", key)
        return value

    def set(self, key: str, value: str) -> None:
        self._entries[key] = (self._clock() + self._ttl_sec, value)

    def evict_expired(self) -> int:
        """Drop every expired entry; returns how many were removed."""
        now = self._clock()
        stale = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.debug("Evicted %d expired cache entries", len(stale))
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()
