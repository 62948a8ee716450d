"""Client-side cache of started attempts, used to resume after a reload.

Each entry holds the exact start-attempt payload plus the time it was cached,
JSON-serialized under `{prefix}:{attempt_id}`. Two backends:
- `MemoryAttemptCache`: per-process dict (the browser session-storage analogue).
- `RedisAttemptCache`: shared redis keys with a TTL, for runners that restart.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Dict, Optional

import redis
from pydantic import ValidationError

from packages.common.config import Settings, get_settings
from packages.schemas.assessment import StartAttemptPayload

log = logging.getLogger("beelearn.assessment.cache")

DEFAULT_PREFIX = "beelearn-attempt"


class CacheEntryError(Exception):
    """A cached attempt exists but cannot be decoded."""


class AttemptCache:
    """Base cache: JSON entry handling and staleness; subclasses store strings."""

    def __init__(self, prefix: str = DEFAULT_PREFIX, ttl_seconds: int = 0, clock: Callable[[], float] = time.time) -> None:
        """Args:
            prefix: Key namespace.
            ttl_seconds: Entries older than this are misses (and evicted); 0 keeps them forever.
            clock: Epoch-seconds clock (injectable for tests).
        """
        self.prefix = prefix
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def key(self, attempt_id: str) -> str:
        """Namespaced key for an attempt id."""
        return f"{self.prefix}:{attempt_id}"

    # storage primitives
    def _get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def _set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def _delete(self, key: str) -> None:
        raise NotImplementedError

    def store(self, payload: StartAttemptPayload) -> None:
        """Cache a start-attempt payload under its attempt id."""
        entry = {"cachedAt": self._clock(), "payload": payload.model_dump(by_alias=True, mode="json")}
        self._set(self.key(payload.attempt_id), json.dumps(entry, ensure_ascii=False, separators=(",", ":")))

    def load(self, attempt_id: str) -> Optional[StartAttemptPayload]:
        """Return the cached payload, or None on a miss or a stale entry.

        Raises:
            CacheEntryError: The entry exists but is not a valid cached attempt.
        """
        k = self.key(attempt_id)
        raw = self._get(k)
        if raw is None:
            return None
        try:
            entry = json.loads(raw)
            cached_at = float(entry.get("cachedAt", 0))
            payload = StartAttemptPayload.model_validate(entry["payload"])
        except (ValueError, TypeError, KeyError, AttributeError, ValidationError) as e:
            raise CacheEntryError(f"Cached attempt {attempt_id} is unreadable.") from e

        if self.ttl_seconds and self._clock() - cached_at > self.ttl_seconds:
            log.info("Evicting stale cached attempt %s", attempt_id)
            self._delete(k)
            return None
        if payload.attempt_id != attempt_id:
            raise CacheEntryError(f"Cached attempt {attempt_id} holds attempt {payload.attempt_id}.")
        return payload

    def evict(self, attempt_id: str) -> None:
        """Drop a cached attempt (no-op when absent)."""
        self._delete(self.key(attempt_id))


class MemoryAttemptCache(AttemptCache):
    """In-process cache backed by a dict."""

    def __init__(self, prefix: str = DEFAULT_PREFIX, ttl_seconds: int = 0, clock: Callable[[], float] = time.time) -> None:
        super().__init__(prefix, ttl_seconds, clock)
        self.entries: Dict[str, str] = {}

    def _get(self, key: str) -> Optional[str]:
        return self.entries.get(key)

    def _set(self, key: str, value: str) -> None:
        self.entries[key] = value

    def _delete(self, key: str) -> None:
        self.entries.pop(key, None)


class RedisAttemptCache(AttemptCache):
    """Redis-backed cache; entries also expire server-side after the TTL."""

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        prefix: str = DEFAULT_PREFIX,
        ttl_seconds: int = 0,
        client: Any = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Args:
            url: Redis connection URL (ignored when `client` is given).
            prefix: Key namespace.
            ttl_seconds: Entry lifetime; 0 stores without expiry.
            client: Pre-built redis client (decode_responses=True).
        """
        super().__init__(prefix, ttl_seconds, clock)
        self._r = client if client is not None else redis.from_url(url, decode_responses=True)

    def _get(self, key: str) -> Optional[str]:
        val = self._r.get(key)
        if isinstance(val, bytes):
            return val.decode("utf-8")
        return val

    def _set(self, key: str, value: str) -> None:
        if self.ttl_seconds:
            self._r.setex(key, self.ttl_seconds, value)
        else:
            self._r.set(key, value)

    def _delete(self, key: str) -> None:
        self._r.delete(key)


def cache_from_settings(settings: Optional[Settings] = None) -> AttemptCache:
    """Redis cache when `REDIS_URL` is set, in-memory otherwise."""
    s = settings or get_settings()
    if s.REDIS_URL:
        return RedisAttemptCache(s.REDIS_URL, prefix=s.ATTEMPT_CACHE_PREFIX, ttl_seconds=s.ATTEMPT_CACHE_TTL_SECONDS)
    return MemoryAttemptCache(prefix=s.ATTEMPT_CACHE_PREFIX, ttl_seconds=s.ATTEMPT_CACHE_TTL_SECONDS)
