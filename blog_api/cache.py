import json
import logging

import redis.asyncio as redis

from blog_api.config import settings

logger = logging.getLogger(__name__)

# session.info key holding article names written in the open transaction.
_PENDING_KEY = "blog_api.stale_articles"


class CacheManager:
    """
    Cache-aside manager backed by Redis.

    All public methods are safe to call even when Redis is unavailable:
    read operations return None and write operations are skipped, so the
    application degrades to direct database reads.  The same connection
    is used to look up identity sessions written by the auth service.
    """

    def __init__(self) -> None:
        self._redis: redis.Redis | None = None
        self._hits: int = 0
        self._misses: int = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the connection pool.  Called once at application startup."""
        self._redis = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await self._redis.ping()
            logger.info("Redis connected: %s", settings.REDIS_URL)
        except Exception as exc:  # pragma: no cover
            logger.warning("Redis ping failed, cache disabled: %s", exc)

    async def disconnect(self) -> None:
        """Close the connection pool.  Called once at application shutdown."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    # ------------------------------------------------------------------
    # Core cache operations
    # ------------------------------------------------------------------

    async def get(self, key: str) -> dict | list | None:
        """Return the cached value for *key*, or None on a miss / error."""
        if not self._redis:
            self._misses += 1
            return None
        try:
            data = await self._redis.get(key)
            if data is not None:
                self._hits += 1
                return json.loads(data)
            self._misses += 1
            return None
        except Exception as exc:
            logger.debug("Cache GET error for key=%r: %s", key, exc)
            self._misses += 1
            return None

    async def set(self, key: str, value: dict | list, ttl: int | None = None) -> None:
        """
        Persist *value* under *key* with an optional TTL (seconds).

        Failures are logged and dropped; a cache write never breaks a request.
        """
        if not self._redis:
            return
        try:
            serialised = json.dumps(value, default=str)
            await self._redis.set(key, serialised, ex=ttl)
        except Exception as exc:
            logger.debug("Cache SET error for key=%r: %s", key, exc)

    async def delete_pattern(self, pattern: str) -> None:
        """Delete all keys matching *pattern* using SCAN (avoids blocking KEYS)."""
        if not self._redis:
            return
        try:
            keys: list[str] = []
            async for key in self._redis.scan_iter(match=pattern):
                keys.append(key)
            if keys:
                await self._redis.delete(*keys)
                logger.debug("Cache invalidated %d key(s) matching %r", len(keys), pattern)
        except Exception as exc:
            logger.debug("Cache DELETE_PATTERN error for pattern=%r: %s", pattern, exc)

    async def get_session(self, token: str) -> dict | None:
        """
        Return the raw session record the auth service stored for *token*.

        Session lookups bypass the hit/miss counters, which describe the
        article cache only.
        """
        if not self._redis:
            return None
        try:
            data = await self._redis.get(f"{settings.SESSION_KEY_PREFIX}{token}")
        except Exception as exc:
            logger.warning("Session lookup failed: %s", exc)
            return None
        if data is None:
            return None
        try:
            return json.loads(data)
        except ValueError:
            logger.warning("Discarding malformed session record")
            return None

    # ------------------------------------------------------------------
    # Domain-level invalidation helpers
    # ------------------------------------------------------------------

    def invalidate_on_commit(self, session, name: str) -> None:
        """
        Queue *name* for invalidation once *session* commits.

        The keys are purged by ``invalidate_committed`` once the
        transaction has committed, never while it is still open.
        """
        session.info.setdefault(_PENDING_KEY, set()).add(name)

    async def invalidate_committed(self, session) -> None:
        """
        Purge caches made stale by the transaction *session* just committed.

        Every listing goes (drafts, counters and ordering may all have
        changed), plus the cached aggregate of each queued article.
        """
        names = session.info.pop(_PENDING_KEY, set())
        if not names:
            return
        await self.delete_pattern("articles:list:*")
        for name in sorted(names):
            await self.delete_pattern(f"articles:detail:{name}")

    def discard_pending(self, session) -> None:
        session.info.pop(_PENDING_KEY, None)

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    @property
    def stats(self) -> dict:
        """Return a snapshot of hit/miss counters for metrics endpoints."""
        total = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }


# Module-level singleton shared across all request handlers.
cache = CacheManager()
