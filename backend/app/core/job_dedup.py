"""
Job-id de-duplication for background dispatch.

A job id may be claimed once per TTL window. The Redis implementation uses
``SET NX EX`` so that several beat processes (or a beat restart) never enqueue
the same job twice; the in-memory implementation serves tests and single
process development setups.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Dict, Optional, Protocol

from redis import Redis

from app.core.config import settings

logger = logging.getLogger(__name__)

_SYNC_REDIS: Optional[Redis] = None
_SYNC_REDIS_LOCK = threading.Lock()


def _dedup_key(job_id: str) -> str:
    return f"inskate:job:{job_id}"


def _get_sync_redis() -> Optional[Redis]:
    global _SYNC_REDIS
    if _SYNC_REDIS is not None:
        return _SYNC_REDIS
    with _SYNC_REDIS_LOCK:
        if _SYNC_REDIS is not None:
            return _SYNC_REDIS
        try:
            client = Redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            client.ping()
        except Exception as exc:
            logger.warning("job_dedup_redis_unavailable: %s", exc)
            return None
        _SYNC_REDIS = client
        return _SYNC_REDIS


class JobDeduplicator(Protocol):
    def claim(self, job_id: str, ttl_s: int) -> bool:
        """Return True if the caller now owns ``job_id``."""
        ...

    def release(self, job_id: str) -> None:
        ...


class RedisJobDeduplicator:
    """Redis-backed claims. Fails closed when Redis cannot be reached."""

    def __init__(self, client: Optional[Redis] = None) -> None:
        self._client = client

    def _redis(self) -> Optional[Redis]:
        return self._client if self._client is not None else _get_sync_redis()

    def claim(self, job_id: str, ttl_s: int) -> bool:
        client = self._redis()
        if client is None:
            # The row-level sent_at claim still prevents double delivery; skipping
            # the enqueue only delays it to the next beat.
            logger.warning("job_dedup_claim_skipped", extra={"job_id": job_id})
            return False
        try:
            return bool(client.set(_dedup_key(job_id), str(time.time()), nx=True, ex=ttl_s))
        except Exception as exc:
            logger.warning(
                "job_dedup_claim_failed",
                extra={
                    "job_id": job_id,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            return False

    def release(self, job_id: str) -> None:
        client = self._redis()
        if client is None:
            return
        try:
            client.delete(_dedup_key(job_id))
        except Exception as exc:
            logger.warning(
                "job_dedup_release_failed",
                extra={
                    "job_id": job_id,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )


class InMemoryJobDeduplicator:
    """Process-local claims with expiry."""

    def __init__(self) -> None:
        self._claims: Dict[str, float] = {}
        self._lock = threading.Lock()

    def claim(self, job_id: str, ttl_s: int) -> bool:
        now = time.monotonic()
        with self._lock:
            expires_at = self._claims.get(job_id)
            if expires_at is not None and expires_at > now:
                return False
            self._claims[job_id] = now + ttl_s
            return True

    def release(self, job_id: str) -> None:
        with self._lock:
            self._claims.pop(job_id, None)


_default_deduplicator: Optional[JobDeduplicator] = None


def get_job_deduplicator() -> JobDeduplicator:
    global _default_deduplicator
    if _default_deduplicator is None:
        if settings.is_testing:
            _default_deduplicator = InMemoryJobDeduplicator()
        else:
            _default_deduplicator = RedisJobDeduplicator()
    return _default_deduplicator


def set_job_deduplicator(deduplicator: Optional[JobDeduplicator]) -> None:
    """Override the process-wide deduplicator (tests)."""
    global _default_deduplicator
    _default_deduplicator = deduplicator
