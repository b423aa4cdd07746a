"""
app/core/rate_limiter.py — Rate limiting
Two layers:
  * slowapi per-IP limits on the read-only endpoints (in-process).
  * RateLimiter: store-backed fixed hourly windows per session and per IP,
    shared across instances, gating assignment requests and prayer
    submissions.

Windows are wall-clock hours, not sliding: a burst straddling the hour
boundary can be admitted up to twice the nominal limit.
"""
from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from loguru import logger
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.clients.store import KeyValueStore
from app.config import get_settings
from app.core.exceptions import StoreResourceMissingError
from app.core.logging import log_rate_limit
from app.models import RateLimitResult
from app.utils.timezone import epoch_seconds, hour_bucket, seconds_until_next_hour, utc_now

settings = get_settings()

# Single shared limiter instance — imported by main.py and routers
limiter = Limiter(key_func=get_remote_address)

# String values used as decorators on individual route handlers.
RATE_LIMITS = settings.route_limits

ASSIGN_NAMESPACE = ""
PRAY_NAMESPACE = "pray:"


class RateLimiter:
    """
    Fixed-window limiter over two independent counters per action:
    "<namespace>session:<session_id>" and "<namespace>ip:<ip_hash>".
    Exceeding either threshold denies the action.
    """

    def __init__(
        self,
        store: KeyValueStore,
        namespace: str = ASSIGN_NAMESPACE,
        session_limit: Optional[int] = None,
        ip_limit: Optional[int] = None,
        ttl_seconds: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.namespace = namespace
        self.session_limit = (
            session_limit if session_limit is not None else settings.rate_limit_session_per_hour
        )
        self.ip_limit = ip_limit if ip_limit is not None else settings.rate_limit_ip_per_hour
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.rate_limit_ttl_seconds
        self._clock = clock

    def session_identifier(self, session_id: str) -> str:
        return f"{self.namespace}session:{session_id}"

    def ip_identifier(self, ip_hash: str) -> str:
        return f"{self.namespace}ip:{ip_hash}"

    def _denied(self, now: datetime) -> RateLimitResult:
        return RateLimitResult(allowed=False, retry_after_seconds=seconds_until_next_hour(now))

    def _fail_open(self, exc: StoreResourceMissingError, operation: str) -> RateLimitResult:
        logger.warning(
            f"Rate limit store unavailable during {operation} "
            f"(namespace={self.namespace or 'assign'}): {exc}. Allowing request."
        )
        return RateLimitResult(allowed=True)

    def _evaluate(self, now: datetime, session_id: str, ip_hash: str) -> RateLimitResult:
        window = hour_bucket(now)
        session_count = self.store.get_counter(self.session_identifier(session_id), window)
        ip_count = self.store.get_counter(self.ip_identifier(ip_hash), window)
        if session_count >= self.session_limit or ip_count >= self.ip_limit:
            result = self._denied(now)
        else:
            result = RateLimitResult(allowed=True)
        log_rate_limit(
            self.namespace, window, result.allowed,
            session_count=session_count, ip_count=ip_count,
            retry_after_seconds=result.retry_after_seconds,
        )
        return result

    def check(self, session_id: str, ip_hash: str) -> RateLimitResult:
        """Read-only admission check against the current window."""
        now = self._clock()
        try:
            return self._evaluate(now, session_id, ip_hash)
        except StoreResourceMissingError as exc:
            return self._fail_open(exc, "check")

    def _increment(self, now: datetime, session_id: str, ip_hash: str) -> tuple[int, int]:
        window = hour_bucket(now)
        expires_at = epoch_seconds(now) + self.ttl_seconds
        # IP counter first: a failed session write spends only the shared IP slot
        ip_count = self.store.increment_counter(self.ip_identifier(ip_hash), window, expires_at)
        session_count = self.store.increment_counter(
            self.session_identifier(session_id), window, expires_at
        )
        return session_count, ip_count

    def consume(self, session_id: str, ip_hash: str) -> None:
        """Count one action against both counters without an admission check."""
        try:
            self._increment(self._clock(), session_id, ip_hash)
        except StoreResourceMissingError as exc:
            self._fail_open(exc, "consume")

    def check_and_consume(self, session_id: str, ip_hash: str) -> RateLimitResult:
        """
        Admission check, then atomic increments of both counters.
        The post-increment counts are re-checked, so concurrent requests
        racing for the last slot in a window cannot all be admitted.
        """
        now = self._clock()
        try:
            result = self._evaluate(now, session_id, ip_hash)
            if not result.allowed:
                return result
            session_count, ip_count = self._increment(now, session_id, ip_hash)
        except StoreResourceMissingError as exc:
            return self._fail_open(exc, "check_and_consume")

        if session_count > self.session_limit or ip_count > self.ip_limit:
            result = self._denied(now)
            log_rate_limit(
                self.namespace, hour_bucket(now), False,
                session_count=session_count, ip_count=ip_count,
                retry_after_seconds=result.retry_after_seconds,
            )
            return result
        return RateLimitResult(allowed=True)


def assignment_rate_limiter(store: KeyValueStore, **kwargs) -> RateLimiter:
    return RateLimiter(store, namespace=ASSIGN_NAMESPACE, **kwargs)


def prayer_rate_limiter(store: KeyValueStore, **kwargs) -> RateLimiter:
    return RateLimiter(store, namespace=PRAY_NAMESPACE, **kwargs)
