"""
app/core/cache_manager.py — In-memory assignment candidate cache
A bounded snapshot of active AssignmentPriority records, refreshed on a TTL
or when the pool falls below a low-watermark. Refresh swaps in a new tuple;
an existing snapshot is never mutated, so a reader holding the old one is
unaffected by a concurrent refresh.
"""
from __future__ import annotations

import time
from typing import Callable, Optional

from app.config import get_settings
from app.core.logging import log_cache_refresh
from app.models import AssignmentPriority

CandidateFetcher = Callable[[int], list[AssignmentPriority]]


class CandidatePool:
    def __init__(
        self,
        fetch: CandidateFetcher,
        ttl_seconds: Optional[float] = None,
        low_watermark: Optional[int] = None,
        fetch_limit: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        settings = get_settings()
        self._fetch = fetch
        self._clock = clock
        self.ttl_seconds = (
            ttl_seconds if ttl_seconds is not None else settings.assignment_cache_ttl_seconds
        )
        self.low_watermark = (
            low_watermark if low_watermark is not None else settings.assignment_pool_low_watermark
        )
        self.fetch_limit = (
            fetch_limit if fetch_limit is not None else settings.assignment_candidate_limit
        )
        self._candidates: tuple[AssignmentPriority, ...] = ()
        self.refreshed_at: Optional[float] = None

    @property
    def candidates(self) -> tuple[AssignmentPriority, ...]:
        """Current snapshot, without any freshness check."""
        return self._candidates

    def __len__(self) -> int:
        return len(self._candidates)

    def stale_reason(self) -> Optional[str]:
        """Return why the pool needs a refresh, or None if it is fresh."""
        if self.refreshed_at is None:
            return "cold_start"
        if self._clock() - self.refreshed_at > self.ttl_seconds:
            return "ttl_expired"
        if len(self._candidates) < self.low_watermark:
            return "low_watermark"
        return None

    def is_stale(self) -> bool:
        return self.stale_reason() is not None

    def refresh(self, reason: str = "manual") -> tuple[AssignmentPriority, ...]:
        """
        Fetch active candidates and replace the snapshot.
        Fetch errors propagate; the previous snapshot stays in place.
        """
        started = self._clock()
        fetched = self._fetch(self.fetch_limit)
        snapshot = tuple(c for c in fetched if c.is_active)
        self._candidates = snapshot
        self.refreshed_at = self._clock()
        log_cache_refresh(len(snapshot), reason, (self.refreshed_at - started) * 1000)
        return snapshot

    def get(self) -> tuple[AssignmentPriority, ...]:
        """Return a fresh snapshot, refreshing first when stale."""
        reason = self.stale_reason()
        if reason is not None:
            return self.refresh(reason)
        return self._candidates
