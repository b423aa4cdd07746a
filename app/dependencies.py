"""
app/dependencies.py — Process-wide service wiring for FastAPI routes
One store, one candidate pool and one selector per process; routes receive
them through Depends so tests can swap them via app.dependency_overrides.
"""
from __future__ import annotations

from functools import lru_cache

from fastapi import Depends

from app.clients.memory_store import InMemoryStore
from app.clients.store import KeyValueStore
from app.config import get_settings
from app.core.cache_manager import CandidatePool
from app.core.rate_limiter import RateLimiter, assignment_rate_limiter, prayer_rate_limiter
from app.services.assignment_selector import AssignmentSelector


@lru_cache()
def get_store() -> KeyValueStore:
    settings = get_settings()
    if settings.store_backend == "dynamodb":
        from app.clients.dynamodb_client import DynamoDBStore
        return DynamoDBStore()
    return InMemoryStore()


@lru_cache()
def get_candidate_pool() -> CandidatePool:
    return CandidatePool(fetch=get_store().query_active_candidates)


def get_selector(
    store: KeyValueStore = Depends(get_store),
    pool: CandidatePool = Depends(get_candidate_pool),
) -> AssignmentSelector:
    return AssignmentSelector(pool=pool, store=store)


def get_assign_limiter(store: KeyValueStore = Depends(get_store)) -> RateLimiter:
    return assignment_rate_limiter(store)


def get_pray_limiter(store: KeyValueStore = Depends(get_store)) -> RateLimiter:
    return prayer_rate_limiter(store)
