"""
tests/conftest.py — Shared pytest fixtures
"""
from __future__ import annotations

import random

import pytest
from fastapi.testclient import TestClient

from app.clients.memory_store import InMemoryStore
from app.core.cache_manager import CandidatePool
from app.core.rate_limiter import limiter
from app.dependencies import get_candidate_pool, get_store
from app.main import app
from app.models import (
    Cemetery,
    CreateCemeteryRequest,
    CreateDeceasedRequest,
    PersonRole,
)
from app.services.registry import register_cemetery, register_deceased
from tests.helpers import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def cemetery(store) -> Cemetery:
    return register_cemetery(store, CreateCemeteryRequest(
        name="Holy Spirit Cemetery",
        city="Atlanta",
        state="GA",
        zip_code="30305",
        latitude=33.749,
        longitude=-84.388,
        archdiocese="Atlanta",
    ))


@pytest.fixture
def people(store, cemetery):
    """Three registered priests at the fixture cemetery."""
    return [
        register_deceased(store, CreateDeceasedRequest(
            first_name=name,
            last_initial=initial,
            year_of_death=year,
            role=PersonRole.PRIEST,
            cemetery_id=cemetery.cemetery_id,
        ))
        for name, initial, year in [("John", "D", 1987), ("Michael", "S", 1992), ("Thomas", "B", 2003)]
    ]


@pytest.fixture
def pool(store, clock) -> CandidatePool:
    return CandidatePool(
        fetch=store.query_active_candidates,
        ttl_seconds=600,
        low_watermark=10,
        fetch_limit=100,
        clock=clock,
    )


@pytest.fixture
def client(store, pool):
    """TestClient wired to the fixture store; slowapi counters start empty."""
    limiter.reset()
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_candidate_pool] = lambda: pool
    yield TestClient(app)
    app.dependency_overrides.clear()
