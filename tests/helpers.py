"""
tests/helpers.py — Test doubles shared across test modules
"""
from __future__ import annotations

import uuid
from typing import Optional

from app.models import AssignmentPriority, PersonRole


class FakeClock:
    """Monotonic clock stand-in that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_candidate(
    prayer_count: int = 0,
    is_active: bool = True,
    person_id: Optional[str] = None,
) -> AssignmentPriority:
    return AssignmentPriority(
        person_id=person_id or str(uuid.uuid4()),
        prayer_count=prayer_count,
        cemetery_id=str(uuid.uuid4()),
        role=PersonRole.PRIEST,
        is_active=is_active,
    )
