"""
app/services/assignment_selector.py — Weighted prayer assignment
Implements: low-count branch (70%: uniform over the 10 least-prayed-for
candidates) and exploration branch (30%: uniform over the whole pool),
then resolution of the chosen candidate to its person record.
"""
from __future__ import annotations

import random
from typing import NamedTuple, Optional, Sequence

from app.clients.store import KeyValueStore
from app.config import get_settings
from app.core.cache_manager import CandidatePool
from app.core.exceptions import AssignmentConsistencyError
from app.core.logging import log_assignment
from app.models import AssignmentPriority, DeceasedPerson

BRANCH_LOW_COUNT = "low_count"
BRANCH_EXPLORATION = "exploration"


class Selection(NamedTuple):
    candidate: AssignmentPriority
    branch: str


def low_count_subset(
    candidates: Sequence[AssignmentPriority],
    subset_size: int,
) -> list[AssignmentPriority]:
    """The `subset_size` least-prayed-for candidates, ascending by count."""
    ordered = sorted(candidates, key=lambda c: c.prayer_count)
    return ordered[:min(subset_size, len(ordered))]


class AssignmentSelector:
    def __init__(
        self,
        pool: CandidatePool,
        store: KeyValueStore,
        rng: Optional[random.Random] = None,
        low_count_probability: Optional[float] = None,
        subset_size: Optional[int] = None,
    ) -> None:
        settings = get_settings()
        self.pool = pool
        self.store = store
        self.rng = rng or random.Random()
        self.low_count_probability = (
            low_count_probability
            if low_count_probability is not None
            else settings.assignment_low_count_probability
        )
        self.subset_size = (
            subset_size if subset_size is not None else settings.assignment_low_count_subset_size
        )

    def choose(self, candidates: Sequence[AssignmentPriority]) -> Optional[Selection]:
        """
        Pick one active candidate from `candidates`.
        Returns None when there is nothing active to pick.
        """
        active = [c for c in candidates if c.is_active]
        if not active:
            return None

        if self.rng.random() < self.low_count_probability:
            subset = low_count_subset(active, self.subset_size)
            return Selection(self.rng.choice(subset), BRANCH_LOW_COUNT)
        return Selection(self.rng.choice(active), BRANCH_EXPLORATION)

    def select_candidate(self) -> Optional[Selection]:
        """Choose from a fresh pool. Store errors during refresh propagate."""
        return self.choose(self.pool.get())

    def assign(self) -> Optional[DeceasedPerson]:
        """
        Select a candidate and resolve it to the full person record.
        None means no candidates. A candidate whose person is missing or
        soft-deleted raises AssignmentConsistencyError; no second pick is made.
        """
        selection = self.select_candidate()
        if selection is None:
            log_assignment(None, None, len(self.pool))
            return None

        person = self.store.get_person(selection.candidate.person_id)
        if person is None:
            raise AssignmentConsistencyError(selection.candidate.person_id)

        log_assignment(person.person_id, selection.branch, len(self.pool))
        return person
