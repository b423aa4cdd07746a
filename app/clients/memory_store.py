"""
app/clients/memory_store.py — In-process KeyValueStore
Used for local development (STORE_BACKEND=memory) and tests. Every read and
write of the tables happens under one lock: counter increments are atomic and
listing never races a concurrent insert. Rate-limit counters past their
retention are pruned on increment.
"""
from __future__ import annotations

import threading
from datetime import datetime
from typing import Any, Optional

from app.config import get_settings
from app.models import (
    AssignmentPriority,
    Cemetery,
    DeceasedPerson,
    PersonRole,
    Prayer,
    RateLimitCounter,
)
from app.utils.timezone import utc_now


class InMemoryStore:
    def __init__(self, counter_retention_seconds: Optional[int] = None) -> None:
        self.counter_retention_seconds = (
            counter_retention_seconds
            if counter_retention_seconds is not None
            else get_settings().rate_limit_ttl_seconds
        )
        self._lock = threading.Lock()
        self._people: dict[str, DeceasedPerson] = {}
        self._cemeteries: dict[str, Cemetery] = {}
        self._prayers: dict[str, Prayer] = {}
        self._priority: dict[str, AssignmentPriority] = {}
        self._counters: dict[tuple[str, str], RateLimitCounter] = {}

    # ── Deceased ──────────────────────────────────────────────────────────────

    def get_person(self, person_id: str) -> Optional[DeceasedPerson]:
        person = self._people.get(person_id)
        if person is None or person.deleted_at is not None:
            return None
        return person.model_copy()

    def create_person(self, person: DeceasedPerson) -> DeceasedPerson:
        with self._lock:
            self._people[person.person_id] = person.model_copy()
        return person

    def soft_delete_person(self, person_id: str, deleted_at: datetime) -> bool:
        with self._lock:
            person = self._people.get(person_id)
            if person is None or person.deleted_at is not None:
                return False
            self._people[person_id] = person.model_copy(
                update={"deleted_at": deleted_at, "updated_at": deleted_at}
            )
        return True

    def update_person(self, person_id: str, updates: dict[str, Any]) -> Optional[DeceasedPerson]:
        with self._lock:
            person = self._people.get(person_id)
            if person is None or person.deleted_at is not None:
                return None
            updated = person.model_copy(update={**updates, "updated_at": utc_now()})
            self._people[person_id] = updated
        return updated.model_copy()

    def list_people_by_cemetery(self, cemetery_id: str) -> list[DeceasedPerson]:
        with self._lock:
            rows = list(self._people.values())
        return [
            p.model_copy() for p in rows
            if p.cemetery_id == cemetery_id and p.deleted_at is None
        ]

    def increment_person_prayer_count(self, person_id: str, prayed_at: datetime) -> int:
        with self._lock:
            person = self._people.get(person_id)
            if person is None:
                raise KeyError(person_id)
            updated = person.model_copy(update={
                "prayer_count": person.prayer_count + 1,
                "last_prayed_at": prayed_at,
                "updated_at": prayed_at,
            })
            self._people[person_id] = updated
            return updated.prayer_count

    # ── Cemeteries ────────────────────────────────────────────────────────────

    def get_cemetery(self, cemetery_id: str) -> Optional[Cemetery]:
        cemetery = self._cemeteries.get(cemetery_id)
        if cemetery is None or cemetery.deleted_at is not None:
            return None
        return cemetery.model_copy()

    def create_cemetery(self, cemetery: Cemetery) -> Cemetery:
        with self._lock:
            self._cemeteries[cemetery.cemetery_id] = cemetery.model_copy()
        return cemetery

    def list_cemeteries_by_archdiocese(self, archdiocese: str) -> list[Cemetery]:
        with self._lock:
            rows = list(self._cemeteries.values())
        return [
            c.model_copy() for c in rows
            if c.archdiocese == archdiocese and c.deleted_at is None
        ]

    def increment_cemetery_totals(
        self,
        cemetery_id: str,
        prayers: int = 0,
        unique_prayed_for: int = 0,
        deceased: int = 0,
    ) -> None:
        with self._lock:
            cemetery = self._cemeteries.get(cemetery_id)
            if cemetery is None:
                raise KeyError(cemetery_id)
            self._cemeteries[cemetery_id] = cemetery.model_copy(update={
                "total_prayers": cemetery.total_prayers + prayers,
                "unique_prayed_for": cemetery.unique_prayed_for + unique_prayed_for,
                "total_deceased": cemetery.total_deceased + deceased,
                "updated_at": utc_now(),
            })

    # ── Prayers ───────────────────────────────────────────────────────────────

    def create_prayer(self, prayer: Prayer) -> Prayer:
        with self._lock:
            self._prayers[prayer.prayer_id] = prayer.model_copy()
        return prayer

    def get_prayer(self, prayer_id: str) -> Optional[Prayer]:
        prayer = self._prayers.get(prayer_id)
        if prayer is None or prayer.deleted_at is not None:
            return None
        return prayer.model_copy()

    def _newest_prayers(self, field: str, value: str, limit: int) -> list[Prayer]:
        with self._lock:
            rows = list(self._prayers.values())
        matches = [
            p for p in rows
            if getattr(p, field) == value and p.deleted_at is None
        ]
        matches.sort(key=lambda p: p.created_at, reverse=True)
        return [p.model_copy() for p in matches[:limit]]

    def list_prayers_by_person(self, person_id: str, limit: int = 10) -> list[Prayer]:
        return self._newest_prayers("person_id", person_id, limit)

    def list_prayers_by_cemetery(self, cemetery_id: str, limit: int = 5) -> list[Prayer]:
        return self._newest_prayers("cemetery_id", cemetery_id, limit)

    # ── Assignment priority ───────────────────────────────────────────────────

    def get_priority(self, person_id: str) -> Optional[AssignmentPriority]:
        record = self._priority.get(person_id)
        return record.model_copy() if record else None

    def put_priority(self, record: AssignmentPriority) -> None:
        with self._lock:
            self._priority[record.person_id] = record.model_copy()

    def update_priority_stats(
        self,
        person_id: str,
        prayer_count: int,
        last_prayed_at: datetime,
    ) -> None:
        with self._lock:
            record = self._priority.get(person_id)
            if record is None or record.prayer_count >= prayer_count:
                return
            self._priority[person_id] = record.model_copy(update={
                "prayer_count": prayer_count,
                "last_prayed_at": last_prayed_at,
            })

    def set_priority_active(self, person_id: str, is_active: bool) -> None:
        with self._lock:
            record = self._priority.get(person_id)
            if record is not None:
                self._priority[person_id] = record.model_copy(update={"is_active": is_active})

    def update_priority_placement(self, person_id: str, cemetery_id: str, role: PersonRole) -> None:
        with self._lock:
            record = self._priority.get(person_id)
            if record is not None:
                self._priority[person_id] = record.model_copy(
                    update={"cemetery_id": cemetery_id, "role": role}
                )

    def query_active_candidates(self, limit: int = 100) -> list[AssignmentPriority]:
        with self._lock:
            rows = list(self._priority.values())
        active = [r.model_copy() for r in rows if r.is_active]
        return active[:limit]

    # ── Rate-limit counters ───────────────────────────────────────────────────

    def get_counter(self, identifier: str, window_key: str) -> int:
        counter = self._counters.get((identifier, window_key))
        return counter.request_count if counter is not None else 0

    def increment_counter(self, identifier: str, window_key: str, expires_at: int) -> int:
        key = (identifier, window_key)
        with self._lock:
            self._prune_counters(expires_at - self.counter_retention_seconds)
            counter = self._counters.get(key)
            count = counter.request_count if counter is not None else 0
            self._counters[key] = RateLimitCounter(
                identifier=identifier,
                window_key=window_key,
                request_count=count + 1,
                expires_at=expires_at,
            )
            return count + 1

    def _prune_counters(self, now: int) -> None:
        """Drop counters whose expiry stamp is at or before `now`. Caller holds the lock."""
        expired = [key for key, counter in self._counters.items() if counter.expires_at <= now]
        for key in expired:
            del self._counters[key]
