"""
app/clients/store.py — Key-value store contract
Every repository operation the services need, expressed as a Protocol so the
DynamoDB adapter and the in-process store are interchangeable.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Protocol, runtime_checkable

from app.models import AssignmentPriority, Cemetery, DeceasedPerson, PersonRole, Prayer


@runtime_checkable
class KeyValueStore(Protocol):

    # ── Deceased ──────────────────────────────────────────────────────────────
    def get_person(self, person_id: str) -> Optional[DeceasedPerson]:
        """Return the person, or None when missing or soft-deleted."""
        ...

    def create_person(self, person: DeceasedPerson) -> DeceasedPerson: ...

    def soft_delete_person(self, person_id: str, deleted_at: datetime) -> bool: ...

    def update_person(self, person_id: str, updates: dict[str, Any]) -> Optional[DeceasedPerson]:
        """Apply field updates to a live person; None when missing or soft-deleted."""
        ...

    def list_people_by_cemetery(self, cemetery_id: str) -> list[DeceasedPerson]: ...

    def increment_person_prayer_count(self, person_id: str, prayed_at: datetime) -> int:
        """Atomically add one prayer to the person and return the new count."""
        ...

    # ── Cemeteries ────────────────────────────────────────────────────────────
    def get_cemetery(self, cemetery_id: str) -> Optional[Cemetery]: ...

    def create_cemetery(self, cemetery: Cemetery) -> Cemetery: ...

    def list_cemeteries_by_archdiocese(self, archdiocese: str) -> list[Cemetery]: ...

    def increment_cemetery_totals(
        self,
        cemetery_id: str,
        prayers: int = 0,
        unique_prayed_for: int = 0,
        deceased: int = 0,
    ) -> None: ...

    # ── Prayers ───────────────────────────────────────────────────────────────
    def create_prayer(self, prayer: Prayer) -> Prayer: ...

    def get_prayer(self, prayer_id: str) -> Optional[Prayer]: ...

    def list_prayers_by_person(self, person_id: str, limit: int = 10) -> list[Prayer]: ...

    def list_prayers_by_cemetery(self, cemetery_id: str, limit: int = 5) -> list[Prayer]:
        """Newest first."""
        ...

    # ── Assignment priority ───────────────────────────────────────────────────
    def get_priority(self, person_id: str) -> Optional[AssignmentPriority]: ...

    def put_priority(self, record: AssignmentPriority) -> None: ...

    def update_priority_stats(
        self,
        person_id: str,
        prayer_count: int,
        last_prayed_at: datetime,
    ) -> None:
        """Raise the stored count to `prayer_count`; never lowers it."""
        ...

    def set_priority_active(self, person_id: str, is_active: bool) -> None: ...

    def update_priority_placement(self, person_id: str, cemetery_id: str, role: PersonRole) -> None:
        """Move the record to another cemetery or role, leaving its counts alone."""
        ...

    def query_active_candidates(self, limit: int = 100) -> list[AssignmentPriority]:
        """Active records only, order unspecified, at most `limit`."""
        ...

    # ── Rate-limit counters ───────────────────────────────────────────────────
    def get_counter(self, identifier: str, window_key: str) -> int: ...

    def increment_counter(self, identifier: str, window_key: str, expires_at: int) -> int:
        """Atomic add-one-and-return, stamping `expires_at`."""
        ...
