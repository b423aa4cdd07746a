"""
app/services/prayer_recorder.py — Prayer submission
Persists the prayer event, then bumps the person, assignment-priority and
cemetery counters. unique_prayed_for grows only on a person's first prayer,
decided from the atomic post-increment person count.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from app.clients.store import KeyValueStore
from app.config import get_settings
from app.core.logging import log_prayer_recorded
from app.models import DeceasedPerson, Prayer, PrayerType, PrayResponseMeta
from app.utils.timezone import ensure_utc, utc_now

settings = get_settings()


def record_prayer(
    store: KeyValueStore,
    person: DeceasedPerson,
    prayer_type: PrayerType,
    session_id: Optional[str] = None,
    ip_hash: Optional[str] = None,
    user_agent: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Prayer:
    created_at = ensure_utc(now) if now else utc_now()
    prayer = store.create_prayer(Prayer(
        person_id=person.person_id,
        cemetery_id=person.cemetery_id,
        prayer_type=prayer_type,
        session_id=session_id,
        ip_address_hash=ip_hash,
        user_agent=user_agent,
        created_at=created_at,
    ))

    new_count = store.increment_person_prayer_count(person.person_id, created_at)
    store.update_priority_stats(person.person_id, new_count, created_at)

    first_prayer = new_count == 1
    store.increment_cemetery_totals(
        person.cemetery_id,
        prayers=1,
        unique_prayed_for=1 if first_prayer else 0,
    )

    log_prayer_recorded(
        prayer.prayer_id,
        person.person_id,
        person.cemetery_id,
        prayer.prayer_type.value,
        first_prayer,
    )
    return prayer


def cooldown_meta(prayer: Prayer, cooldown_seconds: Optional[int] = None) -> PrayResponseMeta:
    """When the visitor may ask for the next assignment."""
    seconds = cooldown_seconds if cooldown_seconds is not None else settings.prayer_cooldown_seconds
    return PrayResponseMeta(
        cooldown_seconds=seconds,
        can_request_new_assignment_at=prayer.created_at + timedelta(seconds=seconds),
    )
