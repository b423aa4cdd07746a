"""
tests/test_prayer_recorder.py — Unit tests for prayer submission bookkeeping
"""
from __future__ import annotations

from datetime import datetime, timedelta

from app.models import PrayerType
from app.services.prayer_recorder import cooldown_meta, record_prayer
from app.utils.timezone import UTC, utc_now


def test_first_prayer_updates_all_counters(store, cemetery, people):
    person = people[0]
    prayed_at = datetime(2024, 1, 15, 10, 0, 0, tzinfo=UTC)

    prayer = record_prayer(store, person, PrayerType.HAIL_MARY, session_id="s", ip_hash="h", now=prayed_at)

    assert store.get_prayer(prayer.prayer_id).prayer_type == PrayerType.HAIL_MARY
    assert store.get_person(person.person_id).prayer_count == 1
    assert store.get_person(person.person_id).last_prayed_at == prayed_at
    priority = store.get_priority(person.person_id)
    assert priority.prayer_count == 1
    assert priority.last_prayed_at == prayed_at
    totals = store.get_cemetery(cemetery.cemetery_id)
    assert totals.total_prayers == 1
    assert totals.unique_prayed_for == 1


def test_repeat_prayer_is_not_unique(store, cemetery, people):
    person = people[0]
    record_prayer(store, person, PrayerType.OUR_FATHER)
    record_prayer(store, person, PrayerType.MASS)
    record_prayer(store, people[1], PrayerType.OTHER)

    totals = store.get_cemetery(cemetery.cemetery_id)
    assert totals.total_prayers == 3
    assert totals.unique_prayed_for == 2
    assert store.get_priority(person.person_id).prayer_count == 2


def test_prayer_keeps_request_context(store, people):
    prayer = record_prayer(
        store, people[0], PrayerType.FULL_ROSARY,
        session_id="sess", ip_hash="abc123", user_agent="Mozilla/5.0",
    )
    stored = store.get_prayer(prayer.prayer_id)
    assert stored.session_id == "sess"
    assert stored.ip_address_hash == "abc123"
    assert stored.user_agent == "Mozilla/5.0"
    assert stored.cemetery_id == people[0].cemetery_id


def test_priority_count_never_lowered(store, people):
    person = people[0]
    record_prayer(store, person, PrayerType.HAIL_MARY)
    record_prayer(store, person, PrayerType.HAIL_MARY)
    store.update_priority_stats(person.person_id, 1, utc_now())
    assert store.get_priority(person.person_id).prayer_count == 2


def test_cooldown_meta(store, people):
    prayed_at = datetime(2024, 1, 15, 10, 0, 0, tzinfo=UTC)
    prayer = record_prayer(store, people[0], PrayerType.HAIL_MARY, now=prayed_at)

    meta = cooldown_meta(prayer, cooldown_seconds=30)
    assert meta.cooldown_seconds == 30
    assert meta.can_request_new_assignment_at == prayed_at + timedelta(seconds=30)


def test_prayer_timestamp_is_utc_aware(store, people):
    prayer = record_prayer(store, people[0], PrayerType.MASS, now=datetime(2024, 1, 15, 10, 0, 0))
    assert prayer.created_at.utcoffset() == timedelta(0)
    assert record_prayer(store, people[1], PrayerType.MASS).created_at.tzinfo is not None
