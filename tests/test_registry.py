"""
tests/test_registry.py — Unit tests for cemetery and deceased registration
"""
from __future__ import annotations

import pytest

from app.core.exceptions import CemeteryNotFoundError, PersonNotFoundError
from app.models import (
    CreateCemeteryRequest,
    CreateDeceasedRequest,
    PersonRole,
    PrayerType,
    UpdateDeceasedRequest,
)
from app.services.prayer_recorder import record_prayer
from app.services.registry import (
    register_cemetery,
    register_deceased,
    remove_deceased,
    update_deceased,
)


def test_register_deceased_creates_priority_record(store, cemetery, people):
    person = people[0]
    assert person.cemetery_name == cemetery.name
    priority = store.get_priority(person.person_id)
    assert priority.is_active
    assert priority.prayer_count == 0
    assert store.get_cemetery(cemetery.cemetery_id).total_deceased == 3


def test_register_deceased_unknown_cemetery(store):
    body = CreateDeceasedRequest(
        first_name="Paul", last_initial="R", year_of_death=1990,
        role=PersonRole.BISHOP, cemetery_id="00000000-0000-0000-0000-000000000000",
    )
    with pytest.raises(CemeteryNotFoundError):
        register_deceased(store, body)


def test_remove_deceased_deactivates_and_adjusts_totals(store, cemetery, people, pool):
    person = people[0]
    record_prayer(store, person, PrayerType.HAIL_MARY)

    remove_deceased(store, person.person_id)

    assert store.get_person(person.person_id) is None
    assert not store.get_priority(person.person_id).is_active
    totals = store.get_cemetery(cemetery.cemetery_id)
    assert totals.total_deceased == 2
    assert totals.unique_prayed_for == 0
    assert totals.total_prayers == 1
    assert person.person_id not in {c.person_id for c in pool.refresh()}


def test_remove_never_prayed_for_keeps_unique_count(store, cemetery, people):
    record_prayer(store, people[0], PrayerType.HAIL_MARY)
    remove_deceased(store, people[1].person_id)
    assert store.get_cemetery(cemetery.cemetery_id).unique_prayed_for == 1


def test_remove_twice_raises(store, people):
    remove_deceased(store, people[0].person_id)
    with pytest.raises(PersonNotFoundError):
        remove_deceased(store, people[0].person_id)


@pytest.fixture
def second_cemetery(store):
    return register_cemetery(store, CreateCemeteryRequest(
        name="Arlington Memorial Park",
        city="Sandy Springs",
        state="GA",
        latitude=33.924,
        longitude=-84.378,
        archdiocese="Atlanta",
    ))


def test_update_deceased_edits_fields_and_priority_role(store, cemetery, people):
    person = people[0]
    updated = update_deceased(store, person.person_id, UpdateDeceasedRequest(
        first_name="Jonathan", role=PersonRole.BISHOP,
    ))

    assert updated.first_name == "Jonathan"
    assert updated.last_initial == "D"
    assert updated.year_of_death == 1987
    assert store.get_person(person.person_id).role == PersonRole.BISHOP
    assert store.get_priority(person.person_id).role == PersonRole.BISHOP
    assert store.get_cemetery(cemetery.cemetery_id).total_deceased == 3


def test_update_deceased_moves_between_cemeteries(store, cemetery, second_cemetery, people):
    person = people[0]
    record_prayer(store, person, PrayerType.HAIL_MARY)

    updated = update_deceased(store, person.person_id, UpdateDeceasedRequest(
        cemetery_id=second_cemetery.cemetery_id,
    ))

    assert updated.cemetery_name == "Arlington Memorial Park"
    assert updated.prayer_count == 1
    assert store.get_priority(person.person_id).cemetery_id == second_cemetery.cemetery_id
    old = store.get_cemetery(cemetery.cemetery_id)
    new = store.get_cemetery(second_cemetery.cemetery_id)
    assert (old.total_deceased, old.unique_prayed_for, old.total_prayers) == (2, 0, 1)
    assert (new.total_deceased, new.unique_prayed_for) == (1, 1)


def test_update_deceased_unknown_cemetery(store, cemetery, people):
    body = UpdateDeceasedRequest(cemetery_id="00000000-0000-0000-0000-000000000000")
    with pytest.raises(CemeteryNotFoundError):
        update_deceased(store, people[0].person_id, body)
    assert store.get_person(people[0].person_id).cemetery_id == cemetery.cemetery_id


def test_update_removed_person_raises(store, people):
    remove_deceased(store, people[0].person_id)
    with pytest.raises(PersonNotFoundError):
        update_deceased(store, people[0].person_id, UpdateDeceasedRequest(first_name="Late"))
