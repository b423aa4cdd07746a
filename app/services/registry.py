"""
app/services/registry.py — Cemetery and deceased registration
Each new person gets an active AssignmentPriority record alongside the
canonical person record. Edits keep the priority record's cemetery and role
in step. Removal soft-deletes the person and deactivates
the priority record so the next pool refresh drops it.
"""
from __future__ import annotations

from loguru import logger

from app.clients.store import KeyValueStore
from app.core.exceptions import CemeteryNotFoundError, PersonNotFoundError
from app.models import (
    AssignmentPriority,
    Cemetery,
    CreateCemeteryRequest,
    CreateDeceasedRequest,
    DeceasedPerson,
    UpdateDeceasedRequest,
)
from app.utils.timezone import utc_now


def register_cemetery(store: KeyValueStore, body: CreateCemeteryRequest) -> Cemetery:
    cemetery = store.create_cemetery(Cemetery(**body.model_dump()))
    logger.info(f"Registered cemetery {cemetery.name!r} ({cemetery.cemetery_id}).")
    return cemetery


def register_deceased(store: KeyValueStore, body: CreateDeceasedRequest) -> DeceasedPerson:
    cemetery = store.get_cemetery(body.cemetery_id)
    if cemetery is None:
        raise CemeteryNotFoundError(body.cemetery_id)

    person = store.create_person(DeceasedPerson(
        **body.model_dump(),
        cemetery_name=cemetery.name,
    ))
    store.put_priority(AssignmentPriority(
        person_id=person.person_id,
        prayer_count=0,
        cemetery_id=person.cemetery_id,
        role=person.role,
        is_active=True,
    ))
    store.increment_cemetery_totals(cemetery.cemetery_id, deceased=1)
    logger.info(
        f"Registered {person.first_name} {person.last_initial}. "
        f"({person.person_id}) at {cemetery.name!r}."
    )
    return person


def update_deceased(
    store: KeyValueStore,
    person_id: str,
    body: UpdateDeceasedRequest,
) -> DeceasedPerson:
    """
    Edit name, initial, year, role or cemetery. A cemetery move shifts the
    person (and their prayed-for status) between the two cemeteries' totals.
    """
    person = store.get_person(person_id)
    if person is None:
        raise PersonNotFoundError(person_id)

    updates = body.model_dump(exclude_unset=True, exclude_none=True)
    moved_to = None
    if updates.get("cemetery_id", person.cemetery_id) != person.cemetery_id:
        moved_to = store.get_cemetery(updates["cemetery_id"])
        if moved_to is None:
            raise CemeteryNotFoundError(updates["cemetery_id"])
        updates["cemetery_name"] = moved_to.name

    updated = store.update_person(person_id, updates)
    if updated is None:
        raise PersonNotFoundError(person_id)

    if moved_to is not None:
        prayed_for = 1 if updated.prayer_count > 0 else 0
        store.increment_cemetery_totals(
            person.cemetery_id, deceased=-1, unique_prayed_for=-prayed_for
        )
        store.increment_cemetery_totals(
            moved_to.cemetery_id, deceased=1, unique_prayed_for=prayed_for
        )
    if updated.cemetery_id != person.cemetery_id or updated.role != person.role:
        store.update_priority_placement(person_id, updated.cemetery_id, updated.role)

    logger.info(f"Updated person {person_id}: {sorted(updates)}.")
    return updated


def remove_deceased(store: KeyValueStore, person_id: str) -> None:
    person = store.get_person(person_id)
    if person is None:
        raise PersonNotFoundError(person_id)

    # Deactivate first: a stale pool may still hold the candidate, but the
    # next refresh will not bring it back
    store.set_priority_active(person_id, False)
    if store.soft_delete_person(person_id, utc_now()):
        store.increment_cemetery_totals(
            person.cemetery_id,
            deceased=-1,
            unique_prayed_for=-1 if person.prayer_count > 0 else 0,
        )
    logger.info(f"Removed person {person_id} from assignment.")
