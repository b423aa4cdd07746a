"""
app/core/exceptions.py — Application exception hierarchy

    DelugeError
    ├── StoreError
    │   └── StoreResourceMissingError
    ├── AssignmentConsistencyError
    └── NotFoundError
        ├── PersonNotFoundError
        └── CemeteryNotFoundError

An empty candidate pool is not an error: the selector returns None.
"""
from __future__ import annotations

from typing import Optional


class DelugeError(Exception):
    """Base class for all application exceptions."""


# ──────────────────────────────────────────────────────────────────────────────
# Store
# ──────────────────────────────────────────────────────────────────────────────

class StoreError(DelugeError):
    """Raised when the key-value store fails an operation."""

    def __init__(self, message: str, table: Optional[str] = None) -> None:
        super().__init__(message)
        self.table = table


class StoreResourceMissingError(StoreError):
    """The backing table does not exist (not provisioned or misconfigured)."""


# ──────────────────────────────────────────────────────────────────────────────
# Assignment
# ──────────────────────────────────────────────────────────────────────────────

class AssignmentConsistencyError(DelugeError):
    """A cached candidate has no live person record behind it."""

    def __init__(self, person_id: str) -> None:
        super().__init__(f"Assignment candidate {person_id!r} has no person record.")
        self.person_id = person_id


# ──────────────────────────────────────────────────────────────────────────────
# Request-level lookups
# ──────────────────────────────────────────────────────────────────────────────

class NotFoundError(DelugeError):
    """Base for lookups that a request addressed explicitly."""


class PersonNotFoundError(NotFoundError):
    def __init__(self, person_id: str) -> None:
        super().__init__(f"Person {person_id!r} not found.")
        self.person_id = person_id


class CemeteryNotFoundError(NotFoundError):
    def __init__(self, cemetery_id: str) -> None:
        super().__init__(f"Cemetery {cemetery_id!r} not found.")
        self.cemetery_id = cemetery_id
