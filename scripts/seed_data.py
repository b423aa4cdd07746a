"""
scripts/seed_data.py — Populate the configured store with sample cemeteries
and deceased persons (each with an active assignment-priority record).

Usage: STORE_BACKEND=dynamodb DYNAMODB_TABLE_PREFIX=deluge-dev python -m scripts.seed_data
"""
from __future__ import annotations

import sys

from loguru import logger

from app.clients.store import KeyValueStore
from app.config import get_settings
from app.core.exceptions import StoreError
from app.core.logging import setup_logging
from app.dependencies import get_store
from app.models import CreateCemeteryRequest, CreateDeceasedRequest, PersonRole
from app.services.registry import register_cemetery, register_deceased

CEMETERIES = [
    {"name": "Holy Spirit Cemetery", "city": "Atlanta", "state": "GA",
     "latitude": 33.749, "longitude": -84.388, "archdiocese": "Atlanta"},
    {"name": "Arlington Memorial Park", "city": "Atlanta", "state": "GA",
     "latitude": 33.878, "longitude": -84.332, "archdiocese": "Atlanta"},
]

DECEASED = [
    {"first_name": "John", "last_initial": "D", "year_of_death": 1987,
     "role": PersonRole.PRIEST, "cemetery_name": "Holy Spirit Cemetery"},
    {"first_name": "Michael", "last_initial": "S", "year_of_death": 1992,
     "role": PersonRole.PRIEST, "cemetery_name": "Holy Spirit Cemetery"},
    {"first_name": "Robert", "last_initial": "K", "year_of_death": 2001,
     "role": PersonRole.BISHOP, "cemetery_name": "Arlington Memorial Park"},
]


def seed(store: KeyValueStore) -> dict[str, int]:
    """Create the sample catalog. Returns counts of created records."""
    logger.info("Creating cemeteries...")
    cemetery_ids: dict[str, str] = {}
    for data in CEMETERIES:
        cemetery = register_cemetery(store, CreateCemeteryRequest(**data))
        cemetery_ids[cemetery.name] = cemetery.cemetery_id

    logger.info("Creating deceased and assignment-priority records...")
    created = 0
    for data in DECEASED:
        cemetery_id = cemetery_ids.get(data["cemetery_name"])
        if cemetery_id is None:
            logger.warning(f"Skip (unknown cemetery): {data['first_name']} {data['last_initial']}")
            continue
        fields = {k: v for k, v in data.items() if k != "cemetery_name"}
        register_deceased(store, CreateDeceasedRequest(**fields, cemetery_id=cemetery_id))
        created += 1

    return {"cemeteries": len(cemetery_ids), "deceased": created}


def main() -> int:
    settings = get_settings()
    setup_logging(settings.log_level)
    if settings.store_backend == "dynamodb" and not settings.dynamodb_table_prefix:
        logger.error("Set DYNAMODB_TABLE_PREFIX (e.g. deluge-dev) and AWS credentials.")
        return 1
    try:
        counts = seed(get_store())
    except StoreError as exc:
        logger.error(f"Seeding failed: {exc}")
        return 1
    logger.info(f"Done: {counts}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
