"""
app/services/stats.py — Cemetery and global prayer coverage
"""
from __future__ import annotations

from typing import Optional

from app.clients.store import KeyValueStore
from app.config import get_settings
from app.core.exceptions import CemeteryNotFoundError
from app.models import (
    Cemetery,
    CemeteryDetailResponse,
    CemeteryStats,
    CemeteryWithStats,
    GlobalRecentActivity,
    GlobalStats,
    PrayerType,
    RecentPrayerActivity,
)

settings = get_settings()


def coverage_percent(unique_prayed_for: int, total_deceased: int) -> float:
    """Share of people prayed for at least once, one decimal place."""
    if total_deceased <= 0:
        return 0.0
    return round(unique_prayed_for / total_deceased * 100, 1)


def cemetery_stats(cemetery: Cemetery) -> CemeteryStats:
    return CemeteryStats(
        total_deceased=cemetery.total_deceased,
        unique_prayed_for=cemetery.unique_prayed_for,
        total_prayers=cemetery.total_prayers,
        coverage_percent=coverage_percent(cemetery.unique_prayed_for, cemetery.total_deceased),
    )


def _with_stats(cemetery: Cemetery) -> CemeteryWithStats:
    return CemeteryWithStats(
        cemetery_id=cemetery.cemetery_id,
        name=cemetery.name,
        city=cemetery.city,
        state=cemetery.state,
        latitude=cemetery.latitude,
        longitude=cemetery.longitude,
        stats=cemetery_stats(cemetery),
    )


def list_cemeteries(store: KeyValueStore, archdiocese: Optional[str] = None) -> list[CemeteryWithStats]:
    archdiocese = archdiocese or settings.default_archdiocese
    cemeteries = store.list_cemeteries_by_archdiocese(archdiocese)
    return [_with_stats(c) for c in sorted(cemeteries, key=lambda c: c.name)]


def cemetery_detail(store: KeyValueStore, cemetery_id: str) -> CemeteryDetailResponse:
    cemetery = store.get_cemetery(cemetery_id)
    if cemetery is None:
        raise CemeteryNotFoundError(cemetery_id)

    recent = store.list_prayers_by_cemetery(cemetery_id, settings.recent_activity_detail)
    base = _with_stats(cemetery)
    return CemeteryDetailResponse(
        **base.model_dump(),
        address=cemetery.address,
        zip_code=cemetery.zip_code,
        archdiocese=cemetery.archdiocese,
        recent_activity=[
            RecentPrayerActivity(prayer_type=p.prayer_type, created_at=p.created_at)
            for p in recent
        ],
    )


def global_stats(store: KeyValueStore, archdiocese: Optional[str] = None) -> GlobalStats:
    """
    Totals come from the cemetery aggregates. Recent activity and the
    per-type breakdown come from the newest prayers sampled per cemetery.
    """
    archdiocese = archdiocese or settings.default_archdiocese
    cemeteries = store.list_cemeteries_by_archdiocese(archdiocese)

    total_deceased = sum(c.total_deceased for c in cemeteries)
    total_prayers = sum(c.total_prayers for c in cemeteries)
    unique_prayed_for = sum(c.unique_prayed_for for c in cemeteries)

    prayers_by_type: dict[PrayerType, int] = {t: 0 for t in PrayerType}
    recent: list[GlobalRecentActivity] = []
    for cemetery in cemeteries:
        for prayer in store.list_prayers_by_cemetery(
            cemetery.cemetery_id, settings.recent_activity_per_cemetery
        ):
            prayers_by_type[prayer.prayer_type] += 1
            recent.append(GlobalRecentActivity(
                cemetery_name=cemetery.name,
                prayer_type=prayer.prayer_type,
                created_at=prayer.created_at,
            ))
    recent.sort(key=lambda a: a.created_at, reverse=True)

    return GlobalStats(
        total_deceased=total_deceased,
        total_prayers=total_prayers,
        unique_prayed_for=unique_prayed_for,
        coverage_percent=coverage_percent(unique_prayed_for, total_deceased),
        total_cemeteries=len(cemeteries),
        prayers_by_type=prayers_by_type,
        recent_activity=recent[:settings.recent_activity_global],
    )
