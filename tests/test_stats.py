"""
tests/test_stats.py — Unit tests for coverage statistics
"""
from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from app.core.exceptions import CemeteryNotFoundError
from app.models import CreateCemeteryRequest, PrayerType
from app.services import stats
from app.services.prayer_recorder import record_prayer
from app.services.registry import register_cemetery
from app.utils.timezone import UTC


@pytest.mark.parametrize("unique,total,expected", [
    (0, 0, 0.0),
    (0, 10, 0.0),
    (1, 3, 33.3),
    (2, 3, 66.7),
    (3, 3, 100.0),
])
def test_coverage_percent(unique, total, expected):
    assert stats.coverage_percent(unique, total) == expected


def test_list_cemeteries_sorted_with_stats(store, cemetery, people):
    register_cemetery(store, CreateCemeteryRequest(
        name="Arlington Memorial Park", city="Atlanta", state="GA",
        latitude=33.878, longitude=-84.332, archdiocese="Atlanta",
    ))
    register_cemetery(store, CreateCemeteryRequest(
        name="Elsewhere", city="Savannah", state="GA",
        latitude=32.08, longitude=-81.09, archdiocese="Savannah",
    ))
    record_prayer(store, people[0], PrayerType.HAIL_MARY)

    result = stats.list_cemeteries(store, "Atlanta")

    assert [c.name for c in result] == ["Arlington Memorial Park", "Holy Spirit Cemetery"]
    holy_spirit = result[1]
    assert holy_spirit.stats.total_deceased == 3
    assert holy_spirit.stats.unique_prayed_for == 1
    assert holy_spirit.stats.coverage_percent == 33.3


def test_list_cemeteries_defaults_archdiocese(store, cemetery):
    assert [c.cemetery_id for c in stats.list_cemeteries(store)] == [cemetery.cemetery_id]


def test_cemetery_detail_recent_activity(store, cemetery, people):
    base = datetime(2024, 1, 15, 10, 0, 0, tzinfo=UTC)
    for minutes in range(7):
        record_prayer(store, people[minutes % 3], PrayerType.OUR_FATHER, now=base + timedelta(minutes=minutes))

    detail = stats.cemetery_detail(store, cemetery.cemetery_id)

    assert detail.archdiocese == "Atlanta"
    assert detail.zip_code == "30305"
    assert detail.stats.total_prayers == 7
    assert len(detail.recent_activity) == 5
    assert detail.recent_activity[0].created_at == base + timedelta(minutes=6)


def test_cemetery_detail_unknown(store):
    with pytest.raises(CemeteryNotFoundError):
        stats.cemetery_detail(store, "00000000-0000-0000-0000-000000000000")


def test_global_stats(store, cemetery, people):
    register_cemetery(store, CreateCemeteryRequest(
        name="Arlington Memorial Park", city="Atlanta", state="GA",
        latitude=33.878, longitude=-84.332, archdiocese="Atlanta",
    ))
    base = datetime(2024, 1, 15, 10, 0, 0, tzinfo=UTC)
    record_prayer(store, people[0], PrayerType.HAIL_MARY, now=base)
    record_prayer(store, people[1], PrayerType.MASS, now=base + timedelta(minutes=1))

    result = stats.global_stats(store)

    assert result.total_cemeteries == 2
    assert result.total_deceased == 3
    assert result.total_prayers == 2
    assert result.unique_prayed_for == 2
    assert result.coverage_percent == 66.7
    assert result.prayers_by_type[PrayerType.HAIL_MARY] == 1
    assert result.prayers_by_type[PrayerType.DIVINE_MERCY_CHAPLET] == 0
    assert set(result.prayers_by_type) == set(PrayerType)
    assert [a.prayer_type for a in result.recent_activity] == [PrayerType.MASS, PrayerType.HAIL_MARY]
    assert all(a.cemetery_name == cemetery.name for a in result.recent_activity)


def test_global_stats_empty(store):
    result = stats.global_stats(store)
    assert result.total_cemeteries == 0
    assert result.coverage_percent == 0.0
    assert result.recent_activity == []
