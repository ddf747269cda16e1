"""Tests for the time-zone database wrapper."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import pytest

from horologe.core.tzdb import (
    DatabaseSnapshot,
    DatabaseState,
    TimeZoneDatabase,
    coverage_horizon_for,
    open_tzdata_zone,
    read_tzdata,
)

UTC = timezone.utc


def _broken_loader():
    raise OSError("no tzdata here")


class TestReadTzdata:
    """Tests for reading the installed tzdata distribution."""

    def test_contains_common_zones(self):
        snapshot = read_tzdata()
        assert "America/New_York" in snapshot.zone_ids
        assert "Europe/London" in snapshot.zone_ids
        assert "UTC" in snapshot.zone_ids

    def test_edition_looks_like_iana_version(self):
        snapshot = read_tzdata()
        assert snapshot.edition is not None
        assert coverage_horizon_for(snapshot.edition, 1) is not None

    def test_open_zone(self):
        zone = open_tzdata_zone("Asia/Tokyo")
        assert isinstance(zone, ZoneInfo)
        assert datetime(2024, 1, 1, tzinfo=UTC).astimezone(zone).utcoffset().total_seconds() == 9 * 3600

    def test_open_unknown_zone(self):
        with pytest.raises(ZoneInfoNotFoundError):
            open_tzdata_zone("Mars/Olympus_Mons")


class TestCoverageHorizon:
    """Tests for edition -> staleness horizon."""

    def test_plain_edition(self):
        assert coverage_horizon_for("2024a", 2) == datetime(2026, 1, 1, tzinfo=UTC)

    def test_unparseable_edition(self):
        assert coverage_horizon_for("latest", 2) is None
        assert coverage_horizon_for(None, 2) is None
        assert coverage_horizon_for("", 2) is None


class TestDatabaseLifecycle:
    """Tests for load/reload state transitions."""

    def test_starts_unloaded(self):
        db = TimeZoneDatabase()
        assert db.state is DatabaseState.UNLOADED
        assert not db.is_loaded
        assert len(db) == 0

    def test_load(self):
        db = TimeZoneDatabase()
        assert db.load()
        assert db.state is DatabaseState.LOADED
        assert "Europe/Paris" in db
        assert db.generation == 1

    def test_failed_load(self):
        db = TimeZoneDatabase(loader=_broken_loader)
        assert not db.load()
        assert db.state is DatabaseState.FAILED
        assert db.edition is None

    def test_empty_snapshot_is_failure(self):
        db = TimeZoneDatabase(loader=lambda: DatabaseSnapshot(frozenset(), "2024a"))
        assert not db.load()
        assert db.state is DatabaseState.FAILED

    def test_reload_bumps_generation(self, make_database):
        db = make_database()
        before = db.generation
        db.reload()
        assert db.generation == before + 1

    def test_staleness(self, make_database):
        db = make_database(edition="2024a", coverage_years=1)
        assert not db.is_stale(datetime(2024, 12, 31, tzinfo=UTC))
        assert db.is_stale(datetime(2025, 1, 1, tzinfo=UTC))

    @pytest.mark.asyncio
    async def test_load_async(self):
        db = TimeZoneDatabase()
        assert await db.load_async()
        assert db.is_loaded
        assert "Asia/Tokyo" in db

    @pytest.mark.asyncio
    async def test_load_async_failure(self):
        db = TimeZoneDatabase(loader=_broken_loader)
        assert not await db.load_async()
        assert db.state is DatabaseState.FAILED
