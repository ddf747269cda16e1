"""Tests for TimeZoneResolver."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from horologe.core.errors import (
    DatabaseUnavailableError,
    RuleSetPendingError,
    TzIdInvalidError,
    TzMissingError,
    UnknownResolutionError,
)
from horologe.core.resolver import (
    FALLBACK_ZONE,
    SYSTEM_ZONE_ALIAS,
    TimeZoneResolver,
    get_host_zone_name,
)
from horologe.core.tzdb import DatabaseSnapshot, TimeZoneDatabase
from horologe.core.types import Validity

UTC = timezone.utc


class TestResolve:
    """Tests for identifier resolution."""

    def test_resolves_known_zone(self, fresh_resolver):
        rule_set = fresh_resolver.resolve("Asia/Tokyo")
        assert rule_set.zone_id == "Asia/Tokyo"
        assert rule_set.segment_at(datetime(2024, 6, 1, tzinfo=UTC)).utc_offset_minutes == 540

    def test_cache_returns_same_object(self, fresh_resolver):
        first = fresh_resolver.resolve("Europe/Berlin")
        assert fresh_resolver.resolve("Europe/Berlin") is first
        assert fresh_resolver.cached("Europe/Berlin") is first

    def test_whitespace_is_stripped(self, fresh_resolver):
        assert fresh_resolver.resolve("  Europe/Berlin ").zone_id == "Europe/Berlin"

    def test_unknown_zone(self, fresh_resolver):
        with pytest.raises(TzMissingError) as exc_info:
            fresh_resolver.resolve("Mars/Olympus_Mons")
        assert exc_info.value.validity is Validity.TZ_MISSING
        assert fresh_resolver.cached("Mars/Olympus_Mons") is None

    @pytest.mark.parametrize("zone_id", ["", "   ", None])
    def test_blank_zone(self, fresh_resolver, zone_id):
        with pytest.raises(TzIdInvalidError):
            fresh_resolver.resolve(zone_id)

    def test_unloaded_database_fails_fast(self):
        resolver = TimeZoneResolver(TimeZoneDatabase())
        with pytest.raises(DatabaseUnavailableError) as exc_info:
            resolver.resolve("Europe/London")
        assert exc_info.value.validity is Validity.UNKNOWN

    def test_failed_database_reports_missing(self):
        db = TimeZoneDatabase(loader=lambda: DatabaseSnapshot(frozenset(), None))
        db.load()
        resolver = TimeZoneResolver(db)
        with pytest.raises(TzMissingError):
            resolver.resolve("Europe/London")

    def test_unreadable_zone_is_unknown_error(self, make_database):
        db = make_database()
        db._zone_loader = MagicMock(side_effect=ValueError("bad TZif"))
        resolver = TimeZoneResolver(db, start_year=2000, end_year=2010)
        with pytest.raises(UnknownResolutionError):
            resolver.resolve("Europe/London")


class TestSystemAlias:
    """Tests for the reserved system alias."""

    def test_alias_resolves_to_host_zone(self, fresh_resolver):
        assert fresh_resolver.canonical_id(SYSTEM_ZONE_ALIAS) == "Europe/London"
        assert fresh_resolver.resolve(SYSTEM_ZONE_ALIAS).zone_id == "Europe/London"

    def test_alias_is_resolved_once(self, database):
        host = MagicMock(return_value="Asia/Tokyo")
        resolver = TimeZoneResolver(database, start_year=2000, end_year=2010, host_zone=host)
        resolver.resolve(SYSTEM_ZONE_ALIAS)
        resolver.resolve(SYSTEM_ZONE_ALIAS)
        assert host.call_count == 1

    def test_alias_shares_cache_with_real_id(self, database):
        resolver = TimeZoneResolver(database, start_year=2000, end_year=2010, host_zone=lambda: "Asia/Tokyo")
        assert resolver.resolve(SYSTEM_ZONE_ALIAS) is resolver.resolve("Asia/Tokyo")

    def test_host_zone_lookup_failure_falls_back_to_utc(self):
        with patch("horologe.core.resolver.tzlocal.get_localzone_name", side_effect=LookupError("no tz")):
            assert get_host_zone_name() == FALLBACK_ZONE

    def test_host_zone_lookup(self):
        with patch("horologe.core.resolver.tzlocal.get_localzone_name", return_value="Europe/Oslo"):
            assert get_host_zone_name() == "Europe/Oslo"


class TestInvalidation:
    """Tests for cache invalidation on database reload."""

    def test_reload_drops_cache(self, make_database):
        db = make_database()
        resolver = TimeZoneResolver(db, start_year=2000, end_year=2010)
        first = resolver.resolve("Europe/Paris")
        db.reload()
        second = resolver.resolve("Europe/Paris")
        assert second is not first

    def test_invalidate(self, make_database):
        resolver = TimeZoneResolver(make_database(), start_year=2000, end_year=2010)
        resolver.resolve("Europe/Paris")
        resolver.invalidate()
        assert resolver.cached("Europe/Paris") is None


class TestStaleness:
    """Tests for coverage-horizon staleness."""

    def test_stale_database_still_resolves(self, stale_database):
        resolver = TimeZoneResolver(stale_database, start_year=2000, end_year=2010)
        assert resolver.resolve("Europe/London").zone_id == "Europe/London"
        assert resolver.is_stale(datetime(2024, 1, 1, tzinfo=UTC))

    def test_fresh_database(self, fresh_resolver):
        assert not fresh_resolver.is_stale(datetime(2024, 1, 1, tzinfo=UTC))


class TestBackgroundCompile:
    """Tests for compiling rule sets in the executor."""

    def test_nowait_without_loop_compiles_inline(self, make_database):
        resolver = TimeZoneResolver(make_database(), start_year=2000, end_year=2010)
        assert resolver.resolve_nowait("Europe/Rome").zone_id == "Europe/Rome"

    @pytest.mark.asyncio
    async def test_nowait_in_loop_defers(self, make_database):
        resolver = TimeZoneResolver(make_database(), start_year=2000, end_year=2010)
        with pytest.raises(RuleSetPendingError) as exc_info:
            resolver.resolve_nowait("Europe/Rome")
        assert exc_info.value.validity is Validity.UNKNOWN
        assert resolver.is_pending("Europe/Rome")

        rule_set = await resolver.resolve_async("Europe/Rome")
        assert not resolver.is_pending("Europe/Rome")
        assert resolver.resolve_nowait("Europe/Rome") is rule_set

    @pytest.mark.asyncio
    async def test_nowait_reports_missing_immediately(self, make_database):
        resolver = TimeZoneResolver(make_database(), start_year=2000, end_year=2010)
        with pytest.raises(TzMissingError):
            resolver.resolve_nowait("Mars/Olympus_Mons")
        assert not resolver.is_pending("Mars/Olympus_Mons")

    @pytest.mark.asyncio
    async def test_concurrent_requests_share_one_compile(self, make_database):
        resolver = TimeZoneResolver(make_database(), start_year=2000, end_year=2010)
        first, second = await asyncio.gather(
            resolver.resolve_async("Asia/Tokyo"),
            resolver.resolve_async("Asia/Tokyo"),
        )
        assert first is second

    @pytest.mark.asyncio
    async def test_reload_discards_in_flight_result(self, make_database):
        db = make_database()
        resolver = TimeZoneResolver(db, start_year=2000, end_year=2010)
        pending = resolver.resolve_async("Europe/Paris")
        task = asyncio.ensure_future(pending)
        await asyncio.sleep(0)
        db.reload()
        await task
        assert resolver.cached("Europe/Paris") is None

    def test_offset_without_compiling(self, make_database):
        resolver = TimeZoneResolver(make_database(), start_year=2000, end_year=2010)
        assert resolver.offset_minutes_at("Asia/Kolkata", datetime(2024, 1, 1, tzinfo=UTC)) == 330
        assert resolver.cached("Asia/Kolkata") is None
