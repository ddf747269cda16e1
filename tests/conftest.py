"""Shared test fixtures."""

import pytest

from horologe.core.resolver import TimeZoneResolver
from horologe.core.tzdb import DatabaseSnapshot, TimeZoneDatabase, read_tzdata

# Narrower than the production default to keep rule compilation quick
TEST_START_YEAR = 1960
TEST_END_YEAR = 2040


def edition_loader(edition):
    """Real tzdata identifiers with a pinned edition string."""
    def load():
        return DatabaseSnapshot(zone_ids=read_tzdata().zone_ids, edition=edition)
    return load


@pytest.fixture(scope="session")
def database():
    """Loaded database pinned to an edition that is fresh for the test instants."""
    db = TimeZoneDatabase(coverage_years=100, loader=edition_loader("2024a"))
    assert db.load()
    return db


@pytest.fixture(scope="session")
def resolver(database):
    """Shared resolver; rule sets are cached across the whole session."""
    return TimeZoneResolver(
        database,
        start_year=TEST_START_YEAR,
        end_year=TEST_END_YEAR,
        host_zone=lambda: "America/New_York",
    )


@pytest.fixture(scope="session")
def new_york(resolver):
    return resolver.resolve("America/New_York")


@pytest.fixture(scope="session")
def london(resolver):
    return resolver.resolve("Europe/London")


@pytest.fixture
def stale_database():
    """Database whose coverage horizon passed long ago."""
    db = TimeZoneDatabase(coverage_years=1, loader=edition_loader("2000a"))
    assert db.load()
    return db


@pytest.fixture
def fresh_resolver(database):
    """Per-test resolver over the shared database (empty cache)."""
    return TimeZoneResolver(
        database,
        start_year=TEST_START_YEAR,
        end_year=TEST_END_YEAR,
        host_zone=lambda: "Europe/London",
    )


@pytest.fixture
def make_database():
    """Factory for loaded databases pinned to a given edition."""
    def make(edition="2024a", coverage_years=100):
        db = TimeZoneDatabase(coverage_years=coverage_years, loader=edition_loader(edition))
        assert db.load()
        return db
    return make
