"""IANA time-zone database backed by the ``tzdata`` distribution.

Zones are read straight out of ``tzdata`` so the edition we report always
matches the rules we parsed, regardless of what the host ships in
``/usr/share/zoneinfo``.
"""

from __future__ import annotations

import asyncio
import logging
import re
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from importlib import resources
from typing import Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import tzdata

from .types import UTC, as_instant

logger = logging.getLogger(__name__)

DEFAULT_COVERAGE_YEARS = 2

_EDITION_RE = re.compile(r"^(\d{4})[a-z]*$")


class DatabaseState(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


@dataclass(frozen=True)
class DatabaseSnapshot:
    """What a loader returns: the identifier set and the edition string."""

    zone_ids: frozenset[str]
    edition: Optional[str]


def read_tzdata() -> DatabaseSnapshot:
    """Read the identifier list and edition from the installed ``tzdata``."""
    text = resources.files(tzdata).joinpath("zones").read_text(encoding="utf-8")
    zone_ids = frozenset(line.strip() for line in text.splitlines() if line.strip())
    return DatabaseSnapshot(zone_ids=zone_ids, edition=getattr(tzdata, "IANA_VERSION", None))


def open_tzdata_zone(zone_id: str) -> ZoneInfo:
    """Load one zone from ``tzdata``, bypassing the host TZPATH."""
    components = zone_id.split("/")
    package = ".".join(["tzdata.zoneinfo"] + components[:-1])
    try:
        with resources.files(package).joinpath(components[-1]).open("rb") as fp:
            return ZoneInfo.from_file(fp, key=zone_id)
    except (ModuleNotFoundError, FileNotFoundError) as exc:
        raise ZoneInfoNotFoundError(f"No time zone found with key {zone_id}") from exc


def coverage_horizon_for(edition: Optional[str], coverage_years: int) -> Optional[datetime]:
    """First instant at which *edition* counts as stale, or None if unknown."""
    if not edition:
        return None
    match = _EDITION_RE.match(edition.strip())
    if not match:
        return None
    return datetime(int(match.group(1)) + coverage_years, 1, 1, tzinfo=UTC)


class TimeZoneDatabase:
    """Loadable identifier table plus zone loading.

    The database starts ``UNLOADED``; ``load()`` or ``load_async()`` moves it
    to ``LOADED`` or ``FAILED``. ``reload()`` re-reads and bumps
    ``generation`` so resolvers know to drop cached rule sets.
    """

    def __init__(
        self,
        coverage_years: int = DEFAULT_COVERAGE_YEARS,
        loader: Callable[[], DatabaseSnapshot] = read_tzdata,
        zone_loader: Callable[[str], ZoneInfo] = open_tzdata_zone,
    ):
        self.coverage_years = coverage_years
        self._loader = loader
        self._zone_loader = zone_loader
        self._state = DatabaseState.UNLOADED
        self._zone_ids: frozenset[str] = frozenset()
        self._edition: Optional[str] = None
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def state(self) -> DatabaseState:
        return self._state

    @property
    def is_loaded(self) -> bool:
        return self._state is DatabaseState.LOADED

    @property
    def edition(self) -> Optional[str]:
        return self._edition

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def zone_ids(self) -> frozenset[str]:
        return self._zone_ids

    @property
    def coverage_horizon(self) -> Optional[datetime]:
        return coverage_horizon_for(self._edition, self.coverage_years)

    def __contains__(self, zone_id: object) -> bool:
        return zone_id in self._zone_ids

    def __len__(self) -> int:
        return len(self._zone_ids)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self) -> bool:
        """Load synchronously. Returns True on success."""
        self._begin()
        return self._finish(self._read())

    async def load_async(self) -> bool:
        """Load in the default executor so the tick pipeline keeps running."""
        self._begin()
        loop = asyncio.get_running_loop()
        snapshot = await loop.run_in_executor(None, self._read)
        return self._finish(snapshot)

    def reload(self) -> bool:
        """Re-read the database; cached rule sets become invalid."""
        ok = self.load()
        logger.info("Time zone database reloaded (generation %d)", self._generation)
        return ok

    def _begin(self) -> None:
        with self._lock:
            self._state = DatabaseState.LOADING

    def _read(self) -> Optional[DatabaseSnapshot]:
        try:
            return self._loader()
        except (OSError, ValueError, ModuleNotFoundError) as exc:
            logger.warning("Time zone database could not be read: %s", exc)
            return None

    def _finish(self, snapshot: Optional[DatabaseSnapshot]) -> bool:
        with self._lock:
            self._generation += 1
            if snapshot is None or not snapshot.zone_ids:
                self._state = DatabaseState.FAILED
                self._zone_ids = frozenset()
                self._edition = None
                logger.warning("Time zone database unavailable; zones will report tzMissing")
                return False
            self._zone_ids = snapshot.zone_ids
            self._edition = snapshot.edition
            self._state = DatabaseState.LOADED
        logger.info(
            "Loaded time zone database %s with %d zones",
            self._edition or "(unknown edition)",
            len(self._zone_ids),
        )
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def zone(self, zone_id: str) -> ZoneInfo:
        """Open the ``ZoneInfo`` for a catalogued identifier."""
        return self._zone_loader(zone_id)

    def is_stale(self, now) -> bool:
        horizon = self.coverage_horizon
        return horizon is not None and as_instant(now) >= horizon
