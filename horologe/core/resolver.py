"""Zone identifier -> RuleSet resolution with a write-once cache."""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import tzlocal

from .errors import (
    DatabaseUnavailableError,
    RuleSetPendingError,
    TzIdInvalidError,
    TzMissingError,
    UnknownResolutionError,
)
from .rules import DEFAULT_END_YEAR, DEFAULT_START_YEAR, RuleSet, compile_rule_set
from .tzdb import DatabaseState, TimeZoneDatabase
from .types import as_instant

logger = logging.getLogger(__name__)

SYSTEM_ZONE_ALIAS = "system"
FALLBACK_ZONE = "UTC"


def get_host_zone_name() -> str:
    """Host's configured IANA zone, or UTC when it cannot be determined."""
    try:
        name = tzlocal.get_localzone_name()
    except Exception as e:
        logger.warning("Could not determine host time zone: %s", e)
        return FALLBACK_ZONE
    return name or FALLBACK_ZONE


class TimeZoneResolver:
    """Resolves identifiers against a ``TimeZoneDatabase``.

    Rule sets are compiled on first use and cached for the life of the
    resolver; the cache is dropped when the database generation changes.
    ``resolve`` compiles inline; ``resolve_nowait`` and ``resolve_async``
    compile in the loop's default executor.
    The ``"system"`` alias is pinned to the host zone the first time it is
    used.
    """

    def __init__(
        self,
        database: TimeZoneDatabase,
        start_year: int = DEFAULT_START_YEAR,
        end_year: int = DEFAULT_END_YEAR,
        host_zone: Callable[[], str] = get_host_zone_name,
    ):
        self._database = database
        self._start_year = start_year
        self._end_year = end_year
        self._host_zone = host_zone
        self._system_zone_id: Optional[str] = None
        self._cache: dict[str, RuleSet] = {}
        self._pending: dict[str, asyncio.Future] = {}
        self._generation = database.generation

    @property
    def database(self) -> TimeZoneDatabase:
        return self._database

    @property
    def system_zone_id(self) -> str:
        if self._system_zone_id is None:
            self._system_zone_id = self._host_zone() or FALLBACK_ZONE
            logger.info("System time zone resolved to %s", self._system_zone_id)
        return self._system_zone_id

    def canonical_id(self, zone_id: Optional[str]) -> str:
        """Strip whitespace and expand the system alias."""
        if zone_id is None or not str(zone_id).strip():
            raise TzIdInvalidError(zone_id, "Time zone id must not be empty")
        zone_id = str(zone_id).strip()
        if zone_id == SYSTEM_ZONE_ALIAS:
            return self.system_zone_id
        return zone_id

    def cached(self, zone_id: str) -> Optional[RuleSet]:
        self._sync_generation()
        return self._cache.get(zone_id)

    def resolve(self, zone_id: str) -> RuleSet:
        """Return the rule set for *zone_id*, compiling it inline if needed.

        Raises:
            TzIdInvalidError: blank identifier
            DatabaseUnavailableError: database still loading
            TzMissingError: unknown identifier, or no database at all
            UnknownResolutionError: the catalogued zone could not be read
        """
        zone_id = self.canonical_id(zone_id)
        cached = self.cached(zone_id)
        if cached is not None:
            return cached

        zone = self._open(zone_id)
        rule_set = self._compile(zone_id, zone, self._database.edition)
        self._store(zone_id, rule_set)
        return rule_set

    def resolve_nowait(self, zone_id: str) -> RuleSet:
        """Return the cached rule set, or start compiling it in the executor.

        Used by the tick pipeline so a cold zone never stalls the event loop.
        Outside a running loop this is the same as ``resolve``.

        Raises:
            RuleSetPendingError: the rule set is being compiled
            (plus everything ``resolve`` raises)
        """
        zone_id = self.canonical_id(zone_id)
        cached = self.cached(zone_id)
        if cached is not None:
            return cached
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return self.resolve(zone_id)

        if zone_id not in self._pending:
            self._start_compile(zone_id)
        raise RuleSetPendingError(zone_id, f"Rules for {zone_id!r} are still compiling")

    async def resolve_async(self, zone_id: str) -> RuleSet:
        """Resolve *zone_id* with compilation in the default executor."""
        zone_id = self.canonical_id(zone_id)
        cached = self.cached(zone_id)
        if cached is not None:
            return cached
        future = self._pending.get(zone_id) or self._start_compile(zone_id)
        return await asyncio.shield(future)

    def is_pending(self, zone_id: str) -> bool:
        return zone_id in self._pending

    def _open(self, zone_id: str) -> ZoneInfo:
        state = self._database.state
        if state in (DatabaseState.UNLOADED, DatabaseState.LOADING):
            raise DatabaseUnavailableError(zone_id, "Time zone database is still loading")
        if state is DatabaseState.FAILED:
            raise TzMissingError(zone_id, "Time zone database is unavailable")
        if zone_id not in self._database:
            raise TzMissingError(zone_id, f"Unknown time zone: {zone_id!r}")

        try:
            return self._database.zone(zone_id)
        except ZoneInfoNotFoundError as exc:
            raise TzMissingError(zone_id, str(exc)) from exc
        except (ValueError, OSError) as exc:
            raise UnknownResolutionError(zone_id, f"Could not read {zone_id!r}: {exc}") from exc

    def _compile(self, zone_id: str, zone: ZoneInfo, edition: Optional[str]) -> RuleSet:
        return compile_rule_set(
            zone_id,
            zone,
            start_year=self._start_year,
            end_year=self._end_year,
            edition=edition,
        )

    def _start_compile(self, zone_id: str) -> asyncio.Future:
        zone = self._open(zone_id)
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(
            None, functools.partial(self._compile, zone_id, zone, self._database.edition)
        )
        self._pending[zone_id] = future
        future.add_done_callback(functools.partial(self._compiled, zone_id, self._generation))
        logger.debug("Compiling rule set for %s in the executor", zone_id)
        return future

    def _compiled(self, zone_id: str, generation: int, future: asyncio.Future) -> None:
        if self._pending.get(zone_id) is future:
            del self._pending[zone_id]
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.warning("Compiling rules for %s failed: %s", zone_id, exc)
            return
        self._sync_generation()
        if generation != self._generation:
            logger.debug("Discarding rule set for %s from an older database", zone_id)
            return
        self._store(zone_id, future.result())

    def _store(self, zone_id: str, rule_set: RuleSet) -> None:
        self._cache[zone_id] = rule_set
        logger.debug("Cached rule set for %s (%d segments)", zone_id, len(rule_set))

    def offset_minutes_at(self, zone_id: str, instant) -> int:
        """UTC offset at *instant* without compiling a rule set.

        Uses the cached rule set when there is one, otherwise asks the zone.
        """
        zone_id = self.canonical_id(zone_id)
        cached = self.cached(zone_id)
        if cached is not None:
            return cached.segment_at(instant).utc_offset_minutes
        offset = as_instant(instant).astimezone(self._open(zone_id)).utcoffset()
        return int(offset.total_seconds() / 60)

    def is_stale(self, now) -> bool:
        """Whether the loaded edition's coverage horizon has passed at *now*."""
        return self._database.is_stale(now)

    def invalidate(self) -> None:
        """Drop every cached rule set."""
        if self._cache:
            logger.info("Dropping %d cached rule sets", len(self._cache))
        self._cache = {}
        self._pending = {}

    def _sync_generation(self) -> None:
        if self._database.generation != self._generation:
            self._generation = self._database.generation
            self.invalidate()
