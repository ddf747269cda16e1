"""TimeEngine: the tick pipeline and the zone selection boundary.

One tick runs resolve -> compute -> scan-if-needed -> classify -> emit to
completion. Resolution problems never escape a tick: they are reported
through ``RenderTick.validity`` and the tick falls back to UTC.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

from .catalog import CatalogEntry, FavoriteSet, TimeZoneCatalog, order_zones
from .errors import RuleSetPendingError, TimeEngineError, TzIdInvalidError
from .local_time import LocalTimeComputer
from .resolver import SYSTEM_ZONE_ALIAS, TimeZoneResolver
from .rules import RuleSet
from .signals import (
    FAVORITES_CHANGED,
    SELECTION_CHANGED,
    SELECTION_REJECTED,
    TICK_EMITTED,
    SignalBus,
)
from .transitions import TransitionScanner
from .types import (
    NO_DST_CHANGE,
    InstantLike,
    RenderTick,
    TransitionEvent,
    Validity,
    WallClockResolution,
    as_instant,
    utc_now,
)
from .validity import ValidityClassifier

logger = logging.getLogger(__name__)


class TimeEngine:
    """Produces one immutable RenderTick per call to ``tick``.

    Consumers subscribe on ``bus`` to ``tick:emitted``, ``selection:changed``,
    ``selection:rejected`` and ``favorites:changed``.
    """

    def __init__(
        self,
        resolver: TimeZoneResolver,
        catalog: Optional[TimeZoneCatalog] = None,
        scanner: Optional[TransitionScanner] = None,
        computer: Optional[LocalTimeComputer] = None,
        classifier: Optional[ValidityClassifier] = None,
        bus: Optional[SignalBus] = None,
        favorites: Optional[FavoriteSet] = None,
        zone_id: str = SYSTEM_ZONE_ALIAS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.resolver = resolver
        self.catalog = catalog
        self.scanner = scanner or TransitionScanner()
        self.computer = computer or LocalTimeComputer()
        self.classifier = classifier or ValidityClassifier()
        self.bus = bus or SignalBus()
        self._favorites = favorites if favorites is not None else FavoriteSet()
        self._zone_id = zone_id
        self._clock = clock
        self._last_validity: Optional[Validity] = None
        self._fallback = RuleSet.utc()

    @property
    def zone_id(self) -> str:
        """The active identifier (the last one that was accepted)."""
        return self._zone_id

    @property
    def favorites(self) -> FavoriteSet:
        return self._favorites

    # ------------------------------------------------------------------
    # Tick pipeline
    # ------------------------------------------------------------------

    def tick(self, now: Optional[InstantLike] = None) -> RenderTick:
        """Compute and emit the RenderTick for *now* (default: the clock)."""
        instant = as_instant(self._clock() if now is None else now)
        zone_id = self._zone_id

        error: Optional[Exception] = None
        try:
            zone_id = self.resolver.canonical_id(zone_id)
            rule_set = self.resolver.resolve_nowait(zone_id)
        except TimeEngineError as e:
            error = e
        except Exception as e:
            logger.exception("Unexpected failure resolving %r", zone_id)
            error = e

        if error is None:
            dst_change = self.scanner.dst_change(zone_id, instant, rule_set)
        else:
            rule_set = self._fallback
            dst_change = NO_DST_CHANGE

        fields = self.computer.compute(instant, rule_set)
        validity = self.classifier.from_outcome(error, self.resolver.is_stale(instant))
        self._note_validity(zone_id, validity, error)

        tick = RenderTick(
            zone_id=zone_id,
            instant=instant,
            local_date_time=fields.local_date_time,
            meridiem=fields.meridiem,
            utc_offset_minutes=fields.utc_offset_minutes,
            is_dst=fields.is_dst,
            dst_change=dst_change,
            tz_abbrev=fields.abbreviation,
            validity=validity,
        )
        self.bus.emit(TICK_EMITTED, tick=tick)
        return tick

    def _note_validity(self, zone_id: str, validity: Validity, error: Optional[Exception]) -> None:
        if validity == self._last_validity:
            return
        self._last_validity = validity
        if validity is Validity.OK:
            logger.info("Ticking %s normally", zone_id)
        else:
            logger.warning("Degraded tick for %s: %s (%s)", zone_id, validity.value, error or "stale data")

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select_zone(self, zone_id: str) -> bool:
        """Make *zone_id* active if it resolves.

        On failure the previous zone stays active and ``selection:rejected``
        is emitted with the ``TzIdInvalidError``. A valid zone whose rules
        are still compiling is accepted; its ticks report ``unknown`` until
        the rule set is ready.
        """
        try:
            canonical = self.resolver.canonical_id(zone_id)
            self.resolver.resolve_nowait(canonical)
        except RuleSetPendingError:
            pass
        except TimeEngineError as e:
            rejection = e if isinstance(e, TzIdInvalidError) else TzIdInvalidError(zone_id, cause=e)
            logger.warning("Rejected zone selection %r: %s", zone_id, e)
            self.bus.emit(SELECTION_REJECTED, zone_id=zone_id, error=rejection, active=self._zone_id)
            return False

        previous = self._zone_id
        self._zone_id = canonical
        if canonical != previous:
            logger.info("Active zone: %s -> %s", previous, canonical)
            self.bus.emit(SELECTION_CHANGED, zone_id=canonical, previous=previous)
        return True

    def toggle_favorite(self, zone_id: str) -> bool:
        is_favorite = self._favorites.toggle(zone_id)
        self.bus.emit(FAVORITES_CHANGED, zone_id=zone_id, is_favorite=is_favorite)
        return is_favorite

    # ------------------------------------------------------------------
    # Reads for richer consumers
    # ------------------------------------------------------------------

    def search(self, query: str, limit: Optional[int] = None) -> list[CatalogEntry]:
        if self.catalog is None:
            return []
        return self.catalog.search(query, favorites=self._favorites, limit=limit)

    def transitions(
        self,
        before: timedelta,
        after: timedelta,
        now: Optional[InstantLike] = None,
        zone_id: Optional[str] = None,
    ) -> list[TransitionEvent]:
        """Raw transition list around *now* for multi-day displays.

        Raises:
            TimeEngineError: the zone does not resolve
        """
        instant = as_instant(self._clock() if now is None else now)
        rule_set = self.resolver.resolve(zone_id or self._zone_id)
        return self.scanner.scan_window(instant, rule_set, before, after)

    def inspect(self, wall_clock: datetime, zone_id: Optional[str] = None) -> WallClockResolution:
        """Classify a wall-clock value in the active (or given) zone."""
        rule_set = self.resolver.resolve(zone_id or self._zone_id)
        return self.computer.inspect_wall_clock(wall_clock, rule_set)

    def display_order(self, zone_ids: Iterable[str], now: Optional[InstantLike] = None) -> list[str]:
        """Order zones for a multi-zone view: active, favorites, then by offset."""
        instant = as_instant(self._clock() if now is None else now)

        def offset_for(zone_id: str) -> int:
            try:
                return self.resolver.offset_minutes_at(zone_id, instant)
            except TimeEngineError:
                return 0

        dominant = self.resolver.canonical_id(self._zone_id)
        return order_zones(zone_ids, dominant, self._favorites, offset_for)
