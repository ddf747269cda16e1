#!/usr/bin/env python3
"""Headless runner for the time engine.

HorologeDaemon wires together:
- TimeZoneDatabase: loaded in the background while degraded ticks continue
- TimeZoneResolver / TransitionScanner: per-zone caches
- TimeEngine: the tick pipeline
- TickScheduler: foreground/background cadence on the event loop
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
from datetime import timedelta
from pathlib import Path
from typing import Optional

from .config import EngineConfig
from .core.catalog import FavoriteSet, TimeZoneCatalog
from .core.engine import TimeEngine
from .core.errors import TimeEngineError
from .core.resolver import TimeZoneResolver
from .core.scheduler import TickScheduler
from .core.signals import SELECTION_REJECTED, TICK_EMITTED
from .core.transitions import TransitionScanner
from .core.tzdb import TimeZoneDatabase
from .core.types import RenderTick

logger = logging.getLogger(__name__)


def build_engine(config: EngineConfig) -> TimeEngine:
    """Assemble an engine from configuration; the database is not loaded yet."""
    section = config.engine
    database = TimeZoneDatabase(coverage_years=section.coverage_years)
    resolver = TimeZoneResolver(
        database,
        start_year=section.rules_start_year,
        end_year=section.rules_end_year,
    )
    scanner = TransitionScanner(
        before=timedelta(hours=section.scan_before_hours),
        after=timedelta(hours=section.scan_after_hours),
    )
    return TimeEngine(
        resolver,
        scanner=scanner,
        favorites=FavoriteSet(section.favorites),
        zone_id=section.zone_id,
    )


class HorologeDaemon:
    """Runs the engine until interrupted, logging each new displayed second."""

    def __init__(self, config: EngineConfig):
        self.config = config
        self.engine = build_engine(config)
        self.scheduler: Optional[TickScheduler] = None
        self._stopped: Optional[asyncio.Event] = None
        self._last_second: Optional[tuple[int, int, int]] = None

        self.engine.bus.on(TICK_EMITTED, self._on_tick)
        self.engine.bus.on(SELECTION_REJECTED, self._on_rejected)

    def _on_tick(self, signal_name: str, tick: RenderTick) -> None:
        ldt = tick.local_date_time
        key = (ldt.hour24, ldt.minute, ldt.second)
        if key == self._last_second:
            return
        self._last_second = key
        logger.info(
            "%s %02d:%02d:%02d %s %s %s dst=%s change=%s validity=%s",
            tick.zone_id, ldt.hour12, ldt.minute, ldt.second, tick.meridiem.value,
            tick.tz_abbrev, tick.format_utc_offset(), tick.is_dst,
            tick.dst_change.kind.value, tick.validity.value,
        )

    def _on_rejected(self, signal_name: str, zone_id: str, error, active: str) -> None:
        logger.warning("Zone %r rejected, staying on %s", zone_id, active)

    async def _load_database(self) -> None:
        database = self.engine.resolver.database
        if await database.load_async():
            self.engine.catalog = TimeZoneCatalog.from_database(database)
            await self._warm_zones()

    async def _warm_zones(self) -> None:
        """Compile the active and favorite zones off the tick loop."""
        resolver = self.engine.resolver
        for zone_id in [self.engine.zone_id, *self.engine.favorites]:
            try:
                await resolver.resolve_async(zone_id)
            except TimeEngineError as e:
                logger.warning("Could not prepare %s: %s", zone_id, e)

    def stop(self) -> None:
        if self.scheduler is not None:
            self.scheduler.stop()
        if self._stopped is not None:
            self._stopped.set()

    async def run(self) -> None:
        """Run the daemon until interrupted."""
        loop = asyncio.get_running_loop()
        self._stopped = asyncio.Event()
        installed = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.stop)
                installed.append(sig)
            except (NotImplementedError, RuntimeError):
                pass

        sched = self.config.scheduler
        self.scheduler = TickScheduler(
            loop,
            self.engine.tick,
            foreground_interval=sched.foreground_interval,
            background_interval=sched.background_interval,
        )
        # Ticks start degraded and recover once the database is in
        load_task = asyncio.create_task(self._load_database())
        self.scheduler.start()
        try:
            await self._stopped.wait()
        finally:
            self.scheduler.stop()
            if not load_task.done():
                load_task.cancel()
            for sig in installed:
                loop.remove_signal_handler(sig)


def tick_once(config: EngineConfig) -> RenderTick:
    engine = build_engine(config)
    engine.resolver.database.load()
    return engine.tick()


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for daemon mode."""
    parser = argparse.ArgumentParser(prog="horologe", description="Run the time engine")
    parser.add_argument("--zone", help="IANA zone id, or 'system'")
    parser.add_argument("--config", type=Path, help="Path to config.json")
    parser.add_argument("--once", action="store_true", help="Print one tick as JSON and exit")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, stream=sys.stderr, format="%(name)s %(levelname)s: %(message)s")

    config = EngineConfig.load(args.config)
    if args.zone:
        config.engine.zone_id = args.zone

    if args.once:
        print(json.dumps(tick_once(config).to_dict(), indent=2))
        return 0

    try:
        asyncio.run(HorologeDaemon(config).run())
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
