"""Tests for the headless daemon runner."""

import asyncio
import json
from datetime import datetime, timezone

import pytest

from horologe.config import EngineConfig
from horologe.core.types import Validity
from horologe.daemon import HorologeDaemon, build_engine, main, tick_once

UTC = timezone.utc


@pytest.fixture
def config():
    config = EngineConfig()
    config.engine.zone_id = "Asia/Tokyo"
    config.engine.favorites = ["Europe/London"]
    config.engine.rules_start_year = 2000
    config.engine.rules_end_year = 2040
    return config


class TestBuildEngine:
    def test_wires_config(self, config):
        engine = build_engine(config)
        assert engine.zone_id == "Asia/Tokyo"
        assert "Europe/London" in engine.favorites
        assert not engine.resolver.database.is_loaded

    def test_tick_once(self, config):
        tick = tick_once(config)
        assert tick.zone_id == "Asia/Tokyo"
        assert tick.utc_offset_minutes == 540
        assert tick.validity in (Validity.OK, Validity.TZ_DATA_STALE)


class TestMain:
    def test_once_prints_json(self, capsys, tmp_path):
        path = tmp_path / "config.json"
        cfg = EngineConfig()
        cfg.engine.rules_start_year = 2000
        cfg.engine.rules_end_year = 2040
        cfg.save(path)
        assert main(["--once", "--zone", "Europe/Paris", "--config", str(path)]) == 0
        out = json.loads(capsys.readouterr().out)
        assert out["zone_id"] == "Europe/Paris"
        assert out["meridiem"] in ("AM", "PM")


class TestDaemonRun:
    @pytest.mark.asyncio
    async def test_runs_until_stopped(self, config):
        daemon = HorologeDaemon(config)
        ticks = []
        daemon.engine.bus.on("tick:emitted", lambda sig, tick: ticks.append(tick))

        resolver = daemon.engine.resolver
        task = asyncio.create_task(daemon.run())
        for _ in range(50):
            await asyncio.sleep(0.1)
            if resolver.cached("Asia/Tokyo") and resolver.cached("Europe/London"):
                break
        await asyncio.sleep(0.2)
        daemon.stop()
        await asyncio.wait_for(task, timeout=2)

        assert ticks
        assert daemon.engine.catalog is not None
        assert "Asia/Tokyo" in daemon.engine.catalog
        # Active and favorite zones are compiled off the loop after loading
        assert resolver.cached("Europe/London") is not None
        assert ticks[-1].validity in (Validity.OK, Validity.TZ_DATA_STALE)
        assert ticks[-1].tz_abbrev == "JST"

    def test_logs_each_second_once(self, config, caplog):
        daemon = HorologeDaemon(config)
        daemon.engine.resolver.database.load()
        with caplog.at_level("INFO", logger="horologe.daemon"):
            daemon.engine.tick(datetime(2024, 6, 1, 0, 0, 0, 100000, tzinfo=UTC))
            daemon.engine.tick(datetime(2024, 6, 1, 0, 0, 0, 600000, tzinfo=UTC))
            daemon.engine.tick(datetime(2024, 6, 1, 0, 0, 1, tzinfo=UTC))
        lines = [r.message for r in caplog.records if r.name == "horologe.daemon"]
        assert len(lines) == 2
        assert "Asia/Tokyo 09:00:00 AM JST UTC+09:00" in lines[0]

    def test_rejected_selection_is_logged(self, config, caplog):
        daemon = HorologeDaemon(config)
        daemon.engine.resolver.database.load()
        with caplog.at_level("WARNING"):
            daemon.engine.select_zone("Nowhere/Land")
        assert "staying on Asia/Tokyo" in caplog.text
