"""Engine configuration with clean, readable structure."""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path

from .core.resolver import SYSTEM_ZONE_ALIAS
from .core.rules import DEFAULT_END_YEAR, DEFAULT_START_YEAR
from .core.scheduler import DEFAULT_BACKGROUND_INTERVAL, MAX_FOREGROUND_INTERVAL
from .core.tzdb import DEFAULT_COVERAGE_YEARS

CONFIG_ENV_VAR = "HOROLOGE_CONFIG"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / "horologe" / "config.json"


def default_config_path() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR)
    return Path(override).expanduser() if override else DEFAULT_CONFIG_PATH


def _known(cls, d: dict) -> dict:
    names = {f for f in cls.__dataclass_fields__}
    return {k: v for k, v in d.items() if k in names}


@dataclass
class EngineSection:
    """Zone selection and rule compilation settings."""
    zone_id: str = SYSTEM_ZONE_ALIAS
    favorites: list[str] = field(default_factory=list)

    # Years after the tzdata edition year before data counts as stale
    coverage_years: int = DEFAULT_COVERAGE_YEARS
    rules_start_year: int = DEFAULT_START_YEAR
    rules_end_year: int = DEFAULT_END_YEAR

    # Transition scan window around now
    scan_before_hours: int = 168
    scan_after_hours: int = 168


@dataclass
class SchedulerSection:
    """Tick cadence in seconds; a null background interval pauses."""
    foreground_interval: float = MAX_FOREGROUND_INTERVAL
    background_interval: float | None = DEFAULT_BACKGROUND_INTERVAL


@dataclass
class EngineConfig:
    """Main configuration combining all sections."""
    engine: EngineSection = field(default_factory=EngineSection)
    scheduler: SchedulerSection = field(default_factory=SchedulerSection)

    def to_dict(self) -> dict:
        return {
            "engine": asdict(self.engine),
            "scheduler": asdict(self.scheduler),
        }

    @classmethod
    def from_dict(cls, d: dict) -> EngineConfig:
        engine_dict = d.get("engine", {})
        scheduler_dict = d.get("scheduler", {})
        if not isinstance(engine_dict, dict):
            engine_dict = {}
        if not isinstance(scheduler_dict, dict):
            scheduler_dict = {}
        return cls(
            engine=EngineSection(**_known(EngineSection, engine_dict)),
            scheduler=SchedulerSection(**_known(SchedulerSection, scheduler_dict)),
        )

    def save(self, path: Path | None = None) -> None:
        path = path or default_config_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        temp = path.with_suffix(".tmp")
        temp.write_text(json.dumps(self.to_dict(), indent=2))
        temp.replace(path)

    @classmethod
    def load(cls, path: Path | None = None) -> EngineConfig:
        path = path or default_config_path()
        try:
            if path.exists():
                raw = json.loads(path.read_text())
                if isinstance(raw, dict):
                    return cls.from_dict(raw)
        except (json.JSONDecodeError, OSError, TypeError):
            pass
        return cls()
