"""Time engine core: zone data, local time, transitions, validity and ticking."""

from .types import (
    NO_DST_CHANGE,
    DstChange,
    DstChangeKind,
    LocalDateTime,
    LocalFields,
    Meridiem,
    OffsetSegment,
    RenderTick,
    TransitionEvent,
    Validity,
    WallClockInterpretation,
    WallClockKind,
    WallClockResolution,
    as_instant,
    utc_now,
)
from .errors import (
    DatabaseUnavailableError,
    NonexistentLocalTimeError,
    RuleSetPendingError,
    TimeEngineError,
    TzIdInvalidError,
    TzMissingError,
    UnknownResolutionError,
)
from .tzdb import DatabaseState, TimeZoneDatabase
from .rules import RuleSet, compile_rule_set
from .resolver import SYSTEM_ZONE_ALIAS, TimeZoneResolver
from .catalog import CatalogEntry, FavoriteSet, SearchField, TimeZoneCatalog, order_zones
from .local_time import LocalTimeComputer
from .transitions import TransitionScanner, classify
from .validity import ValidityClassifier
from .signals import SignalBus
from .scheduler import BACKGROUND, FOREGROUND, TickScheduler
from .engine import TimeEngine

__all__ = [
    # Types
    "DstChange",
    "DstChangeKind",
    "NO_DST_CHANGE",
    "LocalDateTime",
    "LocalFields",
    "Meridiem",
    "OffsetSegment",
    "RenderTick",
    "TransitionEvent",
    "Validity",
    "WallClockInterpretation",
    "WallClockKind",
    "WallClockResolution",
    "as_instant",
    "utc_now",
    # Errors
    "TimeEngineError",
    "TzMissingError",
    "TzIdInvalidError",
    "UnknownResolutionError",
    "DatabaseUnavailableError",
    "RuleSetPendingError",
    "NonexistentLocalTimeError",
    # Zone data
    "DatabaseState",
    "TimeZoneDatabase",
    "RuleSet",
    "compile_rule_set",
    "SYSTEM_ZONE_ALIAS",
    "TimeZoneResolver",
    "CatalogEntry",
    "FavoriteSet",
    "SearchField",
    "TimeZoneCatalog",
    "order_zones",
    # Pipeline
    "LocalTimeComputer",
    "TransitionScanner",
    "classify",
    "ValidityClassifier",
    "SignalBus",
    "TickScheduler",
    "FOREGROUND",
    "BACKGROUND",
    "TimeEngine",
]
