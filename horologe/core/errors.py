"""Exception taxonomy for zone resolution and wall-clock inspection."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from .types import TransitionEvent, Validity


class TimeEngineError(Exception):
    """Base class; ``validity`` is what a tick reports when this is the cause."""

    validity = Validity.UNKNOWN

    def __init__(self, zone_id: Optional[str] = None, message: Optional[str] = None):
        self.zone_id = zone_id
        super().__init__(message or f"{type(self).__name__}: {zone_id!r}")


class TzMissingError(TimeEngineError):
    """The identifier has no catalog or database entry."""

    validity = Validity.TZ_MISSING


class TzIdInvalidError(TimeEngineError):
    """A selection change named an id that does not resolve."""

    validity = Validity.TZ_MISSING

    def __init__(self, zone_id: Optional[str], message: Optional[str] = None,
                 cause: Optional[TimeEngineError] = None):
        super().__init__(zone_id, message or f"Invalid time zone: {zone_id!r}")
        self.cause = cause


class UnknownResolutionError(TimeEngineError):
    """Any other resolution fault, e.g. an unreadable database entry."""


class DatabaseUnavailableError(UnknownResolutionError):
    """The time-zone database has not finished loading."""


class RuleSetPendingError(UnknownResolutionError):
    """The zone is valid but its rule set is still compiling in the executor."""


class NonexistentLocalTimeError(TimeEngineError):
    """A wall-clock value that falls inside a spring-forward gap."""

    def __init__(self, wall_clock: datetime, gap: Optional[TransitionEvent] = None,
                 zone_id: Optional[str] = None):
        self.wall_clock = wall_clock
        self.gap = gap
        super().__init__(zone_id, f"{wall_clock.isoformat()} does not exist locally")
