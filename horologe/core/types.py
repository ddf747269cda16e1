"""Value types shared by every stage of the tick pipeline.

Everything here is immutable. Instants are timezone-aware ``datetime`` objects
in UTC; wall-clock values are naive ``datetime`` objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Union

UTC = timezone.utc
EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
ONE_SECOND = timedelta(seconds=1)

# 0001-01-01T00:00:00Z, the first segment of every rule set starts here
DAWN_OF_TIME = -62135596800

InstantLike = Union[datetime, int, float]


def utc_now() -> datetime:
    """Read the system clock as an Instant."""
    return datetime.now(UTC)


def as_instant(value: InstantLike) -> datetime:
    """Normalise a datetime or POSIX seconds into an aware UTC datetime.

    Naive datetimes are taken to already be UTC.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)
    if isinstance(value, (int, float)):
        return EPOCH + timedelta(seconds=value)
    raise TypeError(f"Cannot interpret {value!r} as an instant")


def to_timestamp(instant: datetime) -> int:
    """Whole POSIX seconds for *instant*, floored (also for pre-1970 values)."""
    return (as_instant(instant) - EPOCH) // ONE_SECOND


def from_timestamp(seconds: int) -> datetime:
    return EPOCH + timedelta(seconds=seconds)


class Meridiem(str, Enum):
    AM = "AM"
    PM = "PM"

    def __str__(self) -> str:
        return self.value


class Validity(str, Enum):
    """Health of the zone data behind a tick."""

    OK = "ok"
    TZ_MISSING = "tzMissing"
    TZ_DATA_STALE = "tzDataStale"
    UNKNOWN = "unknown"

    def __str__(self) -> str:
        return self.value


class DstChangeKind(str, Enum):
    NONE = "none"
    UPCOMING = "upcoming"
    JUST_OCCURRED = "justOccurred"


@dataclass(frozen=True)
class DstChange:
    """Tagged DST-change record; consumers match on ``kind``.

    ``instant`` and ``delta_minutes`` are present exactly when ``kind`` is not
    ``NONE``. Use the constructors rather than building one by hand.
    """

    kind: DstChangeKind
    instant: Optional[datetime] = None
    delta_minutes: Optional[int] = None

    def __post_init__(self):
        has_payload = self.instant is not None or self.delta_minutes is not None
        if self.kind is DstChangeKind.NONE:
            if has_payload:
                raise ValueError("DstChange.none() carries no payload")
        elif self.instant is None or self.delta_minutes is None:
            raise ValueError(f"DstChange {self.kind.value} needs an instant and a delta")

    @classmethod
    def none(cls) -> DstChange:
        return NO_DST_CHANGE

    @classmethod
    def upcoming(cls, instant: datetime, delta_minutes: int) -> DstChange:
        return cls(DstChangeKind.UPCOMING, as_instant(instant), delta_minutes)

    @classmethod
    def just_occurred(cls, instant: datetime, delta_minutes: int) -> DstChange:
        return cls(DstChangeKind.JUST_OCCURRED, as_instant(instant), delta_minutes)

    def to_dict(self) -> dict:
        if self.kind is DstChangeKind.NONE:
            return {"kind": self.kind.value}
        return {
            "kind": self.kind.value,
            "instant": self.instant.isoformat(),
            "delta_minutes": self.delta_minutes,
        }


NO_DST_CHANGE = DstChange(DstChangeKind.NONE)


@dataclass(frozen=True)
class OffsetSegment:
    """One row of a rule set: the offset in force from ``start`` onwards."""

    start: int  # POSIX seconds
    utc_offset_seconds: int
    is_dst: bool
    abbreviation: str = ""

    @property
    def utc_offset_minutes(self) -> int:
        return int(self.utc_offset_seconds / 60)

    @property
    def start_instant(self) -> datetime:
        return from_timestamp(self.start)


@dataclass(frozen=True)
class TransitionEvent:
    """Boundary between two adjacent segments whose offsets differ."""

    instant: datetime
    delta_minutes: int
    offset_before: int  # minutes
    offset_after: int  # minutes
    is_dst_before: bool = False
    is_dst_after: bool = False
    abbrev_before: str = ""
    abbrev_after: str = ""

    @property
    def is_forward(self) -> bool:
        """Clocks jump ahead (spring forward), leaving a gap in wall-clock time."""
        return self.delta_minutes > 0

    def to_dict(self) -> dict:
        return {
            "instant": self.instant.isoformat(),
            "delta_minutes": self.delta_minutes,
            "offset_before": self.offset_before,
            "offset_after": self.offset_after,
            "is_dst_before": self.is_dst_before,
            "is_dst_after": self.is_dst_after,
            "abbrev_before": self.abbrev_before,
            "abbrev_after": self.abbrev_after,
        }


@dataclass(frozen=True)
class LocalDateTime:
    """Wall-clock fields for one instant in one zone."""

    year: int
    month: int
    day: int
    weekday: int  # Monday == 0
    hour12: int
    hour24: int
    minute: int
    second: int
    microsecond: int = 0

    @property
    def meridiem(self) -> Meridiem:
        return Meridiem.AM if self.hour24 < 12 else Meridiem.PM

    @property
    def second_fraction(self) -> float:
        return self.microsecond / 1_000_000

    def to_datetime(self) -> datetime:
        """Naive wall-clock datetime with the same fields."""
        return datetime(
            self.year, self.month, self.day,
            self.hour24, self.minute, self.second, self.microsecond,
        )

    @classmethod
    def from_datetime(cls, wall: datetime) -> LocalDateTime:
        hour24 = wall.hour
        hour12 = hour24 % 12 or 12
        return cls(
            year=wall.year,
            month=wall.month,
            day=wall.day,
            weekday=wall.weekday(),
            hour12=hour12,
            hour24=hour24,
            minute=wall.minute,
            second=wall.second,
            microsecond=wall.microsecond,
        )

    def to_dict(self) -> dict:
        return {
            "year": self.year,
            "month": self.month,
            "day": self.day,
            "weekday": self.weekday,
            "hour12": self.hour12,
            "minute": self.minute,
            "second": self.second,
        }


@dataclass(frozen=True)
class LocalFields:
    """Output of ``LocalTimeComputer.compute`` for one instant."""

    instant: datetime
    local_date_time: LocalDateTime
    utc_offset_seconds: int
    is_dst: bool
    abbreviation: str
    segment_index: int

    @property
    def utc_offset_minutes(self) -> int:
        return int(self.utc_offset_seconds / 60)

    @property
    def meridiem(self) -> Meridiem:
        return self.local_date_time.meridiem

    def to_instant(self) -> datetime:
        """Local wall clock minus the active offset, back on the UTC timeline."""
        wall = self.local_date_time.to_datetime()
        return (wall - timedelta(seconds=self.utc_offset_seconds)).replace(tzinfo=UTC)


class WallClockKind(str, Enum):
    UNIQUE = "unique"
    NONEXISTENT = "nonexistent"
    AMBIGUOUS = "ambiguous"


FIRST_PASS = "first pass"
SECOND_PASS = "second pass"


@dataclass(frozen=True)
class WallClockInterpretation:
    instant: datetime
    utc_offset_seconds: int
    is_dst: bool
    abbreviation: str
    pass_label: Optional[str] = None

    @property
    def utc_offset_minutes(self) -> int:
        return int(self.utc_offset_seconds / 60)


@dataclass(frozen=True)
class WallClockResolution:
    """How a typed or scrubbed wall-clock value maps onto the UTC timeline."""

    wall_clock: datetime
    kind: WallClockKind
    interpretations: tuple[WallClockInterpretation, ...] = ()
    gap: Optional[TransitionEvent] = None

    @property
    def is_nonexistent(self) -> bool:
        return self.kind is WallClockKind.NONEXISTENT

    @property
    def is_ambiguous(self) -> bool:
        return self.kind is WallClockKind.AMBIGUOUS

    def preferred(self) -> WallClockInterpretation:
        """The single interpretation, or the first pass of an ambiguous one."""
        if self.kind is WallClockKind.NONEXISTENT:
            from .errors import NonexistentLocalTimeError

            raise NonexistentLocalTimeError(self.wall_clock, gap=self.gap)
        return self.interpretations[0]


@dataclass(frozen=True)
class RenderTick:
    """The record handed to every visual consumer, once per tick."""

    zone_id: str
    instant: datetime
    local_date_time: LocalDateTime
    meridiem: Meridiem
    utc_offset_minutes: int
    is_dst: bool
    dst_change: DstChange = field(default=NO_DST_CHANGE)
    tz_abbrev: str = ""
    validity: Validity = Validity.OK

    def format_utc_offset(self) -> str:
        """Offset as ``UTC+hh:mm``."""
        sign = "+" if self.utc_offset_minutes >= 0 else "-"
        hours, minutes = divmod(abs(self.utc_offset_minutes), 60)
        return f"UTC{sign}{hours:02d}:{minutes:02d}"

    def to_dict(self) -> dict:
        """Convert to dict for JSON serialization."""
        return {
            "zone_id": self.zone_id,
            "instant": self.instant.isoformat(),
            "local_date_time": self.local_date_time.to_dict(),
            "meridiem": self.meridiem.value,
            "utc_offset_minutes": self.utc_offset_minutes,
            "is_dst": self.is_dst,
            "dst_change": self.dst_change.to_dict(),
            "tz_abbrev": self.tz_abbrev,
            "validity": self.validity.value,
        }
