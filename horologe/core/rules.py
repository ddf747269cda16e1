"""Rule sets: the offset history of one zone as an ordered segment table."""

from __future__ import annotations

import logging
from bisect import bisect_left, bisect_right
from datetime import datetime, timedelta, tzinfo
from typing import Iterator, Optional, Sequence

from .types import (
    DAWN_OF_TIME,
    UTC,
    OffsetSegment,
    TransitionEvent,
    as_instant,
    from_timestamp,
    to_timestamp,
)

logger = logging.getLogger(__name__)

DEFAULT_START_YEAR = 1900
DEFAULT_END_YEAR = 2100
SAMPLE_STEP = 86400  # seconds

_State = tuple[int, bool, str]


class RuleSet:
    """Immutable, gap-free sequence of offset segments for one zone.

    Segment starts are strictly increasing and the first one is
    ``DAWN_OF_TIME``, so every instant has exactly one active segment.
    Lookup is a predecessor search over the parallel ``starts`` list.
    """

    __slots__ = ("_zone_id", "_segments", "_starts", "_edition")

    def __init__(self, zone_id: str, segments: Sequence[OffsetSegment], edition: Optional[str] = None):
        if not segments:
            raise ValueError("A rule set needs at least one segment")
        if segments[0].start != DAWN_OF_TIME:
            raise ValueError("The first segment must start at DAWN_OF_TIME")
        starts = [s.start for s in segments]
        if any(b <= a for a, b in zip(starts, starts[1:])):
            raise ValueError("Segment starts must be strictly increasing")
        self._zone_id = zone_id
        self._segments = tuple(segments)
        self._starts = tuple(starts)
        self._edition = edition

    @classmethod
    def utc(cls) -> RuleSet:
        """Single zero-offset segment, used whenever resolution fails."""
        return cls("UTC", [OffsetSegment(DAWN_OF_TIME, 0, False, "UTC")])

    @property
    def zone_id(self) -> str:
        return self._zone_id

    @property
    def edition(self) -> Optional[str]:
        return self._edition

    @property
    def segments(self) -> tuple[OffsetSegment, ...]:
        return self._segments

    @property
    def starts(self) -> tuple[int, ...]:
        return self._starts

    def __len__(self) -> int:
        return len(self._segments)

    def __iter__(self) -> Iterator[OffsetSegment]:
        return iter(self._segments)

    def __getitem__(self, index: int) -> OffsetSegment:
        return self._segments[index]

    def __repr__(self) -> str:
        return f"RuleSet({self._zone_id!r}, segments={len(self._segments)})"

    def segment_index_at(self, timestamp: int) -> int:
        """Index of the segment with the largest start <= *timestamp*."""
        return max(bisect_right(self._starts, timestamp) - 1, 0)

    def segment_at(self, instant) -> OffsetSegment:
        return self._segments[self.segment_index_at(to_timestamp(instant))]

    def end_of(self, index: int) -> Optional[int]:
        """Exclusive end of segment *index*; None for the last segment."""
        if index + 1 < len(self._starts):
            return self._starts[index + 1]
        return None

    def transition(self, index: int) -> TransitionEvent:
        """The boundary where segment *index* takes over from its predecessor."""
        if index < 1:
            raise IndexError("The first segment has no predecessor")
        before = self._segments[index - 1]
        after = self._segments[index]
        return TransitionEvent(
            instant=after.start_instant,
            delta_minutes=int((after.utc_offset_seconds - before.utc_offset_seconds) / 60),
            offset_before=before.utc_offset_minutes,
            offset_after=after.utc_offset_minutes,
            is_dst_before=before.is_dst,
            is_dst_after=after.is_dst,
            abbrev_before=before.abbreviation,
            abbrev_after=after.abbreviation,
        )

    def boundary_indices(self, start: int, end: int) -> range:
        """Indices of segments whose start lies in ``[start, end]``, excluding the first."""
        return range(max(bisect_left(self._starts, start), 1), bisect_right(self._starts, end))


def _state_at(zone: tzinfo, timestamp: int) -> _State:
    local = from_timestamp(timestamp).astimezone(zone)
    offset = local.utcoffset() or timedelta(0)
    return (
        int(offset.total_seconds()),
        bool(local.dst()),
        local.tzname() or "",
    )


def _first_change(zone: tzinfo, low: int, high: int, state: _State) -> int:
    """Smallest second in ``(low, high]`` whose state differs from *state*."""
    while high - low > 1:
        mid = (low + high) // 2
        if _state_at(zone, mid) == state:
            low = mid
        else:
            high = mid
    return high


def _year_start(year: int) -> int:
    return to_timestamp(datetime(year, 1, 1, tzinfo=UTC))


def compile_rule_set(
    zone_id: str,
    zone: tzinfo,
    start_year: int = DEFAULT_START_YEAR,
    end_year: int = DEFAULT_END_YEAR,
    edition: Optional[str] = None,
    step: int = SAMPLE_STEP,
) -> RuleSet:
    """Build the segment table for *zone* by sampling and bisecting.

    The zone is sampled every *step* seconds from the start of *start_year*
    to the start of *end_year*; each change in (offset, dst, abbreviation) is
    narrowed down to the exact second. The first sampled state is extended
    back to ``DAWN_OF_TIME`` and the last one forward forever.
    """
    if end_year <= start_year:
        raise ValueError("end_year must be after start_year")

    low = _year_start(start_year)
    end = _year_start(end_year)
    state = _state_at(zone, low)
    segments = [OffsetSegment(DAWN_OF_TIME, *state)]

    probe = low + step
    while probe <= end:
        probe_state = _state_at(zone, probe)
        if probe_state == state:
            low = probe
            probe += step
            continue
        # More than one change may sit inside a step; re-check the same probe
        boundary = _first_change(zone, low, probe, state)
        state = _state_at(zone, boundary)
        segments.append(OffsetSegment(boundary, *state))
        low = boundary

    logger.debug("Compiled %s: %d segments (%d-%d)", zone_id, len(segments), start_year, end_year)
    return RuleSet(zone_id, segments, edition=edition)


def offset_at(rule_set: RuleSet, instant) -> int:
    """UTC offset in minutes of the segment covering *instant*."""
    return rule_set.segment_at(as_instant(instant)).utc_offset_minutes
