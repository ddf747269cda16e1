"""Instant -> wall clock, and wall clock -> instant(s)."""

from __future__ import annotations

from datetime import datetime, timedelta

from .errors import NonexistentLocalTimeError
from .rules import RuleSet
from .types import (
    FIRST_PASS,
    SECOND_PASS,
    UTC,
    InstantLike,
    LocalDateTime,
    LocalFields,
    TransitionEvent,
    WallClockInterpretation,
    WallClockKind,
    WallClockResolution,
    as_instant,
    from_timestamp,
    to_timestamp,
)

# Real-world offsets stay well inside a day either side of UTC
_SEARCH_MARGIN = 2 * 86400


def _pass_label(position: int) -> str:
    if position == 0:
        return FIRST_PASS
    if position == 1:
        return SECOND_PASS
    return f"pass {position + 1}"


class LocalTimeComputer:
    """Pure conversions against a ``RuleSet``; holds no state."""

    def compute(self, instant: InstantLike, rule_set: RuleSet) -> LocalFields:
        """
        Get wall-clock fields for *instant* in the zone described by *rule_set*.

        Args:
            instant: Absolute point on the UTC timeline
            rule_set: Offset history of the zone

        Returns:
            LocalFields for the segment covering the instant
        """
        instant = as_instant(instant)
        index = rule_set.segment_index_at(to_timestamp(instant))
        segment = rule_set[index]
        wall = (instant + timedelta(seconds=segment.utc_offset_seconds)).replace(tzinfo=None)
        return LocalFields(
            instant=instant,
            local_date_time=LocalDateTime.from_datetime(wall),
            utc_offset_seconds=segment.utc_offset_seconds,
            is_dst=segment.is_dst,
            abbreviation=segment.abbreviation,
            segment_index=index,
        )

    def inspect_wall_clock(self, wall_clock: datetime, rule_set: RuleSet) -> WallClockResolution:
        """Classify a wall-clock value as unique, nonexistent or ambiguous.

        Every segment near the wall clock is tried; an interpretation counts
        only if ``wall - offset`` lands inside that segment. Ambiguous values
        are ordered by instant, the earlier one being the first pass.
        """
        if wall_clock.tzinfo is not None:
            raise ValueError("Wall-clock values must be naive datetimes")

        local_seconds = to_timestamp(wall_clock.replace(tzinfo=UTC))
        micro = timedelta(microseconds=wall_clock.microsecond)
        first = rule_set.segment_index_at(local_seconds - _SEARCH_MARGIN)
        last = rule_set.segment_index_at(local_seconds + _SEARCH_MARGIN)

        matches = []
        for index in range(first, last + 1):
            segment = rule_set[index]
            utc_seconds = local_seconds - segment.utc_offset_seconds
            end = rule_set.end_of(index)
            if segment.start <= utc_seconds and (end is None or utc_seconds < end):
                matches.append((utc_seconds, segment))

        if not matches:
            return WallClockResolution(
                wall_clock=wall_clock,
                kind=WallClockKind.NONEXISTENT,
                gap=self._gap_for(local_seconds, rule_set, first, last),
            )

        matches.sort(key=lambda m: m[0])
        ambiguous = len(matches) > 1
        interpretations = tuple(
            WallClockInterpretation(
                instant=from_timestamp(utc_seconds) + micro,
                utc_offset_seconds=segment.utc_offset_seconds,
                is_dst=segment.is_dst,
                abbreviation=segment.abbreviation,
                pass_label=_pass_label(position) if ambiguous else None,
            )
            for position, (utc_seconds, segment) in enumerate(matches)
        )
        return WallClockResolution(
            wall_clock=wall_clock,
            kind=WallClockKind.AMBIGUOUS if ambiguous else WallClockKind.UNIQUE,
            interpretations=interpretations,
        )

    def to_instant(self, wall_clock: datetime, rule_set: RuleSet) -> datetime:
        """Wall clock -> instant, taking the first pass when ambiguous.

        Raises:
            NonexistentLocalTimeError: the wall clock sits in a forward gap
        """
        resolution = self.inspect_wall_clock(wall_clock, rule_set)
        if resolution.is_nonexistent:
            raise NonexistentLocalTimeError(wall_clock, gap=resolution.gap, zone_id=rule_set.zone_id)
        return resolution.preferred().instant

    @staticmethod
    def _gap_for(local_seconds: int, rule_set: RuleSet, first: int, last: int) -> TransitionEvent | None:
        for index in range(max(first, 1), last + 1):
            before = rule_set[index - 1]
            after = rule_set[index]
            gap_start = after.start + before.utc_offset_seconds
            gap_end = after.start + after.utc_offset_seconds
            if gap_start <= local_seconds < gap_end:
                return rule_set.transition(index)
        return None
