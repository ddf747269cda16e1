"""DST transition scanning and upcoming/just-occurred classification."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from .rules import RuleSet
from .types import DstChange, InstantLike, TransitionEvent, as_instant, to_timestamp

logger = logging.getLogger(__name__)

DETECTION_WINDOW = timedelta(hours=24)
DEFAULT_SCAN_SPAN = timedelta(days=7)


@dataclass(frozen=True)
class ScanWindow:
    """One cached scan: the events found in ``[start, end]`` of ``rule_set``."""

    rule_set: RuleSet
    start: datetime
    end: datetime
    events: tuple[TransitionEvent, ...]

    def covers(self, reference: datetime, rule_set: RuleSet) -> bool:
        return (
            self.rule_set is rule_set
            and self.start <= reference - DETECTION_WINDOW
            and reference + DETECTION_WINDOW <= self.end
        )


def classify(reference: InstantLike, events) -> DstChange:
    """Pick the transition nearest *reference* within 24 hours.

    A transition exactly at *reference* has already happened. On an exact
    tie between a past and a future transition the future one wins.
    """
    reference = as_instant(reference)
    nearest: Optional[TransitionEvent] = None
    nearest_key = None
    for event in events:
        distance = abs(event.instant - reference)
        if distance > DETECTION_WINDOW:
            continue
        key = (distance, event.instant <= reference)
        if nearest_key is None or key < nearest_key:
            nearest, nearest_key = event, key

    if nearest is None:
        return DstChange.none()
    if nearest.instant > reference:
        return DstChange.upcoming(nearest.instant, nearest.delta_minutes)
    return DstChange.just_occurred(nearest.instant, nearest.delta_minutes)


class TransitionScanner:
    """Finds offset transitions around an instant, caching one window per zone.

    The cached window is replaced wholesale when the reference's 24-hour
    detection window leaves it or when the zone's rule set is replaced.
    """

    def __init__(self, before: timedelta = DEFAULT_SCAN_SPAN, after: timedelta = DEFAULT_SCAN_SPAN):
        if before < DETECTION_WINDOW or after < DETECTION_WINDOW:
            raise ValueError("Scan spans must cover the 24 hour detection window")
        self.before = before
        self.after = after
        self._windows: dict[str, ScanWindow] = {}

    def scan_window(
        self,
        reference: InstantLike,
        rule_set: RuleSet,
        before: timedelta,
        after: timedelta,
    ) -> list[TransitionEvent]:
        """Transitions in ``[reference - before, reference + after]``, oldest first."""
        reference = as_instant(reference)
        start = reference - before
        end = reference + after
        events = []
        for index in rule_set.boundary_indices(to_timestamp(start), to_timestamp(end)):
            event = rule_set.transition(index)
            if event.delta_minutes == 0:
                continue
            if start <= event.instant <= end:
                events.append(event)
        return events

    def window_for(self, zone_id: str, reference: InstantLike, rule_set: RuleSet) -> ScanWindow:
        """Cached window for *zone_id*, re-scanned if it no longer covers *reference*."""
        reference = as_instant(reference)
        window = self._windows.get(zone_id)
        if window is not None and window.covers(reference, rule_set):
            return window

        events = self.scan_window(reference, rule_set, self.before, self.after)
        window = ScanWindow(
            rule_set=rule_set,
            start=reference - self.before,
            end=reference + self.after,
            events=tuple(events),
        )
        self._windows[zone_id] = window
        logger.debug(
            "Scanned %s %s..%s: %d transitions",
            zone_id, window.start.isoformat(), window.end.isoformat(), len(events),
        )
        return window

    def dst_change(self, zone_id: str, reference: InstantLike, rule_set: RuleSet) -> DstChange:
        window = self.window_for(zone_id, reference, rule_set)
        return classify(reference, window.events)

    def invalidate(self, zone_id: Optional[str] = None) -> None:
        if zone_id is None:
            self._windows = {}
        else:
            self._windows.pop(zone_id, None)
