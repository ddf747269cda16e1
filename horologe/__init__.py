"""Horologe - time-zone aware tick engine for clock faces."""

from .core import (
    DstChange,
    DstChangeKind,
    RenderTick,
    TimeEngine,
    TimeZoneDatabase,
    TimeZoneResolver,
    Validity,
)

__all__ = [
    "DstChange",
    "DstChangeKind",
    "RenderTick",
    "TimeEngine",
    "TimeZoneDatabase",
    "TimeZoneResolver",
    "Validity",
]
