"""Data models for fitutils."""

from .activity import (
    Activity,
    ActivityType,
    HeartRateZones,
    Lap,
    Record,
    Session,
    Waypoint,
)
from .reports import BatchSummary, FileReport, FileStatus

__all__ = [
    "Activity",
    "ActivityType",
    "BatchSummary",
    "FileReport",
    "FileStatus",
    "HeartRateZones",
    "Lap",
    "Record",
    "Session",
    "Waypoint",
]
