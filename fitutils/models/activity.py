"""Canonical activity model shared by all source formats."""

import logging
from datetime import datetime
from enum import Enum
from typing import Annotated, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
    model_validator,
)

logger = logging.getLogger(__name__)

# Instants are always rendered with an explicit offset, e.g. 2022-02-10T06:50:10+00:00
Instant = Annotated[
    datetime,
    PlainSerializer(lambda v: v.isoformat(), return_type=str, when_used="json"),
]

HR_ZONE_NAMES = ("Warmup", "Fat Burning", "Aerobic", "Anaerobic", "Speed/Power")


class ActivityType(str, Enum):
    """Canonical activity types."""
    RUNNING = "Running"
    CYCLING = "Cycling"
    SWIMMING = "Swimming"
    WALKING = "Walking"
    HIKING = "Hiking"
    ROWING = "Rowing"
    INDOOR_ROWING = "IndoorRowing"
    TRAINING = "Training"
    OTHER = "Other"


# Keys are lowercased with spaces, dashes and underscores removed
_ACTIVITY_ALIASES = {
    "running": ActivityType.RUNNING,
    "run": ActivityType.RUNNING,
    "trailrunning": ActivityType.RUNNING,
    "treadmillrunning": ActivityType.RUNNING,
    "cycling": ActivityType.CYCLING,
    "biking": ActivityType.CYCLING,
    "bike": ActivityType.CYCLING,
    "ride": ActivityType.CYCLING,
    "swimming": ActivityType.SWIMMING,
    "swim": ActivityType.SWIMMING,
    "walking": ActivityType.WALKING,
    "walk": ActivityType.WALKING,
    "hiking": ActivityType.HIKING,
    "hike": ActivityType.HIKING,
    "rowing": ActivityType.ROWING,
    "indoorrowing": ActivityType.INDOOR_ROWING,
    "training": ActivityType.TRAINING,
}


def _alias_key(label: str) -> str:
    return "".join(ch for ch in label.lower() if ch not in " -_")


class Activity(BaseModel):
    """Activity type plus the raw label the source used for it."""
    model_config = ConfigDict(frozen=True)

    kind: ActivityType
    label: str

    @classmethod
    def from_label(cls, label: str) -> "Activity":
        """Map a source sport label; unknown labels become OTHER, keeping the label."""
        kind = _ACTIVITY_ALIASES.get(_alias_key(label), ActivityType.OTHER)
        return cls(kind=kind, label=label)

    @property
    def display_name(self) -> str:
        if self.kind is ActivityType.OTHER:
            return title_case(self.label)
        return self.kind.value


def title_case(label: str) -> str:
    """'indoor_rowing' -> 'Indoor Rowing'."""
    return " ".join(part.capitalize() for part in label.replace("_", " ").split())


class HeartRateZones(BaseModel):
    """Seconds spent in each heart-rate zone (0 = warmup ... 4 = speed/power)."""
    model_config = ConfigDict(frozen=True)

    zone_0: float = Field(0.0, ge=0)
    zone_1: float = Field(0.0, ge=0)
    zone_2: float = Field(0.0, ge=0)
    zone_3: float = Field(0.0, ge=0)
    zone_4: float = Field(0.0, ge=0)

    @classmethod
    def from_seconds(cls, values) -> "HeartRateZones":
        values = list(values)
        if len(values) != 5:
            raise ValueError(f"expected 5 heart-rate zones, got {len(values)}")
        return cls(**{f"zone_{i}": v for i, v in enumerate(values)})

    def as_list(self) -> List[float]:
        return [self.zone_0, self.zone_1, self.zone_2, self.zone_3, self.zone_4]

    @property
    def total(self) -> float:
        return sum(self.as_list())


class Record(BaseModel):
    """One timestamped sample (trackpoint)."""
    model_config = ConfigDict(frozen=True)

    timestamp: Instant
    elapsed: float  # seconds since session start
    lap_index: Optional[int] = None
    heart_rate: Optional[int] = Field(None, ge=0)
    cadence: Optional[float] = Field(None, ge=0)
    speed: Optional[float] = Field(None, ge=0)
    altitude: Optional[float] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    distance: Optional[float] = Field(None, ge=0)
    temperature: Optional[float] = None
    flags: List[str] = Field(default_factory=list)

    @property
    def flagged(self) -> bool:
        return bool(self.flags)


class Lap(BaseModel):
    """A sub-interval of a session."""
    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=1)
    start_time: Instant
    duration: float = Field(0.0, ge=0)
    distance: Optional[float] = Field(None, ge=0)
    avg_cadence: Optional[float] = Field(None, ge=0)
    max_cadence: Optional[float] = Field(None, ge=0)
    avg_heart_rate: Optional[int] = Field(None, ge=0)
    max_heart_rate: Optional[int] = Field(None, ge=0)
    hr_zones: Optional[HeartRateZones] = None


class Waypoint(BaseModel):
    """A named point of interest outside the time series."""
    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    elevation: Optional[float] = None
    time: Optional[Instant] = None
    description: Optional[str] = None
    symbol: Optional[str] = None


class Session(BaseModel):
    """One recorded activity, the root of the canonical model."""
    model_config = ConfigDict(frozen=True)

    source_file: str
    source_format: str
    start_time: Instant
    duration: float = Field(0.0, ge=0)
    activity: Optional[Activity] = None
    activity_detail: Optional[str] = None
    distance: Optional[float] = Field(None, ge=0)
    avg_heart_rate: Optional[int] = Field(None, ge=0)
    max_heart_rate: Optional[int] = Field(None, ge=0)
    hr_zones: Optional[HeartRateZones] = None
    manufacturer: Optional[str] = None
    product: Optional[str] = None
    serial_number: Optional[str] = None
    laps: List[Lap] = Field(default_factory=list)
    records: List[Record] = Field(default_factory=list)
    waypoints: List[Waypoint] = Field(default_factory=list)

    # Data-quality notes gathered while building the session; not exported
    issues: List[str] = Field(default_factory=list, exclude=True)

    @field_validator("start_time")
    @classmethod
    def require_aware_start(cls, v):
        """The session anchor must be a time-zone-aware instant."""
        if v.tzinfo is None:
            raise ValueError("start_time must be time-zone aware")
        return v

    @model_validator(mode="after")
    def check_invariants(self):
        """Enforce lap numbering; warn on zone overflow."""
        for position, lap in enumerate(self.laps, start=1):
            if lap.index != position:
                raise ValueError(
                    f"lap indices must be contiguous from 1, found {lap.index} at position {position}"
                )

        if self.hr_zones is not None and self.hr_zones.total > self.duration + 1.0:
            message = (
                f"time in heart-rate zones ({self.hr_zones.total:.0f}s) exceeds "
                f"activity duration ({self.duration:.0f}s)"
            )
            logger.warning(f"{self.source_file}: {message}")
            self.issues.append(message)

        return self

    @property
    def flagged_records(self) -> List[Record]:
        return [r for r in self.records if r.flagged]
