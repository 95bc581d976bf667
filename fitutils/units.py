"""Unit and time normalization.

Every scalar read from a source document passes through here exactly once, at
the adapter boundary. Downstream code only ever sees canonical units:

    distance     meters
    speed        meters/second
    temperature  degrees Celsius
    angle        degrees
    heart rate   beats/minute
    cadence      revolutions (or steps) per minute
    duration     seconds

All functions are pure.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Dict, Tuple, Union

from .errors import UnitConversionError, UnknownUnitError

# FIT timestamps are seconds since Dec 31, 1989 00:00:00 UTC
FIT_EPOCH = datetime(1989, 12, 31, 0, 0, 0, tzinfo=timezone.utc)

SEMICIRCLES_PER_180_DEGREES = 2 ** 31


class Dimension(str, Enum):
    """Physical dimensions with a canonical unit."""
    DISTANCE = "distance"
    SPEED = "speed"
    TEMPERATURE = "temperature"
    ANGLE = "angle"
    HEART_RATE = "heart_rate"
    CADENCE = "cadence"
    DURATION = "duration"


CANONICAL_UNITS = {
    Dimension.DISTANCE: "m",
    Dimension.SPEED: "m/s",
    Dimension.TEMPERATURE: "C",
    Dimension.ANGLE: "deg",
    Dimension.HEART_RATE: "bpm",
    Dimension.CADENCE: "rpm",
    Dimension.DURATION: "s",
}


@dataclass(frozen=True)
class Quantity:
    """A value expressed in the canonical unit of its dimension."""
    value: float
    dimension: Dimension

    @property
    def unit(self) -> str:
        return CANONICAL_UNITS[self.dimension]


_UNIT_TABLE: Dict[str, Tuple[Dimension, Callable[[float], float]]] = {
    # Distance
    "m": (Dimension.DISTANCE, lambda x: x),
    "meters": (Dimension.DISTANCE, lambda x: x),
    "km": (Dimension.DISTANCE, lambda x: x * 1000.0),
    "cm": (Dimension.DISTANCE, lambda x: x / 100.0),
    "mm": (Dimension.DISTANCE, lambda x: x / 1000.0),
    "mi": (Dimension.DISTANCE, lambda x: x * 1609.344),
    "ft": (Dimension.DISTANCE, lambda x: x * 0.3048),
    # Speed
    "m/s": (Dimension.SPEED, lambda x: x),
    "km/h": (Dimension.SPEED, lambda x: x / 3.6),
    "mph": (Dimension.SPEED, lambda x: x * 0.44704),
    "ft/s": (Dimension.SPEED, lambda x: x * 0.3048),
    # Temperature
    "c": (Dimension.TEMPERATURE, lambda x: x),
    "f": (Dimension.TEMPERATURE, lambda x: (x - 32.0) * 5.0 / 9.0),
    "k": (Dimension.TEMPERATURE, lambda x: x - 273.15),
    # Angle
    "deg": (Dimension.ANGLE, lambda x: x),
    "degrees": (Dimension.ANGLE, lambda x: x),
    "semicircles": (Dimension.ANGLE, lambda x: x * 180.0 / SEMICIRCLES_PER_180_DEGREES),
    "rad": (Dimension.ANGLE, lambda x: x * 57.29577951308232),
    # Heart rate
    "bpm": (Dimension.HEART_RATE, lambda x: x),
    # Cadence
    "rpm": (Dimension.CADENCE, lambda x: x),
    "spm": (Dimension.CADENCE, lambda x: x),
    "strides/min": (Dimension.CADENCE, lambda x: x),
    # Duration
    "s": (Dimension.DURATION, lambda x: x),
    "ms": (Dimension.DURATION, lambda x: x / 1000.0),
    "min": (Dimension.DURATION, lambda x: x * 60.0),
    "h": (Dimension.DURATION, lambda x: x * 3600.0),
}


def normalize(value: Union[int, float], unit: str) -> Quantity:
    """Convert a raw value tagged with ``unit`` to its canonical unit.

    Args:
        value: Raw numeric value
        unit: Source unit tag (case-insensitive)

    Returns:
        Quantity in the canonical unit for the unit's dimension

    Raises:
        UnknownUnitError: the unit tag is not recognized
        UnitConversionError: the value is not a finite number
    """
    if not isinstance(unit, str):
        raise UnknownUnitError(unit)
    try:
        dimension, convert = _UNIT_TABLE[unit.strip().lower()]
    except KeyError:
        raise UnknownUnitError(unit) from None

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise UnitConversionError(f"Non-numeric value {value!r} for unit {unit!r}")

    try:
        converted = float(convert(value))
    except OverflowError:
        converted = math.inf
    if not math.isfinite(converted):
        raise UnitConversionError(f"Non-finite value {value!r} for unit {unit!r}")
    return Quantity(converted, dimension)


def convert(value: Union[int, float], unit: str, dimension: Dimension) -> float:
    """Normalize ``value`` and check that it belongs to ``dimension``."""
    quantity = normalize(value, unit)
    if quantity.dimension is not dimension:
        raise UnitConversionError(
            f"Unit {unit!r} measures {quantity.dimension.value}, expected {dimension.value}"
        )
    return quantity.value


def angle(value: Union[int, float], unit: str) -> float:
    """Convert an angle to degrees."""
    return convert(value, unit, Dimension.ANGLE)


def distance(value: Union[int, float], unit: str) -> float:
    """Convert a distance to meters."""
    return convert(value, unit, Dimension.DISTANCE)


def speed(value: Union[int, float], unit: str) -> float:
    """Convert a speed to meters/second."""
    return convert(value, unit, Dimension.SPEED)


def duration(value: Union[int, float], unit: str) -> float:
    """Convert a duration to seconds."""
    return convert(value, unit, Dimension.DURATION)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def fit_timestamp(value: Union[int, float, datetime]) -> datetime:
    """Convert a FIT timestamp to an aware datetime.

    fitparse already decodes ``date_time`` fields to naive UTC datetimes; raw
    integers are offsets from the FIT epoch.
    """
    if isinstance(value, datetime):
        return ensure_aware(value)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise UnitConversionError(f"Not a FIT timestamp: {value!r}")
    return FIT_EPOCH + timedelta(seconds=int(value))


def parse_instant(text: str) -> datetime:
    """Parse an XML Schema ``dateTime`` (as used by GPX and TCX).

    Raises:
        UnitConversionError: the text is not a valid instant
    """
    if not isinstance(text, str) or not text.strip():
        raise UnitConversionError(f"Not an instant: {text!r}")
    cleaned = text.strip()
    if cleaned.endswith(("Z", "z")):
        cleaned = cleaned[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(cleaned)
    except ValueError as e:
        raise UnitConversionError(f"Not an instant: {text!r}") from e
    return ensure_aware(parsed)


def format_duration(seconds: float) -> str:
    """Render seconds as HH:MM:SS."""
    total = int(seconds)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02}:{minutes:02}:{secs:02}"
