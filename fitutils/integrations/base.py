"""Shared machinery for the format adapters."""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import polars as pl
from pydantic import ValidationError

from ..errors import AdapterError, MalformedDocumentError, UnitConversionError
from ..models.activity import Lap, Record, Session
from .. import units

logger = logging.getLogger(__name__)

# Fields of a raw sample that describe position or metrics (everything but time)
SAMPLE_METRICS = (
    "heart_rate", "cadence", "speed", "altitude",
    "latitude", "longitude", "distance", "temperature",
)


class ActivityAdapter(ABC):
    """Maps one raw decoded document onto the canonical Session model."""

    format_name: str = ""
    extensions: Tuple[str, ...] = ()

    def read(self, path: Path) -> Session:
        """Decode ``path`` and build its Session.

        Raises:
            AdapterError: the file is malformed, unsupported, or has no anchor timestamp
        """
        raw = self.load(path)
        try:
            return self.extract(raw, str(path))
        except AdapterError as e:
            if e.path is None:
                raise type(e)(e.reason, path) from e
            raise
        except ValidationError as e:
            raise MalformedDocumentError(f"Invalid activity data: {e}", path) from e

    @abstractmethod
    def load(self, path: Path) -> Any:
        """Decode the file into the format's raw document."""

    @abstractmethod
    def extract(self, raw: Any, source: str) -> Session:
        """Build a Session from a raw document."""


class IssueLog:
    """Collects data-quality notes for one file and logs them."""

    def __init__(self, source: str):
        self.source = source
        self.messages: List[str] = []

    def add(self, message: str):
        logger.warning(f"{self.source}: {message}")
        self.messages.append(message)

    def measure(self, value, unit: str, dimension: units.Dimension, context: str) -> Optional[float]:
        """Normalize a scalar; an unusable value becomes absent and is noted."""
        if value is None:
            return None
        try:
            return units.convert(value, unit, dimension)
        except UnitConversionError as e:
            self.add(f"{context}: {e}")
            return None


def elapsed_seconds(start: datetime, moment: datetime) -> float:
    return (moment - start).total_seconds()


def build_records(samples: Iterable[Dict[str, Any]], start_time: datetime, issues: IssueLog) -> List[Record]:
    """Turn raw samples into Records, flagging time-order anomalies.

    Each sample is a dict with a ``timestamp`` plus any of SAMPLE_METRICS, an
    optional ``lap_index`` and an optional ``flags`` list. A sample that fails
    validation keeps its timestamp but loses its position and metrics.
    """
    records = []
    latest = None
    out_of_order = 0

    for position, sample in enumerate(samples):
        timestamp = sample["timestamp"]
        elapsed = elapsed_seconds(start_time, timestamp)
        flags = list(sample.get("flags", []))

        if elapsed < 0:
            flags.append("before session start")
        if latest is not None and elapsed < latest:
            flags.append("timestamp out of order")
            out_of_order += 1
        latest = elapsed if latest is None else max(latest, elapsed)

        fields = {k: sample.get(k) for k in SAMPLE_METRICS}
        try:
            record = Record(
                timestamp=timestamp,
                elapsed=elapsed,
                lap_index=sample.get("lap_index"),
                flags=flags,
                **fields,
            )
        except ValidationError as e:
            reason = "; ".join(err["msg"] for err in e.errors())
            issues.add(f"record {position}: metrics discarded ({reason})")
            record = Record(
                timestamp=timestamp,
                elapsed=elapsed,
                lap_index=sample.get("lap_index"),
                flags=flags + ["malformed sample"],
            )
        records.append(record)

    if out_of_order:
        issues.add(f"{out_of_order} record(s) out of time order")

    return records


def assign_laps(records: Sequence[Record], laps: Sequence[Lap], start_time: datetime,
                issues: IssueLog) -> List[Record]:
    """Link records without a lap to the lap whose time range encloses them.

    Lap ranges are half-open, except that the last lap also owns its end
    instant. Records outside every lap are clamped to the nearest lap and
    flagged.
    """
    if not laps:
        return list(records)

    bounds = []
    for lap in laps:
        lap_start = elapsed_seconds(start_time, lap.start_time)
        bounds.append((lap.index, lap_start, lap_start + lap.duration))

    linked = []
    clamped = 0
    for record in records:
        if record.lap_index is not None:
            linked.append(record)
            continue

        t = record.elapsed
        enclosing = [
            index for position, (index, lo, hi) in enumerate(bounds)
            if lo <= t < hi or (position == len(bounds) - 1 and t == hi)
        ]
        flags = list(record.flags)
        if enclosing:
            lap_index = enclosing[0]
            if len(enclosing) > 1:
                flags.append(f"overlapping laps {enclosing}")
        else:
            lap_index = min(bounds, key=lambda b: min(abs(t - b[1]), abs(t - b[2])))[0]
            flags.append(f"outside lap bounds, clamped to lap {lap_index}")
            clamped += 1

        linked.append(record.model_copy(update={"lap_index": lap_index, "flags": flags}))

    if clamped:
        issues.add(f"{clamped} record(s) outside lap bounds clamped to nearest lap")

    return linked


def summarize(values: Iterable[Optional[float]]) -> Tuple[Optional[float], Optional[float]]:
    """Mean and maximum of the present values, or (None, None)."""
    series = pl.Series("value", list(values), dtype=pl.Float64).drop_nulls()
    if series.len() == 0:
        return None, None
    return series.mean(), series.max()


def heart_rate_stats(records: Sequence[Record]) -> Tuple[Optional[int], Optional[int]]:
    """Average and maximum heart rate over the records."""
    avg, peak = summarize(r.heart_rate for r in records)
    if avg is None:
        return None, None
    return int(round(avg)), int(peak)


def span_seconds(start_time: datetime, records: Sequence[Record]) -> float:
    """Time from the session start to the latest record."""
    if not records:
        return 0.0
    return max(0.0, max(r.elapsed for r in records))
