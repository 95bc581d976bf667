"""Tabular views of the activity model.

Column order is fixed; absent values become nulls (empty CSV cells), never
missing columns. ``source_file`` is the join key shared by every table.
"""

from typing import Dict, List, Optional, Sequence

import polars as pl

from ..models.activity import HeartRateZones, Session

HR_ZONE_COLUMNS = [f"hr_zone_{i}" for i in range(5)]

SESSION_SCHEMA: Dict[str, pl.DataType] = {
    "source_file": pl.Utf8,
    "source_format": pl.Utf8,
    "start_time": pl.Utf8,
    "duration": pl.Float64,
    "activity": pl.Utf8,
    "activity_detail": pl.Utf8,
    "distance": pl.Float64,
    "avg_heart_rate": pl.Int64,
    "max_heart_rate": pl.Int64,
    **{column: pl.Float64 for column in HR_ZONE_COLUMNS},
    "manufacturer": pl.Utf8,
    "product": pl.Utf8,
    "serial_number": pl.Utf8,
    "num_laps": pl.Int64,
    "num_records": pl.Int64,
}

LAP_SCHEMA: Dict[str, pl.DataType] = {
    "source_file": pl.Utf8,
    "lap_index": pl.Int64,
    "start_time": pl.Utf8,
    "duration": pl.Float64,
    "distance": pl.Float64,
    "avg_cadence": pl.Float64,
    "max_cadence": pl.Float64,
    "avg_heart_rate": pl.Int64,
    "max_heart_rate": pl.Int64,
    **{column: pl.Float64 for column in HR_ZONE_COLUMNS},
}

RECORD_SCHEMA: Dict[str, pl.DataType] = {
    "source_file": pl.Utf8,
    "lap_index": pl.Int64,
    "timestamp": pl.Utf8,
    "elapsed": pl.Float64,
    "heart_rate": pl.Int64,
    "cadence": pl.Float64,
    "speed": pl.Float64,
    "altitude": pl.Float64,
    "latitude": pl.Float64,
    "longitude": pl.Float64,
    "distance": pl.Float64,
    "temperature": pl.Float64,
    "flags": pl.Utf8,
}

WAYPOINT_SCHEMA: Dict[str, pl.DataType] = {
    "source_file": pl.Utf8,
    "name": pl.Utf8,
    "latitude": pl.Float64,
    "longitude": pl.Float64,
    "elevation": pl.Float64,
    "time": pl.Utf8,
    "description": pl.Utf8,
    "symbol": pl.Utf8,
}


def _zones(zones: Optional[HeartRateZones]) -> List[Optional[float]]:
    return zones.as_list() if zones is not None else [None] * 5


def _frame(rows: List[tuple], schema: Dict[str, pl.DataType]) -> pl.DataFrame:
    return pl.DataFrame(rows, schema=schema, orient="row")


def session_row(session: Session) -> tuple:
    activity = session.activity.display_name if session.activity is not None else None
    return (
        session.source_file,
        session.source_format,
        session.start_time.isoformat(),
        session.duration,
        activity,
        session.activity_detail,
        session.distance,
        session.avg_heart_rate,
        session.max_heart_rate,
        *_zones(session.hr_zones),
        session.manufacturer,
        session.product,
        session.serial_number,
        len(session.laps),
        len(session.records),
    )


def session_table(sessions: Sequence[Session]) -> pl.DataFrame:
    """One row per session."""
    return _frame([session_row(s) for s in sessions], SESSION_SCHEMA)


def lap_table(session: Session) -> pl.DataFrame:
    rows = [
        (
            session.source_file,
            lap.index,
            lap.start_time.isoformat(),
            lap.duration,
            lap.distance,
            lap.avg_cadence,
            lap.max_cadence,
            lap.avg_heart_rate,
            lap.max_heart_rate,
            *_zones(lap.hr_zones),
        )
        for lap in session.laps
    ]
    return _frame(rows, LAP_SCHEMA)


def record_table(session: Session) -> pl.DataFrame:
    rows = [
        (
            session.source_file,
            record.lap_index,
            record.timestamp.isoformat(),
            record.elapsed,
            record.heart_rate,
            record.cadence,
            record.speed,
            record.altitude,
            record.latitude,
            record.longitude,
            record.distance,
            record.temperature,
            ";".join(record.flags) if record.flags else None,
        )
        for record in session.records
    ]
    return _frame(rows, RECORD_SCHEMA)


def waypoint_table(session: Session) -> pl.DataFrame:
    rows = [
        (
            session.source_file,
            wpt.name,
            wpt.latitude,
            wpt.longitude,
            wpt.elevation,
            wpt.time.isoformat() if wpt.time is not None else None,
            wpt.description,
            wpt.symbol,
        )
        for wpt in session.waypoints
    ]
    return _frame(rows, WAYPOINT_SCHEMA)
