"""Human-readable session summaries for the ``show`` command."""

from typing import List

from ..models.activity import HR_ZONE_NAMES, Session
from ..units import format_duration


def _value(value, suffix: str = "") -> str:
    if value is None:
        return "-"
    return f"{value}{suffix}"


def format_session(session: Session) -> List[str]:
    """Summary lines for one session."""
    activity = session.activity.display_name if session.activity is not None else None
    distance = f"{session.distance / 1000:.2f} km" if session.distance is not None else None

    lines = [
        f"File:         {session.source_file} ({session.source_format.upper()})",
        f"Device:       {_value(session.manufacturer)} {_value(session.product)}"
        f" (serial {_value(session.serial_number)})",
        f"Start time:   {session.start_time.isoformat()}",
        f"Activity:     {_value(activity)}"
        + (f" / {session.activity_detail}" if session.activity_detail else ""),
        f"Duration:     {format_duration(session.duration)}",
        f"Distance:     {_value(distance)}",
        f"Heart rate:   avg {_value(session.avg_heart_rate, ' bpm')}, max {_value(session.max_heart_rate, ' bpm')}",
        f"Laps:         {len(session.laps)}",
        f"Records:      {len(session.records)} ({len(session.flagged_records)} flagged)",
    ]
    if session.waypoints:
        lines.append(f"Waypoints:    {len(session.waypoints)}")

    if session.hr_zones is not None:
        lines.append("Time in heart-rate zones:")
        for number, (name, seconds) in enumerate(zip(HR_ZONE_NAMES, session.hr_zones.as_list())):
            lines.append(f"  Zone {number} ({name}): {format_duration(seconds)}")

    for issue in session.issues:
        lines.append(f"Warning: {issue}")
    return lines
