"""GPX adapter: maps a gpxpy document onto the canonical Session."""

import logging
from pathlib import Path
from typing import Dict, List, Optional

import gpxpy
import gpxpy.gpx

from ..errors import MalformedDocumentError, MissingTimestampError, UnsupportedVersionError
from ..models.activity import Activity, Lap, Session, Waypoint
from ..units import Dimension, ensure_aware
from .base import ActivityAdapter, IssueLog, build_records, heart_rate_stats, span_seconds, summarize

logger = logging.getLogger(__name__)

SUPPORTED_VERSIONS = ("1.0", "1.1")

# Garmin TrackPointExtension elements (matched by local name)
_EXTENSION_FIELDS = {
    "hr": ("heart_rate", "bpm", Dimension.HEART_RATE),
    "cad": ("cadence", "rpm", Dimension.CADENCE),
    "atemp": ("temperature", "C", Dimension.TEMPERATURE),
    "speed": ("speed", "m/s", Dimension.SPEED),
}


def extension_values(point) -> Dict[str, str]:
    """Text of every leaf in a point's extensions, keyed by lowercased local name."""
    values = {}
    for extension in point.extensions or []:
        for element in extension.iter():
            if element.text and element.text.strip():
                values[element.tag.rsplit("}", 1)[-1].lower()] = element.text.strip()
    return values


class GPXAdapter(ActivityAdapter):
    """Adapter for GPS Exchange Format files."""

    format_name = "gpx"
    extensions = (".gpx",)

    def load(self, path: Path) -> gpxpy.gpx.GPX:
        """Parse a GPX file with gpxpy."""
        try:
            with open(path, encoding="utf-8") as gpx_file:
                gpx = gpxpy.parse(gpx_file)
        except gpxpy.gpx.GPXException as e:
            raise MalformedDocumentError(f"Unable to parse GPX: {e}", path) from e
        except (OSError, UnicodeDecodeError) as e:
            raise MalformedDocumentError(f"Unable to read file: {e}", path) from e

        if gpx.version and gpx.version not in SUPPORTED_VERSIONS:
            raise UnsupportedVersionError(f"GPX version {gpx.version} is not supported", path)
        return gpx

    def extract(self, raw: gpxpy.gpx.GPX, source: str) -> Session:
        issues = IssueLog(source)

        segments = [segment for track in raw.tracks for segment in track.segments]
        points = [point for segment in segments for point in segment.points]

        first_point_time = next((ensure_aware(p.time) for p in points if p.time), None)
        start_time = self._anchor(raw, first_point_time)
        if start_time is None:
            raise MissingTimestampError("Neither metadata nor any track point carries a time", source)

        samples = []
        laps = []
        covered = 0.0
        for segment in segments:
            # Segments without timed points produce no lap
            index = len(laps) + 1
            segment_samples = self._segment_samples(segment, index, issues, covered)
            samples.extend(segment_samples)
            if segment_samples:
                covered = segment_samples[-1]["distance"]
            lap = self._lap(segment, index, segment_samples, issues)
            if lap is not None:
                laps.append(lap)

        records = build_records(samples, start_time, issues)
        avg_hr, max_hr = heart_rate_stats(records)

        track_types = [t.type for t in raw.tracks if t.type]
        activity = Activity.from_label(track_types[0]) if track_types else None

        return Session(
            source_file=source,
            source_format=self.format_name,
            start_time=start_time,
            duration=span_seconds(start_time, records),
            activity=activity,
            distance=issues.measure(raw.length_2d(), "m", Dimension.DISTANCE, "track length") if points else None,
            avg_heart_rate=avg_hr,
            max_heart_rate=max_hr,
            product=raw.creator or None,
            laps=laps,
            records=records,
            waypoints=self._waypoints(raw, issues),
            issues=issues.messages,
        )

    def _anchor(self, raw: gpxpy.gpx.GPX, first_point_time):
        """Earliest of the metadata time and the first timed track point."""
        candidates = [first_point_time]
        if raw.time:
            candidates.append(ensure_aware(raw.time))
        candidates = [c for c in candidates if c is not None]
        return min(candidates) if candidates else None

    def _segment_samples(self, segment, lap_index: int, issues: IssueLog,
                         covered: float = 0.0) -> List[Dict]:
        """Samples for one segment; distance continues from ``covered`` meters."""
        samples = []
        cumulative = covered
        previous = None
        skipped = 0

        for position, point in enumerate(segment.points):
            if point.time is None:
                skipped += 1
                continue

            context = f"lap {lap_index} point {position}"
            if previous is not None:
                step = point.distance_2d(previous)
                cumulative += step or 0.0
            previous = point

            sample = {
                "timestamp": ensure_aware(point.time),
                "lap_index": lap_index,
                "latitude": issues.measure(point.latitude, "deg", Dimension.ANGLE, context),
                "longitude": issues.measure(point.longitude, "deg", Dimension.ANGLE, context),
                "altitude": issues.measure(point.elevation, "m", Dimension.DISTANCE, context),
                "distance": cumulative,
                "speed": issues.measure(point.speed, "m/s", Dimension.SPEED, context),
            }

            for tag, text in extension_values(point).items():
                if tag not in _EXTENSION_FIELDS:
                    continue
                key, unit, dimension = _EXTENSION_FIELDS[tag]
                try:
                    number = float(text)
                except ValueError:
                    issues.add(f"{context}: unreadable {tag} value {text!r}")
                    sample.setdefault("flags", []).append("malformed sample")
                    continue
                sample[key] = issues.measure(number, unit, dimension, context)

            if sample["speed"] is None:
                sample["speed"] = segment.get_speed(position)
            if sample.get("heart_rate") is not None:
                sample["heart_rate"] = int(round(sample["heart_rate"]))

            samples.append(sample)

        if skipped:
            issues.add(f"lap {lap_index}: {skipped} point(s) without time skipped")
        return samples

    def _lap(self, segment, index: int, samples: List[Dict], issues: IssueLog) -> Optional[Lap]:
        if not samples:
            return None
        lap_start = samples[0]["timestamp"]
        lap_end = max(s["timestamp"] for s in samples)
        avg_hr, max_hr = summarize(s.get("heart_rate") for s in samples)
        avg_cad, max_cad = summarize(s.get("cadence") for s in samples)
        return Lap(
            index=index,
            start_time=lap_start,
            duration=(lap_end - lap_start).total_seconds(),
            distance=issues.measure(segment.length_2d(), "m", Dimension.DISTANCE, f"lap {index} length"),
            avg_cadence=avg_cad,
            max_cadence=max_cad,
            avg_heart_rate=int(round(avg_hr)) if avg_hr is not None else None,
            max_heart_rate=int(max_hr) if max_hr is not None else None,
        )

    def _waypoints(self, raw: gpxpy.gpx.GPX, issues: IssueLog) -> List[Waypoint]:
        waypoints = []
        for position, wpt in enumerate(raw.waypoints):
            context = f"waypoint {position}"
            latitude = issues.measure(wpt.latitude, "deg", Dimension.ANGLE, context)
            longitude = issues.measure(wpt.longitude, "deg", Dimension.ANGLE, context)
            if latitude is None or longitude is None:
                continue
            waypoints.append(Waypoint(
                name=wpt.name,
                latitude=latitude,
                longitude=longitude,
                elevation=issues.measure(wpt.elevation, "m", Dimension.DISTANCE, context),
                time=ensure_aware(wpt.time) if wpt.time else None,
                description=wpt.description,
                symbol=wpt.symbol,
            ))
        return waypoints
