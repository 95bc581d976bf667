"""TCX adapter: maps a Training Center XML tree onto the canonical Session."""

import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Dict, List, Optional

from ..errors import MalformedDocumentError, MissingTimestampError, UnitConversionError, UnsupportedVersionError
from ..models.activity import Activity, Lap, Session
from ..units import Dimension, parse_instant
from .base import ActivityAdapter, IssueLog, build_records, heart_rate_stats

logger = logging.getLogger(__name__)

TCX_NAMESPACE = "http://www.garmin.com/xmlschemas/TrainingCenterDatabase/v2"
NS = {
    "tcx": TCX_NAMESPACE,
    "ext": "http://www.garmin.com/xmlschemas/ActivityExtension/v2",
}


def local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def find_text(element: ET.Element, path: str) -> Optional[str]:
    found = element.find(path, NS)
    if found is None or found.text is None or not found.text.strip():
        return None
    return found.text.strip()


class TCXAdapter(ActivityAdapter):
    """Adapter for Garmin Training Center XML files."""

    format_name = "tcx"
    extensions = (".tcx",)

    def load(self, path: Path) -> ET.Element:
        """Parse the XML tree and check it is a TCX v2 document."""
        try:
            root = ET.parse(path).getroot()
        except ET.ParseError as e:
            raise MalformedDocumentError(f"Unable to parse TCX: {e}", path) from e
        except OSError as e:
            raise MalformedDocumentError(f"Unable to read file: {e}", path) from e

        if local_name(root.tag) != "TrainingCenterDatabase":
            raise MalformedDocumentError(f"Unexpected root element <{local_name(root.tag)}>", path)
        if root.tag != f"{{{TCX_NAMESPACE}}}TrainingCenterDatabase":
            raise UnsupportedVersionError(f"Unsupported TCX namespace in {root.tag}", path)
        return root

    def extract(self, raw: ET.Element, source: str) -> Session:
        issues = IssueLog(source)

        activities = raw.findall("tcx:Activities/tcx:Activity", NS)
        if not activities:
            raise MalformedDocumentError("Document contains no activities", source)
        if len(activities) > 1:
            issues.add(f"file contains {len(activities)} activities; using the first")
        activity_element = activities[0]

        lap_elements = activity_element.findall("tcx:Lap", NS)
        start_time = self._anchor(activity_element, lap_elements, issues)
        if start_time is None:
            raise MissingTimestampError("No activity id, lap start or trackpoint time", source)

        laps = []
        samples = []
        for lap_element in lap_elements:
            index = len(laps) + 1
            lap_samples = self._samples(lap_element, index, issues)
            lap = self._lap(lap_element, index, lap_samples, issues)
            if lap is None:
                continue
            laps.append(lap)
            samples.extend(lap_samples)

        records = build_records(samples, start_time, issues)

        durations = [lap.duration for lap in laps]
        distances = [lap.distance for lap in laps if lap.distance is not None]
        avg_hr, max_hr = self._session_heart_rate(laps)
        if avg_hr is None and max_hr is None:
            avg_hr, max_hr = heart_rate_stats(records)

        sport = activity_element.get("Sport")
        product = find_text(activity_element, "tcx:Creator/tcx:Name")
        serial = find_text(activity_element, "tcx:Creator/tcx:UnitId")

        return Session(
            source_file=source,
            source_format=self.format_name,
            start_time=start_time,
            duration=sum(durations),
            activity=Activity.from_label(sport) if sport else None,
            distance=sum(distances) if distances else None,
            avg_heart_rate=avg_hr,
            max_heart_rate=max_hr,
            product=product,
            serial_number=serial,
            laps=laps,
            records=records,
            issues=issues.messages,
        )

    def _instant(self, text: Optional[str], issues: IssueLog, context: str):
        if text is None:
            return None
        try:
            return parse_instant(text)
        except UnitConversionError as e:
            issues.add(f"{context}: {e}")
            return None

    def _number(self, element: ET.Element, path: str, unit: str, dimension: Dimension,
                issues: IssueLog, context: str) -> Optional[float]:
        text = find_text(element, path)
        if text is None:
            return None
        try:
            value = float(text)
        except ValueError:
            issues.add(f"{context}: unreadable {local_name(path)} value {text!r}")
            return None
        return issues.measure(value, unit, dimension, context)

    def _anchor(self, activity_element: ET.Element, lap_elements: List[ET.Element], issues: IssueLog):
        start = self._instant(find_text(activity_element, "tcx:Id"), issues, "activity id")
        if start is None and lap_elements:
            start = self._instant(lap_elements[0].get("StartTime"), issues, "lap 1 start")
        if start is None:
            first = find_text(activity_element, "tcx:Lap/tcx:Track/tcx:Trackpoint/tcx:Time")
            start = self._instant(first, issues, "first trackpoint")
        return start

    def _samples(self, lap_element: ET.Element, lap_index: int, issues: IssueLog) -> List[Dict]:
        samples = []
        skipped = 0
        trackpoints = lap_element.findall("tcx:Track/tcx:Trackpoint", NS)
        for position, point in enumerate(trackpoints):
            context = f"lap {lap_index} trackpoint {position}"
            timestamp = self._instant(find_text(point, "tcx:Time"), issues, context)
            if timestamp is None:
                skipped += 1
                continue

            heart_rate = self._number(
                point, "tcx:HeartRateBpm/tcx:Value", "bpm", Dimension.HEART_RATE, issues, context)
            cadence = self._number(point, "tcx:Cadence", "rpm", Dimension.CADENCE, issues, context)
            if cadence is None:
                cadence = self._number(
                    point, "tcx:Extensions/ext:TPX/ext:RunCadence", "spm", Dimension.CADENCE, issues, context)

            samples.append({
                "timestamp": timestamp,
                "lap_index": lap_index,
                "heart_rate": int(round(heart_rate)) if heart_rate is not None else None,
                "cadence": cadence,
                "speed": self._number(
                    point, "tcx:Extensions/ext:TPX/ext:Speed", "m/s", Dimension.SPEED, issues, context),
                "altitude": self._number(point, "tcx:AltitudeMeters", "m", Dimension.DISTANCE, issues, context),
                "latitude": self._number(
                    point, "tcx:Position/tcx:LatitudeDegrees", "deg", Dimension.ANGLE, issues, context),
                "longitude": self._number(
                    point, "tcx:Position/tcx:LongitudeDegrees", "deg", Dimension.ANGLE, issues, context),
                "distance": self._number(point, "tcx:DistanceMeters", "m", Dimension.DISTANCE, issues, context),
            })

        if skipped:
            issues.add(f"lap {lap_index}: {skipped} trackpoint(s) without time skipped")
        return samples

    def _lap(self, lap_element: ET.Element, index: int, samples: List[Dict], issues: IssueLog) -> Optional[Lap]:
        context = f"lap {index}"
        lap_start = self._instant(lap_element.get("StartTime"), issues, context)
        if lap_start is None and samples:
            lap_start = samples[0]["timestamp"]
        if lap_start is None:
            issues.add(f"{context}: no start time, lap skipped")
            return None

        avg_cadence = self._number(lap_element, "tcx:Cadence", "rpm", Dimension.CADENCE, issues, context)
        if avg_cadence is None:
            avg_cadence = self._number(
                lap_element, "tcx:Extensions/ext:LX/ext:AvgRunCadence", "spm", Dimension.CADENCE, issues, context)
        max_cadence = self._number(
            lap_element, "tcx:Extensions/ext:LX/ext:MaxBikeCadence", "rpm", Dimension.CADENCE, issues, context)
        if max_cadence is None:
            max_cadence = self._number(
                lap_element, "tcx:Extensions/ext:LX/ext:MaxRunCadence", "spm", Dimension.CADENCE, issues, context)

        avg_hr = self._number(
            lap_element, "tcx:AverageHeartRateBpm/tcx:Value", "bpm", Dimension.HEART_RATE, issues, context)
        max_hr = self._number(
            lap_element, "tcx:MaximumHeartRateBpm/tcx:Value", "bpm", Dimension.HEART_RATE, issues, context)

        return Lap(
            index=index,
            start_time=lap_start,
            duration=self._number(
                lap_element, "tcx:TotalTimeSeconds", "s", Dimension.DURATION, issues, context) or 0.0,
            distance=self._number(lap_element, "tcx:DistanceMeters", "m", Dimension.DISTANCE, issues, context),
            avg_cadence=avg_cadence,
            max_cadence=max_cadence,
            avg_heart_rate=int(round(avg_hr)) if avg_hr is not None else None,
            max_heart_rate=int(round(max_hr)) if max_hr is not None else None,
        )

    def _session_heart_rate(self, laps: List[Lap]):
        """Duration-weighted average and overall maximum of the lap heart rates."""
        weighted = [(lap.avg_heart_rate, lap.duration) for lap in laps
                    if lap.avg_heart_rate is not None and lap.duration > 0]
        peaks = [lap.max_heart_rate for lap in laps if lap.max_heart_rate is not None]

        avg = None
        total_time = sum(duration for _, duration in weighted)
        if total_time:
            avg = int(round(sum(hr * duration for hr, duration in weighted) / total_time))
        return avg, max(peaks) if peaks else None
