"""FIT adapter: maps fitparse messages onto the canonical Session."""

import logging
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import fitparse

from ..errors import MalformedDocumentError, MissingTimestampError, UnitConversionError, UnsupportedVersionError
from ..models.activity import Activity, ActivityType, HeartRateZones, Lap, Session, title_case
from ..units import CANONICAL_UNITS, Dimension, fit_timestamp
from .base import (
    ActivityAdapter,
    IssueLog,
    assign_laps,
    build_records,
    heart_rate_stats,
    span_seconds,
)

logger = logging.getLogger(__name__)

MAX_PROTOCOL_MAJOR = 2

# Device indices that identify the recording device in device_info messages
CREATOR_DEVICE_INDICES = (0, "creator")

FieldMap = Dict[str, Tuple[Any, Optional[str]]]


def message_fields(message) -> FieldMap:
    """Collect a message's populated fields as {name: (value, units)}."""
    fields = {}
    for field in message:
        if field.name and field.value is not None:
            fields[field.name] = (field.value, field.units)
    return fields


class FITAdapter(ActivityAdapter):
    """Adapter for Garmin FIT files."""

    format_name = "fit"
    extensions = (".fit",)

    def load(self, path: Path) -> List[Any]:
        """Decode a FIT file into its list of data messages."""
        try:
            fitfile = fitparse.FitFile(str(path))
            protocol = getattr(fitfile, "protocol_version", None)
            if isinstance(protocol, (int, float)) and int(protocol) > MAX_PROTOCOL_MAJOR:
                raise UnsupportedVersionError(f"FIT protocol version {protocol} is not supported", path)
            messages = list(fitfile.get_messages())
        except fitparse.FitParseError as e:
            raise MalformedDocumentError(f"Unable to decode FIT file: {e}", path) from e
        except OSError as e:
            raise MalformedDocumentError(f"Unable to read file: {e}", path) from e

        logger.debug(f"Decoded {len(messages)} messages from {path}")
        return messages

    def extract(self, raw: Iterable[Any], source: str) -> Session:
        issues = IssueLog(source)

        file_id: FieldMap = {}
        creator: FieldMap = {}
        sessions: List[FieldMap] = []
        lap_messages: List[FieldMap] = []
        record_messages: List[FieldMap] = []

        for message in raw:
            name = message.name
            if name == "file_id":
                file_id = message_fields(message)
            elif name == "device_info":
                fields = message_fields(message)
                index = fields.get("device_index", (None, None))[0]
                if not creator and index in CREATOR_DEVICE_INDICES:
                    creator = fields
            elif name == "session":
                sessions.append(message_fields(message))
            elif name == "lap":
                lap_messages.append(message_fields(message))
            elif name == "record":
                record_messages.append(message_fields(message))

        if len(sessions) > 1:
            issues.add(f"file contains {len(sessions)} sessions; using the first")
        session = sessions[0] if sessions else {}

        samples = self._samples(record_messages, issues)
        start_time = self._anchor(session, samples, file_id, issues)
        if start_time is None:
            raise MissingTimestampError("No session start, record or creation timestamp", source)

        records = build_records(samples, start_time, issues)
        laps = self._laps(lap_messages, start_time, issues)
        records = assign_laps(records, laps, start_time, issues)

        duration = self._measure(session, "total_elapsed_time", Dimension.DURATION, issues, "session")
        if duration is None:
            duration = span_seconds(start_time, records)

        distance = self._measure(session, "total_distance", Dimension.DISTANCE, issues, "session")
        if distance is None:
            distances = [r.distance for r in records if r.distance is not None]
            distance = max(distances) if distances else None

        avg_hr = self._heart_rate(session, "avg_heart_rate", issues, "session")
        max_hr = self._heart_rate(session, "max_heart_rate", issues, "session")
        if avg_hr is None and max_hr is None:
            avg_hr, max_hr = heart_rate_stats(records)

        activity, detail = self._activity(session)
        manufacturer, product, serial = self._device(file_id, creator)

        return Session(
            source_file=source,
            source_format=self.format_name,
            start_time=start_time,
            duration=duration,
            activity=activity,
            activity_detail=detail,
            distance=distance,
            avg_heart_rate=avg_hr,
            max_heart_rate=max_hr,
            hr_zones=self._hr_zones(session, issues, "session"),
            manufacturer=manufacturer,
            product=product,
            serial_number=serial,
            laps=laps,
            records=records,
            issues=issues.messages,
        )

    def _measure(self, fields: FieldMap, name: str, dimension: Dimension, issues: IssueLog,
                 context: str, default_unit: Optional[str] = None) -> Optional[float]:
        if name not in fields:
            return None
        value, unit = fields[name]
        unit = unit or default_unit or CANONICAL_UNITS[dimension]
        return issues.measure(value, unit, dimension, f"{context} {name}")

    def _first_measure(self, fields: FieldMap, names, dimension: Dimension, issues: IssueLog,
                       context: str, default_unit: Optional[str] = None) -> Optional[float]:
        for name in names:
            if name in fields:
                return self._measure(fields, name, dimension, issues, context, default_unit)
        return None

    def _heart_rate(self, fields: FieldMap, name: str, issues: IssueLog, context: str) -> Optional[int]:
        value = self._measure(fields, name, Dimension.HEART_RATE, issues, context)
        return int(round(value)) if value is not None else None

    def _timestamp(self, fields: FieldMap, name: str, issues: IssueLog, context: str):
        if name not in fields:
            return None
        try:
            return fit_timestamp(fields[name][0])
        except UnitConversionError as e:
            issues.add(f"{context} {name}: {e}")
            return None

    def _anchor(self, session: FieldMap, samples: List[Dict], file_id: FieldMap, issues: IssueLog):
        start = self._timestamp(session, "start_time", issues, "session")
        if start is None and samples:
            start = samples[0]["timestamp"]
        if start is None:
            start = self._timestamp(file_id, "time_created", issues, "file_id")
        return start

    def _samples(self, record_messages: List[FieldMap], issues: IssueLog) -> List[Dict]:
        samples = []
        skipped = 0
        for position, fields in enumerate(record_messages):
            timestamp = self._timestamp(fields, "timestamp", issues, f"record {position}")
            if timestamp is None:
                skipped += 1
                continue

            context = f"record {position}"
            heart_rate = self._measure(fields, "heart_rate", Dimension.HEART_RATE, issues, context)
            samples.append({
                "timestamp": timestamp,
                "heart_rate": int(round(heart_rate)) if heart_rate is not None else None,
                "cadence": self._measure(fields, "cadence", Dimension.CADENCE, issues, context),
                "speed": self._first_measure(
                    fields, ("enhanced_speed", "speed"), Dimension.SPEED, issues, context),
                "altitude": self._first_measure(
                    fields, ("enhanced_altitude", "altitude"), Dimension.DISTANCE, issues, context),
                "latitude": self._measure(
                    fields, "position_lat", Dimension.ANGLE, issues, context, "semicircles"),
                "longitude": self._measure(
                    fields, "position_long", Dimension.ANGLE, issues, context, "semicircles"),
                "distance": self._measure(fields, "distance", Dimension.DISTANCE, issues, context),
                "temperature": self._measure(fields, "temperature", Dimension.TEMPERATURE, issues, context),
            })

        if skipped:
            issues.add(f"{skipped} record(s) without timestamp skipped")
        return samples

    def _laps(self, lap_messages: List[FieldMap], start_time, issues: IssueLog) -> List[Lap]:
        laps = []
        next_start = start_time
        for index, fields in enumerate(lap_messages, start=1):
            context = f"lap {index}"
            lap_start = self._timestamp(fields, "start_time", issues, context) or next_start
            duration = self._measure(fields, "total_elapsed_time", Dimension.DURATION, issues, context) or 0.0

            laps.append(Lap(
                index=index,
                start_time=lap_start,
                duration=duration,
                distance=self._measure(fields, "total_distance", Dimension.DISTANCE, issues, context),
                avg_cadence=self._measure(fields, "avg_cadence", Dimension.CADENCE, issues, context),
                max_cadence=self._measure(fields, "max_cadence", Dimension.CADENCE, issues, context),
                avg_heart_rate=self._heart_rate(fields, "avg_heart_rate", issues, context),
                max_heart_rate=self._heart_rate(fields, "max_heart_rate", issues, context),
                hr_zones=self._hr_zones(fields, issues, context),
            ))
            next_start = lap_start + timedelta(seconds=duration)
        return laps

    def _hr_zones(self, fields: FieldMap, issues: IssueLog, context: str) -> Optional[HeartRateZones]:
        if "time_in_hr_zone" not in fields:
            return None
        value, unit = fields["time_in_hr_zone"]
        values = value if isinstance(value, (list, tuple)) else [value]
        if len(values) != 5:
            issues.add(f"{context} time_in_hr_zone: expected 5 zones, found {len(values)}")
            return None
        seconds = [
            issues.measure(v, unit or "s", Dimension.DURATION, f"{context} time_in_hr_zone") or 0.0
            for v in values
        ]
        return HeartRateZones.from_seconds(seconds)

    def _activity(self, session: FieldMap) -> Tuple[Optional[Activity], Optional[str]]:
        sport = session.get("sport", (None, None))[0]
        sub_sport = session.get("sub_sport", (None, None))[0]
        if sport is None:
            return None, None

        activity = Activity.from_label(str(sport))
        if sub_sport is not None:
            refined = Activity.from_label(str(sub_sport))
            if refined.kind is ActivityType.INDOOR_ROWING:
                activity = refined
        detail = title_case(str(sub_sport)) if sub_sport is not None else None
        return activity, detail

    def _device(self, file_id: FieldMap, creator: FieldMap) -> Tuple[Optional[str], Optional[str], Optional[str]]:
        def pick(*names):
            for name in names:
                for fields in (file_id, creator):
                    if name in fields:
                        return fields[name][0]
            return None

        manufacturer = pick("manufacturer")
        product = pick("product_name", "garmin_product", "product")
        serial = pick("serial_number")

        # Unknown manufacturer/product codes come through as bare integers
        if isinstance(manufacturer, str):
            manufacturer = title_case(manufacturer)
        if isinstance(product, str):
            product = title_case(product)
        return (
            str(manufacturer) if manufacturer is not None else None,
            str(product) if product is not None else None,
            str(serial) if serial is not None else None,
        )
