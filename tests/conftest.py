"""Pytest configuration and fixtures."""

import pytest
from pathlib import Path
from datetime import datetime, timedelta, timezone

from fitutils.models.activity import Activity, HeartRateZones, Lap, Record, Session, Waypoint


GPX_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<gpx version="1.1" creator="{creator}"
     xmlns="http://www.topografix.com/GPX/1/1"
     xmlns:gpxtpx="http://www.garmin.com/xmlschemas/TrackPointExtension/v1">
  {metadata}
  {waypoints}
  <trk>
    <name>Morning Run</name>
    <type>{activity}</type>
    {segments}
  </trk>
</gpx>
"""

TRKPT_TEMPLATE = """<trkpt lat="{lat}" lon="{lon}">
        <ele>{ele}</ele>
        <time>{time}</time>
        <extensions>
          <gpxtpx:TrackPointExtension>
            <gpxtpx:hr>{hr}</gpxtpx:hr>
            <gpxtpx:cad>{cad}</gpxtpx:cad>
          </gpxtpx:TrackPointExtension>
        </extensions>
      </trkpt>"""


def gpx_document(points, activity="running", creator="Garmin Forerunner 245",
                 metadata_time=None, waypoints="", segments=None):
    """Build a GPX document.

    Args:
        points: List of (time, lat, lon, ele, hr, cad) tuples for a single segment
        segments: Optional list of point lists, one per segment (overrides points)
    """
    segment_lists = segments if segments is not None else [points]
    rendered = []
    for segment in segment_lists:
        trkpts = "\n      ".join(
            TRKPT_TEMPLATE.format(time=t, lat=lat, lon=lon, ele=ele, hr=hr, cad=cad)
            for t, lat, lon, ele, hr, cad in segment
        )
        rendered.append(f"<trkseg>\n      {trkpts}\n    </trkseg>")

    metadata = f"<metadata><time>{metadata_time}</time></metadata>" if metadata_time else ""
    return GPX_TEMPLATE.format(
        creator=creator,
        metadata=metadata,
        waypoints=waypoints,
        activity=activity,
        segments="\n    ".join(rendered),
    )


TCX_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<TrainingCenterDatabase
    xmlns="http://www.garmin.com/xmlschemas/TrainingCenterDatabase/v2"
    xmlns:ns3="http://www.garmin.com/xmlschemas/ActivityExtension/v2"
    xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance">
  <Activities>
    <Activity Sport="{sport}">
      <Id>{activity_id}</Id>
      {laps}
      <Creator xsi:type="Device_t">
        <Name>Forerunner 245</Name>
        <UnitId>3991234567</UnitId>
        <ProductID>3076</ProductID>
      </Creator>
    </Activity>
  </Activities>
</TrainingCenterDatabase>
"""

TCX_LAP_TEMPLATE = """<Lap StartTime="{start}">
        <TotalTimeSeconds>{seconds}</TotalTimeSeconds>
        <DistanceMeters>{distance}</DistanceMeters>
        <AverageHeartRateBpm><Value>{avg_hr}</Value></AverageHeartRateBpm>
        <MaximumHeartRateBpm><Value>{max_hr}</Value></MaximumHeartRateBpm>
        <Intensity>Active</Intensity>
        <TriggerMethod>Manual</TriggerMethod>
        <Track>
          {trackpoints}
        </Track>
        <Extensions>
          <ns3:LX>
            <ns3:AvgRunCadence>{cadence}</ns3:AvgRunCadence>
          </ns3:LX>
        </Extensions>
      </Lap>"""

TCX_TRACKPOINT_TEMPLATE = """<Trackpoint>
            <Time>{time}</Time>
            <Position>
              <LatitudeDegrees>{lat}</LatitudeDegrees>
              <LongitudeDegrees>{lon}</LongitudeDegrees>
            </Position>
            <AltitudeMeters>{ele}</AltitudeMeters>
            <DistanceMeters>{distance}</DistanceMeters>
            <HeartRateBpm><Value>{hr}</Value></HeartRateBpm>
            <Extensions>
              <ns3:TPX>
                <ns3:Speed>{speed}</ns3:Speed>
                <ns3:RunCadence>{cadence}</ns3:RunCadence>
              </ns3:TPX>
            </Extensions>
          </Trackpoint>"""


def tcx_document(laps, sport="Running", activity_id="2022-02-10T06:50:10Z"):
    """Build a TCX document.

    Args:
        laps: List of dicts with start, seconds, distance, avg_hr, max_hr, cadence
            and a ``points`` list of (time, lat, lon, ele, distance, hr, speed, cadence)
    """
    rendered = []
    for lap in laps:
        trackpoints = "\n          ".join(
            TCX_TRACKPOINT_TEMPLATE.format(
                time=t, lat=lat, lon=lon, ele=ele, distance=d, hr=hr, speed=speed, cadence=cad
            )
            for t, lat, lon, ele, d, hr, speed, cad in lap["points"]
        )
        rendered.append(TCX_LAP_TEMPLATE.format(trackpoints=trackpoints, **{
            k: v for k, v in lap.items() if k != "points"
        }))
    return TCX_TEMPLATE.format(sport=sport, activity_id=activity_id, laps="\n      ".join(rendered))


@pytest.fixture
def write_file(tmp_path):
    """Write text content to a file in tmp_path."""
    def _write(name: str, content: str) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def running_gpx(write_file):
    """GPX run starting 2022-02-10 06:50:10 UTC and lasting 1200 seconds."""
    content = gpx_document([
        ("2022-02-10T06:50:10Z", 51.5000, -0.1200, 12.0, 120, 80),
        ("2022-02-10T07:00:10Z", 51.5050, -0.1200, 14.0, 150, 84),
        ("2022-02-10T07:10:10Z", 51.5100, -0.1200, 13.0, 160, 86),
    ])
    return write_file("morning_run.gpx", content)


@pytest.fixture
def running_tcx(write_file):
    """TCX run with one lap and two trackpoints."""
    content = tcx_document([{
        "start": "2022-02-10T06:50:10Z",
        "seconds": 1200.0,
        "distance": 3500.0,
        "avg_hr": 142,
        "max_hr": 171,
        "cadence": 84,
        "points": [
            ("2022-02-10T06:50:10Z", 51.5000, -0.1200, 12.0, 0.0, 120, 2.5, 80),
            ("2022-02-10T07:10:10Z", 51.5100, -0.1200, 13.0, 3500.0, 160, 3.1, 86),
        ],
    }])
    return write_file("morning_run.tcx", content)


class FakeField:
    """Stand-in for fitparse.records.FieldData."""

    def __init__(self, name, value, units=None):
        self.name = name
        self.value = value
        self.units = units


class FakeMessage:
    """Stand-in for fitparse.records.DataMessage: a name plus iterable fields."""

    def __init__(self, name, **fields):
        self.name = name
        self.fields = []
        for field_name, entry in fields.items():
            value, units = entry if isinstance(entry, tuple) else (entry, None)
            self.fields.append(FakeField(field_name, value, units))

    def __iter__(self):
        return iter(self.fields)


@pytest.fixture
def fit_messages():
    """Decoded FIT messages for a 20 minute run with one lap and three records."""
    start = datetime(2022, 2, 10, 6, 50, 10)
    return [
        FakeMessage(
            "file_id",
            type="activity",
            manufacturer="garmin",
            garmin_product="fr245",
            serial_number=3991234567,
            time_created=start,
        ),
        FakeMessage("device_info", device_index="creator", manufacturer="garmin", product_name="Forerunner 245"),
        FakeMessage(
            "record",
            timestamp=start,
            position_lat=(0x40000000 // 2, "semicircles"),
            position_long=(-(2 ** 29) // 4, "semicircles"),
            heart_rate=(120, "bpm"),
            cadence=(80, "rpm"),
            enhanced_speed=(2.5, "m/s"),
            distance=(0.0, "m"),
        ),
        FakeMessage(
            "record",
            timestamp=start + timedelta(seconds=600),
            heart_rate=(150, "bpm"),
            cadence=(84, "rpm"),
            enhanced_speed=(3.0, "m/s"),
            distance=(1750.0, "m"),
        ),
        FakeMessage(
            "record",
            timestamp=start + timedelta(seconds=1200),
            heart_rate=(160, "bpm"),
            cadence=(86, "rpm"),
            enhanced_speed=(3.1, "m/s"),
            distance=(3500.0, "m"),
        ),
        FakeMessage(
            "lap",
            start_time=start,
            total_elapsed_time=(1200.0, "s"),
            total_distance=(3500.0, "m"),
            avg_cadence=(83, "rpm"),
            max_cadence=(86, "rpm"),
            avg_heart_rate=(143, "bpm"),
            max_heart_rate=(160, "bpm"),
            time_in_hr_zone=((100.0, 200.0, 300.0, 400.0, 200.0), "s"),
        ),
        FakeMessage(
            "session",
            start_time=start,
            sport="running",
            sub_sport="trail",
            total_elapsed_time=(1200.0, "s"),
            total_distance=(3500.0, "m"),
            avg_heart_rate=(143, "bpm"),
            max_heart_rate=(160, "bpm"),
            time_in_hr_zone=((100.0, 200.0, 300.0, 400.0, 200.0), "s"),
        ),
    ]


@pytest.fixture
def sample_session():
    """A fully populated canonical session."""
    start = datetime(2022, 2, 10, 6, 50, 10, tzinfo=timezone.utc)
    records = [
        Record(
            timestamp=start + timedelta(seconds=s),
            elapsed=float(s),
            lap_index=1,
            heart_rate=hr,
            cadence=82.0,
            speed=2.9,
            altitude=12.5,
            latitude=51.5,
            longitude=-0.12,
            distance=s * 2.9,
        )
        for s, hr in ((0, 120), (600, 150), (1200, 160))
    ]
    return Session(
        source_file="activities/morning_run.fit",
        source_format="fit",
        start_time=start,
        duration=1200.0,
        activity=Activity.from_label("running"),
        activity_detail="Trail",
        distance=3480.0,
        avg_heart_rate=143,
        max_heart_rate=160,
        hr_zones=HeartRateZones.from_seconds([100.0, 200.0, 300.0, 400.0, 200.0]),
        manufacturer="Garmin",
        product="Forerunner 245",
        serial_number="3991234567",
        laps=[
            Lap(
                index=1,
                start_time=start,
                duration=1200.0,
                distance=3480.0,
                avg_cadence=82.0,
                max_cadence=86.0,
                avg_heart_rate=143,
                max_heart_rate=160,
            )
        ],
        records=records,
        waypoints=[Waypoint(name="Start", latitude=51.5, longitude=-0.12)],
    )
