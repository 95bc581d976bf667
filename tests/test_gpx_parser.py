"""Tests for the GPX adapter."""

import pytest
from datetime import datetime, timezone

from conftest import gpx_document
from fitutils.errors import MalformedDocumentError, MissingTimestampError
from fitutils.integrations.gpx_parser import GPXAdapter
from fitutils.models.activity import ActivityType


def test_read_running_gpx(running_gpx):
    """A GPX run maps onto one session with one lap per segment."""
    session = GPXAdapter().read(running_gpx)

    assert session.source_format == "gpx"
    assert session.source_file == str(running_gpx)
    assert session.start_time == datetime(2022, 2, 10, 6, 50, 10, tzinfo=timezone.utc)
    assert session.duration == 1200.0
    assert session.activity.kind is ActivityType.RUNNING
    assert session.product == "Garmin Forerunner 245"
    assert session.manufacturer is None
    assert session.serial_number is None
    assert session.distance > 1000
    assert len(session.laps) == 1
    assert len(session.records) == 3


def test_extension_metrics(running_gpx):
    """Heart rate and cadence come from the TrackPointExtension block."""
    session = GPXAdapter().read(running_gpx)
    first = session.records[0]

    assert first.heart_rate == 120
    assert first.cadence == 80.0
    assert first.latitude == 51.5
    assert first.longitude == -0.12
    assert first.altitude == 12.0
    assert session.avg_heart_rate == 143
    assert session.max_heart_rate == 160
    assert session.laps[0].max_heart_rate == 160


def test_cumulative_distance_is_non_decreasing(running_gpx):
    records = GPXAdapter().read(running_gpx).records
    distances = [r.distance for r in records]

    assert distances[0] == 0.0
    assert distances == sorted(distances)


def test_minimal_document(write_file):
    """A single point still yields one session, one lap and one record."""
    path = write_file("single.gpx", gpx_document([
        ("2022-02-10T06:50:10Z", 51.5, -0.12, 12.0, 130, 82),
    ]))

    session = GPXAdapter().read(path)

    assert len(session.laps) == 1
    assert session.laps[0].index == 1
    assert len(session.records) == 1
    assert session.records[0].elapsed == 0.0
    assert session.duration == 0.0


def test_segments_become_laps(write_file):
    path = write_file("two_laps.gpx", gpx_document(None, segments=[
        [
            ("2022-02-10T06:50:10Z", 51.500, -0.12, 12.0, 120, 80),
            ("2022-02-10T06:55:10Z", 51.502, -0.12, 12.0, 130, 81),
        ],
        [
            ("2022-02-10T06:56:10Z", 51.503, -0.12, 12.0, 140, 82),
            ("2022-02-10T07:00:10Z", 51.505, -0.12, 12.0, 150, 83),
        ],
    ]))

    session = GPXAdapter().read(path)

    assert [lap.index for lap in session.laps] == [1, 2]
    assert session.laps[1].duration == 240.0
    assert [r.lap_index for r in session.records] == [1, 1, 2, 2]


def test_record_distance_runs_across_segments(write_file):
    """Cumulative distance keeps growing at a new segment and ends at the track length."""
    path = write_file("two_laps.gpx", gpx_document(None, segments=[
        [
            ("2022-02-10T06:50:10Z", 51.500, -0.12, 12.0, 120, 80),
            ("2022-02-10T06:55:10Z", 51.502, -0.12, 12.0, 130, 81),
        ],
        [
            ("2022-02-10T06:56:10Z", 51.503, -0.12, 12.0, 140, 82),
            ("2022-02-10T07:00:10Z", 51.505, -0.12, 12.0, 150, 83),
        ],
    ]))

    session = GPXAdapter().read(path)
    distances = [r.distance for r in session.records]

    assert distances[2] == distances[1]
    assert distances[3] > distances[2] > 0
    assert distances[-1] == pytest.approx(session.distance)


def test_metadata_time_can_anchor_the_session(write_file):
    path = write_file("anchored.gpx", gpx_document(
        [("2022-02-10T07:00:00Z", 51.5, -0.12, 12.0, 130, 82)],
        metadata_time="2022-02-10T06:50:00Z",
    ))

    session = GPXAdapter().read(path)

    assert session.start_time == datetime(2022, 2, 10, 6, 50, 0, tzinfo=timezone.utc)
    assert session.records[0].elapsed == 600.0
    assert session.duration == 600.0


def test_waypoints_are_collected(write_file):
    waypoint = '<wpt lat="51.5" lon="-0.12"><name>Start</name><sym>Flag</sym></wpt>'
    path = write_file("with_wpt.gpx", gpx_document(
        [("2022-02-10T06:50:10Z", 51.5, -0.12, 12.0, 130, 82)],
        waypoints=waypoint,
    ))

    session = GPXAdapter().read(path)

    assert len(session.waypoints) == 1
    assert session.waypoints[0].name == "Start"
    assert session.waypoints[0].symbol == "Flag"


def test_unknown_track_type_is_preserved(write_file):
    path = write_file("paddle.gpx", gpx_document(
        [("2022-02-10T06:50:10Z", 51.5, -0.12, 12.0, 130, 82)],
        activity="stand_up_paddling",
    ))

    session = GPXAdapter().read(path)

    assert session.activity.kind is ActivityType.OTHER
    assert session.activity.label == "stand_up_paddling"


def test_document_without_time_is_rejected(write_file):
    """No metadata time and no timed points means no anchor."""
    path = write_file("timeless.gpx", """<?xml version="1.0" encoding="UTF-8"?>
<gpx version="1.1" creator="test" xmlns="http://www.topografix.com/GPX/1/1">
  <trk><trkseg><trkpt lat="51.5" lon="-0.12"><ele>10</ele></trkpt></trkseg></trk>
</gpx>
""")

    with pytest.raises(MissingTimestampError) as excinfo:
        GPXAdapter().read(path)

    assert excinfo.value.path == str(path)


def test_truncated_document_is_malformed(write_file):
    path = write_file("truncated.gpx", '<?xml version="1.0"?><gpx version="1.1"><trk><trkseg><trkpt lat=')

    with pytest.raises(MalformedDocumentError):
        GPXAdapter().read(path)
