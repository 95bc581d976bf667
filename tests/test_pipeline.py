"""Tests for batch orchestration and adapter selection."""

import time
import pytest
from pathlib import Path

from fitutils.data.pipeline_orchestrator import BatchProcessor, DirectoryLocks, FileOutcome
from fitutils.errors import ExportIOError, MalformedDocumentError, UnsupportedFormatError
from fitutils.integrations.fit_parser import FITAdapter
from fitutils.integrations.gpx_parser import GPXAdapter
from fitutils.integrations.registry import get_adapter, sniff_format
from fitutils.integrations.tcx_parser import TCXAdapter
from fitutils.models.reports import FileStatus


def test_reports_follow_input_order():
    """Reports are ordered by input index even when later files finish first."""
    def worker(index, path):
        time.sleep(0.05 * (3 - index))
        return FileOutcome(outputs=[f"{path.stem}.out"])

    files = [Path(f"file_{i}.fit") for i in range(4)]
    summary = BatchProcessor(worker, max_workers=4).run(files)

    assert [r.index for r in summary.reports] == [0, 1, 2, 3]
    assert [r.outputs for r in summary.reports] == [[f"file_{i}.out"] for i in range(4)]
    assert summary.exit_code == 0


def test_one_failure_does_not_abort_the_batch():
    def worker(index, path):
        if index == 1:
            raise MalformedDocumentError("truncated record", path)
        if index == 2:
            raise ExportIOError("disk full")
        return FileOutcome(warnings=["gap"] if index == 3 else [])

    files = [Path(f"file_{i}.gpx") for i in range(4)]
    summary = BatchProcessor(worker, max_workers=2).run(files)

    statuses = [r.status for r in summary.reports]
    assert statuses == [FileStatus.SUCCESS, FileStatus.ERROR, FileStatus.ERROR, FileStatus.WARNING]
    assert summary.reports[1].error_kind == "malformed"
    assert summary.reports[1].error_message == "truncated record"
    assert summary.reports[2].error_kind == "ExportIOError"
    assert summary.failed_files == 2
    assert summary.exit_code == 1


def test_directory_locks_are_shared_per_directory(tmp_path):
    locks = DirectoryLocks()

    assert locks.lock_for(tmp_path) is locks.lock_for(tmp_path / "sub" / "..")
    assert locks.lock_for(tmp_path) is not locks.lock_for(tmp_path / "other")


@pytest.mark.parametrize("name, adapter_type", [
    ("ride.FIT", FITAdapter),
    ("run.gpx", GPXAdapter),
    ("row.tcx", TCXAdapter),
])
def test_adapter_by_extension(name, adapter_type):
    assert isinstance(get_adapter(Path(name)), adapter_type)


def test_content_sniffing(write_file, tmp_path):
    gpx = write_file("export.xml", '<?xml version="1.0"?>\n<!-- device -->\n<gpx version="1.1"></gpx>')
    tcx = write_file("export.dat", '<TrainingCenterDatabase xmlns="x"/>')
    fit = tmp_path / "download.bin"
    fit.write_bytes(b"\x0e\x10\x00\x00\x00\x00\x00\x00.FIT\x00\x00")

    assert isinstance(get_adapter(gpx), GPXAdapter)
    assert isinstance(get_adapter(tcx), TCXAdapter)
    assert isinstance(get_adapter(fit), FITAdapter)


def test_sniff_unknown_content():
    assert sniff_format(b"<html><body/></html>") is None
    assert sniff_format(b"plain text") is None


def test_unrecognized_file_raises(write_file):
    path = write_file("notes.txt", "shopping list")

    with pytest.raises(UnsupportedFormatError) as excinfo:
        get_adapter(path)

    assert excinfo.value.path == str(path)


def test_unexpected_error_is_reported_not_raised():
    """A bug in one file's processing becomes an error report; later files still run."""
    def worker(index, path):
        if index == 0:
            raise ValueError("cannot convert float NaN to integer")
        return FileOutcome(outputs=[path.name])

    files = [Path("bad.tcx"), Path("good.gpx")]
    summary = BatchProcessor(worker, max_workers=1).run(files)

    assert summary.reports[0].status is FileStatus.ERROR
    assert summary.reports[0].error_kind == "internal"
    assert "ValueError" in summary.reports[0].error_message
    assert summary.reports[1].outputs == ["good.gpx"]
    assert summary.exit_code == 1
