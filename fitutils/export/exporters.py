"""
CSV and JSON export of canonical sessions.

CSV produces related tables per input (session, laps, records and, when
present, waypoints). JSON produces one document per input, or a single
array of documents in input order.
"""

import json
import logging
import sys
import threading
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO, Tuple

import polars as pl

from ..config import (
    JSON_ARRAY_FILENAME,
    LAPS_SUFFIX,
    RECORDS_SUFFIX,
    SESSION_SUFFIX,
    STDOUT_SENTINEL,
    WAYPOINTS_SUFFIX,
)
from ..data.pipeline_orchestrator import FileOutcome
from ..errors import ExportIOError, SerializationError
from ..integrations.registry import read_session
from ..models.activity import Session
from .tables import SESSION_SCHEMA, lap_table, record_table, session_row, session_table, waypoint_table

logger = logging.getLogger(__name__)


class ExportFormat(str, Enum):
    CSV = "csv"
    JSON = "json"


class TargetKind(str, Enum):
    """Where export output goes."""
    BESIDE_INPUT = "beside_input"
    DIRECTORY = "directory"
    FILE = "file"
    STDOUT = "stdout"


class ExportTarget:
    """Resolved ``-o`` option."""

    def __init__(self, kind: TargetKind, path: Optional[Path] = None):
        self.kind = kind
        self.path = path

    @classmethod
    def parse(cls, value: Optional[str]) -> "ExportTarget":
        """Interpret an output option.

        ``None`` writes beside each input, ``-`` writes to stdout, an existing
        directory or a path without an extension is a directory, anything
        else is a file.
        """
        if value is None:
            return cls(TargetKind.BESIDE_INPUT)
        if value == STDOUT_SENTINEL:
            return cls(TargetKind.STDOUT)
        path = Path(value)
        if path.is_dir() or not path.suffix:
            return cls(TargetKind.DIRECTORY, path)
        return cls(TargetKind.FILE, path)

    @property
    def is_stdout(self) -> bool:
        return self.kind is TargetKind.STDOUT


def render_json(document: Any, indent: Optional[int] = 2) -> str:
    """Serialize a JSON-ready value deterministically.

    With ``indent=None`` the value is written on a single line.
    """
    try:
        return json.dumps(document, indent=indent, ensure_ascii=False) + "\n"
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Unable to serialize to JSON: {e}") from e


def render_csv(frame: pl.DataFrame) -> str:
    try:
        return frame.write_csv()
    except pl.exceptions.PolarsError as e:
        raise SerializationError(f"Unable to serialize to CSV: {e}") from e


def write_text(path: Path, text: str):
    """Write ``text`` to ``path`` exactly as given."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(text)
    except OSError as e:
        raise ExportIOError(f"Unable to write {path}: {e}") from e
    logger.debug(f"Wrote {path}")


class SessionExporter:
    """Export sessions to CSV or JSON.

    Output bound for stdout, JSON arrays and the summary table are held back
    and written by ``finish()`` in input order, whatever order the files
    complete in.
    """

    def __init__(
        self,
        export_format: ExportFormat = ExportFormat.CSV,
        target: Optional[ExportTarget] = None,
        json_array: bool = False,
        detail: bool = True,
        summary_file: Optional[Path] = None,
        stream: Optional[TextIO] = None,
    ):
        self.export_format = ExportFormat(export_format)
        self.target = target or ExportTarget(TargetKind.BESIDE_INPUT)
        self.json_array = json_array
        self.detail = detail
        self.summary_file = Path(summary_file) if summary_file else None
        self.stream = stream

        self._lock = threading.Lock()
        self._stdout_chunks: Dict[int, str] = {}
        self._documents: Dict[int, Dict[str, Any]] = {}
        self._summary_rows: Dict[int, tuple] = {}

    def base_path(self, session: Session) -> Path:
        """Output path prefix (without table suffix or extension) for a session."""
        source = Path(session.source_file)
        if self.target.kind is TargetKind.FILE:
            return self.target.path.with_suffix("")
        if self.target.kind is TargetKind.DIRECTORY:
            return self.target.path / source.stem
        return source.with_suffix("")

    def csv_tables(self, session: Session) -> List[Tuple[str, pl.DataFrame]]:
        tables = [(SESSION_SUFFIX, session_table([session]))]
        if self.detail:
            tables.append((LAPS_SUFFIX, lap_table(session)))
            tables.append((RECORDS_SUFFIX, record_table(session)))
            if session.waypoints:
                tables.append((WAYPOINTS_SUFFIX, waypoint_table(session)))
        return tables

    def export(self, index: int, session: Session) -> List[str]:
        """Export one session.

        Args:
            index: Position of the input in the batch
            session: Session to export

        Returns:
            Paths written (``-`` for output held for stdout)
        """
        if self.summary_file is not None:
            with self._lock:
                self._summary_rows[index] = session_row(session)

        if self.export_format is ExportFormat.JSON:
            return self._export_json(index, session)
        return self._export_csv(index, session)

    def _export_csv(self, index: int, session: Session) -> List[str]:
        rendered = [(suffix, render_csv(frame)) for suffix, frame in self.csv_tables(session)]

        if self.target.is_stdout:
            with self._lock:
                self._stdout_chunks[index] = "\n".join(text for _, text in rendered)
            return [STDOUT_SENTINEL]

        base = self.base_path(session)
        outputs = []
        for suffix, text in rendered:
            path = base.with_name(f"{base.name}{suffix}.csv")
            write_text(path, text)
            outputs.append(str(path))
        return outputs

    def _export_json(self, index: int, session: Session) -> List[str]:
        document = session.model_dump(mode="json")
        if not self.detail:
            document["laps"] = []
            document["records"] = []

        if self.json_array:
            with self._lock:
                self._documents[index] = document
            return []

        if self.target.is_stdout:
            # One document per line (JSON Lines)
            with self._lock:
                self._stdout_chunks[index] = render_json(document, indent=None)
            return [STDOUT_SENTINEL]

        if self.target.kind is TargetKind.FILE:
            path = self.target.path
        else:
            base = self.base_path(session)
            path = base.with_name(f"{base.name}.json")
        write_text(path, render_json(document))
        return [str(path)]

    def json_array_path(self) -> Path:
        if self.target.kind is TargetKind.FILE:
            return self.target.path
        if self.target.kind is TargetKind.DIRECTORY:
            return self.target.path / JSON_ARRAY_FILENAME
        return Path(JSON_ARRAY_FILENAME)

    def finish(self) -> List[str]:
        """Write everything held back; returns the paths written."""
        outputs = []
        stream = self.stream or sys.stdout

        with self._lock:
            if self.json_array:
                documents = [self._documents[i] for i in sorted(self._documents)]
                text = render_json(documents)
                if self.target.is_stdout:
                    stream.write(text)
                else:
                    path = self.json_array_path()
                    write_text(path, text)
                    outputs.append(str(path))
                    logger.info(f"Wrote {len(documents)} sessions to {path}")

            if self._stdout_chunks:
                separator = "" if self.export_format is ExportFormat.JSON else "\n"
                stream.write(separator.join(self._stdout_chunks[i] for i in sorted(self._stdout_chunks)))
                stream.flush()

            if self.summary_file is not None:
                rows = [self._summary_rows[i] for i in sorted(self._summary_rows)]
                frame = pl.DataFrame(rows, schema=SESSION_SCHEMA, orient="row")
                write_text(self.summary_file, render_csv(frame))
                outputs.append(str(self.summary_file))
                logger.info(f"Wrote summary of {len(rows)} sessions to {self.summary_file}")

        return outputs

    def __call__(self, index: int, source: Path) -> FileOutcome:
        session = read_session(source)
        outputs = self.export(index, session)
        return FileOutcome(outputs=outputs, warnings=list(session.issues))
