"""
Batch orchestration for fitutils.

Runs one per-file operation over an input list with a bounded thread pool,
turning every file-scoped failure into a FileReport so that one bad file
never aborts the batch.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Set

from ..config import DEFAULT_MAX_WORKERS
from ..errors import AdapterError, FitUtilsError
from ..models.reports import BatchSummary, FileReport, FileStatus

logger = logging.getLogger(__name__)


class FileOutcome:
    """What a per-file operation produced."""

    def __init__(self, outputs: Optional[List[str]] = None, warnings: Optional[List[str]] = None,
                 skipped: bool = False):
        self.outputs = outputs or []
        self.warnings = warnings or []
        self.skipped = skipped


# A worker receives the input index and path
FileWorker = Callable[[int, Path], FileOutcome]


class DirectoryLocks:
    """One lock per destination directory.

    Renames and other listing-check-then-write sequences targeting the same
    directory must hold its lock.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._claimed: Dict[str, Set[str]] = {}

    def lock_for(self, directory) -> threading.Lock:
        key = str(Path(directory).resolve())
        with self._guard:
            if key not in self._locks:
                self._locks[key] = threading.Lock()
            return self._locks[key]

    def claimed(self, directory) -> Set[str]:
        """Names handed out in ``directory`` during this batch.

        Includes dry-run targets, which never appear in a listing. Callers
        must hold the directory's lock.
        """
        key = str(Path(directory).resolve())
        with self._guard:
            return self._claimed.setdefault(key, set())


class BatchProcessor:
    """Run a per-file worker over a list of inputs."""

    def __init__(self, worker: FileWorker, max_workers: int = DEFAULT_MAX_WORKERS):
        """
        Initialize the processor.

        Args:
            worker: Callable doing the work for one file
            max_workers: Upper bound on concurrent files
        """
        self.worker = worker
        self.max_workers = max(1, max_workers)

    def process_file(self, index: int, file_path: Path) -> FileReport:
        """Run the worker for one file and record the outcome."""
        logger.info(f"Processing file: {file_path}")
        report = FileReport(index=index, file_path=str(file_path))
        started = time.perf_counter()

        try:
            outcome = self.worker(index, file_path)
        except AdapterError as e:
            logger.error(f"Skipping {file_path}: {e.reason}")
            report.status = FileStatus.ERROR
            report.error_kind = e.kind
            report.error_message = e.reason
        except FitUtilsError as e:
            logger.error(f"Failed to process {file_path}: {e}")
            report.status = FileStatus.ERROR
            report.error_kind = type(e).__name__
            report.error_message = str(e)
        except Exception as e:
            logger.exception(f"Unexpected error processing {file_path}: {e}")
            report.status = FileStatus.ERROR
            report.error_kind = "internal"
            report.error_message = f"{type(e).__name__}: {e}"
        else:
            report.outputs = outcome.outputs
            report.warnings = outcome.warnings
            if outcome.skipped:
                report.status = FileStatus.SKIPPED
            elif outcome.warnings:
                report.status = FileStatus.WARNING

        report.processing_time_ms = int((time.perf_counter() - started) * 1000)
        return report

    def run(self, files: Sequence[Path]) -> BatchSummary:
        """Process every file; reports come back in input order."""
        files = [Path(f) for f in files]
        logger.info(f"Found {len(files)} files to process")

        if self.max_workers == 1 or len(files) <= 1:
            reports = [self.process_file(i, f) for i, f in enumerate(files)]
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                futures = [executor.submit(self.process_file, i, f) for i, f in enumerate(files)]
                reports = [future.result() for future in futures]

        summary = BatchSummary(reports=sorted(reports, key=lambda r: r.index))
        logger.info(
            f"Batch complete: {summary.successful_files + summary.warning_files}/{summary.total_files} "
            f"files processed, {summary.failed_files} failed"
        )
        return summary
