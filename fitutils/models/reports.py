"""Per-file processing reports and batch summaries."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class FileStatus(str, Enum):
    """Outcome of processing one input file."""
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    SKIPPED = "skipped"


class FileReport(BaseModel):
    """Record of what happened to a single input file."""

    index: int
    file_path: str
    status: FileStatus = FileStatus.SUCCESS
    error_kind: Optional[str] = None
    error_message: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)
    outputs: List[str] = Field(default_factory=list)
    processing_time_ms: int = 0

    @property
    def failed(self) -> bool:
        return self.status is FileStatus.ERROR


class BatchSummary(BaseModel):
    """Summary of one invocation over a list of files."""

    reports: List[FileReport] = Field(default_factory=list)

    @property
    def total_files(self) -> int:
        return len(self.reports)

    @property
    def successful_files(self) -> int:
        return sum(1 for r in self.reports if r.status is FileStatus.SUCCESS)

    @property
    def warning_files(self) -> int:
        return sum(1 for r in self.reports if r.status is FileStatus.WARNING)

    @property
    def failed_files(self) -> int:
        return sum(1 for r in self.reports if r.failed)

    @property
    def exit_code(self) -> int:
        return 1 if self.failed_files else 0

    def format_lines(self) -> List[str]:
        """Human-readable summary, one line per entry."""
        lines = [
            f"Files processed: {self.total_files}",
            f"Succeeded:       {self.successful_files}",
            f"With warnings:   {self.warning_files}",
            f"Failed:          {self.failed_files}",
        ]
        for report in self.reports:
            if report.failed:
                lines.append(f"  ERROR {report.file_path}: {report.error_message}")
        return lines
