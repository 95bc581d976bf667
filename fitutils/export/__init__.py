"""Export of canonical sessions to CSV, JSON and text."""

from .exporters import ExportFormat, ExportTarget, SessionExporter, TargetKind
from .summary import format_session

__all__ = ["ExportFormat", "ExportTarget", "SessionExporter", "TargetKind", "format_session"]
