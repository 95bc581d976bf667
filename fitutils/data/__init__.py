"""Batch processing over input files."""

from .pipeline_orchestrator import BatchProcessor, DirectoryLocks, FileOutcome

__all__ = ["BatchProcessor", "DirectoryLocks", "FileOutcome"]
