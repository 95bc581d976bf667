"""Rename activity files after their own metadata."""

import logging
from pathlib import Path
from typing import Optional

from ..config import DEFAULT_RENAME_PATTERN, MAX_RENAME_ATTEMPTS
from ..data.pipeline_orchestrator import DirectoryLocks, FileOutcome
from ..errors import RenameError, TargetExistsError
from ..integrations.registry import read_session
from ..models.activity import Session
from .collisions import uniquify
from .patterns import resolve

logger = logging.getLogger(__name__)


class FileRenamer:
    """Resolve a pattern per file and move the file to the resulting name."""

    def __init__(
        self,
        pattern: str = DEFAULT_RENAME_PATTERN,
        dry_run: bool = False,
        local_time: bool = False,
        locks: Optional[DirectoryLocks] = None,
        max_attempts: int = MAX_RENAME_ATTEMPTS,
    ):
        self.pattern = pattern
        self.dry_run = dry_run
        self.local_time = local_time
        self.locks = locks or DirectoryLocks()
        self.max_attempts = max_attempts

    def target_name(self, session: Session, source: Path) -> str:
        """Resolved file name for ``session``, keeping the source extension."""
        stem = resolve(self.pattern, session, local_time=self.local_time)
        if not stem:
            raise RenameError(f"{source}: pattern {self.pattern!r} resolved to an empty name")
        return f"{stem}{source.suffix}"

    def rename(self, source: Path, session: Session) -> Path:
        """Move ``source`` to its resolved, collision-free name.

        In dry-run mode the final name is computed but nothing is moved.

        Returns:
            The destination path (``source`` itself when the name is unchanged)

        Raises:
            RenameError: the move failed
            TargetExistsError: no free name could be found
        """
        source = Path(source)
        directory = source.parent
        candidate = self.target_name(session, source)

        with self.locks.lock_for(directory):
            if candidate == source.name:
                logger.info(f"{source} already has the resolved name")
                return source

            try:
                listing = {entry.name for entry in directory.iterdir()}
            except OSError as e:
                raise RenameError(f"{directory}: unable to list directory: {e}") from e
            claimed = self.locks.claimed(directory)
            listing |= claimed
            listing.discard(source.name)

            for _ in range(self.max_attempts):
                final = uniquify(candidate, listing, self.max_attempts)
                target = directory / final
                if final == source.name:
                    return source
                if self.dry_run:
                    claimed.add(final)
                    logger.info(f"Would rename {source} -> {target}")
                    return target

                # Something may have appeared since the listing was taken
                if target.exists():
                    listing.add(final)
                    continue

                try:
                    source.rename(target)
                except OSError as e:
                    raise RenameError(f"{source}: unable to rename to {target}: {e}") from e
                claimed.add(final)
                logger.info(f"Renamed {source} -> {target}")
                return target

        raise TargetExistsError(f"{source}: every candidate name for {candidate!r} is taken")

    def __call__(self, index: int, source: Path) -> FileOutcome:
        session = read_session(source)
        target = self.rename(source, session)
        return FileOutcome(outputs=[str(target)], warnings=list(session.issues))
