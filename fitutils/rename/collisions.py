"""Collision-free file names."""

import os
from typing import Collection

from ..config import MAX_RENAME_ATTEMPTS
from ..errors import TargetExistsError


def uniquify(candidate: str, existing: Collection[str], max_attempts: int = MAX_RENAME_ATTEMPTS) -> str:
    """Return ``candidate``, or ``"stem (n).ext"`` with the smallest free n.

    Performs no I/O; ``existing`` is a snapshot of the directory listing.

    Raises:
        TargetExistsError: no free name within ``max_attempts`` suffixes
    """
    if candidate not in existing:
        return candidate

    stem, extension = os.path.splitext(candidate)
    for n in range(1, max_attempts + 1):
        name = f"{stem} ({n}){extension}"
        if name not in existing:
            return name

    raise TargetExistsError(f"No free name for {candidate!r} after {max_attempts} attempts")
