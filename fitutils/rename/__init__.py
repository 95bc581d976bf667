"""Metadata-driven file renaming."""

from .collisions import uniquify
from .patterns import TOKENS, resolve
from .renamer import FileRenamer

__all__ = ["FileRenamer", "TOKENS", "resolve", "uniquify"]
