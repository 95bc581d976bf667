"""Format adapters mapping FIT, GPX and TCX documents onto the activity model."""

from .fit_parser import FITAdapter
from .gpx_parser import GPXAdapter
from .registry import get_adapter, read_session
from .tcx_parser import TCXAdapter

__all__ = ["FITAdapter", "GPXAdapter", "TCXAdapter", "get_adapter", "read_session"]
