"""Choose the adapter for an input file by extension, then by content."""

import logging
import re
from pathlib import Path
from typing import Dict, Optional

from ..errors import MalformedDocumentError, UnsupportedFormatError
from .base import ActivityAdapter
from .fit_parser import FITAdapter
from .gpx_parser import GPXAdapter
from .tcx_parser import TCXAdapter

logger = logging.getLogger(__name__)

ADAPTERS: Dict[str, ActivityAdapter] = {
    adapter.format_name: adapter for adapter in (FITAdapter(), GPXAdapter(), TCXAdapter())
}

# Bytes read when sniffing; enough for a FIT header or an XML prolog plus root tag
SNIFF_BYTES = 2048
TAG_NAME = re.compile(r"[\w:.-]+")


def adapter_for_extension(path: Path) -> Optional[ActivityAdapter]:
    suffix = path.suffix.lower()
    for adapter in ADAPTERS.values():
        if suffix in adapter.extensions:
            return adapter
    return None


def sniff_format(head: bytes) -> Optional[str]:
    """Identify a document from its first bytes.

    FIT files carry the ``.FIT`` signature at offset 8 of the file header.
    GPX and TCX are recognized by their XML root element.
    """
    if len(head) >= 12 and head[8:12] == b".FIT":
        return "fit"

    text = head.decode("utf-8", errors="ignore")
    position = 0
    while True:
        position = text.find("<", position)
        if position < 0 or position + 1 >= len(text):
            return None
        # Skip the prolog, comments and doctype
        if text[position + 1] in "?!":
            position += 1
            continue
        match = TAG_NAME.match(text, position + 1)
        tag = match.group(0).split(":", 1)[-1] if match else ""
        if tag == "gpx":
            return "gpx"
        if tag == "TrainingCenterDatabase":
            return "tcx"
        return None


def get_adapter(path: Path) -> ActivityAdapter:
    """Adapter for ``path``: by extension first, content sniffing otherwise.

    Raises:
        UnsupportedFormatError: neither the extension nor the content is recognized
        MalformedDocumentError: the file cannot be read
    """
    path = Path(path)
    adapter = adapter_for_extension(path)
    if adapter is not None:
        return adapter

    try:
        with open(path, "rb") as f:
            head = f.read(SNIFF_BYTES)
    except OSError as e:
        raise MalformedDocumentError(f"Unable to read file: {e}", path) from e

    format_name = sniff_format(head)
    if format_name is None:
        raise UnsupportedFormatError("Not a FIT, GPX or TCX file", path)
    logger.debug(f"Detected {format_name} content in {path}")
    return ADAPTERS[format_name]


def read_session(path: Path):
    """Decode one input file into its canonical Session."""
    return get_adapter(path).read(Path(path))
