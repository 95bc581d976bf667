"""
Token pattern engine for metadata-driven file names.

A pattern is literal text with ``%name`` tokens. Every token has a long and a
two-letter short spelling (``%year`` / ``%yr``). Unknown ``%`` sequences are
copied through unchanged.
"""

import logging
import os
from datetime import datetime
from typing import Callable, Dict, List, Tuple

from ..models.activity import Session

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

Renderer = Callable[[Session, datetime], str]


def _optional(value) -> str:
    return "" if value is None else str(value)


def _hour12(moment: datetime) -> str:
    return f"{(moment.hour % 12) or 12:02}"


def _activity(session: Session, moment: datetime) -> str:
    return session.activity.display_name if session.activity is not None else ""


# (long name, short name, renderer)
TOKENS: List[Tuple[str, str, Renderer]] = [
    ("year", "yr", lambda s, m: f"{m.year:04}"),
    ("month", "mo", lambda s, m: f"{m.month:02}"),
    ("day", "dy", lambda s, m: f"{m.day:02}"),
    ("weekday", "wd", lambda s, m: WEEKDAY_NAMES[m.weekday()]),
    ("hour", "hr", lambda s, m: f"{m.hour:02}"),
    ("hour24", "h24", lambda s, m: f"{m.hour:02}"),
    ("hour12", "h12", lambda s, m: _hour12(m)),
    ("ampm", "ap", lambda s, m: "AM" if m.hour < 12 else "PM"),
    ("minute", "mi", lambda s, m: f"{m.minute:02}"),
    ("second", "se", lambda s, m: f"{m.second:02}"),
    ("activity", "ac", _activity),
    ("activity_detailed", "ad", lambda s, m: _optional(s.activity_detail)),
    ("duration", "du", lambda s, m: str(int(s.duration))),
    ("manufacturer", "mf", lambda s, m: _optional(s.manufacturer)),
    ("product", "pr", lambda s, m: _optional(s.product)),
    ("serial_number", "sn", lambda s, m: _optional(s.serial_number)),
]

_RENDERERS: Dict[str, Renderer] = {}
for _long, _short, _render in TOKENS:
    _RENDERERS[_long] = _render
    _RENDERERS[_short] = _render

# Longest first so that "%hour24" wins over "%hour"
_TOKEN_NAMES = sorted(_RENDERERS, key=len, reverse=True)

ILLEGAL_CHARACTERS = "/\\\0"
if os.name == "nt":
    ILLEGAL_CHARACTERS += '<>:"|?*'


def match_token(pattern: str, position: int):
    """Longest token name starting at ``position``, or None."""
    for name in _TOKEN_NAMES:
        if pattern.startswith(name, position):
            return name
    return None


def sanitize(name: str) -> str:
    """Strip characters that cannot appear in a single path component.

    Removes ``/``, ``\\``, NUL and other control characters (plus ``<>:"|?*``
    on Windows), then trims leading and trailing whitespace.
    """
    cleaned = "".join(ch for ch in name if ch not in ILLEGAL_CHARACTERS and ord(ch) >= 32)
    return cleaned.strip()


def resolve(pattern: str, session: Session, local_time: bool = False) -> str:
    """Substitute every known token in ``pattern`` from ``session``.

    Args:
        pattern: Literal text interspersed with ``%token`` placeholders
        session: Session supplying the values
        local_time: Render date/time tokens in the host time zone instead
            of the start instant's own offset

    Returns:
        The resolved name, safe to use as one path component
    """
    moment = session.start_time.astimezone() if local_time else session.start_time

    parts = []
    position = 0
    while position < len(pattern):
        char = pattern[position]
        if char == "%":
            name = match_token(pattern, position + 1)
            if name is not None:
                parts.append(_RENDERERS[name](session, moment))
                position += 1 + len(name)
                continue
        parts.append(char)
        position += 1

    resolved = sanitize("".join(parts))
    logger.debug(f"Pattern {pattern!r} resolved to {resolved!r}")
    return resolved
