"""Exception hierarchy for fitutils."""

from pathlib import Path
from typing import Optional, Union


class FitUtilsError(Exception):
    """Base class for all errors raised by fitutils."""


class AdapterError(FitUtilsError):
    """A source document could not be mapped onto the activity model."""

    kind = "adapter"

    def __init__(self, reason: str, path: Optional[Union[str, Path]] = None):
        self.reason = reason
        self.path = str(path) if path is not None else None
        if self.path:
            super().__init__(f"{self.path}: {reason}")
        else:
            super().__init__(reason)


class MalformedDocumentError(AdapterError):
    """The document is corrupt, truncated or not the format it claims to be."""

    kind = "malformed"


class MissingTimestampError(AdapterError):
    """The document parsed but nothing anchors the activity in time."""

    kind = "missing_timestamp"


class UnsupportedVersionError(AdapterError):
    """The document uses a format version we cannot read."""

    kind = "unsupported_version"


class UnsupportedFormatError(AdapterError):
    """No adapter recognizes the file."""

    kind = "unsupported_format"


class UnitConversionError(FitUtilsError):
    """A raw value could not be converted to its canonical unit."""


class UnknownUnitError(UnitConversionError):
    """The source unit tag is not in the unit table."""

    def __init__(self, unit):
        self.unit = unit
        super().__init__(f"Unknown unit: {unit!r}")


class PatternError(FitUtilsError):
    """Reserved for syntactic validation of rename patterns."""


class ExportError(FitUtilsError):
    """Writing an export failed."""


class ExportIOError(ExportError):
    """The export target could not be written."""


class SerializationError(ExportError):
    """The model could not be serialized."""


class RenameError(FitUtilsError):
    """A file could not be renamed."""


class TargetExistsError(RenameError):
    """No free name was found within the attempt limit."""
