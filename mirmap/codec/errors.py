"""Exceptions raised by the map and object-file codecs."""

from __future__ import annotations


class MapFormatError(ValueError):
    """A map buffer could not be decoded, or a grid could not be encoded.

    Attributes:
        tag: Format tag the codec was working with, if known.
    """

    def __init__(self, message: str, tag: int | None = None) -> None:
        super().__init__(message)
        self.tag = tag


class UnsupportedVersionError(MapFormatError):
    """A native map carries a version number other than 1."""


class MalformedMapError(MapFormatError):
    """Buffer contents or cell values do not fit the format."""


class TruncatedMapError(MalformedMapError):
    """Buffer is shorter than its header says it should be.

    Attributes:
        expected: Bytes required by the header.
        actual: Bytes present.
    """

    def __init__(self, tag: int, expected: int, actual: int) -> None:
        super().__init__(
            f"format {tag} map needs {expected} bytes, buffer ends at byte {actual}",
            tag=tag,
        )
        self.expected = expected
        self.actual = actual


class UnimplementedFormatError(NotImplementedError):
    """No codec exists for the requested format tag."""

    def __init__(self, tag: int) -> None:
        super().__init__(f"no codec for map format {tag}")
        self.tag = tag


class InvalidGridError(ValueError):
    """A grid failed validation before encoding."""


class ObjectRecordError(ValueError):
    """An object placement file is malformed."""
