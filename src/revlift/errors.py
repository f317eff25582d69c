"""Exception hierarchy for image loading and decoding."""

from __future__ import annotations


class RevLiftError(Exception):
    """Base class for all revlift errors."""


class OpenFailure(RevLiftError):
    """The path does not exist or the target format is not recognised."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"cannot open {path}: {reason}")
        self.path = path
        self.reason = reason


class ConfigError(RevLiftError):
    """A configuration file could not be parsed or validated."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"bad config {path}: {reason}")
        self.path = path
        self.reason = reason


class FormatError(RevLiftError):
    """The binary container is malformed; no image is produced."""


class SymbolTableReadFailure(FormatError):
    """The introspection backend reported an invalid symbol table size."""

    def __init__(self, size: int) -> None:
        super().__init__(f"invalid symbol table size {size}")
        self.size = size


class UnresolvedSymbolSection(FormatError):
    """A symbol refers to a section that is not part of the image."""

    def __init__(self, symbol_name: str, section_ref: object) -> None:
        super().__init__(
            f"symbol {symbol_name!r} references unknown section {section_ref!r}"
        )
        self.symbol_name = symbol_name
        self.section_ref = section_ref


class DecodeFailure(RevLiftError):
    """The decoder returned a non-positive instruction length."""

    def __init__(self, address: int, symbol_name: str = "", length: int = 0) -> None:
        where = f" in {symbol_name}" if symbol_name else ""
        super().__init__(f"cannot decode instruction at {address:#x}{where}")
        self.address = address
        self.symbol_name = symbol_name
        self.length = length
