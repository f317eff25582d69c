"""Records handed over by an introspection backend before the image is built."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Union

from revlift.image.flags import SectionFlags, SymbolFlags


class PseudoSection(Enum):
    """Synthetic sections for symbols without concrete storage, in image order."""

    COMMON = "*COM*"
    UNDEFINED = "*UND*"
    ABSOLUTE = "*ABS*"
    INDIRECT = "*IND*"


@dataclass(frozen=True, eq=False)
class RawSection:
    """One section as reported by the backend.

    Compared by identity: symbols point at the exact object they live in.
    """

    name: str
    address: int
    size: int
    flags: SectionFlags = SectionFlags.NONE
    fetch: Callable[[], bytes] | None = None
    # Position in the backend's own section header table.
    index: int = 0


SectionRef = Union[RawSection, PseudoSection, None]


@dataclass(frozen=True)
class RawSymbol:
    name: str
    address: int
    size: int
    flags: SymbolFlags
    section: SectionRef


@dataclass(frozen=True)
class RawSymbolTable:
    """Symbol table entries; a negative ``size`` means the backend failed to read it."""

    size: int
    entries: tuple[RawSymbol, ...] = ()

    @classmethod
    def of(cls, entries: list[RawSymbol] | tuple[RawSymbol, ...]) -> RawSymbolTable:
        entries = tuple(entries)
        return cls(size=len(entries), entries=entries)
