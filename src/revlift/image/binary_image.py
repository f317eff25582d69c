"""Object graph for one opened binary: image, sections and symbols.

Only :func:`build_image` creates these objects. The image owns its sections
and the symbol table arena; each section owns the symbols bound to it, and
symbols point back at their section through a weak reference.
"""

from __future__ import annotations

import weakref
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, Sequence

from revlift.errors import SymbolTableReadFailure, UnresolvedSymbolSection
from revlift.image.flags import SectionFlags, SymbolFlags
from revlift.image.raw import PseudoSection, RawSection, RawSymbol, RawSymbolTable
from revlift.utils.logging import get_logger

if TYPE_CHECKING:
    from revlift.image.targets import TargetSpec

log = get_logger(__name__)

PSEUDO_SECTION_ORDER = (
    PseudoSection.COMMON,
    PseudoSection.UNDEFINED,
    PseudoSection.ABSOLUTE,
    PseudoSection.INDIRECT,
)


class SymbolTableArena:
    """Holds the raw symbol entries for the lifetime of an image."""

    def __init__(self, entries: Sequence[RawSymbol]) -> None:
        self._entries = tuple(entries)

    def __getitem__(self, index: int) -> RawSymbol:
        return self._entries[index]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[RawSymbol]:
        return iter(self._entries)


class Symbol:
    """A named entity located in exactly one section."""

    def __init__(self, arena: SymbolTableArena, index: int, section: Section) -> None:
        self._arena = arena
        self.index = index
        self._section = weakref.ref(section)

    @property
    def _entry(self) -> RawSymbol:
        return self._arena[self.index]

    @property
    def name(self) -> str:
        return self._entry.name

    @property
    def address(self) -> int:
        return self._entry.address

    @property
    def size(self) -> int:
        return self._entry.size

    @property
    def flags(self) -> SymbolFlags:
        return self._entry.flags

    @property
    def section(self) -> Section | None:
        return self._section()

    @property
    def is_function(self) -> bool:
        return bool(self.flags & SymbolFlags.FUNCTION)

    @property
    def is_global(self) -> bool:
        return bool(self.flags & SymbolFlags.GLOBAL)

    @property
    def is_local(self) -> bool:
        return bool(self.flags & SymbolFlags.LOCAL)

    @property
    def is_weak(self) -> bool:
        return bool(self.flags & SymbolFlags.WEAK)

    @property
    def is_dynamic(self) -> bool:
        return bool(self.flags & SymbolFlags.DYNAMIC)

    def __repr__(self) -> str:
        section = self.section
        where = section.name if section is not None else "?"
        return f"<Symbol {self.name!r} {self.address:#x}+{self.size} in {where}>"


class Section:
    """A named contiguous byte range with lazily fetched content."""

    def __init__(
        self,
        index: int,
        name: str,
        address: int,
        size: int,
        flags: SectionFlags,
        raw: RawSection | PseudoSection,
    ) -> None:
        self.index = index
        self.name = name
        self.address = address
        self.size = size
        self.flags = flags
        self.raw = raw
        self.symbols: list[Symbol] = []
        self._content: bytes | None = None

    @property
    def content(self) -> bytes:
        """Section bytes, read from the backend on first access."""
        if self._content is None:
            fetch = self.raw.fetch if isinstance(self.raw, RawSection) else None
            self._content = fetch() if fetch is not None else b""
            log.debug("section_content_loaded", section=self.name, size=len(self._content))
        return self._content

    @property
    def content_size(self) -> int:
        return len(self.content)

    @property
    def last_address(self) -> int:
        """Farthest address inside this section."""
        return self.address + max(self.size, 1) - 1

    @property
    def is_pseudo(self) -> bool:
        return isinstance(self.raw, PseudoSection)

    def contains(self, address: int) -> bool:
        return self.address <= address < self.address + self.size

    def has_flag(self, flag: SectionFlags) -> bool:
        return bool(self.flags & flag)

    @property
    def is_alloc_on_load(self) -> bool:
        return self.has_flag(SectionFlags.ALLOC)

    @property
    def is_loaded_with_file(self) -> bool:
        return self.has_flag(SectionFlags.LOAD)

    @property
    def has_reloc_info(self) -> bool:
        return self.has_flag(SectionFlags.RELOC)

    @property
    def is_read_only(self) -> bool:
        return self.has_flag(SectionFlags.READONLY)

    @property
    def has_code_only(self) -> bool:
        return self.has_flag(SectionFlags.CODE)

    @property
    def has_data_only(self) -> bool:
        return self.has_flag(SectionFlags.DATA)

    @property
    def has_content(self) -> bool:
        return self.has_flag(SectionFlags.HAS_CONTENTS)

    @property
    def has_constructor_info(self) -> bool:
        return self.has_flag(SectionFlags.CONSTRUCTORS)

    @property
    def has_common_symbols(self) -> bool:
        return self.has_flag(SectionFlags.IS_COMMON)

    @property
    def is_debug_only(self) -> bool:
        return self.has_flag(SectionFlags.DEBUGGING)

    @property
    def is_excluded(self) -> bool:
        return self.has_flag(SectionFlags.EXCLUDE)

    @property
    def is_thread_local(self) -> bool:
        return self.has_flag(SectionFlags.THREAD_LOCAL)

    @property
    def link_once(self) -> bool:
        return self.has_flag(SectionFlags.LINK_ONCE)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, str):
            return self.name == other
        return self is other

    def __hash__(self) -> int:
        return id(self)

    def __iter__(self) -> Iterator[Symbol]:
        return iter(self.symbols)

    def __len__(self) -> int:
        return len(self.symbols)

    def __repr__(self) -> str:
        return f"<Section {self.name!r} {self.address:#x}+{self.size:#x} symbols={len(self.symbols)}>"


class BinaryImage:
    """In-memory representation of one loaded object file or executable."""

    def __init__(
        self,
        path: Path,
        target: str,
        sections: list[Section],
        symbol_table: SymbolTableArena,
        sha256: str = "",
        target_spec: TargetSpec | None = None,
    ) -> None:
        self.path = path
        self.target = target
        self.sections = sections
        self.symbol_table = symbol_table
        self.sha256 = sha256
        self.target_spec = target_spec

    @property
    def name(self) -> str:
        return self.path.stem

    def pseudo_section(self, kind: PseudoSection) -> Section:
        return self.sections[PSEUDO_SECTION_ORDER.index(kind)]

    @property
    def real_sections(self) -> list[Section]:
        return self.sections[len(PSEUDO_SECTION_ORDER):]

    def section_by_name(self, name: str) -> Section | None:
        for section in self.sections:
            if section.name == name:
                return section
        return None

    def section_containing(self, address: int) -> Section | None:
        for section in self.real_sections:
            if section.has_flag(SectionFlags.ALLOC) and section.contains(address):
                return section
        return None

    def iter_symbols(self) -> Iterator[Symbol]:
        for section in self.sections:
            yield from section.symbols

    def __iter__(self) -> Iterator[Section]:
        return iter(self.sections)

    def __len__(self) -> int:
        return len(self.sections)

    def __getitem__(self, index: int) -> Section:
        return self.sections[index]

    def __repr__(self) -> str:
        return f"<BinaryImage {self.name!r} target={self.target} sections={len(self.sections)}>"


def _pseudo(index: int, kind: PseudoSection) -> Section:
    flags = SectionFlags.IS_COMMON if kind is PseudoSection.COMMON else SectionFlags.NONE
    return Section(index=index, name=kind.value, address=0, size=0, flags=flags, raw=kind)


def _real(index: int, raw: RawSection) -> Section:
    return Section(
        index=index,
        name=raw.name,
        address=raw.address,
        size=raw.size,
        flags=raw.flags,
        raw=raw,
    )


def _find_section(sections: list[Section], ref: object) -> Section | None:
    if ref is None:
        return None
    for section in sections:
        if section.raw is ref:
            return section
    return None


def build_image(
    path: str | Path,
    target: str,
    raw_sections: Sequence[RawSection],
    symbol_table: RawSymbolTable,
    sha256: str = "",
    target_spec: TargetSpec | None = None,
) -> BinaryImage:
    """Build the section/symbol graph, failing rather than returning a partial image."""
    if symbol_table.size < 0:
        log.error("symbol_table_read_failed", path=str(path), size=symbol_table.size)
        raise SymbolTableReadFailure(symbol_table.size)

    # Section.index is the position in image.sections; pseudo-sections take 0-3.
    sections = [_pseudo(i, kind) for i, kind in enumerate(PSEUDO_SECTION_ORDER)]
    sections.extend(_real(len(sections) + i, raw) for i, raw in enumerate(raw_sections))

    arena = SymbolTableArena(symbol_table.entries)
    for index, entry in enumerate(arena):
        section = _find_section(sections, entry.section)
        if section is None:
            log.error("unresolved_symbol_section", path=str(path), symbol=entry.name)
            raise UnresolvedSymbolSection(entry.name, entry.section)
        section.symbols.append(Symbol(arena, index, section))

    image = BinaryImage(
        path=Path(path),
        target=target,
        sections=sections,
        symbol_table=arena,
        sha256=sha256,
        target_spec=target_spec,
    )
    log.debug(
        "image_built",
        path=str(path),
        sections=len(sections),
        symbols=len(arena),
    )
    return image
