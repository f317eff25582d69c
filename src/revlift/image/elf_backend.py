"""ELF introspection backend built on pyelftools."""

from __future__ import annotations

import hashlib
import io
from pathlib import Path

from elftools.common.exceptions import ELFError
from elftools.elf.constants import SH_FLAGS
from elftools.elf.elffile import ELFFile
from elftools.elf.relocation import RelocationSection
from elftools.elf.sections import Section as ELFSection
from elftools.elf.sections import SymbolTableIndexSection, SymbolTableSection

from revlift.errors import FormatError, OpenFailure
from revlift.image.binary_image import BinaryImage, build_image
from revlift.image.flags import SectionFlags, SymbolFlags
from revlift.image.raw import PseudoSection, RawSection, RawSymbol, RawSymbolTable, SectionRef
from revlift.image.targets import TargetSpec, detect_target, find_target
from revlift.utils.logging import get_logger

log = get_logger(__name__)

# Escape value whose real index lives in the SHT_SYMTAB_SHNDX section.
_SHN_XINDEX = 0xFFFF

_PSEUDO_INDICES = {
    "SHN_UNDEF": PseudoSection.UNDEFINED,
    "SHN_ABS": PseudoSection.ABSOLUTE,
    "SHN_COMMON": PseudoSection.COMMON,
}

_BIND_FLAGS = {
    "STB_LOCAL": SymbolFlags.LOCAL,
    "STB_GLOBAL": SymbolFlags.GLOBAL,
    "STB_WEAK": SymbolFlags.WEAK,
    "STB_GNU_UNIQUE": SymbolFlags.GLOBAL | SymbolFlags.UNIQUE,
    "STB_LOOS": SymbolFlags.GLOBAL | SymbolFlags.UNIQUE,
}

_TYPE_FLAGS = {
    "STT_FUNC": SymbolFlags.FUNCTION,
    "STT_OBJECT": SymbolFlags.OBJECT,
    "STT_COMMON": SymbolFlags.OBJECT,
    "STT_TLS": SymbolFlags.OBJECT | SymbolFlags.THREAD_LOCAL,
    "STT_SECTION": SymbolFlags.SECTION_SYM,
    "STT_FILE": SymbolFlags.FILE,
    "STT_GNU_IFUNC": SymbolFlags.FUNCTION | SymbolFlags.INDIRECT_FUNCTION,
    "STT_LOOS": SymbolFlags.FUNCTION | SymbolFlags.INDIRECT_FUNCTION,
}

_CONSTRUCTOR_TYPES = ("SHT_INIT_ARRAY", "SHT_FINI_ARRAY", "SHT_PREINIT_ARRAY")
_CONSTRUCTOR_NAMES = (".ctors", ".dtors", ".init", ".fini")
_DEBUG_PREFIXES = (".debug", ".zdebug", ".stab", ".gnu.debuglto")

# Bytes per PLT stub, keyed by ELF machine.
_PLT_ENTRY_SIZES = {"EM_X86_64": 16, "EM_386": 16}


def open_image(path: str | Path, target: str = "") -> BinaryImage:
    """Open an ELF file and build its image.

    ``target`` is a name from :func:`revlift.image.targets.list_supported_targets`;
    an empty string detects it from the ELF header.
    """
    path = Path(path)
    if not path.is_file():
        log.warning("binary_not_found", path=str(path))
        raise OpenFailure(str(path), "no such file")

    requested = None
    if target:
        requested = find_target(target)
        if requested is None:
            raise OpenFailure(str(path), f"unrecognised target {target!r}")

    try:
        file_bytes = path.read_bytes()
    except OSError as exc:
        log.error("binary_read_failed", path=str(path), error=str(exc))
        raise OpenFailure(str(path), f"cannot read file: {exc.strerror or exc}") from exc
    sha256 = hashlib.sha256(file_bytes).hexdigest()

    try:
        elf = ELFFile(io.BytesIO(file_bytes))
    except ELFError as exc:
        log.error("elf_open_failed", path=str(path), error=str(exc))
        raise OpenFailure(str(path), "file format not recognized") from exc

    spec = detect_target(elf.header.e_machine, elf.elfclass, elf.little_endian)
    if spec is None:
        raise OpenFailure(str(path), f"unsupported machine {elf.header.e_machine}")
    if requested is not None and requested is not spec:
        raise OpenFailure(str(path), f"file is {spec.name}, not {requested.name}")

    try:
        raw_sections = _read_sections(elf)
    except ELFError as exc:
        log.error("section_headers_invalid", path=str(path), error=str(exc))
        raise FormatError(f"malformed section headers in {path}: {exc}") from exc
    symbol_table = _read_symbol_table(elf, raw_sections, spec)

    image = build_image(
        path,
        spec.name,
        raw_sections,
        symbol_table,
        sha256=sha256,
        target_spec=spec,
    )
    log.info(
        "image_loaded",
        path=str(path),
        target=spec.name,
        sections=len(raw_sections),
        symbols=max(symbol_table.size, 0),
    )
    return image


def _read_sections(elf: ELFFile) -> list[RawSection]:
    """Every section except the mandatory null entry, in header order."""
    raw_sections: list[RawSection] = []
    for index, section in enumerate(elf.iter_sections()):
        if index == 0:
            continue
        raw_sections.append(
            RawSection(
                name=section.name,
                address=section["sh_addr"],
                size=section["sh_size"],
                flags=_section_flags(section),
                fetch=section.data,
                index=index,
            )
        )
    return raw_sections


def _section_flags(section: ELFSection) -> SectionFlags:
    sh_flags = section["sh_flags"]
    sh_type = section["sh_type"]
    flags = SectionFlags.NONE

    has_contents = sh_type not in ("SHT_NOBITS", "SHT_NULL")
    alloc = bool(sh_flags & SH_FLAGS.SHF_ALLOC)
    executable = bool(sh_flags & SH_FLAGS.SHF_EXECINSTR)

    if alloc:
        flags |= SectionFlags.ALLOC
        if not sh_flags & SH_FLAGS.SHF_WRITE:
            flags |= SectionFlags.READONLY
    if has_contents:
        flags |= SectionFlags.HAS_CONTENTS
        if alloc:
            flags |= SectionFlags.LOAD
    if executable:
        flags |= SectionFlags.CODE
    elif alloc and has_contents:
        flags |= SectionFlags.DATA
    if sh_type in ("SHT_REL", "SHT_RELA"):
        flags |= SectionFlags.RELOC
    if sh_type in _CONSTRUCTOR_TYPES or section.name in _CONSTRUCTOR_NAMES:
        flags |= SectionFlags.CONSTRUCTORS
    if section.name.startswith(_DEBUG_PREFIXES):
        flags |= SectionFlags.DEBUGGING
    if sh_flags & SH_FLAGS.SHF_EXCLUDE:
        flags |= SectionFlags.EXCLUDE
    if sh_flags & SH_FLAGS.SHF_TLS:
        flags |= SectionFlags.THREAD_LOCAL
    if sh_flags & SH_FLAGS.SHF_MERGE:
        flags |= SectionFlags.MERGE
    if sh_flags & SH_FLAGS.SHF_STRINGS:
        flags |= SectionFlags.STRINGS
    if sh_flags & SH_FLAGS.SHF_GROUP:
        flags |= SectionFlags.LINK_ONCE
    return flags


def _section_ref(shndx: int | str, by_index: dict[int, RawSection]) -> SectionRef:
    """Map an ``st_shndx`` value to a raw section or pseudo-section.

    ``SHN_XINDEX`` must already be resolved by the caller; any reserved
    index left here comes back as ``None``.
    """
    if isinstance(shndx, int):
        return by_index.get(shndx)
    return _PSEUDO_INDICES.get(shndx)


def _symbol_flags(symbol, dynamic: bool) -> SymbolFlags:
    info = symbol["st_info"]
    flags = _BIND_FLAGS.get(info["bind"], SymbolFlags.NONE)
    flags |= _TYPE_FLAGS.get(info["type"], SymbolFlags.NONE)
    if dynamic:
        flags |= SymbolFlags.DYNAMIC
    return flags


def _read_symbol_table(
    elf: ELFFile,
    raw_sections: list[RawSection],
    spec: TargetSpec,
) -> RawSymbolTable:
    """Read .symtab, .dynsym and the PLT stubs; a parse error yields a negative table size."""
    by_index = {raw.index: raw for raw in raw_sections}
    entries: list[RawSymbol] = []

    try:
        sections = list(elf.iter_sections())
        # Extended section indices, keyed by the symbol table they extend.
        extended = {
            section["sh_link"]: section
            for section in sections
            if isinstance(section, SymbolTableIndexSection)
        }
        for table_index, section in enumerate(sections):
            if not isinstance(section, SymbolTableSection):
                continue
            dynamic = section["sh_type"] == "SHT_DYNSYM"
            shndx_table = extended.get(table_index)
            for i, sym in enumerate(section.iter_symbols()):
                # Entry 0 of every ELF symbol table is the reserved null symbol.
                if i == 0:
                    continue
                shndx = sym["st_shndx"]
                if shndx in (_SHN_XINDEX, "SHN_XINDEX") and shndx_table is not None:
                    shndx = shndx_table.get_section_index(i)
                ref = _section_ref(shndx, by_index)
                flags = _symbol_flags(sym, dynamic)
                name = sym.name
                if not name and flags & SymbolFlags.SECTION_SYM and isinstance(ref, RawSection):
                    name = ref.name
                entries.append(
                    RawSymbol(
                        name=name,
                        address=sym["st_value"],
                        size=sym["st_size"],
                        flags=flags,
                        section=ref,
                    )
                )
        entries.extend(_read_plt_symbols(elf, raw_sections, spec))
    except ELFError as exc:
        log.error("symbol_table_parse_failed", error=str(exc))
        return RawSymbolTable(size=-1)

    return RawSymbolTable.of(entries)


def _read_plt_symbols(
    elf: ELFFile,
    raw_sections: list[RawSection],
    spec: TargetSpec,
) -> list[RawSymbol]:
    """Name each PLT stub after the import its jump-slot relocation binds.

    Stub ``i`` sits at ``.plt + (i + 1) * entry_size``; slot 0 is the
    resolver trampoline.
    """
    entry_size = _PLT_ENTRY_SIZES.get(spec.machine)
    plt = next((raw for raw in raw_sections if raw.name == ".plt"), None)
    if entry_size is None or plt is None:
        return []

    relocs = elf.get_section_by_name(".rela.plt")
    if relocs is None:
        relocs = elf.get_section_by_name(".rel.plt")
    if not isinstance(relocs, RelocationSection):
        return []
    symtab = elf.get_section(relocs["sh_link"])
    if not isinstance(symtab, SymbolTableSection):
        return []

    stubs: list[RawSymbol] = []
    plt_end = plt.address + plt.size
    for i, rel in enumerate(relocs.iter_relocations()):
        address = plt.address + (i + 1) * entry_size
        if address + entry_size > plt_end:
            log.warning("plt_stub_out_of_range", address=address, relocation=i)
            break
        name = symtab.get_symbol(rel["r_info_sym"]).name
        stubs.append(
            RawSymbol(
                name=f"{name}@plt",
                address=address,
                size=entry_size,
                flags=SymbolFlags.LOCAL | SymbolFlags.FUNCTION | SymbolFlags.SYNTHETIC,
                section=plt,
            )
        )
    log.debug("plt_symbols_synthesized", count=len(stubs))
    return stubs
