"""Shared test fixtures."""

from __future__ import annotations

import struct
from pathlib import Path

import pytest

from revlift.config.models import RevLiftConfig, SegmentationConfig
from revlift.disasm.decoder import DecodeResult
from revlift.image.binary_image import BinaryImage, build_image
from revlift.image.flags import SectionFlags, SymbolFlags
from revlift.image.raw import PseudoSection, RawSection, RawSymbol, RawSymbolTable
from revlift.image.targets import find_target

TEXT_ADDRESS = 0x1000

# main:   xor eax, eax / je 0x1006 / nop / nop / ret
# helper: push rbp / mov rbp, rsp / call 0x1010 / pop rbp / ret
MAIN_CODE = bytes.fromhex("31c074029090c3")
HELPER_CODE = bytes.fromhex("554889e5e8000000005dc3")
CODE = MAIN_CODE + HELPER_CODE

MAIN_ADDRESS = TEXT_ADDRESS
HELPER_ADDRESS = TEXT_ADDRESS + len(MAIN_CODE)

CODE_FLAGS = (
    SectionFlags.ALLOC
    | SectionFlags.LOAD
    | SectionFlags.READONLY
    | SectionFlags.CODE
    | SectionFlags.HAS_CONTENTS
)
GLOBAL_FUNCTION = SymbolFlags.GLOBAL | SymbolFlags.FUNCTION


# -- hand-built images --


@pytest.fixture
def sample_config() -> RevLiftConfig:
    return RevLiftConfig(segmentation=SegmentationConfig(split_on_call=True))


@pytest.fixture
def text_section() -> RawSection:
    return RawSection(
        name=".text",
        address=TEXT_ADDRESS,
        size=len(CODE),
        flags=CODE_FLAGS,
        fetch=lambda: CODE,
        index=1,
    )


@pytest.fixture
def data_section() -> RawSection:
    return RawSection(
        name=".data",
        address=0x2000,
        size=8,
        flags=SectionFlags.ALLOC | SectionFlags.LOAD | SectionFlags.DATA | SectionFlags.HAS_CONTENTS,
        fetch=lambda: b"\x01" * 8,
        index=2,
    )


@pytest.fixture
def sample_image(text_section, data_section) -> BinaryImage:
    """x86-64 image with two functions, one data object and one import."""
    symbols = [
        RawSymbol("main", MAIN_ADDRESS, len(MAIN_CODE), GLOBAL_FUNCTION, text_section),
        RawSymbol("helper", HELPER_ADDRESS, len(HELPER_CODE), GLOBAL_FUNCTION, text_section),
        RawSymbol("counter", 0x2000, 8, SymbolFlags.LOCAL | SymbolFlags.OBJECT, data_section),
        RawSymbol("puts", 0, 0, SymbolFlags.GLOBAL, PseudoSection.UNDEFINED),
    ]
    spec = find_target("elf64-x86-64")
    return build_image(
        "/tmp/sample.o",
        spec.name,
        [text_section, data_section],
        RawSymbolTable.of(symbols),
        sha256="a" * 64,
        target_spec=spec,
    )


class ScriptedDecoder:
    """Decoder stand-in answering from a table of ``address -> DecodeResult``."""

    max_instruction_bytes = 15

    def __init__(self, results: dict[int, DecodeResult]) -> None:
        self.results = results
        self.calls: list[int] = []

    def decode(self, address, window, printer):
        self.calls.append(address)
        result = self.results.get(address, DecodeResult(length=0))
        if result.length > 0:
            printer("%s", result.mnemonic)
        return result


@pytest.fixture
def scripted_decoder():
    return ScriptedDecoder


# -- synthetic ELF files --

_EHDR = struct.Struct("<16sHHIQQQIHHHHHH")
_SHDR = struct.Struct("<IIQQQQIIQQ")
_SYM = struct.Struct("<IBBHQQ")
_RELA = struct.Struct("<QQq")

EM_X86_64 = 62
ET_REL = 1
ET_DYN = 3
SHT_PROGBITS = 1
SHT_SYMTAB = 2
SHT_STRTAB = 3
SHT_RELA = 4
SHT_DYNSYM = 11
SHT_SYMTAB_SHNDX = 18
SHN_ABS = 0xFFF1
SHN_XINDEX = 0xFFFF
R_X86_64_JUMP_SLOT = 7

E_SHNUM_OFFSET = 60

_BINDS = {"local": 0, "global": 1, "weak": 2}
_TYPES = {"notype": 0, "object": 1, "func": 2, "section": 3, "file": 4}

DEFAULT_ELF_SYMBOLS = (
    ("sample.c", 0, 0, "local", "file", SHN_ABS),
    ("", TEXT_ADDRESS, 0, "local", "section", 1),
    ("main", MAIN_ADDRESS, len(MAIN_CODE), "global", "func", 1),
    ("helper", HELPER_ADDRESS, len(HELPER_CODE), "global", "func", 1),
    ("puts", 0, 0, "global", "notype", 0),
)

PLT_ADDRESS = 0x2000
PLT_IMPORTS = ("puts", "exit")
# push [rip+GOT+8] / jmp [rip+GOT+16] / nopl 0x0(rax)
_PLT0 = bytes.fromhex("ff3500000000ff25000000000f1f4000")


def _string_table(names) -> tuple[bytes, dict[str, int]]:
    blob = bytearray(b"\0")
    offsets = {"": 0}
    for name in names:
        if name not in offsets:
            offsets[name] = len(blob)
            blob += name.encode() + b"\0"
    return bytes(blob), offsets


def _symbol_table(symbols) -> tuple[bytes, bytes, int]:
    """Return ``(symtab, strtab, first_global)`` for ``symbols``."""
    strtab, names = _string_table(sym[0] for sym in symbols)
    table = bytearray(_SYM.pack(0, 0, 0, 0, 0, 0))
    for name, value, size, bind, kind, shndx in symbols:
        info = (_BINDS[bind] << 4) | _TYPES[kind]
        table += _SYM.pack(names[name], info, 0, shndx, value, size)
    first_global = 1 + sum(1 for sym in symbols if sym[3] == "local")
    return bytes(table), strtab, first_global


def assemble_elf(sections, machine: int = EM_X86_64, e_type: int = ET_REL) -> bytes:
    """Lay out a little-endian ELF64 file and append its .shstrtab.

    ``sections`` are ``(name, sh_type, sh_flags, sh_addr, body, sh_link,
    sh_info, sh_addralign, sh_entsize)`` tuples; header index 0 is the null
    section so the first tuple gets index 1.
    """
    sections = list(sections)
    shstrtab, shnames = _string_table([s[0] for s in sections] + [".shstrtab"])
    sections.append((".shstrtab", SHT_STRTAB, 0, 0, shstrtab, 0, 0, 1, 0))

    data = bytearray(_EHDR.size)
    headers = [(0, 0, 0, 0, 0, 0, 0, 0, 0, 0)]
    for name, sh_type, flags, addr, body, link, info, align, entsize in sections:
        while len(data) % 8:
            data.append(0)
        headers.append((shnames[name], sh_type, flags, addr, len(data), len(body), link, info, align, entsize))
        data += body
    while len(data) % 8:
        data.append(0)
    shoff = len(data)
    for header in headers:
        data += _SHDR.pack(*header)

    ident = b"\x7fELF" + bytes([2, 1, 1]) + bytes(9)
    data[: _EHDR.size] = _EHDR.pack(
        ident, e_type, machine, 1, 0, 0, shoff, 0,
        _EHDR.size, 0, 0, _SHDR.size, len(headers), len(headers) - 1,
    )
    return bytes(data)


def build_elf(
    code: bytes = CODE,
    symbols=DEFAULT_ELF_SYMBOLS,
    machine: int = EM_X86_64,
    text_address: int = TEXT_ADDRESS,
    extended_indices: dict[str, int] | None = None,
) -> bytes:
    """Minimal ELF64 relocatable: .text, .symtab, .strtab, .shstrtab.

    ``symbols`` are ``(name, value, size, bind, type, shndx)`` tuples with
    locals listed first. ``extended_indices`` maps symbol names to the
    section index stored for them in an added .symtab_shndx section.
    """
    symtab, strtab, first_global = _symbol_table(symbols)
    sections = [
        (".text", SHT_PROGBITS, 0x6, text_address, code, 0, 0, 16, 0),
        (".symtab", SHT_SYMTAB, 0, 0, symtab, 3, first_global, 8, _SYM.size),
        (".strtab", SHT_STRTAB, 0, 0, strtab, 0, 0, 1, 0),
    ]
    if extended_indices:
        words = [0] + [extended_indices.get(sym[0], 0) for sym in symbols]
        shndx = struct.pack(f"<{len(words)}I", *words)
        sections.append((".symtab_shndx", SHT_SYMTAB_SHNDX, 0, 0, shndx, 2, 0, 4, 4))
    return assemble_elf(sections, machine)


def build_plt_elf(imports=PLT_IMPORTS, plt_slots: int | None = None) -> bytes:
    """Shared object with .plt stubs bound by .rela.plt jump slots to .dynsym.

    ``plt_slots`` limits how many stubs are written after PLT0.
    """
    symtab, strtab, first_global = _symbol_table(DEFAULT_ELF_SYMBOLS)
    dynsym, dynstr, _ = _symbol_table([(name, 0, 0, "global", "func", 0) for name in imports])

    plt = bytearray(_PLT0)
    rela = bytearray()
    for i in range(len(imports)):
        # jmp [rip+slot] / push i / jmp PLT0
        stub = bytes.fromhex("ff2500000000") + b"\x68" + struct.pack("<I", i) + bytes.fromhex("e900000000")
        if plt_slots is None or i < plt_slots:
            plt += stub
        rela += _RELA.pack(0x3018 + 8 * i, ((i + 1) << 32) | R_X86_64_JUMP_SLOT, 0)

    sections = [
        (".text", SHT_PROGBITS, 0x6, TEXT_ADDRESS, CODE, 0, 0, 16, 0),
        (".plt", SHT_PROGBITS, 0x6, PLT_ADDRESS, bytes(plt), 0, 0, 16, 16),
        (".symtab", SHT_SYMTAB, 0, 0, symtab, 4, first_global, 8, _SYM.size),
        (".strtab", SHT_STRTAB, 0, 0, strtab, 0, 0, 1, 0),
        (".dynsym", SHT_DYNSYM, 0x2, 0, dynsym, 6, 1, 8, _SYM.size),
        (".dynstr", SHT_STRTAB, 0x2, 0, dynstr, 0, 0, 1, 0),
        (".rela.plt", SHT_RELA, 0x42, 0, bytes(rela), 5, 2, 8, _RELA.size),
    ]
    return assemble_elf(sections, e_type=ET_DYN)


@pytest.fixture
def make_elf(tmp_path):
    """Factory writing a synthetic ELF to ``tmp_path`` and returning its path."""

    def _make(name: str = "sample.o", **kwargs) -> Path:
        path = tmp_path / name
        path.write_bytes(build_elf(**kwargs))
        return path

    return _make


@pytest.fixture
def sample_elf(make_elf) -> Path:
    return make_elf()


@pytest.fixture
def plt_elf(tmp_path) -> Path:
    path = tmp_path / "libsample.so"
    path.write_bytes(build_plt_elf())
    return path
