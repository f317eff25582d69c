"""Section and symbol classification bits."""

from __future__ import annotations

from enum import Flag, auto


class SectionFlags(Flag):
    NONE = 0
    ALLOC = auto()
    LOAD = auto()
    RELOC = auto()
    READONLY = auto()
    CODE = auto()
    DATA = auto()
    CONSTRUCTORS = auto()
    HAS_CONTENTS = auto()
    DEBUGGING = auto()
    EXCLUDE = auto()
    IS_COMMON = auto()
    THREAD_LOCAL = auto()
    MERGE = auto()
    STRINGS = auto()
    LINK_ONCE = auto()


class SymbolFlags(Flag):
    NONE = 0
    LOCAL = auto()
    GLOBAL = auto()
    WEAK = auto()
    UNIQUE = auto()
    FUNCTION = auto()
    OBJECT = auto()
    SECTION_SYM = auto()
    FILE = auto()
    DYNAMIC = auto()
    INDIRECT_FUNCTION = auto()
    THREAD_LOCAL = auto()
    SYNTHETIC = auto()
