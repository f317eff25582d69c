"""Supported target formats and their decoder settings."""

from __future__ import annotations

from dataclasses import dataclass

import capstone

from revlift.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class TargetSpec:
    """A BFD-style target name bound to ELF header values and a capstone mode.

    Capstone constants are kept by name; ``cs_arch`` lists alternatives
    because the AArch64 constant was renamed between capstone releases.
    """

    name: str
    machine: str
    elfclass: int
    little_endian: bool
    cs_arch: tuple[str, ...]
    cs_modes: tuple[str, ...]
    vex_arch: str = ""
    max_instruction_bytes: int = 4

    @property
    def is_x86(self) -> bool:
        return self.machine in ("EM_X86_64", "EM_386")

    def capstone_arch(self) -> int:
        for name in self.cs_arch:
            value = getattr(capstone, name, None)
            if value is not None:
                return value
        raise ValueError(f"capstone has no architecture constant for {self.name}")

    def capstone_mode(self) -> int:
        mode = 0
        for name in self.cs_modes:
            mode |= getattr(capstone, name)
        return mode


_AARCH64 = ("CS_ARCH_ARM64", "CS_ARCH_AARCH64")

TARGETS: tuple[TargetSpec, ...] = (
    TargetSpec("elf64-x86-64", "EM_X86_64", 64, True, ("CS_ARCH_X86",), ("CS_MODE_64",), "AMD64", 15),
    TargetSpec("elf32-x86-64", "EM_X86_64", 32, True, ("CS_ARCH_X86",), ("CS_MODE_64",), "AMD64", 15),
    TargetSpec("elf32-i386", "EM_386", 32, True, ("CS_ARCH_X86",), ("CS_MODE_32",), "X86", 15),
    TargetSpec("elf64-littleaarch64", "EM_AARCH64", 64, True, _AARCH64, ("CS_MODE_ARM",), "AArch64"),
    TargetSpec(
        "elf64-bigaarch64", "EM_AARCH64", 64, False, _AARCH64,
        ("CS_MODE_ARM", "CS_MODE_BIG_ENDIAN"), "AArch64",
    ),
    TargetSpec("elf32-littlearm", "EM_ARM", 32, True, ("CS_ARCH_ARM",), ("CS_MODE_ARM",), "ARMEL"),
    TargetSpec(
        "elf32-bigarm", "EM_ARM", 32, False, ("CS_ARCH_ARM",),
        ("CS_MODE_ARM", "CS_MODE_BIG_ENDIAN"), "ARMEL",
    ),
    TargetSpec(
        "elf32-tradlittlemips", "EM_MIPS", 32, True, ("CS_ARCH_MIPS",),
        ("CS_MODE_MIPS32", "CS_MODE_LITTLE_ENDIAN"), "MIPS32",
    ),
    TargetSpec(
        "elf32-tradbigmips", "EM_MIPS", 32, False, ("CS_ARCH_MIPS",),
        ("CS_MODE_MIPS32", "CS_MODE_BIG_ENDIAN"), "MIPS32",
    ),
    TargetSpec(
        "elf64-tradlittlemips", "EM_MIPS", 64, True, ("CS_ARCH_MIPS",),
        ("CS_MODE_MIPS64", "CS_MODE_LITTLE_ENDIAN"), "MIPS64",
    ),
    TargetSpec(
        "elf32-powerpc", "EM_PPC", 32, False, ("CS_ARCH_PPC",),
        ("CS_MODE_32", "CS_MODE_BIG_ENDIAN"), "PPC32",
    ),
    TargetSpec(
        "elf64-powerpc", "EM_PPC64", 64, False, ("CS_ARCH_PPC",),
        ("CS_MODE_64", "CS_MODE_BIG_ENDIAN"), "PPC64",
    ),
    TargetSpec(
        "elf64-powerpcle", "EM_PPC64", 64, True, ("CS_ARCH_PPC",),
        ("CS_MODE_64", "CS_MODE_LITTLE_ENDIAN"), "PPC64",
    ),
)

_BY_NAME = {target.name: target for target in TARGETS}


def list_supported_targets() -> list[str]:
    return [target.name for target in TARGETS]


def find_target(name: str) -> TargetSpec | None:
    return _BY_NAME.get(name)


def detect_target(machine: str, elfclass: int, little_endian: bool) -> TargetSpec | None:
    """Pick the target matching an ELF header, or None if unsupported."""
    for target in TARGETS:
        if (
            target.machine == machine
            and target.elfclass == elfclass
            and target.little_endian == little_endian
        ):
            return target
    return None


def detect_supported_targets() -> list[str]:
    """Return the targets whose architecture the installed capstone can decode."""
    supported: list[str] = []
    for target in TARGETS:
        try:
            arch = target.capstone_arch()
        except ValueError:
            log.debug("capstone_arch_missing", target=target.name)
            continue
        if capstone.cs_support(arch):
            supported.append(target.name)
    log.debug("supported_targets_detected", supported=len(supported), known=len(TARGETS))
    return supported
