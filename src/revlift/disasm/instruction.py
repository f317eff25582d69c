"""Decoded instruction record and control-flow classification."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Iterable

from capstone import CS_GRP_CALL, CS_GRP_INT, CS_GRP_IRET, CS_GRP_JUMP, CS_GRP_RET

if TYPE_CHECKING:
    from revlift.image.binary_image import Symbol


class FlowKind(Enum):
    SEQUENTIAL = "sequential"
    JUMP = "jump"
    CONDITIONAL_JUMP = "conditional_jump"
    CALL = "call"
    RETURN = "return"
    INTERRUPT = "interrupt"


_RETURN_GROUPS = {CS_GRP_RET, CS_GRP_IRET}

_UNCONDITIONAL_JUMPS = {
    # x86
    "jmp", "jmpq", "ljmp",
    # arm / aarch64
    "b", "br", "bx",
    # mips
    "j", "jr",
    # ppc
    "ba", "bctr",
}

_CONDITIONAL_JUMPS = {
    "je", "jne", "jz", "jnz", "jg", "jge", "jl", "jle",
    "ja", "jae", "jb", "jbe", "jo", "jno", "js", "jns",
    "jp", "jnp", "jpe", "jpo", "jcxz", "jecxz", "jrcxz",
    "loop", "loope", "loopne", "loopz", "loopnz",
    "cbz", "cbnz", "tbz", "tbnz",
    "beq", "bne", "bge", "bgt", "ble", "blt", "bhs", "bcs", "blo", "bcc",
    "bvs", "bvc", "bmi", "bpl", "bhi", "bls",
    "beqz", "bnez", "bgez", "bgtz", "blez", "bltz",
}

_CALLS = {"call", "callq", "lcall", "bl", "blr", "blx", "jal", "jalr", "bctrl"}

_RETURNS = {"ret", "retq", "retf", "retn", "iret", "iretd", "iretq", "eret"}

_INTERRUPTS = {"int", "int3", "into", "syscall", "sysenter", "svc", "hlt", "ud2"}


def classify_flow(mnemonic: str, groups: Iterable[int] = ()) -> FlowKind:
    """Classify an instruction by its capstone groups, falling back to its mnemonic."""
    groups = set(groups)
    mnemonic = mnemonic.lower()

    if groups & _RETURN_GROUPS:
        return FlowKind.RETURN
    if CS_GRP_CALL in groups:
        return FlowKind.CALL
    if CS_GRP_INT in groups:
        return FlowKind.INTERRUPT
    if CS_GRP_JUMP in groups:
        if mnemonic in _UNCONDITIONAL_JUMPS:
            return FlowKind.JUMP
        return FlowKind.CONDITIONAL_JUMP

    if mnemonic in _RETURNS:
        return FlowKind.RETURN
    if mnemonic in _CALLS:
        return FlowKind.CALL
    if mnemonic in _INTERRUPTS:
        return FlowKind.INTERRUPT
    if mnemonic in _CONDITIONAL_JUMPS or mnemonic.startswith("b."):
        return FlowKind.CONDITIONAL_JUMP
    if mnemonic in _UNCONDITIONAL_JUMPS:
        return FlowKind.JUMP
    return FlowKind.SEQUENTIAL


@dataclass(frozen=True, eq=False)
class Instruction:
    address: int
    length: int
    text: str
    mnemonic: str
    op_str: str
    raw: bytes
    flow: FlowKind
    symbol: Symbol | None = field(default=None, repr=False)
    last_in_symbol: bool = False

    @property
    def next_address(self) -> int:
        return self.address + self.length

    @property
    def is_control_transfer(self) -> bool:
        return self.flow is not FlowKind.SEQUENTIAL

    def __str__(self) -> str:
        return f"{self.address:#x}: {self.text}"
