"""Architecture-independent reduced instruction form."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class IROp(Enum):
    BRANCH = "branch"
    CBRANCH = "cbranch"
    CALL = "call"
    RETURN = "return"
    TRAP = "trap"
    COPY = "copy"
    LOAD = "load"
    STORE = "store"
    ADDRESS = "address"
    ARITH = "arith"
    LOGIC = "logic"
    SHIFT = "shift"
    COMPARE = "compare"
    PUSH = "push"
    POP = "pop"
    NOP = "nop"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class IRInstruction:
    op: IROp
    operands: tuple[str, ...]
    address: int
    block_address: int
    mnemonic: str = ""
    vex: str = ""

    def __str__(self) -> str:
        operands = ", ".join(self.operands)
        return f"{self.address:#x}: {self.op.value} {operands}".rstrip()


def split_operands(op_str: str) -> tuple[str, ...]:
    """Split an operand string on top-level commas.

    Commas inside ``[]``, ``()`` and ``{}`` belong to a single operand,
    e.g. ``"eax, dword ptr [rbx + rcx*4]"`` or ``"x0, [x1, #8]"``.
    """
    operands: list[str] = []
    depth = 0
    current: list[str] = []
    for ch in op_str:
        if ch in "[({":
            depth += 1
        elif ch in "])}":
            depth = max(depth - 1, 0)
        if ch == "," and depth == 0:
            operands.append("".join(current).strip())
            current = []
            continue
        current.append(ch)
    tail = "".join(current).strip()
    if tail:
        operands.append(tail)
    return tuple(op for op in operands if op)
