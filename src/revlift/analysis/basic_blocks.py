"""Basic block segmentation of the per-symbol instruction stream."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from revlift.disasm.instruction import FlowKind, Instruction
from revlift.reactive import Subject
from revlift.utils.logging import get_logger

if TYPE_CHECKING:
    from revlift.image.binary_image import Symbol

log = get_logger(__name__)


@dataclass(frozen=True, eq=False)
class BasicBlock:
    address: int
    end: int
    instructions: tuple[Instruction, ...]
    symbol: Symbol | None = None

    @classmethod
    def from_instructions(cls, instructions: tuple[Instruction, ...]) -> BasicBlock:
        first, last = instructions[0], instructions[-1]
        return cls(
            address=first.address,
            end=last.next_address,
            instructions=instructions,
            symbol=first.symbol,
        )

    @property
    def size(self) -> int:
        return self.end - self.address

    @property
    def terminator(self) -> Instruction:
        return self.instructions[-1]

    def __len__(self) -> int:
        return len(self.instructions)

    def __repr__(self) -> str:
        return f"<BasicBlock {self.address:#x}-{self.end:#x} insns={len(self.instructions)}>"


class SegmentState(Enum):
    ACCUMULATING = "accumulating"
    EMIT = "emit"


class BasicBlockAggregator:
    """Groups instructions into basic blocks and publishes each completed block.

    A block ends after a control transfer, after the last instruction of its
    symbol, or right before an instruction that does not continue it (other
    symbol, gap or overlap).
    """

    def __init__(self, blocks: Subject[BasicBlock] | None = None, split_on_call: bool = True) -> None:
        if blocks is None:
            blocks = Subject("basic_blocks")
        self.blocks: Subject[BasicBlock] = blocks
        self.split_on_call = split_on_call
        self.state = SegmentState.ACCUMULATING
        self._pending: list[Instruction] = []
        self.emitted = 0

    @property
    def pending(self) -> tuple[Instruction, ...]:
        return tuple(self._pending)

    def ends_block(self, insn: Instruction) -> bool:
        if insn.flow is FlowKind.CALL:
            return self.split_on_call
        return insn.is_control_transfer

    def feed(self, insn: Instruction) -> None:
        if self._pending:
            previous = self._pending[-1]
            if insn.symbol is not previous.symbol or insn.address != previous.next_address:
                self._emit()

        self._pending.append(insn)
        if self.ends_block(insn) or insn.last_in_symbol:
            self._emit()

    __call__ = feed

    def flush(self) -> None:
        """Emit whatever is pending, e.g. after a symbol stopped on a decode failure."""
        if self._pending:
            self._emit()

    def reset(self) -> None:
        if self._pending:
            log.debug("pending_block_dropped", instructions=len(self._pending))
        self._pending = []
        self.state = SegmentState.ACCUMULATING
        self.emitted = 0

    def _emit(self) -> None:
        self.state = SegmentState.EMIT
        block = BasicBlock.from_instructions(tuple(self._pending))
        self._pending = []
        self.state = SegmentState.ACCUMULATING
        self.emitted += 1
        self.blocks.publish(block)
