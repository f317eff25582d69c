"""Turn completed basic blocks into IR instructions, one per decoded instruction."""

from __future__ import annotations

from typing import TYPE_CHECKING

from revlift.disasm.instruction import FlowKind, Instruction
from revlift.ir.model import IRInstruction, IROp, split_operands
from revlift.ir.vex_lifter import lift_instruction
from revlift.reactive import Subject
from revlift.utils.logging import get_logger

if TYPE_CHECKING:
    from revlift.analysis.basic_blocks import BasicBlock
    from revlift.image.targets import TargetSpec

log = get_logger(__name__)

_FLOW_OPS = {
    FlowKind.JUMP: IROp.BRANCH,
    FlowKind.CONDITIONAL_JUMP: IROp.CBRANCH,
    FlowKind.CALL: IROp.CALL,
    FlowKind.RETURN: IROp.RETURN,
    FlowKind.INTERRUPT: IROp.TRAP,
}

_MNEMONIC_FAMILIES: dict[IROp, frozenset[str]] = {
    IROp.NOP: frozenset({"nop", "endbr64", "endbr32", "pause", "hint"}),
    IROp.PUSH: frozenset({"push", "pushq", "pushl", "stp", "stmdb"}),
    IROp.POP: frozenset({"pop", "popq", "popl", "ldp", "ldmia", "leave"}),
    IROp.ADDRESS: frozenset({"lea", "adr", "adrp", "lui", "la"}),
    IROp.COMPARE: frozenset({"cmp", "test", "cmn", "tst", "teq", "slt", "sltu", "slti", "cmpw", "cmpd"}),
    IROp.LOAD: frozenset({"ldr", "ldrb", "ldrh", "ldrsw", "ldur", "lw", "lb", "lbu", "lh", "lhu", "ld", "lwz", "lbz"}),
    IROp.STORE: frozenset({"str", "strb", "strh", "stur", "sw", "sb", "sh", "sd", "stw", "stb", "std"}),
    IROp.ARITH: frozenset({
        "add", "sub", "imul", "mul", "div", "idiv", "inc", "dec", "neg",
        "adc", "sbb", "xadd", "adds", "subs", "madd", "msub", "sdiv", "udiv",
        "addi", "addiu", "addu", "subu", "mult", "multu",
    }),
    IROp.LOGIC: frozenset({
        "and", "or", "xor", "not", "ands", "orr", "eor", "bic", "mvn",
        "andi", "ori", "xori", "nor",
    }),
    IROp.SHIFT: frozenset({
        "shl", "shr", "sal", "sar", "rol", "ror", "rcl", "rcr",
        "lsl", "lsr", "asr", "sll", "srl", "sra", "sllv", "srlv",
    }),
    IROp.COPY: frozenset({
        "mov", "movabs", "movzx", "movsx", "movsxd", "movq", "movl", "movd",
        "movz", "movk", "movn", "move", "li", "mr", "xchg",
    }),
}

_MNEMONIC_OPS = {
    mnemonic: op for op, mnemonics in _MNEMONIC_FAMILIES.items() for mnemonic in mnemonics
}


def classify_op(insn: Instruction) -> IROp:
    flow_op = _FLOW_OPS.get(insn.flow)
    if flow_op is not None:
        return flow_op
    mnemonic = insn.mnemonic.lower()
    op = _MNEMONIC_OPS.get(mnemonic)
    if op is not None:
        return op
    # x86 conditional moves and AT&T size suffixes (movl, addq, ...)
    if mnemonic.startswith("cmov"):
        return IROp.COPY
    if len(mnemonic) > 1 and mnemonic[-1] in "bwlq" and mnemonic[:-1] in _MNEMONIC_OPS:
        return _MNEMONIC_OPS[mnemonic[:-1]]
    return IROp.UNKNOWN


class IRSynthesizer:
    """Consumes basic blocks and publishes their IR, preserving order."""

    def __init__(
        self,
        ir: Subject[IRInstruction] | None = None,
        lift_vex: bool = False,
        target: TargetSpec | None = None,
    ) -> None:
        if ir is None:
            ir = Subject("ir")
        self.ir: Subject[IRInstruction] = ir
        self.lift_vex = lift_vex
        self.target = target
        self.emitted = 0

    def translate(self, insn: Instruction, block_address: int) -> IRInstruction:
        vex = ""
        if self.lift_vex and self.target is not None:
            vex = lift_instruction(
                insn.raw,
                insn.address,
                self.target.vex_arch,
                self.target.little_endian,
            )
        return IRInstruction(
            op=classify_op(insn),
            operands=split_operands(insn.op_str),
            address=insn.address,
            block_address=block_address,
            mnemonic=insn.mnemonic,
            vex=vex,
        )

    def consume(self, block: BasicBlock) -> None:
        for insn in block.instructions:
            self.emitted += 1
            self.ir.publish(self.translate(insn, block.address))

    __call__ = consume
