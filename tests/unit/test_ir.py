"""Tests for IR synthesis from basic blocks."""

import pytest

from revlift.analysis.basic_blocks import BasicBlock
from revlift.disasm.instruction import Instruction, classify_flow
from revlift.ir.model import IROp, split_operands
from revlift.ir.synthesizer import IRSynthesizer, classify_op
from revlift.ir.vex_lifter import lift_instruction
from revlift.reactive import Subject


def _insn(address, mnemonic, op_str="", length=1):
    return Instruction(
        address=address,
        length=length,
        text=f"{mnemonic}\t{op_str}" if op_str else mnemonic,
        mnemonic=mnemonic,
        op_str=op_str,
        raw=b"\x90" * length,
        flow=classify_flow(mnemonic),
    )


@pytest.mark.parametrize(
    "op_str,expected",
    [
        ("", ()),
        ("rax", ("rax",)),
        ("rbp, rsp", ("rbp", "rsp")),
        ("eax, dword ptr [rbx + rcx*4 + 8]", ("eax", "dword ptr [rbx + rcx*4 + 8]")),
        ("x0, [x1, #8]", ("x0", "[x1, #8]")),
        ("%eax, 0x10(%rbx,%rcx,4)", ("%eax", "0x10(%rbx,%rcx,4)")),
        ("{r4, r5, lr}", ("{r4, r5, lr}",)),
    ],
)
def test_split_operands(op_str, expected):
    assert split_operands(op_str) == expected


@pytest.mark.parametrize(
    "mnemonic,expected",
    [
        ("jmp", IROp.BRANCH),
        ("jne", IROp.CBRANCH),
        ("b.eq", IROp.CBRANCH),
        ("call", IROp.CALL),
        ("bl", IROp.CALL),
        ("ret", IROp.RETURN),
        ("syscall", IROp.TRAP),
        ("mov", IROp.COPY),
        ("cmovne", IROp.COPY),
        ("movl", IROp.COPY),
        ("addq", IROp.ARITH),
        ("lea", IROp.ADDRESS),
        ("xor", IROp.LOGIC),
        ("shl", IROp.SHIFT),
        ("cmp", IROp.COMPARE),
        ("push", IROp.PUSH),
        ("pop", IROp.POP),
        ("ldr", IROp.LOAD),
        ("str", IROp.STORE),
        ("nop", IROp.NOP),
        ("vpshufb", IROp.UNKNOWN),
    ],
)
def test_classify_op(mnemonic, expected):
    assert classify_op(_insn(0, mnemonic)) is expected


def test_translate_keeps_address_and_operands():
    synth = IRSynthesizer()
    ir = synth.translate(_insn(0x1002, "mov", "rbp, rsp", 3), block_address=0x1000)
    assert ir.op is IROp.COPY
    assert ir.operands == ("rbp", "rsp")
    assert ir.address == 0x1002
    assert ir.block_address == 0x1000
    assert ir.vex == ""
    assert str(ir) == "0x1002: copy rbp, rsp"


def test_consume_preserves_block_order():
    stream = Subject("ir")
    seen = []
    stream.subscribe(seen.append)
    synth = IRSynthesizer(stream)

    first = BasicBlock.from_instructions((_insn(0x0, "push", "rbp"), _insn(0x1, "jmp", "0x10", 2)))
    second = BasicBlock.from_instructions((_insn(0x10, "pop", "rbp"), _insn(0x11, "ret")))
    synth(first)
    synth(second)

    assert [(i.address, i.op) for i in seen] == [
        (0x0, IROp.PUSH),
        (0x1, IROp.BRANCH),
        (0x10, IROp.POP),
        (0x11, IROp.RETURN),
    ]
    assert [i.block_address for i in seen] == [0x0, 0x0, 0x10, 0x10]
    assert synth.emitted == 4


def test_lift_vex_without_target_is_skipped():
    synth = IRSynthesizer(lift_vex=True)
    assert synth.translate(_insn(0x0, "nop"), 0x0).vex == ""


def test_lift_instruction_unknown_arch():
    assert lift_instruction(b"\x90", 0x1000, arch_name="") == ""
    assert lift_instruction(b"", 0x1000) == ""


def test_lift_instruction_with_pyvex():
    pytest.importorskip("pyvex")
    vex = lift_instruction(b"\x48\x89\xe5", 0x1000, "AMD64")
    assert "PUT" in vex or "IMark" in vex
