"""Single-instruction decoding on top of capstone."""

from __future__ import annotations

from typing import Callable, NamedTuple, Protocol

from capstone import CS_OPT_SYNTAX_ATT, CS_OPT_SYNTAX_INTEL, Cs, CsError

from revlift.image.targets import TargetSpec
from revlift.utils.logging import get_logger

log = get_logger(__name__)

Printer = Callable[..., int]


class DecodeResult(NamedTuple):
    length: int
    mnemonic: str = ""
    op_str: str = ""
    groups: tuple[int, ...] = ()


class Decoder(Protocol):
    max_instruction_bytes: int

    def decode(self, address: int, window: bytes, printer: Printer) -> DecodeResult:
        """Decode one instruction at ``address`` from ``window``.

        The rendered text goes through ``printer(fmt, *args)``; a
        non-positive ``length`` means nothing could be decoded.
        """


class CapstoneDecoder:
    """Decodes exactly one instruction per call for a given target."""

    def __init__(self, target: TargetSpec, syntax: str = "intel", detail: bool = True) -> None:
        self.target = target
        self.max_instruction_bytes = target.max_instruction_bytes
        self._md = Cs(target.capstone_arch(), target.capstone_mode())
        self._md.detail = detail
        if target.is_x86:
            self._md.syntax = CS_OPT_SYNTAX_ATT if syntax == "att" else CS_OPT_SYNTAX_INTEL

    def decode(self, address: int, window: bytes, printer: Printer) -> DecodeResult:
        if not window:
            return DecodeResult(length=0)
        try:
            insn = next(self._md.disasm(bytes(window), address, count=1), None)
        except CsError as exc:
            log.debug("capstone_error", address=address, error=str(exc))
            return DecodeResult(length=0)
        if insn is None:
            return DecodeResult(length=0)

        if insn.op_str:
            printer("%s\t%s", insn.mnemonic, insn.op_str)
        else:
            printer("%s", insn.mnemonic)

        groups = tuple(insn.groups) if self._md.detail else ()
        return DecodeResult(
            length=insn.size,
            mnemonic=insn.mnemonic,
            op_str=insn.op_str,
            groups=groups,
        )
