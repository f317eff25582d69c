"""Per-symbol disassembly driver publishing onto the instruction stream."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator

from revlift.config.defaults import DEFAULT_OUTPUT_BUFFER_SIZE
from revlift.disasm.decoder import Decoder
from revlift.disasm.instruction import Instruction, classify_flow
from revlift.errors import DecodeFailure
from revlift.image.binary_image import BinaryImage, Section, Symbol
from revlift.image.flags import SectionFlags, SymbolFlags
from revlift.reactive import Subject
from revlift.utils.logging import get_logger

log = get_logger(__name__)

_SKIPPED_SYMBOLS = SymbolFlags.SECTION_SYM | SymbolFlags.FILE


class OutputBuffer:
    """Growable text sink for decoder output, owned by a single driver.

    Capacity doubles whenever a write would overflow and never shrinks;
    :meth:`reset` only rewinds the write position.
    """

    def __init__(self, base_size: int = DEFAULT_OUTPUT_BUFFER_SIZE) -> None:
        self._data = bytearray(base_size)
        self.pos = 0

    @property
    def capacity(self) -> int:
        return len(self._data)

    def write(self, text: str) -> int:
        encoded = text.encode("utf-8")
        end = self.pos + len(encoded)
        if end > len(self._data):
            self._grow(end)
        self._data[self.pos:end] = encoded
        self.pos = end
        return len(encoded)

    def printf(self, fmt: str, *args: object) -> int:
        return self.write(fmt % args if args else fmt)

    def _grow(self, needed: int) -> None:
        capacity = max(len(self._data), 1)
        while capacity < needed:
            capacity *= 2
        self._data.extend(bytes(capacity - len(self._data)))

    def reset(self) -> None:
        self.pos = 0

    def getvalue(self) -> str:
        return self._data[: self.pos].decode("utf-8")


@dataclass
class SymbolDisassembly:
    """Outcome of disassembling one symbol."""

    symbol: Symbol
    start: int
    end: int
    instructions: list[Instruction] = field(default_factory=list)
    failure: DecodeFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None


def code_symbols(image: BinaryImage) -> Iterator[tuple[Symbol, int, int]]:
    """Yield ``(symbol, start, end)`` for every symbol to disassemble.

    Symbols in code sections, minus section and file symbols, one per
    address in increasing order. A symbol without a size extends to the
    next symbol or the end of its section.
    """
    for section in image.real_sections:
        if not (section.has_flag(SectionFlags.CODE) and section.has_flag(SectionFlags.HAS_CONTENTS)):
            continue
        by_address: dict[int, Symbol] = {}
        for symbol in section.symbols:
            if symbol.flags & _SKIPPED_SYMBOLS:
                continue
            if not section.contains(symbol.address):
                continue
            by_address.setdefault(symbol.address, symbol)

        addresses = sorted(by_address)
        section_end = section.address + section.size
        for i, address in enumerate(addresses):
            symbol = by_address[address]
            following = addresses[i + 1] if i + 1 < len(addresses) else section_end
            end = address + symbol.size if symbol.size > 0 else following
            yield symbol, address, min(end, section_end)


class DisassemblyDriver:
    """Decodes instructions one at a time and publishes them."""

    def __init__(
        self,
        decoder: Decoder,
        instructions: Subject[Instruction] | None = None,
        buffer_size: int = DEFAULT_OUTPUT_BUFFER_SIZE,
    ) -> None:
        self._decoder = decoder
        self._output = OutputBuffer(buffer_size)
        if instructions is None:
            instructions = Subject("instructions")
        self.instructions: Subject[Instruction] = instructions

    @property
    def output(self) -> OutputBuffer:
        return self._output

    def _window(self, section: Section, address: int, end: int) -> bytes:
        content = section.content
        offset = address - section.address
        limit = min(end - section.address, len(content), offset + self._decoder.max_instruction_bytes)
        if offset < 0 or offset >= limit:
            return b""
        return content[offset:limit]

    def decode_one(
        self,
        address: int,
        section: Section,
        symbol: Symbol | None = None,
        end: int | None = None,
    ) -> Instruction:
        """Decode the single instruction at ``address`` inside ``section``."""
        if end is None:
            end = section.address + section.size
        window = self._window(section, address, end)

        self._output.reset()
        result = self._decoder.decode(address, window, self._output.printf)
        name = symbol.name if symbol is not None else ""
        if result.length <= 0:
            raise DecodeFailure(address, name, result.length)

        raw = window[: result.length]
        return Instruction(
            address=address,
            length=result.length,
            text=self._output.getvalue(),
            mnemonic=result.mnemonic,
            op_str=result.op_str,
            raw=bytes(raw),
            flow=classify_flow(result.mnemonic, result.groups),
            symbol=symbol,
            last_in_symbol=address + result.length >= end,
        )

    def disassemble_symbol(self, symbol: Symbol, start: int, end: int) -> SymbolDisassembly:
        """Publish every instruction in ``[start, end)``; stop at the first decode failure."""
        result = SymbolDisassembly(symbol=symbol, start=start, end=end)
        section = symbol.section
        if section is None:
            return result

        address = start
        while address < end:
            try:
                insn = self.decode_one(address, section, symbol, end)
            except DecodeFailure as exc:
                log.warning(
                    "decode_failed",
                    symbol=symbol.name,
                    address=address,
                    decoded=len(result.instructions),
                )
                result.failure = exc
                break
            result.instructions.append(insn)
            self.instructions.publish(insn)
            address = insn.next_address

        return result
