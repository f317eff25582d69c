"""Top-level orchestration: image → instructions → basic blocks → IR."""

from __future__ import annotations

import weakref
from dataclasses import dataclass, field
from pathlib import Path

from revlift import RevLiftContext
from revlift.analysis.basic_blocks import BasicBlock, BasicBlockAggregator
from revlift.config.models import RevLiftConfig
from revlift.disasm.decoder import CapstoneDecoder, Decoder
from revlift.disasm.driver import DisassemblyDriver, SymbolDisassembly, code_symbols
from revlift.disasm.instruction import Instruction
from revlift.errors import DecodeFailure, OpenFailure
from revlift.image.binary_image import BinaryImage, Section, Symbol
from revlift.image.elf_backend import open_image
from revlift.ir.model import IRInstruction
from revlift.ir.synthesizer import IRSynthesizer
from revlift.reactive import Handler, Subject, Subscription, SubscriptionSlot
from revlift.utils.logging import get_logger

log = get_logger(__name__)

_default_context = RevLiftContext()


@dataclass
class DisassemblyReport:
    symbols: int = 0
    instructions: int = 0
    failures: list[DecodeFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def add(self, result: SymbolDisassembly) -> None:
        self.symbols += 1
        self.instructions += len(result.instructions)
        if result.failure is not None:
            self.failures.append(result.failure)


def list_supported_targets(context: RevLiftContext | None = None) -> list[str]:
    """Targets the installed decoder can handle."""
    return list((context or _default_context).ensure_initialized())


class Pipeline:
    """Drives one binary image through disassembly, segmentation and IR synthesis.

    Outputs are pushed synchronously to subscribers of the instruction,
    symbol, basic block and IR streams while the ``run_*`` methods execute.
    """

    def __init__(
        self,
        image: BinaryImage,
        config: RevLiftConfig | None = None,
        decoder: Decoder | None = None,
    ) -> None:
        self.image = image
        self.config = config or RevLiftConfig()

        if decoder is None:
            if image.target_spec is None:
                raise OpenFailure(str(image.path), "no decoder available for this target")
            decoder = CapstoneDecoder(
                image.target_spec,
                syntax=self.config.disassembly.syntax,
                detail=self.config.disassembly.detail,
            )

        self._instructions: Subject[Instruction] = Subject("instructions")
        self._symbols: Subject[SymbolDisassembly] = Subject("symbols")
        self._blocks: Subject[BasicBlock] = Subject("basic_blocks")
        self._ir: Subject[IRInstruction] = Subject("ir")

        self._driver = DisassemblyDriver(
            decoder,
            self._instructions,
            buffer_size=self.config.disassembly.output_buffer_size,
        )
        self._aggregator = BasicBlockAggregator(
            self._blocks,
            split_on_call=self.config.segmentation.split_on_call,
        )
        self._synthesizer = IRSynthesizer(
            self._ir,
            lift_vex=self.config.ir.lift_vex,
            target=image.target_spec,
        )

        # One forwarding subscription per stage; re-running replaces it.
        self._block_forwarding: SubscriptionSlot[Instruction] = SubscriptionSlot()
        self._ir_forwarding: SubscriptionSlot[BasicBlock] = SubscriptionSlot()

        self._section_refs: list[weakref.ReferenceType[Section]] | None = None
        self._symbol_refs: list[weakref.ReferenceType[Symbol]] | None = None

    @classmethod
    def open(
        cls,
        path: str | Path,
        target: str = "",
        config: RevLiftConfig | None = None,
        context: RevLiftContext | None = None,
    ) -> Pipeline:
        """Open a binary; raises :class:`OpenFailure` or a :class:`FormatError`."""
        context = context or _default_context
        supported = context.ensure_initialized()
        if target and target not in supported:
            raise OpenFailure(str(path), f"unrecognised target {target!r}")
        image = open_image(path, target)
        if image.target not in supported:
            raise OpenFailure(str(path), f"decoder does not support {image.target}")
        return cls(image, config=config or context.config)

    list_supported_targets = staticmethod(list_supported_targets)

    # -- streams --

    def subscribe_instructions(self, handler: Handler[Instruction]) -> Subscription[Instruction]:
        return self._instructions.subscribe(handler)

    def subscribe_symbols(self, handler: Handler[SymbolDisassembly]) -> Subscription[SymbolDisassembly]:
        return self._symbols.subscribe(handler)

    def subscribe_basic_blocks(self, handler: Handler[BasicBlock]) -> Subscription[BasicBlock]:
        return self._blocks.subscribe(handler)

    def subscribe_ir(self, handler: Handler[IRInstruction]) -> Subscription[IRInstruction]:
        return self._ir.subscribe(handler)

    @property
    def driver(self) -> DisassemblyDriver:
        return self._driver

    # -- stages --

    def run_disassembly(self) -> DisassemblyReport:
        """Decode every code symbol, publishing instructions as they are decoded."""
        report = DisassemblyReport()
        segmenting = self._block_forwarding.current is not None
        for symbol, start, end in code_symbols(self.image):
            result = self._driver.disassemble_symbol(symbol, start, end)
            if segmenting:
                self._aggregator.flush()
            report.add(result)
            self._symbols.publish(result)

        log.info(
            "disassembly_finished",
            image=self.image.name,
            symbols=report.symbols,
            instructions=report.instructions,
            failures=len(report.failures),
        )
        return report

    def run_block_segmentation(self) -> DisassemblyReport:
        """(Re)install block forwarding from the instruction stream, then disassemble."""
        self._aggregator.reset()
        self._block_forwarding.replace(self._instructions, self._aggregator.feed)
        report = self.run_disassembly()
        log.info("segmentation_finished", image=self.image.name, blocks=self._aggregator.emitted)
        return report

    def run_ir_synthesis(self) -> DisassemblyReport:
        """(Re)install IR forwarding from the block stream, then segment."""
        self._ir_forwarding.replace(self._blocks, self._synthesizer.consume)
        report = self.run_block_segmentation()
        log.info("ir_synthesis_finished", image=self.image.name, ir=self._synthesizer.emitted)
        return report

    # -- object graph --

    def list_sections(self) -> list[weakref.ReferenceType[Section]]:
        """Weak references to every section, pseudo-sections first.

        Repeated calls return the same references in the same order.
        """
        if self._section_refs is None:
            self._section_refs = [weakref.ref(section) for section in self.image.sections]
        return list(self._section_refs)

    def list_symbols(self) -> list[weakref.ReferenceType[Symbol]]:
        """Weak references to every symbol, grouped by section.

        Repeated calls return the same references in the same order.
        """
        if self._symbol_refs is None:
            self._symbol_refs = [weakref.ref(symbol) for symbol in self.image.iter_symbols()]
        return list(self._symbol_refs)

    def close(self) -> None:
        self._block_forwarding.clear()
        self._ir_forwarding.clear()

    def __enter__(self) -> Pipeline:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def open_binary(
    path: str | Path, target: str = "", config: RevLiftConfig | None = None
) -> Pipeline:
    return Pipeline.open(path, target=target, config=config)
