"""revlift disasm / blocks / ir: run the pipeline and print its streams."""

from __future__ import annotations

from pathlib import Path

import typer

from revlift.cli.inspect import _open


def _run(pipeline, stage: str):
    from revlift.disasm.driver import code_symbols
    from revlift.utils.formatters import print_warning
    from revlift.utils.progress import symbol_progress

    total = sum(1 for _ in code_symbols(pipeline.image))
    with symbol_progress(pipeline, total):
        if stage == "disasm":
            report = pipeline.run_disassembly()
        elif stage == "blocks":
            report = pipeline.run_block_segmentation()
        else:
            report = pipeline.run_ir_synthesis()

    for failure in report.failures:
        print_warning(str(failure))
    return report


def disasm_cmd(
    binary: Path = typer.Argument(..., help="Path to ELF binary"),
    target: str = typer.Option("", "--target", "-t", help="Target format, detected if omitted"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a listing"),
) -> None:
    """Disassemble every code symbol."""
    from revlift.utils.formatters import print_json, print_listing

    pipeline = _open(binary, target)
    listings: dict[str, list] = {}
    pipeline.subscribe_symbols(
        lambda result: listings.setdefault(result.symbol.name, []).extend(result.instructions)
    )
    _run(pipeline, "disasm")

    if as_json:
        print_json(
            {
                name: [
                    {"address": i.address, "length": i.length, "text": i.text, "bytes": i.raw.hex()}
                    for i in insns
                ]
                for name, insns in listings.items()
            }
        )
        return
    for name, insns in listings.items():
        print_listing(f"<{name}>", [f"{i.address:#x}: {i.raw.hex():<20} {i.text}" for i in insns])


def blocks_cmd(
    binary: Path = typer.Argument(..., help="Path to ELF binary"),
    target: str = typer.Option("", "--target", "-t", help="Target format, detected if omitted"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a listing"),
) -> None:
    """Split every code symbol into basic blocks."""
    from revlift.utils.formatters import print_json, print_listing

    pipeline = _open(binary, target)
    blocks = []
    pipeline.subscribe_basic_blocks(blocks.append)
    _run(pipeline, "blocks")

    if as_json:
        print_json(
            [
                {
                    "symbol": b.symbol.name if b.symbol is not None else "",
                    "address": b.address,
                    "end": b.end,
                    "instructions": [i.text for i in b.instructions],
                }
                for b in blocks
            ]
        )
        return
    for block in blocks:
        owner = block.symbol.name if block.symbol is not None else "?"
        print_listing(
            f"{owner} block {block.address:#x}-{block.end:#x}",
            [str(i) for i in block.instructions],
        )


def ir_cmd(
    binary: Path = typer.Argument(..., help="Path to ELF binary"),
    target: str = typer.Option("", "--target", "-t", help="Target format, detected if omitted"),
    vex: bool = typer.Option(False, "--vex/--no-vex", help="Attach VEX IR (needs pyvex)"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a listing"),
) -> None:
    """Lift every basic block to IR."""
    from revlift.utils.formatters import print_json, print_listing

    pipeline = _open(binary, target, lift_vex=vex)
    ir = []
    pipeline.subscribe_ir(ir.append)
    _run(pipeline, "ir")

    if as_json:
        print_json(
            [
                {
                    "address": i.address,
                    "block": i.block_address,
                    "op": i.op.value,
                    "operands": list(i.operands),
                    "vex": i.vex,
                }
                for i in ir
            ]
        )
        return
    lines = []
    for insn in ir:
        lines.append(str(insn))
        lines.extend(f"    {stmt}" for stmt in insn.vex.splitlines())
    print_listing(f"{pipeline.image.name} IR", lines)
