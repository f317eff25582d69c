"""revlift targets / sections / symbols: inspect the object graph."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer


def _open(binary: Path, target: str, lift_vex: bool = False):
    from revlift.cli.app import get_context
    from revlift.errors import RevLiftError
    from revlift.pipeline import Pipeline
    from revlift.utils.formatters import print_error

    ctx = get_context()
    config = ctx.ensure_config()
    if lift_vex:
        config = config.model_copy(deep=True)
        config.ir.lift_vex = True
    try:
        return Pipeline.open(binary, target=target, config=config, context=ctx)
    except RevLiftError as exc:
        print_error(str(exc))
        raise typer.Exit(1) from exc


def targets_cmd() -> None:
    """List the target formats the installed decoder supports."""
    from revlift.cli.app import get_context

    for name in get_context().ensure_initialized():
        typer.echo(name)


def sections_cmd(
    binary: Path = typer.Argument(..., help="Path to ELF binary"),
    target: str = typer.Option("", "--target", "-t", help="Target format, detected if omitted"),
) -> None:
    """List sections, pseudo-sections first."""
    from revlift.utils.formatters import flag_names, hex_address, print_table

    pipeline = _open(binary, target)
    rows = []
    for ref in pipeline.list_sections():
        section = ref()
        if section is None:
            continue
        rows.append(
            {
                "idx": section.index,
                "name": section.name,
                "address": hex_address(section.address),
                "size": f"{section.size:#x}",
                "symbols": len(section.symbols),
                "flags": flag_names(section.flags),
            }
        )
    print_table(rows, title=f"{pipeline.image.name} ({pipeline.image.target})")


def symbols_cmd(
    binary: Path = typer.Argument(..., help="Path to ELF binary"),
    target: str = typer.Option("", "--target", "-t", help="Target format, detected if omitted"),
    section: Optional[str] = typer.Option(None, "--section", "-s", help="Only symbols in this section"),
) -> None:
    """List symbols with their owning section."""
    from revlift.utils.formatters import flag_names, hex_address, print_table

    pipeline = _open(binary, target)
    rows = []
    for ref in pipeline.list_symbols():
        symbol = ref()
        if symbol is None or symbol.section is None:
            continue
        if section is not None and symbol.section.name != section:
            continue
        rows.append(
            {
                "name": symbol.name,
                "address": hex_address(symbol.address),
                "size": symbol.size,
                "section": symbol.section.name,
                "flags": flag_names(symbol.flags),
            }
        )
    print_table(rows, title=f"{pipeline.image.name} symbols")
