"""Root Typer application with subcommand registration."""

from __future__ import annotations

from typing import Optional

import typer

from revlift import RevLiftContext, __version__

app = typer.Typer(
    name="revlift",
    help="RevLift — lift binaries to basic blocks and IR",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Shared state across commands
_ctx = RevLiftContext()


def get_context() -> RevLiftContext:
    return _ctx


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"revlift {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    config: Optional[str] = typer.Option(None, "--config", "-C", help="Path to revlift.yaml"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit logs as JSON lines"),
    version: Optional[bool] = typer.Option(
        None, "--version", "-V", callback=_version_callback, is_eager=True
    ),
) -> None:
    """RevLift — lift binaries to basic blocks and IR."""
    from revlift.config.loader import load_config
    from revlift.errors import ConfigError
    from revlift.utils.formatters import print_error
    from revlift.utils.logging import setup_logging_from_config

    try:
        _ctx.config = load_config(config)
    except ConfigError as exc:
        print_error(str(exc))
        raise typer.Exit(1) from exc
    if json_logs:
        _ctx.config.logging.json_output = True
    setup_logging_from_config(_ctx.config.logging, verbose=verbose)


# -- Subcommand registration --
from revlift.cli.inspect import sections_cmd, symbols_cmd, targets_cmd  # noqa: E402
from revlift.cli.lift import blocks_cmd, disasm_cmd, ir_cmd  # noqa: E402

app.command(name="targets")(targets_cmd)
app.command(name="sections")(sections_cmd)
app.command(name="symbols")(symbols_cmd)
app.command(name="disasm")(disasm_cmd)
app.command(name="blocks")(blocks_cmd)
app.command(name="ir")(ir_cmd)
