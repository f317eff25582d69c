"""Rich progress tracking for pipeline runs."""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Generator

from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from revlift.utils.formatters import err_console

if TYPE_CHECKING:
    from revlift.pipeline import Pipeline


def create_progress() -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=err_console,
        transient=True,
    )


@contextmanager
def symbol_progress(pipeline: Pipeline, total: int) -> Generator[Progress, None, None]:
    """Advance a progress bar each time the pipeline finishes a symbol."""
    progress = create_progress()
    with progress:
        task_id = progress.add_task("Disassembling", total=total)

        def _advance(result) -> None:
            progress.update(task_id, advance=1, description=result.symbol.name or "Disassembling")

        subscription = pipeline.subscribe_symbols(_advance)
        try:
            yield progress
        finally:
            subscription.unsubscribe()
