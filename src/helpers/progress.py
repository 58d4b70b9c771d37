"""Rich progress bar for block back-fills."""

from __future__ import annotations

from contextlib import contextmanager

from typing import TYPE_CHECKING

from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)


if TYPE_CHECKING:
    from collections.abc import Iterator

    from rich.console import Console


def create_block_progress(console: Console | None = None) -> Progress:
    """Progress bar showing fetched blocks out of the total and time left.

    Without a console the bar is disabled, so a watchdog running as a
    daemon only writes log lines.
    """
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TextColumn("blocks"),
        TimeElapsedColumn(),
        TimeRemainingColumn(),
        console=console,
        disable=console is None,
        transient=True,
    )


@contextmanager
def track_progress(
    description: str,
    total: int,
    console: Console | None = None,
) -> Iterator[tuple[Progress, TaskID]]:
    """Run a block progress bar for the duration of the ``with`` block.

    Args:
        description: Task description to display
        total: Number of blocks to fetch
        console: Rich console instance (optional)

    Yields:
        Tuple of (Progress instance, TaskID) for updating progress

    Example:
        ```python
        from src.helpers.progress import track_progress

        with track_progress("Back-filling blocks", total=300, console=console) as (
            progress,
            task,
        ):
            for number in numbers:
                ...
                progress.update(task, advance=1)
        ```
    """
    with create_block_progress(console) as progress:
        yield progress, progress.add_task(description, total=total)


__all__ = [
    "create_block_progress",
    "track_progress",
]
