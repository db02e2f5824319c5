"""Progress display utilities for the CLI."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)

from vaultops.cli.common.output import console, truncate
from vaultops.core.association import ProgressCallback
from vaultops.core.entities import NamedEntity
from vaultops.core.transfer import TransferProgress

_MAX_NAME_WIDTH = 56


def _display_target_label(target: NamedEntity) -> str:
    """
    Render a target label for the live progress row.

    - With a name: `<name>  (uid: <uid>)`.
    - Without a name (or name equal to uid): just `<uid>`.
    """
    name = (target.name or "").strip()
    if not name or name == target.uid:
        return target.uid
    return f"{truncate(name, _MAX_NAME_WIDTH)}  (uid: {target.uid})"


@contextmanager
def resolution_progress() -> Iterator[ProgressCallback]:
    """
    Show a progress bar over the (group, container) pairs being scanned.

    Yields a callback taking (pairs_done, pairs_total).
    """
    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold]Scanning shared folders[/]"),
        BarColumn(),
        TaskProgressColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        TimeRemainingColumn(),
        console=console,
        transient=True,
    )
    task_id = progress.add_task("resolve", total=None)

    def _update(done: int, total: int) -> None:
        progress.update(task_id, completed=done, total=max(total, 1))

    with progress:
        yield _update


@contextmanager
def transfer_progress(total: int) -> Iterator[TransferProgress]:
    """
    Show overall transfer progress plus the container currently processed.

    Yields a callback taking (index, total, target).
    """
    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold]Transferring[/]"),
        BarColumn(),
        MofNCompleteColumn(),
        TextColumn("{task.fields[target]}", style="dim"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )
    task_id = progress.add_task("transfer", total=max(total, 1), target="")

    def _update(index: int, count: int, target: NamedEntity) -> None:
        progress.update(
            task_id,
            completed=index - 1,
            total=max(count, 1),
            target=_display_target_label(target),
        )

    with progress:
        yield _update
        progress.update(task_id, completed=max(total, 1))
