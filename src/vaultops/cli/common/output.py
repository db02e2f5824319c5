"""Output formatting and logging setup for the CLI."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

import questionary
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.theme import Theme

from vaultops.cli.common.tui_style import (
    QUESTIONARY_STYLE_CONFIRM,
    QUESTIONARY_STYLE_SELECT,
)

_THEME = Theme(
    {
        "ok": "bold green",
        "warn": "yellow",
        "err": "bold red",
        "title": "bold cyan",
        "meta": "dim",
    }
)

console = Console(theme=_THEME)


def truncate(text: str, max_len: int) -> str:
    """Return text capped at max_len characters using an ASCII ellipsis."""
    if max_len <= 3 or len(text) <= max_len:
        return text[:max_len]
    return f"{text[: max_len - 3]}..."


def setup_logging(verbose: bool = False) -> None:
    """Route `logging` through Rich on the shared console."""
    handler = RichHandler(
        console=console,
        show_time=verbose,
        show_path=False,
        markup=False,
        rich_tracebacks=verbose,
    )
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[handler],
        force=True,
    )


@dataclass(frozen=True)
class Out:
    """Output formatter for CLI messages and tables."""

    def _q_try(self, fn, *args, **kwargs):
        """Call questionary prompts and drop unsupported kwargs on older versions."""
        try:
            return fn(*args, **kwargs)
        except TypeError:
            for k in ("pointer", "checked_icon", "unchecked_icon", "auto_enter"):
                kwargs.pop(k, None)
            return fn(*args, **kwargs)

    def _q(self, message: str) -> str:
        """Prefix Questionary prompts to be VAULT-OPS consistent."""
        return f"[VAULT-OPS] {message}"

    def info(self, msg: str) -> None:
        """Print an info message."""
        console.print(f"[title]›[/] {msg}")

    @contextmanager
    def status(self, msg: str):
        """Show a transient status spinner while work is in progress."""
        with console.status(msg, spinner="dots"):
            yield

    def success(self, msg: str) -> None:
        """Print a success message."""
        console.print(f"[ok]✓[/] {msg}")

    def warn(self, msg: str) -> None:
        """Print a warning message."""
        console.print(f"[warn]⚠[/] {msg}")

    def error(self, msg: str) -> None:
        """Print an error message."""
        console.print(f"[err]✗[/] {msg}")

    def header(self, title: str) -> None:
        """Print a header message."""
        console.print(f"[title]{title}[/]")

    def kv(self, items: Mapping[str, Any]) -> None:
        """Print key-value pairs."""
        for k, v in items.items():
            console.print(f"[meta]{k}[/]: {v}")

    def select_one(self, message: str, choices: list[str]) -> str | None:
        """
        Prompt the user to select a single item from a list (radio list).

        Returns:
            The selected value, or None if cancelled.
        """
        if not choices:
            return None

        prompt = self._q_try(
            questionary.select,
            self._q(message),
            choices=choices,
            style=QUESTIONARY_STYLE_SELECT,
            qmark="✦",
            instruction="Use ↑/↓ then Enter",
            pointer="❯",
        )
        return prompt.ask()

    def ask(self, message: str, *, default: str = "") -> str | None:
        """Prompt for a line of text; None if cancelled."""
        prompt = questionary.text(
            self._q(message),
            default=default,
            style=QUESTIONARY_STYLE_SELECT,
            qmark="✦",
        )
        return prompt.ask()

    def confirm(self, message: str, *, default: bool = False) -> bool:
        """
        Ask the user for confirmation using a standardized Questionary prompt.

        Args:
            message: Confirmation question shown to the user.
            default: Default answer if the user just presses enter.

        Returns:
            True if the user confirms, False otherwise.
        """
        # Questionary renders `instruction=...` inline next to the echoed answer
        console.print("[meta]Use y/n then Enter[/]")

        prompt = self._q_try(
            questionary.confirm,
            self._q(message),
            default=default,
            style=QUESTIONARY_STYLE_CONFIRM,
            qmark="✦",
            auto_enter=False,
        )
        return bool(prompt.ask())

    def entities_table(
        self, entities: Iterable[Any], title: str = "Containers", kind: str = "Name"
    ) -> None:
        """
        Expects objects with .name and .uid (like vaultops.core.entities.NamedEntity)
        """
        t = Table(title=title, show_lines=False)
        t.add_column("#", style="meta", justify="right")
        t.add_column(kind)
        t.add_column("UID", style="ok", no_wrap=True)

        for i, e in enumerate(entities, start=1):
            t.add_row(str(i), e.name, e.uid)

        console.print(t)

    def association_table(
        self,
        groups: Iterable[Any],
        associations: Mapping[str, list[str]],
        title: str = "Group associations",
    ) -> None:
        """Render per-group container counts from a resolver association map."""
        t = Table(title=title, show_lines=False)
        t.add_column("Group")
        t.add_column("UID", style="meta", no_wrap=True)
        t.add_column("Containers", style="ok", justify="right")

        for g in groups:
            t.add_row(g.name, g.uid, str(len(associations.get(g.uid, []))))

        console.print(t)

    def transfer_results_table(
        self, outcomes: Iterable[Any], title: str = "Transfer results"
    ) -> None:
        """
        Render per-container transfer outcomes.

        Expects objects with .name .uid .grant_ok .grant_skipped .ownership_ok
        .noop and optional .grant_error / .ownership_error
        (like vaultops.core.entities.TransferOutcome).
        """
        t = Table(title=title, show_lines=False)
        t.add_column("Container")
        t.add_column("UID", style="meta", no_wrap=True)
        t.add_column("Admin grant")
        t.add_column("Ownership")
        t.add_column("Error", style="err")

        for o in outcomes:
            if getattr(o, "grant_skipped", False):
                grant = "[meta]skipped[/]"
            else:
                grant = "[ok]OK[/]" if o.grant_ok else "[err]FAIL[/]"
            owner = "[ok]OK[/]" if o.ownership_ok else "[err]FAIL[/]"
            if getattr(o, "noop", False):
                owner = "[ok]OK[/] [meta](unchanged)[/]"
            errors = [e for e in (o.grant_error, o.ownership_error) if e]
            t.add_row(o.name, o.uid, grant, owner, "; ".join(errors))

        console.print(t)


out = Out()
