"""Terminal UI for picking groups and containers.

Two selectors share one interface: a checkbox grid (questionary) for
interactive terminals, and a numbered console menu for terminals where the
grid cannot render (piped stdin, legacy consoles, --console-menu).
"""

from __future__ import annotations

import sys
from typing import Protocol

import questionary
from rich.prompt import Prompt

from vaultops.cli.common.output import console, out, truncate
from vaultops.cli.common.tui_style import QUESTIONARY_STYLE_SELECT
from vaultops.core.entities import NamedEntity

_MAX_NAME_WIDTH = 72


class Selector(Protocol):
    """Capability to pick a subset of entities."""

    def choose_many(
        self, items: list[NamedEntity], message: str
    ) -> list[NamedEntity]:
        """Return the chosen items (empty if none or cancelled)."""
        ...


def _entity_choice_title(entity: NamedEntity, *, name_width: int) -> str:
    """Format one choice as `<name>  (uid: <uid>)` with aligned uid column."""
    short_name = truncate(entity.name, _MAX_NAME_WIDTH)
    return f"{short_name.ljust(name_width)}  (uid: {entity.uid})"


def parse_menu_selection(answer: str, count: int) -> list[int]:
    """
    Parse a console menu answer into zero-based indexes.

    Accepts `all`, comma/space separated numbers and ranges (`1,3-5`).
    Out-of-range numbers are ignored; order follows the list, not the answer.

    Raises:
        ValueError: If a token is not a number or range.
    """
    text = answer.strip().lower()
    if not text:
        return []
    if text in {"all", "*", "a"}:
        return list(range(count))

    picked: set[int] = set()
    for token in text.replace(",", " ").split():
        if "-" in token:
            start_s, end_s = token.split("-", 1)
            start, end = int(start_s), int(end_s)
            if start > end:
                start, end = end, start
            picked.update(range(start, end + 1))
        else:
            picked.add(int(token))
    return sorted(i - 1 for i in picked if 1 <= i <= count)


class GridSelector:
    """Checkbox grid selection."""

    def choose_many(
        self, items: list[NamedEntity], message: str
    ) -> list[NamedEntity]:
        if not items:
            return []
        shown_names = [truncate(e.name, _MAX_NAME_WIDTH) for e in items]
        name_width = max((len(name) for name in shown_names), default=0)

        choices = [
            questionary.Choice(
                title=_entity_choice_title(entity, name_width=name_width),
                value=entity,
            )
            for entity in items
        ]
        prompt = out._q_try(
            questionary.checkbox,
            out._q(message),
            choices=choices,
            style=QUESTIONARY_STYLE_SELECT,
            qmark="✦",
            instruction="Use ↑/↓, space, a (all), i (invert), enter",
            pointer="❯",
            checked_icon="▣",
            unchecked_icon="▢",
        )
        return list(prompt.ask() or [])


class ConsoleMenuSelector:
    """Numbered menu selection on plain consoles."""

    def choose_many(
        self, items: list[NamedEntity], message: str
    ) -> list[NamedEntity]:
        if not items:
            return []
        out.entities_table(items, title=message)
        while True:
            answer = Prompt.ask(
                "Numbers to select (e.g. 1,3-5), 'all', or empty for none",
                default="",
                console=console,
            )
            try:
                indexes = parse_menu_selection(answer, len(items))
            except ValueError:
                out.warn(f"Could not parse '{answer}'. Try again.")
                continue
            return [items[i] for i in indexes]


def get_selector(console_menu: bool = False) -> Selector:
    """Return the grid selector when the terminal supports it, else the menu."""
    if console_menu or not (sys.stdin.isatty() and sys.stdout.isatty()):
        return ConsoleMenuSelector()
    return GridSelector()
