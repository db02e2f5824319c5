"""Questionary / prompt_toolkit theme for VAULT-OPS prompts.

One central style keeps every interactive prompt (select, checkbox, confirm,
text) visually consistent. Confirmations use a warning colour because they
guard mutating operations.
"""

from __future__ import annotations

from prompt_toolkit.styles import Style

QUESTIONARY_STYLE_SELECT = Style.from_dict(
    {
        "qmark": "bold ansicyan",
        "question": "bold ansibrightcyan",
        "answer": "bold ansigreen",
        "pointer": "bold ansicyan",
        "highlighted": "bold ansicyan",
        "selected": "bold ansigreen",
        "checkbox": "ansibrightblack",
        "checkbox-selected": "bold ansigreen",
        "separator": "ansibrightblack",
        "instruction": "ansibrightblack",
        "text": "",
        "error": "bold ansired",
        "disabled": "ansibrightblack italic",
    }
)

QUESTIONARY_STYLE_CONFIRM = Style.from_dict(
    {
        "qmark": "bold ansiyellow",
        "question": "bold ansibrightyellow",
        "answer": "bold ansiyellow",
        "instruction": "ansibrightblack",
        "error": "bold ansired",
    }
)
