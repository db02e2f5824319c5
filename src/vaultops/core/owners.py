"""New-owner identity checks."""

from __future__ import annotations

import re
from typing import Protocol

from vaultops.core.run_context import SetupError

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z0-9-]{2,}$")


class UsersAdapter(Protocol):
    def known_users(self) -> set[str] | None:
        """Return known user identities (lower-case), or None if unavailable."""
        ...


def normalize_owner(owner: str | None) -> str:
    """
    Validate the new owner's identity and return it trimmed.

    Raises:
        SetupError: If the owner is missing or not a well-formed e-mail address.
    """
    value = (owner or "").strip()
    if not value:
        raise SetupError("A new owner is required (--owner).")
    if not _EMAIL_RE.match(value):
        raise SetupError(f"New owner '{value}' is not a valid e-mail address.")
    return value


def is_known_owner(adapter: UsersAdapter, owner: str) -> bool | None:
    """Best-effort lookup of owner among vault users; None when it cannot tell."""
    users = adapter.known_users()
    if not users:
        return None
    return owner.lower() in users
