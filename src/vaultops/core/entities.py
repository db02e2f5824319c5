"""Core domain models for vault ownership handover.

These models represent vault groups (teams), shared containers (shared
folders) and the results of a handover run in a simple, immutable form.
They are intentionally free of subprocess and UI/CLI concerns.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum

UNKNOWN_UIDS = frozenset({"", "unknown", "n/a", "none", "null", "-"})


def is_usable_uid(uid: str | None) -> bool:
    """Return True if the uid can address an object in the vault."""
    if uid is None:
        return False
    return uid.strip().lower() not in UNKNOWN_UIDS


@dataclass(frozen=True)
class NamedEntity:
    """
    Canonical representation of a group or a container.

    Attributes:
        name: Display label. Not guaranteed unique.
        uid: Stable, externally assigned identifier.
    """

    name: str
    uid: str

    @property
    def usable(self) -> bool:
        return is_usable_uid(self.uid)


@dataclass(frozen=True)
class PermissionEntry:
    """One group permission attached to a container."""

    group_uid: str | None = None
    group_name: str | None = None
    manage_users: bool | None = None
    manage_records: bool | None = None

    def matches(self, group: NamedEntity) -> bool:
        """Return True if this entry refers to the given group (by uid or name)."""
        if self.group_uid and self.group_uid == group.uid:
            return True
        if self.group_name and group.name:
            return self.group_name.casefold() == group.name.casefold()
        return False


@dataclass(frozen=True)
class ContainerDetail:
    """A fetched container plus its group permission entries."""

    entity: NamedEntity
    permissions: tuple[PermissionEntry, ...] = ()


class RunMode(str, Enum):
    """
    Addressing mode of a handover run.

    Values:
        GROUPS: Discover containers from the selected groups.
        CONTAINERS: Use an explicit container list.
        SAVED: Use a container list captured by an earlier run.
    """

    GROUPS = "groups"
    CONTAINERS = "containers"
    SAVED = "saved"


@dataclass(frozen=True)
class TargetSet:
    """Deduplicated, ordered containers slated for the ownership transfer."""

    items: tuple[NamedEntity, ...]
    mode: RunMode
    captured_at: datetime | None = None

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)

    def __bool__(self) -> bool:
        return bool(self.items)

    def age(self, now: datetime | None = None) -> timedelta | None:
        """Return how long ago the underlying list was captured, if known."""
        if self.captured_at is None:
            return None
        now = now or datetime.now(timezone.utc)
        return now - self.captured_at

    def is_stale(self, max_age: timedelta, now: datetime | None = None) -> bool:
        """Return True if the list was captured longer than max_age ago."""
        age = self.age(now)
        return age is not None and age > max_age


@dataclass(frozen=True)
class TransferOutcome:
    """Result of the grant + ownership transfer for one container."""

    uid: str
    name: str
    grant_ok: bool
    ownership_ok: bool
    grant_skipped: bool = False
    noop: bool = False
    grant_error: str | None = None
    ownership_error: str | None = None

    @property
    def failures(self) -> int:
        count = 0 if self.grant_ok or self.grant_skipped else 1
        return count + (0 if self.ownership_ok else 1)


@dataclass(frozen=True)
class RunConfiguration:
    """Resolved, read-only parameters for one handover run."""

    new_owner: str
    mode: RunMode
    recursive: bool = True
    dry_run: bool = False
    groups: tuple[NamedEntity, ...] = field(default_factory=tuple)
    containers: tuple[NamedEntity, ...] = field(default_factory=tuple)
