"""Per-run context shared by the core components.

Holds the settings and counters of one handover run and is passed
explicitly to each component, so no package-wide mutable state exists.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any


class VaultOpsError(RuntimeError):
    """Base class for errors raised by vault-ops."""


class SetupError(VaultOpsError):
    """Raised for fatal setup problems detected before any mutation."""


class RunCancelled(VaultOpsError):
    """
    Raised when the operator aborts a run.

    Attributes:
        report: Partial transfer report when the abort happened mid-batch.
    """

    def __init__(
        self, message: str = "Run cancelled by operator.", *, report: Any = None
    ) -> None:
        super().__init__(message)
        self.report = report


@dataclass
class RunCounters:
    """Failure and skip counters accumulated during a run."""

    invocation_failures: int = 0
    parse_failures: int = 0
    skipped_entities: int = 0
    detail_failures: int = 0
    transfer_failures: int = 0


@dataclass
class RunContext:
    """
    Settings and state of a single run.

    Attributes:
        executable: Administrative CLI executable (name or path).
        timeout: Per-call timeout in seconds; None or 0 disables it.
        counters: Accumulated failure counters.
    """

    executable: str = "keeper"
    timeout: float | None = 300.0
    counters: RunCounters = field(default_factory=RunCounters)
    _cancel: threading.Event = field(default_factory=threading.Event, repr=False)

    def cancel(self) -> None:
        """Request cancellation; honored before the next mutating call."""
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def check_cancelled(self) -> None:
        """Raise RunCancelled if cancellation was requested."""
        if self._cancel.is_set():
            raise RunCancelled("Run cancelled by operator.")
