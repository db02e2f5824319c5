"""Ownership transfer over a target set.

For every container two mutations run in order: grant the new owner
manage-users / manage-records, then force-transfer ownership of the
container's records (optionally recursing into sub-folders). The two steps
are independent outcomes; a failed grant does not skip the transfer, and a
failed target never stops the batch. Only operator cancellation aborts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, NoReturn, Protocol

from vaultops.core.entities import NamedEntity, TargetSet, TransferOutcome
from vaultops.core.run_context import RunCancelled, RunContext

log = logging.getLogger(__name__)

HALF_DONE = "cancelled before the ownership transfer"

TransferProgress = Callable[[int, int, NamedEntity], None]


class MutationLike(Protocol):
    ok: bool
    noop: bool
    error: str | None


class TransferAdapter(Protocol):
    """Interface for the mutating calls used by the transfer driver."""

    def grant_admin(self, uid: str, owner: str) -> MutationLike:
        """Grant admin permissions on a container."""
        ...

    def transfer_ownership(
        self, uid: str, owner: str, *, recursive: bool, dry_run: bool = False
    ) -> MutationLike:
        """Transfer ownership of a container's records."""
        ...


@dataclass(frozen=True)
class TransferReport:
    """Aggregate of all per-target outcomes of one run."""

    outcomes: tuple[TransferOutcome, ...]
    dry_run: bool = False

    @property
    def failures(self) -> int:
        return sum(o.failures for o in self.outcomes)

    @property
    def failed_targets(self) -> list[TransferOutcome]:
        return [o for o in self.outcomes if o.failures]

    @property
    def unchanged(self) -> int:
        return sum(1 for o in self.outcomes if o.noop)


def transfer_ownership(
    adapter: TransferAdapter,
    targets: TargetSet,
    new_owner: str,
    ctx: RunContext,
    *,
    recursive: bool = True,
    dry_run: bool = False,
    on_progress: TransferProgress | None = None,
) -> TransferReport:
    """
    Grant admin rights and transfer ownership for every target.

    Args:
        adapter: Vault adapter issuing the mutations.
        targets: Deduplicated containers.
        new_owner: Identity receiving admin rights and ownership.
        ctx: Run context; its cancellation flag is checked before each call.
        recursive: Also transfer sub-folders and their records.
        dry_run: Skip the grant and ask the tool to preview the transfer.
        on_progress: Called with (index, total, target) before each target.

    Returns:
        A TransferReport. Failed steps are counted, never raised.

    Raises:
        RunCancelled: If the operator cancelled the run. Its `report` holds
            the outcomes of the targets processed before the cancellation.
    """
    outcomes: list[TransferOutcome] = []
    total = len(targets)

    for index, target in enumerate(targets, start=1):
        if on_progress is not None:
            on_progress(index, total, target)

        grant_ok, grant_error, grant_noop = False, None, False
        if not dry_run:
            if ctx.cancelled:
                _cancelled(outcomes, dry_run)
            grant = adapter.grant_admin(target.uid, new_owner)
            grant_ok, grant_error, grant_noop = grant.ok, grant.error, grant.noop
            if not grant.ok:
                log.warning(
                    "Grant failed for %s (%s): %s", target.name, target.uid, grant.error
                )

        if ctx.cancelled:
            if not dry_run:
                # granted but not transferred: report the folder as half-done
                outcomes.append(
                    TransferOutcome(
                        uid=target.uid,
                        name=target.name,
                        grant_ok=grant_ok,
                        ownership_ok=False,
                        grant_error=grant_error,
                        ownership_error=HALF_DONE,
                    )
                )
            _cancelled(outcomes, dry_run)
        moved = adapter.transfer_ownership(
            target.uid, new_owner, recursive=recursive, dry_run=dry_run
        )
        if not moved.ok:
            log.warning(
                "Ownership transfer failed for %s (%s): %s",
                target.name,
                target.uid,
                moved.error,
            )

        outcome = TransferOutcome(
            uid=target.uid,
            name=target.name,
            grant_ok=grant_ok,
            ownership_ok=moved.ok,
            grant_skipped=dry_run,
            noop=not dry_run and grant_noop and moved.noop,
            grant_error=grant_error,
            ownership_error=moved.error,
        )
        ctx.counters.transfer_failures += outcome.failures
        outcomes.append(outcome)

    return TransferReport(outcomes=tuple(outcomes), dry_run=dry_run)


def _cancelled(outcomes: list[TransferOutcome], dry_run: bool) -> NoReturn:
    """Abort the batch, keeping the outcomes of targets already processed."""
    report = TransferReport(outcomes=tuple(outcomes), dry_run=dry_run)
    raise RunCancelled("Run cancelled by operator.", report=report)
