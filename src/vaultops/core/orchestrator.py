"""Run orchestration: target planning, execution and exit status.

This module is the UI-free half of a handover run. The CLI gathers the
parameters, asks for confirmation and renders output; the functions here
build the target set, drive the transfer and map the result to the process
exit status understood by schedulers:

    0   success, or nothing to do
    1   fatal setup / configuration error (nothing was attempted)
    2   the run completed but one or more transfer actions failed
    130 the operator interrupted the run
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from vaultops.core.association import ProgressCallback
from vaultops.core.entities import RunConfiguration, TargetSet
from vaultops.core.run_context import RunContext, RunCounters
from vaultops.core.targets import TargetAdapter, build_target_set
from vaultops.core.transfer import (
    TransferAdapter,
    TransferProgress,
    TransferReport,
    transfer_ownership,
)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_PARTIAL = 2
EXIT_INTERRUPTED = 130


@dataclass(frozen=True)
class RunReport:
    """Final outcome of a run."""

    targets: TargetSet
    transfer: TransferReport | None
    counters: RunCounters

    @property
    def failures(self) -> int:
        return self.transfer.failures if self.transfer else 0

    @property
    def exit_code(self) -> int:
        return exit_code_for(self.transfer)


def exit_code_for(report: TransferReport | None) -> int:
    """Map a transfer report to the process exit status."""
    if report is None or report.failures == 0:
        return EXIT_OK
    return EXIT_PARTIAL


def plan_targets(
    config: RunConfiguration,
    adapter: TargetAdapter,
    ctx: RunContext,
    *,
    captured_at: datetime | None = None,
    on_progress: ProgressCallback | None = None,
) -> TargetSet:
    """Build the target set described by the run configuration."""
    return build_target_set(
        config.mode,
        adapter,
        ctx,
        groups=config.groups,
        containers=config.containers,
        captured_at=captured_at,
        on_progress=on_progress,
    )


def execute_run(
    config: RunConfiguration,
    adapter: TransferAdapter,
    ctx: RunContext,
    targets: TargetSet,
    *,
    on_progress: TransferProgress | None = None,
) -> RunReport:
    """
    Drive the transfer for a planned target set.

    An empty target set issues no calls and reports success.
    """
    if not targets:
        return RunReport(targets=targets, transfer=None, counters=ctx.counters)

    report = transfer_ownership(
        adapter,
        targets,
        config.new_owner,
        ctx,
        recursive=config.recursive,
        dry_run=config.dry_run,
        on_progress=on_progress,
    )
    return RunReport(targets=targets, transfer=report, counters=ctx.counters)
