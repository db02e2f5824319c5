import pytest

from vaultops.core.adapters.vault import MutationResult, VaultAdapter
from vaultops.core.config import Settings
from vaultops.core.entities import NamedEntity, RunConfiguration, RunMode, TargetSet
from vaultops.core.orchestrator import (
    EXIT_OK,
    EXIT_PARTIAL,
    execute_run,
    exit_code_for,
)
from vaultops.core.run_context import RunCancelled, RunContext
from vaultops.core.transfer import HALF_DONE, transfer_ownership

OWNER = "new.owner@example.com"


class MutationStub:
    def __init__(self, grant=None, move=None):
        self.grant = grant or {}
        self.move = move or {}
        self.calls: list[tuple] = []

    def grant_admin(self, uid, owner):
        self.calls.append(("grant", uid, owner))
        return self.grant.get(uid, MutationResult(ok=True))

    def transfer_ownership(self, uid, owner, *, recursive, dry_run=False):
        self.calls.append(("transfer", uid, owner, recursive, dry_run))
        return self.move.get(uid, MutationResult(ok=True))


def _targets(*uids):
    return TargetSet(
        items=tuple(NamedEntity(name=f"Folder {u}", uid=u) for u in uids),
        mode=RunMode.CONTAINERS,
    )


def test_grant_then_transfer_for_every_target():
    adapter = MutationStub()

    report = transfer_ownership(adapter, _targets("SF1", "SF2"), OWNER, RunContext())

    assert adapter.calls == [
        ("grant", "SF1", OWNER),
        ("transfer", "SF1", OWNER, True, False),
        ("grant", "SF2", OWNER),
        ("transfer", "SF2", OWNER, True, False),
    ]
    assert report.failures == 0
    assert all(o.grant_ok and o.ownership_ok for o in report.outcomes)


def test_failed_grant_does_not_stop_the_batch():
    adapter = MutationStub(grant={"SF2": MutationResult(ok=False, error="denied")})
    ctx = RunContext()

    report = transfer_ownership(adapter, _targets("SF1", "SF2", "SF3"), OWNER, ctx)

    assert report.failures == 1
    assert ctx.counters.transfer_failures == 1
    assert [o.uid for o in report.failed_targets] == ["SF2"]
    failed = report.failed_targets[0]
    assert failed.grant_error == "denied"
    assert failed.ownership_ok is True
    assert ("transfer", "SF2", OWNER, True, False) in adapter.calls
    assert ("grant", "SF3", OWNER) in adapter.calls


def test_both_steps_failing_count_twice():
    adapter = MutationStub(
        grant={"SF1": MutationResult(ok=False, error="denied")},
        move={"SF1": MutationResult(ok=False, error="timed out")},
    )

    report = transfer_ownership(adapter, _targets("SF1"), OWNER, RunContext())

    assert report.failures == 2


def test_repeat_run_reports_noop():
    already = MutationResult(ok=True, noop=True)
    adapter = MutationStub(grant={"SF1": already}, move={"SF1": already})

    report = transfer_ownership(adapter, _targets("SF1"), OWNER, RunContext())

    assert report.failures == 0
    assert report.unchanged == 1


def test_second_run_through_vault_adapter_is_a_successful_noop(fake_tool):
    fake_tool(
        {
            "share-folder": [
                (0, "Shared folder permissions updated\n", ""),
                (0, f"User {OWNER} already has manage-users and manage-records\n", ""),
            ],
            "share-record": [
                (0, "Ownership transferred\n", ""),
                (0, f"{OWNER} is the owner of all records\n", ""),
            ],
        }
    )
    ctx = RunContext()
    adapter = VaultAdapter.from_settings(Settings(), ctx)

    first = transfer_ownership(adapter, _targets("SF1"), OWNER, ctx)
    second = transfer_ownership(adapter, _targets("SF1"), OWNER, ctx)

    assert (first.failures, first.unchanged) == (0, 0)
    assert (second.failures, second.unchanged) == (0, 1)
    assert exit_code_for(second) == EXIT_OK


def test_non_recursive_transfer_is_passed_through():
    adapter = MutationStub()

    transfer_ownership(adapter, _targets("SF1"), OWNER, RunContext(), recursive=False)

    assert adapter.calls[-1] == ("transfer", "SF1", OWNER, False, False)


def test_dry_run_skips_grant_and_previews_transfer():
    adapter = MutationStub()

    report = transfer_ownership(adapter, _targets("SF1"), OWNER, RunContext(), dry_run=True)

    assert adapter.calls == [("transfer", "SF1", OWNER, True, True)]
    assert report.dry_run is True
    assert report.outcomes[0].grant_skipped is True
    assert report.failures == 0


def test_progress_called_before_each_target():
    seen = []

    transfer_ownership(
        MutationStub(),
        _targets("SF1", "SF2"),
        OWNER,
        RunContext(),
        on_progress=lambda i, n, t: seen.append((i, n, t.uid)),
    )

    assert seen == [(1, 2, "SF1"), (2, 2, "SF2")]


def test_cancellation_before_first_target_issues_no_calls():
    adapter = MutationStub()
    ctx = RunContext()
    ctx.cancel()

    with pytest.raises(RunCancelled) as excinfo:
        transfer_ownership(adapter, _targets("SF1"), OWNER, ctx)

    assert adapter.calls == []
    assert excinfo.value.report.outcomes == ()


def test_cancellation_mid_run_stops_before_next_mutation():
    ctx = RunContext()

    class CancellingStub(MutationStub):
        def grant_admin(self, uid, owner):
            result = super().grant_admin(uid, owner)
            ctx.cancel()
            return result

    adapter = CancellingStub()

    with pytest.raises(RunCancelled) as excinfo:
        transfer_ownership(adapter, _targets("SF1", "SF2"), OWNER, ctx)

    assert adapter.calls == [("grant", "SF1", OWNER)]
    half_done = excinfo.value.report.outcomes
    assert [(o.uid, o.grant_ok, o.ownership_ok) for o in half_done] == [("SF1", True, False)]
    assert half_done[0].ownership_error == HALF_DONE


def test_cancellation_keeps_outcomes_of_processed_targets():
    ctx = RunContext()

    class CancelDuringSecondTransfer(MutationStub):
        def transfer_ownership(self, uid, owner, *, recursive, dry_run=False):
            result = super().transfer_ownership(
                uid, owner, recursive=recursive, dry_run=dry_run
            )
            if uid == "SF2":
                ctx.cancel()
            return result

    adapter = CancelDuringSecondTransfer()

    with pytest.raises(RunCancelled) as excinfo:
        transfer_ownership(adapter, _targets("SF1", "SF2", "SF3"), OWNER, ctx)

    report = excinfo.value.report
    assert [o.uid for o in report.outcomes] == ["SF1", "SF2"]
    assert all(o.grant_ok and o.ownership_ok for o in report.outcomes)
    assert not any(call[1] == "SF3" for call in adapter.calls)


def test_empty_target_set_is_a_successful_noop():
    adapter = MutationStub()
    config = RunConfiguration(new_owner=OWNER, mode=RunMode.GROUPS)

    report = execute_run(config, adapter, RunContext(), TargetSet(items=(), mode=RunMode.GROUPS))

    assert adapter.calls == []
    assert report.transfer is None
    assert report.exit_code == EXIT_OK


def test_exit_code_reflects_partial_failure():
    adapter = MutationStub(move={"SF2": MutationResult(ok=False, error="boom")})
    config = RunConfiguration(new_owner=OWNER, mode=RunMode.CONTAINERS)

    report = execute_run(config, adapter, RunContext(), _targets("SF1", "SF2"))

    assert report.failures == 1
    assert report.exit_code == EXIT_PARTIAL
    assert exit_code_for(None) == EXIT_OK
