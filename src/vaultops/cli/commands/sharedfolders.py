"""Commands for shared-folder discovery and ownership handover."""

from __future__ import annotations

import re
import signal
import sys
from contextlib import contextmanager
from dataclasses import replace
from datetime import timedelta
from pathlib import Path

import typer

from vaultops.cli.common.context import VaultAppContext, build_vault_context
from vaultops.cli.common.exits import (
    die,
    exit_from_exc,
    interrupted_exit,
    ok_exit,
    report_exit,
    warn_exit,
)
from vaultops.cli.common.options import (
    AllOpt,
    ConfigOpt,
    ConsoleMenuOpt,
    ContainerOpt,
    DryRunOpt,
    ExecutableOpt,
    FromFileOpt,
    GroupOpt,
    ModeOpt,
    NameOpt,
    OutputOpt,
    OwnerOpt,
    RecursiveOpt,
    SaveConfigOpt,
    TimeoutOpt,
    VerboseOpt,
    YesOpt,
)
from vaultops.cli.common.output import out, setup_logging
from vaultops.cli.common.progress import resolution_progress, transfer_progress
from vaultops.cli.tui import get_selector
from vaultops.core.association import AssociationResolver
from vaultops.core.config import (
    ConfigError,
    load_saved_containers,
    save_containers,
    save_settings,
)
from vaultops.core.entities import NamedEntity, RunConfiguration, RunMode, TargetSet
from vaultops.core.orchestrator import (
    RunReport,
    execute_run,
    plan_targets,
)
from vaultops.core.owners import is_known_owner, normalize_owner
from vaultops.core.run_context import RunCancelled, RunContext, SetupError
from vaultops.core.targets import dedupe

sf_app = typer.Typer(
    help="Shared-folder discovery and ownership handover.",
    no_args_is_help=False,
    invoke_without_command=True,
)


@sf_app.callback()
def _init(
    ctx: typer.Context,
    config: Path | None = ConfigOpt,
    executable: str | None = ExecutableOpt,
    timeout: float | None = TimeoutOpt,
    verbose: bool = VerboseOpt,
):
    """Initialize the vault context (settings, command runner, adapter)."""
    setup_logging(verbose)
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(0)
    ctx.obj = build_vault_context(config, executable=executable, timeout=timeout)


def _interactive() -> bool:
    return sys.stdin.isatty()


def _compile_regex_or_exit(pattern: str | None, *, option_name: str) -> re.Pattern | None:
    """Compile a regex pattern and convert invalid syntax into CLI input errors."""
    if not pattern:
        return None
    try:
        return re.compile(pattern)
    except re.error as exc:
        exit_from_exc(exc, message=f"Invalid regex for {option_name}: {exc}", code=1)


def _match_values(
    values: list[str], listing: list[NamedEntity], *, kind: str
) -> list[NamedEntity]:
    """
    Map user-supplied names or UIDs onto listed entities.

    Values that match nothing are kept as bare UIDs.
    """
    by_uid = {e.uid: e for e in listing}
    picked: list[NamedEntity] = []
    for value in values:
        value = value.strip()
        if not value:
            continue
        if value in by_uid:
            picked.append(by_uid[value])
            continue
        named = [e for e in listing if e.name.casefold() == value.casefold()]
        if named:
            if len(named) > 1:
                out.warn(f"{len(named)} {kind}s are named '{value}'; taking all of them.")
            picked.extend(named)
            continue
        out.warn(f"{kind.capitalize()} '{value}' not found in listing; using it as a UID.")
        picked.append(NamedEntity(name=value, uid=value))
    return dedupe(picked)


def _select(
    appctx: VaultAppContext,
    *,
    kind: str,
    values: list[str],
    configured: tuple[NamedEntity, ...],
    all_: bool,
    console_menu: bool,
) -> list[NamedEntity]:
    """Resolve a selection from options, config, or the interactive selector."""
    if not values and configured:
        out.info(f"Using {len(configured)} {kind}(s) from config.")
        return list(configured)

    lister = (
        appctx.adapter.list_groups if kind == "group" else appctx.adapter.list_containers
    )
    with out.status(f"Loading {kind}s..."):
        listing = lister()

    if values:
        return _match_values(values, listing, kind=kind)

    if not listing:
        warn_exit(f"No {kind}s found.", code=0)
    if all_:
        return listing
    if not _interactive() and not console_menu:
        die(f"No {kind}s given. Pass --{kind} or --all when running unattended.", code=1)

    selector = get_selector(console_menu)
    return selector.choose_many(listing, f"Select {kind}s:")


def _resolve_mode(
    mode: RunMode | None,
    *,
    appctx: VaultAppContext,
    groups: list[str],
    containers: list[str],
    from_file: Path | None,
) -> RunMode:
    if mode is not None:
        return mode
    if from_file is not None:
        return RunMode.SAVED
    if containers:
        return RunMode.CONTAINERS
    if groups:
        return RunMode.GROUPS
    if appctx.settings.mode is not None:
        return appctx.settings.mode
    if not _interactive():
        die("No run mode given. Pass --mode, --group, --container or --from-file.", code=1)

    labels = {
        "Discover shared folders from groups": RunMode.GROUPS,
        "Pick shared folders directly": RunMode.CONTAINERS,
        "Use a saved shared-folder list": RunMode.SAVED,
    }
    picked = out.select_one("Select run mode:", list(labels))
    if picked is None:
        ok_exit("Cancelled")
    return labels[picked]


def _resolve_owner(appctx: VaultAppContext, owner: str | None) -> str:
    value = owner or appctx.settings.owner
    if not value and _interactive():
        value = out.ask("New owner e-mail:")
    try:
        value = normalize_owner(value)
    except SetupError as exc:
        exit_from_exc(exc, message=str(exc), code=1)

    with out.status("Checking new owner..."):
        known = is_known_owner(appctx.adapter, value)
    if known is False:
        out.warn(f"'{value}' was not found among vault users; continuing anyway.")
    elif known is None:
        out.info(f"Could not verify '{value}' against the user list.")
    return value


@contextmanager
def _cancel_on_interrupt(run: RunContext):
    """Turn Ctrl+C into a cancellation request honored before the next mutation."""

    def _handler(signum, frame):
        out.warn(
            "Interrupt received: letting the running command finish, "
            "then stopping before the next change..."
        )
        run.cancel()

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _plan_or_exit(
    appctx: VaultAppContext, config: RunConfiguration, captured_at=None
) -> TargetSet:
    try:
        if config.mode is RunMode.GROUPS:
            with _cancel_on_interrupt(appctx.run), resolution_progress() as progress:
                targets = plan_targets(
                    config,
                    appctx.adapter,
                    appctx.run,
                    captured_at=captured_at,
                    on_progress=progress,
                )
        else:
            targets = plan_targets(
                config, appctx.adapter, appctx.run, captured_at=captured_at
            )
    except RunCancelled as exc:
        interrupted_exit(exc, "Cancelled; no changes were made.")

    failures = appctx.run.counters.detail_failures
    if failures:
        out.warn(f"{failures} shared folder(s) could not be inspected and were skipped.")
    return targets


def _report_staleness(appctx: VaultAppContext, targets: TargetSet) -> None:
    if targets.mode is not RunMode.SAVED:
        return
    if targets.captured_at is None:
        out.warn("The saved list has no capture time; it may be out of date.")
        return
    max_age = timedelta(hours=appctx.settings.stale_after_hours)
    age = targets.age()
    captured = targets.captured_at.isoformat(timespec="seconds")
    if targets.is_stale(max_age):
        hours = age.total_seconds() / 3600 if age else 0
        out.warn(
            f"The saved list was captured {hours:.0f}h ago ({captured}). "
            "Re-run `resolve` if group memberships may have changed."
        )
    else:
        out.info(f"Saved list captured at {captured}.")


def _execute_or_exit(
    appctx: VaultAppContext, config: RunConfiguration, targets: TargetSet
) -> RunReport:
    try:
        with _cancel_on_interrupt(appctx.run), transfer_progress(
            len(targets)
        ) as progress:
            report = execute_run(
                config, appctx.adapter, appctx.run, targets, on_progress=progress
            )
    except RunCancelled as exc:
        partial = exc.report
        if partial is not None and partial.outcomes:
            out.transfer_results_table(
                partial.outcomes, title="Completed before cancellation"
            )
            message = (
                f"Run cancelled after {len(partial.outcomes)} of {len(targets)} "
                "shared folder(s); the rest were not changed."
            )
        else:
            message = "Run cancelled; no shared folders were changed."
        interrupted_exit(exc, message)

    if report.transfer is not None:
        title = "Transfer preview (dry-run)" if config.dry_run else "Transfer results"
        out.transfer_results_table(report.transfer.outcomes, title=title)
    return report


@sf_app.command("groups-list")
def groups_list(ctx: typer.Context, name: str | None = NameOpt):
    """List groups (teams)."""
    appctx: VaultAppContext = ctx.obj
    name_rx = _compile_regex_or_exit(name, option_name="--name")

    with out.status("Loading groups..."):
        groups = appctx.adapter.list_groups()

    if name_rx:
        groups = [g for g in groups if name_rx.search(g.name)]

    if not groups:
        warn_exit("No groups found.", code=0)

    out.header("Groups")
    out.info(f"Groups: {len(groups)}")
    out.entities_table(groups, title="Groups", kind="Group")


@sf_app.command("containers-list")
def containers_list(ctx: typer.Context, name: str | None = NameOpt):
    """List shared folders."""
    appctx: VaultAppContext = ctx.obj
    name_rx = _compile_regex_or_exit(name, option_name="--name")

    with out.status("Loading shared folders..."):
        containers = appctx.adapter.list_containers()

    if name_rx:
        containers = [c for c in containers if name_rx.search(c.name)]

    if not containers:
        warn_exit("No shared folders found.", code=0)

    out.header("Shared folders")
    out.info(f"Shared folders: {len(containers)}")
    out.entities_table(containers, title="Shared folders", kind="Shared folder")


@sf_app.command()
def resolve(
    ctx: typer.Context,
    group: list[str] = GroupOpt,
    all_: bool = AllOpt,
    console_menu: bool = ConsoleMenuOpt,
    output: Path | None = OutputOpt,
):
    """
    Find the shared folders associated with groups.

    Every shared folder is inspected, so this takes a while on large vaults.
    """
    appctx: VaultAppContext = ctx.obj
    groups = _select(
        appctx,
        kind="group",
        values=group,
        configured=appctx.settings.groups,
        all_=all_,
        console_menu=console_menu,
    )
    if not groups:
        warn_exit("No groups selected.", code=0)

    with out.status("Loading shared folders..."):
        containers = dedupe(appctx.adapter.list_containers(), appctx.run)
    if not containers:
        warn_exit("No shared folders found.", code=0)

    resolver = AssociationResolver(appctx.adapter, appctx.run)
    try:
        with _cancel_on_interrupt(appctx.run), resolution_progress() as progress:
            found = resolver.resolve(groups, containers, on_progress=progress)
    except RunCancelled as exc:
        interrupted_exit(exc, "Cancelled.")

    out.association_table(groups, resolver.associations)
    failures = appctx.run.counters.detail_failures
    if failures:
        out.warn(f"{failures} shared folder(s) could not be inspected and were skipped.")

    if not found:
        warn_exit("No shared folders are associated with the selected groups.", code=0)

    out.entities_table(found, title="Associated shared folders", kind="Shared folder")

    if output is not None:
        save_containers(output, found, groups=groups)
        out.success(f"Saved {len(found)} shared folder(s) to {output}")


@sf_app.command()
def transfer(
    ctx: typer.Context,
    owner: str | None = OwnerOpt,
    mode: RunMode | None = ModeOpt,
    group: list[str] = GroupOpt,
    container: list[str] = ContainerOpt,
    from_file: Path | None = FromFileOpt,
    recursive: bool = RecursiveOpt,
    dry_run: bool = DryRunOpt,
    yes: bool = YesOpt,
    all_: bool = AllOpt,
    console_menu: bool = ConsoleMenuOpt,
    save_config: Path | None = SaveConfigOpt,
):
    """
    Grant admin rights on shared folders and transfer their ownership.

    Exit status: 0 success or nothing to do, 2 some actions failed,
    1 setup error, 130 interrupted.
    """
    appctx: VaultAppContext = ctx.obj
    settings = appctx.settings

    run_mode = _resolve_mode(
        mode, appctx=appctx, groups=group, containers=container, from_file=from_file
    )
    new_owner = _resolve_owner(appctx, owner)

    groups: list[NamedEntity] = []
    containers: list[NamedEntity] = []
    captured_at = None

    if run_mode is RunMode.GROUPS:
        groups = _select(
            appctx,
            kind="group",
            values=group,
            configured=settings.groups,
            all_=all_,
            console_menu=console_menu,
        )
        if not groups:
            warn_exit("No groups selected.", code=0)
    elif run_mode is RunMode.CONTAINERS:
        containers = _select(
            appctx,
            kind="container",
            values=container,
            configured=settings.containers,
            all_=all_,
            console_menu=console_menu,
        )
    else:
        if from_file is None:
            die("--from-file is required with --mode saved.", code=1)
        try:
            saved = load_saved_containers(from_file)
        except ConfigError as exc:
            exit_from_exc(exc, message=str(exc), code=1)
        containers = list(saved.containers)
        captured_at = saved.captured_at

    config = RunConfiguration(
        new_owner=new_owner,
        mode=run_mode,
        recursive=recursive,
        dry_run=dry_run,
        groups=tuple(groups),
        containers=tuple(containers),
    )

    if save_config is not None:
        save_settings(
            replace(
                settings,
                owner=new_owner,
                mode=run_mode,
                recursive=recursive,
                groups=config.groups,
                containers=config.containers if run_mode is RunMode.CONTAINERS else (),
            ),
            save_config,
        )
        out.success(f"Run parameters saved to {save_config}")

    targets = _plan_or_exit(appctx, config, captured_at)
    if not targets:
        ok_exit("Nothing to do: no shared folders to transfer.")

    out.header("Handover plan")
    out.kv(
        {
            "New owner": new_owner,
            "Mode": run_mode.value,
            "Recursive": "yes" if recursive else "no",
            "Shared folders": len(targets),
        }
    )
    out.entities_table(targets, title="Target shared folders", kind="Shared folder")
    _report_staleness(appctx, targets)

    if dry_run:
        out.warn("DRY RUN: admin grants are skipped and the transfer is previewed.")
        preview = _execute_or_exit(appctx, config, targets)
        if yes or not _interactive():
            raise typer.Exit(preview.exit_code)
        if not out.confirm("Proceed with the real transfer?"):
            ok_exit("Cancelled; no changes were made.")
        config = replace(config, dry_run=False)
    elif not yes:
        if not _interactive():
            die("Refusing to change ownership unattended without --yes.", code=1)
        if not out.confirm(
            f"Transfer {len(targets)} shared folder(s) to {new_owner}?"
        ):
            ok_exit("Cancelled; no changes were made.")

    report = _execute_or_exit(appctx, config, targets)

    if report.failures:
        report_exit(report)

    unchanged = report.transfer.unchanged if report.transfer else 0
    suffix = f" ({unchanged} already in place)" if unchanged else ""
    out.success(f"Ownership transferred for {len(targets)} shared folder(s){suffix}.")
