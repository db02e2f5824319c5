"""Process exits for the CLI, mapped onto the run exit statuses."""

from typing import NoReturn

import typer

from vaultops.cli.common.output import out
from vaultops.core.orchestrator import (
    EXIT_FATAL,
    EXIT_INTERRUPTED,
    EXIT_OK,
    RunReport,
)


def ok_exit(msg: str | None = None) -> NoReturn:
    """Exit 0, optionally printing why there was nothing (more) to do."""
    if msg:
        out.info(msg)
    raise typer.Exit(EXIT_OK)


def die(msg: str, code: int = EXIT_FATAL) -> NoReturn:
    """Exit on a setup error; nothing has been changed in the vault."""
    out.error(msg)
    raise typer.Exit(code)


def warn_exit(msg: str, code: int = EXIT_OK) -> NoReturn:
    out.warn(msg)
    raise typer.Exit(code)


def exit_from_exc(exc: Exception, *, message: str, code: int = EXIT_FATAL) -> NoReturn:
    """Print message and exit, chaining exc as the cause."""
    out.error(message)
    raise typer.Exit(code) from exc


def interrupted_exit(exc: Exception, message: str) -> NoReturn:
    """Exit after operator cancellation (Ctrl+C)."""
    out.warn(message)
    raise typer.Exit(EXIT_INTERRUPTED) from exc


def report_exit(report: RunReport) -> NoReturn:
    """Summarize failed actions of a finished run and exit with its status."""
    failed = report.transfer.failed_targets if report.transfer else []
    out.error(f"{report.failures} action(s) failed on {len(failed)} shared folder(s).")
    for outcome in failed:
        reason = outcome.ownership_error or outcome.grant_error or "unknown error"
        out.kv({f"{outcome.name} ({outcome.uid})": reason})
    raise typer.Exit(report.exit_code)
