from __future__ import annotations

import logging
import re
import shlex
import subprocess
from dataclasses import dataclass

from vaultops.core.payloads import (
    Payload,
    PayloadDecodeError,
    decode_structured,
    text_payload,
)
from vaultops.core.run_context import RunContext

log = logging.getLogger(__name__)

FORMAT_FLAG = "--format"
FORMAT_VALUE = "json"

# argparse / click style complaints about the --format spelling
DEFAULT_FLAG_REJECTION = (
    r"unrecognized arguments?:.*--format"
    r"|argument --format: (expected one argument|invalid choice)"
    r"|no such option:? --format"
)


@dataclass(frozen=True)
class CommandResult:
    """
    Result of one administrative command.

    `payload` is None when the call failed (non-zero exit, launch error or
    timeout). A successful call with no output carries an empty payload.
    """

    command: str
    payload: Payload | None
    raw_lines: tuple[str, ...] = ()
    stderr: str = ""
    exit_code: int | None = None
    timed_out: bool = False
    retried: bool = False

    @property
    def ok(self) -> bool:
        return self.payload is not None

    @property
    def output(self) -> str:
        """stdout and stderr joined, for message matching."""
        return "\n".join([*self.raw_lines, self.stderr]).strip()


def requests_structured(tokens: list[str]) -> bool:
    """Return True if the tokens already ask for structured output."""
    return any(t == FORMAT_FLAG or t.startswith(f"{FORMAT_FLAG}=") for t in tokens)


def add_structured_flag(tokens: list[str]) -> list[str]:
    """
    Add the structured-output flag to a tokenized command.

    When the command has positional values after the verb, the flag goes
    right after the verb so it is not taken for one of those values.
    """
    if not tokens or requests_structured(tokens):
        return list(tokens)
    flag = [FORMAT_FLAG, FORMAT_VALUE]
    verb, rest = tokens[0], tokens[1:]
    if any(not t.startswith("-") for t in rest):
        return [verb, *flag, *rest]
    return [*tokens, *flag]


def to_equals_form(tokens: list[str]) -> list[str] | None:
    """Rewrite `--format json` as `--format=json`; None if nothing to rewrite."""
    out: list[str] = []
    changed = False
    i = 0
    while i < len(tokens):
        tok = tokens[i]
        if tok == FORMAT_FLAG and i + 1 < len(tokens):
            out.append(f"{FORMAT_FLAG}={tokens[i + 1]}")
            changed = True
            i += 2
            continue
        out.append(tok)
        i += 1
    return out if changed else None


class CommanderCli:
    """Runs administrative CLI commands as blocking subprocesses."""

    def __init__(
        self,
        ctx: RunContext,
        *,
        flag_rejection: str = DEFAULT_FLAG_REJECTION,
    ) -> None:
        self.ctx = ctx
        self._flag_rejection = re.compile(flag_rejection, re.IGNORECASE)

    def invoke(self, command: str, want_structured: bool = False) -> CommandResult:
        """
        Run one command and decode its output.

        Args:
            command: Command line for the tool, without the executable.
            want_structured: Ask the tool for JSON output.

        Returns:
            A CommandResult. On a failed call `payload` is None. If JSON was
            requested but could not be parsed, the payload is TextLines.
        """
        tokens = shlex.split(command)
        if want_structured:
            tokens = add_structured_flag(tokens)

        result = self._run(tokens, want_structured)
        if (
            not result.ok
            and want_structured
            and self._flag_rejection.search(result.output)
        ):
            alternate = to_equals_form(tokens)
            if alternate is not None:
                log.info("Tool rejected '%s %s', retrying as '%s=%s'",
                         FORMAT_FLAG, FORMAT_VALUE, FORMAT_FLAG, FORMAT_VALUE)
                # only retry; any further failure is surfaced as-is
                result = self._run(alternate, want_structured, retried=True)

        if not result.ok:
            self.ctx.counters.invocation_failures += 1
        return result

    def _run(
        self, tokens: list[str], want_structured: bool, *, retried: bool = False
    ) -> CommandResult:
        argv = [self.ctx.executable, *tokens]
        command = shlex.join(tokens)
        log.debug("Running: %s", shlex.join(argv))
        timeout = self.ctx.timeout or None

        try:
            proc = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                stdin=subprocess.DEVNULL,
                timeout=timeout,
                check=False,
                # keep Ctrl+C away from the child; cancellation is cooperative
                start_new_session=True,
            )
        except subprocess.TimeoutExpired:
            log.warning("Command timed out after %ss: %s", timeout, command)
            return CommandResult(
                command=command, payload=None, timed_out=True, retried=retried
            )
        except OSError as exc:
            log.warning("Could not start %s: %s", self.ctx.executable, exc)
            return CommandResult(
                command=command, payload=None, stderr=str(exc), retried=retried
            )

        stdout = proc.stdout or ""
        stderr = (proc.stderr or "").strip()
        lines = tuple(stdout.splitlines())
        if stderr:
            log.warning("%s: %s", command, stderr)

        if proc.returncode != 0:
            return CommandResult(
                command=command,
                payload=None,
                raw_lines=lines,
                stderr=stderr,
                exit_code=proc.returncode,
                retried=retried,
            )

        if want_structured:
            try:
                payload = decode_structured(stdout)
            except PayloadDecodeError as exc:
                log.warning("%s; falling back to raw lines for: %s", exc, command)
                self.ctx.counters.parse_failures += 1
                payload = text_payload(stdout)
        else:
            payload = text_payload(stdout)

        return CommandResult(
            command=command,
            payload=payload,
            raw_lines=lines,
            stderr=stderr,
            exit_code=proc.returncode,
            retried=retried,
        )
