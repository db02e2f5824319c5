from __future__ import annotations

import logging
import re
import shlex
from dataclasses import dataclass

from vaultops.core.adapters.commander import CommanderCli, CommandResult
from vaultops.core.config import CommandTemplates, Settings
from vaultops.core.entities import ContainerDetail, NamedEntity
from vaultops.core.normalize import (
    CONTAINER_SCHEMA,
    GROUP_SCHEMA,
    EntitySchema,
    container_detail,
    decode_field,
    normalize,
)
from vaultops.core.payloads import StructuredList, StructuredSingle
from vaultops.core.run_context import RunContext

log = logging.getLogger(__name__)

_USER_ALIASES = ("email", "username", "user_name", "login")


@dataclass(frozen=True)
class MutationResult:
    """Outcome of one mutating call."""

    ok: bool
    noop: bool = False
    error: str | None = None


class VaultAdapter:
    """Adapter around the vault administrative CLI (listings, details, mutations)."""

    def __init__(self, cli: CommanderCli, settings: Settings) -> None:
        self.cli = cli
        self.commands: CommandTemplates = settings.commands
        self._already = [re.compile(p, re.IGNORECASE) for p in settings.already_applied]

    @classmethod
    def from_settings(cls, settings: Settings, ctx: RunContext) -> "VaultAdapter":
        """Build an adapter and its command invoker from resolved settings."""
        return cls(CommanderCli(ctx, flag_rejection=settings.flag_rejection), settings)

    @property
    def ctx(self) -> RunContext:
        return self.cli.ctx

    def _list(
        self, commands: tuple[str, ...], schema: EntitySchema
    ) -> list[NamedEntity]:
        """Run listing commands in order until one yields entities."""
        for command in commands:
            result = self.cli.invoke(command, want_structured=True)
            if not result.ok:
                log.warning("Listing command '%s' failed", command)
                continue
            entities = normalize(result.payload, schema, self.ctx)
            if entities:
                return entities
            log.info("Listing command '%s' returned no %ss", command, schema.kind)
        return []

    def list_groups(self) -> list[NamedEntity]:
        """List all groups (teams) visible to the session."""
        return self._list(self.commands.group_lists, GROUP_SCHEMA)

    def list_containers(self) -> list[NamedEntity]:
        """List all shared containers visible to the session."""
        return self._list(self.commands.container_lists, CONTAINER_SCHEMA)

    def get_container_detail(self, uid: str) -> ContainerDetail | None:
        """Fetch one container with its group permissions; None if unusable."""
        command = self.commands.detail.format(uid=shlex.quote(uid))
        result = self.cli.invoke(command, want_structured=True)
        if not result.ok:
            return None
        detail = container_detail(result.payload, uid)
        if detail is None:
            log.warning("Unparseable detail output for container %s", uid)
        return detail

    def known_users(self) -> set[str] | None:
        """Return lower-cased user identities, or None if they cannot be listed."""
        result = self.cli.invoke(self.commands.users, want_structured=True)
        if not result.ok:
            return None
        match result.payload:
            case StructuredList(items=items):
                rows = list(items)
            case StructuredSingle(item=item):
                inner = item.get("users")
                rows = inner if isinstance(inner, list) else [item]
            case _:
                # text output has no reliable user column
                return None
        users: set[str] = set()
        for row in rows:
            if isinstance(row, dict):
                value = decode_field(row, _USER_ALIASES).value
                if value:
                    users.add(value.lower())
        return users

    def _mutation(self, result: CommandResult) -> MutationResult:
        if result.ok:
            return MutationResult(ok=True, noop=self._is_already_applied(result))
        if not result.timed_out and self._is_already_applied(result):
            # non-zero exit, but the desired state already holds
            return MutationResult(ok=True, noop=True)
        if result.timed_out:
            return MutationResult(ok=False, error="timed out")
        error = result.stderr or (result.raw_lines[-1] if result.raw_lines else "")
        return MutationResult(ok=False, error=error or f"exit code {result.exit_code}")

    def _is_already_applied(self, result: CommandResult) -> bool:
        text = result.output
        return bool(text) and any(rx.search(text) for rx in self._already)

    def grant_admin(self, uid: str, owner: str) -> MutationResult:
        """Grant manage-users and manage-records on a container to owner."""
        command = self.commands.grant.format(
            owner=shlex.quote(owner), uid=shlex.quote(uid)
        )
        return self._mutation(self.cli.invoke(command))

    def transfer_ownership(
        self, uid: str, owner: str, *, recursive: bool, dry_run: bool = False
    ) -> MutationResult:
        """Force-transfer ownership of a container's records to owner."""
        command = self.commands.transfer.format(
            owner=shlex.quote(owner),
            uid=shlex.quote(uid),
            recursive=self.commands.recursive_flag if recursive else "",
            dry_run=self.commands.dry_run_flag if dry_run else "",
        )
        return self._mutation(self.cli.invoke(command))
