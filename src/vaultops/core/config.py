"""Configuration and saved container lists.

Settings are resolved in this order: built-in defaults, a JSON config file,
then environment overrides. CLI options are applied on top by the caller.

A config file may also carry the parameters of a run (new owner, mode,
selections) so the same handover can be repeated unattended. Container
lists resolved from groups can be saved separately together with the time
they were captured, because such a list goes stale as the vault changes.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

from vaultops.core.adapters.commander import DEFAULT_FLAG_REJECTION
from vaultops.core.entities import NamedEntity, RunMode
from vaultops.core.run_context import SetupError


class ConfigError(SetupError):
    """Raised when a config or saved list file cannot be used."""


_CONFIG_ENV = "VAULTOPS_CONFIG"
_EXECUTABLE_ENV = "VAULTOPS_EXECUTABLE"
_TIMEOUT_ENV = "VAULTOPS_TIMEOUT"


@dataclass(frozen=True)
class CommandTemplates:
    """
    Command lines for the administrative CLI verbs.

    `{owner}`, `{uid}`, `{recursive}` and `{dry_run}` are substituted per call.
    Listing commands are tried in order until one yields entities.
    """

    group_lists: tuple[str, ...] = ("list-team", "enterprise-info --teams")
    container_lists: tuple[str, ...] = ("list-sf", "lsf")
    detail: str = "get {uid}"
    grant: str = (
        "share-folder --action grant --email {owner}"
        " --manage-users on --manage-records on {uid}"
    )
    transfer: str = (
        "share-record --action owner --email {owner} --force"
        " {recursive} {dry_run} {uid}"
    )
    users: str = "enterprise-info --users"
    recursive_flag: str = "--recursive"
    dry_run_flag: str = "--dry-run"


@dataclass(frozen=True)
class Settings:
    """Resolved tool settings plus optional saved run parameters."""

    executable: str = "keeper"
    timeout: float = 300.0
    stale_after_hours: float = 24.0
    flag_rejection: str = DEFAULT_FLAG_REJECTION
    already_applied: tuple[str, ...] = (
        r"\balready\b",
        r"is the owner",
        r"nothing to (change|update)",
    )
    commands: CommandTemplates = field(default_factory=CommandTemplates)

    owner: str | None = None
    mode: RunMode | None = None
    recursive: bool = True
    groups: tuple[NamedEntity, ...] = ()
    containers: tuple[NamedEntity, ...] = ()


@dataclass(frozen=True)
class SavedContainers:
    """A container list captured by an earlier group resolution."""

    captured_at: datetime | None
    containers: tuple[NamedEntity, ...]
    groups: tuple[NamedEntity, ...] = ()


def default_config_path() -> Path:
    """Return the per-user config path (XDG aware)."""
    xdg = os.getenv("XDG_CONFIG_HOME")
    base = Path(xdg) if xdg else Path.home() / ".config"
    return base / "vaultops" / "config.json"


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigError(f"File not found: {path}") from exc
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Cannot read {path}: {exc}") from exc


def parse_entities(raw: Any, what: str) -> tuple[NamedEntity, ...]:
    """Parse a list of `{"name": ..., "uid": ...}` objects."""
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ConfigError(f"'{what}' must be a list of objects with name and uid.")
    out: list[NamedEntity] = []
    for item in raw:
        if not isinstance(item, Mapping) or not str(item.get("uid") or "").strip():
            raise ConfigError(f"Every '{what}' entry needs a non-empty uid: {item!r}")
        uid = str(item["uid"]).strip()
        out.append(NamedEntity(name=str(item.get("name") or uid), uid=uid))
    return tuple(out)


def _entities_json(entities: tuple[NamedEntity, ...] | list[NamedEntity]) -> list[dict]:
    return [{"name": e.name, "uid": e.uid} for e in entities]


def _parse_commands(raw: Any) -> CommandTemplates:
    if raw is None:
        return CommandTemplates()
    if not isinstance(raw, Mapping):
        raise ConfigError("'commands' must be an object.")
    known = {f.name for f in fields(CommandTemplates)}
    unknown = set(raw) - known
    if unknown:
        raise ConfigError(f"Unknown command templates: {', '.join(sorted(unknown))}")
    values: dict[str, Any] = {}
    for key, value in raw.items():
        if key in ("group_lists", "container_lists"):
            if isinstance(value, str):
                value = [value]
            if not isinstance(value, list) or not value:
                raise ConfigError(f"'commands.{key}' must be a non-empty list.")
            values[key] = tuple(str(v) for v in value)
        else:
            values[key] = str(value)
    return CommandTemplates(**values)


def settings_from_mapping(data: Mapping[str, Any]) -> Settings:
    """Build Settings from a decoded config document."""
    if not isinstance(data, Mapping):
        raise ConfigError("Config file must contain a JSON object.")

    mode = data.get("mode")
    try:
        run_mode = RunMode(mode) if mode else None
    except ValueError as exc:
        choices = ", ".join(m.value for m in RunMode)
        raise ConfigError(
            f"Invalid mode '{mode}' (expected one of: {choices})"
        ) from exc

    try:
        timeout = float(data.get("timeout", Settings.timeout))
        stale = float(data.get("stale_after_hours", Settings.stale_after_hours))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid number in config: {exc}") from exc
    if timeout < 0:
        raise ConfigError(f"'timeout' must not be negative: {timeout}")

    already = data.get("already_applied")
    return Settings(
        executable=str(data.get("executable") or Settings.executable),
        timeout=timeout,
        stale_after_hours=stale,
        flag_rejection=str(data.get("flag_rejection") or DEFAULT_FLAG_REJECTION),
        already_applied=tuple(already) if already else Settings.already_applied,
        commands=_parse_commands(data.get("commands")),
        owner=data.get("owner") or None,
        mode=run_mode,
        recursive=bool(data.get("recursive", True)),
        groups=parse_entities(data.get("groups"), "groups"),
        containers=parse_entities(data.get("containers"), "containers"),
    )


def _apply_env(settings: Settings) -> Settings:
    """Apply environment overrides; invalid numbers keep the configured value."""
    executable = os.getenv(_EXECUTABLE_ENV)
    if executable:
        settings = replace(settings, executable=executable)
    raw_timeout = os.getenv(_TIMEOUT_ENV)
    if raw_timeout:
        try:
            settings = replace(settings, timeout=max(float(raw_timeout), 0.0))
        except ValueError:
            pass
    return settings


def load_settings(path: Path | None = None) -> Settings:
    """
    Load settings from a config file and the environment.

    Args:
        path: Explicit config file. Must exist when given. Without it,
              `VAULTOPS_CONFIG` or the default per-user path is used if present.

    Raises:
        ConfigError: If the file is unreadable or invalid.
    """
    if path is None:
        env_path = os.getenv(_CONFIG_ENV)
        if env_path:
            path = Path(env_path)
        elif default_config_path().exists():
            path = default_config_path()

    settings = settings_from_mapping(_read_json(path)) if path else Settings()
    return _apply_env(settings)


def save_settings(settings: Settings, path: Path) -> None:
    """Write settings (including run parameters) as JSON."""
    defaults = CommandTemplates()
    commands = {
        f.name: list(v) if isinstance(v, tuple) else v
        for f in fields(CommandTemplates)
        if (v := getattr(settings.commands, f.name)) != getattr(defaults, f.name)
    }
    payload: dict[str, Any] = {
        "executable": settings.executable,
        "timeout": settings.timeout,
        "stale_after_hours": settings.stale_after_hours,
        "owner": settings.owner,
        "mode": settings.mode.value if settings.mode else None,
        "recursive": settings.recursive,
        "groups": _entities_json(settings.groups),
        "containers": _entities_json(settings.containers),
    }
    if commands:
        payload["commands"] = commands
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def save_containers(
    path: Path,
    containers: list[NamedEntity] | tuple[NamedEntity, ...],
    *,
    groups: list[NamedEntity] | tuple[NamedEntity, ...] = (),
    captured_at: datetime | None = None,
) -> None:
    """Persist a resolved container list with its capture time."""
    stamp = captured_at or datetime.now(timezone.utc)
    payload = {
        "captured_at": stamp.isoformat(),
        "groups": _entities_json(groups),
        "containers": _entities_json(containers),
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def load_saved_containers(path: Path) -> SavedContainers:
    """
    Load a container list written by `save_containers`.

    A bare JSON list of containers is accepted too; its capture time is unknown.
    """
    data = _read_json(path)
    if isinstance(data, list):
        return SavedContainers(
            captured_at=None, containers=parse_entities(data, "containers")
        )
    if not isinstance(data, Mapping):
        raise ConfigError(f"{path} does not contain a container list.")

    captured_at = None
    raw_stamp = data.get("captured_at")
    if raw_stamp:
        try:
            captured_at = datetime.fromisoformat(str(raw_stamp))
        except ValueError as exc:
            raise ConfigError(f"Invalid captured_at in {path}: {raw_stamp!r}") from exc
        if captured_at.tzinfo is None:
            captured_at = captured_at.replace(tzinfo=timezone.utc)

    return SavedContainers(
        captured_at=captured_at,
        containers=parse_entities(data.get("containers"), "containers"),
        groups=parse_entities(data.get("groups"), "groups"),
    )
