"""Application context management for the CLI."""

import shutil
from dataclasses import dataclass, replace
from pathlib import Path

from vaultops.cli.common.exits import die
from vaultops.core.adapters.vault import VaultAdapter
from vaultops.core.config import ConfigError, Settings, load_settings
from vaultops.core.run_context import RunContext


@dataclass
class VaultAppContext:
    """Application context holding settings, run context and vault adapter."""

    config_path: Path | None
    settings: Settings
    run: RunContext
    adapter: VaultAdapter


def build_vault_context(
    config_path: Path | None,
    *,
    executable: str | None = None,
    timeout: float | None = None,
) -> VaultAppContext:
    """Build and return the application context for vault commands.

    Args:
        config_path: Optional config file; defaults are resolved by load_settings.
        executable: Override for the administrative CLI executable.
        timeout: Override for the per-command timeout in seconds.

    Returns:
        VaultAppContext: Context with resolved settings and a ready adapter.
    """
    try:
        settings = load_settings(config_path)
    except ConfigError as exc:
        die(str(exc), code=1)

    if executable:
        settings = replace(settings, executable=executable)
    if timeout is not None:
        settings = replace(settings, timeout=timeout)

    if shutil.which(settings.executable) is None:
        die(
            f"Administrative CLI '{settings.executable}' not found. "
            "Install it or point --executable / VAULTOPS_EXECUTABLE at it.",
            code=1,
        )

    run = RunContext(executable=settings.executable, timeout=settings.timeout)
    adapter = VaultAdapter.from_settings(settings, run)
    return VaultAppContext(
        config_path=config_path, settings=settings, run=run, adapter=adapter
    )
