"""Common CLI options for the CLI."""

import typer

ConfigOpt = typer.Option(
    None,
    "--config",
    "-c",
    help="JSON config file (default: $VAULTOPS_CONFIG or ~/.config/vaultops/config.json)",
    dir_okay=False,
)

ExecutableOpt = typer.Option(
    None,
    "--executable",
    help="Administrative CLI executable (default: keeper)",
)

TimeoutOpt = typer.Option(
    None,
    "--timeout",
    min=0,
    help="Per-command timeout in seconds (0 disables)",
)

VerboseOpt = typer.Option(
    False,
    "--verbose",
    "-v",
    help="Show debug logging, including every command that is run",
)

NameOpt = typer.Option(
    None,
    "--name",
    help="Regex filter on names",
)

OwnerOpt = typer.Option(
    None,
    "--owner",
    "-o",
    help="E-mail of the new owner",
)

ModeOpt = typer.Option(
    None,
    "--mode",
    "-m",
    case_sensitive=False,
    help="groups: discover from groups, containers: explicit list, saved: list from --from-file",
)

GroupOpt = typer.Option(
    [],
    "--group",
    "-g",
    help="Group name or UID. This is reusable.",
    show_default=False,
)

ContainerOpt = typer.Option(
    [],
    "--container",
    "-s",
    help="Shared folder name or UID. This is reusable.",
    show_default=False,
)

FromFileOpt = typer.Option(
    None,
    "--from-file",
    "-f",
    help="Container list saved by `resolve --output`",
    dir_okay=False,
)

RecursiveOpt = typer.Option(
    True,
    "--recursive/--no-recursive",
    help="Also transfer sub-folders and their records",
)

DryRunOpt = typer.Option(
    False,
    "--dry-run",
    help="Preview the transfer without changing anything",
)

YesOpt = typer.Option(False, "--yes", "-y", help="Skip confirmation prompts")

AllOpt = typer.Option(
    False,
    "--all",
    help="Take every listed group/container instead of showing the selection UI",
)

ConsoleMenuOpt = typer.Option(
    False,
    "--console-menu",
    help="Use a numbered console menu instead of the checkbox grid",
)

SaveConfigOpt = typer.Option(
    None,
    "--save-config",
    help="Write the chosen run parameters to this config file",
    dir_okay=False,
)

OutputOpt = typer.Option(
    None,
    "--output",
    help="Save the resolved container list to this file",
    dir_okay=False,
)
