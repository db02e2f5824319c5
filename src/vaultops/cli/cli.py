"""CLI application for vault shared-folder ownership handover."""

import typer

from vaultops.cli.commands.sharedfolders import sf_app

app = typer.Typer(
    help="vaultops - bulk shared-folder ownership handover for password vaults",
    no_args_is_help=True,
)

app.add_typer(
    sf_app,
    name="sf",
    help="Discover shared folders and transfer their ownership.",
)


if __name__ == "__main__":
    app()
