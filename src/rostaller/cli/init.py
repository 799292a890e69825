"""``rostaller init`` --- Create a starter ``rostaller.toml``."""

from __future__ import annotations

import sys
from pathlib import Path

import click

from rostaller.config import ROSTALLER_MANIFEST

STARTER_MANIFEST = """\
[package]
environment = "shared"

[place]
shared_packages = "game.ReplicatedStorage.sharedPackages"
server_packages = "game.ServerScriptService.serverPackages"
dev_packages = "game.ReplicatedStorage.devPackages"

[dependencies]

[server_dependencies_overwrite]

[dev_dependencies]
"""


@click.command("init")
@click.option(
    "--path", "-p",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    help="Project directory (default: current directory).",
)
def init_command(path: str) -> None:
    """Create a new rostaller.toml in the project directory.

    An existing manifest is left untouched.
    """
    from rostaller.cli.output import console, print_error

    target = Path(path).resolve() / ROSTALLER_MANIFEST
    if target.exists():
        console.print(f"[bold green]INFO[/bold green] File {ROSTALLER_MANIFEST} already exists in {target.parent}")
        return

    try:
        target.write_text(STARTER_MANIFEST, encoding="utf-8")
    except OSError as exc:
        print_error(f"Failed to create {ROSTALLER_MANIFEST} file:", exc)
        sys.exit(1)
    console.print(f"[bold green]INFO[/bold green] Created {ROSTALLER_MANIFEST} file in {target.parent}")
