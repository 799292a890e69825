"""``rostaller config`` --- Show or change user settings.

Usage::

    rostaller config                             # Show the effective settings
    rostaller config --set github_token ghp_...  # Store a GitHub token
    rostaller config --set max_concurrent_downloads 4
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from rostaller.config import DEFAULT_CONFIG_PATH, load_settings, set_setting


@click.command("config")
@click.option(
    "--set", "assignment",
    nargs=2,
    type=str,
    default=None,
    metavar="KEY VALUE",
    help="Write KEY = VALUE to the config file.",
)
@click.option(
    "--file", "config_file",
    type=click.Path(dir_okay=False),
    default=None,
    help=f"Config file to use (default: {DEFAULT_CONFIG_PATH}).",
)
def config_command(assignment: tuple[str, str] | None, config_file: str | None) -> None:
    """Show the config file location and the effective settings."""
    from rostaller.cli.output import console, print_error, print_settings

    path = Path(config_file) if config_file else DEFAULT_CONFIG_PATH

    if assignment:
        key, value = assignment
        try:
            set_setting(key, value, path)
        except ValueError as exc:
            print_error("Unable to update config file:", exc)
            sys.exit(1)
        console.print(f"[bold green]INFO[/bold green] Set {key} in {path}")

    print_settings(str(path), load_settings(path))
