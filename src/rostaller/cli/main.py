"""rostaller CLI --- A package manager for Roblox and Luau projects.

Entry point for the ``rostaller`` command-line tool. Registers all
subcommands under a single Click group.

Commands:
    install --- Resolve, download and link every dependency.
    init    --- Create a starter rostaller.toml.
    config  --- Show or change user settings.

Usage::

    rostaller install                  # Full install from the root manifest
    rostaller install --locked         # Reproduce rostaller.lock exactly
    rostaller install --migrate        # Convert wally.toml/pesde.toml
    rostaller init
    rostaller config --set github_token ghp_...
"""

from __future__ import annotations

import click

from rostaller import __version__
from rostaller.cli.config_cmd import config_command
from rostaller.cli.init import init_command
from rostaller.cli.install import install_command


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """rostaller: Install Roblox packages from GitHub, pesde and wally.

    Resolves the dependency graph declared in rostaller.toml (or a
    wally.toml / pesde.toml), places each package in the right
    environment and links packages to one another.
    """


# Register all subcommands
cli.add_command(install_command)
cli.add_command(init_command)
cli.add_command(config_command)
