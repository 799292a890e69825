"""``rostaller install`` --- Install every dependency of the project.

Reads the root manifest (``rostaller.toml``, ``pesde.toml`` or
``wally.toml``), resolves and downloads the whole dependency graph, writes
linkage files and ``rostaller.lock`` and updates pinned versions in the
root manifest.

With ``--locked`` only the packages recorded in ``rostaller.lock`` are
installed. With ``--migrate`` a wally or pesde root is converted to a
``rostaller.toml``.

Exit Codes:
    0 --- Install finished (individual packages may have failed).
    1 --- Fatal error: missing or invalid manifest, missing lock file,
          placement or linkage error.
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click

from rostaller.config import load_settings
from rostaller.core.installer import install, install_from_lock
from rostaller.exceptions import RostallerError


def _run_async(coro: object) -> object:
    """Run an async coroutine in a synchronous context.

    Args:
        coro: Awaitable coroutine to execute.

    Returns:
        The coroutine's return value.
    """
    return asyncio.run(coro)  # type: ignore[arg-type]


@click.command("install")
@click.option("--locked", is_flag=True, help="Install exactly the packages in rostaller.lock.")
@click.option("--migrate", is_flag=True, help="Write a rostaller.toml from a wally or pesde root.")
@click.option("--verbose", "-v", is_flag=True, help="Show debug output.")
@click.option(
    "--path", "-p",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    help="Project directory (default: current directory).",
)
def install_command(locked: bool, migrate: bool, verbose: bool, path: str) -> None:
    """Install all dependencies of the project.

    Exit code 0 when the install ran to completion, 1 on a fatal error.
    """
    from rostaller.cli.output import (
        print_error,
        print_install_summary,
        print_updates,
        setup_logging,
    )

    if locked and migrate:
        raise click.UsageError("--locked and --migrate cannot be combined")

    settings = load_settings()
    setup_logging(verbose or settings.debug)
    project_root = Path(path).resolve()

    try:
        if locked:
            report = _run_async(install_from_lock(project_root, settings))
        else:
            report = _run_async(install(project_root, settings, migrating=migrate))
    except RostallerError as exc:
        print_error("Failed to install packages:", exc)
        sys.exit(1)

    print_updates(report)  # type: ignore[arg-type]
    print_install_summary(report)  # type: ignore[arg-type]
