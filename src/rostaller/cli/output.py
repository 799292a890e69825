"""Rich output formatting helpers for the rostaller CLI.

Provides the logging setup (a ``RichHandler`` on the root logger) and the
few summary lines the commands print through one shared console.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from rostaller.config import Settings
from rostaller.core.installer import InstallReport

console = Console()
err_console = Console(stderr=True)


def setup_logging(debug: bool) -> None:
    """Route all log records through rich. DEBUG when ``debug`` is set."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=debug, markup=False)],
        force=True,
    )
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.DEBUG if debug else logging.WARNING)


def print_install_summary(report: InstallReport) -> None:
    """Print ``Downloaded N packages[, F failed]``."""
    message = f"[bold green]INFO[/bold green] Downloaded {report.success} packages"
    if report.fail:
        message += f", [red]{report.fail} failed[/red]"
    console.print(message)


def print_updates(report: InstallReport) -> None:
    """Print the version pins rewritten in the root manifest."""
    if not report.updates:
        return
    console.print()
    console.print("Updated root manifest:")
    for update in report.updates:
        console.print(
            f" [green]{update.alias}[/green]: "
            f"[yellow]{update.old_version}[/yellow] -> [yellow]{update.new_version}[/yellow]"
        )


def print_error(prefix: str, message: object) -> None:
    err_console.print(f"[red]{prefix}[/red] [yellow]{escape(str(message))}[/yellow]", highlight=False)


def _mask(value: str) -> str:
    if not value:
        return "[dim]-[/dim]"
    return value[:4] + "*" * max(len(value) - 4, 4)


def print_settings(path: str, settings: Settings) -> None:
    """Print the config file location and the effective settings.

    Tokens are masked.
    """
    table = Table(title=f"rostaller config ({path})", show_header=True, header_style="bold")
    table.add_column("Key", style="bold")
    table.add_column("Value")

    for key, value in settings.to_dict().items():
        if key.endswith("_token"):
            shown = _mask(value)
        else:
            shown = escape(str(value))
        table.add_row(key, shown)
    if settings.type_exporter is None:
        table.add_row("type_exporter", "[dim]-[/dim]")

    console.print(table)
