"""External tools run after linkage: the sourcemap generator and type exporter.

Both tools are best-effort. A missing executable or a non-zero exit status
is logged at DEBUG and the install carries on. ``run_tool`` therefore
never raises; callers inspect the returned ``ToolResult`` if they care.

Sequence::

    rojo sourcemap .temp-rostaller.project.json --output .temp-rostaller.sourcemap.json
    <type_exporter> .temp-rostaller.sourcemap.json Packages/
    <type_exporter> .temp-rostaller.sourcemap.json ServerPackages/
    ...

The temporary project and sourcemap files are removed afterwards.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

from rostaller import config
from rostaller.core.context import InstallContext

logger = logging.getLogger(__name__)


@dataclass
class ToolResult:
    """Outcome of one external tool invocation.

    Attributes:
        args: The command line that was run.
        returncode: Exit status, or None if the tool could not be started.
        stdout: Captured standard output.
        stderr: Captured standard error, or the start-up error message.
    """

    args: list[str]
    returncode: int | None
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def run_tool(args: list[str], cwd: Path) -> ToolResult:
    """Run an external tool to completion without raising."""
    logger.debug("Running %s", " ".join(args))
    try:
        completed = subprocess.run(
            args, capture_output=True, text=True, cwd=cwd, check=False,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("Could not run %s: %s", args[0], exc)
        return ToolResult(args=args, returncode=None, stderr=str(exc))

    result = ToolResult(
        args=args,
        returncode=completed.returncode,
        stdout=completed.stdout,
        stderr=completed.stderr,
    )
    if not result.ok:
        logger.debug("%s exited with %d: %s", args[0], completed.returncode, completed.stderr[:500])
    return result


def generate_sourcemap(context: InstallContext, project_file: Path) -> ToolResult:
    generator = context.settings.sourcemap_generator
    logger.debug("Creating %s file ...", config.TEMP_SOURCEMAP)
    return run_tool(
        [generator, "sourcemap", project_file.name, "--output", config.TEMP_SOURCEMAP],
        cwd=context.project_root,
    )


def export_types(context: InstallContext) -> list[ToolResult]:
    """Run the configured type exporter over every existing packages folder."""
    exporter = context.settings.type_exporter
    if not exporter:
        return []
    logger.debug("Adding types to %s files ...", config.LINKAGE_EXTENSION)
    results = []
    for folder in context.all_packages_folders():
        if folder.is_dir():
            results.append(
                run_tool([exporter, config.TEMP_SOURCEMAP, f"{folder.name}/"], cwd=context.project_root)
            )
    return results


def cleanup(context: InstallContext) -> None:
    for name in (config.TEMP_PROJECT_JSON, config.TEMP_SOURCEMAP):
        logger.debug("Removing %s file ...", name)
        (context.project_root / name).unlink(missing_ok=True)


def generate_types(context: InstallContext, project_file: Path) -> list[ToolResult]:
    """Generate the sourcemap, export types, then remove the temporary files.

    Args:
        context: The finished install run.
        project_file: Temporary project descriptor written by the linkage
            generator.

    Returns:
        Results of every tool invocation, in order.
    """
    try:
        results = [generate_sourcemap(context, project_file)]
        if results[0].ok:
            results.extend(export_types(context))
        return results
    finally:
        cleanup(context)
