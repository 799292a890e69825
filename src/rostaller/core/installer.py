"""Install pipelines: full install and lock-restricted install.

Both pipelines share the same stages::

    clear package folders
      -> resolve (root manifest graph, or lock file entries)
      -> linkage files
      -> sourcemap and type export (best-effort)
      -> lock file (full install only)
      -> root manifest update (full install, only when nothing failed)

Fatal errors (manifest, placement, linkage, missing lock file) propagate to
the caller. Per-package failures only show up in the returned report.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path

import httpx

from rostaller import config
from rostaller.config import Settings
from rostaller.core import linkage, materialize, sourcemap
from rostaller.core.context import InstallContext
from rostaller.core.lockfile import Lockfile
from rostaller.core.updater import VersionUpdate, update_root_manifest
from rostaller.core.walker import GraphWalker
from rostaller.exceptions import LockfileError, ManifestError
from rostaller.manifest import ManifestRef, find_root_manifest
from rostaller.registry.http_client import HttpFetcher

logger = logging.getLogger(__name__)


@dataclass
class InstallReport:
    """Summary of one install run.

    Attributes:
        success: Packages resolved and placed.
        fail: Packages that failed.
        linkage_files: Number of redirect files written.
        lockfile: Path of the written lock file, if one was written.
        updates: Version pins rewritten in the root manifest.
        manifest_updated: Whether the root manifest step ran.
        elapsed: Wall-clock seconds for the whole run.
    """

    success: int = 0
    fail: int = 0
    linkage_files: int = 0
    lockfile: Path | None = None
    updates: list[VersionUpdate] = field(default_factory=list)
    manifest_updated: bool = False
    elapsed: float = 0.0


def _root_manifest(project_root: Path) -> ManifestRef:
    manifest = find_root_manifest(project_root)
    if not manifest.path.is_file():
        raise ManifestError(f"[{manifest.path.name}] does not exist")
    return manifest


def clear_package_folders(context: InstallContext) -> None:
    """Remove every environment's packages folder from a previous run."""
    logger.debug("Clearing package directories ...")
    for folder in context.all_packages_folders():
        if folder.exists():
            materialize.remove_tree(folder)
    logger.info("Cleared package directories")


async def _link(context: InstallContext, report: InstallReport) -> None:
    written = await asyncio.to_thread(linkage.generate, context)
    report.linkage_files = len(written)
    if context.tree.resolved():
        project_file = await asyncio.to_thread(linkage.write_temp_project, context)
        await asyncio.to_thread(sourcemap.generate_types, context, project_file)


def _fetcher(settings: Settings, transport: httpx.AsyncBaseTransport | None) -> HttpFetcher:
    return HttpFetcher(max_connections=settings.max_concurrent_downloads, transport=transport)


async def install(
    project_root: Path,
    settings: Settings,
    migrating: bool = False,
    transport: httpx.AsyncBaseTransport | None = None,
) -> InstallReport:
    """Resolve the root manifest's dependency graph and install it.

    Args:
        project_root: Project directory holding the root manifest.
        settings: Effective user settings.
        migrating: Write a ``rostaller.toml`` from a wally or pesde root.
        transport: Optional httpx transport, for tests.

    Returns:
        The run's ``InstallReport``.

    Raises:
        ManifestError: If the root manifest is missing or invalid.
        PlacementError: If the root manifest's placement is incomplete.
        LinkageError: If a dependency edge crosses environments the wrong way.
    """
    started = time.monotonic()
    manifest = _root_manifest(project_root)
    report = InstallReport()

    async with _fetcher(settings, transport) as http:
        context = InstallContext(project_root, settings, http)
        await asyncio.to_thread(clear_package_folders, context)

        logger.debug("Downloading dependencies from manifest files ...")
        await GraphWalker(context).resolve_root(manifest, migrating=migrating)

    await _link(context, report)

    lockfile_path = context.project_root / config.LOCKFILE_NAME
    logger.debug("Generating %s file ...", config.LOCKFILE_NAME)
    Lockfile.from_tree(context.tree).write(lockfile_path)
    report.lockfile = lockfile_path

    if context.stats.fail == 0:
        report.updates = await asyncio.to_thread(
            update_root_manifest, manifest, context.tree, migrating
        )
        report.manifest_updated = True
    else:
        logger.debug(
            "Some packages failed to install, root %s file will not be updated",
            manifest.path.name,
        )

    report.success = context.stats.success
    report.fail = context.stats.fail
    report.elapsed = time.monotonic() - started
    logger.debug("Time passed: %.2f seconds", report.elapsed)
    return report


async def install_from_lock(
    project_root: Path,
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> InstallReport:
    """Install exactly the packages recorded in ``rostaller.lock``.

    Sub-manifests are not re-read; the dependency edges come from the lock
    file. The lock file and the root manifest are left untouched.

    Raises:
        ManifestError: If the root manifest is missing or invalid.
        LockfileError: If the lock file is missing or cannot be decoded.
        LinkageError: If a locked edge crosses environments the wrong way.
    """
    started = time.monotonic()
    manifest = _root_manifest(project_root)
    lockfile_path = project_root / config.LOCKFILE_NAME

    logger.debug("Checking %s file ...", config.LOCKFILE_NAME)
    if not lockfile_path.is_file():
        raise LockfileError(f"Unable to locate [{config.LOCKFILE_NAME}] file")
    lockfile = Lockfile.read(lockfile_path)
    for problem in lockfile.validate():
        logger.warning("%s", problem)

    report = InstallReport()
    async with _fetcher(settings, transport) as http:
        context = InstallContext(project_root, settings, http)
        await asyncio.to_thread(clear_package_folders, context)

        logger.debug("Downloading dependencies from %s file ...", config.LOCKFILE_NAME)
        await GraphWalker(context).resolve_lock(lockfile, manifest)

    await _link(context, report)

    report.success = context.stats.success
    report.fail = context.stats.fail
    report.elapsed = time.monotonic() - started
    return report
