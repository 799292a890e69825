"""Filesystem materialization of downloaded packages.

Archives are validated by signature, extracted into a staging folder next
to their final location and then renamed into place:

    <project>/<Packages>/_Index/<scope>_<name>@<version>/<name lower>/...

A single top-level directory inside the archive (GitHub zipballs wrap
everything in ``<owner>-<repo>-<sha>/``) is hoisted; otherwise the staging
folder itself becomes the package folder. Renames are retried on
transient failures.

All functions here are synchronous; the graph walker runs them through
``asyncio.to_thread``.
"""

from __future__ import annotations

import io
import json
import logging
import os
import shutil
import tarfile
import tempfile
import time
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from rostaller.config import PROJECT_JSON_NAME
from rostaller.core.identity import Environment
from rostaller.exceptions import ArchiveError
from rostaller.manifest import ManifestRef, detect_manifest, load_manifest, reader_for
from rostaller.registry.base import ArchiveFormat

logger = logging.getLogger(__name__)

RENAME_ATTEMPTS: int = 5
RENAME_DELAY: float = 0.2

_SIGNATURES: dict[ArchiveFormat, bytes] = {
    ArchiveFormat.ZIP: b"PK",
    ArchiveFormat.TAR_GZ: b"\x1f\x8b",
}


# ---------------------------------------------------------------------------
# Renaming
# ---------------------------------------------------------------------------


def rename_with_retry(
    source: Path,
    destination: Path,
    attempts: int = RENAME_ATTEMPTS,
    delay: float = RENAME_DELAY,
) -> bool:
    """Rename ``source`` to ``destination``, retrying transient failures.

    Returns:
        True on success. False once every attempt failed; the failure is
        logged and left to the caller to handle.
    """
    destination.parent.mkdir(parents=True, exist_ok=True)
    for attempt in range(1, attempts + 1):
        try:
            os.rename(source, destination)
            return True
        except OSError as exc:
            logger.debug("Rename %s -> %s failed (attempt %d): %s", source, destination, attempt, exc)
            if attempt < attempts:
                time.sleep(delay)
    logger.error("Failed to rename %s to %s after %d attempts", source, destination, attempts)
    return False


def remove_tree(path: Path) -> None:
    shutil.rmtree(path, ignore_errors=True)


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


def check_signature(data: bytes, archive_format: ArchiveFormat) -> None:
    """Reject payloads that are not archives of the expected format.

    Raises:
        ArchiveError: If the leading bytes do not match.
    """
    if not data.startswith(_SIGNATURES[archive_format]):
        raise ArchiveError("Failed to download release files")


def extract_archive(data: bytes, archive_format: ArchiveFormat, destination: Path) -> Path:
    """Extract an archive so its contents end up in ``destination``.

    Args:
        data: Archive bytes.
        archive_format: ZIP or gzip+tar.
        destination: Package folder to create. Must not exist yet.

    Returns:
        ``destination``.

    Raises:
        ArchiveError: On a bad signature, a corrupt archive or when the
            extracted folder cannot be moved into place.
    """
    check_signature(data, archive_format)
    destination.parent.mkdir(parents=True, exist_ok=True)
    staging = Path(tempfile.mkdtemp(prefix=".staging-", dir=destination.parent))
    try:
        try:
            if archive_format is ArchiveFormat.ZIP:
                with zipfile.ZipFile(io.BytesIO(data)) as archive:
                    archive.extractall(staging)
            else:
                with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as archive:
                    archive.extractall(staging, filter="data")
        except (zipfile.BadZipFile, tarfile.TarError, EOFError, OSError) as exc:
            raise ArchiveError(f"Failed to extract archive: {exc}") from exc

        entries = list(staging.iterdir())
        source = entries[0] if len(entries) == 1 and entries[0].is_dir() else staging
        if not rename_with_retry(source, destination):
            raise ArchiveError(f"Failed to move package into {destination}")
        return destination
    finally:
        remove_tree(staging)


def relocate(source: Path, destination: Path) -> None:
    """Move a package folder to another environment's index.

    Raises:
        ArchiveError: If the folder cannot be moved.
    """
    if destination.exists():
        remove_tree(destination)
    if not rename_with_retry(source, destination):
        raise ArchiveError(f"Failed to move {source} to {destination}")
    parent = source.parent
    if parent.exists() and not any(parent.iterdir()):
        parent.rmdir()


# ---------------------------------------------------------------------------
# Post-extraction inspection
# ---------------------------------------------------------------------------


@dataclass
class PackageContents:
    """What an extracted package says about itself.

    Attributes:
        manifest: The package's own manifest, if it ships one.
        data: Loaded manifest data.
        environment: Environment the package declares, if any.
        lib: Entry point relative to the package root.
        build_files: Build file globs for sync descriptor synthesis.
    """

    manifest: ManifestRef | None = None
    data: dict[str, Any] | None = None
    environment: Environment | None = None
    lib: str | None = None
    build_files: list[str] | None = None


def inspect_package(package_root: Path) -> PackageContents:
    """Read the manifest shipped inside an extracted package.

    Raises:
        ManifestError: If the package ships a malformed manifest.
    """
    ref = detect_manifest(package_root)
    if ref is None:
        return PackageContents()
    data = load_manifest(ref, is_root=False)
    reader = reader_for(ref.kind)
    return PackageContents(
        manifest=ref,
        data=data,
        environment=reader.package_environment(data),
        lib=reader.package_lib(data),
        build_files=reader.build_files(data),
    )


def rename_project(package_root: Path, name: str) -> None:
    """Rewrite the ``name`` of the package's ``default.project.json``."""
    path = package_root / PROJECT_JSON_NAME
    if not path.is_file():
        return
    try:
        project = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Malformed JSON in %s: %s", path, exc)
        return
    if not isinstance(project, dict) or project.get("name") == name:
        return
    logger.debug("Renaming %s", path)
    project["name"] = name
    path.write_text(json.dumps(project, indent="\t"), encoding="utf-8")
