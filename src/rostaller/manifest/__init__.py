"""Manifest discovery, loading and dispatch to format readers.

Public API::

    from rostaller.manifest import find_root_manifest, load_manifest, read_dependencies
    ref = find_root_manifest(project_root)
    data = load_manifest(ref, is_root=True)
    descriptors = read_dependencies(ref, is_root=True, data=data)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from rostaller.core.context import Placement
from rostaller.core.identity import DependencyDescriptor
from rostaller.exceptions import PlacementError
from rostaller.manifest.base import ManifestKind, ManifestReader, ManifestRef
from rostaller.manifest.pesde_toml import PesdeManifestReader
from rostaller.manifest.rostaller_toml import RostallerManifestReader
from rostaller.manifest.validator import parse_toml, validate_manifest
from rostaller.manifest.wally_toml import WallyManifestReader

logger = logging.getLogger(__name__)

READERS: dict[ManifestKind, ManifestReader] = {
    ManifestKind.ROSTALLER: RostallerManifestReader(),
    ManifestKind.PESDE: PesdeManifestReader(),
    ManifestKind.WALLY: WallyManifestReader(),
}

_PLACE_HINT = """
To link packages correctly you must declare where each
packages folder is placed in the Roblox DataModel.

This typically looks like:

[place]
{shared} = "{shared_value}"
{server} = "{server_value}"
{dev} = "{dev_value}"
"""


def reader_for(kind: ManifestKind) -> ManifestReader:
    return READERS[kind]


def detect_manifest(folder: Path) -> ManifestRef | None:
    """Find the highest-priority manifest in ``folder``, if any."""
    for kind in ManifestKind:
        path = folder / kind.value
        if path.is_file():
            return ManifestRef(path=path, kind=kind)
    return None


def find_root_manifest(project_root: Path, force_rostaller: bool = False) -> ManifestRef:
    """Locate the project's root manifest.

    Prefers ``rostaller.toml``, then ``pesde.toml``, then ``wally.toml``.
    When none exists (or ``force_rostaller`` is set) the ``rostaller.toml``
    reference is returned and loading it reports the missing file.
    """
    if not force_rostaller:
        found = detect_manifest(project_root)
        if found is not None:
            return found
    return ManifestRef(path=project_root / ManifestKind.ROSTALLER.value, kind=ManifestKind.ROSTALLER)


def load_manifest(ref: ManifestRef, is_root: bool = False) -> dict[str, Any]:
    """Parse and validate a manifest.

    Raises:
        ManifestError: If the file is missing, malformed or invalid.
    """
    data = parse_toml(ref.path)
    return validate_manifest(reader_for(ref.kind), data, ref.path, is_root=is_root)


def read_dependencies(
    ref: ManifestRef, is_root: bool = False, data: dict[str, Any] | None = None
) -> list[DependencyDescriptor]:
    """Return the dependencies declared by a manifest.

    Args:
        ref: Manifest to read.
        is_root: Include root-only groups (dev dependencies).
        data: Already loaded manifest data, to avoid reading twice.
    """
    if data is None:
        data = load_manifest(ref, is_root=is_root)
    logger.debug("Mapping %s", ref.folder.name)
    return reader_for(ref.kind).read_dependencies(data, is_root=is_root)


def load_placement(
    ref: ManifestRef, data: dict[str, Any], ignore_wally_structure: bool = False
) -> Placement:
    """Read the root manifest's placement paths.

    Args:
        ref: The root manifest.
        data: Its loaded data.
        ignore_wally_structure: Use rostaller placement keys for a wally
            root (set while migrating).

    Raises:
        PlacementError: If any placement path is empty.
    """
    placement = reader_for(ref.kind).placement(data, ignore_wally_structure)
    if placement.shared_packages and placement.server_packages and placement.dev_packages:
        return placement

    defaults = reader_for(ref.kind).placement({}, ignore_wally_structure)
    if placement.use_wally_folder_structure:
        keys = ("shared-packages", "server-packages", "dev-packages")
    else:
        keys = ("shared_packages", "server_packages", "dev_packages")
    raise PlacementError(
        _PLACE_HINT.format(
            shared=keys[0],
            server=keys[1],
            dev=keys[2],
            shared_value=defaults.shared_packages,
            server_value=defaults.server_packages,
            dev_value=defaults.dev_packages,
        ).strip()
    )


__all__ = [
    "ManifestKind",
    "ManifestReader",
    "ManifestRef",
    "READERS",
    "detect_manifest",
    "find_root_manifest",
    "load_manifest",
    "load_placement",
    "parse_toml",
    "read_dependencies",
    "reader_for",
]
