"""Root manifest updater and migrator.

After a successful install the root manifest is brought in line with what
was actually resolved.

Standard mode rewrites exact version pins of root dependencies whose
resolved version changed. Ranges (``^1.0.0``, ``>=1.0.0 <2.0.0``) are left
untouched: a pin is only rewritten when it cleans to an exact version.
``rostaller.toml`` and ``wally.toml`` roots are supported; ``pesde.toml``
roots are never rewritten.

Migration mode (``install --migrate`` from a wally or pesde root) writes a
fresh ``rostaller.toml`` holding every root dependency, grouped by
environment the same way the reader ungroups them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import tomli_w

from rostaller import config
from rostaller.core.identity import Environment, ResolvedPackage
from rostaller.core.tree import ResolutionTree
from rostaller.core.versions import clean_version
from rostaller.manifest import ManifestKind, ManifestRef, parse_toml

logger = logging.getLogger(__name__)

LATEST: str = "latest"

_ROSTALLER_GROUPS: tuple[str, ...] = (
    "dependencies",
    "shared_dependencies_overwrite",
    "server_dependencies_overwrite",
    "dev_dependencies",
)
_WALLY_GROUPS: tuple[str, ...] = (
    "dependencies",
    "server-dependencies",
    "dev-dependencies",
)
_DEFAULT_INDEXES: tuple[str, ...] = (config.DEFAULT_WALLY_INDEX, config.DEFAULT_PESDE_INDEX)


@dataclass
class VersionUpdate:
    """One rewritten version pin."""

    alias: str
    old_version: str
    new_version: str


# ---------------------------------------------------------------------------
# Group selection
# ---------------------------------------------------------------------------


def rostaller_group(package: ResolvedPackage) -> str:
    """``rostaller.toml`` table a root dependency belongs to."""
    if package.environment is Environment.DEV:
        return "dev_dependencies"
    if package.environment_override is Environment.SHARED:
        return "shared_dependencies_overwrite"
    if package.environment_override is Environment.SERVER:
        return "server_dependencies_overwrite"
    return "dependencies"


def wally_group(package: ResolvedPackage) -> str:
    """``wally.toml`` table a root dependency belongs to."""
    if package.environment is Environment.DEV:
        return "dev-dependencies"
    if package.environment_override is Environment.SERVER:
        return "server-dependencies"
    return "dependencies"


def _main_packages(tree: ResolutionTree) -> list[tuple[str, ResolvedPackage]]:
    return [
        (node.alias, node.package)
        for node in tree.resolved()
        if node.is_main_dependency and node.alias
    ]


def _sorted_groups(data: dict[str, Any], groups: tuple[str, ...]) -> dict[str, Any]:
    """Sort dependency tables by alias and drop empty dependency tables."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        if key in groups and isinstance(value, dict):
            if not value:
                continue
            value = dict(sorted(value.items()))
        result[key] = value
    return result


# ---------------------------------------------------------------------------
# Standard mode
# ---------------------------------------------------------------------------


def _changed_pin(old: Any, new_version: str) -> str | None:  # noqa: ANN401
    """The old pin if it is an exact version different from ``new_version``."""
    if not isinstance(old, str):
        return None
    cleaned = clean_version(old)
    if cleaned is None or cleaned == new_version:
        return None
    return old


def update_rostaller(data: dict[str, Any], tree: ResolutionTree) -> list[VersionUpdate]:
    """Rewrite changed exact pins of a ``rostaller.toml`` in place."""
    updates: list[VersionUpdate] = []
    for alias, package in _main_packages(tree):
        if package.provider.is_revision_based or not package.version or package.version == LATEST:
            continue
        entry = (data.get(rostaller_group(package)) or {}).get(alias)
        if not isinstance(entry, dict):
            continue
        old = _changed_pin(entry.get("version"), package.version)
        if old is None:
            continue
        entry["version"] = package.version
        updates.append(VersionUpdate(alias, old, package.version))
    return updates


def update_wally(data: dict[str, Any], tree: ResolutionTree) -> list[VersionUpdate]:
    """Rewrite changed exact pins of a ``wally.toml`` in place."""
    updates: list[VersionUpdate] = []
    for alias, package in _main_packages(tree):
        if package.provider.is_revision_based or not package.version or package.version == LATEST:
            continue
        group = data.get(wally_group(package)) or {}
        entry = group.get(alias)
        if not isinstance(entry, str) or "@" not in entry:
            continue
        old = _changed_pin(entry.split("@", 1)[1], package.version)
        if old is None:
            continue
        group[alias] = f"{package.scope}/{package.name}@{package.version}"
        updates.append(VersionUpdate(alias, old, package.version))
    return updates


# ---------------------------------------------------------------------------
# Migration mode
# ---------------------------------------------------------------------------


def _migrated_entry(package: ResolvedPackage) -> dict[str, Any]:
    entry: dict[str, Any] = {package.provider.value: f"{package.scope}/{package.name}"}
    if package.provider.is_revision_based:
        if package.rev:
            entry["rev"] = package.rev
    elif package.version:
        entry["version"] = package.version
    if package.index and package.index not in _DEFAULT_INDEXES:
        entry["index"] = package.index
    return entry


def migrate(source: dict[str, Any], tree: ResolutionTree) -> dict[str, Any]:
    """Build ``rostaller.toml`` data from the resolved root dependencies.

    The ``[package]`` table is carried over, with a wally ``realm`` renamed
    to ``environment``. ``[place]`` keys are renamed from the wally
    spelling (``shared-packages``) to the rostaller one
    (``shared_packages``).
    """
    data: dict[str, Any] = {}
    if isinstance(source.get("package"), dict):
        package = dict(source["package"])
        if "realm" in package and "environment" not in package:
            package["environment"] = package.pop("realm")
        data["package"] = package
    if isinstance(source.get("place"), dict):
        data["place"] = {key.replace("-", "_"): value for key, value in source["place"].items()}

    for group in _ROSTALLER_GROUPS:
        data[group] = {}
    for alias, package in _main_packages(tree):
        data[rostaller_group(package)][alias] = _migrated_entry(package)
    return _sorted_groups(data, _ROSTALLER_GROUPS)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def update_root_manifest(
    manifest: ManifestRef, tree: ResolutionTree, migrating: bool = False
) -> list[VersionUpdate]:
    """Update (or migrate) the root manifest after an install.

    Args:
        manifest: The root manifest the install read.
        tree: The finished resolution tree.
        migrating: Write a new ``rostaller.toml`` when the root is a wally
            or pesde manifest.

    Returns:
        The rewritten version pins. Empty when migrating or when nothing
        changed.

    Raises:
        ManifestError: If the root manifest cannot be read.
    """
    if migrating and manifest.kind is not ManifestKind.ROSTALLER:
        target = manifest.folder / config.ROSTALLER_MANIFEST
        logger.info("Migrating [%s] file to [%s]", manifest.kind.value, target.name)
        data = migrate(parse_toml(manifest.path), tree)
        target.write_text(tomli_w.dumps(data), encoding="utf-8")
        return []

    if manifest.kind is ManifestKind.PESDE:
        logger.debug("%s is never rewritten", manifest.kind.value)
        return []
    if not manifest.path.is_file():
        return []

    logger.debug("Updating %s file ...", manifest.kind.value)
    data = parse_toml(manifest.path)
    if manifest.kind is ManifestKind.WALLY:
        updates = update_wally(data, tree)
        groups = _WALLY_GROUPS
    else:
        updates = update_rostaller(data, tree)
        groups = _ROSTALLER_GROUPS

    if updates:
        manifest.path.write_text(tomli_w.dumps(_sorted_groups(data, groups)), encoding="utf-8")
    return updates
