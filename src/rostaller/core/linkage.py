"""Linkage file generator --- the ``.luau`` redirect files packages require.

Every root-visible package gets a redirect file in its environment's
packages folder, named after its alias::

    Packages/Foo.luau
        return require(script.Parent._Index["scope_foo@1.0.0"]["foo"])

Every dependency edge gets a redirect file inside the consumer's own
package folder, so that ``require(script.Parent.Bar)`` works from inside
the consumer. The reference path depends on where the two packages live:

- same environment: a sibling-relative reference through ``_Index``,
- shared dependency of a server or dev consumer: through the shared
  packages placement (``game.ReplicatedStorage.sharedPackages``),
- server dependency of a dev consumer: through the server packages
  placement,
- anything else cannot be expressed at runtime and is a ``LinkageError``.

pesde packages expect their dependencies in ``roblox_packages`` (or
``roblox_server_packages``) inside the package itself, which puts the
redirect files two levels deeper.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

from rostaller import config
from rostaller.core.context import InstallContext, Placement
from rostaller.core.identity import Environment, Provider, ResolvedPackage
from rostaller.core.tree import TreeNode
from rostaller.exceptions import LinkageError

logger = logging.getLogger(__name__)

_INIT_RE = re.compile(r"/?init\.luau?$")
_EXTENSION_RE = re.compile(r"\.luau?$")

PESDE_PACKAGES_FOLDER: str = "roblox_packages"
PESDE_SERVER_PACKAGES_FOLDER: str = "roblox_server_packages"


# ---------------------------------------------------------------------------
# Reference paths
# ---------------------------------------------------------------------------


def update_link(link: str, lib: str | None) -> str:
    """Append a package's entry point to a require path.

    A trailing ``init.lua``/``init.luau`` is dropped (the folder itself is
    the module) and every remaining segment is appended without its
    extension, e.g. ``src/Server.luau`` becomes ``.src.Server``.
    """
    if not lib:
        return link
    for segment in _INIT_RE.sub("", lib).split("/"):
        if segment:
            link += "." + _EXTENSION_RE.sub("", segment)
    return link


def _index_reference(package: ResolvedPackage) -> str:
    return f'["{package.identity.folder_name()}"]["{package.name.lower()}"]'


def root_link(package: ResolvedPackage) -> str:
    """Require path of a root redirect file, relative to the packages folder."""
    link = f"script.Parent.{config.INDEX_FOLDER}{_index_reference(package)}"
    return update_link(link, package.lib)


def dependency_link(
    consumer: ResolvedPackage,
    consumer_alias: str | None,
    dependency: ResolvedPackage,
    dependency_alias: str | None,
    placement: Placement,
) -> str:
    """Require path from ``consumer`` to ``dependency``.

    Raises:
        LinkageError: If ``consumer``'s environment cannot see
            ``dependency``'s environment.
    """
    reference = _index_reference(dependency)
    if dependency.environment is consumer.environment:
        if consumer.provider is Provider.PESDE:
            link = f"script.Parent.Parent.Parent.Parent{reference}"
        else:
            link = f"script.Parent.Parent{reference}"
    elif consumer.environment.can_see(dependency.environment):
        base = placement.for_environment(dependency.environment)
        link = f"{base}.{config.INDEX_FOLDER}{reference}"
    else:
        raise LinkageError(
            f"{consumer_alias or consumer.name} ({consumer.identity.folder_name()}) in "
            f'"{consumer.environment.value}" environment cannot access '
            f"{dependency_alias or dependency.name} ({dependency.identity.folder_name()}) in "
            f'"{dependency.environment.value}" environment'
        )
    return update_link(link, dependency.lib)


def _module_source(link: str) -> str:
    return f"return require({link})\n"


# ---------------------------------------------------------------------------
# File generation
# ---------------------------------------------------------------------------


def dependency_folder(
    context: InstallContext, consumer: ResolvedPackage, dependency: ResolvedPackage
) -> Path:
    """Folder receiving the redirect file for one of ``consumer``'s edges."""
    if consumer.provider is Provider.PESDE:
        root = context.package_root(consumer.identity, consumer.environment)
        if dependency.environment is Environment.SERVER:
            return root / PESDE_SERVER_PACKAGES_FOLDER
        return root / PESDE_PACKAGES_FOLDER
    return context.package_folder(consumer.identity, consumer.environment)


def write_root_file(context: InstallContext, alias: str, package: ResolvedPackage) -> Path:
    folder = context.packages_folder(package.environment)
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / f"{alias}{config.LINKAGE_EXTENSION}"
    path.write_text(_module_source(root_link(package)), encoding="utf-8")
    return path


def write_dependency_files(context: InstallContext, node: TreeNode) -> list[Path]:
    """Write one redirect file per dependency edge of ``node``.

    Edges to packages that failed to resolve are skipped.

    Raises:
        LinkageError: On an edge crossing environments the wrong way. No
            file is written for that edge.
    """
    consumer = node.package
    written: list[Path] = []
    for key in sorted(node.dependencies):
        edge = node.dependencies[key]
        target = context.tree.get(key)
        if target is None or target.package is None:
            logger.warning("Skipping link %s -> %s: package was not installed", node.key, key)
            continue
        if not edge.alias:
            logger.debug("Skipping link %s -> %s: no alias", node.key, key)
            continue

        link = dependency_link(consumer, node.alias, target.package, edge.alias, context.placement)
        folder = dependency_folder(context, consumer, target.package)
        folder.mkdir(parents=True, exist_ok=True)
        path = folder / f"{edge.alias}{config.LINKAGE_EXTENSION}"
        path.write_text(_module_source(link), encoding="utf-8")
        written.append(path)
    return written


def generate(context: InstallContext) -> list[Path]:
    """Write every root and dependency redirect file of the run.

    Returns:
        Paths of all written files.

    Raises:
        LinkageError: If any edge violates environment visibility.
    """
    logger.debug("Creating %s files ...", config.LINKAGE_EXTENSION)
    written: list[Path] = []
    for node in context.tree.resolved():
        if node.alias:
            written.append(write_root_file(context, node.alias, node.package))
        written.extend(write_dependency_files(context, node))
    return written


# ---------------------------------------------------------------------------
# Temporary project descriptor
# ---------------------------------------------------------------------------


def _insert_path(tree: dict[str, Any], datamodel_path: str, folder: str) -> None:
    """Nest ``folder`` under the instances named by ``datamodel_path``."""
    parts = datamodel_path.split(".")
    if parts and parts[0] == "game":
        parts = parts[1:]
    current = tree
    for part in parts[:-1]:
        current = current.setdefault(part, {})
    if parts:
        current[parts[-1]] = {"$path": folder}


def build_temp_project(context: InstallContext) -> dict[str, Any]:
    """Project descriptor mapping each used environment to its placement."""
    used = {node.package.environment for node in context.tree.resolved()}
    tree: dict[str, Any] = {"$className": "DataModel"}
    for environment in Environment:
        if environment in used:
            _insert_path(
                tree,
                context.placement.for_environment(environment),
                context.packages_folder(environment).name,
            )
    return {"name": "rostaller", "tree": tree}


def write_temp_project(context: InstallContext) -> Path:
    path = context.project_root / config.TEMP_PROJECT_JSON
    logger.debug("Creating %s file ...", config.TEMP_PROJECT_JSON)
    path.write_text(json.dumps(build_temp_project(context), indent="\t"), encoding="utf-8")
    return path
