"""Synthesize a Rojo ``default.project.json`` from build file globs.

pesde packages (and GitHub packages whose ``rostaller.toml`` lists
``build_files``) describe what to sync with a flat list of files and
folders instead of a project file. This module turns that list into a
project tree:

- ``init.lua`` / ``init.luau`` becomes the ``$path`` of the root,
- every other entry becomes a child named after the file without its
  ``.lua``/``.luau`` extension,
- without a root ``$path`` the root is a plain ``Folder``,
- optional ``roblox_packages`` and ``roblox_server_packages`` children are
  added so dependencies linked later are picked up.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

from rostaller.config import PROJECT_JSON_NAME

logger = logging.getLogger(__name__)

_LUA_EXTENSION_RE = re.compile(r"\.luau?$")

OPTIONAL_FOLDERS: tuple[str, ...] = ("roblox_packages", "roblox_server_packages")


def build_tree(build_files: list[str]) -> dict[str, Any]:
    """Build the project ``tree`` for a list of build files."""
    tree: dict[str, Any] = {}
    for file in build_files:
        name = _LUA_EXTENSION_RE.sub("", file)
        if name == "init":
            tree["$path"] = file
            continue
        tree[name] = {"$path": file}

    if "$path" not in tree:
        tree["$className"] = "Folder"

    for folder in OPTIONAL_FOLDERS:
        tree.setdefault(folder, {"$path": {"optional": folder}})
    return tree


def generate(package_root: Path, build_files: list[str] | None) -> Path | None:
    """Write ``default.project.json`` into ``package_root``.

    Args:
        package_root: Extracted package folder.
        build_files: Files and folders to sync. Nothing is written when
            empty or None.

    Returns:
        Path of the written file, or None if skipped.
    """
    if not build_files:
        logger.debug("No build files in %s, skipping sync config", package_root)
        return None
    path = package_root / PROJECT_JSON_NAME
    path.write_text(json.dumps({"tree": build_tree(list(build_files))}, indent="\t"), encoding="utf-8")
    logger.debug("Generated %s", path)
    return path
