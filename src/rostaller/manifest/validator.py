"""Manifest loading and structural validation.

Validation is shallow: it checks that the file is TOML, that a
root manifest carries a ``[package]`` table, and that every dependency
group has entries of the right shape for its format (tables for
``rostaller.toml`` and ``pesde.toml``, strings for ``wally.toml``). Value
level problems (unknown provider, bad name) surface when the dependencies
are read.
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

from rostaller.exceptions import ManifestError
from rostaller.manifest.base import ManifestReader

logger = logging.getLogger(__name__)


def parse_toml(path: Path) -> dict[str, Any]:
    """Read and parse a TOML file.

    Raises:
        ManifestError: If the file is missing or is not valid TOML.
    """
    if not path.is_file():
        raise ManifestError(f"[{path}] does not exist")
    logger.debug("Loading %s", path)
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as exc:
        raise ManifestError(f"[{path}] cannot be read: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ManifestError(f"[{path}] Malformed TOML: {exc}") from exc


def validate_manifest(
    reader: ManifestReader, data: dict[str, Any], path: Path, is_root: bool = False
) -> dict[str, Any]:
    """Check the structure of a parsed manifest.

    Args:
        reader: Reader for the manifest's format.
        data: Parsed TOML.
        path: Manifest location, used in error messages.
        is_root: Root manifests must declare ``[package]``.

    Returns:
        ``data`` unchanged, for chaining.

    Raises:
        ManifestError: Listing every structural violation found.
    """
    errors: list[str] = []

    if is_root and not isinstance(data.get("package"), dict):
        errors.append("missing [package] table")

    expected = dict if reader.table_entries else str
    expected_name = "a table" if reader.table_entries else "a string"
    for table, _override, _root_only in reader.dependency_groups:
        group = data.get(table)
        if group is None:
            continue
        if not isinstance(group, dict):
            errors.append(f"[{table}] must be a table")
            continue
        for alias, entry in group.items():
            if not isinstance(entry, expected):
                errors.append(f"{alias} dependency must be {expected_name}")

    if "place" in data and not isinstance(data["place"], dict):
        errors.append("[place] must be a table")

    if errors:
        raise ManifestError(f"[{path}] is invalid: " + "; ".join(errors))
    return data
