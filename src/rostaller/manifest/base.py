"""Base interface and shared helpers for manifest readers.

rostaller understands three manifest formats. Every format implements
``ManifestReader``, which turns the parsed TOML of one manifest into:

- ``read_dependencies(data, is_root)``: the declared dependencies as
  ``DependencyDescriptor`` objects, with environment overrides applied per
  dependency group. Dev dependencies are only read for the root manifest.
- ``package_environment(data)``: the environment the package asks to be
  installed into, if it declares one.
- ``package_lib(data)`` and ``build_files(data)``: the entry point and
  build file globs used for linkage and sync descriptor synthesis.
- ``placement(data, ignore_wally_structure)``: the root-only ``[place]``
  table.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from rostaller import config
from rostaller.core.context import Placement
from rostaller.core.identity import DependencyDescriptor, Environment
from rostaller.exceptions import ManifestError

logger = logging.getLogger(__name__)


class ManifestKind(str, Enum):
    """Supported manifest file names, in root discovery priority order."""

    ROSTALLER = config.ROSTALLER_MANIFEST
    PESDE = config.PESDE_MANIFEST
    WALLY = config.WALLY_MANIFEST


@dataclass(frozen=True)
class ManifestRef:
    """A manifest file on disk and its format."""

    path: Path
    kind: ManifestKind

    @property
    def folder(self) -> Path:
        return self.path.parent


class ManifestReader(ABC):
    """Abstract base class for manifest format readers."""

    kind: ManifestKind

    #: Dependency groups as (table name, environment override, root only).
    dependency_groups: tuple[tuple[str, Environment | None, bool], ...] = ()

    #: Whether dependency values are tables (True) or strings (False).
    table_entries: bool = True

    @abstractmethod
    def read_dependencies(
        self, data: dict[str, Any], is_root: bool = False
    ) -> list[DependencyDescriptor]:
        """Return the declared dependencies.

        Args:
            data: Parsed (and validated) manifest.
            is_root: Whether this is the project's own manifest.

        Raises:
            ManifestError: If an entry cannot be turned into a descriptor.
        """

    @abstractmethod
    def package_environment(self, data: dict[str, Any]) -> Environment | None:
        """Environment the package declares for itself, if any."""

    def package_lib(self, data: dict[str, Any]) -> str | None:
        return None

    def build_files(self, data: dict[str, Any]) -> list[str] | None:
        return None

    def placement(self, data: dict[str, Any], ignore_wally_structure: bool = False) -> Placement:
        """Read the root-only ``[place]`` table, falling back to defaults."""
        place = data.get("place") or {}
        defaults = Placement()
        return Placement(
            shared_packages=_place_value(place, "shared_packages", defaults.shared_packages),
            server_packages=_place_value(place, "server_packages", defaults.server_packages),
            dev_packages=_place_value(place, "dev_packages", defaults.dev_packages),
        )

    def groups(self, is_root: bool) -> list[tuple[str, Environment | None]]:
        return [
            (table, override)
            for table, override, root_only in self.dependency_groups
            if is_root or not root_only
        ]


# ---------------------------------------------------------------------------
# Helpers shared by readers
# ---------------------------------------------------------------------------


def _place_value(place: dict[str, Any], key: str, default: str) -> str:
    if key not in place:
        return default
    value = place[key]
    return value if isinstance(value, str) else ""


def environment_from_string(value: Any) -> Environment | None:  # noqa: ANN401
    """Map a manifest environment or realm string to an ``Environment``."""
    if not isinstance(value, str):
        return None
    try:
        return Environment(value.lower())
    except ValueError:
        logger.debug("Unknown environment %r", value)
        return None


def resolve_index(
    indexes: dict[str, Any] | None, requested: Any, default_url: str, alias: str  # noqa: ANN401
) -> str:
    """Resolve an ``index`` field to a registry index URL.

    ``requested`` names an entry of the manifest's index table (``default``
    when omitted). A full URL is accepted as-is.

    Raises:
        ManifestError: If the name is not declared in the index table.
    """
    key = requested if isinstance(requested, str) and requested else "default"
    table = indexes if isinstance(indexes, dict) else {}
    url = table.get(key)
    if isinstance(url, str) and url:
        return url
    if "://" in key:
        return key
    if key == "default":
        return default_url
    raise ManifestError(f"{alias} uses unknown registry index {key!r}")
