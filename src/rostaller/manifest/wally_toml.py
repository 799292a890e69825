"""Reader for ``wally.toml`` manifests.

Dependencies are ``scope/name@requirement`` strings and always come from
the registry declared in ``package.registry``. A wally root uses the wally
placement keys (``shared-packages`` and friends) and defaults.
"""

from __future__ import annotations

from typing import Any

from rostaller import config
from rostaller.core.context import Placement
from rostaller.core.identity import DependencyDescriptor, Environment, Provider, split_name
from rostaller.exceptions import ManifestError
from rostaller.manifest.base import ManifestKind, ManifestReader, environment_from_string

WALLY_PLACEMENT = Placement(
    shared_packages="game.ReplicatedStorage.Packages",
    server_packages="game.ReplicatedStorage.ServerPackages",
    dev_packages="game.ReplicatedStorage.DevPackages",
    use_wally_folder_structure=True,
)


def parse_dependency(alias: str, value: str) -> tuple[str, str | None]:
    """Split ``scope/name@requirement``.

    Raises:
        ManifestError: If the name part is not ``scope/name``.
    """
    name, _, requirement = value.partition("@")
    try:
        split_name(name)
    except ValueError as exc:
        raise ManifestError(f"{alias}: {exc}") from exc
    return name, requirement or None


class WallyManifestReader(ManifestReader):
    """Reads ``wally.toml`` manifests."""

    kind = ManifestKind.WALLY
    table_entries = False
    dependency_groups = (
        ("dependencies", None, False),
        ("server-dependencies", Environment.SERVER, False),
        ("dev-dependencies", Environment.DEV, True),
    )

    def read_dependencies(
        self, data: dict[str, Any], is_root: bool = False
    ) -> list[DependencyDescriptor]:
        index = (data.get("package") or {}).get("registry") or config.DEFAULT_WALLY_INDEX
        result: list[DependencyDescriptor] = []
        for table, override in self.groups(is_root):
            for alias, value in (data.get(table) or {}).items():
                name, requirement = parse_dependency(alias, value)
                result.append(
                    DependencyDescriptor(
                        alias=alias,
                        name=name,
                        provider=Provider.WALLY,
                        version=requirement,
                        index=index,
                        environment_override=override,
                    )
                )
        return result

    def package_environment(self, data: dict[str, Any]) -> Environment | None:
        return environment_from_string((data.get("package") or {}).get("realm"))

    def placement(self, data: dict[str, Any], ignore_wally_structure: bool = False) -> Placement:
        if ignore_wally_structure:
            return super().placement(data)
        place = data.get("place") or {}

        def value(key: str, default: str) -> str:
            if key not in place:
                return default
            return place[key] if isinstance(place[key], str) else ""

        return Placement(
            shared_packages=value("shared-packages", WALLY_PLACEMENT.shared_packages),
            server_packages=value("server-packages", WALLY_PLACEMENT.server_packages),
            dev_packages=value("dev-packages", WALLY_PLACEMENT.dev_packages),
            use_wally_folder_structure=True,
        )
