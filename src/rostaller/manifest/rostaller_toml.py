"""Reader for ``rostaller.toml``, the native manifest format.

Example::

    [package]
    environment = "shared"
    lib = "src/init.luau"
    build_files = ["src"]

    [place]
    shared_packages = "game.ReplicatedStorage.sharedPackages"
    server_packages = "game.ServerScriptService.serverPackages"
    dev_packages = "game.ReplicatedStorage.devPackages"

    [dependencies]
    Promise = { github = "evaera/roblox-lua-promise", version = "4.0.0" }
    Signal = { wally = "sleitnick/signal", version = "^2.0.0" }

    [server_dependencies_overwrite]
    ProfileStore = { github-rev = "MadStudioRoblox/ProfileStore", rev = "main" }

    [dev_dependencies]
    TestEZ = { wally = "roblox/testez", version = "0.4.1", index = "default" }

Each dependency names its provider by key. ``index`` picks an entry from
``[wally_indexes]`` or ``[pesde_indexes]``; omitted, the well-known public
index is used.
"""

from __future__ import annotations

import logging
from typing import Any

from rostaller import config
from rostaller.core.identity import DependencyDescriptor, Environment, Provider, split_name
from rostaller.exceptions import ManifestError
from rostaller.manifest.base import (
    ManifestKind,
    ManifestReader,
    environment_from_string,
    resolve_index,
)

logger = logging.getLogger(__name__)

# Provider keys in lookup order.
PROVIDER_KEYS: tuple[Provider, ...] = (
    Provider.WALLY,
    Provider.PESDE,
    Provider.GITHUB,
    Provider.GITHUB_REV,
)


def provider_of(entry: dict[str, Any]) -> Provider | None:
    """Return the provider whose key is present in a dependency table."""
    for provider in PROVIDER_KEYS:
        if entry.get(provider.value):
            return provider
    return None


class RostallerManifestReader(ManifestReader):
    """Reads ``rostaller.toml`` manifests."""

    kind = ManifestKind.ROSTALLER
    table_entries = True
    dependency_groups = (
        ("dependencies", None, False),
        ("shared_dependencies_overwrite", Environment.SHARED, False),
        ("server_dependencies_overwrite", Environment.SERVER, False),
        ("dev_dependencies", Environment.DEV, True),
    )

    def read_dependencies(
        self, data: dict[str, Any], is_root: bool = False
    ) -> list[DependencyDescriptor]:
        indexes = {
            Provider.WALLY: (data.get("wally_indexes"), config.DEFAULT_WALLY_INDEX),
            Provider.PESDE: (data.get("pesde_indexes"), config.DEFAULT_PESDE_INDEX),
        }
        result: list[DependencyDescriptor] = []
        for table, override in self.groups(is_root):
            for alias, entry in (data.get(table) or {}).items():
                provider = provider_of(entry)
                if provider is None:
                    raise ManifestError(
                        f"{alias} must declare one of: "
                        + ", ".join(p.value for p in PROVIDER_KEYS)
                    )
                name = entry[provider.value]
                if not isinstance(name, str):
                    raise ManifestError(
                        f"{alias}: {provider.value} must be a 'scope/name' string, got {name!r}"
                    )
                try:
                    split_name(name)
                except ValueError as exc:
                    raise ManifestError(f"{alias}: {exc}") from exc
                for field in ("version", "rev"):
                    if field in entry and not isinstance(entry[field], str):
                        raise ManifestError(f"{alias}: {field} must be a string")

                index = None
                if provider in indexes:
                    table_urls, default_url = indexes[provider]
                    index = resolve_index(table_urls, entry.get("index"), default_url, alias)

                result.append(
                    DependencyDescriptor(
                        alias=alias,
                        name=name,
                        provider=provider,
                        version=entry.get("version"),
                        rev=entry.get("rev"),
                        index=index,
                        environment_override=override,
                    )
                )
        return result

    def package_environment(self, data: dict[str, Any]) -> Environment | None:
        return environment_from_string((data.get("package") or {}).get("environment"))

    def package_lib(self, data: dict[str, Any]) -> str | None:
        return (data.get("package") or {}).get("lib")

    def build_files(self, data: dict[str, Any]) -> list[str] | None:
        return (data.get("package") or {}).get("build_files")
