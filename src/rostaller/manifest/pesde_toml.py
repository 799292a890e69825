"""Reader for ``pesde.toml`` manifests.

Dependencies are tables. A ``wally`` key marks a wally dependency
(optionally written ``wally#scope/name``); otherwise the dependency comes
from pesde and is named by ``name``. ``index`` picks an entry from
``[indices]`` (pesde) or ``[wally_indices]`` (wally).

The package's target decides its environment: ``roblox_server`` installs
into the server environment, ``roblox`` and ``luau`` into shared.
"""

from __future__ import annotations

from typing import Any

from rostaller import config
from rostaller.core.identity import DependencyDescriptor, Environment, Provider, split_name
from rostaller.exceptions import ManifestError
from rostaller.manifest.base import ManifestKind, ManifestReader, resolve_index

_TARGET_ENVIRONMENTS: dict[str, Environment] = {
    "roblox_server": Environment.SERVER,
    "roblox": Environment.SHARED,
    "luau": Environment.SHARED,
}


class PesdeManifestReader(ManifestReader):
    """Reads ``pesde.toml`` manifests."""

    kind = ManifestKind.PESDE
    table_entries = True
    dependency_groups = (
        ("dependencies", None, False),
        ("peer_dependencies", None, False),
        ("dev_dependencies", Environment.DEV, True),
    )

    def read_dependencies(
        self, data: dict[str, Any], is_root: bool = False
    ) -> list[DependencyDescriptor]:
        result: list[DependencyDescriptor] = []
        for table, override in self.groups(is_root):
            for alias, entry in (data.get(table) or {}).items():
                if entry.get("wally"):
                    provider = Provider.WALLY
                    name = str(entry["wally"]).split("#", 1)[-1]
                    index = resolve_index(
                        data.get("wally_indices"),
                        entry.get("index"),
                        config.DEFAULT_WALLY_INDEX,
                        alias,
                    )
                else:
                    provider = Provider.PESDE
                    name = entry.get("name")
                    index = resolve_index(
                        data.get("indices"),
                        entry.get("index"),
                        config.DEFAULT_PESDE_INDEX,
                        alias,
                    )
                if not isinstance(name, str):
                    raise ManifestError(f"{alias} must declare a package name")
                try:
                    split_name(name)
                except ValueError as exc:
                    raise ManifestError(f"{alias}: {exc}") from exc
                if "version" in entry and not isinstance(entry["version"], str):
                    raise ManifestError(f"{alias}: version must be a string")

                result.append(
                    DependencyDescriptor(
                        alias=alias,
                        name=name,
                        provider=provider,
                        version=entry.get("version"),
                        index=index,
                        environment_override=override,
                    )
                )
        return result

    def package_environment(self, data: dict[str, Any]) -> Environment | None:
        target = (data.get("target") or {}).get("environment")
        return _TARGET_ENVIRONMENTS.get(target) if isinstance(target, str) else None

    def package_lib(self, data: dict[str, Any]) -> str | None:
        return (data.get("target") or {}).get("lib")

    def build_files(self, data: dict[str, Any]) -> list[str] | None:
        return (data.get("target") or {}).get("build_files")
