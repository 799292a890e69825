"""pesde registry provider.

Package metadata is served by the registry API announced in the index
repository's ``config.toml``. Each version lists one or more targets; only
Roblox-compatible targets are installable and the most specific one wins:
``roblox_server`` (installed into the server environment), then ``roblox``,
then ``luau`` (both shared).

When a registry does not know a package, the registries it allows
dependencies from (``other_registries_allowed``, then ``wally_allowed``)
are consulted in order.

API reference: https://docs.pesde.dev/registry/
"""

from __future__ import annotations

import logging
from typing import Any

from rostaller import config
from rostaller.core.identity import (
    DependencyDescriptor,
    Environment,
    PackageIdentity,
    Provider,
    split_name,
)
from rostaller.core.versions import clean_version, sort_versions
from rostaller.exceptions import FetchError
from rostaller.registry.base import ArchiveFormat, PackageProvider, ResolvedRequest
from rostaller.registry.index import registry_config

logger = logging.getLogger(__name__)

CONFIG_FILE: str = "config.toml"

# Supported targets, most specific first.
TARGET_PRIORITY: tuple[str, ...] = ("roblox_server", "roblox", "luau")

_KEPT_DEPENDENCY_KINDS: frozenset[str] = frozenset({"standard", "peer"})


def pick_target(targets: dict[str, Any]) -> str | None:
    """Return the preferred supported target of a version, or None."""
    for target in TARGET_PRIORITY:
        if target in targets:
            return target
    return None


def _string_list(value: Any) -> list[str]:  # noqa: ANN401
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def _is_full_name(name: str) -> bool:
    try:
        split_name(name)
    except ValueError:
        return False
    return True


def target_environment(target: str | None) -> Environment:
    return Environment.SERVER if target == "roblox_server" else Environment.SHARED


class PesdeProvider(PackageProvider):
    """Packages published to a pesde registry (gzip+tar archives)."""

    kind = Provider.PESDE

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.context.settings.pesde_token:
            headers["Authorization"] = f"Bearer {self.context.settings.pesde_token}"
        return headers

    # -- Metadata -----------------------------------------------------------

    async def _metadata(
        self, scope: str, name: str, index: str | None
    ) -> tuple[str, dict[str, Any]]:
        """The index that served the package and its per-version metadata.

        Metadata is keyed by the registry's version strings.
        """
        index = index or config.DEFAULT_PESDE_INDEX
        return await self.context.metadata.get_or_fetch(
            f"pesde:{index}#{scope}/{name}",
            lambda: self._fetch_metadata(scope, name, index, set()),
        )

    async def _fetch_metadata(
        self, scope: str, name: str, index: str, seen: set[str]
    ) -> tuple[str, dict[str, Any]]:
        seen.add(index)
        registry = await registry_config(self.context, index, CONFIG_FILE)
        url = f"{registry['api']}/v1/packages/{scope}%2F{name}"

        try:
            response = await self.http.get_json(url, headers=self._headers())
        except FetchError as exc:
            logger.debug("No pesde metadata for %s/%s at %s: %s", scope, name, index, exc)
            response = None

        versions = response.get("versions") if isinstance(response, dict) else None
        if isinstance(versions, dict) and versions:
            return index, {
                raw: data for raw, data in versions.items() if isinstance(data, dict)
            }

        fallbacks = _string_list(registry.get("other_registries_allowed")) + _string_list(
            registry.get("wally_allowed")
        )
        for fallback in fallbacks:
            if fallback in seen:
                continue
            try:
                return await self._fetch_metadata(scope, name, fallback, seen)
            except FetchError as exc:
                logger.debug("Fallback registry %s failed for %s/%s: %s", fallback, scope, name, exc)

        raise FetchError(f"Failed to get pesde metadata for {scope}/{name}")

    async def _version_metadata(
        self, scope: str, name: str, version: str, index: str | None
    ) -> tuple[str, dict[str, Any]]:
        served_by, metadata = await self._metadata(scope, name, index)
        for raw, data in metadata.items():
            if clean_version(raw) == version:
                return served_by, data
        raise FetchError(f"No pesde metadata for {scope}/{name}@{version}")

    async def list_versions(self, scope: str, name: str, index: str | None = None) -> list[str]:
        _served_by, metadata = await self._metadata(scope, name, index)
        versions: list[str] = []
        for raw, data in metadata.items():
            targets = data.get("targets")
            if not isinstance(targets, dict) or pick_target(targets) is None:
                continue
            cleaned = clean_version(raw)
            if cleaned is not None:
                versions.append(cleaned)
        return sort_versions(versions)

    # -- Resolution and download -------------------------------------------

    async def prepare(self, descriptor: DependencyDescriptor) -> ResolvedRequest:
        scope, name = descriptor.scope, descriptor.package_name
        version = await self.resolve_requirement(descriptor)
        if version is None:
            raise self._unsatisfied(descriptor)

        served_by, version_metadata = await self._version_metadata(
            scope, name, version, descriptor.index
        )
        targets = version_metadata.get("targets")
        target = pick_target(targets) if isinstance(targets, dict) else None
        if target is None:
            raise FetchError(f"{scope}/{name}@{version} has no Roblox-compatible target")

        return ResolvedRequest(
            descriptor=descriptor,
            identity=PackageIdentity(Provider.PESDE, scope, name, version=version),
            environment=self._environment_for(descriptor, target_environment(target)),
            environment_final=True,
            archive_format=ArchiveFormat.TAR_GZ,
            index=served_by,
            metadata={"target": target, "target_metadata": targets[target]},
        )

    async def fetch(self, request: ResolvedRequest) -> bytes:
        identity = request.identity
        index = request.index or request.descriptor.index or config.DEFAULT_PESDE_INDEX
        registry = await registry_config(self.context, index, CONFIG_FILE)
        url = (
            f"{registry['api']}/v1/packages/{identity.scope}%2F{identity.name}"
            f"/{identity.version}/{request.metadata['target']}/archive"
        )
        headers = self._headers()
        headers["Accept"] = "application/octet-stream"
        return await self.http.get_bytes(url, headers=headers)

    async def dependencies(self, request: ResolvedRequest) -> list[DependencyDescriptor]:
        target_metadata = request.metadata.get("target_metadata")
        if not isinstance(target_metadata, dict):
            return []
        result: list[DependencyDescriptor] = []
        for table in ("dependencies", "peer_dependencies"):
            declared = target_metadata.get(table)
            if not isinstance(declared, dict):
                continue
            for alias, entry in declared.items():
                descriptor = _dependency_from_metadata(alias, entry)
                if descriptor is not None:
                    result.append(descriptor)
        return result


def _dependency_from_metadata(alias: str, entry: Any) -> DependencyDescriptor | None:  # noqa: ANN401
    """Decode a ``[specifier, kind]`` pair from pesde version metadata."""
    if not isinstance(entry, list) or len(entry) < 2:
        logger.debug("Ignoring malformed pesde dependency %s: %r", alias, entry)
        return None
    specifier, kind = entry[0], entry[1]
    if not isinstance(kind, str) or kind not in _KEPT_DEPENDENCY_KINDS:
        return None
    if not isinstance(specifier, dict):
        return None

    if specifier.get("wally"):
        name = str(specifier["wally"]).split("#", 1)[-1]
        provider = Provider.WALLY
        default_index = config.DEFAULT_WALLY_INDEX
    else:
        name = specifier.get("name")
        provider = Provider.PESDE
        default_index = config.DEFAULT_PESDE_INDEX
    if not isinstance(name, str) or not _is_full_name(name):
        logger.debug("Ignoring pesde dependency %s with bad name %r", alias, name)
        return None
    version = specifier.get("version")
    index = specifier.get("index")

    return DependencyDescriptor(
        alias=alias,
        name=name,
        provider=provider,
        version=version if isinstance(version, str) else None,
        index=index if isinstance(index, str) and index else default_index,
    )
