"""wally registry provider.

Package metadata is served by the registry API announced in the index
repository's ``config.json``. Each version entry carries the package's
realm (environment), the registry its own dependencies come from, and the
dependencies themselves as ``scope/name@requirement`` strings.

API reference: https://github.com/UpliftGames/wally (registry API)
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

CONFIG_FILE: str = "config.json"


def parse_requirement(value: str) -> tuple[str, str | None]:
    """Split ``scope/name@requirement`` into name and requirement."""
    name, _, requirement = value.partition("@")
    return name, requirement or None


def _package_info(entry: dict[str, Any]) -> dict[str, Any]:
    package = entry.get("package")
    return package if isinstance(package, dict) else {}


def _string_list(value: Any) -> list[str]:  # noqa: ANN401
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def realm_environment(realm: Any) -> Environment:  # noqa: ANN401
    try:
        return Environment(realm)
    except ValueError:
        return Environment.SHARED


class WallyProvider(PackageProvider):
    """Packages published to a wally registry (ZIP archives)."""

    kind = Provider.WALLY

    def _headers(self) -> dict[str, str]:
        headers = {"Wally-Version": config.WALLY_API_VERSION}
        if self.context.settings.wally_token:
            headers["Authorization"] = f"Bearer {self.context.settings.wally_token}"
        return headers

    # -- Metadata -----------------------------------------------------------

    async def _metadata(
        self, scope: str, name: str, index: str | None
    ) -> tuple[str, list[dict[str, Any]]]:
        """The index that served the package and its version entries."""
        index = index or config.DEFAULT_WALLY_INDEX
        return await self.context.metadata.get_or_fetch(
            f"wally:{index}#{scope}/{name}",
            lambda: self._fetch_metadata(scope, name, index, set()),
        )

    async def _fetch_metadata(
        self, scope: str, name: str, index: str, seen: set[str]
    ) -> tuple[str, list[dict[str, Any]]]:
        seen.add(index)
        registry = await registry_config(self.context, index, CONFIG_FILE)
        url = f"{registry['api']}/v1/package-metadata/{scope}/{name}"

        try:
            response = await self.http.get_json(url, headers=self._headers())
        except FetchError as exc:
            logger.debug("No wally metadata for %s/%s at %s: %s", scope, name, index, exc)
            response = None

        entries = response.get("versions") if isinstance(response, dict) else None
        if isinstance(entries, list) and entries:
            return index, [entry for entry in entries if isinstance(entry, dict)]

        for fallback in _string_list(registry.get("fallback_registries")):
            if fallback in seen:
                continue
            try:
                return await self._fetch_metadata(scope, name, fallback, seen)
            except FetchError as exc:
                logger.debug("Fallback registry %s failed for %s/%s: %s", fallback, scope, name, exc)

        raise FetchError(f"Failed to get wally metadata for {scope}/{name}")

    async def list_versions(self, scope: str, name: str, index: str | None = None) -> list[str]:
        _served_by, metadata = await self._metadata(scope, name, index)
        versions = [clean_version(_package_info(entry).get("version")) for entry in metadata]
        return sort_versions(v for v in versions if v is not None)

    async def _version_metadata(
        self, scope: str, name: str, version: str, index: str | None
    ) -> tuple[str, dict[str, Any]]:
        served_by, metadata = await self._metadata(scope, name, index)
        for entry in metadata:
            if clean_version(_package_info(entry).get("version")) == version:
                return served_by, entry
        raise FetchError(f"No wally metadata for {scope}/{name}@{version}")

    # -- Resolution and download -------------------------------------------

    async def prepare(self, descriptor: DependencyDescriptor) -> ResolvedRequest:
        scope, name = descriptor.scope, descriptor.package_name
        version = await self.resolve_requirement(descriptor)
        if version is None:
            raise self._unsatisfied(descriptor)

        served_by, version_metadata = await self._version_metadata(
            scope, name, version, descriptor.index
        )
        realm = realm_environment(_package_info(version_metadata).get("realm"))

        return ResolvedRequest(
            descriptor=descriptor,
            identity=PackageIdentity(Provider.WALLY, scope, name, version=version),
            environment=self._environment_for(descriptor, realm),
            environment_final=True,
            archive_format=ArchiveFormat.ZIP,
            index=served_by,
            metadata={"version_metadata": version_metadata},
        )

    async def fetch(self, request: ResolvedRequest) -> bytes:
        identity = request.identity
        index = request.index or request.descriptor.index or config.DEFAULT_WALLY_INDEX
        registry = await registry_config(self.context, index, CONFIG_FILE)
        url = (
            f"{registry['api']}/v1/package-contents/"
            f"{identity.scope}/{identity.name}/{identity.version}"
        )
        return await self.http.get_bytes(url, headers=self._headers())

    async def dependencies(self, request: ResolvedRequest) -> list[DependencyDescriptor]:
        version_metadata = request.metadata.get("version_metadata") or {}
        registry = _package_info(version_metadata).get("registry")
        if not isinstance(registry, str) or not registry:
            registry = None
        index = registry or request.index or request.descriptor.index or config.DEFAULT_WALLY_INDEX

        result: list[DependencyDescriptor] = []
        groups = (
            ("dependencies", None),
            ("server-dependencies", Environment.SERVER),
        )
        for table, override in groups:
            declared = version_metadata.get(table)
            if not isinstance(declared, dict):
                continue
            for alias, value in declared.items():
                if not isinstance(value, str):
                    continue
                dep_name, requirement = parse_requirement(value)
                try:
                    split_name(dep_name)
                except ValueError:
                    logger.debug("Ignoring wally dependency %s with bad name %r", alias, value)
                    continue
                result.append(
                    DependencyDescriptor(
                        alias=alias,
                        name=dep_name,
                        provider=Provider.WALLY,
                        version=requirement,
                        index=index,
                        environment_override=override,
                    )
                )
        return result
