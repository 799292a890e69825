"""GitHub release provider.

Resolves ``scope/name`` to the GitHub repository of the same name and picks
a tagged release. Tags are loosely cleaned (``v1.2.3`` becomes ``1.2.3``)
and tags that are not versions are ignored. With no requested version the
latest release is used, which is looked up on every run.

API reference: https://docs.github.com/en/rest/releases/releases
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

from rostaller import config
from rostaller.core.identity import DependencyDescriptor, Environment, PackageIdentity, Provider
from rostaller.core.versions import clean_version, sort_versions
from rostaller.exceptions import FetchError
from rostaller.registry.base import ArchiveFormat, PackageProvider, ResolvedRequest
from rostaller.registry.index import github_headers

logger = logging.getLogger(__name__)

RELEASES_PER_PAGE: int = 100
LATEST: str = "latest"


class GitHubReleaseProvider(PackageProvider):
    """Packages published as GitHub releases (zipball of the tagged commit)."""

    kind = Provider.GITHUB

    def _headers(self) -> dict[str, str]:
        return github_headers(self.context.settings.github_token)

    async def _get(self, url: str) -> Any:  # noqa: ANN401
        return await self.http.get_json(url, headers=self._headers(), rate_limited=True)

    async def _release(self, url: str, scope: str, name: str) -> dict[str, Any]:
        release = await self._get(url)
        if not isinstance(release, dict):
            raise FetchError(f"Failed to get release metadata for {scope}/{name}")
        return release

    # -- Release listing ----------------------------------------------------

    async def _tags(self, scope: str, name: str) -> dict[str, str]:
        """Map of cleaned version to original tag name, memoised per run."""
        return await self.context.metadata.get_or_fetch(
            f"github:{scope}/{name}", lambda: self._fetch_tags(scope, name)
        )

    async def _fetch_tags(self, scope: str, name: str) -> dict[str, str]:
        url = (
            f"{config.GITHUB_API_URL}/repos/{scope}/{name}/releases"
            f"?per_page={RELEASES_PER_PAGE}"
        )
        releases = await self._get(url)
        if not isinstance(releases, list):
            raise FetchError(f"Unexpected release listing for {scope}/{name}")

        tags: dict[str, str] = {}
        for release in releases:
            tag = release.get("tag_name") if isinstance(release, dict) else None
            version = clean_version(tag)
            if version is None:
                logger.debug("Skipping non-version tag %r of %s/%s", tag, scope, name)
                continue
            tags.setdefault(version, tag)
        return tags

    async def list_versions(self, scope: str, name: str, index: str | None = None) -> list[str]:
        return sort_versions(await self._tags(scope, name))

    # -- Resolution and download -------------------------------------------

    async def prepare(self, descriptor: DependencyDescriptor) -> ResolvedRequest:
        scope, name = descriptor.scope, descriptor.package_name
        base = f"{config.GITHUB_API_URL}/repos/{scope}/{name}/releases"

        if not descriptor.version or descriptor.version == LATEST:
            release = await self._release(f"{base}/latest", scope, name)
            version = clean_version(release.get("tag_name")) or LATEST
            moving_target = True
        else:
            version = await self.resolve_requirement(descriptor)
            if version is None:
                raise self._unsatisfied(descriptor)
            tag = (await self._tags(scope, name))[version]
            release = await self._release(f"{base}/tags/{quote(tag, safe='')}", scope, name)
            moving_target = False

        zipball_url = release.get("zipball_url")
        if not isinstance(zipball_url, str) or not zipball_url:
            raise FetchError(f"Release of {scope}/{name}@{version} has no zipball")

        return ResolvedRequest(
            descriptor=descriptor,
            identity=PackageIdentity(Provider.GITHUB, scope, name, version=version),
            environment=self._environment_for(descriptor, Environment.SHARED),
            environment_final=descriptor.environment_override is not None,
            archive_format=ArchiveFormat.ZIP,
            moving_target=moving_target,
            metadata={"zipball_url": zipball_url},
        )

    async def fetch(self, request: ResolvedRequest) -> bytes:
        return await self.http.get_bytes(
            request.metadata["zipball_url"], headers=self._headers(), rate_limited=True
        )
