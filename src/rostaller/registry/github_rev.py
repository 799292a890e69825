"""GitHub revision provider.

Downloads the zipball of a repository at a branch, tag or commit. Default
branches (``main``, ``master``) move between runs, so packages pinned to
them are always downloaded again; any other revision is treated as pinned.
"""

from __future__ import annotations

import logging
from urllib.parse import quote

from rostaller import config
from rostaller.core.identity import DependencyDescriptor, Environment, PackageIdentity, Provider
from rostaller.registry.base import ArchiveFormat, PackageProvider, ResolvedRequest
from rostaller.registry.index import github_headers

logger = logging.getLogger(__name__)

DEFAULT_REV: str = "main"
MOVING_REVS: frozenset[str] = frozenset({"main", "master"})


class GitHubRevisionProvider(PackageProvider):
    """Packages pinned to a git revision of a GitHub repository."""

    kind = Provider.GITHUB_REV

    async def list_versions(self, scope: str, name: str, index: str | None = None) -> list[str]:
        return []

    async def resolve_requirement(self, descriptor: DependencyDescriptor) -> str | None:
        return descriptor.rev or DEFAULT_REV

    async def prepare(self, descriptor: DependencyDescriptor) -> ResolvedRequest:
        rev = await self.resolve_requirement(descriptor)
        return ResolvedRequest(
            descriptor=descriptor,
            identity=PackageIdentity(
                Provider.GITHUB_REV, descriptor.scope, descriptor.package_name, rev=rev
            ),
            environment=self._environment_for(descriptor, Environment.SHARED),
            environment_final=descriptor.environment_override is not None,
            archive_format=ArchiveFormat.ZIP,
            moving_target=rev in MOVING_REVS,
        )

    async def fetch(self, request: ResolvedRequest) -> bytes:
        identity = request.identity
        url = (
            f"{config.GITHUB_API_URL}/repos/{identity.scope}/{identity.name}"
            f"/zipball/{quote(identity.rev or DEFAULT_REV, safe='')}"
        )
        return await self.http.get_bytes(
            url,
            headers=github_headers(self.context.settings.github_token),
            rate_limited=True,
        )
