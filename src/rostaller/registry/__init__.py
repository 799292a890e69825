"""Package providers for GitHub releases, GitHub revisions, pesde and wally.

Every provider implements ``PackageProvider``; one instance of each is
created per install run and shares the run's HTTP client and metadata
cache.

Public API::

    from rostaller.registry import PackageProvider, ResolvedRequest, create_providers
    from rostaller.registry.http_client import HttpFetcher
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rostaller.core.identity import Provider
from rostaller.registry.base import ArchiveFormat, PackageProvider, ResolvedRequest
from rostaller.registry.github import GitHubReleaseProvider
from rostaller.registry.github_rev import GitHubRevisionProvider
from rostaller.registry.pesde import PesdeProvider
from rostaller.registry.wally import WallyProvider

if TYPE_CHECKING:
    from rostaller.core.context import InstallContext

PROVIDER_CLASSES: dict[Provider, type[PackageProvider]] = {
    Provider.GITHUB: GitHubReleaseProvider,
    Provider.GITHUB_REV: GitHubRevisionProvider,
    Provider.PESDE: PesdeProvider,
    Provider.WALLY: WallyProvider,
}


def create_providers(context: InstallContext) -> dict[Provider, PackageProvider]:
    """Instantiate one provider of every kind bound to ``context``."""
    return {kind: cls(context) for kind, cls in PROVIDER_CLASSES.items()}


__all__ = [
    "ArchiveFormat",
    "PROVIDER_CLASSES",
    "PackageProvider",
    "ResolvedRequest",
    "create_providers",
]
