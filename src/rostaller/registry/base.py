"""Base classes and data models for package providers.

Defines the ``PackageProvider`` abstract base class that all concrete
providers (GitHub releases, GitHub revisions, pesde, wally) implement,
along with the ``ResolvedRequest`` model the graph walker passes between
the preparation and download steps.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from rostaller.core.identity import DependencyDescriptor, Environment, PackageIdentity, Provider
from rostaller.core.versions import max_satisfying
from rostaller.exceptions import ResolutionError

if TYPE_CHECKING:
    from rostaller.core.context import InstallContext

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------


class ArchiveFormat(str, Enum):
    ZIP = "zip"
    TAR_GZ = "tar.gz"


@dataclass
class ResolvedRequest:
    """A descriptor after version resolution, ready to be downloaded.

    Attributes:
        descriptor: The dependency as declared.
        identity: Concrete artifact to fetch.
        environment: Provisional environment. Final for registry providers,
            which learn it from version metadata; GitHub packages may be
            moved after their own manifest has been read.
        environment_final: Whether ``environment`` is already final.
        archive_format: Format of the bytes returned by ``fetch``.
        moving_target: The artifact behind this identity can change between
            runs (``latest`` releases, default branches), so an existing
            folder from an earlier run is never trusted.
        index: Registry index that actually served the package, which may be
            a fallback of the declared one. None for GitHub packages.
        metadata: Provider-specific data carried from ``prepare`` to
            ``fetch`` and ``dependencies`` (release JSON, version metadata).
    """

    descriptor: DependencyDescriptor
    identity: PackageIdentity
    environment: Environment
    environment_final: bool
    archive_format: ArchiveFormat
    moving_target: bool = False
    index: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return self.identity.canonical()


# ---------------------------------------------------------------------------
# Abstract base provider
# ---------------------------------------------------------------------------


class PackageProvider(ABC):
    """Abstract base class for package sources.

    Subclasses implement ``list_versions``, ``prepare`` and ``fetch``.
    ``resolve_requirement`` picks the best version from ``list_versions``
    and ``dependencies`` defaults to "read the package's own manifest".

    Args:
        context: The install context of the current run.
    """

    kind: Provider

    def __init__(self, context: InstallContext) -> None:
        self.context = context

    @property
    def http(self):  # noqa: ANN201
        return self.context.http

    @abstractmethod
    async def list_versions(self, scope: str, name: str, index: str | None = None) -> list[str]:
        """List available versions, newest first.

        Results are memoised in the run's metadata cache.
        """

    async def resolve_requirement(self, descriptor: DependencyDescriptor) -> str | None:
        """Resolve a descriptor's requirement to a concrete version, or None."""
        versions = await self.list_versions(
            descriptor.scope, descriptor.package_name, descriptor.index
        )
        return max_satisfying(versions, descriptor.version)

    @abstractmethod
    async def prepare(self, descriptor: DependencyDescriptor) -> ResolvedRequest:
        """Resolve a descriptor to a concrete, downloadable request.

        Raises:
            ResolutionError: If no version satisfies the requirement.
            RegistryError: If metadata cannot be fetched.
        """

    @abstractmethod
    async def fetch(self, request: ResolvedRequest) -> bytes:
        """Download the archive of a prepared request."""

    async def dependencies(self, request: ResolvedRequest) -> list[DependencyDescriptor] | None:
        """Dependencies declared in registry metadata.

        Returns:
            A list for registry providers, or None when the dependencies
            must be read from the extracted package's own manifest.
        """
        return None

    # -- Helpers ------------------------------------------------------------

    def _environment_for(self, descriptor: DependencyDescriptor, fallback: Environment) -> Environment:
        return descriptor.environment_override or fallback

    @staticmethod
    def _unsatisfied(descriptor: DependencyDescriptor) -> ResolutionError:
        return ResolutionError(
            f"could not satisfy requirement {descriptor.version or '*'!r} "
            f"for {descriptor.name}"
        )
