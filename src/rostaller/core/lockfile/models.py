"""Lock file data model --- LockEntry.

Defines the data structure of one ``rostaller.lock`` entry. It is a pure
data holder with a single conversion back into a ``DependencyDescriptor``,
which is how a locked install re-resolves exactly the recorded artifact.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from rostaller.core.identity import (
    DependencyDescriptor,
    Environment,
    PackageIdentity,
    Provider,
    canonicalize,
    split_name,
)

LATEST: str = "latest"


@dataclass
class LockEntry:
    """One resolved package recorded in the lock file.

    Attributes:
        provider: Package source.
        name: ``scope/name``.
        version: Resolved version (None for revision-based providers).
        rev: Resolved revision (revision-based providers only).
        index: Registry index URL for pesde and wally packages.
        alias: Root-level alias, if the package is root-visible.
        environment_overwrite: Environment override requested by the
            consumer that first resolved the package.
        is_main_dependency: Declared by the root manifest.
        dependencies: Canonical key of each dependency mapped to the alias
            this package uses for it.
    """

    provider: Provider
    name: str
    version: str | None = None
    rev: str | None = None
    index: str | None = None
    alias: str | None = None
    environment_overwrite: Environment | None = None
    is_main_dependency: bool = False
    dependencies: dict[str, str | None] = field(default_factory=dict)

    @property
    def identity(self) -> PackageIdentity:
        scope, name = split_name(self.name)
        return PackageIdentity(self.provider, scope, name, version=self.version, rev=self.rev)

    @property
    def key(self) -> str:
        """Canonical ``provider#scope/name@version`` key."""
        return canonicalize(self.identity)

    @property
    def group_key(self) -> str:
        """Lock file table name: ``provider#scope/name``."""
        return f"{self.provider.value}#{self.name}"

    def to_descriptor(self) -> DependencyDescriptor:
        """A descriptor pinned to exactly this entry's version or revision."""
        version = None
        if not self.provider.is_revision_based and self.version and self.version != LATEST:
            version = f"={self.version}"
        return DependencyDescriptor(
            alias=self.alias,
            name=self.name,
            provider=self.provider,
            version=version,
            rev=self.rev,
            index=self.index,
            environment_override=self.environment_overwrite,
        )
