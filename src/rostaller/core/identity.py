"""Package identity, naming and the shared dependency data models.

Every resolved package is addressed by a canonical key of the form
``provider#scope/name@version`` (or ``@rev`` for revision-based providers).
The key is used by the resolution tree, the lock file and the in-flight
registry, so two resolutions of the same artifact always collapse onto the
same node no matter where in the graph they were requested.

The on-disk folder for a package is derived from the same fields, minus the
provider. Revisions may contain slashes (branch names), which are flattened
when building the folder name.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class Provider(str, Enum):
    """Where a package comes from."""

    GITHUB = "github"
    GITHUB_REV = "github-rev"
    PESDE = "pesde"
    WALLY = "wally"

    @property
    def is_revision_based(self) -> bool:
        """True when packages are addressed by a git revision, not a version."""
        return self is Provider.GITHUB_REV


class Environment(str, Enum):
    """Roblox runtime context a package is installed into.

    Visibility is asymmetric: dev sees server and shared, server sees
    shared, shared sees only itself.
    """

    SHARED = "shared"
    SERVER = "server"
    DEV = "dev"

    def can_see(self, other: Environment) -> bool:
        """Whether a package in this environment may require one in ``other``."""
        return _VISIBILITY_RANK[other] <= _VISIBILITY_RANK[self]


_VISIBILITY_RANK: dict[Environment, int] = {
    Environment.SHARED: 0,
    Environment.SERVER: 1,
    Environment.DEV: 2,
}

# Separators that delimit the fields of a canonical key.
_CANONICAL_RE = re.compile(
    r"^(?:(?P<provider>[a-z-]+)#)?(?P<scope>[^#/@]+)/(?P<name>[^#/@]+)@(?P<version>[^#@]+)$"
)


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------


@dataclass
class DependencyDescriptor:
    """One dependency as declared in a manifest, registry metadata or lock file.

    Attributes:
        alias: Local name the consumer uses to require the package. None
            for lock entries of packages that are not root-visible.
        name: ``scope/name``.
        provider: Package source.
        version: Version requirement, or None for "latest".
        rev: Git revision for revision-based providers.
        index: Registry index URL for pesde and wally packages.
        environment_override: Forces the package into this environment.
    """

    alias: str | None
    name: str
    provider: Provider
    version: str | None = None
    rev: str | None = None
    index: str | None = None
    environment_override: Environment | None = None

    @property
    def scope(self) -> str:
        return split_name(self.name)[0]

    @property
    def package_name(self) -> str:
        return split_name(self.name)[1]

    def display_name(self) -> str:
        """Human-readable ``scope/name@requirement`` used in log lines."""
        if self.provider.is_revision_based:
            return f"{self.name}@{self.rev or 'main'}"
        return f"{self.name}@{self.version or 'latest'}"


@dataclass(frozen=True)
class PackageIdentity:
    """The concrete artifact a descriptor resolved to."""

    provider: Provider
    scope: str
    name: str
    version: str | None = None
    rev: str | None = None

    def canonical(self, ignore_type: bool = False) -> str:
        return canonicalize(self, ignore_type=ignore_type)

    def folder_name(self) -> str:
        return folder_name(self)


@dataclass
class ResolvedPackage:
    """A package that has been downloaded and placed on disk.

    Attributes:
        identity: The resolved artifact.
        environment: Environment the package was placed in after
            inspecting its own manifest (or the registry metadata).
        environment_override: Override requested by the consumer, if any.
        index: Registry index URL the package was fetched from.
        lib: Entry point relative to the package root, e.g. ``src/init.luau``.
        alias: Alias of the descriptor that first produced this package.
    """

    identity: PackageIdentity
    environment: Environment
    environment_override: Environment | None = None
    index: str | None = None
    lib: str | None = None
    alias: str | None = None

    @property
    def key(self) -> str:
        return self.identity.canonical()

    @property
    def provider(self) -> Provider:
        return self.identity.provider

    @property
    def scope(self) -> str:
        return self.identity.scope

    @property
    def name(self) -> str:
        return self.identity.name

    @property
    def version(self) -> str | None:
        return self.identity.version

    @property
    def rev(self) -> str | None:
        return self.identity.rev


# ---------------------------------------------------------------------------
# Naming helpers
# ---------------------------------------------------------------------------


def split_name(full_name: str) -> tuple[str, str]:
    """Split ``scope/name`` into its two parts.

    Raises:
        ValueError: If ``full_name`` is not of the form ``scope/name``.
    """
    scope, sep, name = full_name.partition("/")
    if not sep or not scope or not name or "/" in name:
        raise ValueError(f"Expected 'scope/name', got {full_name!r}")
    return scope, name


def canonicalize(
    package: PackageIdentity | ResolvedPackage,
    ignore_type: bool = False,
    version: str | None = None,
    rev: str | None = None,
) -> str:
    """Build the canonical key of a package.

    Args:
        package: Identity (or resolved package) to name.
        ignore_type: Drop the ``provider#`` prefix.
        version: Use this version instead of the package's own.
        rev: Use this revision instead of the package's own.

    Returns:
        ``provider#scope/name@version``, or ``@rev`` for revision-based
        providers.
    """
    identity = package.identity if isinstance(package, ResolvedPackage) else package
    if identity.provider.is_revision_based:
        suffix = rev or identity.rev
    else:
        suffix = version or identity.version
    key = f"{identity.scope}/{identity.name}@{suffix}"
    if ignore_type:
        return key
    return f"{identity.provider.value}#{key}"


def parse_canonical(key: str) -> PackageIdentity:
    """Inverse of ``canonicalize`` for keys that carry a provider prefix.

    Raises:
        ValueError: If ``key`` is not a canonical key.
    """
    match = _CANONICAL_RE.match(key)
    if match is None or match.group("provider") is None:
        raise ValueError(f"Not a canonical package key: {key!r}")
    provider = Provider(match.group("provider"))
    suffix = match.group("version")
    if provider.is_revision_based:
        return PackageIdentity(provider, match.group("scope"), match.group("name"), rev=suffix)
    return PackageIdentity(provider, match.group("scope"), match.group("name"), version=suffix)


def folder_name(identity: PackageIdentity) -> str:
    """Folder under ``_Index`` holding one resolved package."""
    suffix = identity.rev if identity.provider.is_revision_based else identity.version
    return f"{identity.scope.lower()}_{identity.name.lower()}@{str(suffix).replace('/', '_')}"
