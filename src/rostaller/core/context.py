"""Per-run install context shared by every resolver.

One ``InstallContext`` exists per install run. It owns everything that must
be shared across the concurrent resolvers of that run:

- the resolution tree and download statistics,
- the metadata cache (memoised fetch tasks),
- the HTTP client and the provider instances built on it,
- the concurrency limit and the per-package in-flight locks,
- the project layout (package folders, placement paths).

Nothing here is global, so several runs can coexist in one process (tests
rely on that).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

from rostaller import config
from rostaller.config import Settings
from rostaller.core.identity import Environment, PackageIdentity, Provider
from rostaller.core.tree import ResolutionTree

if TYPE_CHECKING:
    from rostaller.registry.base import PackageProvider
    from rostaller.registry.http_client import HttpFetcher

logger = logging.getLogger(__name__)

T = TypeVar("T")

_ENVIRONMENT_FOLDERS: dict[Environment, str] = {
    Environment.SHARED: config.SHARED_PACKAGES_FOLDER,
    Environment.SERVER: config.SERVER_PACKAGES_FOLDER,
    Environment.DEV: config.DEV_PACKAGES_FOLDER,
}


# ---------------------------------------------------------------------------
# Small shared state holders
# ---------------------------------------------------------------------------


@dataclass
class Placement:
    """DataModel paths where each environment's packages folder is synced.

    Cross-environment linkage files require packages through these paths,
    e.g. ``game.ReplicatedStorage.sharedPackages._Index[...]``.
    """

    shared_packages: str = "game.ReplicatedStorage.sharedPackages"
    server_packages: str = "game.ServerScriptService.serverPackages"
    dev_packages: str = "game.ReplicatedStorage.devPackages"
    use_wally_folder_structure: bool = False

    def for_environment(self, environment: Environment) -> str:
        return {
            Environment.SHARED: self.shared_packages,
            Environment.SERVER: self.server_packages,
            Environment.DEV: self.dev_packages,
        }[environment]


@dataclass
class DownloadStats:
    """Terminal outcomes of package resolution attempts in one run."""

    success: int = 0
    fail: int = 0

    def record_success(self) -> None:
        self.success += 1

    def record_failure(self) -> None:
        self.fail += 1

    @property
    def total(self) -> int:
        return self.success + self.fail


class MetadataCache:
    """Per-run memo of in-flight or completed fetch tasks.

    Concurrent callers asking for the same key await the same task, so a
    registry is queried once per package per run. Entries are never
    invalidated; a failed fetch stays failed for the rest of the run.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Future[Any]] = {}

    async def get_or_fetch(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        """Return the cached result for ``key``, starting ``factory`` on a miss."""
        task = self._tasks.get(key)
        if task is None:
            logger.debug("Metadata cache miss for %s", key)
            task = asyncio.ensure_future(factory())
            self._tasks[key] = task
        return await asyncio.shield(task)

    def __contains__(self, key: object) -> bool:
        return key in self._tasks


# ---------------------------------------------------------------------------
# InstallContext
# ---------------------------------------------------------------------------


class InstallContext:
    """Shared state for one install run.

    Args:
        project_root: Absolute project directory; all paths derive from it.
        settings: User settings (tokens, concurrency limit, tools).
        http: HTTP client shared by every provider.
        providers: Optional provider instances, keyed by provider. Built
            from ``rostaller.registry`` when omitted.
    """

    def __init__(
        self,
        project_root: Path,
        settings: Settings,
        http: HttpFetcher,
        providers: dict[Provider, PackageProvider] | None = None,
    ) -> None:
        self.project_root = project_root.resolve()
        self.settings = settings
        self.http = http
        self.tree = ResolutionTree()
        self.stats = DownloadStats()
        self.metadata = MetadataCache()
        self.placement = Placement()
        self.semaphore = asyncio.Semaphore(settings.max_concurrent_downloads)
        self.materialized: set[str] = set()
        self.failed: set[str] = set()
        self._key_locks: dict[str, asyncio.Lock] = {}

        if providers is None:
            from rostaller.registry import create_providers

            providers = create_providers(self)
        self._providers = providers

    # -- Providers and locks ------------------------------------------------

    def provider(self, kind: Provider) -> PackageProvider:
        return self._providers[kind]

    def key_lock(self, key: str) -> asyncio.Lock:
        """The in-flight lock serializing resolution of one canonical key."""
        lock = self._key_locks.get(key)
        if lock is None:
            lock = self._key_locks[key] = asyncio.Lock()
        return lock

    # -- Layout -------------------------------------------------------------

    def packages_folder(self, environment: Environment) -> Path:
        """``<project>/Packages`` (or ``ServerPackages``, ``DevPackages``)."""
        return self.project_root / _ENVIRONMENT_FOLDERS[environment]

    def index_folder(self, environment: Environment) -> Path:
        return self.packages_folder(environment) / config.INDEX_FOLDER

    def package_folder(self, identity: PackageIdentity, environment: Environment) -> Path:
        """``<index>/<scope>_<name>@<version>``, holding one package and its links."""
        return self.index_folder(environment) / identity.folder_name()

    def package_root(self, identity: PackageIdentity, environment: Environment) -> Path:
        """Extracted package contents: ``<package folder>/<name lower>``."""
        return self.package_folder(identity, environment) / identity.name.lower()

    def all_packages_folders(self) -> list[Path]:
        return [self.packages_folder(env) for env in Environment]
