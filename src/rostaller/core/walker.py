"""Concurrent dependency graph walker.

The walker turns declared dependencies into resolved, on-disk packages and
records the graph in the run's ``ResolutionTree``. For every descriptor it:

1. asks the descriptor's provider to resolve the requirement to a concrete
   identity (``prepare``),
2. records the edge from the consumer (or the root alias) in the tree,
3. takes the in-flight lock of the canonical key, so that two consumers of
   the same artifact never download it twice; the second one finds it
   already materialized and only keeps its edge,
4. downloads and extracts the archive, inspects the package's own manifest
   to settle its environment, entry point and sync descriptor,
5. resolves the package's own dependencies with the package as consumer.

Per-package failures are caught here, counted once in ``DownloadStats`` and
logged with the package's name; siblings keep resolving. The concurrency
semaphore is only held around a package's own network and filesystem work,
never across recursion, so deep graphs cannot starve themselves.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Iterable
from dataclasses import dataclass
from pathlib import Path

from rostaller.core import materialize, sync_config
from rostaller.core.context import InstallContext
from rostaller.core.identity import DependencyDescriptor, Environment, ResolvedPackage
from rostaller.core.lockfile import Lockfile
from rostaller.core.tree import DependencyEdge, ResolutionTree
from rostaller.exceptions import RostallerError
from rostaller.manifest import (
    ManifestRef,
    load_manifest,
    load_placement,
    read_dependencies,
    reader_for,
)
from rostaller.registry.base import PackageProvider, ResolvedRequest

logger = logging.getLogger(__name__)


@dataclass
class ResolveOutcome:
    """Result of a successful resolution.

    Attributes:
        key: Canonical key of the resolved package.
        sub_manifest: The package's own manifest, if it ships one.
        sub_dependencies: Dependencies to resolve next, from registry
            metadata or from ``sub_manifest``.
    """

    key: str
    sub_manifest: ManifestRef | None
    sub_dependencies: list[DependencyDescriptor]


class GraphWalker:
    """Resolves dependency graphs into an ``InstallContext``."""

    def __init__(self, context: InstallContext) -> None:
        self.context = context

    # -- Entry points -------------------------------------------------------

    async def resolve_root(self, manifest: ManifestRef, migrating: bool = False) -> None:
        """Resolve every dependency declared by the root manifest.

        Raises:
            ManifestError: If the root manifest is missing or invalid.
            PlacementError: If the root manifest's placement is incomplete.
        """
        data = await asyncio.to_thread(load_manifest, manifest, True)
        self.context.placement = load_placement(manifest, data, ignore_wally_structure=migrating)
        descriptors = read_dependencies(manifest, is_root=True, data=data)
        logger.debug("Resolving %d root dependencies", len(descriptors))
        await self.resolve_many(descriptors, None, is_main=True)

    async def resolve_lock(self, lockfile: Lockfile, manifest: ManifestRef) -> None:
        """Resolve exactly the packages listed in a lock file.

        Entries are resolved without recursion. Once every entry finished,
        the locked dependency edges are attached to the tree so linkage
        files can be generated as if the graph had been walked.
        """
        data = await asyncio.to_thread(load_manifest, manifest, True)
        self.context.placement = load_placement(manifest, data, ignore_wally_structure=True)

        pairs = [(entry, entry.to_descriptor()) for entry in lockfile.entries()]
        await self._gather(
            self.resolve(descriptor, None, recursive=False, is_main=entry.is_main_dependency)
            for entry, descriptor in pairs
        )

        for entry, _descriptor in pairs:
            node = self.context.tree.get(entry.key)
            if node is None:
                continue
            node.dependencies = {
                key: DependencyEdge(alias=alias) for key, alias in entry.dependencies.items()
            }

    async def resolve_many(
        self,
        descriptors: list[DependencyDescriptor],
        parent_dependencies: dict[str, DependencyEdge] | None = None,
        is_main: bool = False,
    ) -> None:
        """Resolve sibling dependencies concurrently."""
        await self._gather(
            self.resolve(descriptor, parent_dependencies, is_main=is_main)
            for descriptor in descriptors
        )

    async def resolve(
        self,
        descriptor: DependencyDescriptor,
        parent_dependencies: dict[str, DependencyEdge] | None = None,
        recursive: bool = True,
        is_main: bool = False,
    ) -> ResolveOutcome | None:
        """Resolve one dependency and, optionally, its own dependencies.

        Args:
            descriptor: Dependency to resolve.
            parent_dependencies: Edge map of the consumer, or None when the
                dependency is declared by the root (or a lock file).
            recursive: Resolve the package's own dependencies as well.
            is_main: Mark the node as declared by the root manifest.

        Returns:
            The outcome, or None when the package failed or was already
            materialized by another consumer in this run.
        """
        context = self.context
        request: ResolvedRequest | None = None
        try:
            provider = context.provider(descriptor.provider)
            async with context.semaphore:
                request = await provider.prepare(descriptor)
            self._record(request.key, descriptor, parent_dependencies, is_main)

            async with context.key_lock(request.key):
                if request.key in context.failed:
                    logger.debug("Package %s already failed", request.key)
                    return None
                if request.key in context.materialized:
                    logger.debug("Package %s already exists", request.key)
                    return None
                try:
                    async with context.semaphore:
                        outcome = await self._acquire(provider, request)
                except (RostallerError, OSError):
                    context.failed.add(request.key)
                    raise
        except (RostallerError, OSError) as exc:
            if request is None:
                attempt = _attempt_key(descriptor)
                if attempt in context.failed:
                    logger.debug("Dependency %s already failed", attempt)
                    return None
                context.failed.add(attempt)
            context.stats.record_failure()
            logger.error(
                "Failed to download %s package %s: %s",
                descriptor.provider.value,
                descriptor.display_name(),
                exc,
            )
            return None

        context.stats.record_success()
        logger.info(
            "Downloaded %s from %s",
            request.identity.canonical(ignore_type=True),
            descriptor.provider.value,
        )

        if recursive and outcome.sub_dependencies:
            node = context.tree.node(outcome.key)
            await self.resolve_many(outcome.sub_dependencies, node.dependencies)
        return outcome

    # -- Internals ----------------------------------------------------------

    @staticmethod
    async def _gather(coroutines: Iterable[Awaitable[object]]) -> None:
        """Await all coroutines; re-raise the first unexpected error afterwards."""
        results = await asyncio.gather(*coroutines, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                raise result

    def _record(
        self,
        key: str,
        descriptor: DependencyDescriptor,
        parent_dependencies: dict[str, DependencyEdge] | None,
        is_main: bool,
    ) -> None:
        tree = self.context.tree
        if parent_dependencies is not None:
            ResolutionTree.record_edge(parent_dependencies, key, descriptor.alias)
        else:
            tree.set_alias(key, descriptor.alias)
        if is_main:
            tree.node(key).is_main_dependency = True

    async def _acquire(self, provider: PackageProvider, request: ResolvedRequest) -> ResolveOutcome:
        """Download (or adopt) the package folder and settle its metadata."""
        context = self.context
        identity = request.identity
        folder = context.package_folder(identity, request.environment)
        package_root = context.package_root(identity, request.environment)

        if request.moving_target or not folder.exists():
            if folder.exists():
                await asyncio.to_thread(materialize.remove_tree, folder)
            logger.debug("Downloading %s ...", request.key)
            archive = await provider.fetch(request)
            await asyncio.to_thread(
                materialize.extract_archive, archive, request.archive_format, package_root
            )
        else:
            logger.debug("Reusing existing folder %s", folder)

        contents = await asyncio.to_thread(_prepare_contents, package_root, identity.name.lower())

        environment = request.environment
        if not request.environment_final:
            if contents.environment is not None:
                environment = contents.environment
            else:
                logger.info("%s does not declare an environment, using shared", request.key)
                environment = Environment.SHARED
            if environment is not request.environment:
                await asyncio.to_thread(
                    materialize.relocate, folder, context.package_folder(identity, environment)
                )
                if contents.manifest is not None:
                    contents.manifest = ManifestRef(
                        path=context.package_root(identity, environment) / contents.manifest.path.name,
                        kind=contents.manifest.kind,
                    )

        sub_dependencies = await provider.dependencies(request)
        if sub_dependencies is None:
            sub_dependencies = []
            if contents.manifest is not None and contents.data is not None:
                sub_dependencies = reader_for(contents.manifest.kind).read_dependencies(
                    contents.data, is_root=False
                )

        descriptor = request.descriptor
        context.tree.set_package(
            request.key,
            ResolvedPackage(
                identity=identity,
                environment=environment,
                environment_override=descriptor.environment_override,
                index=request.index or descriptor.index,
                lib=contents.lib,
                alias=descriptor.alias,
            ),
        )
        context.materialized.add(request.key)
        return ResolveOutcome(
            key=request.key,
            sub_manifest=contents.manifest,
            sub_dependencies=sub_dependencies,
        )


def _attempt_key(descriptor: DependencyDescriptor) -> str:
    """Key of a dependency that failed before it resolved to an identity."""
    requirement = descriptor.rev or descriptor.version or "*"
    return f"{descriptor.provider.value}#{descriptor.name}@{requirement}:{descriptor.index or ''}"


def _prepare_contents(package_root: Path, project_name: str) -> materialize.PackageContents:
    """Inspect an extracted package and write its sync descriptor."""
    contents = materialize.inspect_package(package_root)
    if contents.build_files:
        sync_config.generate(package_root, contents.build_files)
    materialize.rename_project(package_root, project_name)
    return contents
