"""Shared fixtures for rostaller tests."""

from __future__ import annotations

import asyncio
import io
import tarfile
import zipfile
from collections.abc import Callable
from pathlib import Path

import pytest

from rostaller.config import Settings
from rostaller.core.context import InstallContext
from rostaller.core.identity import DependencyDescriptor, Environment, PackageIdentity, Provider
from rostaller.core.versions import sort_versions
from rostaller.exceptions import FetchError
from rostaller.registry.base import ArchiveFormat, PackageProvider, ResolvedRequest


def build_zip(files: dict[str, str]) -> bytes:
    """Build an in-memory ZIP archive from a path-to-content map."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in files.items():
            archive.writestr(name, content)
    return buffer.getvalue()


def build_tar_gz(files: dict[str, str]) -> bytes:
    """Build an in-memory gzip+tar archive from a path-to-content map."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as archive:
        for name, content in files.items():
            data = content.encode("utf-8")
            info = tarfile.TarInfo(name)
            info.size = len(data)
            archive.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


@pytest.fixture
def make_zip() -> Callable[[dict[str, str]], bytes]:
    return build_zip


@pytest.fixture
def make_tar_gz() -> Callable[[dict[str, str]], bytes]:
    return build_tar_gz


@pytest.fixture
def settings() -> Settings:
    """Settings that never reach a real sourcemap tool."""
    return Settings(
        max_concurrent_downloads=4,
        sourcemap_generator="rostaller-test-missing-sourcemap-tool",
    )


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """An empty project directory."""
    root = tmp_path / "project"
    root.mkdir()
    return root


# ---------------------------------------------------------------------------
# In-memory package provider
# ---------------------------------------------------------------------------


class FakeProvider(PackageProvider):
    """GitHub-flavoured provider serving packages from a dict.

    ``catalogue`` maps ``scope/name`` to ``{version: {path: content}}``.
    Archive paths are wrapped in a single top-level folder, the way GitHub
    zipballs are. Names in ``failing`` fail to download.
    """

    kind = Provider.GITHUB

    def __init__(self, catalogue: dict[str, dict[str, dict[str, str]]]) -> None:
        super().__init__(None)
        self.catalogue = catalogue
        self.failing: set[str] = set()
        self.prepared: list[DependencyDescriptor] = []
        self.fetches: list[str] = []

    async def list_versions(self, scope: str, name: str, index: str | None = None) -> list[str]:
        return sort_versions(self.catalogue.get(f"{scope}/{name}", {}))

    async def prepare(self, descriptor: DependencyDescriptor) -> ResolvedRequest:
        self.prepared.append(descriptor)
        version = await self.resolve_requirement(descriptor)
        if version is None:
            raise self._unsatisfied(descriptor)
        return ResolvedRequest(
            descriptor=descriptor,
            identity=PackageIdentity(
                Provider.GITHUB, descriptor.scope, descriptor.package_name, version=version
            ),
            environment=self._environment_for(descriptor, Environment.SHARED),
            environment_final=descriptor.environment_override is not None,
            archive_format=ArchiveFormat.ZIP,
        )

    async def fetch(self, request: ResolvedRequest) -> bytes:
        identity = request.identity
        self.fetches.append(request.key)
        await asyncio.sleep(0)
        full_name = f"{identity.scope}/{identity.name}"
        if full_name in self.failing:
            raise FetchError(f"HTTP 404 for {full_name}")
        files = self.catalogue[full_name][identity.version]
        top = f"{identity.scope}-{identity.name}-0a1b2c3"
        return build_zip({f"{top}/{path}": content for path, content in files.items()})


@pytest.fixture
def make_context(project_root: Path, settings: Settings) -> Callable[..., tuple[InstallContext, FakeProvider]]:
    """Factory for an install context whose GitHub provider is a ``FakeProvider``."""

    def factory(
        catalogue: dict[str, dict[str, dict[str, str]]] | None = None,
    ) -> tuple[InstallContext, FakeProvider]:
        fake = FakeProvider(catalogue or {})
        context = InstallContext(project_root, settings, http=None, providers={Provider.GITHUB: fake})
        fake.context = context
        return context, fake

    return factory
