"""End-to-end install runs against a mocked GitHub API."""

from __future__ import annotations

import asyncio
import json
import tomllib
from pathlib import Path

import httpx
import pytest

from rostaller.config import Settings
from rostaller.core.installer import install, install_from_lock
from rostaller.exceptions import LockfileError, ManifestError

ROOT_MANIFEST = """
[package]
environment = "shared"

[dependencies]
Foo = { github = "scope/foo", version = "1.0.0" }
"""

ZIPBALL_URL = "https://api.github.com/repos/scope/foo/zipball/v1.0.0"


class GitHubStub:
    """Routes a handful of GitHub API paths and records every request."""

    def __init__(self, zipball: bytes) -> None:
        self.zipball = zipball
        self.requests: list[str] = []
        self.broken: set[str] = set()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests.append(path)
        if any(path.startswith(f"/repos/{name}/") for name in self.broken):
            return httpx.Response(404, json={"message": "Not Found"})
        if path == "/repos/scope/foo/releases":
            return httpx.Response(200, json=[{"tag_name": "v1.0.0"}, {"tag_name": "nightly"}])
        if path == "/repos/scope/foo/releases/tags/v1.0.0":
            return httpx.Response(200, json={"tag_name": "v1.0.0", "zipball_url": ZIPBALL_URL})
        if path == "/repos/scope/foo/zipball/v1.0.0":
            return httpx.Response(200, content=self.zipball)
        return httpx.Response(404, json={"message": "Not Found"})

    def count(self, path: str) -> int:
        return self.requests.count(path)


@pytest.fixture
def stub(make_zip) -> GitHubStub:
    return GitHubStub(make_zip({"scope-foo-0a1b2c3/init.luau": "return {}"}))


@pytest.fixture
def project(project_root: Path) -> Path:
    (project_root / "rostaller.toml").write_text(ROOT_MANIFEST)
    return project_root


def _install(project: Path, settings: Settings, stub: GitHubStub, **kwargs: object):
    return asyncio.run(install(project, settings, transport=httpx.MockTransport(stub), **kwargs))


class TestInstall:

    def test_full_install(self, project: Path, settings: Settings, stub: GitHubStub) -> None:
        report = _install(project, settings, stub)

        assert report.success == 1
        assert report.fail == 0
        assert stub.count("/repos/scope/foo/zipball/v1.0.0") == 1

        package_root = project / "Packages" / "_Index" / "scope_foo@1.0.0" / "foo"
        assert (package_root / "init.luau").is_file()

        root_file = project / "Packages" / "Foo.luau"
        assert root_file.read_text() == 'return require(script.Parent._Index["scope_foo@1.0.0"]["foo"])\n'
        assert report.linkage_files == 1

    def test_lock_file_written(self, project: Path, settings: Settings, stub: GitHubStub) -> None:
        report = _install(project, settings, stub)

        assert report.lockfile == (project / "rostaller.lock").resolve()
        data = tomllib.loads((project / "rostaller.lock").read_text())
        entry = data["github#scope/foo"][0]
        assert entry["version"] == "1.0.0"
        assert entry["alias"] == "Foo"
        assert entry["is_main_dependency"] is True

    def test_temporary_files_removed(self, project: Path, settings: Settings, stub: GitHubStub) -> None:
        _install(project, settings, stub)
        assert not (project / ".temp-rostaller.project.json").exists()
        assert not (project / ".temp-rostaller.sourcemap.json").exists()

    def test_previous_packages_cleared(self, project: Path, settings: Settings, stub: GitHubStub) -> None:
        stale = project / "DevPackages" / "_Index" / "old_pkg@0.1.0"
        stale.mkdir(parents=True)
        _install(project, settings, stub)
        assert not (project / "DevPackages").exists()

    def test_failed_package_keeps_manifest(self, project: Path, settings: Settings, stub: GitHubStub) -> None:
        manifest = project / "rostaller.toml"
        manifest.write_text(
            ROOT_MANIFEST + 'Gone = { github = "scope/gone", version = "v0.1.0" }\n'
        )
        before = manifest.read_text()
        stub.broken.add("scope/gone")

        report = _install(project, settings, stub)

        assert report.success == 1
        assert report.fail == 1
        assert report.manifest_updated is False
        assert manifest.read_text() == before
        lock = tomllib.loads((project / "rostaller.lock").read_text())
        assert list(lock) == ["lockfile_version", "github#scope/foo"]

    def test_missing_root_manifest(self, project_root: Path, settings: Settings, stub: GitHubStub) -> None:
        with pytest.raises(ManifestError, match="does not exist"):
            _install(project_root, settings, stub)

    def test_migrate_wally_root(self, project_root: Path, settings: Settings, stub: GitHubStub) -> None:
        (project_root / "wally.toml").write_text('[package]\nname = "me/game"\nrealm = "shared"\n')
        report = _install(project_root, settings, stub, migrating=True)
        assert report.success == 0
        migrated = tomllib.loads((project_root / "rostaller.toml").read_text())
        assert migrated["package"]["environment"] == "shared"


class TestInstallFromLock:

    def test_reinstalls_locked_packages(self, project: Path, settings: Settings, stub: GitHubStub) -> None:
        _install(project, settings, stub)
        lock_before = (project / "rostaller.lock").read_text()
        (project / "Packages" / "Foo.luau").unlink()

        report = asyncio.run(
            install_from_lock(project, settings, transport=httpx.MockTransport(stub))
        )

        assert report.success == 1
        assert report.fail == 0
        assert stub.count("/repos/scope/foo/zipball/v1.0.0") == 2
        assert (project / "Packages" / "Foo.luau").is_file()
        assert (project / "rostaller.lock").read_text() == lock_before

    def test_missing_lock_file(self, project: Path, settings: Settings, stub: GitHubStub) -> None:
        with pytest.raises(LockfileError, match="Unable to locate"):
            asyncio.run(install_from_lock(project, settings, transport=httpx.MockTransport(stub)))
        assert stub.requests == []


class TestTempProjectContents:

    def test_project_descriptor_handed_to_generator(
        self, project: Path, settings: Settings, stub: GitHubStub, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        from rostaller.core import sourcemap

        seen: dict[str, object] = {}

        def fake_generate_types(context, project_file):  # noqa: ANN001, ANN202
            seen.update(json.loads(project_file.read_text()))
            return []

        monkeypatch.setattr(sourcemap, "generate_types", fake_generate_types)
        _install(project, settings, stub)

        assert seen["tree"]["ReplicatedStorage"]["sharedPackages"] == {"$path": "Packages"}
