"""Tests for root manifest updates and migration."""

from __future__ import annotations

import tomllib
from pathlib import Path

from rostaller.core.identity import Environment, PackageIdentity, Provider, ResolvedPackage
from rostaller.core.tree import ResolutionTree
from rostaller.core.updater import (
    VersionUpdate,
    migrate,
    rostaller_group,
    update_root_manifest,
    wally_group,
)
from rostaller.manifest import ManifestKind, ManifestRef


def _tree(*packages: tuple[str, ResolvedPackage]) -> ResolutionTree:
    tree = ResolutionTree()
    for alias, package in packages:
        node = tree.set_package(package.key, package)
        tree.set_alias(package.key, alias)
        node.is_main_dependency = True
    return tree


def _package(
    provider: Provider,
    name: str,
    version: str | None = None,
    rev: str | None = None,
    environment: Environment = Environment.SHARED,
    override: Environment | None = None,
    index: str | None = None,
) -> ResolvedPackage:
    return ResolvedPackage(
        identity=PackageIdentity(provider, "scope", name, version=version, rev=rev),
        environment=environment,
        environment_override=override,
        index=index,
    )


class TestGroups:

    def test_rostaller_groups(self) -> None:
        assert rostaller_group(_package(Provider.GITHUB, "a", "1.0.0")) == "dependencies"
        dev = _package(Provider.GITHUB, "a", "1.0.0", environment=Environment.DEV, override=Environment.DEV)
        assert rostaller_group(dev) == "dev_dependencies"
        server = _package(Provider.GITHUB, "a", "1.0.0", override=Environment.SERVER)
        assert rostaller_group(server) == "server_dependencies_overwrite"
        shared = _package(Provider.GITHUB, "a", "1.0.0", override=Environment.SHARED)
        assert rostaller_group(shared) == "shared_dependencies_overwrite"

    def test_wally_groups(self) -> None:
        server = _package(Provider.WALLY, "a", "1.0.0", override=Environment.SERVER)
        assert wally_group(server) == "server-dependencies"
        assert wally_group(_package(Provider.WALLY, "a", "1.0.0")) == "dependencies"


class TestUpdateRostaller:

    def test_changed_exact_pin_rewritten(self, tmp_path: Path) -> None:
        path = tmp_path / "rostaller.toml"
        path.write_text(
            "[package]\n\n[dependencies]\n"
            'Foo = { github = "scope/foo", version = "v1.0.0" }\n'
            'Bar = { github = "scope/bar", version = "^1.0.0" }\n'
        )
        tree = _tree(
            ("Foo", _package(Provider.GITHUB, "foo", "1.2.0")),
            ("Bar", _package(Provider.GITHUB, "bar", "1.4.0")),
        )

        updates = update_root_manifest(ManifestRef(path, ManifestKind.ROSTALLER), tree)

        assert updates == [VersionUpdate("Foo", "v1.0.0", "1.2.0")]
        data = tomllib.loads(path.read_text())
        assert data["dependencies"]["Foo"]["version"] == "1.2.0"
        assert data["dependencies"]["Bar"]["version"] == "^1.0.0"

    def test_unchanged_file_not_rewritten(self, tmp_path: Path) -> None:
        path = tmp_path / "rostaller.toml"
        original = '[package]\n\n[dependencies]\nFoo = { github = "scope/foo", version = "1.0.0" }\n'
        path.write_text(original)
        tree = _tree(("Foo", _package(Provider.GITHUB, "foo", "1.0.0")))

        assert update_root_manifest(ManifestRef(path, ManifestKind.ROSTALLER), tree) == []
        assert path.read_text() == original

    def test_revisions_never_rewritten(self, tmp_path: Path) -> None:
        path = tmp_path / "rostaller.toml"
        path.write_text('[package]\n\n[dependencies]\nFoo = { github-rev = "scope/foo", rev = "main" }\n')
        tree = _tree(("Foo", _package(Provider.GITHUB_REV, "foo", rev="main")))
        assert update_root_manifest(ManifestRef(path, ManifestKind.ROSTALLER), tree) == []


class TestUpdateWally:

    def test_string_entry_rewritten(self, tmp_path: Path) -> None:
        path = tmp_path / "wally.toml"
        path.write_text(
            '[package]\nname = "me/game"\n\n[server-dependencies]\nFoo = "scope/foo@1.0.0"\n'
        )
        tree = _tree(("Foo", _package(Provider.WALLY, "foo", "1.1.0", override=Environment.SERVER)))

        updates = update_root_manifest(ManifestRef(path, ManifestKind.WALLY), tree)

        assert updates == [VersionUpdate("Foo", "1.0.0", "1.1.0")]
        assert tomllib.loads(path.read_text())["server-dependencies"]["Foo"] == "scope/foo@1.1.0"


class TestPesdeRoot:

    def test_never_rewritten(self, tmp_path: Path) -> None:
        path = tmp_path / "pesde.toml"
        original = 'name = "me/game"\n[dependencies]\nFoo = { name = "scope/foo", version = "1.0.0" }\n'
        path.write_text(original)
        tree = _tree(("Foo", _package(Provider.PESDE, "foo", "1.2.0")))
        assert update_root_manifest(ManifestRef(path, ManifestKind.PESDE), tree) == []
        assert path.read_text() == original


class TestMigrate:

    def test_wally_root_migrated(self, tmp_path: Path) -> None:
        source = tmp_path / "wally.toml"
        source.write_text(
            '[package]\nname = "me/game"\nrealm = "shared"\n\n'
            '[place]\nshared-packages = "game.ReplicatedStorage.Packages"\n\n'
            '[dependencies]\nFoo = "scope/foo@1.0.0"\n\n'
            '[dev-dependencies]\nTest = "scope/test@0.4.0"\n'
        )
        tree = _tree(
            ("Foo", _package(Provider.WALLY, "foo", "1.0.0", index="https://github.com/UpliftGames/wally-index")),
            ("Test", _package(Provider.WALLY, "test", "0.4.1", environment=Environment.DEV, override=Environment.DEV)),
        )

        updates = update_root_manifest(ManifestRef(source, ManifestKind.WALLY), tree, migrating=True)

        assert updates == []
        data = tomllib.loads((tmp_path / "rostaller.toml").read_text())
        assert data["package"] == {"name": "me/game", "environment": "shared"}
        assert data["place"] == {"shared_packages": "game.ReplicatedStorage.Packages"}
        assert data["dependencies"] == {"Foo": {"wally": "scope/foo", "version": "1.0.0"}}
        assert data["dev_dependencies"]["Test"]["version"] == "0.4.1"
        assert "server_dependencies_overwrite" not in data

    def test_custom_index_and_revision_kept(self) -> None:
        tree = _tree(
            ("Priv", _package(Provider.WALLY, "priv", "2.0.0", index="https://github.com/me/index")),
            ("Rev", _package(Provider.GITHUB_REV, "rev", rev="abc123")),
        )
        data = migrate({}, tree)
        assert data["dependencies"]["Priv"]["index"] == "https://github.com/me/index"
        assert data["dependencies"]["Rev"] == {"github-rev": "scope/rev", "rev": "abc123"}
        assert list(data["dependencies"]) == ["Priv", "Rev"]
