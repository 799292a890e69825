"""Tests for linkage (redirect) file generation."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from rostaller.core import linkage
from rostaller.core.context import Placement
from rostaller.core.identity import Environment, PackageIdentity, Provider, ResolvedPackage
from rostaller.core.tree import ResolutionTree
from rostaller.exceptions import LinkageError


def _package(
    name: str,
    environment: Environment = Environment.SHARED,
    provider: Provider = Provider.GITHUB,
    lib: str | None = None,
) -> ResolvedPackage:
    return ResolvedPackage(
        identity=PackageIdentity(provider, "scope", name, version="1.0.0"),
        environment=environment,
        lib=lib,
    )


def _add(tree: ResolutionTree, package: ResolvedPackage, alias: str | None = None):
    node = tree.set_package(package.key, package)
    tree.set_alias(package.key, alias)
    return node


class TestUpdateLink:

    @pytest.mark.parametrize(
        ("lib", "expected"),
        [
            (None, "base"),
            ("init.luau", "base"),
            ("src/init.lua", "base.src"),
            ("src/Server.luau", "base.src.Server"),
            ("lib/util/init.luau", "base.lib.util"),
        ],
    )
    def test_entry_points(self, lib: str | None, expected: str) -> None:
        assert linkage.update_link("base", lib) == expected


class TestLinks:

    def test_root_link(self) -> None:
        link = linkage.root_link(_package("Foo", lib="src/init.luau"))
        assert link == 'script.Parent._Index["scope_foo@1.0.0"]["foo"].src'

    def test_same_environment(self) -> None:
        link = linkage.dependency_link(_package("foo"), "Foo", _package("bar"), "Bar", Placement())
        assert link == 'script.Parent.Parent["scope_bar@1.0.0"]["bar"]'

    def test_same_environment_from_pesde(self) -> None:
        consumer = _package("foo", provider=Provider.PESDE)
        link = linkage.dependency_link(consumer, "Foo", _package("bar"), "Bar", Placement())
        assert link == 'script.Parent.Parent.Parent.Parent["scope_bar@1.0.0"]["bar"]'

    def test_server_sees_shared_through_placement(self) -> None:
        consumer = _package("foo", Environment.SERVER)
        link = linkage.dependency_link(consumer, "Foo", _package("bar"), "Bar", Placement())
        assert link == 'game.ReplicatedStorage.sharedPackages._Index["scope_bar@1.0.0"]["bar"]'

    def test_dev_sees_server_through_placement(self) -> None:
        consumer = _package("foo", Environment.DEV)
        dependency = _package("bar", Environment.SERVER)
        link = linkage.dependency_link(consumer, "Foo", dependency, "Bar", Placement())
        assert link.startswith("game.ServerScriptService.serverPackages._Index")

    def test_shared_cannot_see_server(self) -> None:
        with pytest.raises(LinkageError, match='Foo \\(scope_foo@1.0.0\\) in "shared" environment'):
            linkage.dependency_link(
                _package("foo"), "Foo", _package("bar", Environment.SERVER), "Bar", Placement()
            )


class TestGenerate:

    def test_root_and_dependency_files(self, make_context, project_root: Path) -> None:
        context, _fake = make_context()
        foo = _add(context.tree, _package("foo"), alias="Foo")
        bar = _package("bar")
        _add(context.tree, bar)
        ResolutionTree.record_edge(foo.dependencies, bar.key, "Bar")

        written = linkage.generate(context)

        root_file = context.project_root / "Packages" / "Foo.luau"
        dep_file = context.project_root / "Packages" / "_Index" / "scope_foo@1.0.0" / "Bar.luau"
        assert sorted(written) == sorted([root_file, dep_file])
        assert root_file.read_text() == 'return require(script.Parent._Index["scope_foo@1.0.0"]["foo"])\n'
        assert dep_file.read_text() == 'return require(script.Parent.Parent["scope_bar@1.0.0"]["bar"])\n'

    def test_pesde_consumer_gets_roblox_packages(self, make_context, project_root: Path) -> None:
        context, _fake = make_context()
        foo = _add(context.tree, _package("foo", provider=Provider.PESDE))
        bar = _package("bar")
        _add(context.tree, bar)
        ResolutionTree.record_edge(foo.dependencies, bar.key, "Bar")

        linkage.generate(context)

        expected = (
            project_root / "Packages" / "_Index" / "scope_foo@1.0.0" / "foo"
            / "roblox_packages" / "Bar.luau"
        )
        assert expected.is_file()

    def test_edges_to_missing_packages_skipped(self, make_context) -> None:
        context, _fake = make_context()
        foo = _add(context.tree, _package("foo"))
        ResolutionTree.record_edge(foo.dependencies, "github#scope/gone@1.0.0", "Gone")
        context.tree.node("github#scope/gone@1.0.0")
        assert linkage.generate(context) == []

    def test_forbidden_edge_writes_nothing(self, make_context, project_root: Path) -> None:
        context, _fake = make_context()
        foo = _add(context.tree, _package("foo"))
        srv = _package("srv", Environment.SERVER)
        _add(context.tree, srv)
        ResolutionTree.record_edge(foo.dependencies, srv.key, "Srv")

        with pytest.raises(LinkageError):
            linkage.generate(context)
        assert not (project_root / "Packages" / "_Index" / "scope_foo@1.0.0" / "Srv.luau").exists()


class TestTempProject:

    def test_only_used_environments(self, make_context) -> None:
        context, _fake = make_context()
        _add(context.tree, _package("foo"), alias="Foo")
        _add(context.tree, _package("srv", Environment.SERVER), alias="Srv")

        project = linkage.build_temp_project(context)

        assert project == {
            "name": "rostaller",
            "tree": {
                "$className": "DataModel",
                "ReplicatedStorage": {"sharedPackages": {"$path": "Packages"}},
                "ServerScriptService": {"serverPackages": {"$path": "ServerPackages"}},
            },
        }

    def test_written_as_json(self, make_context, project_root: Path) -> None:
        context, _fake = make_context()
        _add(context.tree, _package("foo"), alias="Foo")
        path = linkage.write_temp_project(context)
        assert path == context.project_root / ".temp-rostaller.project.json"
        assert json.loads(path.read_text())["name"] == "rostaller"
