"""Tests for archive extraction and package folder handling."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from rostaller.core import materialize
from rostaller.core.identity import Environment
from rostaller.exceptions import ArchiveError
from rostaller.registry.base import ArchiveFormat


class TestRenameWithRetry:

    def test_retries_transient_failures(self, tmp_path: Path) -> None:
        source = tmp_path / "a"
        source.mkdir()
        destination = tmp_path / "b"
        real_rename = materialize.os.rename
        calls: list[int] = []

        def flaky(src, dst):  # noqa: ANN001, ANN202
            calls.append(1)
            if len(calls) < 3:
                raise PermissionError("busy")
            real_rename(src, dst)

        with patch.object(materialize.os, "rename", side_effect=flaky), patch.object(
            materialize.time, "sleep"
        ) as sleep:
            assert materialize.rename_with_retry(source, destination) is True

        assert destination.is_dir()
        assert len(calls) == 3
        assert sleep.call_count == 2

    def test_gives_up(self, tmp_path: Path) -> None:
        with patch.object(materialize.os, "rename", side_effect=OSError("nope")), patch.object(
            materialize.time, "sleep"
        ) as sleep:
            ok = materialize.rename_with_retry(tmp_path / "a", tmp_path / "b", attempts=3)
        assert ok is False
        assert sleep.call_count == 2


class TestExtractArchive:

    def test_single_top_folder_hoisted(self, tmp_path: Path, make_zip) -> None:
        data = make_zip({"owner-repo-abc123/init.luau": "return 1", "owner-repo-abc123/src/a.luau": ""})
        destination = tmp_path / "_Index" / "scope_foo@1.0.0" / "foo"

        materialize.extract_archive(data, ArchiveFormat.ZIP, destination)

        assert (destination / "init.luau").read_text() == "return 1"
        assert (destination / "src" / "a.luau").is_file()
        assert [p.name for p in destination.parent.iterdir()] == ["foo"]

    def test_flat_tarball_kept_as_is(self, tmp_path: Path, make_tar_gz) -> None:
        data = make_tar_gz({"init.luau": "return 2", "pesde.toml": 'name = "scope/foo"\n'})
        destination = tmp_path / "foo"

        materialize.extract_archive(data, ArchiveFormat.TAR_GZ, destination)

        assert (destination / "init.luau").read_text() == "return 2"
        assert (destination / "pesde.toml").is_file()

    def test_bad_signature(self, tmp_path: Path) -> None:
        with pytest.raises(ArchiveError, match="Failed to download release files"):
            materialize.extract_archive(b"<html>rate limited</html>", ArchiveFormat.ZIP, tmp_path / "x")

    def test_corrupt_archive(self, tmp_path: Path) -> None:
        with pytest.raises(ArchiveError, match="Failed to extract"):
            materialize.extract_archive(b"PK\x03\x04garbage", ArchiveFormat.ZIP, tmp_path / "x")
        assert not (tmp_path / "x").exists()


class TestRelocate:

    def test_moves_and_prunes_empty_parent(self, tmp_path: Path) -> None:
        source = tmp_path / "Packages" / "_Index" / "scope_foo@1.0.0"
        (source / "foo").mkdir(parents=True)
        destination = tmp_path / "ServerPackages" / "_Index" / "scope_foo@1.0.0"

        materialize.relocate(source, destination)

        assert (destination / "foo").is_dir()
        assert not (tmp_path / "Packages" / "_Index").exists()


class TestInspectPackage:

    def test_no_manifest(self, tmp_path: Path) -> None:
        contents = materialize.inspect_package(tmp_path)
        assert contents.manifest is None
        assert contents.environment is None

    def test_rostaller_manifest(self, tmp_path: Path) -> None:
        (tmp_path / "rostaller.toml").write_text(
            '[package]\nenvironment = "server"\nlib = "src/init.luau"\nbuild_files = ["src"]\n'
        )
        contents = materialize.inspect_package(tmp_path)
        assert contents.environment is Environment.SERVER
        assert contents.lib == "src/init.luau"
        assert contents.build_files == ["src"]

    def test_wally_realm(self, tmp_path: Path) -> None:
        (tmp_path / "wally.toml").write_text('[package]\nname = "scope/foo"\nrealm = "server"\n')
        assert materialize.inspect_package(tmp_path).environment is Environment.SERVER

    def test_pesde_target(self, tmp_path: Path) -> None:
        (tmp_path / "pesde.toml").write_text(
            'name = "scope/foo"\n[target]\nenvironment = "roblox"\nlib = "lib/init.luau"\n'
        )
        contents = materialize.inspect_package(tmp_path)
        assert contents.environment is Environment.SHARED
        assert contents.lib == "lib/init.luau"


class TestRenameProject:

    def test_name_rewritten(self, tmp_path: Path) -> None:
        path = tmp_path / "default.project.json"
        path.write_text(json.dumps({"name": "upstream", "tree": {"$path": "src"}}))
        materialize.rename_project(tmp_path, "foo")
        project = json.loads(path.read_text())
        assert project == {"name": "foo", "tree": {"$path": "src"}}

    def test_malformed_json_left_alone(self, tmp_path: Path) -> None:
        path = tmp_path / "default.project.json"
        path.write_text("{ not json")
        materialize.rename_project(tmp_path, "foo")
        assert path.read_text() == "{ not json"
