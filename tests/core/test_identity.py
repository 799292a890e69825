"""Tests for canonical package keys, folder names and environment visibility."""

from __future__ import annotations

import pytest

from rostaller.core.identity import (
    DependencyDescriptor,
    Environment,
    PackageIdentity,
    Provider,
    ResolvedPackage,
    canonicalize,
    folder_name,
    parse_canonical,
    split_name,
)


class TestCanonicalize:
    """Canonical keys are ``provider#scope/name@version``."""

    def test_version_based(self) -> None:
        identity = PackageIdentity(Provider.GITHUB, "scope", "foo", version="1.0.0")
        assert canonicalize(identity) == "github#scope/foo@1.0.0"

    def test_revision_based_uses_rev(self) -> None:
        identity = PackageIdentity(Provider.GITHUB_REV, "scope", "foo", rev="main")
        assert canonicalize(identity) == "github-rev#scope/foo@main"

    def test_ignore_type_drops_prefix(self) -> None:
        identity = PackageIdentity(Provider.WALLY, "scope", "foo", version="0.3.1")
        assert canonicalize(identity, ignore_type=True) == "scope/foo@0.3.1"

    def test_version_override(self) -> None:
        identity = PackageIdentity(Provider.PESDE, "scope", "foo", version="1.0.0")
        assert canonicalize(identity, version="2.0.0") == "pesde#scope/foo@2.0.0"

    def test_resolved_package_is_accepted(self) -> None:
        identity = PackageIdentity(Provider.GITHUB, "scope", "foo", version="1.0.0")
        package = ResolvedPackage(identity=identity, environment=Environment.SHARED)
        assert canonicalize(package) == identity.canonical()
        assert package.key == "github#scope/foo@1.0.0"

    def test_same_fields_same_key(self) -> None:
        a = PackageIdentity(Provider.GITHUB, "scope", "foo", version="1.0.0")
        b = PackageIdentity(Provider.GITHUB, "scope", "foo", version="1.0.0")
        assert a.canonical() == b.canonical()

    def test_providers_never_collide(self) -> None:
        keys = {
            PackageIdentity(p, "scope", "foo", version="1.0.0", rev="1.0.0").canonical()
            for p in Provider
        }
        assert len(keys) == len(Provider)


class TestParseCanonical:
    """``parse_canonical`` inverts ``canonicalize``."""

    def test_roundtrip_version(self) -> None:
        identity = PackageIdentity(Provider.WALLY, "roblox", "testez", version="0.4.1")
        assert parse_canonical(identity.canonical()) == identity

    def test_roundtrip_branch_with_slash(self) -> None:
        identity = PackageIdentity(Provider.GITHUB_REV, "scope", "foo", rev="feature/x")
        assert parse_canonical(identity.canonical()) == identity

    def test_missing_provider_rejected(self) -> None:
        with pytest.raises(ValueError):
            parse_canonical("scope/foo@1.0.0")

    def test_garbage_rejected(self) -> None:
        with pytest.raises(ValueError):
            parse_canonical("github#nonsense")


class TestNaming:
    """Folder names and ``scope/name`` splitting."""

    def test_folder_name_is_lowercase(self) -> None:
        identity = PackageIdentity(Provider.GITHUB, "Scope", "Foo", version="1.0.0")
        assert folder_name(identity) == "scope_foo@1.0.0"

    def test_folder_name_flattens_branch_slashes(self) -> None:
        identity = PackageIdentity(Provider.GITHUB_REV, "scope", "foo", rev="feature/x")
        assert identity.folder_name() == "scope_foo@feature_x"

    def test_split_name(self) -> None:
        assert split_name("evaera/promise") == ("evaera", "promise")

    @pytest.mark.parametrize("bad", ["promise", "/promise", "evaera/", "a/b/c"])
    def test_split_name_rejects(self, bad: str) -> None:
        with pytest.raises(ValueError):
            split_name(bad)

    def test_descriptor_display_name(self) -> None:
        descriptor = DependencyDescriptor(alias="Foo", name="scope/foo", provider=Provider.GITHUB)
        assert descriptor.display_name() == "scope/foo@latest"
        rev = DependencyDescriptor(alias="Foo", name="scope/foo", provider=Provider.GITHUB_REV)
        assert rev.display_name() == "scope/foo@main"


class TestEnvironmentVisibility:
    """dev sees server and shared, server sees shared, shared sees itself."""

    @pytest.mark.parametrize(
        ("consumer", "dependency", "visible"),
        [
            (Environment.SHARED, Environment.SHARED, True),
            (Environment.SHARED, Environment.SERVER, False),
            (Environment.SHARED, Environment.DEV, False),
            (Environment.SERVER, Environment.SHARED, True),
            (Environment.SERVER, Environment.SERVER, True),
            (Environment.SERVER, Environment.DEV, False),
            (Environment.DEV, Environment.SHARED, True),
            (Environment.DEV, Environment.SERVER, True),
            (Environment.DEV, Environment.DEV, True),
        ],
    )
    def test_can_see(self, consumer: Environment, dependency: Environment, visible: bool) -> None:
        assert consumer.can_see(dependency) is visible
