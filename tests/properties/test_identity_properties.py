"""Property-based tests for canonical keys and environment visibility.

Canonical keys address every node of the resolution tree, every lock
entry and every in-flight lock, so they must be injective over the fields
that name an artifact and invertible by ``parse_canonical``.
"""
from __future__ import annotations

from hypothesis import given
from hypothesis import strategies as st

from rostaller.core.identity import Environment, PackageIdentity, Provider, parse_canonical


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

segments = st.text(
    alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz0123456789-_"), min_size=1, max_size=12
)
versions = st.tuples(
    st.integers(0, 20), st.integers(0, 20), st.integers(0, 20)
).map(lambda t: f"{t[0]}.{t[1]}.{t[2]}")
revisions = st.lists(segments, min_size=1, max_size=3).map("/".join)
environments = st.sampled_from(list(Environment))


@st.composite
def identities(draw: st.DrawFn) -> PackageIdentity:
    provider = draw(st.sampled_from(list(Provider)))
    scope, name = draw(segments), draw(segments)
    if provider.is_revision_based:
        return PackageIdentity(provider, scope, name, rev=draw(revisions))
    return PackageIdentity(provider, scope, name, version=draw(versions))


# ---------------------------------------------------------------------------
# Canonical keys
# ---------------------------------------------------------------------------


class TestCanonicalKeys:
    """canonicalize is injective and parse_canonical inverts it."""

    @given(identity=identities())
    def test_roundtrip(self, identity: PackageIdentity) -> None:
        """parse_canonical(canonicalize(p)) == p."""
        assert parse_canonical(identity.canonical()) == identity

    @given(a=identities(), b=identities())
    def test_injective(self, a: PackageIdentity, b: PackageIdentity) -> None:
        """Different artifacts never share a key."""
        if a != b:
            assert a.canonical() != b.canonical()

    @given(identity=identities())
    def test_folder_name_has_no_separator(self, identity: PackageIdentity) -> None:
        """Folder names are a single path segment."""
        assert "/" not in identity.folder_name()


# ---------------------------------------------------------------------------
# Visibility order
# ---------------------------------------------------------------------------


class TestVisibility:
    """can_see is a total order: reflexive, antisymmetric, transitive."""

    @given(a=environments)
    def test_reflexive(self, a: Environment) -> None:
        assert a.can_see(a)

    @given(a=environments, b=environments)
    def test_antisymmetric(self, a: Environment, b: Environment) -> None:
        if a.can_see(b) and b.can_see(a):
            assert a is b

    @given(a=environments, b=environments, c=environments)
    def test_transitive(self, a: Environment, b: Environment, c: Environment) -> None:
        if a.can_see(b) and b.can_see(c):
            assert a.can_see(c)
