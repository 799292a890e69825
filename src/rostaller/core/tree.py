"""Resolution tree: one node per resolved package, keyed canonically.

The tree is the single shared structure every resolver writes into. Each
node records:

- the alias under which the root manifest requires it (only for
  root-visible packages),
- the edges from this package to its own dependencies, each carrying the
  alias the package uses for that dependency,
- the resolved package itself, once it has been placed on disk.

A node can exist before its package is known (an edge or alias may be
recorded first) and is never replaced once created.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

from rostaller.core.identity import ResolvedPackage


@dataclass
class DependencyEdge:
    """The alias a consumer uses to require one of its dependencies."""

    alias: str | None


@dataclass
class TreeNode:
    """One package in the resolution tree.

    Attributes:
        key: Canonical key of the package.
        alias: Root-level alias, or None when the package is only reached
            transitively.
        dependencies: Edges to this package's own dependencies, keyed by
            the dependency's canonical key.
        package: The resolved package, or None until it has been placed
            (or if its download failed).
        is_main_dependency: True when the root manifest declares it.
    """

    key: str
    alias: str | None = None
    dependencies: dict[str, DependencyEdge] = field(default_factory=dict)
    package: ResolvedPackage | None = None
    is_main_dependency: bool = False


class ResolutionTree:
    """Canonical-key to ``TreeNode`` map with idempotent node creation."""

    def __init__(self) -> None:
        self._nodes: dict[str, TreeNode] = {}

    def node(self, key: str) -> TreeNode:
        """Return the node for ``key``, creating an empty one on first use."""
        existing = self._nodes.get(key)
        if existing is None:
            existing = self._nodes[key] = TreeNode(key=key)
        return existing

    def get(self, key: str) -> TreeNode | None:
        return self._nodes.get(key)

    def set_alias(self, key: str, alias: str | None) -> None:
        """Record the root-level alias of ``key``; the first alias wins."""
        node = self.node(key)
        if node.alias is None and alias:
            node.alias = alias

    def set_package(self, key: str, package: ResolvedPackage) -> TreeNode:
        """Attach the resolved package to its node; the first package wins."""
        node = self.node(key)
        if node.package is None:
            node.package = package
        return node

    @staticmethod
    def record_edge(
        parent_dependencies: dict[str, DependencyEdge], key: str, alias: str | None
    ) -> None:
        """Record ``key`` as a dependency of a parent; the first alias wins."""
        if key not in parent_dependencies:
            parent_dependencies[key] = DependencyEdge(alias=alias)

    def resolved(self) -> list[TreeNode]:
        """Nodes whose package was placed, sorted by key."""
        return [self._nodes[k] for k in sorted(self._nodes) if self._nodes[k].package]

    def __contains__(self, key: object) -> bool:
        return key in self._nodes

    def __iter__(self) -> Iterator[TreeNode]:
        return iter(list(self._nodes.values()))

    def __len__(self) -> int:
        return len(self._nodes)
