"""Lock file factory --- constructing lock files from a resolution tree.

The ``from_tree`` function builds a ``Lockfile`` from the ``ResolutionTree``
of a finished install run. Only nodes whose package was placed on disk are
recorded; packages that failed to download are left out::

    await walker.resolve_root(manifest)
    lockfile = Lockfile.from_tree(context.tree)
    lockfile.write(project_root / LOCKFILE_NAME)
"""

from __future__ import annotations

from typing import Any

from rostaller.core.lockfile.models import LockEntry
from rostaller.core.tree import ResolutionTree


def _from_tree(cls: type, tree: ResolutionTree) -> Any:  # noqa: ANN401
    """Create a lock file from every resolved node of ``tree``."""
    lf = cls()
    for node in tree.resolved():
        package = node.package
        lf.add_entry(
            LockEntry(
                provider=package.provider,
                name=f"{package.scope}/{package.name}",
                version=package.version,
                rev=package.rev,
                index=package.index,
                alias=node.alias,
                environment_overwrite=package.environment_override,
                is_main_dependency=node.is_main_dependency,
                dependencies={
                    key: edge.alias
                    for key, edge in node.dependencies.items()
                    if (target := tree.get(key)) is not None and target.package is not None
                },
            )
        )
    return lf
