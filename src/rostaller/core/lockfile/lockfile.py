"""Lock file core class --- entry management and serialization.

The ``Lockfile`` class is the in-memory form of ``rostaller.lock``. It
provides:

- **Entry management:** add, get, count and list entries.
- **Serialization:** deterministic ``to_dict``, ``to_toml`` and ``write``.

Layout: a ``lockfile_version`` key followed by one array of tables per
``provider#scope/name``, with one element per resolved version of that
package. Keys are sorted at every level, so the same tree always produces a
byte-identical file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import tomli_w

from rostaller.core.identity import DependencyDescriptor
from rostaller.core.lockfile.models import LockEntry


class Lockfile:
    """Resolved state of an install --- every package at its exact version.

    Example::

        lf = Lockfile()
        lf.add_entry(LockEntry(
            provider=Provider.GITHUB,
            name="scope/foo",
            version="1.0.0",
            alias="Foo",
            is_main_dependency=True,
        ))
        lf.write(Path("rostaller.lock"))
    """

    LOCKFILE_VERSION: str = "1"

    def __init__(self) -> None:
        self._entries: dict[str, LockEntry] = {}

    # -- Entry management ---------------------------------------------------

    def add_entry(self, entry: LockEntry) -> None:
        """Add an entry, replacing any entry with the same canonical key."""
        self._entries[entry.key] = entry

    def get(self, key: str) -> LockEntry | None:
        """Look up an entry by canonical key."""
        return self._entries.get(key)

    def entries(self) -> list[LockEntry]:
        """All entries, sorted by canonical key."""
        return [self._entries[k] for k in sorted(self._entries)]

    def to_descriptors(self) -> list[DependencyDescriptor]:
        """Pinned descriptors for every entry, in key order."""
        return [entry.to_descriptor() for entry in self.entries()]

    @property
    def keys(self) -> list[str]:
        return sorted(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    # -- Serialization ------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a TOML-compatible dict with sorted keys."""
        groups: dict[str, list[dict[str, Any]]] = {}
        for entry in self.entries():
            groups.setdefault(entry.group_key, []).append(_entry_to_dict(entry))

        data: dict[str, Any] = {"lockfile_version": self.LOCKFILE_VERSION}
        for group_key in sorted(groups):
            data[group_key] = groups[group_key]
        return data

    def to_toml(self) -> str:
        return tomli_w.dumps(self.to_dict())

    def write(self, path: Path) -> None:
        """Write the lock file, creating parent directories if needed."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_toml(), encoding="utf-8")


def _entry_to_dict(entry: LockEntry) -> dict[str, Any]:
    fields: dict[str, Any] = {entry.provider.value: entry.name}
    if entry.provider.is_revision_based:
        if entry.rev:
            fields["rev"] = entry.rev
    elif entry.version:
        fields["version"] = entry.version
    if entry.index:
        fields["index"] = entry.index
    if entry.alias:
        fields["alias"] = entry.alias
    if entry.environment_overwrite is not None:
        fields["environment_overwrite"] = entry.environment_overwrite.value
    fields["is_main_dependency"] = entry.is_main_dependency
    if entry.dependencies:
        fields["dependencies"] = {
            key: ({"alias": alias} if alias else {})
            for key, alias in sorted(entry.dependencies.items())
        }
    return dict(sorted(fields.items()))
