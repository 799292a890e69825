"""Lock file --- reproducible installs from ``rostaller.lock``.

The lock file captures the exact resolved state of an install: every
package at its resolved version or revision, the registry index it came
from, its root alias and the edges to its own dependencies.

The package is split into focused submodules:

- ``models``: The ``LockEntry`` data class.
- ``lockfile``: The ``Lockfile`` class with entry management and
  serialization.
- ``operations``: Deserialization (``from_dict``, ``from_toml``, ``read``)
  and validation.
- ``factory``: The ``from_tree`` factory building a lock file from a
  resolution tree.

All public names are re-exported here so that imports like
``from rostaller.core.lockfile import Lockfile`` work.
"""

# Re-export data models
from rostaller.core.lockfile.models import LockEntry

# Re-export the Lockfile class
from rostaller.core.lockfile.lockfile import Lockfile

# Attach operations to Lockfile as methods/classmethods
from rostaller.core.lockfile import operations as _ops
from rostaller.core.lockfile import factory as _factory

Lockfile.from_dict = classmethod(_ops._from_dict)
Lockfile.from_toml = classmethod(_ops._from_toml)
Lockfile.read = classmethod(_ops._read)
Lockfile.validate = _ops._validate
Lockfile.from_tree = classmethod(_factory._from_tree)

__all__ = [
    "LockEntry",
    "Lockfile",
]
