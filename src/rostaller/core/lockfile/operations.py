"""Lock file operations --- deserialization and validation.

This module extends the ``Lockfile`` class (defined in ``lockfile.py``) with
classmethods and instance methods for:

- **Deserialization:** ``from_dict``, ``from_toml``, ``read`` (disk).
- **Validation:** internal consistency checks (dangling dependency keys).

These are attached to the ``Lockfile`` class at import time (in
``__init__.py``) so callers see a single unified API.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

from rostaller.core.identity import Environment, Provider
from rostaller.core.lockfile.models import LockEntry
from rostaller.exceptions import LockfileError

_PROVIDER_KEYS: tuple[Provider, ...] = (
    Provider.WALLY,
    Provider.PESDE,
    Provider.GITHUB,
    Provider.GITHUB_REV,
)


def _entry_from_dict(group_key: str, data: dict[str, Any]) -> LockEntry:
    """Decode one array element of a ``provider#scope/name`` table.

    Raises:
        LockfileError: If no provider key is present or a field is invalid.
    """
    provider = next((p for p in _PROVIDER_KEYS if data.get(p.value)), None)
    if provider is None:
        raise LockfileError(f"Entry of {group_key!r} does not name a provider")

    override = data.get("environment_overwrite")
    try:
        environment = Environment(override) if override else None
    except ValueError as exc:
        raise LockfileError(f"Entry of {group_key!r} has invalid environment {override!r}") from exc

    dependencies: dict[str, str | None] = {}
    for key, edge in (data.get("dependencies") or {}).items():
        dependencies[key] = edge.get("alias") if isinstance(edge, dict) else None

    return LockEntry(
        provider=provider,
        name=data[provider.value],
        version=data.get("version"),
        rev=data.get("rev"),
        index=data.get("index"),
        alias=data.get("alias"),
        environment_overwrite=environment,
        is_main_dependency=bool(data.get("is_main_dependency", False)),
        dependencies=dependencies,
    )


def _from_dict(cls: type, data: dict[str, Any]) -> Any:  # noqa: ANN401
    """Deserialize a lock file from a dict (parsed TOML).

    Args:
        data: Dictionary in the format produced by ``to_dict()``.

    Returns:
        A new ``Lockfile`` instance.

    Raises:
        LockfileError: On an unsupported version or an undecodable entry.
    """
    version = str(data.get("lockfile_version", cls.LOCKFILE_VERSION))
    if version != cls.LOCKFILE_VERSION:
        raise LockfileError(f"Unsupported lockfile_version {version!r}")

    lf = cls()
    for group_key, value in data.items():
        if group_key == "lockfile_version":
            continue
        elements = value if isinstance(value, list) else [value]
        for element in elements:
            if not isinstance(element, dict):
                raise LockfileError(f"Entry of {group_key!r} must be a table")
            lf.add_entry(_entry_from_dict(group_key, element))
    return lf


def _from_toml(cls: type, text: str) -> Any:  # noqa: ANN401
    """Deserialize from a TOML string.

    Raises:
        LockfileError: If the text is not valid TOML or not a lock file.
    """
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise LockfileError(f"Malformed lock file: {exc}") from exc
    return cls.from_dict(data)


def _read(cls: type, path: Path) -> Any:  # noqa: ANN401
    """Read a lock file from disk.

    Raises:
        LockfileError: If the file is missing or invalid.
    """
    if not path.is_file():
        raise LockfileError(f"[{path}] does not exist")
    return cls.from_toml(path.read_text(encoding="utf-8"))


def _validate(self: Any) -> list[str]:  # noqa: ANN401
    """Check that every dependency key refers to an entry of the lock file.

    Returns:
        List of validation error messages. Empty means the lock file is
        consistent.
    """
    errors: list[str] = []
    for entry in self.entries():
        for dep_key in sorted(entry.dependencies):
            if dep_key not in self:
                errors.append(f"{entry.key} depends on {dep_key} which is not in the lock file")
    return errors
