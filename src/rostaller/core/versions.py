"""Version requirement resolution with npm range semantics.

Manifests write requirements the way npm users expect: a bare version such
as ``1.2.0`` means "compatible with 1.2.0" (``^1.2.0``), while explicit
ranges (``>=1.0.0 <2.0.0``, ``~1.4``, ``1.x``) are used as written.

Prereleases follow npm: a range only matches a prerelease when one of its
comparators names a prerelease of the same ``major.minor.patch``, so
``^1.0.0`` never picks ``1.1.0-beta.1`` while ``^1.0.0-beta.1`` accepts
``1.0.0-beta.2``. A requirement that is itself an exact prerelease version
opens every prerelease inside its range.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

import semantic_version

from rostaller.exceptions import ResolutionError

logger = logging.getLogger(__name__)

# A bare version, optionally partial or prefixed with "v". Anything else is
# already a range expression.
_BARE_VERSION_RE = re.compile(r"^v?\d+(\.\d+){0,2}(-[0-9A-Za-z.-]+)?(\+[0-9A-Za-z.-]+)?$")


def clean_version(text: object) -> str | None:
    """Loosely clean a version string.

    Strips surrounding whitespace and a leading ``=`` or ``v`` and then
    parses strictly. Tags like ``v1.2.3`` become ``1.2.3``; ranges and
    garbage return None.

    Args:
        text: Raw version or tag text.

    Returns:
        The normalized version string, or None if it is not an exact version
        (or not a string at all).
    """
    if not isinstance(text, str) or not text:
        return None
    candidate = text.strip().lstrip("=v").strip()
    try:
        return str(semantic_version.Version(candidate))
    except ValueError:
        return None


def normalize_requirement(requirement: str | None) -> str:
    """Turn a manifest requirement into an npm range expression.

    A bare version gets a ``^`` prefix; everything else is returned as
    written. An empty requirement matches any version.
    """
    if requirement is None or not requirement.strip():
        return "*"
    requirement = requirement.strip()
    if _BARE_VERSION_RE.match(requirement):
        return "^" + requirement.lstrip("v")
    return requirement


def is_prerelease_requirement(requirement: str | None) -> bool:
    """True when the requirement is itself an exact prerelease version."""
    cleaned = clean_version(requirement)
    return cleaned is not None and bool(semantic_version.Version(cleaned).prerelease)


def sort_versions(versions: Iterable[str], descending: bool = True) -> list[str]:
    """Sort version strings by semver precedence, dropping unparsable ones."""
    parsed: list[semantic_version.Version] = []
    for raw in versions:
        try:
            parsed.append(semantic_version.Version(raw))
        except ValueError:
            logger.debug("Ignoring unparsable version %r", raw)
    parsed.sort(reverse=descending)
    return [str(v) for v in parsed]


def max_satisfying(versions: Iterable[str], requirement: str | None) -> str | None:
    """Pick the highest version that satisfies ``requirement``.

    Args:
        versions: Candidate versions (exact semver strings).
        requirement: Manifest requirement, normalized with
            ``normalize_requirement`` before matching.

    Returns:
        The best matching version, or None if nothing matches.

    Raises:
        ResolutionError: If the requirement is not a valid range.
    """
    expression = normalize_requirement(requirement)
    try:
        spec = semantic_version.NpmSpec(expression)
    except ValueError as exc:
        raise ResolutionError(f"Invalid version requirement {requirement!r}: {exc}") from exc

    floor = None
    if is_prerelease_requirement(requirement):
        floor = semantic_version.Version(clean_version(requirement))

    best: semantic_version.Version | None = None
    for raw in versions:
        try:
            version = semantic_version.Version(raw)
        except ValueError:
            continue
        if not _satisfies(spec, version, floor):
            continue
        if best is None or version > best:
            best = version
    return str(best) if best is not None else None


def _satisfies(
    spec: semantic_version.NpmSpec,
    version: semantic_version.Version,
    floor: semantic_version.Version | None,
) -> bool:
    if version in spec:
        return True
    # Prereleases inside the range are open once the requirement names one.
    if floor is None or not version.prerelease:
        return False
    return version >= floor and version.truncate() in spec
