"""rostaller exception hierarchy.

All public exceptions inherit from RostallerError, giving callers a single
base class to catch when they want to handle any rostaller-specific failure
without swallowing unrelated errors.

Two families matter to the install pipeline:

- Fatal errors (``ManifestError``, ``PlacementError``, ``LinkageError``,
  ``LockfileError``) propagate to the CLI and end the run with exit code 1.
- Per-package errors (``RegistryError`` and subclasses, ``ResolutionError``,
  ``ArchiveError``) are caught by the graph walker, counted in the download
  stats and logged with the package's name. Siblings keep resolving.
"""


class RostallerError(Exception):
    """Base exception for all rostaller errors."""


class ManifestError(RostallerError):
    """Raised when a manifest file is missing, malformed or invalid.

    Covers TOML syntax errors, a missing ``[package]`` table, dependency
    entries of the wrong shape and references to unknown registry indices.
    """


class PlacementError(ManifestError):
    """Raised when the root manifest does not declare package placements.

    Linkage files that cross environments reference the DataModel path of
    the shared or server packages folder, so those paths must be known
    before the root dependencies are resolved.
    """


class RegistryError(RostallerError):
    """Base class for failures talking to a remote package source."""


class FetchError(RegistryError):
    """Raised when metadata or an archive cannot be retrieved.

    Covers non-2xx responses, transport failures after retries are
    exhausted and response bodies that cannot be decoded.
    """


class RateLimitError(RegistryError):
    """Raised when a rate-limited API answers with HTTP 403 or 429.

    Never retried. The message recommends configuring an access token.
    """


class ResolutionError(RostallerError):
    """Raised when a dependency cannot be resolved to a concrete version.

    Covers unsatisfiable requirements, invalid range syntax and unknown
    provider types.
    """


class ArchiveError(RostallerError):
    """Raised when a downloaded archive cannot be materialized.

    Covers bad archive signatures, extraction failures and a package folder
    that could not be moved into place.
    """


class LinkageError(RostallerError):
    """Raised when a linkage file would cross a forbidden environment boundary.

    A shared package can never see a server or dev package, and a server
    package can never see a dev package. This is a structural error in the
    manifests, not a transient failure.
    """


class LockfileError(RostallerError):
    """Raised for lock file reading or consistency failures.

    Covers a missing lock file when a locked install is requested and
    entries that cannot be decoded.
    """
