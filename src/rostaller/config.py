"""User settings and well-known file and folder names.

Settings live in ``~/.rostaller/config.toml``. Unknown keys are ignored and
missing keys fall back to the defaults below. Access tokens may also be
supplied through environment variables, which take precedence over the file.

Example config file::

    github_token = "ghp_..."
    debug = false
    max_concurrent_downloads = 10
    sourcemap_generator = "rojo"
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

import tomli_w

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# File and folder names
# ---------------------------------------------------------------------------

ROSTALLER_MANIFEST: str = "rostaller.toml"
PESDE_MANIFEST: str = "pesde.toml"
WALLY_MANIFEST: str = "wally.toml"

LOCKFILE_NAME: str = "rostaller.lock"
PROJECT_JSON_NAME: str = "default.project.json"

TEMP_PROJECT_JSON: str = ".temp-rostaller.project.json"
TEMP_SOURCEMAP: str = ".temp-rostaller.sourcemap.json"

INDEX_FOLDER: str = "_Index"
SHARED_PACKAGES_FOLDER: str = "Packages"
SERVER_PACKAGES_FOLDER: str = "ServerPackages"
DEV_PACKAGES_FOLDER: str = "DevPackages"

LINKAGE_EXTENSION: str = ".luau"

# ---------------------------------------------------------------------------
# Remote endpoints
# ---------------------------------------------------------------------------

GITHUB_API_URL: str = "https://api.github.com"
GITHUB_API_VERSION: str = "2022-11-28"
WALLY_API_VERSION: str = "0.3.2"

DEFAULT_WALLY_INDEX: str = "https://github.com/UpliftGames/wally-index"
DEFAULT_PESDE_INDEX: str = "https://github.com/pesde-pkg/index"

DEFAULT_CONFIG_PATH: Path = Path.home() / ".rostaller" / "config.toml"

_TOKEN_ENV_VARS: dict[str, str] = {
    "github_token": "ROSTALLER_GITHUB_TOKEN",
    "wally_token": "ROSTALLER_WALLY_TOKEN",
    "pesde_token": "ROSTALLER_PESDE_TOKEN",
}


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@dataclass
class Settings:
    """Per-user settings for an install run.

    Attributes:
        github_token: Personal access token for the GitHub API. Empty means
            anonymous access with a much lower rate limit.
        wally_token: Bearer token sent to wally registries.
        pesde_token: Token sent to pesde registries.
        debug: Enable verbose logging.
        max_concurrent_downloads: Upper bound on package resolutions that
            may be fetching or extracting at the same time.
        sourcemap_generator: Executable invoked as
            ``<generator> sourcemap <project> --output <file>``.
        type_exporter: Optional executable that adds type annotations to
            generated linkage files. Invoked as ``<exe> <sourcemap> <dir>/``.
    """

    github_token: str = ""
    wally_token: str = ""
    pesde_token: str = ""
    debug: bool = False
    max_concurrent_downloads: int = 10
    sourcemap_generator: str = "rojo"
    type_exporter: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a TOML-compatible dict, omitting unset optionals."""
        return {k: v for k, v in asdict(self).items() if v is not None}


def load_settings(path: Path | None = None, use_environment: bool = True) -> Settings:
    """Load settings from disk and apply environment overrides.

    A missing file yields default settings. A malformed file is logged and
    ignored.

    Args:
        path: Config file location. Defaults to ``~/.rostaller/config.toml``.
        use_environment: Apply the ``ROSTALLER_*_TOKEN`` overrides.

    Returns:
        The effective ``Settings``.
    """
    path = path or DEFAULT_CONFIG_PATH
    settings = Settings()

    if path.is_file():
        try:
            data = tomllib.loads(path.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as exc:
            logger.warning("Ignoring unreadable config file %s: %s", path, exc)
            data = {}
        _apply(settings, data)

    if use_environment:
        for attr, env_var in _TOKEN_ENV_VARS.items():
            value = os.environ.get(env_var)
            if value:
                setattr(settings, attr, value)

    if settings.max_concurrent_downloads < 1:
        settings.max_concurrent_downloads = 1
    return settings


def write_settings(settings: Settings, path: Path | None = None) -> Path:
    """Persist settings as TOML, creating the parent directory if needed."""
    path = path or DEFAULT_CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(tomli_w.dumps(settings.to_dict()), encoding="utf-8")
    return path


def set_setting(key: str, raw_value: str, path: Path | None = None) -> Settings:
    """Change one key of the config file and write it back.

    Environment overrides are not applied, so tokens supplied through the
    environment never end up on disk. An empty value clears an optional key.

    Raises:
        ValueError: If ``key`` is unknown or ``raw_value`` has the wrong type.
    """
    settings = load_settings(path, use_environment=False)
    known = {f.name: f for f in fields(settings)}
    if key not in known:
        raise ValueError(f"Unknown config key {key!r}, expected one of: {', '.join(sorted(known))}")
    setattr(settings, key, _convert(known[key].default, raw_value))
    write_settings(settings, path)
    return settings


def _convert(default: Any, raw_value: str) -> Any:  # noqa: ANN401
    if isinstance(default, bool):
        lowered = raw_value.strip().lower()
        if lowered in ("true", "yes", "1"):
            return True
        if lowered in ("false", "no", "0"):
            return False
        raise ValueError(f"Expected true or false, got {raw_value!r}")
    if isinstance(default, int):
        return max(int(raw_value), 1)
    if default is None and not raw_value:
        return None
    return raw_value


def _apply(settings: Settings, data: dict[str, Any]) -> None:
    """Copy recognised keys of the right type from parsed TOML."""
    for f in fields(settings):
        if f.name not in data:
            continue
        value = data[f.name]
        current = getattr(settings, f.name)
        expected = type(current) if current is not None else str
        if isinstance(value, expected) and not (
            expected is int and isinstance(value, bool)
        ):
            setattr(settings, f.name, value)
        else:
            logger.warning("Ignoring config key %s with value %r", f.name, value)
