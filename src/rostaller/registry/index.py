"""Registry index bootstrap.

pesde and wally registries publish their API location in a config file at
the root of a GitHub "index" repository (``config.toml`` for pesde,
``config.json`` for wally). The file is read through the GitHub contents
API and memoised per index URL for the rest of the run.
"""

from __future__ import annotations

import json
import logging
import tomllib
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

from rostaller import config
from rostaller.exceptions import FetchError

if TYPE_CHECKING:
    from rostaller.core.context import InstallContext

logger = logging.getLogger(__name__)


def github_headers(token: str) -> dict[str, str]:
    """Headers for GitHub REST API calls, with bearer auth when configured."""
    headers = {
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": config.GITHUB_API_VERSION,
    }
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def parse_index_url(index_url: str) -> tuple[str, str]:
    """Extract ``(owner, repo)`` from a GitHub index repository URL.

    Raises:
        FetchError: If the URL does not point at a GitHub repository.
    """
    path = urlparse(index_url).path.strip("/")
    if path.endswith(".git"):
        path = path[: -len(".git")]
    parts = path.split("/")
    if len(parts) < 2 or not parts[0] or not parts[1]:
        raise FetchError(f"Not a GitHub index repository: {index_url}")
    return parts[0], parts[1]


async def registry_config(
    context: InstallContext, index_url: str, config_file: str
) -> dict[str, Any]:
    """Return the parsed registry config of an index repository.

    Args:
        context: Install context (HTTP client, cache, tokens).
        index_url: e.g. ``https://github.com/UpliftGames/wally-index``.
        config_file: ``config.json`` or ``config.toml``.

    Returns:
        The parsed config, containing at least ``api``.

    Raises:
        RateLimitError: If GitHub rate-limits the request.
        FetchError: If the config cannot be fetched or parsed.
    """
    return await context.metadata.get_or_fetch(
        f"index:{index_url}:{config_file}",
        lambda: _fetch_registry_config(context, index_url, config_file),
    )


async def _fetch_registry_config(
    context: InstallContext, index_url: str, config_file: str
) -> dict[str, Any]:
    owner, repo = parse_index_url(index_url)
    headers = github_headers(context.settings.github_token)
    contents_url = f"{config.GITHUB_API_URL}/repos/{owner}/{repo}/contents/{config_file}"

    listing = await context.http.get_json(contents_url, headers=headers, rate_limited=True)
    download_url = listing.get("download_url") if isinstance(listing, dict) else None
    if not download_url:
        raise FetchError(f"No {config_file} in registry index {index_url}")

    text = await context.http.get_text(download_url, headers=headers, rate_limited=True)
    try:
        if config_file.endswith(".toml"):
            data = tomllib.loads(text)
        else:
            data = json.loads(text)
    except (ValueError, tomllib.TOMLDecodeError) as exc:
        raise FetchError(f"Invalid {config_file} in registry index {index_url}: {exc}") from exc

    if not isinstance(data, dict) or not data.get("api"):
        raise FetchError(f"Registry index {index_url} does not declare an api URL")
    data["api"] = str(data["api"]).rstrip("/")
    logger.debug("Loaded registry config for %s: api=%s", index_url, data["api"])
    return data
