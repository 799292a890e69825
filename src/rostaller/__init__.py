"""rostaller: Package manager for Roblox/Luau projects.

Resolves dependencies declared in ``rostaller.toml``, ``pesde.toml`` or
``wally.toml`` manifests against GitHub releases, GitHub revisions and the
pesde and wally registries, then materializes them on disk together with a
lock file and environment-aware linkage files.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"
