"""Location and housekeeping of the opaque AAD token cache file.

The file is owned by the exchange collaborators; this module only makes sure
its directory exists and removes the file on request.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from .exceptions import CacheDeletionFailed, TokenCacheCorrupt

logger = logging.getLogger(__name__)

_APP_NAME = "spconnect"
TOKEN_CACHE_FILE_NAME = "tokencache.dat"


def config_dir() -> Path:
    """Return the per-user configuration directory (not created)."""
    base = os.environ.get("XDG_CONFIG_HOME")
    root = Path(base) if base else Path.home() / ".config"
    return root / _APP_NAME


def default_token_cache_path() -> Path:
    return config_dir() / TOKEN_CACHE_FILE_NAME


def prepare_token_cache(path: Path, *, clear: bool = False) -> Path:
    """Ensure the cache directory exists and optionally delete the cache file.

    Args:
        path: Location of the token cache file.
        clear: Delete the file if it exists.

    Returns:
        The cache path.

    Raises:
        TokenCacheCorrupt: If the cache directory cannot be created or
            something other than a file sits at ``path``.
        CacheDeletionFailed: If the file exists but cannot be removed.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise TokenCacheCorrupt(
            f"Cannot create token cache directory {path.parent}: {exc}"
        ) from exc

    if path.exists() and not path.is_file():
        raise TokenCacheCorrupt(f"Token cache {path} is not a regular file.")

    if clear:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise CacheDeletionFailed(
                f"Could not delete token cache {path}: {exc}"
            ) from exc
        logger.info("Cleared token cache at %s", path)
    return path
