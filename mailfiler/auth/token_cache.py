"""MSAL token cache persisted on disk so sessions survive restarts and renew silently."""

from pathlib import Path

import msal

from mailfiler.config import TOKEN_CACHE_PATH
from mailfiler.utils.logger import get_logger

logger = get_logger("mailfiler.auth.token_cache")


def load_cache(path: Path = TOKEN_CACHE_PATH) -> msal.SerializableTokenCache:
    """Create a SerializableTokenCache and load it from disk if the file exists."""
    cache = msal.SerializableTokenCache()
    if path.exists():
        try:
            cache.deserialize(path.read_text(encoding="utf-8"))
        except ValueError as e:
            # Unreadable cache: start empty; the next sign-in overwrites it
            logger.warning("token_cache.corrupt", path=str(path), error=str(e))
    return cache


def save_cache(cache: msal.SerializableTokenCache, path: Path = TOKEN_CACHE_PATH) -> None:
    """Persist token cache to disk when MSAL changed it."""
    if not cache.has_state_changed:
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(cache.serialize(), encoding="utf-8")
    logger.debug("token_cache.saved", path=str(path))
