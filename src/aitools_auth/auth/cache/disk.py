"""Disk-persisted token cache.

A single JSON document per user, ``{"tokens": [...]}``, readable and writable
by the owner only. Loaded once per instance and pruned of expired entries on
load; written wholesale on save. Concurrent tool invocations are not
coordinated: last writer wins, which is safe because inserts are idempotent
per (scope, tenant_id).
"""

from __future__ import annotations

import logging
import os
import stat
import sys
from pathlib import Path

from pydantic import ValidationError

from aitools_auth.auth.models.errors import TokenCacheError
from aitools_auth.auth.models.tokens import (
    TOKEN_EXPIRY_BUFFER_SECS,
    CachedTokenEntry,
    TokenCacheFile,
)

logger = logging.getLogger(__name__)

CACHE_DIR_NAME = "azure-aitoolsconnect"
CACHE_FILE_NAME = "tokens.json"


def default_cache_dir() -> Path:
    """Per-user cache directory for the current platform."""
    if sys.platform == "win32":
        local_app_data = os.environ.get("LOCALAPPDATA")
        if local_app_data:
            return Path(local_app_data) / CACHE_DIR_NAME
    return Path.home() / ".cache" / CACHE_DIR_NAME


class DiskTokenCache:
    """Owner of the on-disk token document."""

    def __init__(
        self,
        path: Path | None = None,
        buffer_seconds: float = TOKEN_EXPIRY_BUFFER_SECS,
    ):
        self.path = path or default_cache_dir() / CACHE_FILE_NAME
        self.buffer_seconds = buffer_seconds
        self._data: TokenCacheFile | None = None

    def load(self) -> TokenCacheFile:
        """Read the cache file once, discarding expired entries.

        A missing file yields an empty cache.

        Raises:
            TokenCacheError: If the file exists but cannot be read or parsed
        """
        if self._data is not None:
            return self._data

        if not self.path.exists():
            self._data = TokenCacheFile()
            return self._data

        try:
            content = self.path.read_bytes()
            data = TokenCacheFile.model_validate_json(content)
        except OSError as e:
            raise TokenCacheError(f"Failed to read token cache: {e}") from e
        except (ValidationError, UnicodeDecodeError) as e:
            raise TokenCacheError(f"Failed to parse token cache: {e}") from e

        pruned = data.prune_expired(self.buffer_seconds)
        if pruned:
            logger.debug(f"Pruned {pruned} expired token(s) from {self.path}")

        self._data = data
        return data

    def get_valid(self, scope: str, tenant_id: str) -> CachedTokenEntry | None:
        return self.load().get_valid_token(scope, tenant_id, self.buffer_seconds)

    def insert(self, entry: CachedTokenEntry) -> None:
        self.load().insert(entry)

    def save(self) -> None:
        """Write the whole document, restricted to the owner.

        Raises:
            TokenCacheError: If the directory or file cannot be written
        """
        data = self.load()
        directory = self.path.parent
        temp_path = self.path.with_suffix(".tmp")

        try:
            directory.mkdir(parents=True, exist_ok=True)
            if os.name == "posix":
                directory.chmod(stat.S_IRWXU)

            # Create with 0600 up front so the token is never world-readable
            fd = os.open(temp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data.model_dump_json(indent=2))
            if os.name == "posix":
                temp_path.chmod(stat.S_IRUSR | stat.S_IWUSR)
            temp_path.replace(self.path)
        except OSError as e:
            raise TokenCacheError(f"Failed to write token cache: {e}") from e

        logger.info(f"Saved {len(data.tokens)} token(s) to {self.path}")

    def clear(self) -> None:
        """Delete the cache file and forget loaded entries."""
        self._data = TokenCacheFile()
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise TokenCacheError(f"Failed to remove token cache: {e}") from e
        logger.info(f"Cleared token cache at {self.path}")
