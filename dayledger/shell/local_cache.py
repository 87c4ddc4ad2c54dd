"""Local Cache - Durable key/value store on the device filesystem.

Each key is stored as one file under the cache directory. Writes go to a
temporary file first and are moved into place, so a crash never leaves a
half-written payload behind.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol
from urllib.parse import quote, unquote


logger = logging.getLogger(__name__)


def activity_key(user_id: str, date_iso: str) -> str:
    """Cache key for a user's ledger on a date."""
    return f"activity:{user_id}:{date_iso}"


def lifts_key(user_id: str) -> str:
    """Cache key for a user's last-lift map."""
    return f"lifts:last:{user_id}"


def settings_key(kind: str, user_id: str) -> str:
    """Cache key for a settings blob (integrations, targets, goals)."""
    return f"settings:{kind}:{user_id or 'anon'}"


class LocalCache(Protocol):
    """Interface the ledger core needs from a local cache."""

    def get(self, key: str) -> bytes | None: ...

    def set(self, key: str, value: bytes) -> None: ...

    def keys(self, prefix: str = "") -> list[str]: ...


class FileCache:
    """Local cache backed by one file per key.

    Layout:
        <root>/<url-quoted key>
    """

    def __init__(self, root: Path | str) -> None:
        """Initialize the cache.

        Args:
            root: Directory holding cache files (created on first write)
        """
        self.root = Path(root).expanduser()

    def _path(self, key: str) -> Path:
        return self.root / quote(key, safe="")

    def get(self, key: str) -> bytes | None:
        """Read a value.

        Returns:
            Stored bytes, or None if missing or unreadable
        """
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.error("Failed to read cache key %s: %s", key, str(e))
            return None

    def set(self, key: str, value: bytes) -> None:
        """Write a value atomically, replacing any previous one."""
        self.root.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.root, prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(value)
            os.replace(tmp, self._path(key))
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def keys(self, prefix: str = "") -> list[str]:
        """List stored keys starting with prefix, sorted."""
        if not self.root.is_dir():
            return []
        found = []
        for path in self.root.iterdir():
            if path.name.startswith(".tmp-"):
                continue
            key = unquote(path.name)
            if key.startswith(prefix):
                found.append(key)
        return sorted(found)
