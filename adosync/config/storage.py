"""Key-value storage backends for persisted adosync state.

The host platform owns the real storage primitive; this module models it as
an injected async ``KeyValueStorage`` so the cipher and the config store never
touch ambient global state.

Concurrency Model:
    - InMemoryStorage: plain dict, safe on a single event loop.
    - FileStorage: one file per key. Uses atomic writes (tempfile +
      os.replace) for crash-safety and a threading.Lock for access from
      executor threads. Not multi-process safe without external locking.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import os
import re
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path

logger = logging.getLogger(__name__)

# Keys that are safe to use verbatim as file names
_SAFE_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]{1,100}$")


class KeyValueStorage(ABC):
    """Abstract async string key-value store.

    Values are opaque strings; callers serialize JSON themselves.
    """

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the stored value, or None if the key is absent."""
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove key. Deleting an absent key is not an error."""
        pass


class InMemoryStorage(KeyValueStorage):
    """Dictionary-backed storage for tests and embedding hosts."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def raw_items(self) -> dict[str, str]:
        """Snapshot of everything persisted (for inspection in tests)."""
        return dict(self._data)


class FileStorage(KeyValueStorage):
    """File-based persistent storage (~/.adosync/ by default).

    Each key maps to one file. Writes go through a temp file in the same
    directory followed by os.replace(), so a crash never leaves a partial
    value behind. Files are created with 0600 permissions because they hold
    key material and encrypted credentials.
    """

    def __init__(self, directory: Path | None = None) -> None:
        self.directory = directory or Path.home() / ".adosync"
        self.directory.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _get_path(self, key: str) -> Path:
        """Map a storage key to a file path, hashing keys that are not file-safe."""
        if _SAFE_KEY_PATTERN.match(key):
            return self.directory / f"{key}.dat"
        digest = hashlib.sha256(key.encode()).hexdigest()[:32]
        return self.directory / f"key_{digest}.dat"

    def _read(self, key: str) -> str | None:
        path = self._get_path(key)
        with self._lock:
            try:
                return path.read_text(encoding="utf-8")
            except FileNotFoundError:
                return None

    def _atomic_write(self, path: Path, value: str) -> None:
        """Write value to path atomically using temp file + rename.

        Uses try...finally to ensure temp file cleanup on any failure.

        Raises:
            OSError: If file operations fail
        """
        fd, tmp_path = tempfile.mkstemp(
            suffix=".tmp",
            prefix=".store_",
            dir=self.directory,
        )
        fd_closed = False
        success = False
        try:
            os.chmod(tmp_path, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                fd_closed = True  # os.fdopen takes ownership of fd
                f.write(value)
            os.replace(tmp_path, path)
            success = True
        finally:
            if not fd_closed:
                try:
                    os.close(fd)
                except OSError:
                    pass
            if not success:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass

    def _write(self, key: str, value: str) -> None:
        path = self._get_path(key)
        with self._lock:
            self._atomic_write(path, value)
        logger.debug("Stored value for key %s", key)

    def _remove(self, key: str) -> None:
        path = self._get_path(key)
        with self._lock:
            path.unlink(missing_ok=True)
        logger.debug("Deleted key %s", key)

    async def get(self, key: str) -> str | None:
        return await asyncio.to_thread(self._read, key)

    async def set(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._write, key, value)

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._remove, key)


__all__ = [
    "KeyValueStorage",
    "InMemoryStorage",
    "FileStorage",
]
