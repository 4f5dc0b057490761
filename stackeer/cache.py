from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
import time
from pathlib import Path
from typing import Callable

from .errors import EntryNotFoundError, StorageError


ClockFn = Callable[[], float]

META_SUFFIX = ".meta.json"

logger = logging.getLogger(__name__)


def _atomic_write(path: Path, content: bytes) -> None:
    # Readers observe either the previous file or the new one, never a partial write.
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".part", dir=path.parent)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(content)
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


class DiskCacheStore:
    """Persist binary payloads to disk, one file per cache key.

    The root directory is created lazily on the first write. Files are named
    after the hex cache key with no suffix.
    """

    def __init__(self, directory: Path | str) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, key: str) -> Path:
        return self._directory / key

    def exists(self, key: str) -> bool:
        return self.path_for(key).is_file()

    def read(self, key: str) -> bytes:
        path = self.path_for(key)
        try:
            return path.read_bytes()
        except FileNotFoundError as exc:
            raise EntryNotFoundError(key) from exc
        except OSError as exc:
            raise StorageError(f"Failed to read {path}: {exc}") from exc

    def write(self, key: str, content: bytes) -> Path:
        path = self.path_for(key)
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            _atomic_write(path, content)
        except OSError as exc:
            raise StorageError(f"Failed to write {path}: {exc}") from exc
        return path

    def delete(self, key: str) -> None:
        path = self.path_for(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"Failed to delete {path}: {exc}") from exc

    def keys(self) -> list[str]:
        if not self._directory.is_dir():
            return []
        return sorted(
            path.name
            for path in self._directory.iterdir()
            if path.is_file() and not path.name.startswith(".") and not path.name.endswith(META_SUFFIX)
        )

    def clear_all(self) -> None:
        """Remove the whole cache root, metadata included."""

        if not self._directory.exists():
            return
        try:
            shutil.rmtree(self._directory)
        except FileNotFoundError:
            # Removed concurrently.
            return
        except OSError as exc:
            raise StorageError(f"Failed to clear {self._directory}: {exc}") from exc


class TimestampStore:
    """Sidecar ``<key>.meta.json`` files holding the last-stored time of each entry."""

    def __init__(self, directory: Path | str, clock: ClockFn | None = None) -> None:
        self._directory = Path(directory)
        self._clock: ClockFn = clock or time.time

    def _path(self, key: str) -> Path:
        return self._directory / f"{key}{META_SUFFIX}"

    def get(self, key: str) -> float | None:
        path = self._path(key)
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
            return float(payload["stored_at"])
        except FileNotFoundError:
            return None
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Ignoring unreadable cache metadata", extra={"path": str(path), "error": str(exc)})
            return None

    def touch(self, key: str, stored_at: float | None = None) -> float:
        stored_at = self._clock() if stored_at is None else stored_at
        path = self._path(key)
        body = json.dumps({"stored_at": stored_at}).encode("utf-8")
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            _atomic_write(path, body)
        except OSError as exc:
            raise StorageError(f"Failed to write {path}: {exc}") from exc
        return stored_at

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"Failed to delete {path}: {exc}") from exc
