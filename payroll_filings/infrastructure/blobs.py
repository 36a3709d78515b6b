"""Document blob storage.

Tests and local runs use :class:`InMemoryBlobStore`; setting
``BLOB_STORE_ROOT`` switches the application to :class:`LocalBlobStore`.
"""
from __future__ import annotations

import threading
from pathlib import Path
from typing import Protocol

from payroll_filings.core.paths import resolve_under


class StorageError(RuntimeError):
    """Raised when a blob cannot be stored, read or removed."""


class BlobStore(Protocol):
    """Contract for document storage backends."""

    def put(self, path: str, data: bytes) -> str:
        """Store ``data`` at ``path`` (overwriting) and return the stored path."""

    def get(self, path: str) -> bytes: ...

    def delete(self, path: str) -> None: ...


class InMemoryBlobStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._blobs: dict[str, bytes] = {}

    def put(self, path: str, data: bytes) -> str:
        with self._lock:
            self._blobs[path] = bytes(data)
        return path

    def get(self, path: str) -> bytes:
        with self._lock:
            try:
                return self._blobs[path]
            except KeyError:
                raise StorageError(f"blob not found: {path}") from None

    def delete(self, path: str) -> None:
        with self._lock:
            if self._blobs.pop(path, None) is None:
                raise StorageError(f"blob not found: {path}")

    def exists(self, path: str) -> bool:
        with self._lock:
            return path in self._blobs

    def reset(self) -> None:
        with self._lock:
            self._blobs.clear()


class LocalBlobStore:
    """Stores documents beneath a directory on the local filesystem."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)

    def _resolve(self, path: str) -> Path:
        try:
            return resolve_under(self._root, path)
        except ValueError as exc:
            raise StorageError(str(exc)) from exc

    def put(self, path: str, data: bytes) -> str:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise StorageError(f"failed to store {path}: {exc}") from exc
        return path

    def get(self, path: str) -> bytes:
        target = self._resolve(path)
        try:
            return target.read_bytes()
        except OSError as exc:
            raise StorageError(f"failed to read {path}: {exc}") from exc

    def delete(self, path: str) -> None:
        target = self._resolve(path)
        try:
            target.unlink()
        except OSError as exc:
            raise StorageError(f"failed to delete {path}: {exc}") from exc

    def reset(self) -> None:  # pragma: no cover - filesystem stores are left in place
        return None
