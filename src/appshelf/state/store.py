"""Byte-level key/value stores backing the metadata repository."""

from __future__ import annotations

import os
import re
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path

from .errors import PersistenceReadError, PersistenceWriteError

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


def _check_key(key: str) -> str:
    if not _KEY_PATTERN.match(key) or key in {".", ".."}:
        raise ValueError(f"Invalid store key: {key!r}")
    return key


class MetadataStore(ABC):
    """Durable storage of independently keyed blobs."""

    @abstractmethod
    def get(self, key: str) -> bytes | None:
        """Return the stored bytes for ``key`` or ``None`` when absent.

        Raises:
            PersistenceReadError: If the key exists but cannot be read.
        """

    @abstractmethod
    def set(self, key: str, value: bytes) -> None:
        """Replace the value stored under ``key``.

        Raises:
            PersistenceWriteError: If the value could not be written durably.
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key`` if present."""


class FileMetadataStore(MetadataStore):
    """Store each key as ``<key>.json`` inside a directory.

    Writes go to a temporary file in the same directory and are moved into
    place with :func:`os.replace`, so a reader sees either the old or the new
    value.
    """

    def __init__(self, directory: Path) -> None:
        self._directory = directory.expanduser()

    @property
    def directory(self) -> Path:
        """Return the directory holding the stored blobs."""
        return self._directory

    def path_for(self, key: str) -> Path:
        """Return the file backing ``key``."""
        return self._directory / f"{_check_key(key)}.json"

    def get(self, key: str) -> bytes | None:
        path = self.path_for(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise PersistenceReadError(f"Could not read {path}: {exc}") from exc

    def set(self, key: str, value: bytes) -> None:
        path = self.path_for(key)
        tmp_name: str | None = None
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "wb", dir=self._directory, prefix=f".{key}.", suffix=".tmp", delete=False
            ) as handle:
                tmp_name = handle.name
                handle.write(value)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as exc:
            raise PersistenceWriteError(f"Could not write {path}: {exc}") from exc
        finally:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)

    def delete(self, key: str) -> None:
        path = self.path_for(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise PersistenceWriteError(f"Could not delete {path}: {exc}") from exc


class InMemoryMetadataStore(MetadataStore):
    """Dictionary-backed store, one instance per test or embedding host.

    Attributes:
        fail_writes: When true, :meth:`set` raises :class:`PersistenceWriteError`.
    """

    def __init__(self, initial: dict[str, bytes] | None = None) -> None:
        self._values: dict[str, bytes] = dict(initial or {})
        self._lock = threading.Lock()
        self.fail_writes = False

    def get(self, key: str) -> bytes | None:
        with self._lock:
            return self._values.get(_check_key(key))

    def set(self, key: str, value: bytes) -> None:
        _check_key(key)
        if self.fail_writes:
            raise PersistenceWriteError(f"Write to {key!r} rejected")
        with self._lock:
            self._values[key] = bytes(value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._values.pop(_check_key(key), None)

    def keys(self) -> list[str]:
        """Return the stored keys in sorted order."""
        with self._lock:
            return sorted(self._values)


__all__ = ["MetadataStore", "FileMetadataStore", "InMemoryMetadataStore"]
