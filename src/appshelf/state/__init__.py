"""Persistence of organizational metadata for the application catalog.

Four record sets are stored independently under their own key: hidden ids,
folders, categories and sort weights. Each value is a versioned JSON
envelope. Reads never fail: a blob that cannot be read or decoded is
reported once through :attr:`MetadataRepository.issues`, copied aside to
``<key>.corrupt`` when its bytes are available, and replaced by the last
value decoded in this process, or by the empty default.
Writes propagate :class:`PersistenceWriteError`.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Callable, Dict, List, Literal

from pydantic import TypeAdapter, ValidationError

from .errors import DecodeError, PersistenceReadError, PersistenceWriteError, StateError
from .models import (
    RECORD_SETS,
    DecodeIssue,
    Folder,
    MetadataSnapshot,
    RecordSet,
    new_folder_id,
)
from .store import FileMetadataStore, InMemoryMetadataStore, MetadataStore

LOGGER = logging.getLogger(__name__)

SCHEMA_VERSION = 1

_Fallback = Literal["last_good", "empty"]

_ADAPTERS: dict[RecordSet, TypeAdapter[Any]] = {
    "hidden_ids": TypeAdapter(List[str]),
    "folders": TypeAdapter(List[Folder]),
    "categories": TypeAdapter(Dict[str, str]),
    "sort_weights": TypeAdapter(Dict[str, int]),
}


def empty_value(record: RecordSet) -> Any:
    """Return the empty default for ``record``."""
    if record == "hidden_ids":
        return frozenset()
    if record == "folders":
        return ()
    return {}


def encode_record(record: RecordSet, value: Any) -> bytes:
    """Serialize a record set value into its versioned JSON envelope."""
    if record == "hidden_ids":
        payload: Any = sorted(value)
    elif record == "folders":
        payload = list(value)
    else:
        payload = dict(value)
    data = _ADAPTERS[record].dump_python(payload, mode="json")
    document = {"version": SCHEMA_VERSION, "data": data}
    return json.dumps(document, indent=2, sort_keys=False).encode("utf-8")


def decode_record(record: RecordSet, raw: bytes) -> Any:
    """Deserialize a stored record set.

    Documents without an envelope are treated as version-less payloads.

    Raises:
        DecodeError: If the blob is not valid JSON, carries an unsupported
            version, or does not match the record set's schema.
    """
    try:
        document = json.loads(raw)
    except ValueError as exc:
        raise DecodeError(f"{record}: not valid JSON ({exc})") from exc

    payload = document
    if _is_envelope(document):
        version = document["version"]
        if version > SCHEMA_VERSION:
            raise DecodeError(f"{record}: unsupported schema version {version!r}")
        payload = document["data"]

    try:
        value = _ADAPTERS[record].validate_python(payload)
    except ValidationError as exc:
        raise DecodeError(f"{record}: {exc.error_count()} schema error(s)") from exc

    if record == "hidden_ids":
        return frozenset(value)
    if record == "folders":
        return tuple(value)
    return value


def _is_envelope(document: Any) -> bool:
    if not isinstance(document, dict) or set(document) != {"version", "data"}:
        return False
    version = document["version"]
    return isinstance(version, int) and not isinstance(version, bool)


def _coerce(record: RecordSet, value: Any) -> Any:
    if record == "hidden_ids":
        return frozenset(value)
    if record == "folders":
        return tuple(value)
    return dict(value)


class MetadataRepository:
    """Typed, thread-safe access to the four persisted record sets."""

    def __init__(self, store: MetadataStore) -> None:
        """Initialize the repository over an explicitly constructed store.

        Args:
            store: Byte-level store holding the record sets.
        """
        self._store = store
        self._lock = threading.RLock()
        self._last_good: dict[RecordSet, bytes] = {}
        self._issues: list[DecodeIssue] = []
        # Failure currently reported per record: the corrupt bytes or the read error text.
        self._reported: dict[RecordSet, bytes | str] = {}

    @property
    def store(self) -> MetadataStore:
        """Return the underlying byte store."""
        return self._store

    @property
    def issues(self) -> list[DecodeIssue]:
        """Return read and decode failures reported so far, oldest first."""
        with self._lock:
            return list(self._issues)

    def read(self, record: RecordSet) -> Any:
        """Return the current value of ``record``, recovering from read and decode failures."""
        with self._lock:
            try:
                raw = self._store.get(record)
            except PersistenceReadError as exc:
                return self._recover(record, None, exc)
            if raw is None:
                self._reported.pop(record, None)
                return empty_value(record)
            try:
                value = decode_record(record, raw)
            except DecodeError as exc:
                return self._recover(record, raw, exc)
            self._last_good[record] = raw
            self._reported.pop(record, None)
            return value

    def read_snapshot(self) -> MetadataSnapshot:
        """Read all record sets under one lock so no write interleaves."""
        with self._lock:
            values = {record: self.read(record) for record in RECORD_SETS}
        return MetadataSnapshot(**values)

    def write(self, record: RecordSet, value: Any) -> None:
        """Persist ``value`` as the new content of ``record``.

        Raises:
            PersistenceWriteError: If the store rejects the write.
        """
        encoded = encode_record(record, value)
        with self._lock:
            self._store.set(record, encoded)
            self._last_good[record] = encoded
            self._reported.pop(record, None)

    def mutate(self, record: RecordSet, change: Callable[[Any], Any]) -> Any:
        """Apply ``change`` to the current value of ``record`` and persist the result.

        The read and the write happen under the repository lock, so a
        concurrent mutation of the same record set cannot be lost. Nothing is
        written when ``change`` returns an equal value.

        Args:
            record: Record set to update.
            change: Function receiving the current value and returning the new one.

        Returns:
            Any: The value now stored.

        Raises:
            PersistenceWriteError: If the store rejects the write.
        """
        with self._lock:
            current = self.read(record)
            updated = _coerce(record, change(current))
            if updated == current:
                return current
            self.write(record, updated)
            return self.read(record)

    def _recover(self, record: RecordSet, raw: bytes | None, exc: StateError) -> Any:
        last_good = self._last_good.get(record)
        fallback: _Fallback = "last_good" if last_good is not None else "empty"
        signature = raw if raw is not None else str(exc)
        if self._reported.get(record) != signature:
            self._reported[record] = signature
            self._report(record, raw, exc, fallback)

        if last_good is None:
            return empty_value(record)
        return decode_record(record, last_good)

    def _report(
        self, record: RecordSet, raw: bytes | None, exc: StateError, fallback: _Fallback
    ) -> None:
        LOGGER.warning("Discarding unreadable %s record (%s); using %s value.", record, exc, fallback)
        self._issues.append(DecodeIssue(record=record, message=str(exc), recovered_with=fallback))
        if raw is None:
            return
        try:
            self._store.set(f"{record}.corrupt", raw)
        except PersistenceWriteError as backup_exc:
            LOGGER.warning("Could not preserve unreadable %s record: %s", record, backup_exc)


__all__ = [
    "MetadataRepository",
    "MetadataStore",
    "FileMetadataStore",
    "InMemoryMetadataStore",
    "MetadataSnapshot",
    "Folder",
    "DecodeIssue",
    "RecordSet",
    "RECORD_SETS",
    "SCHEMA_VERSION",
    "StateError",
    "DecodeError",
    "PersistenceReadError",
    "PersistenceWriteError",
    "decode_record",
    "encode_record",
    "empty_value",
    "new_folder_id",
]
