"""Merge enumerated items with persisted metadata and publish catalog snapshots.

:func:`build_snapshot` is the pure merge. :class:`CatalogReconciler` runs it
on a background worker so callers are never blocked by filesystem
enumeration. At most one pass runs at a time; a forced request that arrives
while a pass is running sets a single pending flag and the worker runs one
more pass before going idle, however many forced requests arrived.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from typing import Callable, Iterable, Optional, Sequence

from appshelf.discovery import CandidateItem, EnumerationError, Enumerator
from appshelf.state import MetadataRepository, MetadataSnapshot
from appshelf.state.models import Folder

from .models import CatalogSnapshot, FolderEntry, Item, ItemEntry, item_sort_key, utcnow

LOGGER = logging.getLogger(__name__)

Listener = Callable[[CatalogSnapshot], None]


def build_snapshot(
    metadata: MetadataSnapshot,
    candidates: Iterable[CandidateItem],
    *,
    generation: int = 0,
    errors: Sequence[str] = (),
    path_exists: Callable[[str], bool] = os.path.exists,
) -> CatalogSnapshot:
    """Join candidates with metadata into items, folders and the presentation list.

    Args:
        metadata: Consistent read of the four record sets.
        candidates: Enumerator output, in search-location order.
        generation: Pass number recorded on the snapshot.
        errors: Enumeration diagnostics to carry on the snapshot.
        path_exists: Predicate used to drop candidates whose location vanished.

    Returns:
        CatalogSnapshot: Items in canonical order, persisted folders, and the
        top-level entries with folders ahead of loose items.
    """
    items = _merge_candidates(metadata, candidates, path_exists)
    items.sort(key=item_sort_key)

    folders = _unique_folders(metadata.folders)
    owner = _membership_index(folders)
    items = [item.model_copy(update={"folder_id": owner.get(item.id)}) for item in items]

    members: dict[str, list[Item]] = {folder.id: [] for folder in folders}
    loose: list[Item] = []
    for item in items:
        if item.folder_id is None:
            loose.append(item)
        else:
            members[item.folder_id].append(item)

    folder_entries = sorted(
        (FolderEntry(folder=folder, members=tuple(members[folder.id])) for folder in folders),
        key=lambda entry: entry.name.casefold(),
    )
    item_entries = sorted(
        (ItemEntry(item=item) for item in loose), key=lambda entry: entry.name.casefold()
    )

    return CatalogSnapshot(
        items=tuple(items),
        folders=tuple(folders),
        entries=(*folder_entries, *item_entries),
        generation=generation,
        errors=tuple(errors),
        completed_at=utcnow(),
    )


def _merge_candidates(
    metadata: MetadataSnapshot,
    candidates: Iterable[CandidateItem],
    path_exists: Callable[[str], bool],
) -> list[Item]:
    items: list[Item] = []
    seen: set[str] = set()
    for candidate in candidates:
        item_id = candidate.item_id
        if not item_id or not candidate.name.strip():
            continue
        if not path_exists(candidate.location):
            continue
        if item_id in metadata.hidden_ids:
            continue
        if item_id in seen:
            LOGGER.debug("Ignoring duplicate item %s at %s", item_id, candidate.location)
            continue
        seen.add(item_id)
        items.append(
            Item(
                id=item_id,
                name=candidate.name,
                location=candidate.location,
                identity=candidate.identity,
                category=metadata.categories.get(item_id),
                sort_weight=metadata.sort_weights.get(item_id, 0),
            )
        )
    return items


def _unique_folders(folders: Iterable[Folder]) -> list[Folder]:
    unique: dict[str, Folder] = {}
    for folder in folders:
        unique.setdefault(folder.id, folder)
    return list(unique.values())


def _membership_index(folders: Iterable[Folder]) -> dict[str, str]:
    # Stored data may list an id in several folders; the first folder keeps it.
    owner: dict[str, str] = {}
    for folder in folders:
        for member_id in folder.member_ids:
            if member_id in owner:
                LOGGER.debug(
                    "Item %s listed in folders %s and %s", member_id, owner[member_id], folder.id
                )
                continue
            owner[member_id] = folder.id
    return owner


class CatalogReconciler:
    """Run reconciliation passes on a background worker and publish snapshots."""

    def __init__(
        self,
        repository: MetadataRepository,
        enumerator: Enumerator,
        search_locations: Sequence[str],
        *,
        path_exists: Callable[[str], bool] = os.path.exists,
    ) -> None:
        """Initialize the reconciler.

        Args:
            repository: Source of persisted metadata.
            enumerator: Capability listing candidates per search location.
            search_locations: Locations enumerated on every pass, in priority order.
            path_exists: Predicate used to drop candidates whose location vanished.
        """
        self._repository = repository
        self._enumerator = enumerator
        self._search_locations = tuple(search_locations)
        self._path_exists = path_exists
        self._condition = threading.Condition()
        self._running = False
        self._pending = False
        self._generation = 0
        self._snapshot = CatalogSnapshot()
        self._listeners: list[Listener] = []

    @property
    def snapshot(self) -> CatalogSnapshot:
        """Return the last published snapshot."""
        with self._condition:
            return self._snapshot

    @property
    def is_running(self) -> bool:
        with self._condition:
            return self._running

    @property
    def search_locations(self) -> tuple[str, ...]:
        return self._search_locations

    def add_listener(self, listener: Listener) -> None:
        """Register a callable invoked on the worker thread after each publish.

        Listeners must not block waiting for the reconciler to go idle.
        """
        with self._condition:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        with self._condition:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def request(self, force: bool = False) -> bool:
        """Schedule a pass without waiting for it.

        A non-forced request is ignored while a pass is running and, once a
        snapshot has been published, while idle too. A forced request while
        running queues exactly one follow-up pass.

        Returns:
            bool: Whether a pass was started or queued.
        """
        with self._condition:
            if self._running:
                if force:
                    self._pending = True
                return force
            if not force and self._snapshot.generation > 0:
                return False
            self._running = True

        worker = threading.Thread(target=self._work, name="appshelf-reconciler", daemon=True)
        try:
            worker.start()
        except RuntimeError:
            with self._condition:
                self._running = False
                self._pending = False
                self._condition.notify_all()
            raise
        return True

    def reconcile(
        self, force: bool = False, *, wait: bool = True, timeout: Optional[float] = None
    ) -> CatalogSnapshot:
        """Request a pass and return the latest published snapshot.

        Args:
            force: Rescan even if a snapshot exists; queue behind a running pass.
            wait: Block until the worker is idle before returning.
            timeout: Maximum seconds to wait.

        Returns:
            CatalogSnapshot: The newest snapshot available when the call returns.
        """
        scheduled = self.request(force)
        if scheduled and wait:
            self.wait_for_idle(timeout)
        return self.snapshot

    def wait_for_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no pass is running or queued; return ``False`` on timeout."""
        with self._condition:
            return self._condition.wait_for(lambda: not self._running, timeout)

    def _work(self) -> None:
        while True:
            with self._condition:
                self._generation += 1
                generation = self._generation

            snapshot = self._run_pass(generation)
            if snapshot is not None:
                with self._condition:
                    self._snapshot = snapshot
                    listeners = list(self._listeners)
                self._notify(listeners, snapshot)

            with self._condition:
                if self._pending:
                    self._pending = False
                    continue
                self._running = False
                self._condition.notify_all()
                return

    def _run_pass(self, generation: int) -> Optional[CatalogSnapshot]:
        started = time.monotonic()
        try:
            metadata = self._repository.read_snapshot()
            candidates, errors = self._enumerate()
            snapshot = build_snapshot(
                metadata,
                candidates,
                generation=generation,
                errors=errors,
                path_exists=self._path_exists,
            )
        except Exception:  # keep the last published snapshot
            LOGGER.exception("Reconciliation pass %d failed", generation)
            return None

        LOGGER.info(
            "Pass %d: %d items, %d folders, %d top-level entries in %.3fs",
            generation,
            len(snapshot.items),
            len(snapshot.folders),
            len(snapshot.entries),
            time.monotonic() - started,
        )
        return snapshot

    def _enumerate(self) -> tuple[list[CandidateItem], list[str]]:
        candidates: list[CandidateItem] = []
        errors: list[str] = []
        for location in self._search_locations:
            try:
                candidates.extend(self._enumerator.enumerate([location]))
            except (EnumerationError, OSError) as exc:
                LOGGER.warning("Skipping search location %s: %s", location, exc)
                errors.append(str(exc))
        return candidates, errors

    def _notify(self, listeners: Sequence[Listener], snapshot: CatalogSnapshot) -> None:
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception:
                LOGGER.exception("Snapshot listener %r failed", listener)


__all__ = ["CatalogReconciler", "build_snapshot"]
