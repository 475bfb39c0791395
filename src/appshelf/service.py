"""Explicit wiring of the catalog engine from configuration."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable, Optional

from appshelf.catalog import CatalogReconciler, CatalogSnapshot
from appshelf.config.models import AppShelfConfig
from appshelf.discovery import BundleEnumerator, Enumerator
from appshelf.discovery import launch as launch_location
from appshelf.organization import OrganizationCommands
from appshelf.state import FileMetadataStore, MetadataRepository, MetadataStore

LOGGER = logging.getLogger(__name__)


class CatalogService:
    """Own one store, repository, reconciler and command layer.

    Hosts create one service per process (or per test) and hand it to their
    presentation layer; nothing here is shared implicitly.
    """

    def __init__(
        self,
        config: AppShelfConfig,
        *,
        store: Optional[MetadataStore] = None,
        enumerator: Optional[Enumerator] = None,
        path_exists: Callable[[str], bool] = os.path.exists,
        launcher: Callable[[str], bool] = launch_location,
    ) -> None:
        """Initialize the service.

        Args:
            config: Loaded appshelf configuration.
            store: Metadata store; defaults to files under ``storage.directory``.
            enumerator: Candidate enumerator; defaults to :class:`BundleEnumerator`.
            path_exists: Predicate used to drop candidates whose location vanished.
            launcher: Callable that opens an item location.
        """
        self._config = config
        self._store = store or FileMetadataStore(Path(config.storage.directory))
        self._launcher = launcher
        self.repository = MetadataRepository(self._store)
        self.reconciler = CatalogReconciler(
            self.repository,
            enumerator
            or BundleEnumerator(
                bundle_suffixes=config.discovery.bundle_suffixes,
                include_hidden=config.discovery.include_hidden,
                strict=True,
            ),
            config.discovery.search_locations,
            path_exists=path_exists,
        )
        self.commands = OrganizationCommands(
            self.repository,
            self.reconciler,
            default_folder_name=config.catalog.default_folder_name,
        )

    @property
    def config(self) -> AppShelfConfig:
        return self._config

    @property
    def snapshot(self) -> CatalogSnapshot:
        return self.reconciler.snapshot

    def refresh(self, force: bool = True, timeout: Optional[float] = None) -> CatalogSnapshot:
        """Run a pass and return the resulting snapshot."""
        return self.reconciler.reconcile(force=force, wait=True, timeout=timeout)

    def settle(self, timeout: Optional[float] = None) -> CatalogSnapshot:
        """Wait for passes triggered by earlier commands and return the newest snapshot."""
        self.reconciler.wait_for_idle(timeout)
        return self.reconciler.snapshot

    def hidden_ids(self) -> list[str]:
        """Return hidden ids in sorted order, including items no longer on disk."""
        return sorted(self.repository.read("hidden_ids"))

    def launch(self, item_id: str) -> bool:
        """Open the item with ``item_id`` from the current snapshot."""
        item = self.reconciler.snapshot.item(item_id)
        if item is None:
            LOGGER.warning("Cannot launch unknown item %s", item_id)
            return False
        return self._launcher(item.location)


__all__ = ["CatalogService"]
