"""Validated mutations of organizational metadata."""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Optional, Protocol

from appshelf.state import MetadataRepository, RecordSet
from appshelf.state.models import Folder

from . import membership
from .errors import CommandError

LOGGER = logging.getLogger(__name__)

DEFAULT_FOLDER_NAME = "New Folder"


class Refresher(Protocol):
    def request(self, force: bool = False) -> bool: ...


def _require_id(value: str, label: str = "item id") -> str:
    if not isinstance(value, str) or not value.strip():
        raise CommandError(f"A non-empty {label} is required.")
    return value


def _require_ids(values: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(_require_id(value) for value in values))


class OrganizationCommands:
    """Apply organization commands to the repository and trigger reconciliation.

    Each command validates its arguments, mutates exactly one record set and
    then requests a forced reconciliation, whether or not the write
    succeeded. References to folders that no longer exist are ignored.
    Published snapshots reflect a command only after the next pass completes.
    """

    def __init__(
        self,
        repository: MetadataRepository,
        refresher: Refresher,
        *,
        default_folder_name: str = DEFAULT_FOLDER_NAME,
    ) -> None:
        self._repository = repository
        self._refresher = refresher
        self._default_folder_name = default_folder_name.strip() or DEFAULT_FOLDER_NAME

    # ------------------------------------------------------------------ #
    # Visibility                                                         #
    # ------------------------------------------------------------------ #

    def hide(self, item_id: str) -> None:
        """Exclude ``item_id`` from the catalog while keeping its other metadata."""
        self.hide_many([item_id])

    def hide_many(self, item_ids: Iterable[str]) -> None:
        ids = _require_ids(item_ids)
        self._apply("hidden_ids", lambda hidden: hidden | set(ids))

    def unhide(self, item_id: str) -> None:
        _require_id(item_id)
        self._apply("hidden_ids", lambda hidden: hidden - {item_id})

    # ------------------------------------------------------------------ #
    # Folders                                                            #
    # ------------------------------------------------------------------ #

    def create_folder(self, first_id: str, second_id: str, name: Optional[str] = None) -> Folder:
        """Create a folder from two distinct items.

        Raises:
            CommandError: If the ids are equal or blank.
        """
        if _require_id(first_id) == _require_id(second_id):
            raise CommandError("A folder needs two different items.")
        return self.group([first_id, second_id], name)

    def group(self, item_ids: Iterable[str], name: Optional[str] = None) -> Folder:
        """Create a folder holding every id in ``item_ids``.

        Raises:
            CommandError: If fewer than two distinct ids are given.
        """
        ids = _require_ids(item_ids)
        if len(ids) < 2:
            raise CommandError("A folder needs at least two different items.")
        folder_name = self._folder_name(name)
        created: list[Folder] = []

        def _change(folders: tuple[Folder, ...]) -> tuple[Folder, ...]:
            updated, folder = membership.create_group(folders, ids, folder_name)
            created.append(folder)
            return updated

        self._apply("folders", _change)
        LOGGER.info("Created folder %s (%s) with %d items", created[0].id, folder_name, len(ids))
        return created[0]

    def add_to_folder(self, item_id: str, folder_id: str) -> None:
        """Move ``item_id`` into ``folder_id``, out of any other folder."""
        self.move_many([item_id], folder_id)

    def move_many(self, item_ids: Iterable[str], folder_id: str) -> None:
        ids = _require_ids(item_ids)
        self._apply("folders", lambda folders: membership.place_items(folders, ids, folder_id))

    def remove_from_folder(self, item_id: str, folder_id: str) -> None:
        """Take ``item_id`` out of ``folder_id``; the folder is deleted once empty."""
        _require_id(item_id)
        self._apply("folders", lambda folders: membership.remove_item(folders, item_id, folder_id))

    def rename_folder(self, folder_id: str, name: str) -> None:
        folder_name = self._folder_name(name)
        self._apply("folders", lambda folders: membership.rename(folders, folder_id, folder_name))

    def delete_folder(self, folder_id: str) -> None:
        """Remove the folder; its members return to the top level."""
        self._apply("folders", lambda folders: membership.delete(folders, folder_id))

    # ------------------------------------------------------------------ #
    # Categories and ordering                                            #
    # ------------------------------------------------------------------ #

    def set_category(self, item_id: str, category: Optional[str]) -> None:
        """Assign ``category`` to ``item_id``; ``None`` or blank clears it."""
        self.set_category_many([item_id], category)

    def set_category_many(self, item_ids: Iterable[str], category: Optional[str]) -> None:
        ids = _require_ids(item_ids)
        value = category.strip() if category else ""

        def _change(categories: dict[str, str]) -> dict[str, str]:
            updated = dict(categories)
            for item_id in ids:
                if value:
                    updated[item_id] = value
                else:
                    updated.pop(item_id, None)
            return updated

        self._apply("categories", _change)

    def set_sort_weight(self, item_id: str, weight: int) -> None:
        _require_id(item_id)
        if isinstance(weight, bool) or not isinstance(weight, int):
            raise CommandError(f"Sort weight must be an integer, got {weight!r}.")
        self._apply("sort_weights", lambda weights: {**weights, item_id: weight})

    # ------------------------------------------------------------------ #
    # Helpers                                                            #
    # ------------------------------------------------------------------ #

    def _folder_name(self, name: Optional[str]) -> str:
        cleaned = (name or "").strip()
        return cleaned or self._default_folder_name

    def _apply(self, record: RecordSet, change: Callable[[Any], Any]) -> Any:
        try:
            return self._repository.mutate(record, change)
        finally:
            self._refresher.request(force=True)


__all__ = ["OrganizationCommands", "DEFAULT_FOLDER_NAME"]
