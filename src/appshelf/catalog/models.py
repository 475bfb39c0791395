"""Catalog data models produced by reconciliation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Annotated, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from appshelf.state.models import Folder


class Item(BaseModel):
    """A discovered item joined with its persisted metadata.

    Attributes:
        id: Catalog identity (bundle identity, falling back to location).
        name: Display name.
        location: Path on disk.
        identity: Bundle identity as reported by the enumerator.
        folder_id: Folder the item belongs to for this pass, if any.
        category: Persisted category.
        sort_weight: Persisted manual sort weight.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    location: str
    identity: Optional[str] = None
    folder_id: Optional[str] = None
    category: Optional[str] = None
    sort_weight: int = 0


def item_sort_key(item: Item) -> tuple[int, str]:
    """Canonical item order: sort weight, then case-insensitive name."""
    return (item.sort_weight, item.name.casefold())


class ItemEntry(BaseModel):
    """Top-level presentation entry for an item outside every folder."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["item"] = "item"
    item: Item

    @property
    def id(self) -> str:
        return self.item.id

    @property
    def name(self) -> str:
        return self.item.name


class FolderEntry(BaseModel):
    """Top-level presentation entry for a folder and its visible members."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["folder"] = "folder"
    folder: Folder
    members: Tuple[Item, ...] = ()

    @property
    def id(self) -> str:
        return self.folder.id

    @property
    def name(self) -> str:
        return self.folder.name


PresentationEntry = Annotated[Union[ItemEntry, FolderEntry], Field(discriminator="kind")]


@dataclass(frozen=True, slots=True)
class CatalogSnapshot:
    """Outputs of one reconciliation pass, published as a single unit.

    Attributes:
        items: Visible items in canonical order, including folder members.
        folders: Persisted folders, in stored order.
        entries: Top-level presentation list.
        generation: Pass number; ``0`` for the empty snapshot before any pass.
        errors: Enumeration diagnostics gathered during the pass.
        completed_at: Time the pass finished.
    """

    items: Tuple[Item, ...] = ()
    folders: Tuple[Folder, ...] = ()
    entries: Tuple[Union[ItemEntry, FolderEntry], ...] = ()
    generation: int = 0
    errors: Tuple[str, ...] = ()
    completed_at: Optional[datetime] = field(default=None)

    def item(self, item_id: str) -> Optional[Item]:
        return next((item for item in self.items if item.id == item_id), None)

    def folder(self, folder_id: str) -> Optional[Folder]:
        return next((folder for folder in self.folders if folder.id == folder_id), None)

    def members(self, folder_id: str) -> Tuple[Item, ...]:
        """Return the visible members of ``folder_id`` in canonical order."""
        for entry in self.entries:
            if isinstance(entry, FolderEntry) and entry.folder.id == folder_id:
                return entry.members
        return ()

    def search(self, query: str) -> Tuple[Union[ItemEntry, FolderEntry], ...]:
        """Return top-level entries whose name contains ``query``, ignoring case."""
        needle = query.strip().casefold()
        if not needle:
            return self.entries
        return tuple(entry for entry in self.entries if needle in entry.name.casefold())

    def filter_items(
        self, query: str = "", category: Optional[str] = None
    ) -> Tuple[Item, ...]:
        """Return items matching a name substring and, when given, a category."""
        needle = query.strip().casefold()
        return tuple(
            item
            for item in self.items
            if (not needle or needle in item.name.casefold())
            and (category is None or item.category == category)
        )

    def categories(self) -> list[str]:
        """Return the distinct categories assigned to visible items."""
        return sorted({item.category for item in self.items if item.category})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


__all__ = [
    "Item",
    "Folder",
    "ItemEntry",
    "FolderEntry",
    "PresentationEntry",
    "CatalogSnapshot",
    "item_sort_key",
]
