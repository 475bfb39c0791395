"""Catalog models and reconciliation."""

from .models import (
    CatalogSnapshot,
    Folder,
    FolderEntry,
    Item,
    ItemEntry,
    PresentationEntry,
    item_sort_key,
)
from .reconciler import CatalogReconciler, build_snapshot

__all__ = [
    "CatalogReconciler",
    "CatalogSnapshot",
    "Folder",
    "FolderEntry",
    "Item",
    "ItemEntry",
    "PresentationEntry",
    "build_snapshot",
    "item_sort_key",
]
