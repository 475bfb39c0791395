"""Folder membership transformations.

Every change to folder membership goes through :func:`place_item`, which
keeps each item id in at most one folder and deletes folders it empties.
The functions return new tuples and never modify their inputs.
"""

from __future__ import annotations

from typing import Optional, Sequence

from appshelf.state.models import Folder


def find_folder(folders: Sequence[Folder], folder_id: str) -> Optional[Folder]:
    return next((folder for folder in folders if folder.id == folder_id), None)


def place_item(
    folders: Sequence[Folder], item_id: str, target_id: Optional[str]
) -> tuple[Folder, ...]:
    """Move ``item_id`` into the folder ``target_id``, or out of every folder.

    The id is removed from all other folders and appended to the target if
    it is not already there. Folders left without members are dropped. An
    unknown ``target_id`` leaves the folders unchanged.
    """
    if target_id is not None and find_folder(folders, target_id) is None:
        return tuple(folders)

    placed: list[Folder] = []
    for folder in folders:
        if folder.id == target_id:
            members = list(folder.member_ids)
            if item_id not in members:
                members.append(item_id)
        else:
            members = [member for member in folder.member_ids if member != item_id]
            if not members and folder.member_ids:
                continue
        placed.append(folder.model_copy(update={"member_ids": members}))
    return tuple(placed)


def place_items(
    folders: Sequence[Folder], item_ids: Sequence[str], target_id: Optional[str]
) -> tuple[Folder, ...]:
    """Apply :func:`place_item` for each id in order."""
    result = tuple(folders)
    for item_id in item_ids:
        result = place_item(result, item_id, target_id)
    return result


def remove_item(folders: Sequence[Folder], item_id: str, folder_id: str) -> tuple[Folder, ...]:
    """Take ``item_id`` out of ``folder_id``; a no-op if it is not a member."""
    folder = find_folder(folders, folder_id)
    if folder is None or item_id not in folder.member_ids:
        return tuple(folders)
    return place_item(folders, item_id, None)


def create_group(
    folders: Sequence[Folder], item_ids: Sequence[str], name: str
) -> tuple[tuple[Folder, ...], Folder]:
    """Append a new folder holding ``item_ids``, taking them out of their old folders.

    Returns:
        tuple[tuple[Folder, ...], Folder]: Updated folders and the new folder.
    """
    members = list(dict.fromkeys(item_ids))
    remaining = place_items(folders, members, None)
    folder = Folder(name=name, member_ids=members)
    return (*remaining, folder), folder


def rename(folders: Sequence[Folder], folder_id: str, name: str) -> tuple[Folder, ...]:
    return tuple(
        folder.model_copy(update={"name": name}) if folder.id == folder_id else folder
        for folder in folders
    )


def delete(folders: Sequence[Folder], folder_id: str) -> tuple[Folder, ...]:
    return tuple(folder for folder in folders if folder.id != folder_id)


__all__ = [
    "find_folder",
    "place_item",
    "place_items",
    "remove_item",
    "create_group",
    "rename",
    "delete",
]
