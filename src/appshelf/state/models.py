"""Persisted organizational metadata models."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, FrozenSet, List, Literal, Tuple

from pydantic import BaseModel, Field, field_validator

RecordSet = Literal["hidden_ids", "folders", "categories", "sort_weights"]
RECORD_SETS: Tuple[RecordSet, ...] = ("hidden_ids", "folders", "categories", "sort_weights")


def new_folder_id() -> str:
    """Return a fresh opaque folder identifier."""
    return uuid.uuid4().hex


class Folder(BaseModel):
    """A user-created, named group of item ids.

    Attributes:
        id: Opaque identifier generated on creation.
        name: Display name, mutable through rename.
        member_ids: Ordered, unique item ids stored in the folder.
    """

    id: str = Field(default_factory=new_folder_id)
    name: str
    member_ids: List[str] = Field(default_factory=list)

    @field_validator("member_ids")
    @classmethod
    def _unique_members(cls, value: List[str]) -> List[str]:
        return list(dict.fromkeys(value))


@dataclass(frozen=True, slots=True)
class MetadataSnapshot:
    """All four record sets as observed by one consistent read."""

    hidden_ids: FrozenSet[str] = frozenset()
    folders: Tuple[Folder, ...] = ()
    categories: Dict[str, str] = field(default_factory=dict)
    sort_weights: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class DecodeIssue:
    """Diagnostic entry describing a record set that failed to decode.

    Attributes:
        record: Record set that could not be read.
        message: Decoder error message.
        recovered_with: ``"last_good"`` or ``"empty"`` depending on the fallback used.
        occurred_at: Time the failure was observed.
    """

    record: RecordSet
    message: str
    recovered_with: Literal["last_good", "empty"]
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


__all__ = [
    "RecordSet",
    "RECORD_SETS",
    "Folder",
    "MetadataSnapshot",
    "DecodeIssue",
    "new_folder_id",
]
