"""Discovery data models."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class CandidateItem(BaseModel):
    """Raw item reported by an enumerator, before metadata is merged.

    Attributes:
        identity: Stable identifier supplied by the bundle, if any.
        name: Display name.
        location: Path on disk used for launching.
    """

    model_config = ConfigDict(frozen=True)

    identity: Optional[str] = None
    name: str
    location: str

    @property
    def item_id(self) -> str:
        """Return the catalog id: the identity, falling back to the location."""
        return self.identity or self.location


__all__ = ["CandidateItem"]
