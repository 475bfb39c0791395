"""Application bundle enumeration."""

from __future__ import annotations

import logging
import plistlib
from pathlib import Path
from typing import Iterable, Iterator, Optional, Protocol, Sequence

from .errors import EnumerationError
from .models import CandidateItem

LOGGER = logging.getLogger(__name__)


class Enumerator(Protocol):
    """Capability that lists candidate items found in search locations."""

    def enumerate(self, locations: Sequence[str]) -> Sequence[CandidateItem]:
        """Return candidates found in ``locations``, skipping unreadable ones."""
        ...


def read_bundle_identifier(bundle: Path) -> Optional[str]:
    """Return ``CFBundleIdentifier`` from the bundle's ``Info.plist``, if readable."""
    info_plist = bundle / "Contents" / "Info.plist"
    try:
        with info_plist.open("rb") as fh:
            plist = plistlib.load(fh)
    except FileNotFoundError:
        return None
    except (plistlib.InvalidFileException, ValueError, OSError) as exc:
        LOGGER.debug("Unreadable Info.plist in %s: %s", bundle, exc)
        return None

    if not isinstance(plist, dict):
        return None
    identifier = plist.get("CFBundleIdentifier")
    if isinstance(identifier, str) and identifier.strip():
        return identifier.strip()
    return None


class BundleEnumerator:
    """Discover application bundles directly inside each search location."""

    def __init__(
        self,
        *,
        bundle_suffixes: Iterable[str] = (".app",),
        include_hidden: bool = False,
        strict: bool = False,
    ) -> None:
        self.bundle_suffixes = tuple(suffix.lower() for suffix in bundle_suffixes)
        self.include_hidden = include_hidden
        self.strict = strict

    def enumerate(self, locations: Sequence[str]) -> list[CandidateItem]:
        """Return candidates from every readable location, in location order.

        Unreadable locations are logged and skipped unless ``strict`` is set,
        in which case the first failure raises :class:`EnumerationError`.
        """
        candidates: list[CandidateItem] = []
        for location in locations:
            try:
                candidates.extend(self.scan_location(location))
            except EnumerationError as exc:
                if self.strict:
                    raise
                LOGGER.warning("Skipping search location %s", exc)
        return candidates

    def scan_location(self, location: str) -> list[CandidateItem]:
        """Return candidates directly inside ``location``.

        Raises:
            EnumerationError: If the location is missing or cannot be listed.
        """
        root = Path(location).expanduser()
        try:
            entries = sorted(root.iterdir(), key=lambda path: path.name)
        except OSError as exc:
            raise EnumerationError(str(root), exc.strerror or str(exc)) from exc
        return list(self._iter_bundles(entries))

    def _iter_bundles(self, entries: Iterable[Path]) -> Iterator[CandidateItem]:
        for entry in entries:
            if not self.include_hidden and entry.name.startswith("."):
                continue
            if entry.suffix.lower() not in self.bundle_suffixes:
                continue
            yield CandidateItem(
                identity=read_bundle_identifier(entry),
                name=entry.name[: -len(entry.suffix)],
                location=str(entry),
            )


__all__ = ["Enumerator", "BundleEnumerator", "read_bundle_identifier"]
