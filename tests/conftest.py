"""Shared fixtures for appshelf tests."""

from __future__ import annotations

import plistlib
import threading
from pathlib import Path
from typing import Callable, Iterable, Iterator, Sequence

import pytest

from appshelf.config.models import AppShelfConfig
from appshelf.discovery import CandidateItem, EnumerationError
from appshelf.service import CatalogService
from appshelf.state import InMemoryMetadataStore


class StaticEnumerator:
    """Enumerator returning fixed candidates per location."""

    def __init__(self, by_location: dict[str, list[CandidateItem]]) -> None:
        self.by_location = by_location
        self.calls = 0
        self._lock = threading.Lock()

    def enumerate(self, locations: Sequence[str]) -> list[CandidateItem]:
        with self._lock:
            self.calls += 1
        found: list[CandidateItem] = []
        for location in locations:
            if location not in self.by_location:
                raise EnumerationError(location, "No such file or directory")
            found.extend(self.by_location[location])
        return found


class BlockingEnumerator:
    """Enumerator that blocks every pass until released."""

    def __init__(self, candidates: list[CandidateItem]) -> None:
        self.candidates = candidates
        self.entered = threading.Event()
        self.release = threading.Event()
        self.calls = 0

    def enumerate(self, locations: Sequence[str]) -> list[CandidateItem]:
        self.calls += 1
        self.entered.set()
        assert self.release.wait(timeout=5)
        return list(self.candidates)


def candidate(identity: str | None, name: str, location: str | None = None) -> CandidateItem:
    """Return a candidate whose location defaults to ``/apps/<name>.app``."""
    return CandidateItem(identity=identity, name=name, location=location or f"/apps/{name}.app")


def make_bundle(root: Path, name: str, identifier: str | None = None) -> Path:
    """Create ``<root>/<name>.app`` with an optional ``Info.plist``."""
    bundle = root / f"{name}.app"
    contents = bundle / "Contents"
    contents.mkdir(parents=True)
    if identifier is not None:
        with (contents / "Info.plist").open("wb") as fh:
            plistlib.dump({"CFBundleIdentifier": identifier, "CFBundleName": name}, fh)
    return bundle


@pytest.fixture
def abc_candidates() -> list[CandidateItem]:
    return [
        candidate("com.a", "A"),
        candidate("com.b", "B"),
        candidate("com.c", "C"),
    ]


@pytest.fixture
def make_service() -> Iterator[Callable[..., CatalogService]]:
    """Return a factory building services over in-memory stores."""
    created: list[CatalogService] = []

    def _factory(
        candidates: Iterable[CandidateItem],
        *,
        store: InMemoryMetadataStore | None = None,
        launcher: Callable[[str], bool] | None = None,
    ) -> CatalogService:
        config = AppShelfConfig.model_validate({"discovery": {"search_locations": ["/apps"]}})
        kwargs = {} if launcher is None else {"launcher": launcher}
        service = CatalogService(
            config,
            store=store or InMemoryMetadataStore(),
            enumerator=StaticEnumerator({"/apps": list(candidates)}),
            path_exists=lambda _path: True,
            **kwargs,
        )
        created.append(service)
        return service

    yield _factory

    for service in created:
        service.reconciler.wait_for_idle(timeout=5)
