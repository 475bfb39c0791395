"""Reconciliation tests: the pure merge and the background worker."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Sequence

import pytest
from conftest import BlockingEnumerator, StaticEnumerator, candidate

from appshelf.catalog import CatalogReconciler, CatalogSnapshot, FolderEntry, ItemEntry, build_snapshot
from appshelf.discovery import CandidateItem
from appshelf.state import (
    FileMetadataStore,
    Folder,
    InMemoryMetadataStore,
    MetadataRepository,
    MetadataSnapshot,
)


def _always(_path: str) -> bool:
    return True


def _names(snapshot: CatalogSnapshot) -> list[str]:
    return [item.name for item in snapshot.items]


def test_items_sorted_by_weight_then_name() -> None:
    metadata = MetadataSnapshot(sort_weights={"com.beta": 1})
    candidates = [
        candidate("com.zeta", "Zeta"),
        candidate("com.alpha", "Alpha"),
        candidate("com.beta", "Beta"),
    ]

    snapshot = build_snapshot(metadata, candidates, path_exists=_always)

    assert _names(snapshot) == ["Alpha", "Zeta", "Beta"]


def test_name_order_ignores_case() -> None:
    candidates = [candidate("x", "bravo"), candidate("y", "Alpha"), candidate("z", "charlie")]

    snapshot = build_snapshot(MetadataSnapshot(), candidates, path_exists=_always)

    assert _names(snapshot) == ["Alpha", "bravo", "charlie"]


def test_id_falls_back_to_location_and_invalid_candidates_are_dropped() -> None:
    candidates = [
        candidate(None, "NoBundle", "/apps/NoBundle.app"),
        candidate("com.blank", "   "),
        candidate("com.gone", "Gone", "/missing/Gone.app"),
    ]

    snapshot = build_snapshot(
        MetadataSnapshot(), candidates, path_exists=lambda path: not path.startswith("/missing")
    )

    assert [item.id for item in snapshot.items] == ["/apps/NoBundle.app"]


def test_duplicate_ids_keep_first_location() -> None:
    candidates = [
        candidate("com.a", "A", "/Applications/A.app"),
        candidate("com.a", "A", "/Users/me/Applications/A.app"),
    ]

    snapshot = build_snapshot(MetadataSnapshot(), candidates, path_exists=_always)

    assert [item.location for item in snapshot.items] == ["/Applications/A.app"]


def test_metadata_is_attached_to_items() -> None:
    metadata = MetadataSnapshot(categories={"com.a": "Tools"}, sort_weights={"com.a": 3})

    (item,) = build_snapshot(metadata, [candidate("com.a", "A")], path_exists=_always).items

    assert item.category == "Tools"
    assert item.sort_weight == 3


def test_folders_precede_items_and_hold_sorted_members(abc_candidates: list[CandidateItem]) -> None:
    """Folder members leave the top level and are ordered like the item list.

    Args:
        abc_candidates: Items A, B and C.
    """
    folder = Folder(id="f1", name="Utils", member_ids=["com.b", "com.a"])
    metadata = MetadataSnapshot(folders=(folder,))

    snapshot = build_snapshot(metadata, abc_candidates, path_exists=_always)

    assert [(entry.kind, entry.name) for entry in snapshot.entries] == [
        ("folder", "Utils"),
        ("item", "C"),
    ]
    assert [item.name for item in snapshot.members("f1")] == ["A", "B"]
    assert snapshot.item("com.a").folder_id == "f1"
    assert snapshot.item("com.c").folder_id is None


def test_top_level_orders_each_kind_by_name() -> None:
    folders = (
        Folder(id="f1", name="zeta tools", member_ids=["com.a"]),
        Folder(id="f2", name="Alpha", member_ids=["com.b"]),
    )
    candidates = [
        candidate("com.a", "A"),
        candidate("com.b", "B"),
        candidate("com.y", "yak"),
        candidate("com.x", "Xylophone"),
    ]
    metadata = MetadataSnapshot(folders=folders, sort_weights={"com.y": -1})

    snapshot = build_snapshot(metadata, candidates, path_exists=_always)

    assert [entry.name for entry in snapshot.entries] == ["Alpha", "zeta tools", "Xylophone", "yak"]


def test_hidden_items_are_excluded_everywhere(abc_candidates: list[CandidateItem]) -> None:
    folder = Folder(id="f1", name="Utils", member_ids=["com.a", "com.b"])
    metadata = MetadataSnapshot(hidden_ids=frozenset({"com.a", "com.c"}), folders=(folder,))

    snapshot = build_snapshot(metadata, abc_candidates, path_exists=_always)

    assert _names(snapshot) == ["B"]
    assert [item.id for item in snapshot.members("f1")] == ["com.b"]
    assert all(entry.id not in {"com.a", "com.c"} for entry in snapshot.entries)


def test_missing_members_leave_empty_folder_without_pruning() -> None:
    folder = Folder(id="f1", name="Old", member_ids=["com.removed", "com.gone"])
    metadata = MetadataSnapshot(folders=(folder,))

    snapshot = build_snapshot(metadata, [candidate("com.a", "A")], path_exists=_always)

    (entry, item_entry) = snapshot.entries
    assert isinstance(entry, FolderEntry)
    assert entry.members == ()
    assert isinstance(item_entry, ItemEntry)
    assert snapshot.folder("f1").member_ids == ["com.removed", "com.gone"]


def test_item_listed_in_two_folders_belongs_to_first(abc_candidates: list[CandidateItem]) -> None:
    folders = (
        Folder(id="f1", name="One", member_ids=["com.a"]),
        Folder(id="f2", name="Two", member_ids=["com.a", "com.b"]),
    )

    snapshot = build_snapshot(MetadataSnapshot(folders=folders), abc_candidates, path_exists=_always)

    assert [item.id for item in snapshot.members("f1")] == ["com.a"]
    assert [item.id for item in snapshot.members("f2")] == ["com.b"]
    ids = [entry.id for entry in snapshot.entries]
    assert len(ids) == len(set(ids))


def test_snapshot_queries(abc_candidates: list[CandidateItem]) -> None:
    metadata = MetadataSnapshot(
        folders=(Folder(id="f1", name="Utilities", member_ids=["com.a", "com.b"]),),
        categories={"com.a": "Dev", "com.c": "Games"},
    )

    snapshot = build_snapshot(metadata, abc_candidates, path_exists=_always)

    assert [entry.name for entry in snapshot.search("UTIL")] == ["Utilities"]
    assert snapshot.search("") == snapshot.entries
    assert [item.id for item in snapshot.filter_items(category="Dev")] == ["com.a"]
    assert [item.id for item in snapshot.filter_items("c")] == ["com.c"]
    assert snapshot.categories() == ["Dev", "Games"]


def _reconciler(
    enumerator: object, store: InMemoryMetadataStore | None = None, locations: Sequence[str] = ("/apps",)
) -> CatalogReconciler:
    repository = MetadataRepository(store or InMemoryMetadataStore())
    return CatalogReconciler(repository, enumerator, locations, path_exists=_always)  # type: ignore[arg-type]


def test_unreadable_location_is_skipped_and_reported(abc_candidates: list[CandidateItem]) -> None:
    enumerator = StaticEnumerator({"/apps": abc_candidates})
    reconciler = _reconciler(enumerator, locations=("/missing", "/apps"))

    snapshot = reconciler.reconcile(force=True, timeout=5)

    assert _names(snapshot) == ["A", "B", "C"]
    assert len(snapshot.errors) == 1
    assert "/missing" in snapshot.errors[0]


def test_corrupt_folder_blob_does_not_fail_the_pass(abc_candidates: list[CandidateItem]) -> None:
    store = InMemoryMetadataStore({"folders": b"\x00garbage", "hidden_ids": b'["com.b"]'})
    reconciler = _reconciler(StaticEnumerator({"/apps": abc_candidates}), store)

    snapshot = reconciler.reconcile(force=True, timeout=5)

    assert snapshot.folders == ()
    assert [entry.name for entry in snapshot.entries] == ["A", "C"]


def test_non_forced_reconcile_after_first_pass_is_noop(abc_candidates: list[CandidateItem]) -> None:
    enumerator = StaticEnumerator({"/apps": abc_candidates})
    reconciler = _reconciler(enumerator)

    first = reconciler.reconcile()
    second = reconciler.reconcile()

    assert first.generation == 1
    assert second is first
    assert enumerator.calls == 1


def test_forced_requests_while_busy_coalesce_into_one_pass(
    abc_candidates: list[CandidateItem],
) -> None:
    """Several forced requests during a pass queue exactly one follow-up pass."""
    enumerator = BlockingEnumerator(abc_candidates)
    reconciler = _reconciler(enumerator)

    assert reconciler.request(force=True)
    assert enumerator.entered.wait(timeout=5)

    assert reconciler.reconcile(force=False, wait=False).generation == 0
    assert reconciler.request(force=False) is False
    assert reconciler.request(force=True)
    assert reconciler.request(force=True)
    assert reconciler.request(force=True)
    assert reconciler.is_running

    enumerator.release.set()
    assert reconciler.wait_for_idle(timeout=5)

    assert enumerator.calls == 2
    assert reconciler.snapshot.generation == 2
    assert not reconciler.is_running


def test_listeners_receive_snapshots_in_start_order(abc_candidates: list[CandidateItem]) -> None:
    enumerator = StaticEnumerator({"/apps": abc_candidates})
    reconciler = _reconciler(enumerator)
    seen: list[int] = []

    def _broken(_snapshot: CatalogSnapshot) -> None:
        raise RuntimeError("listener failure")

    reconciler.add_listener(_broken)
    reconciler.add_listener(lambda snapshot: seen.append(snapshot.generation))

    reconciler.reconcile(force=True, timeout=5)
    reconciler.reconcile(force=True, timeout=5)
    reconciler.remove_listener(_broken)

    assert seen == [1, 2]


def test_unreadable_record_file_does_not_block_publishing(tmp_path: Path) -> None:
    """A record set the store cannot read falls back like a corrupt one.

    Args:
        tmp_path: Temporary directory provided by pytest.
    """
    store = FileMetadataStore(tmp_path)
    store.path_for("folders").mkdir()
    repository = MetadataRepository(store)
    reconciler = CatalogReconciler(
        repository,
        StaticEnumerator({"/apps": [candidate("com.a", "A")]}),
        ["/apps"],
        path_exists=_always,
    )

    snapshot = reconciler.reconcile(force=True, timeout=5)

    assert snapshot.generation == 1
    assert [item.id for item in snapshot.items] == ["com.a"]
    assert [(issue.record, issue.recovered_with) for issue in repository.issues] == [
        ("folders", "empty")
    ]


def test_corrupt_record_is_reported_once_across_passes(abc_candidates: list[CandidateItem]) -> None:
    store = InMemoryMetadataStore({"folders": b"garbage"})
    repository = MetadataRepository(store)
    reconciler = CatalogReconciler(
        repository, StaticEnumerator({"/apps": abc_candidates}), ["/apps"], path_exists=_always
    )

    for _ in range(5):
        reconciler.reconcile(force=True, timeout=5)

    assert reconciler.snapshot.generation == 5
    assert len(repository.issues) == 1


def test_failed_worker_start_leaves_reconciler_idle(
    abc_candidates: list[CandidateItem], monkeypatch: pytest.MonkeyPatch
) -> None:
    reconciler = _reconciler(StaticEnumerator({"/apps": abc_candidates}))

    def _cannot_start(self: threading.Thread) -> None:
        raise RuntimeError("can't start new thread")

    with monkeypatch.context() as patch:
        patch.setattr(threading.Thread, "start", _cannot_start)
        with pytest.raises(RuntimeError):
            reconciler.request(force=True)

    assert not reconciler.is_running
    assert reconciler.wait_for_idle(timeout=1)
    assert reconciler.reconcile(force=True, timeout=5).generation == 1
