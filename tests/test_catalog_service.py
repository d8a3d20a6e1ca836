"""Tests for LibraryService scan, query and file operations."""

from __future__ import annotations

import os
import sqlite3
import sys
from pathlib import Path

import pytest

from catalog.errors import MoveError, RecordNotFoundError, RootNotFoundError, ScanCommitError
from catalog.models import FilterSpec
from catalog.service import LibraryService, ScanState
from catalog.store import CatalogStore


def _touch(path: Path, size: int = 0) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"x" * size)
    return path


@pytest.fixture()
def service():
    with LibraryService(CatalogStore(":memory:")) as svc:
        yield svc


def _snapshot(svc: LibraryService):
    page = svc.list(FilterSpec(limit=500))
    return sorted((r.path, r.size, r.filename) for r in page.records)


def test_scan_lib_scenario(service: LibraryService, tmp_path: Path) -> None:
    lib = tmp_path / "lib"
    _touch(lib / "a.mp4")
    _touch(lib / "sub" / "b.mkv")
    _touch(lib / "sub" / "deeper" / "c.avi")

    result = service.scan(str(lib), depth=1)

    assert (result.total, result.new) == (2, 2)
    assert result.folder_tree.video_count == 2
    assert [(c.name, c.video_count) for c in result.folder_tree.children] == [("sub", 1)]
    assert sorted(r.filename for r in result.records) == ["a.mp4", "b.mkv"]
    assert service.scan_state(str(lib)) is ScanState.DONE


def test_scan_uses_registered_then_default_depth(service: LibraryService, tmp_path: Path) -> None:
    _touch(tmp_path / "one" / "two" / "three" / "deep.mp4")

    assert service.scan(str(tmp_path)).total == 0
    service.register_root(str(tmp_path), 3)
    assert service.scan(str(tmp_path)).total == 1


def test_rescan_is_idempotent(service: LibraryService, tmp_path: Path) -> None:
    _touch(tmp_path / "a.mp4", size=5)
    _touch(tmp_path / "x" / "b.mp4", size=8)

    service.scan(str(tmp_path))
    before = _snapshot(service)
    second = service.scan(str(tmp_path))

    assert _snapshot(service) == before
    assert second.new == 0


def test_rescan_after_disk_delete_removes_record(service: LibraryService, tmp_path: Path) -> None:
    keep = _touch(tmp_path / "keep.mp4")
    doomed = _touch(tmp_path / "doomed.mp4")
    service.scan(str(tmp_path))

    doomed.unlink()
    _touch(tmp_path / "fresh.mp4")
    result = service.scan(str(tmp_path))

    assert result.new == 1
    assert [path for path, _, _ in _snapshot(service)] == sorted([str(keep), str(tmp_path / "fresh.mp4")])


def test_scan_missing_folder_raises(service: LibraryService, tmp_path: Path) -> None:
    _touch(tmp_path / "file.mp4")

    with pytest.raises(RootNotFoundError):
        service.scan(str(tmp_path / "missing"))
    with pytest.raises(RootNotFoundError):
        service.scan(str(tmp_path / "file.mp4"))


def test_commit_failure_raises_scan_commit_error(service: LibraryService, tmp_path: Path, monkeypatch) -> None:
    _touch(tmp_path / "a.mp4")
    _touch(tmp_path / "b.mp4")

    def _fail(*_args, **_kwargs):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(service.store, "replace_folder", _fail)

    with pytest.raises(ScanCommitError) as excinfo:
        service.scan(str(tmp_path))

    assert excinfo.value.attempted == 2
    assert excinfo.value.folder_path == str(tmp_path)
    assert isinstance(excinfo.value.__cause__, sqlite3.OperationalError)
    assert service.scan_state(str(tmp_path)) is ScanState.FAILED


def test_unexpected_commit_error_marks_scan_failed(service: LibraryService, tmp_path: Path, monkeypatch) -> None:
    _touch(tmp_path / "a.mp4")

    def _fail(*_args, **_kwargs):
        raise RuntimeError("disk vanished")

    monkeypatch.setattr(service.store, "replace_folder", _fail)

    with pytest.raises(RuntimeError):
        service.scan(str(tmp_path))

    assert service.scan_state(str(tmp_path)) is ScanState.FAILED


@pytest.mark.skipif(sys.platform != "linux", reason="needs byte-oriented file names")
def test_scan_skips_undecodable_file_name(service: LibraryService, tmp_path: Path) -> None:
    _touch(tmp_path / "good.mp4")
    try:
        fd = os.open(os.path.join(os.fsencode(tmp_path), b"caf\xe9.mp4"), os.O_CREAT | os.O_WRONLY)
    except OSError:
        pytest.skip("filesystem rejects non-UTF-8 names")
    os.close(fd)

    result = service.scan(str(tmp_path), depth=0)

    assert [r.filename for r in result.records] == ["good.mp4"]
    assert result.skipped_files == 1
    assert service.scan_state(str(tmp_path)) is ScanState.DONE
    assert [r.filename for r in service.list().records] == ["good.mp4"]


def test_size_desc_first_page(service: LibraryService, tmp_path: Path) -> None:
    _touch(tmp_path / "small.mp4", size=100)
    _touch(tmp_path / "large.mp4", size=200)
    service.scan(str(tmp_path))

    page = service.list(FilterSpec(sort_by="size", sort_order="desc", limit=1))

    assert [r.size for r in page.records] == [200]
    assert page.total == 2
    assert page.has_more is True

    last = service.list(FilterSpec(sort_by="size", sort_order="desc", limit=1, offset=1))
    assert [r.size for r in last.records] == [100]
    assert last.has_more is False


def test_list_folder_filter_normalises_input(service: LibraryService, tmp_path: Path) -> None:
    _touch(tmp_path / "a" / "one.mp4")
    _touch(tmp_path / "b" / "two.mp4")
    service.scan(str(tmp_path))

    page = service.list(FilterSpec(folder_path=str(tmp_path / "a") + "/"))

    assert [r.filename for r in page.records] == ["one.mp4"]


def test_get_folder_tree_does_not_commit(service: LibraryService, tmp_path: Path) -> None:
    _touch(tmp_path / "sub" / "x" / "a.mp4")

    shallow = service.get_folder_tree(str(tmp_path))
    full = service.get_folder_tree(str(tmp_path), recursive=True)

    assert shallow.children[0].children == []
    assert full.children[0].children[0].name == "x"
    assert service.list().total == 0


def test_lookups_raise_not_found(service: LibraryService) -> None:
    with pytest.raises(RecordNotFoundError):
        service.get_by_id("nope")
    with pytest.raises(LookupError):
        service.get_by_path("/nowhere.mp4")
    assert service.delete("nope") is False


def test_get_with_facets(service: LibraryService, tmp_path: Path) -> None:
    _touch(tmp_path / "a.mp4")
    (record,) = service.scan(str(tmp_path)).records
    service.store.register_facet_value("participants", "p1", "Ada")
    service.store.set_video_facet(record.id, "participants", ["p1"])

    detail = service.get_with_facets(record.id)

    assert detail["path"] == record.path
    assert [p["name"] for p in detail["participants"]] == ["Ada"]
    assert detail["tags"] == []


def test_move_relocates_file_and_record(service: LibraryService, tmp_path: Path) -> None:
    source = _touch(tmp_path / "inbox" / "clip.mp4", size=3)
    (tmp_path / "archive").mkdir()
    (record,) = service.scan(str(tmp_path / "inbox")).records

    moved = service.move(str(source), str(tmp_path / "archive"))

    assert moved.id == record.id
    assert moved.path == str(tmp_path / "archive" / "clip.mp4")
    assert moved.folder_path == str(tmp_path / "archive")
    assert not source.exists()
    assert (tmp_path / "archive" / "clip.mp4").read_bytes() == b"xxx"


def test_move_failures_leave_catalog_untouched(service: LibraryService, tmp_path: Path) -> None:
    source = _touch(tmp_path / "inbox" / "clip.mp4")
    _touch(tmp_path / "archive" / "clip.mp4")
    service.scan(str(tmp_path / "inbox"))

    with pytest.raises(MoveError):
        service.move(str(source), str(tmp_path / "archive"))
    with pytest.raises(MoveError):
        service.move(str(source), str(tmp_path / "does-not-exist"))
    with pytest.raises(RecordNotFoundError):
        service.move(str(tmp_path / "archive" / "clip.mp4"), str(tmp_path / "inbox"))

    assert service.get_by_path(str(source)).path == str(source)
    assert source.exists()


def test_roots_register_depth_and_unregister(service: LibraryService, tmp_path: Path) -> None:
    _touch(tmp_path / "a.mp4")
    root = service.register_root(str(tmp_path))
    assert root.scan_depth == 2

    assert service.set_depth(str(tmp_path), 0).scan_depth == 0
    with pytest.raises(RecordNotFoundError):
        service.set_depth(str(tmp_path / "unknown"), 1)
    with pytest.raises(RootNotFoundError):
        service.register_root(str(tmp_path / "unknown"))

    service.scan(str(tmp_path))
    assert service.unregister_root(str(tmp_path)) == 1
    assert service.list_roots() == []
    assert service.list().total == 0


def test_thumbnail_and_subtitle_lookup(service: LibraryService, tmp_path: Path) -> None:
    video = _touch(tmp_path / "film.mp4")
    _touch(tmp_path / "film.png")
    _touch(tmp_path / "film.ass")
    service.scan(str(tmp_path))

    assert service.thumbnail_for(str(video)) == str(tmp_path / "film.png")
    assert service.subtitle_for(str(video)) == str(tmp_path / "film.ass")
    assert service.thumbnail_for(str(tmp_path / "other.mp4")) is None


def test_open_uses_working_dir_catalog(tmp_path: Path) -> None:
    _touch(tmp_path / "media" / "a.mp4")

    with LibraryService.open(tmp_path / "home", settings={"scan": {"prefix_match": "segment"}}) as svc:
        svc.scan(str(tmp_path / "media"))
        assert svc.prefix_mode == "segment"

    assert (tmp_path / "home" / "data" / "library.db").is_file()
    with LibraryService.open(tmp_path / "home", settings={}) as reopened:
        assert reopened.list().total == 1
