import sqlite3

import pytest

from catalog.models import FilterSpec, MediaRecord
from catalog.store import CatalogStore


def _record(path: str, size: int = 10) -> MediaRecord:
    return MediaRecord.seed(path, size)


@pytest.fixture()
def store():
    with CatalogStore(":memory:") as catalog:
        yield catalog


def test_upsert_updates_in_place(store: CatalogStore) -> None:
    first = store.upsert(_record("/lib/a.mp4", size=10))
    second = store.upsert(_record("/lib/a.mp4", size=99))

    assert second.id == first.id
    assert second.created_at == first.created_at
    assert second.size == 99
    assert store.count() == 1


def test_upsert_many_never_duplicates_a_path(store: CatalogStore) -> None:
    records = [_record("/lib/a.mp4"), _record("/lib/a.mp4", size=3), _record("/lib/b.mp4")]

    assert store.upsert_many(records) == 3
    assert store.count() == 2
    assert store.get_by_path("/lib/a.mp4").size == 3


def test_clear_prefix_textual_includes_name_sharing_siblings(store: CatalogStore) -> None:
    store.upsert_many(
        [_record("/media/foo/a.mp4"), _record("/media/foo/sub/b.mp4"), _record("/media/foobar/c.mp4"), _record("/other/d.mp4")]
    )

    assert store.clear_prefix("/media/foo") == 3
    assert [r.path for r in store.list()] == ["/other/d.mp4"]


def test_clear_prefix_segment_respects_components() -> None:
    with CatalogStore(":memory:", prefix_mode="segment") as store:
        store.upsert_many([_record("/media/foo/a.mp4"), _record("/media/foo/sub/b.mp4"), _record("/media/foobar/c.mp4")])

        assert store.clear_prefix("/media/foo") == 2
        assert [r.path for r in store.list()] == ["/media/foobar/c.mp4"]


def test_clear_prefix_is_case_sensitive_and_literal(store: CatalogStore) -> None:
    store.upsert_many([_record("/Media/a.mp4"), _record("/m_dia/b.mp4")])

    assert store.clear_prefix("/media") == 0
    assert store.clear_prefix("/m%") == 0
    assert store.count() == 2


def test_replace_folder_reports_cleared_and_new(store: CatalogStore) -> None:
    store.upsert_many([_record("/lib/a.mp4"), _record("/lib/gone.mp4")])

    cleared, new = store.replace_folder("/lib", [_record("/lib/a.mp4"), _record("/lib/b.mp4")])

    assert (cleared, new) == (2, 1)
    assert sorted(r.filename for r in store.list()) == ["a.mp4", "b.mp4"]


def test_replace_folder_rolls_back_on_failure(store: CatalogStore) -> None:
    store.upsert_many([_record("/lib/a.mp4"), _record("/lib/b.mp4")])
    broken = MediaRecord(id="bad", path=None, filename="x.mp4", folder_path="/lib", size=1)  # type: ignore[arg-type]

    with pytest.raises(sqlite3.IntegrityError):
        store.replace_folder("/lib", [_record("/lib/c.mp4"), broken])

    assert sorted(r.filename for r in store.list()) == ["a.mp4", "b.mp4"]


def test_point_lookups_and_delete(store: CatalogStore) -> None:
    record = store.upsert(_record("/lib/a.mp4"))

    assert store.get_by_id(record.id).path == "/lib/a.mp4"
    assert store.get_by_id("missing") is None
    assert store.get_by_path("/lib/nope.mp4") is None
    assert store.delete(record.id) is True
    assert store.delete(record.id) is False
    assert store.get_by_path("/lib/a.mp4") is None


def test_move_record_rewrites_location(store: CatalogStore) -> None:
    original = store.upsert(_record("/lib/a.mp4"))
    store.upsert(_record("/archive/a.mp4"))

    moved = store.move_record("/lib/a.mp4", "/archive/a.mp4")

    assert moved.id == original.id
    assert (moved.folder_path, moved.filename) == ("/archive", "a.mp4")
    assert store.count() == 1
    assert store.move_record("/lib/unknown.mp4", "/archive/a.mp4") is None
    assert store.get_by_path("/archive/a.mp4").id == original.id


def test_roots_lifecycle_cascades_to_records(store: CatalogStore) -> None:
    root = store.add_root("/lib", depth=3)
    assert (root.name, root.scan_depth) == ("lib", 3)

    again = store.add_root("/lib", depth=1, name="Library")
    assert again.id == root.id
    assert (again.name, again.scan_depth) == ("Library", 1)

    assert store.set_root_depth("/lib", 0) is True
    assert store.set_root_depth("/missing", 4) is False
    assert store.get_root("/lib").scan_depth == 0
    with pytest.raises(ValueError):
        store.set_root_depth("/lib", -1)

    store.upsert_many([_record("/lib/a.mp4"), _record("/lib/sub/b.mp4"), _record("/else/c.mp4")])
    assert store.remove_root("/lib") == 2
    assert store.list_roots() == []
    assert [r.path for r in store.list()] == ["/else/c.mp4"]


def _tagged_library(store: CatalogStore) -> dict:
    records = {name: store.upsert(_record(f"/lib/{name}.mp4")) for name in ("a", "b", "c", "d")}
    store.register_facet_value("tags", "t-action", "Action", color="#ff0000")
    store.register_facet_value("tags", "t-drama", "Drama")
    store.register_facet_value("languages", "l-en", "English", code="en")
    store.register_facet_value("participants", "p-1", "Someone")
    store.set_video_facet(records["a"].id, "tags", ["t-action"])
    store.set_video_facet(records["b"].id, "tags", ["t-drama", "t-action"])
    store.set_video_facet(records["c"].id, "tags", ["t-drama"])
    store.set_video_facet(records["b"].id, "languages", ["l-en"])
    store.set_video_facet(records["c"].id, "languages", ["l-en"])
    return records


def test_facets_or_within_and_across(store: CatalogStore) -> None:
    _tagged_library(store)

    either = store.list(FilterSpec(tag_ids=["t-action", "t-drama"]))
    assert [r.filename for r in either] == ["a.mp4", "b.mp4", "c.mp4"]
    assert store.count(FilterSpec(tag_ids=["t-action", "t-drama"])) == 3

    both = store.list(FilterSpec(tag_ids=["t-action"], language_ids=["l-en"]))
    assert [r.filename for r in both] == ["b.mp4"]


def test_video_facets_and_cascade_on_delete(store: CatalogStore) -> None:
    records = _tagged_library(store)

    facets = store.video_facets(records["b"].id)
    assert [tag["name"] for tag in facets["tags"]] == ["Action", "Drama"]
    assert facets["languages"][0]["code"] == "en"
    assert facets["participants"] == []

    store.delete(records["b"].id)
    assert store.count(FilterSpec(language_ids=["l-en"])) == 1

    with pytest.raises(ValueError):
        store.register_facet_value("moods", "m", "Calm")


def test_pages_concatenate_to_full_result(store: CatalogStore) -> None:
    store.upsert_many([_record(f"/lib/{idx:02d}.mp4", size=idx % 3) for idx in range(23)])
    spec_args = {"sort_by": "size", "sort_order": "desc"}

    full = [r.id for r in store.list(FilterSpec(limit=500, **spec_args))]
    paged = []
    for offset in range(0, 23, 5):
        paged.extend(r.id for r in store.list(FilterSpec(limit=5, offset=offset, **spec_args)))

    assert paged == full
    assert len(set(paged)) == 23


def test_pages_under_facet_join_hold_each_record_once(store: CatalogStore) -> None:
    records = _tagged_library(store)
    spec_args = {"tag_ids": ["t-action", "t-drama"]}

    paged = []
    for offset in range(0, 4):
        paged.extend(r.id for r in store.list(FilterSpec(limit=1, offset=offset, **spec_args)))

    # b carries both tags and must still occupy exactly one slot
    assert paged == [records["a"].id, records["b"].id, records["c"].id]
    assert store.count(FilterSpec(**spec_args)) == 3


def test_filename_search_is_literal_substring(store: CatalogStore) -> None:
    store.upsert_many([_record("/lib/100%.mp4"), _record("/lib/1000.mp4"), _record("/lib/Holiday.mkv")])

    assert [r.filename for r in store.list(FilterSpec(search_query="100%"))] == ["100%.mp4"]
    assert [r.filename for r in store.list(FilterSpec(search_query="holi"))] == ["Holiday.mkv"]
