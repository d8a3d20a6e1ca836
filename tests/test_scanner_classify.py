from pathlib import Path

import pytest

from scanner.classify import EntryKind, PathClassifier, classify, extension_of, find_subtitle, find_thumbnail


@pytest.mark.parametrize("name", ["movie.mp4", "Show.S01E01.MKV", "clip.ts", "old.3gp", "home.MpEg"])
def test_media_extensions_are_case_insensitive(name: str) -> None:
    result = classify(name)
    assert result.kind is EntryKind.MEDIA
    assert result.ext == extension_of(name)


@pytest.mark.parametrize("name", [".hidden.mp4", ".DS_Store", "node_modules", "Library", ".Trash"])
def test_hidden_and_denylisted_names_are_skipped(name: str) -> None:
    assert classify(name).kind is EntryKind.SKIP
    assert classify(name, is_dir=True).kind is EntryKind.SKIP


def test_other_kinds() -> None:
    assert classify("poster.JPG").kind is EntryKind.IMAGE
    assert classify("notes.txt").kind is EntryKind.OTHER
    assert classify("README").kind is EntryKind.OTHER
    assert classify("Season 1", is_dir=True).kind is EntryKind.DIRECTORY


def test_find_thumbnail_follows_preference_order(tmp_path: Path) -> None:
    video = tmp_path / "film.mkv"
    video.write_bytes(b"")
    (tmp_path / "film.png").write_bytes(b"png")
    assert find_thumbnail(str(video)) == str(tmp_path / "film.png")

    (tmp_path / "film.jpg").write_bytes(b"jpg")
    assert find_thumbnail(str(video)) == str(tmp_path / "film.jpg")


def test_find_thumbnail_absent_is_none(tmp_path: Path) -> None:
    video = tmp_path / "film.mkv"
    video.write_bytes(b"")
    (tmp_path / "other.jpg").write_bytes(b"jpg")
    (tmp_path / "film.jpg").mkdir()

    assert find_thumbnail(str(video)) is None


def test_find_subtitle(tmp_path: Path) -> None:
    video = tmp_path / "episode.mp4"
    video.write_bytes(b"")
    assert find_subtitle(str(video)) is None

    (tmp_path / "episode.vtt").write_text("WEBVTT", encoding="utf-8")
    (tmp_path / "episode.srt").write_text("1", encoding="utf-8")
    assert find_subtitle(str(video)) == str(tmp_path / "episode.srt")


def test_classifier_from_settings_uses_scan_section() -> None:
    classifier = PathClassifier.from_settings(
        {"scan": {"video_extensions": [".MP4"], "skip_names": ["Extras"], "image_extensions": ["png"]}}
    )

    assert classifier.classify("a.mp4").kind is EntryKind.MEDIA
    assert classifier.classify("a.mkv").kind is EntryKind.OTHER
    assert classifier.classify("Extras", is_dir=True).kind is EntryKind.SKIP
    assert classifier.image_extensions == ("png",)
    # node_modules is no longer denied once the list is overridden
    assert classifier.classify("node_modules", is_dir=True).kind is EntryKind.DIRECTORY
