import os
import threading

import pytest

from showshelf.errors import AccessError, ScanCancelled
from showshelf.services.scanner import EpisodeFile, ScanSettings, Scanner, ShowDir


def _deny(scanner, monkeypatch, suffix):
    original = scanner._list_dir

    def list_dir(path):
        if path.endswith(suffix):
            raise PermissionError(13, "Permission denied", path)
        return original(path)

    monkeypatch.setattr(scanner, "_list_dir", list_dir)


def test_discovers_shows_and_episodes(media_root, make_show):
    make_show(media_root, "Vinland Saga", ["Vinland Saga - 01.mkv", "Vinland Saga - 02.mp4", "cover.jpg"])
    make_show(media_root, "Yuyushiki", ["Season 1/Yuyushiki - S01E01.ts"])
    (media_root / "notes.txt").write_text("not a show")

    result = Scanner().collect(media_root)

    assert [show.name for show, _ in result.shows] == ["Vinland Saga", "Yuyushiki"]
    vinland = dict((show.name, files) for show, files in result.shows)["Vinland Saga"]
    assert [f.name for f in vinland] == ["Vinland Saga - 01", "Vinland Saga - 02"]
    assert all(f.show_path == str(media_root / "Vinland Saga") for f in vinland)
    assert result.episode_count == 3
    assert result.errors == []


def test_scan_yields_show_before_its_episodes(media_root, make_show):
    make_show(media_root, "A", ["a1.mkv"])
    entries = list(Scanner().scan(media_root))
    assert isinstance(entries[0], ShowDir)
    assert isinstance(entries[1], EpisodeFile)


def test_hidden_entries_are_skipped(media_root, make_show):
    make_show(media_root, ".trash", ["old.mkv"])
    make_show(media_root, "A", [".partial.mkv", "a1.mkv"])

    result = Scanner().collect(media_root)

    assert [show.name for show, _ in result.shows] == ["A"]
    assert [f.name for f in result.shows[0][1]] == ["a1"]


def test_extensions_are_case_insensitive(media_root, make_show):
    make_show(media_root, "A", ["EP01.MKV"])
    result = Scanner().collect(media_root)
    assert result.episode_count == 1


def test_custom_extensions(media_root, make_show):
    make_show(media_root, "A", ["a1.avi", "a2.mkv"])
    scanner = Scanner(ScanSettings(video_extensions=frozenset({"avi"})))
    result = scanner.collect(media_root)
    assert [f.name for f in result.shows[0][1]] == ["a1"]


def test_max_depth_bounds_the_walk(media_root, make_show):
    make_show(media_root, "A", ["top.mkv", "d2/two.mkv", "d2/d3/three.mkv"])
    scanner = Scanner(ScanSettings(max_depth=2))

    names = sorted(f.name for f in scanner.collect(media_root).shows[0][1])

    assert names == ["top", "two"]


def test_scan_is_restartable(media_root, make_show):
    make_show(media_root, "A", ["a1.mkv"])
    scanner = Scanner()
    first = list(scanner.scan(media_root))

    make_show(media_root, "B", ["b1.mkv"])
    second = list(scanner.scan(media_root))

    assert len(first) == 2
    assert len(second) == 4


def test_episode_metadata_comes_from_stat(media_root, make_show):
    show = make_show(media_root, "A", ["a1.mkv"])
    os.utime(show / "a1.mkv", (1_600_000_000, 1_600_000_000))

    episode = Scanner().collect(media_root).shows[0][1][0]

    assert episode.mtime == 1_600_000_000
    assert episode.size == len(b"video")


def test_unreadable_subdirectory_is_reported_and_scan_continues(media_root, make_show, monkeypatch):
    make_show(media_root, "A", ["a1.mkv", "Season 2/a2.mkv"])
    make_show(media_root, "B", ["b1.mkv"])
    scanner = Scanner()
    _deny(scanner, monkeypatch, "Season 2")
    reported = []

    entries = list(scanner.scan(media_root, on_error=reported.append))

    assert [e.name for e in entries if isinstance(e, EpisodeFile)] == ["a1", "b1"]
    assert len(reported) == 1
    assert reported[0].path.endswith("Season 2")
    assert reported[0].show_path == str(media_root / "A")


def test_collect_marks_show_incomplete(media_root, make_show, monkeypatch):
    make_show(media_root, "A", ["Season 2/a2.mkv"])
    scanner = Scanner()
    _deny(scanner, monkeypatch, "Season 2")

    result = scanner.collect(media_root)

    assert result.incomplete == {str(media_root / "A")}
    assert len(result.errors) == 1


def test_unreadable_root_raises(tmp_path):
    with pytest.raises(AccessError) as excinfo:
        Scanner().collect(tmp_path / "missing")
    assert excinfo.value.path == str(tmp_path / "missing")


def test_cancel_aborts_scan(media_root, make_show):
    make_show(media_root, "A", ["a1.mkv"])
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(ScanCancelled):
        Scanner().collect(media_root, cancel=cancel)
