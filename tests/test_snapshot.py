"""Tests for snapshot save and restore."""

import json
import os

import pytest

from src.filewatcher.exceptions import SnapshotError
from src.filewatcher.models import FileStat
from src.filewatcher.snapshot import Snapshot


def bump_mtime(path, seconds=10):
    st = path.stat()
    os.utime(path, ns=(st.st_atime_ns, st.st_mtime_ns + seconds * 1_000_000_000))


class TestSave:
    """Tests for FileWatcher.save."""

    def test_save_copies_targets(self, make_watcher, root):
        (root / "f.txt").write_text("x")
        watcher = make_watcher()
        watcher.watch(root / "f.txt")
        watcher.watch(root / "missing.txt")

        snapshot = watcher.save()

        assert len(snapshot) == 2
        assert root / "f.txt" in snapshot
        assert str(root / "missing.txt") in snapshot

    def test_snapshot_is_detached(self, make_watcher, root):
        (root / "f.txt").write_text("x")
        watcher = make_watcher()
        watcher.watch(root / "f.txt")

        snapshot = watcher.save()
        live = watcher.registry.get(root / "f.txt")
        live.update(FileStat(size=999, mtime_ns=1))
        live.display_name = "renamed"

        saved = snapshot.targets[root / "f.txt"]
        assert saved is not live
        assert saved.stat.size == 1
        assert saved.display_name == str(root / "f.txt")

    def test_later_watches_not_in_snapshot(self, make_watcher, root):
        watcher = make_watcher()
        watcher.watch(root / "a.txt")
        snapshot = watcher.save()

        watcher.watch(root / "b.txt")

        assert list(snapshot) == [root / "a.txt"]


class TestRestore:
    """Tests for FileWatcher.restore."""

    def test_unchanged_restore_is_silent(self, make_watcher, recorder, root):
        (root / "f.txt").write_text("x")
        watcher = make_watcher()
        watcher.watch(root / "f.txt")
        snapshot = watcher.save()

        assert watcher.restore(snapshot) == 0
        assert recorder.events == []
        assert root / "f.txt" in watcher

    def test_change_while_down(self, make_watcher, recorder, root):
        path = root / "f.txt"
        path.write_text("x")
        watcher = make_watcher()
        watcher.watch(path)
        snapshot = watcher.save()
        watcher.reset()

        path.write_text("longer content")
        bump_mtime(path)

        assert watcher.restore(snapshot) == 1
        kind, reported, stat = recorder.events[0]
        assert kind == "change"
        assert reported == str(path)
        assert stat.size == len("longer content")

    def test_remove_and_create_while_down(self, make_watcher, recorder, root):
        gone = root / "gone.txt"
        gone.write_text("x")
        born = root / "born.txt"
        watcher = make_watcher()
        watcher.watch(gone)
        watcher.watch(born)
        snapshot = watcher.save()
        watcher.reset()

        gone.unlink()
        born.write_text("hello")

        assert watcher.restore(snapshot) == 2
        assert sorted(recorder.kinds) == ["create", "remove"]
        assert (("remove", str(gone), None)) in recorder.events

    def test_restore_replaces_current_watches(self, make_watcher, backend, root):
        watcher = make_watcher()
        watcher.watch(root / "a.txt")
        snapshot = watcher.save()
        other = root / "other"
        other.mkdir()
        watcher.watch(other / "b.txt")

        watcher.restore(snapshot)

        assert watcher.watched_paths() == [root / "a.txt"]
        assert not backend.is_watching(other)
        assert backend.is_watching(root)

    def test_display_name_preserved(self, backend, recorder, root, monkeypatch):
        from src.filewatcher.config import WatcherConfig
        from src.filewatcher.watcher import FileWatcher

        monkeypatch.chdir(root)
        watcher = FileWatcher(recorder, WatcherConfig(full_name=False), backend=backend)
        watcher.watch("f.txt")
        snapshot = watcher.save()

        (root / "f.txt").write_text("x")
        watcher.restore(snapshot)
        watcher.close()

        assert recorder.events[0][:2] == ("create", "f.txt")

    def test_validate_ignores_touch(self, make_watcher, recorder, root):
        path = root / "f.txt"
        path.write_bytes(b"same")
        watcher = make_watcher(validate=True)
        watcher.watch(path)
        snapshot = watcher.save()

        bump_mtime(path)

        assert watcher.restore(snapshot) == 0
        assert recorder.events == []

    def test_validate_detects_same_size_rewrite(self, make_watcher, recorder, root):
        path = root / "f.txt"
        path.write_bytes(b"aaaa")
        watcher = make_watcher(validate=True)
        watcher.watch(path)
        snapshot = watcher.save()

        path.write_bytes(b"bbbb")

        assert watcher.restore(snapshot) == 1
        assert recorder.kinds == ["change"]

    def test_directory_target_only_reports_existence(self, make_watcher, recorder, root):
        directory = root / "d"
        directory.mkdir()
        watcher = make_watcher()
        watcher.watch(directory)
        snapshot = watcher.save()

        (directory / "new.txt").write_text("x")
        bump_mtime(directory)
        assert watcher.restore(snapshot) == 0

        directory_snapshot = watcher.save()
        (directory / "new.txt").unlink()
        directory.rmdir()
        assert watcher.restore(directory_snapshot) == 1
        assert recorder.events == [("remove", str(directory), None)]


class TestSerialization:
    """Tests for Snapshot.to_dict and from_dict."""

    def test_json_round_trip_restores_cleanly(self, make_watcher, recorder, root):
        (root / "f.txt").write_bytes(b"data")
        watcher = make_watcher(validate=True)
        watcher.watch(root / "f.txt")
        watcher.watch(root / "missing.txt")

        data = json.loads(json.dumps(watcher.save().to_dict()))
        snapshot = Snapshot.from_dict(data)

        assert snapshot.targets[root / "f.txt"].stat == watcher.get_stat(root / "f.txt")
        assert not snapshot.targets[root / "missing.txt"].stat
        assert watcher.restore(snapshot) == 0

    @pytest.mark.parametrize("data", [
        {},
        {"targets": [{"display_name": "no key"}]},
        {"targets": [{"key": "/x", "kind": "socket"}]},
        {"targets": [{"key": "/x", "stat": {"exists": True}}]},
        {"targets": None},
    ])
    def test_invalid_data_raises(self, data):
        with pytest.raises(SnapshotError):
            Snapshot.from_dict(data)
