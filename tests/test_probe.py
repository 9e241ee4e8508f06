"""Tests for probe module."""

import pytest
from pathlib import Path

from src.filewatcher.models import Absent, FileStat, crc32_checksum
from src.filewatcher.probe import probe


class TestProbe:
    """Tests for probe()."""

    def test_missing_path_is_absent(self, tmp_path):
        stat = probe(tmp_path / "nope.txt")
        assert isinstance(stat, Absent)
        assert stat.reason == "missing"

    def test_missing_parent_is_absent(self, tmp_path):
        assert not probe(tmp_path / "no" / "such" / "file")

    def test_file_stat(self, tmp_path):
        path = tmp_path / "f.txt"
        path.write_bytes(b"hello")

        stat = probe(path)

        assert isinstance(stat, FileStat)
        assert stat.size == 5
        assert stat.mtime_ns == path.stat().st_mtime_ns
        assert stat.is_directory is False
        assert stat.fingerprint is None

    def test_accepts_string_path(self, tmp_path):
        path = tmp_path / "f.txt"
        path.write_text("x")
        assert probe(str(path)).size == 1

    def test_validate_fingerprints_file(self, tmp_path):
        path = tmp_path / "f.txt"
        path.write_bytes(b"hello")

        stat = probe(path, validate=True)

        assert stat.fingerprint == crc32_checksum(b"hello")

    def test_custom_checksum(self, tmp_path):
        path = tmp_path / "f.txt"
        path.write_bytes(b"abc")

        stat = probe(path, validate=True, checksum=lambda data: data[::-1])

        assert stat.fingerprint == b"cba"

    def test_directory_never_fingerprinted(self, tmp_path):
        stat = probe(tmp_path, validate=True)
        assert stat.is_directory is True
        assert stat.fingerprint is None

    def test_read_error_is_absent(self, tmp_path, monkeypatch):
        path = tmp_path / "f.txt"
        path.write_text("secret")

        def deny(self):
            raise PermissionError(13, "Permission denied")

        monkeypatch.setattr(Path, "read_bytes", deny)

        stat = probe(path, validate=True)

        assert isinstance(stat, Absent)
        assert stat.reason == "Permission denied"

    def test_stat_error_is_absent(self, tmp_path, monkeypatch):
        path = tmp_path / "f.txt"
        path.write_text("x")

        def broken(self, *args, **kwargs):
            raise OSError(5, "Input/output error")

        monkeypatch.setattr(Path, "stat", broken)

        stat = probe(path)

        assert isinstance(stat, Absent)
        assert stat.reason == "Input/output error"
