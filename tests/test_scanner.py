"""
Unit tests for FolderScanner and PatternMatcher.
Verifies traversal output, hidden/exclude filtering and skipped entries.
"""
import os
import sys
from datetime import timezone

import pytest

from treereconcile.core.folder.scanner import FolderScanner, PatternMatcher, ScanOptions
from conftest import FIXED_MTIME


class TestFolderScanner:
    """Test recursive enumeration of regular files."""

    def test_lists_regular_files_recursively(self, source_dir, write_file):
        write_file(source_dir, "a.txt", b"a")
        write_file(source_dir, "sub/b.txt", b"bb")
        write_file(source_dir, "sub/deeper/c.txt", b"ccc")

        result = FolderScanner().scan(source_dir)

        paths = [e.full_path.relative_to(source_dir).as_posix() for e in result.files]
        assert paths == ["a.txt", "sub/b.txt", "sub/deeper/c.txt"]
        assert result.file_count == 3
        assert result.total_size == 6
        assert result.skipped == []

    def test_records_size_and_utc_mtime(self, source_dir, write_file):
        write_file(source_dir, "a.txt", b"12345")

        entry = FolderScanner().scan(source_dir).files[0]

        assert entry.size == 5
        assert entry.modified_time.tzinfo == timezone.utc
        assert entry.modified_time.timestamp() == FIXED_MTIME

    def test_empty_directories_produce_nothing(self, source_dir):
        (source_dir / "empty" / "nested").mkdir(parents=True)

        assert FolderScanner().scan(source_dir).files == []

    def test_hidden_files_included_by_default(self, source_dir, write_file):
        write_file(source_dir, ".env", b"x")
        write_file(source_dir, ".cache/data", b"y")

        assert FolderScanner().scan(source_dir).file_count == 2

    def test_hidden_files_excluded_on_request(self, source_dir, write_file):
        write_file(source_dir, ".env", b"x")
        write_file(source_dir, ".cache/data", b"y")
        write_file(source_dir, "visible.txt", b"z")

        result = FolderScanner(ScanOptions(include_hidden=False)).scan(source_dir)

        assert [e.full_path.name for e in result.files] == ["visible.txt"]

    def test_exclude_patterns(self, source_dir, write_file):
        write_file(source_dir, "keep.txt", b"1")
        write_file(source_dir, "drop.tmp", b"2")
        write_file(source_dir, "build/out.bin", b"3")
        write_file(source_dir, "src/build.txt", b"4")

        options = ScanOptions(exclude_patterns=["*.tmp", "build/"])
        result = FolderScanner(options).scan(source_dir)

        paths = sorted(e.full_path.relative_to(source_dir).as_posix() for e in result.files)
        assert paths == ["keep.txt", "src/build.txt"]

    @pytest.mark.skipif(sys.platform == "win32", reason="symlinks need privileges on Windows")
    def test_symlinks_are_not_regular_files(self, source_dir, write_file):
        target = write_file(source_dir, "real.txt", b"x")
        os.symlink(target, source_dir / "link.txt")

        result = FolderScanner().scan(source_dir)

        assert [e.full_path.name for e in result.files] == ["real.txt"]

    def test_vanished_file_is_skipped(self, source_dir, write_file, monkeypatch):
        write_file(source_dir, "gone.txt", b"x")
        write_file(source_dir, "stays.txt", b"y")
        scanner = FolderScanner()
        real_read = scanner._read_entry

        def vanish(path, skipped):
            if path.name == "gone.txt":
                path.unlink()
            return real_read(path, skipped)

        monkeypatch.setattr(scanner, "_read_entry", vanish)
        result = scanner.scan(source_dir)

        assert [e.full_path.name for e in result.files] == ["stays.txt"]
        assert len(result.skipped) == 1
        assert result.skipped[0].path.endswith("gone.txt")
        assert "Vanished" in result.skipped[0].reason

    def test_not_a_directory(self, temp_dir):
        path = temp_dir / "file.txt"
        path.write_bytes(b"x")

        with pytest.raises(NotADirectoryError):
            FolderScanner().scan(path)

    def test_progress_callback(self, source_dir, write_file):
        write_file(source_dir, "a.txt")
        write_file(source_dir, "sub/b.txt")
        updates = []

        FolderScanner().scan(source_dir, updates.append)

        assert updates
        assert updates[-1].files_found == 2


class TestPatternMatcher:
    """Test gitignore-style matching."""

    def test_star_does_not_cross_directories(self):
        matcher = PatternMatcher(["/*.log"])
        assert matcher.matches("app.log")
        assert not matcher.matches("logs/app.log")

    def test_unanchored_matches_at_any_depth(self):
        matcher = PatternMatcher(["*.log"])
        assert matcher.matches("logs/deep/app.log")

    def test_double_star(self):
        matcher = PatternMatcher(["docs/**/draft.md"])
        assert matcher.matches("docs/draft.md")
        assert matcher.matches("docs/a/b/draft.md")

    def test_negation(self):
        matcher = PatternMatcher(["*.log", "!keep.log"])
        assert matcher.matches("debug.log")
        assert not matcher.matches("keep.log")

    def test_directory_only(self):
        matcher = PatternMatcher(["cache/"])
        assert matcher.matches("cache", is_dir=True)
        assert not matcher.matches("cache", is_dir=False)

    def test_empty_matcher_is_falsy(self):
        assert not PatternMatcher([])
        assert not PatternMatcher(["# comment", ""])
