"""
Unit tests for core models: entries, result variants and errors.
"""
import threading
import time
from pathlib import Path

import pytest

from treereconcile.core.models import (
    Added,
    HashError,
    MatchKind,
    MatchResult,
    PreconditionError,
    ReconcileError,
    Removed,
    Renamed,
    is_hash_error,
)


class TestFileEntry:
    """Test derived names and hash memoization."""

    def test_name_and_parent(self, make_entry):
        entry = make_entry("a/b/c.txt")
        assert entry.name == "c.txt"
        assert entry.parent == "a/b"
        assert make_entry("top.txt").parent == ""

    def test_same_metadata(self, make_entry):
        assert make_entry("x", size=5).same_metadata(make_entry("x", root="/dst", size=5))
        assert not make_entry("x", size=5).same_metadata(make_entry("x", size=6))
        assert not make_entry("x", mtime=1).same_metadata(make_entry("x", mtime=2))

    def test_ensure_hash_computes_once_under_contention(self, make_entry):
        entry = make_entry("shared.bin")
        calls = []

        def compute(e):
            calls.append(e)
            time.sleep(0.01)
            return "digest"

        threads = [threading.Thread(target=entry.ensure_hash, args=(compute,)) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(calls) == 1
        assert entry.content_hash == "digest"


class TestMatchResults:
    """Test the result variants carry only their own paths."""

    def test_paired_description(self):
        result = Renamed(
            source=Path("/src/d/a.txt"),
            destination=Path("/dst/d/b.txt"),
            source_relative="d/a.txt",
            destination_relative="d/b.txt",
        )
        assert result.kind == MatchKind.RENAMED
        assert result.relative_path_description == "d/a.txt -> d/b.txt"

    def test_removed_and_added_have_one_side(self):
        removed = Removed(source=Path("/src/a"), relative_path="a")
        added = Added(destination=Path("/dst/b"), relative_path="b")

        assert removed.destination_path is None
        assert added.source_path is None
        assert removed.to_record()["destination_path"] is None

    def test_base_result_is_abstract(self):
        with pytest.raises(TypeError):
            MatchResult()

    def test_promote_keeps_index(self, make_entry):
        removed = Removed(source=Path("/src/a.txt"), relative_path="a.txt", index=4)

        promoted = removed.promote(make_entry("b/a.txt", root="/dst"), duplicate_of=2)

        assert promoted.kind == MatchKind.REMOVED_DUPLICATE
        assert promoted.index == 4
        assert promoted.duplicate_of == 2
        assert promoted.destination_path == Path("/dst/b/a.txt")
        assert promoted.relative_path_description == "a.txt -> b/a.txt"


class TestErrors:
    def test_hash_error_sentinels(self):
        assert HashError.DEVICE_NOT_FUNCTIONING.sentinel == "!hash-error:device-not-functioning"
        assert HashError.COMPUTE_FAILED.make_sentinel("oops") == "!hash-error:compute-failed:oops"
        assert not is_hash_error("d41d8cd98f00b204e9800998ecf8427e")
        assert not is_hash_error(None)

    def test_precondition_error_message(self):
        error = PreconditionError("destination", "/missing", "does not exist")

        assert isinstance(error, ReconcileError)
        assert str(error) == "Destination path does not exist: /missing"
        assert error.role == "destination"
