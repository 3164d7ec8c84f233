"""
Unit tests for the CSV sink and text summary.
"""
import csv
from pathlib import Path

from treereconcile.core.models import (
    Added,
    Diagnostic,
    DiagnosticCategory,
    MatchKind,
    Moved,
    ReconcileResult,
    Removed,
    RemovedDuplicate,
)
from treereconcile.services.report import CSV_FIELDS, format_summary, write_csv


def sample_result() -> ReconcileResult:
    return ReconcileResult(
        source_root="/src",
        destination_root="/dst",
        results=[
            Moved(
                source=Path("/src/a/config.json"),
                destination=Path("/dst/archive/config.json"),
                source_relative="a/config.json",
                destination_relative="archive/config.json",
                index=1,
            ),
            RemovedDuplicate(
                source=Path("/src/copy.json"),
                destination=Path("/dst/archive/config.json"),
                source_relative="copy.json",
                destination_relative="archive/config.json",
                index=2,
                duplicate_of=1,
            ),
            Removed(source=Path("/src/old.txt"), relative_path="old.txt", index=3),
            Added(destination=Path("/dst/new.txt"), relative_path="new.txt", index=4),
        ],
        diagnostics=[Diagnostic("/src/locked.bin", DiagnosticCategory.HASH_ERROR, "denied")],
        elapsed=0.5,
    )


class TestWriteCsv:
    """Test one row per result with empty cells for absent values."""

    def test_rows(self, temp_dir):
        path = temp_dir / "out" / "report.csv"

        rows_written = write_csv(sample_result(), path)

        with open(path, newline="", encoding="utf-8") as f:
            rows = list(csv.DictReader(f))

        assert rows_written == 4
        assert list(rows[0].keys()) == CSV_FIELDS
        assert rows[0] == {
            "index": "1",
            "kind": "Moved",
            "source_path": str(Path("/src/a/config.json")),
            "destination_path": str(Path("/dst/archive/config.json")),
            "relative_path": "a/config.json -> archive/config.json",
            "duplicate_of": "",
        }
        assert rows[1]["kind"] == "RemovedDuplicate"
        assert rows[1]["duplicate_of"] == "1"
        assert rows[2]["destination_path"] == ""
        assert rows[3]["source_path"] == ""

    def test_empty_result_writes_header_only(self, temp_dir):
        path = temp_dir / "empty.csv"

        assert write_csv([], path) == 0
        assert path.read_text(encoding="utf-8").strip() == ",".join(CSV_FIELDS)


class TestFormatSummary:
    def test_lists_every_kind(self):
        text = format_summary(sample_result())

        for kind in MatchKind:
            assert kind.value in text
        assert "Duplicates:  1" in text
        assert "hash_error: /src/locked.bin - denied" in text

    def test_summary_property(self):
        assert sample_result().summary == "Moved: 1, Added: 1, Removed: 1, RemovedDuplicate: 1"
