"""
Result sinks: CSV export and plain-text summary.
"""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Iterable

from treereconcile.core.models import MatchResult, ReconcileResult


CSV_FIELDS = ['index', 'kind', 'source_path', 'destination_path', 'relative_path', 'duplicate_of']


def write_csv(results: Iterable[MatchResult], path: Path | str) -> int:
    """
    Write one row per result.

    Absent values are written as empty cells. Returns the number of rows.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    rows = 0
    with open(path, 'w', newline='', encoding='utf-8') as f:
        writer = csv.DictWriter(f, fieldnames=CSV_FIELDS)
        writer.writeheader()
        for result in results:
            record = result.to_record()
            writer.writerow({k: '' if record[k] is None else record[k] for k in CSV_FIELDS})
            rows += 1

    logging.info(f"Report - Wrote {rows} results to {path}")
    return rows


def format_summary(result: ReconcileResult) -> str:
    """Per-kind counts, duplicates and diagnostics as text."""
    lines = [
        f"Source:      {result.source_root}",
        f"Destination: {result.destination_root}",
        f"Results:     {len(result)}",
        "",
    ]
    width = max(len(kind.value) for kind in result.counts())
    for kind, count in result.counts().items():
        lines.append(f"  {kind.value:<{width}}  {count}")

    lines.append("")
    lines.append(f"Duplicates:  {result.duplicate_count}")
    lines.append(f"Diagnostics: {len(result.diagnostics)}")
    for diagnostic in result.diagnostics:
        lines.append(f"  {diagnostic}")
    lines.append(f"Elapsed:     {result.elapsed:.2f}s")
    return "\n".join(lines)
