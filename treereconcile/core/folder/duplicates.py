"""
Duplicate-content annotation over an indexed result sequence.
"""

from __future__ import annotations

import logging
from typing import Optional

from treereconcile.core.models import (
    FileEntry,
    MatchKind,
    MatchResult,
    ProgressCallback,
    ReconcileProgress,
    Removed,
    is_hash_error,
)
from treereconcile.core.folder.engine import EntryHasher
from treereconcile.core.folder.inventory import Inventory


class DuplicateDetector:
    """
    Runs two passes over results that already carry their indices.

    1. A Removed result whose content exists anywhere in the destination
       becomes RemovedDuplicate, pointing at the result that carries the
       first destination file with that content.
    2. Results with a destination file are walked in index order; any result
       whose destination content was already seen points at the first one.

    `duplicate_of` therefore always references a first occurrence. Error
    sentinels are never treated as shared content.
    """

    def __init__(
        self,
        entry_hasher: EntryHasher,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self.entry_hasher = entry_hasher
        self._progress_callback = progress_callback

    def annotate(
        self,
        results: list[MatchResult],
        source: Inventory,
        destination: Inventory,
    ) -> list[MatchResult]:
        """Annotate `results` in place and return the same list."""
        self.entry_hasher.hash_entries(destination, destination.root)
        destination_by_path = {entry.full_path: entry for entry in destination}
        source_by_path = {entry.full_path: entry for entry in source}

        promoted = self.promote_removed(results, source, destination, source_by_path)
        marked = self.mark_destination_duplicates(results, destination_by_path)
        logging.info(
            f"DuplicateDetector - {promoted} removed files promoted, "
            f"{marked} destination duplicates marked"
        )
        return results

    def promote_removed(
        self,
        results: list[MatchResult],
        source: Inventory,
        destination: Inventory,
        source_by_path: dict,
    ) -> int:
        """Pass 1: Removed -> RemovedDuplicate."""
        removed_positions = [i for i, r in enumerate(results) if r.kind == MatchKind.REMOVED]
        if not removed_positions:
            return 0

        removed_entries = [source_by_path[results[i].source_path] for i in removed_positions]
        self.entry_hasher.hash_entries(removed_entries, source.root)

        destination_hashes = destination.by_content_hash()
        carriers = {
            r.destination_path: r.index
            for r in results
            if r.destination_path is not None
        }

        promoted = 0
        for done, (position, entry) in enumerate(zip(removed_positions, removed_entries), 1):
            self._report('duplicates', done, len(removed_positions), entry.relative_path)
            if is_hash_error(entry.content_hash):
                continue
            matches = destination_hashes.get(entry.content_hash)
            if not matches:
                continue

            target: FileEntry = matches[0]
            carrier_index = carriers.get(target.full_path)
            if carrier_index is None:
                logging.debug(
                    f"DuplicateDetector - No result carries {target.relative_path}, "
                    f"{entry.relative_path} left as Removed"
                )
                continue

            removed: Removed = results[position]
            results[position] = removed.promote(target, carrier_index)
            promoted += 1
            logging.debug(
                f"DuplicateDetector - {entry.relative_path} duplicates "
                f"{target.relative_path} (#{carrier_index})"
            )
        return promoted

    def mark_destination_duplicates(
        self,
        results: list[MatchResult],
        destination_by_path: dict,
    ) -> int:
        """Pass 2: point later results at the first result with the same content."""
        first_seen: dict[str, int] = {}
        marked = 0

        for result in sorted(results, key=lambda r: r.index):
            if result.destination_path is None:
                continue
            entry = destination_by_path.get(result.destination_path)
            if entry is None or entry.content_hash is None or is_hash_error(entry.content_hash):
                continue

            canonical = first_seen.get(entry.content_hash)
            if canonical is None:
                # A promoted result already points elsewhere and cannot be a
                # first occurrence.
                if result.duplicate_of is None:
                    first_seen[entry.content_hash] = result.index
                continue

            if canonical != result.index:
                result.duplicate_of = canonical
                marked += 1
        return marked

    def _report(self, phase: str, processed: int, total: int, current_path: str) -> None:
        if self._progress_callback:
            self._progress_callback(ReconcileProgress(phase, processed, total, current_path))
