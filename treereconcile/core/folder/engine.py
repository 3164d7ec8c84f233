"""
Staged reconciliation engine.

Turns two inventories into an ordered sequence of match results:

1. Same relative path      -> Unchanged / Updated
2. Same content hash       -> Moved / Renamed / MovedAndRenamed
3. Similar name, same dir  -> LikelyRenamedOrUpdated
4. Residue                 -> Removed / Added

Each stage consumes the unmatched remainder of the previous one. Every
lookup whose iteration order feeds result emission is walked in sorted key
order, so results (and their indices) do not depend on traversal or hashing
completion order.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional

from treereconcile.core.models import (
    Added,
    Diagnostic,
    DiagnosticCategory,
    FileEntry,
    LikelyRenamedOrUpdated,
    MatchResult,
    Moved,
    MovedAndRenamed,
    PairedResult,
    ProgressCallback,
    ReconcileProgress,
    Removed,
    Renamed,
    Unchanged,
    Updated,
    is_hash_error,
)
from treereconcile.core.similarity import within_distance
from treereconcile.core.folder.inventory import Inventory
from treereconcile.services.hashing import ContentHasher


# Stage pool: relative path -> entry not matched yet
Pool = dict[str, FileEntry]


@dataclass
class MatchOptions:
    """Options for the matching stages."""
    name_distance_threshold: int = 3
    hash_workers: int = 4


class EntryHasher:
    """
    Memoizing front-end to a ContentHasher.

    Hashes are written only into each entry's own slot; concurrent requests
    for the same entry collapse into one computation (see
    `FileEntry.ensure_hash`). The pool is bounded by `workers`.
    """

    def __init__(
        self,
        hasher: ContentHasher,
        workers: int = 4,
        progress_callback: Optional[ProgressCallback] = None,
        diagnostics: Optional[list[Diagnostic]] = None,
    ):
        self.hasher = hasher
        self.workers = max(1, workers)
        self._progress_callback = progress_callback
        self.diagnostics = diagnostics if diagnostics is not None else []
        self.computed = 0

    def hash_entries(self, entries: Iterable[FileEntry], root: Path) -> None:
        """Make sure every entry carries a content hash."""
        pending = [e for e in entries if not e.is_hashed]
        if not pending:
            return

        def compute(entry: FileEntry) -> str:
            return self.hasher.hash_file(entry.full_path, root)

        total = len(pending)
        logging.debug(f"EntryHasher - Hashing {total} files under {root}")

        if self.workers == 1 or total == 1:
            for done, entry in enumerate(pending, 1):
                entry.ensure_hash(compute)
                self._report(done, total, entry.relative_path)
        else:
            with ThreadPoolExecutor(max_workers=self.workers) as executor:
                futures = {executor.submit(entry.ensure_hash, compute): entry for entry in pending}
                for done, future in enumerate(as_completed(futures), 1):
                    future.result()
                    self._report(done, total, futures[future].relative_path)

        self.computed += total
        for entry in pending:
            if is_hash_error(entry.content_hash):
                self.diagnostics.append(Diagnostic(
                    path=str(entry.full_path),
                    category=DiagnosticCategory.HASH_ERROR,
                    message=entry.content_hash,
                ))

    def _report(self, processed: int, total: int, current_path: str) -> None:
        if self._progress_callback:
            self._progress_callback(ReconcileProgress('hashing', processed, total, current_path))


class MatchEngine:
    """
    Runs the four matching stages over two inventories.

    Stage methods take the two pools explicitly, remove what they match and
    return the results they produced, so each can be exercised on its own.
    """

    def __init__(
        self,
        entry_hasher: EntryHasher,
        options: Optional[MatchOptions] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self.entry_hasher = entry_hasher
        self.options = options or MatchOptions()
        self._progress_callback = progress_callback

    def run(
        self,
        source: Inventory,
        destination: Inventory,
        check_cancelled: Optional[Callable[[], None]] = None,
    ) -> list[MatchResult]:
        """
        Reconcile two inventories.

        Returns:
            Results in stage order with 1-based indices assigned
        """
        source_pool: Pool = dict(source.by_relative_path())
        destination_pool: Pool = dict(destination.by_relative_path())
        results: list[MatchResult] = []

        stages = (
            lambda: self.match_same_path(source_pool, destination_pool, source.root, destination.root),
            lambda: self.match_by_content(source_pool, destination_pool, source.root, destination.root),
            lambda: self.match_similar_names(source_pool, destination_pool),
            lambda: self.collect_residue(source_pool, destination_pool),
        )
        for stage in stages:
            if check_cancelled:
                check_cancelled()
            results.extend(stage())

        assign_indices(results)
        logging.info(f"MatchEngine - Produced {len(results)} results")
        return results

    def match_same_path(
        self,
        source_pool: Pool,
        destination_pool: Pool,
        source_root: Path,
        destination_root: Path,
    ) -> list[MatchResult]:
        """Stage 1: join on relative path."""
        common = sorted(source_pool.keys() & destination_pool.keys())

        # Only pairs whose metadata differ need their content compared
        differing = [rel for rel in common if not source_pool[rel].same_metadata(destination_pool[rel])]
        self.entry_hasher.hash_entries((source_pool[rel] for rel in differing), source_root)
        self.entry_hasher.hash_entries((destination_pool[rel] for rel in differing), destination_root)

        results: list[MatchResult] = []
        for done, rel in enumerate(common, 1):
            source_entry = source_pool.pop(rel)
            destination_entry = destination_pool.pop(rel)

            if source_entry.same_metadata(destination_entry):
                result = Unchanged.from_entries(source_entry, destination_entry)
            elif source_entry.content_hash == destination_entry.content_hash:
                result = Unchanged.from_entries(source_entry, destination_entry)
            else:
                result = Updated.from_entries(source_entry, destination_entry)

            logging.debug(f"MatchEngine - {result.kind.value}: {rel}")
            results.append(result)
            self._report('same_path', done, len(common), rel)

        logging.info(f"MatchEngine - Same-path stage matched {len(results)} files")
        return results

    def match_by_content(
        self,
        source_pool: Pool,
        destination_pool: Pool,
        source_root: Path,
        destination_root: Path,
    ) -> list[MatchResult]:
        """Stage 2: join remaining entries on content hash."""
        self.entry_hasher.hash_entries(source_pool.values(), source_root)
        self.entry_hasher.hash_entries(destination_pool.values(), destination_root)

        source_index = build_hash_index(source_pool)
        destination_index = build_hash_index(destination_pool)
        shared = sorted(source_index.keys() & destination_index.keys())

        results: list[MatchResult] = []
        for done, content_hash in enumerate(shared, 1):
            source_entry = source_index[content_hash]
            destination_entry = destination_index[content_hash]
            del source_pool[source_entry.relative_path]
            del destination_pool[destination_entry.relative_path]

            result = classify_relocation(source_entry, destination_entry)
            logging.debug(f"MatchEngine - {result.kind.value}: {result.relative_path_description}")
            results.append(result)
            self._report('content', done, len(shared), source_entry.relative_path)

        logging.info(f"MatchEngine - Content stage matched {len(results)} files")
        return results

    def match_similar_names(self, source_pool: Pool, destination_pool: Pool) -> list[MatchResult]:
        """
        Stage 3: same directory, names within the edit distance threshold.

        Greedy: the first candidate (in relative path order) under the
        threshold is taken, even if a closer one follows.
        """
        threshold = self.options.name_distance_threshold
        candidates: dict[str, list[FileEntry]] = defaultdict(list)
        for rel in sorted(destination_pool):
            entry = destination_pool[rel]
            candidates[entry.parent].append(entry)

        results: list[MatchResult] = []
        source_paths = sorted(source_pool)
        for done, rel in enumerate(source_paths, 1):
            source_entry = source_pool[rel]
            for candidate in candidates.get(source_entry.parent, ()):
                if candidate.relative_path not in destination_pool:
                    continue
                if within_distance(source_entry.name, candidate.name, threshold):
                    del source_pool[rel]
                    del destination_pool[candidate.relative_path]
                    result = LikelyRenamedOrUpdated.from_entries(source_entry, candidate)
                    logging.debug(f"MatchEngine - {result.kind.value}: {result.relative_path_description}")
                    results.append(result)
                    break
            self._report('similar_name', done, len(source_paths), rel)

        logging.info(f"MatchEngine - Similar-name stage matched {len(results)} files")
        return results

    def collect_residue(self, source_pool: Pool, destination_pool: Pool) -> list[MatchResult]:
        """Stage 4: whatever is left is Removed or Added."""
        results: list[MatchResult] = []
        for rel in sorted(source_pool):
            results.append(Removed(source=source_pool[rel].full_path, relative_path=rel))
        for rel in sorted(destination_pool):
            results.append(Added(destination=destination_pool[rel].full_path, relative_path=rel))

        logging.info(
            f"MatchEngine - Residue: {len(source_pool)} removed, {len(destination_pool)} added"
        )
        source_pool.clear()
        destination_pool.clear()
        self._report('residue', len(results), len(results), "")
        return results

    def _report(self, phase: str, processed: int, total: int, current_path: str) -> None:
        if self._progress_callback:
            self._progress_callback(ReconcileProgress(phase, processed, total, current_path))


def build_hash_index(pool: Pool) -> dict[str, FileEntry]:
    """Hash -> single entry; the last entry in relative path order wins."""
    index: dict[str, FileEntry] = {}
    for rel in sorted(pool):
        entry = pool[rel]
        if entry.content_hash is not None:
            index[entry.content_hash] = entry
    return index


def classify_relocation(source: FileEntry, destination: FileEntry) -> PairedResult:
    """Classify a content match by comparing name and parent directory."""
    if source.name == destination.name:
        return Moved.from_entries(source, destination)
    if source.parent == destination.parent:
        return Renamed.from_entries(source, destination)
    return MovedAndRenamed.from_entries(source, destination)


def assign_indices(results: list[MatchResult]) -> None:
    """Number results 1..n in sequence order."""
    for index, result in enumerate(results, 1):
        result.index = index
