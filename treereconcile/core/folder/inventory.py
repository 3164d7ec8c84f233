"""
In-memory inventory of one tree.
"""

from __future__ import annotations

import logging
import os
from collections import defaultdict
from pathlib import Path
from typing import Iterator, Optional

from treereconcile.core.models import FileEntry, RawEntry
from treereconcile.core.folder.scanner import ScanResult


class Inventory:
    """
    Ordered collection of FileEntry for one root.

    Entries are kept sorted by relative path. Lookups by relative path and by
    content hash are built on demand; the hash lookup is rebuilt whenever new
    hashes have been memoized since it was last built.
    """

    def __init__(self, root: Path | str, entries: list[FileEntry]):
        self.root = Path(root)
        self.entries = sorted(entries, key=lambda e: e.relative_path)
        self._by_relative_path: Optional[dict[str, FileEntry]] = None
        self._by_content_hash: Optional[dict[str, list[FileEntry]]] = None
        self._hashed_when_built = -1

        seen: set[str] = set()
        for entry in self.entries:
            if entry.relative_path in seen:
                raise ValueError(f"Duplicate relative path in inventory: {entry.relative_path}")
            seen.add(entry.relative_path)

    @classmethod
    def from_raw(cls, root: Path | str, raw_entries: list[RawEntry]) -> 'Inventory':
        """Build an inventory from traversal output."""
        root = Path(root)
        entries = []
        for raw in raw_entries:
            try:
                relative = Path(raw.full_path).relative_to(root).as_posix()
            except ValueError:
                logging.warning(f"Inventory - {raw.full_path} is outside {root}, ignored")
                continue
            entries.append(FileEntry(
                full_path=Path(raw.full_path),
                relative_path=normalize_relative_path(relative),
                size=raw.size,
                modified_time=raw.modified_time,
            ))
        return cls(root, entries)

    @classmethod
    def from_scan(cls, scan: ScanResult) -> 'Inventory':
        return cls.from_raw(scan.root_path, scan.files)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[FileEntry]:
        return iter(self.entries)

    def by_relative_path(self) -> dict[str, FileEntry]:
        """Relative path -> entry (unique)."""
        if self._by_relative_path is None:
            self._by_relative_path = {e.relative_path: e for e in self.entries}
        return self._by_relative_path

    def by_content_hash(self) -> dict[str, list[FileEntry]]:
        """Content hash -> entries in inventory order. Unhashed entries are left out."""
        hashed = sum(1 for e in self.entries if e.is_hashed)
        if self._by_content_hash is None or hashed != self._hashed_when_built:
            index: dict[str, list[FileEntry]] = defaultdict(list)
            for entry in self.entries:
                if entry.is_hashed:
                    index[entry.content_hash].append(entry)
            self._by_content_hash = dict(index)
            self._hashed_when_built = hashed
        return self._by_content_hash

    def get(self, relative_path: str) -> Optional[FileEntry]:
        return self.by_relative_path().get(relative_path)


def normalize_relative_path(path: str) -> str:
    """Use '/' separators and drop leading './' or '/'."""
    path = path.replace(os.sep, '/')
    while path.startswith('./'):
        path = path[2:]
    return path.lstrip('/')
