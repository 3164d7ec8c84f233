"""
Core data models for tree reconciliation.

This module defines the data structures shared across the package:
- File entries discovered during traversal
- Match results (one variant per outcome kind)
- Hash error sentinels
- Skipped entries and diagnostics
- The final reconciliation result container
- Exceptions

All models are UI-agnostic and carry no I/O of their own, except
`FileEntry.ensure_hash`, which delegates to a hasher.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from pathlib import Path
from typing import Any, Callable, ClassVar, Iterator, Optional


# =============================================================================
# Enumerations
# =============================================================================

class MatchKind(Enum):
    """Outcome of reconciling one file."""
    UNCHANGED = "Unchanged"
    UPDATED = "Updated"
    MOVED = "Moved"
    RENAMED = "Renamed"
    MOVED_AND_RENAMED = "MovedAndRenamed"
    LIKELY_RENAMED_OR_UPDATED = "LikelyRenamedOrUpdated"
    ADDED = "Added"
    REMOVED = "Removed"
    REMOVED_DUPLICATE = "RemovedDuplicate"


class HashError(Enum):
    """Reasons a content hash could not be computed."""
    DEVICE_NOT_FUNCTIONING = auto()
    COMPUTE_FAILED = auto()

    @property
    def sentinel(self) -> str:
        """
        Sentinel prefix stored in place of a digest.

        Real digests are lowercase hex, so the leading '!' can never collide.
        """
        return f"!hash-error:{self.name.lower().replace('_', '-')}"

    def make_sentinel(self, message: str = "") -> str:
        if message:
            return f"{self.sentinel}:{message}"
        return self.sentinel


def is_hash_error(value: Optional[str]) -> bool:
    """True if a stored hash value is an error sentinel rather than a digest."""
    return value is not None and value.startswith("!hash-error:")


# =============================================================================
# File Entries
# =============================================================================

@dataclass
class FileEntry:
    """
    One physical file discovered during traversal.

    `content_hash` stays None until a pipeline stage needs it and is written
    at most once per run (see `ensure_hash`).
    """
    full_path: Path
    relative_path: str  # '/'-separated, relative to the tree root
    size: int
    modified_time: datetime  # UTC
    content_hash: Optional[str] = None
    _hash_lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    @property
    def name(self) -> str:
        return self.relative_path.rsplit('/', 1)[-1]

    @property
    def parent(self) -> str:
        """Parent directory of the relative path ('' for the tree root)."""
        if '/' not in self.relative_path:
            return ""
        return self.relative_path.rsplit('/', 1)[0]

    @property
    def is_hashed(self) -> bool:
        return self.content_hash is not None

    def same_metadata(self, other: 'FileEntry') -> bool:
        """Size and modification time are both equal."""
        return self.size == other.size and self.modified_time == other.modified_time

    def ensure_hash(self, compute: Callable[['FileEntry'], str]) -> str:
        """
        Return the memoized hash, computing it first if needed.

        Concurrent callers for the same entry block on the entry lock, so the
        file is read at most once.
        """
        if self.content_hash is not None:
            return self.content_hash
        with self._hash_lock:
            if self.content_hash is None:
                self.content_hash = compute(self)
            return self.content_hash

    def __repr__(self) -> str:
        return f"<FileEntry {self.relative_path} size={self.size}>"


@dataclass(frozen=True)
class RawEntry:
    """One regular file as reported by traversal."""
    full_path: Path
    size: int
    modified_time: datetime  # UTC


@dataclass(frozen=True)
class SkippedEntry:
    """A filesystem entry that could not be confirmed during traversal."""
    path: str
    reason: str


# =============================================================================
# Match Results
# =============================================================================

@dataclass
class MatchResult(ABC):
    """
    Base of all reconciliation outcomes.

    Each subclass is one variant and only carries the fields meaningful for
    it. `index` is assigned once the full sequence is final; `duplicate_of`
    is set by duplicate detection.
    """
    kind: ClassVar[MatchKind]

    index: int = field(default=0, kw_only=True)
    duplicate_of: Optional[int] = field(default=None, kw_only=True)

    @property
    def source_path(self) -> Optional[Path]:
        return None

    @property
    def destination_path(self) -> Optional[Path]:
        return None

    @property
    @abstractmethod
    def relative_path_description(self) -> str:
        """Relative path, or `old -> new` for a pair with different paths."""

    def to_record(self) -> dict[str, Any]:
        """Flat record for tabular output."""
        return {
            'index': self.index,
            'kind': self.kind.value,
            'source_path': str(self.source_path) if self.source_path else None,
            'destination_path': str(self.destination_path) if self.destination_path else None,
            'relative_path': self.relative_path_description,
            'duplicate_of': self.duplicate_of,
        }


@dataclass
class PairedResult(MatchResult):
    """A source file matched to a destination file."""
    source: Path
    destination: Path
    source_relative: str
    destination_relative: str

    @property
    def source_path(self) -> Path:
        return self.source

    @property
    def destination_path(self) -> Path:
        return self.destination

    @property
    def relative_path_description(self) -> str:
        if self.source_relative == self.destination_relative:
            return self.source_relative
        return f"{self.source_relative} -> {self.destination_relative}"

    @classmethod
    def from_entries(cls, source: FileEntry, destination: FileEntry) -> 'PairedResult':
        return cls(
            source=source.full_path,
            destination=destination.full_path,
            source_relative=source.relative_path,
            destination_relative=destination.relative_path,
        )


@dataclass
class Unchanged(PairedResult):
    kind = MatchKind.UNCHANGED


@dataclass
class Updated(PairedResult):
    kind = MatchKind.UPDATED


@dataclass
class Moved(PairedResult):
    kind = MatchKind.MOVED


@dataclass
class Renamed(PairedResult):
    kind = MatchKind.RENAMED


@dataclass
class MovedAndRenamed(PairedResult):
    kind = MatchKind.MOVED_AND_RENAMED


@dataclass
class LikelyRenamedOrUpdated(PairedResult):
    kind = MatchKind.LIKELY_RENAMED_OR_UPDATED


@dataclass
class RemovedDuplicate(PairedResult):
    """A source-only file whose content still exists in the destination."""
    kind = MatchKind.REMOVED_DUPLICATE


@dataclass
class Removed(MatchResult):
    """A file present only in the source tree."""
    kind = MatchKind.REMOVED

    source: Path
    relative_path: str

    @property
    def source_path(self) -> Path:
        return self.source

    @property
    def relative_path_description(self) -> str:
        return self.relative_path

    def promote(self, destination: FileEntry, duplicate_of: int) -> RemovedDuplicate:
        """Build the RemovedDuplicate replacing this result."""
        return RemovedDuplicate(
            source=self.source,
            destination=destination.full_path,
            source_relative=self.relative_path,
            destination_relative=destination.relative_path,
            index=self.index,
            duplicate_of=duplicate_of,
        )


@dataclass
class Added(MatchResult):
    """A file present only in the destination tree."""
    kind = MatchKind.ADDED

    destination: Path
    relative_path: str

    @property
    def destination_path(self) -> Path:
        return self.destination

    @property
    def relative_path_description(self) -> str:
        return self.relative_path


# =============================================================================
# Diagnostics and Progress
# =============================================================================

class DiagnosticCategory(Enum):
    """Category of a non-fatal anomaly."""
    SKIPPED = "skipped"
    HASH_ERROR = "hash_error"


@dataclass(frozen=True)
class Diagnostic:
    """A non-fatal anomaly observed during a run."""
    path: str
    category: DiagnosticCategory
    message: str

    def __str__(self) -> str:
        return f"{self.category.value}: {self.path} - {self.message}"


@dataclass
class ReconcileProgress:
    """Coarse progress information for a reconciliation run."""
    phase: str
    processed: int
    total: int
    current_path: str = ""

    @property
    def percent(self) -> float:
        if self.total == 0:
            return 0.0
        return (self.processed / self.total) * 100


ProgressCallback = Callable[[ReconcileProgress], None]


# =============================================================================
# Result Container
# =============================================================================

@dataclass
class ReconcileResult:
    """Complete result of reconciling a source tree against a destination."""
    source_root: str
    destination_root: str
    results: list[MatchResult] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    elapsed: float = 0.0

    def __len__(self) -> int:
        return len(self.results)

    def __iter__(self) -> Iterator[MatchResult]:
        return iter(self.results)

    def counts(self) -> dict[MatchKind, int]:
        """Number of results per kind (every kind present, zero included)."""
        counts = {kind: 0 for kind in MatchKind}
        for result in self.results:
            counts[result.kind] += 1
        return counts

    def iter_kind(self, kind: MatchKind) -> Iterator[MatchResult]:
        """Iterate over results of the given kind."""
        for result in self.results:
            if result.kind == kind:
                yield result

    @property
    def duplicate_count(self) -> int:
        return sum(1 for r in self.results if r.duplicate_of is not None)

    @property
    def summary(self) -> str:
        parts = [f"{kind.value}: {count}" for kind, count in self.counts().items() if count]
        if not parts:
            return "No files found"
        return ", ".join(parts)


# =============================================================================
# Exceptions
# =============================================================================

class ReconcileError(Exception):
    """Base class for reconciliation failures."""


class PreconditionError(ReconcileError):
    """A required root path is missing or is not a directory."""

    def __init__(self, role: str, path: Path | str, reason: str):
        self.role = role
        self.path = str(path)
        self.reason = reason
        super().__init__(f"{role.capitalize()} path {reason}: {self.path}")


class ReconcileCancelled(ReconcileError):
    """Raised when a run is cancelled between phases."""
