"""
Folder reconciliation driver.

Validates both roots, scans them in parallel, builds the inventories and
runs the match engine followed by duplicate detection:

    Inventory(source), Inventory(destination)
        -> MatchEngine (4 stages, indices assigned)
        -> DuplicateDetector
        -> ReconcileResult
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from treereconcile.core.models import (
    Diagnostic,
    DiagnosticCategory,
    PreconditionError,
    ProgressCallback,
    ReconcileCancelled,
    ReconcileProgress,
    ReconcileResult,
)
from treereconcile.core.folder.duplicates import DuplicateDetector
from treereconcile.core.folder.engine import EntryHasher, MatchEngine, MatchOptions
from treereconcile.core.folder.inventory import Inventory
from treereconcile.core.folder.scanner import FolderScanner, ScanOptions, ScanProgress
from treereconcile.services.hashing import ContentHasher, HashAlgorithm, HashPolicy


@dataclass
class ReconcileOptions:
    """Options for a reconciliation run."""
    scan: ScanOptions = field(default_factory=ScanOptions)
    match: MatchOptions = field(default_factory=MatchOptions)
    algorithm: HashAlgorithm = HashAlgorithm.MD5
    hash_policy: HashPolicy = field(default_factory=HashPolicy)


class FolderReconciler:
    """
    Reconciles a source tree against a destination tree.

    Read-only: files are stat'ed and hashed, never modified.
    """

    def __init__(
        self,
        options: Optional[ReconcileOptions] = None,
        hasher: Optional[ContentHasher] = None,
    ):
        self.options = options or ReconcileOptions()
        self.hasher = hasher or ContentHasher(self.options.algorithm, self.options.hash_policy)
        self._cancelled = False
        self._scanner: Optional[FolderScanner] = None
        self._progress_callback: Optional[ProgressCallback] = None

    def reconcile(
        self,
        source_path: Path | str,
        destination_path: Path | str,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> ReconcileResult:
        """
        Reconcile two directories.

        Args:
            source_path: Original tree
            destination_path: Migrated or backed-up tree
            progress_callback: Called with coarse progress updates

        Returns:
            ReconcileResult with indexed, duplicate-annotated results

        Raises:
            PreconditionError: A root is missing or is not a directory
            ReconcileCancelled: cancel() was called during the run
        """
        start_time = time.time()
        self._cancelled = False
        self._progress_callback = progress_callback

        source_root = validate_root('source', source_path)
        destination_root = validate_root('destination', destination_path)
        logging.info(f"FolderReconciler - Reconciling {source_root} -> {destination_root}")

        diagnostics: list[Diagnostic] = []
        source, destination = self._scan_both(source_root, destination_root, diagnostics)
        self._check_cancelled()

        entry_hasher = EntryHasher(
            self.hasher,
            workers=self.options.match.hash_workers,
            progress_callback=progress_callback,
            diagnostics=diagnostics,
        )
        engine = MatchEngine(entry_hasher, self.options.match, progress_callback)
        results = engine.run(source, destination, check_cancelled=self._check_cancelled)
        self._check_cancelled()

        DuplicateDetector(entry_hasher, progress_callback).annotate(results, source, destination)

        result = ReconcileResult(
            source_root=str(source_root),
            destination_root=str(destination_root),
            results=results,
            diagnostics=diagnostics,
            elapsed=time.time() - start_time,
        )
        logging.info(
            f"FolderReconciler - Done in {result.elapsed:.2f}s: {result.summary} "
            f"({entry_hasher.computed} files hashed, {len(diagnostics)} diagnostics)"
        )
        return result

    def cancel(self) -> None:
        """Request cancellation; honoured at the next phase boundary."""
        self._cancelled = True
        if self._scanner:
            self._scanner.cancel()

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def _check_cancelled(self) -> None:
        if self._cancelled:
            logging.info("FolderReconciler - Reconciliation cancelled")
            raise ReconcileCancelled("Reconciliation cancelled")

    def _scan_both(
        self,
        source_root: Path,
        destination_root: Path,
        diagnostics: list[Diagnostic],
    ) -> tuple[Inventory, Inventory]:
        self._scanner = FolderScanner(self.options.scan)

        with ThreadPoolExecutor(max_workers=2) as executor:
            source_future = executor.submit(
                self._scanner.scan, source_root, self._scan_progress('scanning_source')
            )
            destination_future = executor.submit(
                self._scanner.scan, destination_root, self._scan_progress('scanning_destination')
            )
            source_scan = source_future.result()
            destination_scan = destination_future.result()

        for role, scan in (("source", source_scan), ("destination", destination_scan)):
            logging.info(
                f"FolderReconciler - {role.capitalize()}: {scan.file_count} files, "
                f"{scan.total_size} bytes, {len(scan.skipped)} skipped"
            )
            for skipped in scan.skipped:
                diagnostics.append(Diagnostic(skipped.path, DiagnosticCategory.SKIPPED, skipped.reason))

        return Inventory.from_scan(source_scan), Inventory.from_scan(destination_scan)

    def _scan_progress(self, phase: str) -> Optional[Callable[[ScanProgress], None]]:
        if not self._progress_callback:
            return None
        callback = self._progress_callback

        def forward(progress: ScanProgress) -> None:
            callback(ReconcileProgress(phase, progress.files_found, 0, progress.current_path))

        return forward


def validate_root(role: str, path: Path | str) -> Path:
    """Resolve a root path, raising PreconditionError if it is unusable."""
    root = Path(path).expanduser().resolve()
    if not root.exists():
        logging.error(f"FolderReconciler - {role.capitalize()} path not found: {root}")
        raise PreconditionError(role, root, "does not exist")
    if not root.is_dir():
        logging.error(f"FolderReconciler - {role.capitalize()} path is not a directory: {root}")
        raise PreconditionError(role, root, "is not a directory")
    return root


def reconcile(
    source_path: Path | str,
    destination_path: Path | str,
    options: Optional[ReconcileOptions] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> ReconcileResult:
    """Convenience wrapper around FolderReconciler."""
    return FolderReconciler(options).reconcile(source_path, destination_path, progress_callback)
