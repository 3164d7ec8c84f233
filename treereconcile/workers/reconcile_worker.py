"""
Worker for running a reconciliation off the calling thread.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from PyQt6.QtCore import QObject

from treereconcile.core.folder.reconciler import FolderReconciler, ReconcileOptions
from treereconcile.core.models import ReconcileCancelled, ReconcileProgress, ReconcileResult
from treereconcile.workers.base_worker import BaseWorker, ProgressInfo


class ReconcileWorker(BaseWorker):
    """
    Worker for reconciling two folders.

    Handles large trees without blocking the owner's event loop. Emits
    `progress_detail` with ProgressInfo, then exactly one of `finished`,
    `error` or `cancelled`.
    """

    def __init__(
        self,
        source_path: str | Path,
        destination_path: str | Path,
        options: Optional[ReconcileOptions] = None,
        parent: Optional[QObject] = None
    ):
        super().__init__(parent)
        self.source_path = Path(source_path)
        self.destination_path = Path(destination_path)
        self.options = options or ReconcileOptions()
        self._reconciler: Optional[FolderReconciler] = None

    def do_work(self) -> Optional[ReconcileResult]:
        self.report_status("Starting reconciliation...")

        self._reconciler = FolderReconciler(self.options)
        if self.is_cancelled:
            return None

        def progress_callback(progress: ReconcileProgress) -> None:
            if self.is_cancelled:
                self._reconciler.cancel()
                return

            self.report_progress(ProgressInfo(
                current=progress.processed,
                total=progress.total,
                message=progress.phase,
                detail=progress.current_path
            ))

        try:
            result = self._reconciler.reconcile(
                self.source_path,
                self.destination_path,
                progress_callback
            )
        except ReconcileCancelled:
            logging.info("ReconcileWorker - Cancelled")
            return None

        self.report_status(result.summary)
        return result

    def cancel(self) -> None:
        """Cancel the reconciliation."""
        super().cancel()
        if self._reconciler:
            self._reconciler.cancel()
