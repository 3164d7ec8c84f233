"""
Qt background workers.
"""

from treereconcile.workers.base_worker import BaseWorker, ProgressInfo, WorkerSignals, WorkerState
from treereconcile.workers.reconcile_worker import ReconcileWorker

__all__ = [
    'BaseWorker',
    'ProgressInfo',
    'WorkerSignals',
    'WorkerState',
    'ReconcileWorker',
]
