"""
Qt worker base for running a job away from the owner's thread.

A worker goes PENDING -> RUNNING and ends in exactly one of COMPLETED,
FAILED or CANCELLED, emitting the matching signal.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Optional

from PyQt6.QtCore import QMutex, QMutexLocker, QObject, pyqtSignal, pyqtSlot


class WorkerState(Enum):
    PENDING = auto()
    RUNNING = auto()
    CANCELLING = auto()
    CANCELLED = auto()
    COMPLETED = auto()
    FAILED = auto()


@dataclass
class ProgressInfo:
    """One progress step: a phase name and the path being worked on."""
    current: int
    total: int
    message: str = ""
    detail: str = ""

    @property
    def is_indeterminate(self) -> bool:
        return self.total == 0

    @property
    def percent(self) -> float:
        return 0.0 if self.is_indeterminate else self.current * 100 / self.total


class WorkerSignals(QObject):
    """Signals a worker emits towards its owner."""
    started = pyqtSignal()
    status = pyqtSignal(str)
    progress_detail = pyqtSignal(object)   # ProgressInfo
    state_changed = pyqtSignal(object)     # WorkerState
    finished = pyqtSignal(object)          # job result
    error = pyqtSignal(str, str)           # exception type name, message
    cancelled = pyqtSignal()


class WorkerMeta(type(QObject), type(ABC)):
    pass


class BaseWorker(QObject, ABC, metaclass=WorkerMeta):
    """
    Base class for a cancellable job.

    Subclasses implement `do_work`. Call `run()` directly, or move the
    worker to a QThread and connect the thread's `started` to `run`.
    """

    def __init__(self, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.signals = WorkerSignals()
        self._mutex = QMutex()
        self._state = WorkerState.PENDING
        self._cancel_requested = False
        self._result: Any = None
        self._error: Optional[tuple[str, str]] = None

    @property
    def state(self) -> WorkerState:
        with QMutexLocker(self._mutex):
            return self._state

    def _set_state(self, state: WorkerState) -> None:
        with QMutexLocker(self._mutex):
            self._state = state
        self.signals.state_changed.emit(state)

    @property
    def is_cancelled(self) -> bool:
        with QMutexLocker(self._mutex):
            return self._cancel_requested

    @property
    def result(self) -> Any:
        return self._result

    @property
    def error(self) -> Optional[tuple[str, str]]:
        """(type name, message) of the failure, if the job failed."""
        return self._error

    def cancel(self) -> None:
        with QMutexLocker(self._mutex):
            self._cancel_requested = True
            running = self._state == WorkerState.RUNNING
        if running:
            self._set_state(WorkerState.CANCELLING)

    @pyqtSlot()
    def run(self) -> None:
        self._set_state(WorkerState.RUNNING)
        self.signals.started.emit()

        try:
            result = self.do_work()
        except Exception as e:
            self._error = (type(e).__name__, str(e))
            self._set_state(WorkerState.FAILED)
            self.signals.error.emit(*self._error)
            return

        if self.is_cancelled:
            self._set_state(WorkerState.CANCELLED)
            self.signals.cancelled.emit()
            return

        self._result = result
        self._set_state(WorkerState.COMPLETED)
        self.signals.finished.emit(result)

    @abstractmethod
    def do_work(self) -> Any:
        """Do the job and return its result; return early once cancelled."""

    def report_progress(self, info: ProgressInfo) -> None:
        self.signals.progress_detail.emit(info)

    def report_status(self, message: str) -> None:
        self.signals.status.emit(message)
