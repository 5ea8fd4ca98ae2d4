"""Sequential queue of setup steps.

Steps are either synchronous callables or asynchronous ones that hand back a
:class:`Completion`. The queue runs them in order, waiting on each completion
before moving on, and can start part-way through the list.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Callable, ClassVar, Iterable, Union

from PySide6.QtCore import QObject, Signal

logger = logging.getLogger(__name__)


class QueueState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETE = "complete"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Completion(QObject):
    """One-shot completion signal returned by asynchronous tasks."""

    done = Signal()

    def __init__(self) -> None:
        super().__init__()
        self._done = False

    def resolve(self) -> None:
        if self._done:
            return
        self._done = True
        self.done.emit()

    def is_done(self) -> bool:
        return self._done


@dataclass
class SyncTask:
    """Runs to completion inside :meth:`run`."""

    label: str
    action: Callable[[], None]

    is_async: ClassVar[bool] = False

    def run(self) -> None:
        self.action()


@dataclass
class AsyncTask:
    """Starts work and returns a :class:`Completion` resolved when it ends."""

    label: str
    action: Callable[[], Completion]

    is_async: ClassVar[bool] = True

    def run(self) -> Completion:
        return self.action()


Task = Union[SyncTask, AsyncTask]


class TaskQueue(QObject):
    """Ordered setup steps with a monotonically advancing cursor."""

    task_started = Signal(int, str)
    finished = Signal()
    failed = Signal(int, str)

    def __init__(self, tasks: Iterable[Task] = (), parent: QObject | None = None) -> None:
        super().__init__(parent)
        self.tasks: list[Task] = list(tasks)
        self.cursor = 0
        self.state = QueueState.IDLE
        self._pending: Completion | None = None
        self._busy = False

    def add_task(self, task: Task) -> None:
        if self.state is not QueueState.IDLE:
            raise RuntimeError("Cannot add tasks to a started queue")
        self.tasks.append(task)

    @property
    def last_index(self) -> int:
        """Index of the final task; starting there runs only that task."""
        return max(len(self.tasks) - 1, 0)

    def start(self, at_index: int = 0) -> None:
        if self.state is not QueueState.IDLE:
            raise RuntimeError("Task queue already started")
        if not 0 <= at_index <= len(self.tasks):
            raise IndexError(f"Start index {at_index} outside 0..{len(self.tasks)}")
        logger.debug("Starting task queue at %d of %d", at_index, len(self.tasks))
        self.cursor = at_index
        self.state = QueueState.RUNNING
        self._run()

    def advance(self) -> None:
        """Move past the current task and run the next one.

        Does nothing unless the queue is running, or while the current
        asynchronous task has not completed yet.
        """
        if self.state is not QueueState.RUNNING:
            return
        if self._pending is not None and not self._pending.is_done():
            logger.debug("advance() ignored while task %d is pending", self.cursor)
            return
        if self._busy:
            logger.warning("advance() called from inside a running task; ignored")
            return
        self._pending = None
        self.cursor += 1
        self._run()

    def cancel(self) -> None:
        if self.state is not QueueState.RUNNING:
            return
        self._pending = None
        self.state = QueueState.CANCELLED

    def is_finished(self) -> bool:
        return self.state in (
            QueueState.COMPLETE,
            QueueState.FAILED,
            QueueState.CANCELLED,
        )

    def _run(self) -> None:
        while self.cursor < len(self.tasks):
            index = self.cursor
            task = self.tasks[index]
            logger.info("Running task %d: %s", index, task.label)
            self.task_started.emit(index, task.label)
            self._busy = True
            try:
                result = task.run()
            except Exception as e:
                logger.exception("Task %d (%s) failed", index, task.label)
                self.state = QueueState.FAILED
                self.failed.emit(index, str(e))
                return
            finally:
                self._busy = False
            if self.state is not QueueState.RUNNING:
                return
            if task.is_async and not result.is_done():
                self._pending = result
                result.done.connect(partial(self._on_completion, result))
                return
            self.cursor += 1
        self.state = QueueState.COMPLETE
        logger.info("Task queue complete")
        self.finished.emit()

    def _on_completion(self, completion: Completion) -> None:
        if completion is not self._pending:
            logger.debug("Ignoring completion of a task that is no longer current")
            return
        self.advance()
