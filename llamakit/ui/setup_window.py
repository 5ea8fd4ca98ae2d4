from __future__ import annotations

import logging
from pathlib import Path

from PySide6.QtCore import Qt, QTimer
from PySide6.QtWidgets import (
    QLabel,
    QMainWindow,
    QMessageBox,
    QProgressBar,
    QPushButton,
    QStatusBar,
)

from llamakit.core.job_runner import JobRunner
from llamakit.core.progress import ProgressReporter
from llamakit.core.settings import settings
from llamakit.core.setup_config import SetupConfig
from llamakit.core.task_queue import TaskQueue
from llamakit.core.workflow import SetupWorkflow, WorkflowContext
from llamakit.modules.ollama import Ollama
from llamakit.ui.prompts import DialogPrompter
from llamakit.ui.widgets.log_panel import LogPanel
from llamakit.ui.widgets.progress_popup import ProgressPopup

logger = logging.getLogger(__name__)


class SetupWindow(QMainWindow):
    def __init__(
        self,
        config_path: Path,
        host: str | None = None,
        ollama: Ollama | None = None,
    ):
        super().__init__()
        self.setWindowTitle("LlamaKit Setup")
        self.resize(720, 480)

        # Runner
        self.runner = JobRunner()
        self.runner.started.connect(self._job_started)
        self.runner.finished.connect(lambda _code: self._job_finished())
        self.runner.stopped.connect(self._job_finished)

        self.step_label = QLabel("Preparing setup…")
        self.step_label.setAlignment(Qt.AlignCenter)
        self.setCentralWidget(self.step_label)

        # Status bar with progress and cancel button
        self.status = QStatusBar()
        self.setStatusBar(self.status)
        self.progress = QProgressBar()
        self.progress.setRange(0, 0)
        self.progress.setVisible(False)
        self.cancel_btn = QPushButton("Cancel Setup")
        self.cancel_btn.clicked.connect(self._cancel)
        self.status.addPermanentWidget(self.progress)
        self.status.addPermanentWidget(self.cancel_btn)

        # Dock: setup log
        self.log_panel = LogPanel(self)
        self.addDockWidget(Qt.BottomDockWidgetArea, self.log_panel)

        self.reporter = ProgressReporter(lambda text: ProgressPopup(text, self), self)
        self.queue = TaskQueue(parent=self)
        self.queue.task_started.connect(self._task_started)
        ctx = WorkflowContext(
            runner=self.runner,
            reporter=self.reporter,
            prompter=DialogPrompter(self),
            ollama=ollama or Ollama(),
            queue=self.queue,
            config_path=config_path,
            default_host=host or settings.host(),
            default_model=settings.completion_model(),
            default_chat_model=settings.chat_model(),
            dismiss_delay_ms=settings.dismiss_delay_ms(),
            log=self.log_panel.log_message,
        )
        self.workflow = SetupWorkflow(ctx, self)
        self.workflow.completed.connect(self._completed)
        self.workflow.aborted.connect(self._aborted)
        self.workflow.failed.connect(self._failed)

        g = settings.load_geometry()
        if g:
            self.restoreGeometry(g)

    def start(self) -> None:
        self.workflow.run()

    # ----- Workflow events -----
    def _task_started(self, index: int, label: str) -> None:
        total = len(self.queue.tasks)
        self.step_label.setText(f"Step {index + 1} of {total}: {label}")

    def _completed(self, config: SetupConfig) -> None:
        settings.set_host(config.host)
        self.cancel_btn.setEnabled(False)
        self.step_label.setText("Setup complete")
        QMessageBox.information(
            self,
            "Setup Complete",
            f"Host: {config.host}\n"
            f"Completion model: {config.model}\n"
            f"Chat model: {config.chat_model}",
        )
        self.close()

    def _aborted(self, reason: str) -> None:
        self.cancel_btn.setEnabled(False)
        self.step_label.setText(reason)
        self.status.showMessage(reason)
        QTimer.singleShot(self.workflow.ctx.dismiss_delay_ms, self.close)

    def _failed(self, message: str) -> None:
        self.cancel_btn.setEnabled(False)
        self.step_label.setText("Setup failed")
        QMessageBox.critical(self, "Setup Error", message)
        self.close()

    # ----- Job events -----
    def _job_started(self) -> None:
        self.progress.setVisible(True)

    def _job_finished(self) -> None:
        self.progress.setVisible(False)

    def _cancel(self) -> None:
        self.workflow.cancel()

    def closeEvent(self, ev):
        settings.save_geometry(self.saveGeometry())
        self.runner.cancel()
        self.reporter.close()
        super().closeEvent(ev)
