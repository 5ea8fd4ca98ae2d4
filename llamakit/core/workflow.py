"""First-run setup: discover models, let the user pick, pull, persist.

The workflow owns no global state. Everything it touches lives on a
:class:`WorkflowContext` built by the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Protocol

from PySide6.QtCore import QObject, Signal

from llamakit.core.job_runner import JobRunner
from llamakit.core.progress import ProgressReporter
from llamakit.core.selection import ValidIndex, format_model_list, parse_model_index
from llamakit.core.settings import (
    DEFAULT_CHAT_MODEL,
    DEFAULT_COMPLETION_MODEL,
    DEFAULT_DISMISS_DELAY_MS,
    DEFAULT_HOST,
)
from llamakit.core.setup_config import SetupConfig, default_config_path
from llamakit.core.task_queue import AsyncTask, Completion, SyncTask, TaskQueue
from llamakit.modules.ollama import Ollama, is_discovery_error, parse_pull_progress

logger = logging.getLogger(__name__)

LogCallback = Callable[[str, str], None]

PULL_COMPLETION_MODEL = 0
PULL_CHAT_MODEL = 1
FINALIZE = 2


class Prompter(Protocol):
    def ask_text(self, question: str, default: str = "") -> Optional[str]:
        """Return the answer, or ``None`` when the user cancelled."""
        ...

    def ask_yes_no(self, question: str) -> bool: ...

    def warn(self, message: str) -> None: ...


def _log_to_logger(message: str, level: str = "info") -> None:
    if level == "error":
        logger.error(message)
    elif level == "warning":
        logger.warning(message)
    else:
        logger.info(message)


@dataclass
class WorkflowContext:
    runner: JobRunner
    reporter: ProgressReporter
    prompter: Prompter
    ollama: Ollama = field(default_factory=Ollama)
    discover: Optional[Callable[[str], list[str]]] = None
    queue: TaskQueue = field(default_factory=TaskQueue)
    config_path: Path = field(default_factory=default_config_path)
    default_host: str = DEFAULT_HOST
    default_model: str = DEFAULT_COMPLETION_MODEL
    default_chat_model: str = DEFAULT_CHAT_MODEL
    dismiss_delay_ms: int = DEFAULT_DISMISS_DELAY_MS
    log: LogCallback = _log_to_logger

    # filled in while the workflow runs
    host: str = ""
    model: str = ""
    chat_model: str = ""


class SetupWorkflow(QObject):
    """Drives model discovery, selection and the pull/finalize task queue."""

    aborted = Signal(str)
    completed = Signal(object)
    failed = Signal(str)

    def __init__(self, ctx: WorkflowContext, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self.ctx = ctx
        self.config: SetupConfig | None = None
        self.queue = ctx.queue
        self.queue.add_task(
            AsyncTask("pull completion model", lambda: self._pull(self.ctx.model))
        )
        self.queue.add_task(
            AsyncTask("pull chat model", lambda: self._pull(self.ctx.chat_model))
        )
        self.queue.add_task(SyncTask("finalize", self._finalize))
        self.queue.finished.connect(self._on_queue_finished)
        self.queue.failed.connect(self._on_queue_failed)

    # ----- Selection -----
    def run(self) -> bool:
        """Ask for a host and models, then start the task queue.

        Returns ``True`` once the queue has been started and ``False`` when
        setup was aborted before that point.
        """
        ctx = self.ctx
        answer = ctx.prompter.ask_text("Ollama host:", ctx.default_host)
        if answer is None:
            return self._abort("Setup cancelled")
        ctx.host = answer.strip() or ctx.default_host

        discover = ctx.discover or ctx.ollama.discover
        ctx.log(f"[setup] Listing models at {ctx.host}", "info")
        models = discover(ctx.host)
        if is_discovery_error(models):
            return self._abort(f"Could not list models at {ctx.host}")

        if not models:
            question = (
                f"No models found at {ctx.host}.\n"
                f"Download {ctx.default_model} for code completion and "
                f"{ctx.default_chat_model} for chat?"
            )
            if not ctx.prompter.ask_yes_no(question):
                return self._abort("No models to configure")
            ctx.model = ctx.default_model
            ctx.chat_model = ctx.default_chat_model
            start = PULL_COMPLETION_MODEL
        else:
            listing = format_model_list(models)
            model = self._choose_model(models, listing, "code completion")
            if model is None:
                return self._abort("Setup cancelled")
            chat_model = self._choose_model(models, listing, "chat")
            if chat_model is None:
                return self._abort("Setup cancelled")
            ctx.model = model
            ctx.chat_model = chat_model
            start = self.queue.last_index

        ctx.log(
            f"[setup] Completion model: {ctx.model}, chat model: {ctx.chat_model}",
            "info",
        )
        self.queue.start(start)
        return True

    def cancel(self) -> None:
        """Stop the running job and the queue; nothing is written."""
        if self.queue.is_finished():
            return
        self.ctx.runner.cancel()
        self.ctx.reporter.close()
        self.queue.cancel()
        self._abort("Setup cancelled")

    def _choose_model(
        self, models: list[str], listing: str, role: str
    ) -> Optional[str]:
        question = f"{listing}\n\nSelect the {role} model (1-{len(models)}):"
        while True:
            answer = self.ctx.prompter.ask_text(question)
            if answer is None:
                return None
            choice = parse_model_index(answer, len(models))
            if isinstance(choice, ValidIndex):
                return models[choice.index]
            self.ctx.prompter.warn(choice.message())

    def _abort(self, reason: str) -> bool:
        logger.info("Setup aborted: %s", reason)
        self.ctx.log(f"[setup] {reason}", "warning")
        self.aborted.emit(reason)
        return False

    # ----- Tasks -----
    def _pull(self, model: str) -> Completion:
        ctx = self.ctx
        completion = Completion()
        reporter = ctx.reporter
        reporter.show(f"Downloading {model}…")
        ctx.log(f"[pull] {model}", "info")

        def on_line(line: str, level: str) -> None:
            percent = parse_pull_progress(line)
            reporter.update(f"{model}: {line}", percent)
            if percent is None:
                ctx.log(f"[pull] {line}", level)

        def on_exit(code: int) -> None:
            if code == 0:
                reporter.update(f"Downloaded {model}", 100)
                ctx.log(f"[pull] Downloaded {model}", "success")
            else:
                reporter.update(f"Failed to download {model} (exit code {code})")
                ctx.log(f"[pull] Failed to download {model} (exit code {code})", "error")
            reporter.dismiss_after(ctx.dismiss_delay_ms, completion.resolve)

        try:
            ctx.runner.start(
                ctx.ollama.pull_argv(model),
                on_stdout=lambda s: on_line(s, "info"),
                on_stderr=lambda s: on_line(s, "warning"),
                on_exit=on_exit,
                env=ctx.ollama.env_for(ctx.host),
            )
        except OSError as e:
            reporter.close()
            ctx.log(f"[pull] Could not start {ctx.ollama.exe}: {e}", "error")
            raise
        return completion

    def _finalize(self) -> None:
        ctx = self.ctx
        config = SetupConfig(host=ctx.host, model=ctx.model, chat_model=ctx.chat_model)
        config.save(ctx.config_path)
        self.config = config
        ctx.log(f"[setup] Wrote {ctx.config_path}", "success")

    # ----- Queue events -----
    def _on_queue_finished(self) -> None:
        logger.info("Setup complete: %s", self.config)
        self.completed.emit(self.config)

    def _on_queue_failed(self, index: int, message: str) -> None:
        label = self.queue.tasks[index].label
        self.ctx.log(f"[setup] {label} failed: {message}", "error")
        self.failed.emit(f"{label} failed: {message}")
