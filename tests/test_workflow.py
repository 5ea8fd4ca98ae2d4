from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace
from typing import Optional

import pytest

pytest.importorskip("PySide6")

from llamakit.core.progress import ProgressReporter
from llamakit.core.setup_config import SetupConfig
from llamakit.core.task_queue import QueueState
from llamakit.core.workflow import SetupWorkflow, WorkflowContext
from llamakit.modules.ollama import ERROR_MARKER

MODELS = ["llama3:8b", "qwen2.5-coder:1.5b"]
HOST = "http://localhost:11434"


class FakeRunner:
    def __init__(self, error: Optional[OSError] = None) -> None:
        self.jobs: list[SimpleNamespace] = []
        self.cancelled = False
        self.error = error

    def start(self, argv, on_stdout=None, on_stderr=None, on_exit=None, env=None):
        if self.error:
            raise self.error
        job = SimpleNamespace(
            argv=argv, env=env, on_stdout=on_stdout, on_stderr=on_stderr, on_exit=on_exit
        )
        self.jobs.append(job)
        return job

    def cancel(self) -> None:
        self.cancelled = True


class FakePrompter:
    def __init__(self, answers: list[Optional[str]], yes: bool = True) -> None:
        self.answers = list(answers)
        self.yes = yes
        self.questions: list[str] = []
        self.yes_no: list[str] = []
        self.warnings: list[str] = []

    def ask_text(self, question: str, default: str = "") -> Optional[str]:
        self.questions.append(question)
        assert self.answers, f"unexpected prompt: {question}"
        return self.answers.pop(0)

    def ask_yes_no(self, question: str) -> bool:
        self.yes_no.append(question)
        return self.yes

    def warn(self, message: str) -> None:
        self.warnings.append(message)


class FakeView:
    def __init__(self, text: str) -> None:
        self.text = text
        self.closed = False

    def set_text(self, text: str) -> None:
        self.text = text

    def set_percent(self, percent) -> None:
        pass

    def close(self) -> bool:
        self.closed = True
        return True


def build(
    tmp_path: Path,
    answers: list[Optional[str]],
    models: list[str],
    *,
    yes: bool = True,
    runner: Optional[FakeRunner] = None,
    config_path: Optional[Path] = None,
) -> SimpleNamespace:
    runner = runner or FakeRunner()
    prompter = FakePrompter(answers, yes=yes)
    logs: list[tuple[str, str]] = []
    discovered: list[str] = []

    def discover(host: str) -> list[str]:
        discovered.append(host)
        return models

    ctx = WorkflowContext(
        runner=runner,
        reporter=ProgressReporter(FakeView),
        prompter=prompter,
        discover=discover,
        config_path=config_path or tmp_path / "ollama.toml",
        default_host=HOST,
        default_model="qwen2.5-coder:1.5b",
        default_chat_model="llama3.1:8b",
        dismiss_delay_ms=10,
        log=lambda m, level: logs.append((m, level)),
    )
    workflow = SetupWorkflow(ctx)
    events: dict[str, list] = {"completed": [], "aborted": [], "failed": []}
    workflow.completed.connect(lambda cfg: events["completed"].append(cfg))
    workflow.aborted.connect(lambda reason: events["aborted"].append(reason))
    workflow.failed.connect(lambda msg: events["failed"].append(msg))
    return SimpleNamespace(
        workflow=workflow,
        ctx=ctx,
        runner=runner,
        prompter=prompter,
        logs=logs,
        events=events,
        discovered=discovered,
    )


def test_existing_models_skip_pulls_and_write_config(app, tmp_path: Path) -> None:
    w = build(tmp_path, ["", "2", "1"], MODELS)
    assert w.workflow.run() is True
    assert w.discovered == [HOST]
    assert w.runner.jobs == []
    assert w.workflow.queue.state is QueueState.COMPLETE
    assert w.workflow.queue.cursor == 3
    cfg = SetupConfig.load(tmp_path / "ollama.toml")
    assert cfg == SetupConfig(HOST, "qwen2.5-coder:1.5b", "llama3:8b")
    assert w.events["completed"] == [cfg]
    assert "1. llama3:8b\n2. qwen2.5-coder:1.5b" in w.prompter.questions[1]


def test_invalid_indices_reprompt_until_valid(app, tmp_path: Path) -> None:
    w = build(tmp_path, ["http://box:11434", "x", "0", "3", "2", "abc", "", "1"], MODELS)
    assert w.workflow.run() is True
    assert len(w.prompter.warnings) == 5
    assert len(w.prompter.questions) == 8
    cfg = SetupConfig.load(tmp_path / "ollama.toml")
    assert cfg == SetupConfig("http://box:11434", "qwen2.5-coder:1.5b", "llama3:8b")


def test_discovery_error_aborts_without_prompts(app, tmp_path: Path) -> None:
    w = build(tmp_path, [""], [ERROR_MARKER])
    assert w.workflow.run() is False
    assert w.prompter.questions == ["Ollama host:"]
    assert w.prompter.yes_no == []
    assert len(w.events["aborted"]) == 1
    assert w.workflow.queue.state is QueueState.IDLE
    assert not (tmp_path / "ollama.toml").exists()


def test_no_models_declined_aborts(app, tmp_path: Path) -> None:
    w = build(tmp_path, [""], [], yes=False)
    assert w.workflow.run() is False
    assert len(w.prompter.yes_no) == 1
    assert w.runner.jobs == []
    assert not (tmp_path / "ollama.toml").exists()


def test_cancelled_host_prompt_aborts(app, tmp_path: Path) -> None:
    w = build(tmp_path, [None], MODELS)
    assert w.workflow.run() is False
    assert w.discovered == []
    assert w.events["aborted"] == ["Setup cancelled"]


def test_no_models_pulls_defaults_then_finalizes(app, tmp_path: Path, wait_until) -> None:
    w = build(tmp_path, [""], [])
    assert w.workflow.run() is True
    assert len(w.runner.jobs) == 1
    first = w.runner.jobs[0]
    assert first.argv == ["ollama", "pull", "qwen2.5-coder:1.5b"]
    assert first.env == {"OLLAMA_HOST": HOST}

    first.on_stderr("pulling 6a0746a1ec1a...  45% ▕███  ▏ 2.1 GB/4.7 GB")
    assert w.ctx.reporter.percent() == 45
    first.on_stdout("verifying sha256 digest")
    assert ("[pull] verifying sha256 digest", "info") in w.logs
    assert not any("45%" in m for m, _ in w.logs)

    first.on_exit(0)
    assert w.ctx.reporter.text() == "Downloaded qwen2.5-coder:1.5b"
    assert wait_until(lambda: len(w.runner.jobs) == 2)
    second = w.runner.jobs[1]
    assert second.argv == ["ollama", "pull", "llama3.1:8b"]
    assert not (tmp_path / "ollama.toml").exists()

    second.on_exit(0)
    assert wait_until(lambda: w.events["completed"] != [])
    cfg = SetupConfig.load(tmp_path / "ollama.toml")
    assert cfg == SetupConfig(HOST, "qwen2.5-coder:1.5b", "llama3.1:8b")


def test_failed_pull_reports_then_dismisses_then_continues(
    app, tmp_path: Path, wait_until
) -> None:
    w = build(tmp_path, [""], [])
    w.workflow.run()
    w.runner.jobs[0].on_exit(1)
    assert w.ctx.reporter.is_visible()
    assert w.ctx.reporter.text() == "Failed to download qwen2.5-coder:1.5b (exit code 1)"
    assert len(w.runner.jobs) == 1
    assert wait_until(lambda: len(w.runner.jobs) == 2)
    assert w.ctx.reporter.text() == "Downloading llama3.1:8b…"
    assert ("[pull] Failed to download qwen2.5-coder:1.5b (exit code 1)", "error") in w.logs

    w.runner.jobs[1].on_exit(1)
    assert wait_until(lambda: w.events["completed"] != [])
    assert (tmp_path / "ollama.toml").exists()
    assert w.events["failed"] == []


def test_spawn_failure_fails_session(app, tmp_path: Path) -> None:
    runner = FakeRunner(error=FileNotFoundError("ollama"))
    w = build(tmp_path, [""], [], runner=runner)
    assert w.workflow.run() is True
    assert w.workflow.queue.state is QueueState.FAILED
    assert len(w.events["failed"]) == 1
    assert "pull completion model" in w.events["failed"][0]
    assert not w.ctx.reporter.is_visible()
    assert not (tmp_path / "ollama.toml").exists()


def test_persistence_failure_fails_finalize(app, tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    w = build(tmp_path, ["", "1", "2"], MODELS, config_path=blocker / "cfg" / "ollama.toml")
    w.workflow.run()
    assert w.workflow.queue.state is QueueState.FAILED
    assert w.events["completed"] == []
    assert w.events["failed"][0].startswith("finalize failed")


def test_cancel_during_pull_writes_nothing(app, tmp_path: Path, wait_until) -> None:
    w = build(tmp_path, [""], [])
    w.workflow.run()
    w.workflow.cancel()
    assert w.runner.cancelled
    assert not w.ctx.reporter.is_visible()
    assert w.workflow.queue.state is QueueState.CANCELLED
    assert w.events["aborted"] == ["Setup cancelled"]
    w.runner.jobs[0].on_exit(0)
    wait_until(lambda: False, timeout=0.1)
    assert len(w.runner.jobs) == 1
    assert not (tmp_path / "ollama.toml").exists()
