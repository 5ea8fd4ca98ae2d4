import itertools
import logging
import os
import re
import subprocess
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from PySide6.QtCore import QObject, Qt, Signal

logger = logging.getLogger(__name__)

# CSI sequences such as cursor hide/show and line erase emitted by progress bars
ANSI_RE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")


def split_lines(chunk: str) -> List[str]:
    """Split a raw output chunk into displayable logical lines.

    Carriage returns and literal ``\\n`` escape sequences both start a new
    line. Terminal control sequences are stripped and blank lines dropped.
    """
    text = ANSI_RE.sub("", chunk)
    text = text.replace("\\n", "\n").replace("\r", "\n")
    return [line.rstrip() for line in text.split("\n") if line.strip()]


@dataclass
class Job:
    """The single in-flight external process owned by :class:`JobRunner`."""

    id: int
    argv: List[str]
    proc: subprocess.Popen
    on_stdout: Callable[[str], None]
    on_stderr: Callable[[str], None]
    on_exit: Callable[[int], None]
    env: Optional[Dict[str, str]] = field(default=None, repr=False)

    def is_running(self) -> bool:
        return self.proc.poll() is None


class JobRunner(QObject):
    """Non-blocking subprocess runner that owns at most one job.

    Emits ``started`` when a job begins and ``finished`` with the exit code
    when the current job completes. Starting a job while another is active
    terminates the old one first.
    """

    started = Signal()
    finished = Signal(int)
    # a job was terminated by replacement or cancel; its exit is never reported
    stopped = Signal()

    # job id, stream name, line
    _line = Signal(int, str, str)
    # job id, exit code
    _exited = Signal(int, int)

    def __init__(self) -> None:
        super().__init__()
        self._job: Optional[Job] = None
        self._ids = itertools.count(1)
        self._line.connect(self._deliver_line, Qt.QueuedConnection)
        self._exited.connect(self._deliver_exit, Qt.QueuedConnection)

    def start(
        self,
        argv: List[str],
        on_stdout: Callable[[str], None],
        on_stderr: Callable[[str], None],
        on_exit: Callable[[int], None],
        env: Optional[Dict[str, str]] = None,
    ) -> Job:
        """Launch a subprocess and stream its output.

        Parameters
        ----------
        argv
            Command arguments passed to :class:`subprocess.Popen`.
        on_stdout
            Callback invoked for each line of ``stdout``.
        on_stderr
            Callback invoked for each line of ``stderr``.
        on_exit
            Callback invoked once with the process' exit code, after every
            output line of the job has been delivered.
        env
            Extra environment variables layered over ``os.environ``.

        Threading
        ---------
        Output streams are pumped on daemon threads and a watcher thread
        waits for process completion. They only emit queued signals, so all
        callbacks run on the thread that owns the runner (the GUI thread).
        The watcher joins both pumps before reporting the exit code.

        Replacement
        -----------
        An active job is terminated and forgotten before the new one is
        spawned. Output and exit events of a forgotten job are discarded.

        Raises
        ------
        OSError
            If the process cannot be spawned. No job is active afterwards.
        """
        if self._job:
            logger.info("Replacing running job %d", self._job.id)
            self._stop(self._job)

        full_env = {**os.environ, **env} if env else None
        proc = subprocess.Popen(
            argv,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
            shell=False,
            env=full_env,
        )
        job = Job(
            next(self._ids), list(argv), proc, on_stdout, on_stderr, on_exit, env
        )
        self._job = job
        logger.debug("Started job %d: %s", job.id, " ".join(job.argv))
        self.started.emit()

        def pump(stream, name):
            assert stream is not None
            try:
                for raw in iter(stream.readline, ""):
                    for line in split_lines(raw):
                        self._line.emit(job.id, name, line)
            finally:
                stream.close()

        t_out = threading.Thread(
            target=pump, args=(proc.stdout, "stdout"), daemon=True
        )
        t_err = threading.Thread(
            target=pump, args=(proc.stderr, "stderr"), daemon=True
        )
        t_out.start()
        t_err.start()

        def wait_and_finish():
            code = proc.wait()
            t_out.join()
            t_err.join()
            self._exited.emit(job.id, code)

        threading.Thread(target=wait_and_finish, daemon=True).start()
        return job

    def cancel(self) -> None:
        """Terminate the running job, if any.

        Calling :meth:`cancel` when no job is active is a no-op. The job's
        pending callbacks are never invoked.
        """
        if self._job:
            self._stop(self._job)

    def is_running(self) -> bool:
        return self._job is not None

    def current_job(self) -> Optional[Job]:
        return self._job

    def _stop(self, job: Job) -> None:
        try:
            job.proc.terminate()
        except OSError as e:
            logger.warning("Could not terminate job %d: %s", job.id, e)
        if self._job is job:
            self._job = None
        self.stopped.emit()

    def _deliver_line(self, job_id: int, stream: str, line: str) -> None:
        job = self._job
        if job is None or job.id != job_id:
            logger.debug("Dropping %s line of stopped job %d", stream, job_id)
            return
        if stream == "stdout":
            job.on_stdout(line)
        else:
            job.on_stderr(line)

    def _deliver_exit(self, job_id: int, code: int) -> None:
        job = self._job
        if job is None or job.id != job_id:
            logger.debug("Dropping exit of stopped job %d (code %d)", job_id, code)
            return
        logger.info("Job %d exited with code %d", job_id, code)
        try:
            job.on_exit(code)
        finally:
            if self._job is job:
                self._job = None
        self.finished.emit(code)
