"""Ollama CLI helpers: model discovery, pull commands and progress parsing."""

from __future__ import annotations

import logging
import os
import re
import subprocess
from dataclasses import dataclass

# Sole element of a discovery result when the host could not be queried
ERROR_MARKER = "error"

PERCENT_RE = re.compile(r"(\d{1,3})%")


def parse_model_list(output: str) -> list[str]:
    """Return model names from ``ollama list`` table output."""
    models: list[str] = []
    for line in output.splitlines():
        parts = line.split()
        if not parts:
            continue
        if parts[0] == "NAME":
            continue
        models.append(parts[0])
    return models


def parse_pull_progress(line: str) -> int | None:
    """Return the percentage shown on an ``ollama pull`` progress line."""
    match = PERCENT_RE.search(line)
    if not match:
        return None
    return min(int(match.group(1)), 100)


def is_discovery_error(models: list[str]) -> bool:
    return models == [ERROR_MARKER]


@dataclass
class Ollama:
    """Thin Ollama command helper.

    Builds argv lists for the ``ollama`` CLI. Discovery runs synchronously;
    pulls are meant to be run through :class:`~llamakit.core.job_runner.JobRunner`.
    """

    exe: str = "ollama"
    timeout: float = 30.0

    logger = logging.getLogger(__name__)

    def env_for(self, host: str) -> dict[str, str]:
        return {"OLLAMA_HOST": host}

    def list_argv(self) -> list[str]:
        return [self.exe, "list"]

    def pull_argv(self, model: str) -> list[str]:
        return [self.exe, "pull", model]

    def discover(self, host: str) -> list[str]:
        """List models available at ``host``.

        Returns ``[ERROR_MARKER]`` when the CLI is missing, times out or exits
        nonzero, whatever it printed.
        """
        try:
            result = subprocess.run(
                self.list_argv(),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env={**os.environ, **self.env_for(host)},
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            self.logger.error("Model discovery at %s failed: %s", host, e)
            return [ERROR_MARKER]
        if result.returncode != 0:
            self.logger.error(
                "Model discovery at %s exited with %d: %s",
                host,
                result.returncode,
                result.stderr.strip(),
            )
            return [ERROR_MARKER]
        models = parse_model_list(result.stdout)
        self.logger.debug("Discovered %d models at %s", len(models), host)
        return models
