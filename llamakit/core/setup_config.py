from __future__ import annotations

import json
import os
import tomllib
from dataclasses import dataclass, fields
from pathlib import Path

CONFIG_FILENAME = "ollama.toml"


def default_config_dir() -> Path:
    """Per-user configuration directory.

    ``LLAMAKIT_CONFIG_DIR`` wins, then ``$XDG_CONFIG_HOME/llamakit``, then
    ``~/.config/llamakit``.
    """
    override = os.environ.get("LLAMAKIT_CONFIG_DIR")
    if override:
        return Path(override)
    xdg = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg) if xdg else Path.home() / ".config"
    return base / "llamakit"


def default_config_path() -> Path:
    return default_config_dir() / CONFIG_FILENAME


def is_configured(path: Path) -> bool:
    """A written config file means first-run setup already happened."""
    return path.is_file()


@dataclass(frozen=True)
class SetupConfig:
    """Ollama host plus the completion and chat models picked during setup."""

    host: str
    model: str
    chat_model: str

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"{f.name} must be a non-empty string")

    def dumps(self) -> str:
        # JSON string escapes are valid TOML basic strings
        lines = [f"{f.name} = {json.dumps(getattr(self, f.name))}" for f in fields(self)]
        return "\n".join(lines) + "\n"

    def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.dumps(), encoding="utf-8")

    @classmethod
    def load(cls, path: Path) -> SetupConfig:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
        return cls(
            host=data["host"],
            model=data["model"],
            chat_model=data["chat_model"],
        )
