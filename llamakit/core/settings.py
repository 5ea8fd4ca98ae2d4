from PySide6.QtCore import QByteArray, QSettings

ORG = "LlamaKit"
APP = "LlamaKit"

DEFAULT_HOST = "http://localhost:11434"
DEFAULT_COMPLETION_MODEL = "qwen2.5-coder:1.5b"
DEFAULT_CHAT_MODEL = "llama3.1:8b"
DEFAULT_DISMISS_DELAY_MS = 3000


class Settings:
    def __init__(self) -> None:
        self.s = QSettings(ORG, APP)

    # ollama
    def host(self) -> str:
        """Return the last host used for a successful setup."""
        return self.s.value("ollama/host", DEFAULT_HOST, type=str)

    def set_host(self, host: str | None) -> None:
        if host is None:
            self.s.remove("ollama/host")
        else:
            self.s.setValue("ollama/host", host)

    def completion_model(self) -> str:
        return self.s.value("ollama/completion_model", DEFAULT_COMPLETION_MODEL, type=str)

    def set_completion_model(self, model: str) -> None:
        self.s.setValue("ollama/completion_model", model)

    def chat_model(self) -> str:
        return self.s.value("ollama/chat_model", DEFAULT_CHAT_MODEL, type=str)

    def set_chat_model(self, model: str) -> None:
        self.s.setValue("ollama/chat_model", model)

    # progress popup
    def dismiss_delay_ms(self) -> int:
        return self.s.value("ui/dismiss_delay_ms", DEFAULT_DISMISS_DELAY_MS, type=int)

    def set_dismiss_delay_ms(self, delay: int) -> None:
        self.s.setValue("ui/dismiss_delay_ms", delay)

    # geometry
    def save_geometry(self, data: QByteArray) -> None:
        self.s.setValue("ui/geometry", data)

    def load_geometry(self) -> QByteArray | None:
        v = self.s.value("ui/geometry", None)
        return QByteArray(v) if v is not None else None


settings = Settings()
