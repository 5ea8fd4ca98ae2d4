from __future__ import annotations

from typing import Optional

from PySide6.QtWidgets import QInputDialog, QLineEdit, QMessageBox, QWidget

TITLE = "LlamaKit Setup"


class DialogPrompter:
    """Modal Qt dialogs answering the setup workflow's questions."""

    def __init__(self, parent: QWidget | None = None) -> None:
        self.parent = parent

    def ask_text(self, question: str, default: str = "") -> Optional[str]:
        text, ok = QInputDialog.getText(
            self.parent, TITLE, question, QLineEdit.Normal, default
        )
        return text if ok else None

    def ask_yes_no(self, question: str) -> bool:
        answer = QMessageBox.question(
            self.parent,
            TITLE,
            question,
            QMessageBox.Yes | QMessageBox.No,
            QMessageBox.Yes,
        )
        return answer == QMessageBox.Yes

    def warn(self, message: str) -> None:
        QMessageBox.warning(self.parent, TITLE, message)
