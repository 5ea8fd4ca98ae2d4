from __future__ import annotations

from PySide6.QtCore import Qt
from PySide6.QtWidgets import QFrame, QLabel, QProgressBar, QVBoxLayout, QWidget


class ProgressPopup(QFrame):
    """Small always-on-top popup showing the status of a download."""

    def __init__(self, text: str, parent: QWidget | None = None) -> None:
        super().__init__(
            parent, Qt.Tool | Qt.FramelessWindowHint | Qt.WindowStaysOnTopHint
        )
        self.setObjectName("progress_popup")
        self.setFrameShape(QFrame.StyledPanel)
        self.setMinimumWidth(360)

        layout = QVBoxLayout(self)
        self.label = QLabel(text)
        self.label.setWordWrap(True)
        layout.addWidget(self.label)
        self.bar = QProgressBar()
        self.bar.setRange(0, 0)
        layout.addWidget(self.bar)

        self._place()
        self.show()

    def set_text(self, text: str) -> None:
        self.label.setText(text)

    def set_percent(self, percent: int | None) -> None:
        if percent is None:
            self.bar.setRange(0, 0)
        else:
            self.bar.setRange(0, 100)
            self.bar.setValue(percent)

    def _place(self) -> None:
        # bottom-right corner of the parent window
        parent = self.parentWidget()
        if parent is None:
            return
        self.adjustSize()
        geo = parent.frameGeometry()
        self.move(
            geo.right() - self.width() - 16,
            geo.bottom() - self.height() - 16,
        )
