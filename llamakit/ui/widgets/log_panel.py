from __future__ import annotations

from datetime import datetime
import html

from PySide6.QtCore import Qt
from PySide6.QtWidgets import (
    QComboBox,
    QDockWidget,
    QHBoxLayout,
    QLineEdit,
    QPushButton,
    QTextEdit,
    QVBoxLayout,
    QMainWindow,
    QWidget,
)


LOG_LABELS = {
    "info": "Information:",
    "error": "Error:",
    "warning": "Warning:",
    "success": "Success:",
}

LEVEL_COLORS = {
    "info": "#888",
    "warning": "#cc0",
    "error": "#b00",
    "success": "#0a0",
}


class LogPanel(QDockWidget):
    def __init__(self, parent: QMainWindow | None = None) -> None:
        super().__init__("Setup Log", parent)
        self.setObjectName("dock_setup_log")

        self.log = QTextEdit()
        self.log.setReadOnly(True)
        self.messages: list[tuple[str, str, str]] = []

        self.search = QLineEdit()
        self.search.setPlaceholderText("Search…")
        self.search.textChanged.connect(self.refresh_view)

        self.filter = QComboBox()
        self.filter.addItems(["All", "Info", "Warning", "Error", "Success"])
        self.filter.currentTextChanged.connect(self.refresh_view)

        self.clear_btn = QPushButton("Clear")
        self.clear_btn.clicked.connect(self.clear)

        container = QWidget()
        layout = QVBoxLayout(container)
        row = QHBoxLayout()
        row.addWidget(self.search, 1)
        row.addWidget(self.filter)
        row.addWidget(self.clear_btn)
        layout.addLayout(row)
        layout.addWidget(self.log)
        self.setWidget(container)

        self.setFeatures(QDockWidget.DockWidgetMovable | QDockWidget.DockWidgetFloatable)
        self.setAllowedAreas(Qt.BottomDockWidgetArea | Qt.TopDockWidgetArea)

    def log_message(self, message: str, level: str = "info") -> None:
        ts = datetime.now().strftime("%H:%M:%S")
        self.messages.append((ts, message, level))
        if self._matches_filters(message, level):
            self.log.append(self._format(ts, message, level))

    def clear(self) -> None:
        self.log.clear()
        self.messages.clear()

    def _format(self, ts: str, message: str, level: str) -> str:
        color = LEVEL_COLORS.get(level, "#888")
        label = LOG_LABELS.get(level, f"{level.title()}:")
        return f"<span style='color:{color};'>{ts} {label} {html.escape(message)}</span>"

    def _matches_filters(self, message: str, level: str) -> bool:
        level_filter = self.filter.currentText().lower()
        if level_filter != "all" and level != level_filter:
            return False
        query = self.search.text().lower()
        return query in message.lower()

    def refresh_view(self) -> None:
        self.log.clear()
        for ts, message, level in self.messages:
            if self._matches_filters(message, level):
                self.log.append(self._format(ts, message, level))
