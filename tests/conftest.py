from __future__ import annotations

import os
import time
from typing import Callable

import pytest


@pytest.fixture(scope="session")
def app():
    pytest.importorskip("PySide6")
    from PySide6.QtWidgets import QApplication

    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    return app


@pytest.fixture
def wait_until(app) -> Callable[..., bool]:
    """Spin the Qt event loop until ``predicate`` holds or time runs out."""

    def wait(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
        deadline = time.monotonic() + timeout
        while not predicate():
            if time.monotonic() > deadline:
                return False
            app.processEvents()
            time.sleep(0.01)
        return True

    return wait
