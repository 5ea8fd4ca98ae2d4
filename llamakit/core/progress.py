"""Single live progress surface shared by every long-running job."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from PySide6.QtCore import QObject, QTimer, Signal

logger = logging.getLogger(__name__)


class ProgressView(Protocol):
    """What a progress widget must offer to be driven by the reporter."""

    def set_text(self, text: str) -> None: ...

    def set_percent(self, percent: int | None) -> None: ...

    def close(self) -> bool: ...


@dataclass
class ProgressSurface:
    view: ProgressView
    text: str
    percent: int | None = None
    visible: bool = True
    timer: QTimer | None = None


class ProgressReporter(QObject):
    """Owns at most one visible :class:`ProgressSurface`.

    The reporter knows nothing about jobs; callers push text into it and ask
    for a delayed dismissal. ``dismissed`` is emitted after each timed
    dismissal so other components can follow UI timing without the reporter
    calling them directly.
    """

    dismissed = Signal()

    def __init__(
        self,
        view_factory: Callable[[str], ProgressView],
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._view_factory = view_factory
        self._surface: ProgressSurface | None = None

    def show(self, initial_text: str) -> None:
        """Create the surface. Any previous one should have been dismissed."""
        if self._surface is not None:
            logger.warning("Progress surface replaced before it was dismissed")
            self.close()
        view = self._view_factory(initial_text)
        self._surface = ProgressSurface(view, initial_text)

    def update(self, text: str, percent: int | None = None) -> None:
        surface = self._surface
        if surface is None:
            return
        surface.text = text
        surface.view.set_text(text)
        if percent is not None:
            surface.percent = percent
            surface.view.set_percent(percent)

    def dismiss_after(
        self, delay_ms: int, on_dismissed: Optional[Callable[[], None]] = None
    ) -> None:
        """Close the surface after ``delay_ms`` and call ``on_dismissed``.

        Without a surface the callback still fires after the delay so callers
        waiting on it are never stranded.
        """
        surface = self._surface
        if surface is not None and surface.timer is not None:
            logger.debug("Dismissal already pending; ignoring")
            return
        timer = QTimer(self)
        timer.setSingleShot(True)
        timer.timeout.connect(lambda: self._on_timeout(surface, timer, on_dismissed))
        if surface is not None:
            surface.timer = timer
        timer.start(max(0, delay_ms))

    def close(self) -> None:
        """Close the surface immediately, cancelling a pending dismissal."""
        surface = self._surface
        if surface is None:
            return
        self._surface = None
        surface.visible = False
        if surface.timer is not None:
            surface.timer.stop()
            surface.timer.deleteLater()
            surface.timer = None
        surface.view.close()

    def is_visible(self) -> bool:
        return self._surface is not None

    def text(self) -> str:
        return self._surface.text if self._surface else ""

    def percent(self) -> int | None:
        return self._surface.percent if self._surface else None

    def _on_timeout(
        self,
        surface: ProgressSurface | None,
        timer: QTimer,
        on_dismissed: Optional[Callable[[], None]],
    ) -> None:
        if surface is not None and surface is self._surface:
            surface.timer = None
            self.close()
        timer.deleteLater()
        if on_dismissed:
            on_dismissed()
        self.dismissed.emit()
