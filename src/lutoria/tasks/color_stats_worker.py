"""Fingerprint source or reference images on a worker thread."""

from __future__ import annotations

from PySide6.QtCore import QObject, QRunnable, Signal
from PySide6.QtGui import QImage

from ..core.color_resolver import compute_color_statistics
from ..errors import LutoriaError


class ColorStatsWorkerSignals(QObject):
    """Signals emitted by :class:`ColorStatsWorker`.

    Both carry the role the worker was created with (``"source"`` or
    ``"reference"``) so one slot can serve both images.
    """

    completed = Signal(str, object)
    failed = Signal(str, str)


class ColorStatsWorker(QRunnable):
    """Compute the :class:`~lutoria.models.types.ColorStats` of one image."""

    def __init__(self, image: QImage, role: str = "source") -> None:
        super().__init__()
        # Deep copy: the GUI thread may repaint or replace the original.
        self._image = image.copy()
        self._role = role
        self.signals = ColorStatsWorkerSignals()

    @property
    def role(self) -> str:
        return self._role

    def run(self) -> None:  # type: ignore[override]
        try:
            stats = compute_color_statistics(self._image)
        except (LutoriaError, ValueError) as exc:
            self.signals.failed.emit(self._role, str(exc))
            return
        self.signals.completed.emit(self._role, stats)


__all__ = ["ColorStatsWorker", "ColorStatsWorkerSignals"]
