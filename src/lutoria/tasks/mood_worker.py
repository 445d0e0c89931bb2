"""Worker calling the mood-to-parameters service without blocking the UI."""

from __future__ import annotations

from PySide6.QtCore import QObject, QRunnable, Signal

from ..appctx import ApiAccess
from ..errors import ExternalServiceFailure


class MoodParamsWorkerSignals(QObject):
    """Signals emitted by :class:`MoodParamsWorker`."""

    finished = Signal(str, dict)
    """Emitted with the prompt and the raw parameter mapping."""

    failed = Signal(str, str)
    """Emitted with the prompt and an error message."""


class MoodParamsWorker(QRunnable):
    """Translate a mood prompt into raw grading parameters."""

    def __init__(self, access: ApiAccess, prompt: str) -> None:
        super().__init__()
        self._access = access
        self._prompt = prompt
        self.signals = MoodParamsWorkerSignals()

    def run(self) -> None:  # type: ignore[override]
        """Perform the network round trip on a worker thread."""

        from ..services.gemini import generate_grading_params

        try:
            payload = generate_grading_params(self._access, self._prompt)
        except ExternalServiceFailure as exc:
            # The controller keeps the previous grade and reports the failure.
            self.signals.failed.emit(self._prompt, str(exc))
            return

        self.signals.finished.emit(self._prompt, dict(payload))


__all__ = ["MoodParamsWorker", "MoodParamsWorkerSignals"]
