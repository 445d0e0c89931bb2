import pytest

from lutoria.appctx import ApiAccess
from lutoria.errors import ExternalServiceFailure
from lutoria.services import gemini


def test_color_stats_worker_reports_statistics(qapp) -> None:
    from PySide6.QtGui import QColor, QImage

    from lutoria.tasks import ColorStatsWorker

    image = QImage(64, 32, QImage.Format.Format_RGBA8888)
    image.fill(QColor(0, 255, 0))
    worker = ColorStatsWorker(image, "reference")
    image.fill(QColor(255, 0, 0))  # the worker owns a detached copy

    results = []
    worker.signals.completed.connect(lambda role, stats: results.append((role, stats)))
    worker.run()

    assert len(results) == 1
    assert results[0][0] == "reference"
    assert results[0][1].mean == pytest.approx((0.0, 1.0, 0.0), abs=1e-6)


def test_color_stats_worker_reports_failure(qapp) -> None:
    from PySide6.QtGui import QImage

    from lutoria.tasks import ColorStatsWorker

    worker = ColorStatsWorker(QImage())
    errors = []
    worker.signals.failed.connect(lambda role, message: errors.append((role, message)))
    worker.run()
    assert errors and errors[0][0] == "source"


def test_mood_worker_relays_service_answer(qapp, monkeypatch) -> None:
    from lutoria.tasks import MoodParamsWorker

    monkeypatch.setattr(gemini, "generate_grading_params", lambda access, prompt: {"tint": 0.05})
    worker = MoodParamsWorker(ApiAccess(api_key="k"), "mint")
    finished = []
    worker.signals.finished.connect(lambda prompt, payload: finished.append((prompt, payload)))
    worker.run()
    assert finished == [("mint", {"tint": 0.05})]


def test_mood_worker_relays_failures(qapp, monkeypatch) -> None:
    from lutoria.tasks import MoodParamsWorker

    def failing(access, prompt):
        raise ExternalServiceFailure("no quota")

    monkeypatch.setattr(gemini, "generate_grading_params", failing)
    worker = MoodParamsWorker(ApiAccess(api_key="k"), "mint")
    failures = []
    worker.signals.failed.connect(lambda prompt, message: failures.append((prompt, message)))
    worker.run()
    assert failures == [("mint", "no quota")]
