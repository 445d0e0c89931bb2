import logging
import math

import pytest

from lutoria.core.grade_resolver import (
    default_parameters,
    parameters_for_mood,
    parameters_for_reference,
    sanitize_mood_payload,
    validate_parameters,
)
from lutoria.models.types import ColorStats, GradeParameters

SOURCE = ColorStats(mean=(0.4, 0.4, 0.4), std=(0.2, 0.2, 0.2))
TARGET = ColorStats(mean=(0.6, 0.5, 0.3), std=(0.1, 0.15, 0.2))


def test_default_parameters_record_source_stats() -> None:
    params = default_parameters(SOURCE)
    assert params.source_stats == SOURCE
    assert params == GradeParameters(source_stats=SOURCE)


def test_reference_parameters_enable_full_transfer() -> None:
    params = parameters_for_reference(SOURCE, TARGET)
    assert params.target_stats == TARGET
    assert params.mix == 1.0
    assert params.transfer_enabled
    assert params.saturation == 1.0


def test_sanitize_keeps_only_mood_fields() -> None:
    payload = {
        "lift": [0.01, 0.0, -0.01],
        "saturation": 1.2,
        "grain": 0.9,
        "vignette": 1.0,
        "comment": "moody",
    }
    assert sanitize_mood_payload(payload) == {"lift": (0.01, 0.0, -0.01), "saturation": 1.2}


def test_sanitize_drops_malformed_fields(caplog) -> None:
    payload = {
        "lift": [0.1, 0.2],
        "gamma": "bright",
        "gain": [1.1, 1.0, 0.9],
        "saturation": "1.5",
        "temperature": math.nan,
        "tint": 0.05,
    }
    with caplog.at_level(logging.WARNING):
        clean = sanitize_mood_payload(payload)
    assert clean == {"gain": (1.1, 1.0, 0.9), "tint": 0.05}
    assert "lift" in caplog.text
    assert "temperature" in caplog.text


@pytest.mark.parametrize("payload", [None, [], "lift", 3.0])
def test_sanitize_ignores_non_objects(payload) -> None:
    assert sanitize_mood_payload(payload) == {}


def test_mood_parameters_keep_defaults_for_missing_fields() -> None:
    params = parameters_for_mood({"temperature": 0.15, "gain": [1.2, 1.0, 0.8]}, SOURCE)
    assert params.temperature == pytest.approx(0.15)
    assert params.gain == (1.2, 1.0, 0.8)
    assert params.gamma == (1.0, 1.0, 1.0)
    assert params.contrast == pytest.approx(0.1)
    assert params.mix == 0.0
    assert params.source_stats == SOURCE


def test_empty_mood_answer_yields_defaults() -> None:
    assert parameters_for_mood({}) == default_parameters()


def test_validation_accepts_defaults() -> None:
    assert validate_parameters(GradeParameters()) == []


def test_validation_reports_without_raising(caplog) -> None:
    params = GradeParameters(gamma=(0.0, 1.0, 1.0), saturation=5.0)
    with caplog.at_level(logging.WARNING):
        issues = validate_parameters(params)
    assert len(issues) == 2
    assert any("gamma" in issue for issue in issues)
    assert any("saturation" in issue for issue in issues)
    assert "Invalid grade parameter" in caplog.text
