from types import SimpleNamespace

import pytest

pytest.importorskip("google.genai", reason="google-genai is required for service tests", exc_type=ImportError)

from lutoria.appctx import ApiAccess
from lutoria.errors import ExternalServiceFailure
from lutoria.services import gemini


class _RateLimited(Exception):
    code = 429


class _FakeModels:
    def __init__(self, responses):
        self._responses = list(responses)
        self.calls = []

    def generate_content(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self._responses.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return SimpleNamespace(text=outcome)


@pytest.fixture
def sleeps(monkeypatch):
    delays = []
    monkeypatch.setattr(gemini, "_sleep", delays.append)
    return delays


def _install_client(monkeypatch, *responses) -> _FakeModels:
    models = _FakeModels(responses)
    monkeypatch.setattr(gemini, "_create_client", lambda access: SimpleNamespace(models=models))
    return models


ACCESS = ApiAccess(api_key="test-key")


def test_missing_key_fails_before_any_request() -> None:
    with pytest.raises(ExternalServiceFailure):
        gemini.generate_grading_params(ApiAccess(), "warm sunset")


def test_rate_limits_are_retried_with_backoff(monkeypatch, sleeps) -> None:
    models = _install_client(monkeypatch, _RateLimited(), _RateLimited(), '{"saturation": 1.3}')
    assert gemini.generate_grading_params(ACCESS, "vivid") == {"saturation": 1.3}
    assert sleeps == [4.0, 8.0]
    assert len(models.calls) == 3


def test_rate_limit_gives_up_after_four_retries(monkeypatch, sleeps) -> None:
    _install_client(monkeypatch, *[_RateLimited() for _ in range(5)])
    with pytest.raises(ExternalServiceFailure):
        gemini.generate_grading_params(ACCESS, "vivid")
    assert sleeps == [4.0, 8.0, 16.0, 32.0]


def test_other_failures_are_not_retried(monkeypatch, sleeps) -> None:
    models = _install_client(monkeypatch, RuntimeError("boom"), "{}")
    with pytest.raises(ExternalServiceFailure):
        gemini.generate_grading_params(ACCESS, "vivid")
    assert sleeps == []
    assert len(models.calls) == 1


def test_mood_request_asks_for_json(monkeypatch, sleeps) -> None:
    models = _install_client(monkeypatch, '```json\n{"tint": -0.05}\n```')
    assert gemini.generate_grading_params(ACCESS, "sickly green") == {"tint": -0.05}
    call = models.calls[0]
    assert call["contents"] == "sickly green"
    assert call["model"] == ACCESS.model
    assert call["config"].response_mime_type == "application/json"


@pytest.mark.parametrize("text", [None, "", "not json", "[1, 2, 3]"])
def test_unusable_answers_parse_to_empty_mapping(text) -> None:
    assert gemini.parse_parameters_text(text) == {}


def test_analysis_returns_text(monkeypatch, sleeps) -> None:
    models = _install_client(monkeypatch, "Low key, teal shadows.")
    assert gemini.analyze_image(ACCESS, b"\xff\xd8fake", "artistic") == "Low key, teal shadows."
    assert models.calls[0]["contents"][0] == gemini.ANALYSIS_PROMPTS["artistic"]


def test_empty_analysis_uses_fallback_text(monkeypatch, sleeps) -> None:
    _install_client(monkeypatch, None)
    assert gemini.analyze_image(ACCESS, b"data") == gemini.ANALYSIS_FALLBACK_TEXT


def test_unknown_analysis_prompt_is_rejected() -> None:
    with pytest.raises(ValueError):
        gemini.analyze_image(ACCESS, b"data", "poetic")  # type: ignore[arg-type]


def test_access_reads_environment_and_hides_key(monkeypatch) -> None:
    monkeypatch.setenv("API_KEY", "  fallback-key ")
    access = ApiAccess.from_environment()
    assert access.granted
    assert access.api_key == "fallback-key"
    assert "fallback-key" not in repr(access)

    monkeypatch.setenv("GEMINI_API_KEY", "primary")
    assert ApiAccess.from_environment().api_key == "primary"
    assert not ApiAccess.from_environment({}).granted
