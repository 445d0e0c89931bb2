"""Qt-aware facade that drives the grading workflow for a host application."""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Mapping, Optional

from PySide6.QtCore import QObject, Signal
from PySide6.QtGui import QImage

from .appctx import AppContext
from .core.color_resolver import compute_color_statistics
from .core.grade_resolver import (
    default_parameters,
    parameters_for_mood,
    parameters_for_preset,
    parameters_for_reference,
    validate_parameters,
)
from .core.presets import get_preset
from .errors import ExternalServiceFailure, LutoriaError
from .io.sidecar import save_grade, sidecar_path_for_export
from .models.types import ColorStats, GradeMode, GradeParameters, GradeResult
from .utils.image_io import encode_image, load_image, save_image

_LOGGER = logging.getLogger(__name__)

REFERENCE_MATCH_ID = "ref_match"
CUSTOM_AI_ID = "custom_ai"
ANALYSIS_UNAVAILABLE_TEXT = "Analysis failed. Quota limits may be reached."


class GradeFacade(QObject):
    """Expose the grading operations to the GUI layer and the command line.

    The facade owns the loaded source and reference images, their colour
    statistics and the most recent :class:`GradeResult`.  Each grading call
    assembles fresh parameters, renders them through the context's render
    session and announces progress with the same stage labels on every run.
    """

    progressUpdated = Signal(str, int)
    gradeCompleted = Signal(object)
    gradeFailed = Signal(str)
    analysisReady = Signal(str)

    def __init__(self, context: Optional[AppContext] = None, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._context = context or AppContext()
        self._source: Optional[QImage] = None
        self._source_path: Optional[Path] = None
        self._source_stats: Optional[ColorStats] = None
        self._reference: Optional[QImage] = None
        self._reference_stats: Optional[ColorStats] = None
        self._result: Optional[GradeResult] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def context(self) -> AppContext:
        return self._context

    @property
    def source_image(self) -> Optional[QImage]:
        return self._source

    @property
    def reference_image(self) -> Optional[QImage]:
        return self._reference

    @property
    def source_stats(self) -> Optional[ColorStats]:
        return self._source_stats

    @property
    def reference_stats(self) -> Optional[ColorStats]:
        return self._reference_stats

    @property
    def current_result(self) -> Optional[GradeResult]:
        """Return the latest successful grade, if any."""

        return self._result

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------
    def load_source(self, source: Path | QImage) -> QImage:
        """Load the photograph to grade and compute its statistics.

        Replacing the source discards the previous grade.
        """

        image, path = self._coerce_image(source)
        stats = compute_color_statistics(image)
        self._source = image
        self._source_path = path
        self._source_stats = stats
        self._result = None
        _LOGGER.info("Source loaded (%dx%d)", image.width(), image.height())
        return image

    def load_reference(self, reference: Path | QImage) -> QImage:
        """Load the look reference and compute its statistics."""

        image, _ = self._coerce_image(reference)
        self._reference_stats = compute_color_statistics(image)
        self._reference = image
        _LOGGER.info("Reference loaded (%dx%d)", image.width(), image.height())
        return image

    def clear_reference(self) -> None:
        self._reference = None
        self._reference_stats = None

    # ------------------------------------------------------------------
    # Grading
    # ------------------------------------------------------------------
    def apply_preset(self, preset_id: str) -> Optional[GradeResult]:
        """Grade the source with the named look preset."""

        if not self._begin():
            return None
        try:
            preset = get_preset(preset_id)
        except LutoriaError as exc:
            return self._fail(str(exc))
        self.progressUpdated.emit("Applying Preset", 50)
        params = parameters_for_preset(preset, self._source_stats)
        return self._render(params, GradeMode.PRESET, preset.id)

    def match_reference(self, mix: float = 1.0) -> Optional[GradeResult]:
        """Grade the source so its colour statistics match the reference."""

        if self._reference is None or self._reference_stats is None:
            return self._fail("Load a reference image before matching")
        if not self._begin():
            return None
        self.progressUpdated.emit("Extracting Color DNA", 30)
        params = parameters_for_reference(self._source_stats, self._reference_stats, mix=mix)
        self.progressUpdated.emit("Matching Statistics", 60)
        return self._render(params, GradeMode.REFERENCE, REFERENCE_MATCH_ID)

    def apply_mood(self, prompt: str) -> Optional[GradeResult]:
        """Ask the mood service for parameters matching *prompt* and grade."""

        if not prompt.strip():
            return self._fail("Describe a mood before grading")
        if not self._begin():
            return None
        from .services.gemini import generate_grading_params

        self.progressUpdated.emit("Interpreting Request", 30)
        try:
            payload = generate_grading_params(self._context.access, prompt)
        except ExternalServiceFailure as exc:
            _LOGGER.error("Mood request failed: %s", exc)
            return self._fail(f"AI Error. Check quota. ({exc})")
        return self._render_mood(payload)

    def apply_mood_payload(self, payload: Mapping[str, Any]) -> Optional[GradeResult]:
        """Grade with a mood answer obtained elsewhere, e.g. by a worker."""

        if not self._begin():
            return None
        return self._render_mood(payload)

    def apply_parameters(
        self,
        params: GradeParameters,
        *,
        mode: GradeMode = GradeMode.SIDECAR,
        active_preset: str = CUSTOM_AI_ID,
    ) -> Optional[GradeResult]:
        """Render explicit *params*, e.g. loaded from a sidecar.

        Saved source statistics describe the photograph the grade was made
        on, so they are always replaced by those of the loaded source.
        """

        if not self._begin():
            return None
        params = replace(params, source_stats=self._source_stats)
        validate_parameters(params)
        return self._render(params, mode, active_preset)

    def reset(self) -> Optional[GradeResult]:
        """Render the neutral defaults."""

        if not self._begin():
            return None
        return self._render(default_parameters(self._source_stats), GradeMode.SIDECAR, "")

    # ------------------------------------------------------------------
    # Analysis and export
    # ------------------------------------------------------------------
    def analyze_source(self, prompt_type: str = "technical") -> str:
        """Return a free-text description of the source image."""

        if self._source is None:
            raise LutoriaError("No source image loaded")
        from .services.gemini import analyze_image

        try:
            text = analyze_image(
                self._context.access, encode_image(self._source), prompt_type  # type: ignore[arg-type]
            )
        except ExternalServiceFailure as exc:
            _LOGGER.error("Analysis failed: %s", exc)
            text = ANALYSIS_UNAVAILABLE_TEXT
        self.analysisReady.emit(text)
        return text

    def export(self, path: Path, *, with_sidecar: bool = False) -> Path:
        """Write the current grade to *path* and optionally its sidecar."""

        if self._result is None:
            raise LutoriaError("Nothing to export; grade the image first")
        target = save_image(self._result.image, Path(path))
        if with_sidecar:
            save_grade(
                sidecar_path_for_export(target),
                self._result.params,
                mode=self._result.mode,
                preset=self._result.active_preset or None,
                source=self._source_path.name if self._source_path else None,
            )
        return target

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _coerce_image(source: Path | QImage) -> tuple[QImage, Optional[Path]]:
        if isinstance(source, QImage):
            if source.isNull():
                raise LutoriaError("Cannot grade a null image")
            return source.copy(), None
        path = Path(source)
        return load_image(path), path

    def _begin(self) -> bool:
        if self._source is None:
            self._fail("No source image loaded")
            return False
        self.progressUpdated.emit("Analyzing Source", 10)
        return True

    def _render(
        self, params: GradeParameters, mode: GradeMode, active_preset: str
    ) -> Optional[GradeResult]:
        assert self._source is not None
        self.progressUpdated.emit("GPU Rendering", 80)
        try:
            image = self._context.render_session.render(self._source, params)
        except LutoriaError as exc:
            _LOGGER.error("Render error: %s", exc)
            return self._fail(str(exc))
        result = GradeResult(image=image, params=params, mode=mode, active_preset=active_preset)
        self._result = result
        self.progressUpdated.emit("", 100)
        self.gradeCompleted.emit(result)
        return result

    def _render_mood(self, payload: Mapping[str, Any]) -> Optional[GradeResult]:
        params = parameters_for_mood(payload, self._source_stats)
        return self._render(params, GradeMode.MOOD, CUSTOM_AI_ID)

    def _fail(self, message: str) -> None:
        self.gradeFailed.emit(message)
        return None


__all__ = ["GradeFacade", "CUSTOM_AI_ID", "REFERENCE_MATCH_ID"]
