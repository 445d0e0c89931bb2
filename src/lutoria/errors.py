"""Custom exception hierarchy for Lutoria."""

from __future__ import annotations


class LutoriaError(Exception):
    """Base class for all custom errors raised by Lutoria."""


class ContextCreationFailed(LutoriaError):
    """Raised when no usable OpenGL context or surface can be created."""


class ShaderCompilationFailed(LutoriaError):
    """Raised when the grading program fails to compile or link."""


class RenderingContextUnavailable(LutoriaError):
    """Raised when a readable surface for downsampling cannot be obtained."""


class RenderFailed(LutoriaError):
    """Raised when a render call cannot produce an output image."""


class ImageDecodeFailed(LutoriaError):
    """Raised when an input file cannot be decoded into an image."""


class ExternalServiceFailure(LutoriaError):
    """Raised when the mood or analysis service errors out or times out."""


class PresetNotFoundError(LutoriaError):
    """Raised when a preset identifier is not part of the catalog."""


class GradeFileInvalidError(LutoriaError):
    """Raised when a grade sidecar cannot be parsed."""
