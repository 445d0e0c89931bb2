"""Render sessions driving the grading pipeline on the GPU or the CPU.

A :class:`RenderSession` owns everything one output surface needs: the
compiled program, the source texture and the destination framebuffer.  The
program is compiled once when the session is created and reused for every
render call; the framebuffer is reallocated whenever the input resolution
changes.  Sessions are not thread-safe.  A render issued while another one is
still running on the same session is rejected with :class:`RenderFailed`.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from array import array
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, Mapping, Union

import numpy as np
from PySide6.QtGui import QImage

from ..config import DEFAULT_STATS_MEAN, DEFAULT_STATS_STD, SHADER_DIR
from ..errors import ContextCreationFailed, RenderFailed, ShaderCompilationFailed
from ..models.types import GradeParameters
from .grade_filters import apply_grade
from .image_buffers import qimage_to_rgba, rgba_to_qimage

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from PySide6.QtGui import QOffscreenSurface, QOpenGLContext
    from PySide6.QtOpenGL import QOpenGLFramebufferObject

_LOGGER = logging.getLogger(__name__)

UniformValue = Union[float, tuple[float, float, float]]


def _load_shader_source(filename: str) -> str:
    """Return the GLSL source shipped in the ``shaders`` directory."""

    shader_path = Path(SHADER_DIR) / filename
    try:
        return shader_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ShaderCompilationFailed(f"Failed to load shader '{filename}': {exc}") from exc


def uniform_values(params: GradeParameters) -> dict[str, UniformValue]:
    """Return the value bound to every pipeline uniform for *params*.

    Missing statistics are replaced by a neutral fingerprint so the transfer
    stage always receives finite inputs.  Without target statistics the
    transfer weight is forced to zero, whatever ``params.mix`` says.
    """

    source = params.source_stats
    target = params.target_stats
    src_mean = source.mean if source is not None else DEFAULT_STATS_MEAN
    src_std = source.std if source is not None else DEFAULT_STATS_STD
    tgt_mean = target.mean if target is not None else DEFAULT_STATS_MEAN
    tgt_std = target.std if target is not None else DEFAULT_STATS_STD

    return {
        "uSrcMean": tuple(src_mean),
        "uSrcStd": tuple(src_std),
        "uTgtMean": tuple(tgt_mean),
        "uTgtStd": tuple(tgt_std),
        "uMixStats": params.mix if target is not None else 0.0,
        "uLift": params.lift,
        "uGamma": params.gamma,
        "uGain": params.gain,
        "uSaturation": params.saturation,
        "uTemperature": params.temperature,
        "uTint": params.tint,
        "uContrast": params.contrast,
        "uVignette": params.vignette,
        "uGrain": params.grain,
        "uCrosstalk": params.crosstalk,
        "uSatRolloff": params.sat_rolloff,
        "uShadowTint": params.shadow_tint,
        "uHighlightTint": params.highlight_tint,
    }


class RenderSession(ABC):
    """Backend specific rendering context reused across render calls."""

    tier_name: str = "unknown"
    """Human readable tier label (``"OpenGL"`` or ``"CPU"``)."""

    def __init__(self) -> None:
        self._busy = threading.Lock()
        self._closed = False

    def render(self, image: QImage, params: GradeParameters) -> QImage:
        """Grade *image* with *params* and return the result at native size."""

        if self._closed:
            raise RenderFailed(f"{self.tier_name} render session has been shut down")
        if image.isNull():
            raise RenderFailed("Cannot render a null image")
        if not self._busy.acquire(blocking=False):
            raise RenderFailed("A render is already in progress on this session")
        try:
            return self._render(image, params)
        finally:
            self._busy.release()

    @abstractmethod
    def _render(self, image: QImage, params: GradeParameters) -> QImage:
        """Backend hook performing the actual render."""

    def shutdown(self) -> None:
        """Release every resource owned by the session."""

        self._closed = True

    @property
    def is_closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "RenderSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()


class CpuRenderSession(RenderSession):
    """numpy implementation of the pipeline."""

    tier_name = "CPU"

    def _render(self, image: QImage, params: GradeParameters) -> QImage:
        try:
            return apply_grade(image, params)
        except (ValueError, MemoryError) as exc:
            raise RenderFailed(f"CPU render failed: {exc}") from exc


@contextmanager
def _gl_errors_as_render_failures(operation: str) -> Iterator[None]:
    """Re-raise PyOpenGL errors raised inside the block as :class:`RenderFailed`."""

    from OpenGL.error import GLError

    try:
        yield
    except GLError as exc:
        code = getattr(exc, "err", None)
        detail = f"0x{code:04X}" if isinstance(code, int) else "unknown error"
        _LOGGER.error("OpenGL error during %s: %s", operation, detail)
        raise RenderFailed(f"OpenGL error during {operation}: {detail}") from exc


class OpenGlRenderSession(RenderSession):
    """Offscreen OpenGL session executing ``grade.frag`` on every pixel."""

    tier_name = "OpenGL"

    def __init__(self) -> None:
        # Import OpenGL heavy modules lazily so environments without an OpenGL
        # stack can still import this module and use the CPU session.
        from PySide6.QtGui import QGuiApplication, QOffscreenSurface, QOpenGLContext, QSurfaceFormat

        super().__init__()

        self._program = None
        self._shaders: tuple = ()
        self._vertex_buffer = None
        self._framebuffer: "QOpenGLFramebufferObject | None" = None
        self._framebuffer_size: tuple[int, int] = (0, 0)
        self._texture_id: int = 0
        self._surface: "QOffscreenSurface | None" = None

        if QGuiApplication.instance() is None:
            raise ContextCreationFailed("An OpenGL render session requires a QGuiApplication")

        self._context: "QOpenGLContext | None" = QOpenGLContext()
        format_hint = QSurfaceFormat()
        format_hint.setRenderableType(QSurfaceFormat.RenderableType.OpenGL)
        self._context.setFormat(format_hint)
        if not self._context.create():
            self._drop_context()
            raise ContextCreationFailed("Failed to create OpenGL context")

        self._surface = QOffscreenSurface()
        self._surface.setFormat(self._context.format())
        self._surface.create()
        if not self._surface.isValid():
            self._drop_context()
            raise ContextCreationFailed("OpenGL offscreen surface is invalid")

        if not self._context.makeCurrent(self._surface):
            self._drop_context()
            raise ContextCreationFailed("Failed to make OpenGL context current")

        try:
            self._create_gl_objects()
        except Exception:
            try:
                self._release_gl_objects()
            finally:
                self._context.doneCurrent()
                self._drop_context()
            raise
        self._context.doneCurrent()
        _LOGGER.info("OpenGL render session ready")

    def _create_gl_objects(self) -> None:
        from PySide6.QtOpenGL import QOpenGLBuffer

        functions = self._context.functions()
        functions.initializeOpenGLFunctions()
        self._gl = functions

        self._program = self._build_program()

        # Cache attribute/uniform locations to avoid repeated string
        # lookups during each render call.
        self._position_location = self._program.attributeLocation("a_position")
        self._texcoord_location = self._program.attributeLocation("a_texcoord")
        self._uniform_source = self._program.uniformLocation("uSourceTexture")
        self._uniform_locations: dict[str, int] = {
            name: self._program.uniformLocation(name)
            for name in uniform_values(GradeParameters())
        }

        # Full screen triangle strip: vec2 position + vec2 texcoord.  The
        # bottom edge samples v == 1 so image row 0 lands at the top.
        vertices = array(
            "f",
            [
                -1.0, -1.0, 0.0, 1.0,
                1.0, -1.0, 1.0, 1.0,
                -1.0, 1.0, 0.0, 0.0,
                1.0, 1.0, 1.0, 0.0,
            ],
        )
        self._vertex_buffer = QOpenGLBuffer(QOpenGLBuffer.Type.VertexBuffer)
        if not self._vertex_buffer.create():
            raise ContextCreationFailed("Failed to create OpenGL vertex buffer")
        if not self._vertex_buffer.bind():
            raise ContextCreationFailed("Failed to bind OpenGL vertex buffer")
        raw_vertices = vertices.tobytes()
        self._vertex_buffer.allocate(raw_vertices, len(raw_vertices))
        self._vertex_buffer.release()

    def _build_program(self):
        """Compile and link the grading program.

        Compilation failures are permanent: the session is unusable and the
        error is raised to the caller without retrying.
        """

        from PySide6.QtOpenGL import QOpenGLShader, QOpenGLShaderProgram

        program = QOpenGLShaderProgram()
        vertex_shader = QOpenGLShader(QOpenGLShader.ShaderTypeBit.Vertex)
        if not vertex_shader.compileSourceCode(_load_shader_source("grade.vert")):
            message = vertex_shader.log() or "unknown vertex shader error"
            _LOGGER.error("Vertex shader compilation failed: %s", message)
            raise ShaderCompilationFailed(f"Failed to compile vertex shader: {message}")
        fragment_shader = QOpenGLShader(QOpenGLShader.ShaderTypeBit.Fragment)
        if not fragment_shader.compileSourceCode(_load_shader_source("grade.frag")):
            message = fragment_shader.log() or "unknown fragment shader error"
            _LOGGER.error("Fragment shader compilation failed: %s", message)
            raise ShaderCompilationFailed(f"Failed to compile fragment shader: {message}")
        program.addShader(vertex_shader)
        program.addShader(fragment_shader)
        if not program.link():
            message = program.log() or "unknown shader link error"
            _LOGGER.error("Shader program link failed: %s", message)
            raise ShaderCompilationFailed(f"Failed to link shader program: {message}")
        # Keep the shader objects alive for as long as the program.
        self._shaders = (vertex_shader, fragment_shader)
        return program

    # ------------------------------------------------------------------
    # Resource management
    # ------------------------------------------------------------------
    def _ensure_framebuffer(self, width: int, height: int) -> "QOpenGLFramebufferObject":
        from PySide6.QtOpenGL import QOpenGLFramebufferObject

        if self._framebuffer is not None and self._framebuffer_size == (width, height):
            return self._framebuffer
        self._framebuffer = None
        framebuffer = QOpenGLFramebufferObject(width, height)
        if not framebuffer.isValid():
            raise RenderFailed(f"Failed to allocate a {width}x{height} framebuffer")
        _LOGGER.debug("Allocated %dx%d framebuffer", width, height)
        self._framebuffer = framebuffer
        self._framebuffer_size = (width, height)
        return framebuffer

    def _upload_texture(self, pixels: np.ndarray) -> None:
        """Upload an ``(H, W, 4)`` ``uint8`` array into the session texture."""

        from OpenGL import GL as gl

        height, width = pixels.shape[:2]
        if not self._texture_id:
            tex_id = gl.glGenTextures(1)
            if isinstance(tex_id, (tuple, list, np.ndarray)):
                tex_id = tex_id[0]
            self._texture_id = int(tex_id)

        gl.glBindTexture(gl.GL_TEXTURE_2D, self._texture_id)
        gl.glPixelStorei(gl.GL_UNPACK_ALIGNMENT, 1)
        gl.glTexImage2D(
            gl.GL_TEXTURE_2D,
            0,
            gl.GL_RGBA8,
            width,
            height,
            0,
            gl.GL_RGBA,
            gl.GL_UNSIGNED_BYTE,
            np.ascontiguousarray(pixels),
        )
        gl.glPixelStorei(gl.GL_UNPACK_ALIGNMENT, 4)
        gl.glTexParameteri(gl.GL_TEXTURE_2D, gl.GL_TEXTURE_MIN_FILTER, gl.GL_LINEAR)
        gl.glTexParameteri(gl.GL_TEXTURE_2D, gl.GL_TEXTURE_MAG_FILTER, gl.GL_LINEAR)
        gl.glTexParameteri(gl.GL_TEXTURE_2D, gl.GL_TEXTURE_WRAP_S, gl.GL_CLAMP_TO_EDGE)
        gl.glTexParameteri(gl.GL_TEXTURE_2D, gl.GL_TEXTURE_WRAP_T, gl.GL_CLAMP_TO_EDGE)

    def _release_gl_objects(self) -> None:
        """Delete every GL object; the context must be current."""

        if self._texture_id:
            from OpenGL import GL as gl

            gl.glDeleteTextures(1, np.array([self._texture_id], dtype=np.uint32))
            self._texture_id = 0
        if self._framebuffer is not None:
            if self._framebuffer.isBound():
                self._framebuffer.release()
            self._framebuffer = None
            self._framebuffer_size = (0, 0)
        if self._vertex_buffer is not None:
            self._vertex_buffer.destroy()
            self._vertex_buffer = None
        if self._program is not None:
            self._program.removeAllShaders()
            self._program = None
        self._shaders = ()

    def _drop_context(self) -> None:
        if self._surface is not None:
            self._surface.destroy()
            self._surface = None
        self._context = None

    def _bind_uniforms(self, values: Mapping[str, UniformValue]) -> None:
        program = self._program
        program.setUniformValue(self._uniform_source, 0)
        for name, value in values.items():
            location = self._uniform_locations.get(name, -1)
            if location == -1:
                # The GLSL compiler drops uniforms it can prove unused.
                continue
            if isinstance(value, tuple):
                program.setUniformValue(location, float(value[0]), float(value[1]), float(value[2]))
            else:
                program.setUniformValue(location, float(value))

    def _read_pixels(self, width: int, height: int) -> np.ndarray:
        from OpenGL import GL as gl

        gl.glPixelStorei(gl.GL_PACK_ALIGNMENT, 1)
        data = gl.glReadPixels(0, 0, width, height, gl.GL_RGBA, gl.GL_UNSIGNED_BYTE)
        gl.glPixelStorei(gl.GL_PACK_ALIGNMENT, 4)
        pixels = np.frombuffer(data, dtype=np.uint8, count=width * height * 4)
        # OpenGL rows start at the bottom of the surface.
        return pixels.reshape(height, width, 4)[::-1]

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------
    def _render(self, image: QImage, params: GradeParameters) -> QImage:
        if not self._context.makeCurrent(self._surface):
            raise RenderFailed("Failed to activate OpenGL context for rendering")

        from OpenGL import GL as gl

        program = self._program
        framebuffer = None
        try:
            with _gl_errors_as_render_failures("rendering"):
                pixels = qimage_to_rgba(image)
                height, width = pixels.shape[:2]
                gf = self._gl

                framebuffer = self._ensure_framebuffer(width, height)
                if not framebuffer.bind():
                    raise RenderFailed("Failed to bind OpenGL framebuffer")

                gf.glViewport(0, 0, width, height)
                gf.glDisable(gl.GL_DEPTH_TEST)
                gf.glDisable(gl.GL_BLEND)
                gf.glClearColor(0.0, 0.0, 0.0, 0.0)
                gf.glClear(gl.GL_COLOR_BUFFER_BIT)

                gf.glActiveTexture(gl.GL_TEXTURE0)
                self._upload_texture(pixels)

                if not program.bind():
                    raise RenderFailed(f"Failed to bind OpenGL shader program: {program.log()}")
                self._bind_uniforms(uniform_values(params))

                if not self._vertex_buffer.bind():
                    raise RenderFailed("Failed to bind OpenGL vertex buffer for rendering")

                stride = 4 * 4
                program.enableAttributeArray(self._position_location)
                program.setAttributeBuffer(self._position_location, gl.GL_FLOAT, 0, 2, stride)
                program.enableAttributeArray(self._texcoord_location)
                program.setAttributeBuffer(self._texcoord_location, gl.GL_FLOAT, 2 * 4, 2, stride)

                gf.glDrawArrays(gl.GL_TRIANGLE_STRIP, 0, 4)

                program.disableAttributeArray(self._position_location)
                program.disableAttributeArray(self._texcoord_location)
                gf.glBindTexture(gl.GL_TEXTURE_2D, 0)

                return rgba_to_qimage(self._read_pixels(width, height))
        finally:
            self._vertex_buffer.release()
            program.release()
            if framebuffer is not None and framebuffer.isBound():
                framebuffer.release()
            self._context.doneCurrent()

    def shutdown(self) -> None:
        if self._closed:
            return
        super().shutdown()
        if self._context.makeCurrent(self._surface):
            try:
                self._release_gl_objects()
            finally:
                self._context.doneCurrent()
        else:
            _LOGGER.warning("Could not activate OpenGL context; GL resources leak until exit")
        self._drop_context()
        _LOGGER.debug("OpenGL render session released")


def create_render_session(*, prefer_gpu: bool = True) -> RenderSession:
    """Return the most capable render session available on the system.

    When *prefer_gpu* is set the OpenGL session is tried first and the CPU
    session is used only if no context can be created.  Shader compilation
    failures are build defects and propagate to the caller.
    """

    if prefer_gpu:
        try:
            session = OpenGlRenderSession()
        except ContextCreationFailed as exc:
            _LOGGER.info("OpenGL render session unavailable, falling back to CPU: %s", exc)
        else:
            _LOGGER.info("Using OpenGL render session")
            return session

    _LOGGER.info("Using CPU render session")
    return CpuRenderSession()


__all__ = [
    "CpuRenderSession",
    "OpenGlRenderSession",
    "RenderSession",
    "create_render_session",
    "uniform_values",
]
