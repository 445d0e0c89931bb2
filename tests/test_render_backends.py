from unittest.mock import Mock

import numpy as np
import pytest

from lutoria.config import DEFAULT_STATS_MEAN, DEFAULT_STATS_STD
from lutoria.core.render_backends import (
    CpuRenderSession,
    OpenGlRenderSession,
    RenderSession,
    _gl_errors_as_render_failures,
    create_render_session,
    uniform_values,
)
from lutoria.errors import ContextCreationFailed, RenderFailed
from lutoria.models.types import ColorStats, GradeParameters


def _test_image():
    from PySide6.QtGui import QColor, QImage

    image = QImage(24, 16, QImage.Format.Format_RGBA8888)
    for y in range(16):
        for x in range(24):
            image.setPixelColor(x, y, QColor(x * 10, y * 15, 128, 255))
    return image


def test_uniform_values_substitute_neutral_statistics() -> None:
    values = uniform_values(GradeParameters(mix=1.0))
    assert values["uSrcMean"] == tuple(DEFAULT_STATS_MEAN)
    assert values["uSrcStd"] == tuple(DEFAULT_STATS_STD)
    assert values["uTgtMean"] == tuple(DEFAULT_STATS_MEAN)
    # Without a target the transfer weight is forced to zero.
    assert values["uMixStats"] == 0.0


def test_uniform_values_cover_every_parameter() -> None:
    target = ColorStats(mean=(0.6, 0.5, 0.4), std=(0.1, 0.1, 0.1))
    params = GradeParameters(target_stats=target, mix=0.5, sat_rolloff=0.3, shadow_tint=(0.1, 0.0, 0.0))
    values = uniform_values(params)
    assert values["uMixStats"] == 0.5
    assert values["uTgtMean"] == (0.6, 0.5, 0.4)
    assert values["uSatRolloff"] == 0.3
    assert values["uShadowTint"] == (0.1, 0.0, 0.0)
    assert len(values) == 18


def test_cpu_session_preserves_size(qapp) -> None:
    image = _test_image()
    with CpuRenderSession() as session:
        result = session.render(image, GradeParameters())
    assert (result.width(), result.height()) == (24, 16)


def test_shut_down_session_rejects_renders(qapp) -> None:
    session = CpuRenderSession()
    session.shutdown()
    assert session.is_closed
    with pytest.raises(RenderFailed):
        session.render(_test_image(), GradeParameters())


def test_null_image_is_rejected(qapp) -> None:
    from PySide6.QtGui import QImage

    with pytest.raises(RenderFailed):
        CpuRenderSession().render(QImage(), GradeParameters())


def test_overlapping_render_is_rejected(qapp) -> None:
    class ReentrantSession(CpuRenderSession):
        def _render(self, image, params):
            return self.render(image, params)

    session = ReentrantSession()
    with pytest.raises(RenderFailed, match="already in progress"):
        session.render(_test_image(), GradeParameters())
    # The guard is released after the failure.
    assert not session._busy.locked()


def test_cpu_session_can_be_requested_explicitly(qapp) -> None:
    session = create_render_session(prefer_gpu=False)
    assert isinstance(session, CpuRenderSession)
    assert session.tier_name == "CPU"


def test_opengl_matches_cpu_rendering(qapp) -> None:
    from lutoria.core.image_buffers import qimage_to_rgba

    try:
        gpu = OpenGlRenderSession()
    except ContextCreationFailed as exc:
        pytest.skip(f"OpenGL context unavailable: {exc}")

    params = GradeParameters(
        lift=(-0.02, 0.0, 0.02),
        gain=(1.1, 1.0, 0.9),
        saturation=1.2,
        temperature=0.05,
        vignette=0.3,
        sat_rolloff=0.5,
        shadow_tint=(0.0, 0.04, 0.06),
        highlight_tint=(0.08, 0.04, 0.0),
    )
    image = _test_image()
    try:
        gpu_pixels = qimage_to_rgba(gpu.render(image, params)).astype(int)
    finally:
        gpu.shutdown()
    cpu_pixels = qimage_to_rgba(CpuRenderSession().render(image, params)).astype(int)
    assert np.max(np.abs(gpu_pixels - cpu_pixels)) <= 3


def _gl_error(code: int):
    try:
        from OpenGL.error import GLError
    except Exception as exc:  # PyOpenGL missing or no GL library to load
        pytest.skip(f"PyOpenGL unavailable: {exc}")
    return GLError(err=code, result=None)


def _session_without_context(**attributes) -> OpenGlRenderSession:
    """Return an OpenGL session whose Qt objects are replaced by mocks."""

    session = OpenGlRenderSession.__new__(OpenGlRenderSession)
    RenderSession.__init__(session)
    session._context = Mock()
    session._context.makeCurrent.return_value = True
    session._surface = Mock()
    session._gl = Mock()
    session._program = Mock()
    session._shaders = (Mock(), Mock())
    session._vertex_buffer = Mock()
    session._framebuffer = None
    session._framebuffer_size = (0, 0)
    session._texture_id = 0
    for name, value in attributes.items():
        setattr(session, name, value)
    return session


def test_gl_errors_become_render_failures() -> None:
    error = _gl_error(1282)
    with pytest.raises(RenderFailed, match="0x0502") as info:
        with _gl_errors_as_render_failures("texture upload"):
            raise error
    assert info.value.__cause__ is error


def test_gl_error_during_render_releases_bindings(qapp) -> None:
    error = _gl_error(1281)
    framebuffer = Mock()
    framebuffer.bind.return_value = True
    framebuffer.isBound.return_value = True
    session = _session_without_context()
    session._ensure_framebuffer = Mock(return_value=framebuffer)
    session._upload_texture = Mock(side_effect=error)
    context = session._context
    program = session._program

    with pytest.raises(RenderFailed, match="0x0501"):
        session.render(_test_image(), GradeParameters())

    framebuffer.release.assert_called_once_with()
    program.release.assert_called_once_with()
    context.doneCurrent.assert_called_once_with()
    assert not session._busy.locked()


def test_opengl_shutdown_releases_everything(qapp) -> None:
    framebuffer = Mock()
    framebuffer.isBound.return_value = False
    session = _session_without_context(_framebuffer=framebuffer, _framebuffer_size=(8, 8))
    context = session._context
    surface = session._surface
    vertex_buffer = session._vertex_buffer
    program = session._program

    session.shutdown()

    vertex_buffer.destroy.assert_called_once_with()
    program.removeAllShaders.assert_called_once_with()
    surface.destroy.assert_called_once_with()
    context.doneCurrent.assert_called_once_with()
    assert session._program is None
    assert session._vertex_buffer is None
    assert session._framebuffer is None
    assert session._shaders == ()
    assert session._context is None and session._surface is None

    session.shutdown()
    assert context.makeCurrent.call_count == 1


def test_opengl_shutdown_without_current_context_still_drops_surface(qapp, caplog) -> None:
    session = _session_without_context()
    session._context.makeCurrent.return_value = False
    surface = session._surface

    session.shutdown()

    surface.destroy.assert_called_once_with()
    assert session.is_closed
    assert "leak" in caplog.text
