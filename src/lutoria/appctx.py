"""Application-wide context shared by the facade, workers and command line."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, TYPE_CHECKING

from .config import API_KEY_ENV_VARS, GEMINI_MODEL

if TYPE_CHECKING:  # pragma: no cover - only for type checking
    from .core.render_backends import RenderSession


@dataclass(frozen=True)
class ApiAccess:
    """Capability to call the external text/vision service.

    Callers hand this object to every service call instead of consulting a
    process wide "key selected" flag.
    """

    api_key: Optional[str] = None
    model: str = GEMINI_MODEL

    @property
    def granted(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_environment(cls, environ: Mapping[str, str] | None = None) -> "ApiAccess":
        """Read the key from the first populated variable in ``API_KEY_ENV_VARS``."""

        env = os.environ if environ is None else environ
        for name in API_KEY_ENV_VARS:
            value = env.get(name, "").strip()
            if value:
                return cls(api_key=value)
        return cls()

    def __repr__(self) -> str:
        # Never leak the key into logs.
        return f"ApiAccess(granted={self.granted}, model={self.model!r})"


@dataclass
class AppContext:
    """Container object shared across the grading workflow."""

    access: ApiAccess = field(default_factory=ApiAccess.from_environment)
    prefer_gpu: bool = True
    _session: "RenderSession | None" = field(default=None, init=False, repr=False)

    @property
    def render_session(self) -> "RenderSession":
        """Return the render session, creating it on first use."""

        if self._session is None or self._session.is_closed:
            from .core.render_backends import create_render_session

            self._session = create_render_session(prefer_gpu=self.prefer_gpu)
        return self._session

    def grant_access(self, api_key: str) -> None:
        """Replace the service capability with one holding *api_key*."""

        self.access = ApiAccess(api_key=api_key.strip() or None, model=self.access.model)

    def close(self) -> None:
        """Tear down the render session and its GPU resources."""

        if self._session is not None:
            self._session.shutdown()
            self._session = None
