"""Per-call entry point that routes a render request to its backend."""

from __future__ import annotations

from .backends import Backend, ExecutionMode
from .config import SitroSettings, get_settings
from .document import (
    RenderedDocument,
    RenderOptions,
    count_pdf_pages,
    validate_document,
)
from .errors import InvalidInputError
from .host import render_on_host, supports_host
from .native import native_adapter
from .session import SharedSession, default_shared_session
from .utils.log_utils import logger


class Renderer:
    """Dispatch render calls to native adapters, host binaries, or the shared session.

    Safe to share between threads: native calls hold no state, and shared
    calls are isolated by the session's per-call workspaces.

    Args:
        settings: Configuration snapshot; defaults to ``get_settings()``.
        session: Lazy holder of the Docker environment; defaults to the
            process-wide one.
        use_host_binaries: Run shared backends from a configured
            ``SITRO_<NAME>_BIN`` binary instead of the container when one is set.
    """

    def __init__(
        self,
        *,
        settings: SitroSettings | None = None,
        session: SharedSession | None = None,
        use_host_binaries: bool = False,
    ) -> None:
        self._settings = settings or get_settings()
        self._session = session or default_shared_session()
        self._use_host_binaries = use_host_binaries

    def _host_binary(self, backend: Backend) -> str | None:
        if not self._use_host_binaries or not supports_host(backend):
            return None
        return self._settings.host_binary(backend.value)

    def _dispatch(
        self, backend: Backend, pdf_bytes: bytes, options: RenderOptions
    ) -> RenderedDocument:
        match backend.execution_mode:
            case ExecutionMode.NATIVE:
                return native_adapter(backend)(pdf_bytes, options)
            case ExecutionMode.SHARED:
                binary = self._host_binary(backend)
                if binary is not None:
                    return render_on_host(
                        backend,
                        pdf_bytes,
                        options,
                        binary=binary,
                        timeout=self._settings.session.exec_timeout,
                    )
                return self._session.get().render(backend.value, pdf_bytes, options)

    def render(
        self,
        backend: Backend,
        pdf_bytes: bytes,
        options: RenderOptions | None = None,
    ) -> RenderedDocument:
        """Render a PDF with ``backend`` and return one PNG per page, in order.

        Raises:
            InvalidInputError: If ``pdf_bytes`` is empty.
            SessionConstructionError: If the shared environment could not start.
            ExecutionError: If an external command failed or timed out.
            OutputContractError: If the output is empty, not PNG, or has the
                wrong number of pages.
            NativeRenderError: If an in-process backend rejected the document.
        """
        if not pdf_bytes:
            raise InvalidInputError("Cannot render an empty PDF buffer")
        options = options or RenderOptions()

        pages = self._dispatch(backend, pdf_bytes, options)
        validate_document(
            pages,
            source=backend.value,
            expected_pages=count_pdf_pages(pdf_bytes),
        )
        logger.debug(f"{backend.value} rendered {len(pages)} page(s) at scale {options.scale:g}")
        return pages


_default_renderer: Renderer | None = None


def default_renderer() -> Renderer:
    global _default_renderer
    if _default_renderer is None:
        _default_renderer = Renderer()
    return _default_renderer


def render(
    backend: Backend, pdf_bytes: bytes, options: RenderOptions | None = None
) -> RenderedDocument:
    """Render with the process-wide default ``Renderer``."""
    return default_renderer().render(backend, pdf_bytes, options)


__all__ = ["Renderer", "default_renderer", "render"]
