"""In-process backends.

Each adapter has the signature ``render(pdf_bytes, options) -> RenderedDocument``
and never touches the shared environment, so calls may run with any
degree of concurrency.
"""

from __future__ import annotations

from collections.abc import Callable

from sitro.backends import Backend
from sitro.document import RenderedDocument, RenderOptions

from . import pymupdf, quartz


NativeAdapter = Callable[[bytes, RenderOptions], RenderedDocument]

NATIVE_ADAPTERS: dict[Backend, NativeAdapter] = {
    Backend.PYMUPDF: pymupdf.render,
    Backend.QUARTZ: quartz.render,
}


def native_adapter(backend: Backend) -> NativeAdapter:
    """Return the in-process adapter for a native backend.

    Raises:
        ValueError: If ``backend`` does not run in-process.
    """
    try:
        return NATIVE_ADAPTERS[backend]
    except KeyError:
        raise ValueError(f"{backend.value} is not a native backend") from None


__all__ = ["NATIVE_ADAPTERS", "NativeAdapter", "native_adapter"]
