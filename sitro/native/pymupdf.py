"""In-process rendering with PyMuPDF."""

from __future__ import annotations

import fitz  # PyMuPDF

from sitro.document import RenderedDocument, RenderOptions
from sitro.errors import NativeRenderError


def render(pdf_bytes: bytes, options: RenderOptions) -> RenderedDocument:
    """Rasterize every page of ``pdf_bytes`` at ``options.scale`` and encode as PNG.

    Raises:
        NativeRenderError: If the document cannot be loaded or a page fails to render.
    """
    try:
        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    except Exception as exc:
        raise NativeRenderError(f"unable to load pdf document: {exc}") from exc

    try:
        if doc.page_count == 0:
            raise NativeRenderError("pdf document has no pages")
        matrix = fitz.Matrix(options.scale, options.scale)
        pages: RenderedDocument = []
        for page in doc:
            try:
                pix = page.get_pixmap(matrix=matrix, alpha=False)  # type: ignore[attr-defined]
                pages.append(pix.tobytes("png"))
            except Exception as exc:
                raise NativeRenderError(
                    f"unable to render page {page.number + 1}: {exc}"
                ) from exc
        return pages
    finally:
        doc.close()


__all__ = ["render"]
