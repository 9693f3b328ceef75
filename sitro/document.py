"""Render options and rendered-document validation."""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import TypeAlias

import fitz  # PyMuPDF

from .errors import OutputContractError
from .utils.log_utils import logger


PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
# Name of the input document inside every per-call working directory.
INPUT_FILENAME = "file.pdf"

RenderedPage: TypeAlias = bytes
RenderedDocument: TypeAlias = list[bytes]


@dataclass(frozen=True, slots=True)
class RenderOptions:
    """Options applied when rendering a PDF.

    Attributes:
        scale: Linear magnification relative to each page's native size.
    """

    scale: float = 1.0

    def __post_init__(self) -> None:
        if not math.isfinite(self.scale) or self.scale <= 0:
            raise ValueError(f"scale must be a positive finite number, got {self.scale!r}")

    @property
    def dpi(self) -> float:
        """Resolution used by vector rasterizers (72 DPI at scale 1)."""
        return 72.0 * self.scale

    def scale_arg(self) -> str:
        """Render the scale as a compact command-line argument."""
        return format(self.scale, "g")


def count_pdf_pages(pdf_bytes: bytes) -> int | None:
    """Return the page count PyMuPDF reports, or ``None`` when it cannot tell."""
    try:
        with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
            return doc.page_count
    except Exception as exc:
        logger.debug(f"PyMuPDF could not count pages, skipping page count check: {exc}")
        return None


def validate_document(
    pages: RenderedDocument,
    *,
    source: str,
    expected_pages: int | None = None,
) -> RenderedDocument:
    """Check a rendered document against the output contract.

    Args:
        pages: PNG bytes per page, in page order.
        source: Backend name used in error messages.
        expected_pages: True page count of the input when known.

    Returns:
        The same ``pages`` list.

    Raises:
        OutputContractError: On an empty document, an empty or non-PNG page,
            or a page count that differs from ``expected_pages``.
    """
    if not pages:
        raise OutputContractError(f"{source} produced no pages")
    for index, page in enumerate(pages):
        if not page:
            raise OutputContractError(f"{source} returned an empty PNG for page {index + 1}")
        if not page.startswith(PNG_SIGNATURE[:4]):
            raise OutputContractError(
                f"{source} returned invalid PNG data for page {index + 1} (bad magic bytes)"
            )
    if expected_pages is not None and len(pages) != expected_pages:
        raise OutputContractError(
            f"{source} returned {len(pages)} page(s) but the document has {expected_pages}"
        )
    return pages


__all__ = [
    "INPUT_FILENAME",
    "PNG_SIGNATURE",
    "RenderOptions",
    "RenderedDocument",
    "RenderedPage",
    "count_pdf_pages",
    "validate_document",
]
