"""Turn rendered pages into bordered tiles and side-by-side comparison strips."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from io import BytesIO

from PIL import Image

from .backends import Backend
from .document import RenderedDocument, RenderOptions
from .errors import SitroError
from .renderer import Renderer, default_renderer
from .utils.log_utils import logger


@dataclass(frozen=True, slots=True)
class BackendFailure:
    """One isolated failure, reported per (document, backend, page).

    ``page`` is 1-based, or ``None`` when the whole render call failed.
    """

    document: str
    backend: str
    page: int | None
    message: str

    def describe(self) -> str:
        where = f"page {self.page}" if self.page is not None else "all pages"
        return f"{self.document} [{self.backend}, {where}]: {self.message}"


@dataclass(slots=True)
class DocumentComparison:
    """Per-backend renders of one document plus one strip per page index."""

    document: str
    rendered: dict[Backend, RenderedDocument] = field(default_factory=dict)
    strips: list[Image.Image | None] = field(default_factory=list)
    failures: list[BackendFailure] = field(default_factory=list)


def decode_png(page: bytes) -> Image.Image:
    image = Image.open(BytesIO(page))
    image.load()
    return image.convert("RGBA")


def bordered(
    image: Image.Image, color: tuple[int, int, int], border_width: float
) -> Image.Image:
    """Surround ``image`` with a solid border.

    The border thickness is ``border_width`` times the shorter image side,
    applied on every side.
    """
    thickness = round(min(image.size) * border_width)
    if thickness <= 0:
        return image
    width, height = image.size
    canvas = Image.new("RGBA", (width + 2 * thickness, height + 2 * thickness), (*color, 255))
    canvas.paste(image, (thickness, thickness))
    return canvas


def page_images(
    pages: RenderedDocument, backend: Backend, border_width: float | None = None
) -> list[Image.Image]:
    """Decode a backend's pages, optionally framing each in the backend color."""
    images = [decode_png(page) for page in pages]
    if border_width is None:
        return images
    return [bordered(image, backend.color, border_width) for image in images]


def compose_strip(tiles: Sequence[Image.Image]) -> Image.Image:
    """Concatenate tiles left-to-right, anchored at the top.

    The strip is as wide as all tiles together and as tall as the tallest;
    uncovered pixels stay transparent.
    """
    if not tiles:
        raise ValueError("Cannot compose an empty set of tiles")
    width = sum(tile.width for tile in tiles)
    height = max(tile.height for tile in tiles)
    strip = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    x = 0
    for tile in tiles:
        strip.paste(tile, (x, 0))
        x += tile.width
    return strip


def compose_pages(
    rendered: Mapping[Backend, RenderedDocument],
    *,
    document: str,
    border_width: float | None = None,
) -> tuple[list[Image.Image | None], list[BackendFailure]]:
    """Build one comparison strip per page index.

    Tiles follow the fixed backend declaration order. A backend that lacks
    a page or whose page cannot be decoded is reported and left out of
    that strip; a strip that cannot be composed is reported as ``None``.
    """
    ordered = [backend for backend in Backend if backend in rendered]
    page_count = max((len(rendered[backend]) for backend in ordered), default=0)
    strips: list[Image.Image | None] = []
    failures: list[BackendFailure] = []

    for index in range(page_count):
        tiles: list[Image.Image] = []
        for backend in ordered:
            pages = rendered[backend]
            if index >= len(pages):
                failures.append(
                    BackendFailure(document, backend.value, index + 1, "page missing from output")
                )
                continue
            try:
                tile = decode_png(pages[index])
                if border_width is not None:
                    tile = bordered(tile, backend.color, border_width)
            except Exception as exc:
                failures.append(BackendFailure(document, backend.value, index + 1, str(exc)))
                continue
            tiles.append(tile)

        try:
            strips.append(compose_strip(tiles))
        except Exception as exc:
            logger.error(f"Failed to compose page {index + 1} of {document}: {exc}")
            failures.append(BackendFailure(document, "compose", index + 1, str(exc)))
            strips.append(None)

    return strips, failures


def compare_document(
    pdf_bytes: bytes,
    backends: Sequence[Backend],
    options: RenderOptions | None = None,
    *,
    border_width: float | None = None,
    renderer: Renderer | None = None,
    document: str = "document",
) -> DocumentComparison:
    """Render one document with every backend and compose its pages.

    A failing backend is recorded and the remaining backends still run.
    """
    active = renderer or default_renderer()
    comparison = DocumentComparison(document=document)
    for backend in backends:
        try:
            comparison.rendered[backend] = active.render(backend, pdf_bytes, options)
        except SitroError as exc:
            logger.warning(f"{backend.value} failed on {document}: {exc}")
            comparison.failures.append(BackendFailure(document, backend.value, None, str(exc)))

    strips, failures = compose_pages(
        comparison.rendered, document=document, border_width=border_width
    )
    comparison.strips = strips
    comparison.failures.extend(failures)
    return comparison


__all__ = [
    "BackendFailure",
    "DocumentComparison",
    "bordered",
    "compare_document",
    "compose_pages",
    "compose_strip",
    "decode_png",
    "page_images",
]
