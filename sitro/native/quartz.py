"""Native macOS rendering through Core Graphics (PyObjC ``Quartz``).

Quartz objects are reference counted by PyObjC. Every handle acquired for
a page (page, context, image, destination, data) lives in the frame of
``_render_page`` / ``_encode_png`` and is released when that frame exits,
on success and on error alike.
"""

from __future__ import annotations

from dataclasses import dataclass
import math
from types import ModuleType
from typing import Any

from sitro.document import RenderedDocument, RenderedPage, RenderOptions
from sitro.errors import NativeRenderError


_PNG_UTI = "public.png"


@dataclass(frozen=True, slots=True)
class Translate:
    dx: float
    dy: float


@dataclass(frozen=True, slots=True)
class Rotate:
    radians: float


Transform = Translate | Rotate


def normalize_rotation(angle: int) -> int:
    """Map a page rotation to 0, 90, 180 or 270 degrees.

    Negative angles map to their positive equivalents; angles that are not
    a multiple of 90 are treated as unrotated.
    """
    normalized = int(angle) % 360
    return normalized if normalized in (0, 90, 180, 270) else 0


def unrotated_size(crop_width: float, crop_height: float, rotation: int) -> tuple[float, float]:
    """Return the displayed page size in points, swapped for quarter turns."""
    if normalize_rotation(rotation) in (90, 270):
        return crop_height, crop_width
    return crop_width, crop_height


def rendered_size(
    crop_width: float, crop_height: float, rotation: int, scale: float
) -> tuple[int, int]:
    """Return the bitmap size in pixels for a page at ``scale``."""
    width, height = unrotated_size(crop_width, crop_height, rotation)
    return math.ceil(width * scale), math.ceil(height * scale)


def page_transform(
    crop_x: float, crop_y: float, crop_width: float, crop_height: float, rotation: int
) -> list[Transform]:
    """Return the CTM steps, applied after scaling, that draw the page upright."""
    width, height = unrotated_size(crop_width, crop_height, rotation)
    steps: list[Transform] = []
    match normalize_rotation(rotation):
        case 90:
            steps += [Translate(height, 0.0), Rotate(math.pi / 2)]
        case 180:
            steps += [Translate(width, height), Rotate(math.pi)]
        case 270:
            steps += [Translate(0.0, width), Rotate(-math.pi / 2)]
        case _:
            pass
    steps.append(Translate(-crop_x, -crop_y))
    return steps


def _load_quartz() -> ModuleType:
    try:
        import Quartz  # type: ignore
    except Exception as exc:
        raise NativeRenderError(
            "The Quartz backend requires macOS with PyObjC installed "
            "(pyobjc-framework-Quartz)."
        ) from exc
    return Quartz


def render(pdf_bytes: bytes, options: RenderOptions) -> RenderedDocument:
    """Render every page with Core Graphics and encode each as PNG.

    Raises:
        NativeRenderError: If the document cannot be opened or has no pages, a
            page has zero size, or any Core Graphics / ImageIO call fails.
    """
    quartz = _load_quartz()

    data = quartz.CFDataCreate(None, pdf_bytes, len(pdf_bytes))
    provider = quartz.CGDataProviderCreateWithCFData(data)
    if provider is None:
        raise NativeRenderError("Failed to create data provider")
    document = quartz.CGPDFDocumentCreateWithProvider(provider)
    if document is None:
        raise NativeRenderError("Failed to create PDF document")

    page_count = quartz.CGPDFDocumentGetNumberOfPages(document)
    if page_count == 0:
        raise NativeRenderError("pdf document has no pages")
    pages: RenderedDocument = []
    for page_number in range(1, page_count + 1):
        page = quartz.CGPDFDocumentGetPage(document, page_number)
        if page is None:
            raise NativeRenderError(f"Failed to get page {page_number}")
        pages.append(_render_page(quartz, page, options.scale))
    return pages


def _render_page(quartz: Any, page: Any, scale: float) -> RenderedPage:
    crop_box = quartz.CGPDFPageGetBoxRect(page, quartz.kCGPDFCropBox)
    rotation = quartz.CGPDFPageGetRotationAngle(page)
    crop_width, crop_height = crop_box.size.width, crop_box.size.height

    width, height = rendered_size(crop_width, crop_height, rotation, scale)
    if width <= 0 or height <= 0:
        raise NativeRenderError("Invalid page dimensions")

    color_space = quartz.CGColorSpaceCreateDeviceRGB()
    context = quartz.CGBitmapContextCreate(
        None,
        width,
        height,
        8,
        width * 4,
        color_space,
        quartz.kCGBitmapByteOrderDefault | quartz.kCGImageAlphaPremultipliedLast,
    )
    if context is None:
        raise NativeRenderError("Failed to create bitmap context")

    quartz.CGContextSetRGBFillColor(context, 1.0, 1.0, 1.0, 1.0)
    quartz.CGContextFillRect(context, quartz.CGRectMake(0, 0, width, height))
    quartz.CGContextSetInterpolationQuality(context, quartz.kCGInterpolationHigh)
    quartz.CGContextScaleCTM(context, scale, scale)

    for step in page_transform(
        crop_box.origin.x, crop_box.origin.y, crop_width, crop_height, rotation
    ):
        if isinstance(step, Rotate):
            quartz.CGContextRotateCTM(context, step.radians)
        else:
            quartz.CGContextTranslateCTM(context, step.dx, step.dy)

    quartz.CGContextDrawPDFPage(context, page)

    image = quartz.CGBitmapContextCreateImage(context)
    if image is None:
        raise NativeRenderError("Failed to create image from context")
    return _encode_png(quartz, image)


def _encode_png(quartz: Any, image: Any) -> RenderedPage:
    data = quartz.CFDataCreateMutable(None, 0)
    if data is None:
        raise NativeRenderError("Failed to create mutable data")

    destination = quartz.CGImageDestinationCreateWithData(data, _PNG_UTI, 1, None)
    if destination is None:
        raise NativeRenderError("Failed to create image destination")

    quartz.CGImageDestinationAddImage(destination, image, None)
    if not quartz.CGImageDestinationFinalize(destination):
        raise NativeRenderError("Failed to finalize PNG encoding")

    png = bytes(data)
    if not png:
        raise NativeRenderError("PNG data is empty")
    return png


__all__ = [
    "Rotate",
    "Translate",
    "normalize_rotation",
    "page_transform",
    "render",
    "rendered_size",
    "unrotated_size",
]
