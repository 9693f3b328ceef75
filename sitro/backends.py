"""Registry of the rendering backends sitro can compare.

Adding a backend means adding an enum member plus its entries in
``_DISPLAY_NAMES``, ``_COLORS`` and ``_EXECUTION_MODES``. Declaration order
is also the left-to-right order of tiles in comparison strips.
"""

from __future__ import annotations

from enum import Enum
import sys


class ExecutionMode(Enum):
    """Where a backend runs."""

    NATIVE = "native"
    SHARED = "shared"


class Backend(Enum):
    """A PDF rendering engine.

    The value is the stable lowercase identifier, also passed as the
    backend selector to the in-container render entrypoint.
    """

    PDFIUM = "pdfium"
    MUPDF = "mupdf"
    POPPLER = "poppler"
    QUARTZ = "quartz"
    PDFJS = "pdfjs"
    PDFBOX = "pdfbox"
    GHOSTSCRIPT = "ghostscript"
    PYMUPDF = "pymupdf"
    SERENITY = "serenity"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def color(self) -> tuple[int, int, int]:
        """RGB color identifying the backend in comparison images."""
        return _COLORS[self]

    @property
    def execution_mode(self) -> ExecutionMode:
        return _EXECUTION_MODES[self]

    @property
    def is_native(self) -> bool:
        return self.execution_mode is ExecutionMode.NATIVE

    def is_available(self) -> bool:
        """Return whether the backend can run on the current platform."""
        if self is Backend.QUARTZ:
            return sys.platform == "darwin"
        return True

    @classmethod
    def available(cls) -> list[Backend]:
        return [backend for backend in cls if backend.is_available()]

    @classmethod
    def parse(cls, text: str) -> Backend:
        """Resolve a case-insensitive backend name.

        Raises:
            ValueError: If ``text`` names no known backend.
        """
        token = text.strip().lower()
        for backend in cls:
            if backend.value == token:
                return backend
        valid = ", ".join(backend.value for backend in cls)
        raise ValueError(f"Unknown backend '{text}'. Valid backends: {valid}")


_DISPLAY_NAMES: dict[Backend, str] = {
    Backend.PDFIUM: "PDFium",
    Backend.MUPDF: "MuPDF",
    Backend.POPPLER: "Poppler",
    Backend.QUARTZ: "Quartz",
    Backend.PDFJS: "pdf.js",
    Backend.PDFBOX: "PDFBox",
    Backend.GHOSTSCRIPT: "Ghostscript",
    Backend.PYMUPDF: "PyMuPDF",
    Backend.SERENITY: "Serenity",
}

_COLORS: dict[Backend, tuple[int, int, int]] = {
    Backend.PDFIUM: (79, 184, 35),
    Backend.MUPDF: (34, 186, 184),
    Backend.POPPLER: (227, 137, 20),
    Backend.QUARTZ: (234, 250, 60),
    Backend.PDFJS: (48, 17, 207),
    Backend.PDFBOX: (237, 38, 98),
    Backend.GHOSTSCRIPT: (235, 38, 218),
    Backend.PYMUPDF: (57, 212, 116),
    Backend.SERENITY: (120, 94, 240),
}

_EXECUTION_MODES: dict[Backend, ExecutionMode] = {
    Backend.PDFIUM: ExecutionMode.SHARED,
    Backend.MUPDF: ExecutionMode.SHARED,
    Backend.POPPLER: ExecutionMode.SHARED,
    Backend.QUARTZ: ExecutionMode.NATIVE,
    Backend.PDFJS: ExecutionMode.SHARED,
    Backend.PDFBOX: ExecutionMode.SHARED,
    Backend.GHOSTSCRIPT: ExecutionMode.SHARED,
    Backend.PYMUPDF: ExecutionMode.NATIVE,
    Backend.SERENITY: ExecutionMode.SHARED,
}


__all__ = ["Backend", "ExecutionMode"]
