# Test configuration utilities.
# Ensures the repository root is on sys.path so that 'sitro' can be imported
# when running pytest without installing the package, and provides small
# in-memory PDF and PNG factories shared by the test modules.
from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from io import BytesIO
import os
from pathlib import Path
import sys
from unittest.mock import patch

from PIL import Image
import fitz  # PyMuPDF
import pytest


ROOT = Path(__file__).parent.resolve()
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def isolated_environ() -> Iterator[None]:
    # load_dotenv writes into os.environ; keep each test's changes local.
    with patch.dict(os.environ):
        yield


@pytest.fixture
def make_pdf() -> Callable[..., bytes]:
    """Build a PDF with one blank page per ``(width, height)`` pair."""

    def _make(sizes: Sequence[tuple[float, float]] = ((200, 100),)) -> bytes:
        with fitz.open() as doc:
            for width, height in sizes:
                doc.new_page(width=width, height=height)
            return doc.tobytes()

    return _make


@pytest.fixture
def make_png() -> Callable[..., bytes]:
    def _make(size: tuple[int, int] = (4, 2), color: str = "white") -> bytes:
        buffer = BytesIO()
        Image.new("RGB", size, color=color).save(buffer, format="PNG")
        return buffer.getvalue()

    return _make
