from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
import threading

from PIL import Image
import pytest

from sitro.backends import Backend
from sitro.batch import _document_names, run_comparison
from sitro.document import RenderOptions
from sitro.errors import ExecutionTimeoutError


class _FakeRenderer:
    """Returns one PNG per page, sized by backend, from worker threads."""

    def __init__(self, make_png: Callable[..., bytes], fail: set[Backend] | None = None) -> None:
        self.make_png = make_png
        self.fail = fail or set()
        self.threads: set[str] = set()
        self.calls: list[tuple[Backend, float]] = []
        self._lock = threading.Lock()

    def render(
        self, backend: Backend, pdf_bytes: bytes, options: RenderOptions | None = None
    ) -> list[bytes]:
        with self._lock:
            self.threads.add(threading.current_thread().name)
            self.calls.append((backend, options.scale if options else 1.0))
        if backend in self.fail:
            raise ExecutionTimeoutError(f"{backend.value} timed out")
        pages = int(pdf_bytes.decode().split(":")[1])
        return [self.make_png((8, 6)) for _ in range(pages)]


def _write_pdf(path: Path, pages: int) -> Path:
    path.write_bytes(f"pages:{pages}".encode())
    return path


@pytest.mark.asyncio
async def test_run_comparison_writes_pages_and_strips(
    tmp_path: Path, make_png: Callable[..., bytes]
) -> None:
    first = _write_pdf(tmp_path / "first.pdf", 2)
    second = _write_pdf(tmp_path / "second.pdf", 1)
    renderer = _FakeRenderer(make_png)
    out = tmp_path / "out"

    report = await run_comparison(
        [first, second],
        backends=[Backend.PDFIUM, Backend.PYMUPDF],
        output_dir=out,
        options=RenderOptions(scale=2.0),
        border_width=None,
        max_concurrency=3,
        renderer=renderer,  # type: ignore[arg-type]
    )

    assert report.ok
    assert report.pages == {
        "first": {"pdfium": 2, "pymupdf": 2},
        "second": {"pdfium": 1, "pymupdf": 1},
    }
    assert (out / "first" / "pdfium" / "1.png").exists()
    assert (out / "first" / "pymupdf" / "2.png").exists()
    assert report.strips["first"] == [
        out / "first" / "compare-1.png",
        out / "first" / "compare-2.png",
    ]
    with Image.open(out / "second" / "compare-1.png") as strip:
        assert strip.size == (16, 6)
    assert len(renderer.calls) == 4
    assert {scale for _, scale in renderer.calls} == {2.0}
    assert "MainThread" not in renderer.threads


@pytest.mark.asyncio
async def test_run_comparison_isolates_failures(
    tmp_path: Path, make_png: Callable[..., bytes]
) -> None:
    pdf = _write_pdf(tmp_path / "doc.pdf", 1)
    renderer = _FakeRenderer(make_png, fail={Backend.GHOSTSCRIPT})

    report = await run_comparison(
        [pdf, tmp_path / "missing.pdf"],
        backends=[Backend.GHOSTSCRIPT, Backend.POPPLER],
        output_dir=tmp_path / "out",
        renderer=renderer,  # type: ignore[arg-type]
    )

    assert not report.ok
    described = sorted(failure.describe() for failure in report.failures)
    assert described[0] == "doc [ghostscript, all pages]: ghostscript timed out"
    assert described[1].startswith("missing [input, all pages]")
    assert report.pages == {"doc": {"poppler": 1}}
    assert (tmp_path / "out" / "doc" / "compare-1.png").exists()
    assert not (tmp_path / "out" / "doc" / "ghostscript").exists()


@pytest.mark.asyncio
async def test_run_comparison_keeps_repeated_stems_apart(
    tmp_path: Path, make_png: Callable[..., bytes]
) -> None:
    (tmp_path / "a").mkdir()
    (tmp_path / "b").mkdir()
    first = _write_pdf(tmp_path / "a" / "doc.pdf", 1)
    second = _write_pdf(tmp_path / "b" / "doc.pdf", 1)

    report = await run_comparison(
        [first, second],
        backends=[Backend.PDFIUM],
        output_dir=tmp_path / "out",
        renderer=_FakeRenderer(make_png),  # type: ignore[arg-type]
    )

    assert set(report.pages) == {"doc", "doc-2"}


def test_document_names_skip_suffixes_already_taken() -> None:
    paths = [Path("a.pdf"), Path("x/a.pdf"), Path("a-2.pdf")]

    assert _document_names(paths) == ["a", "a-2", "a-2-2"]


@pytest.mark.asyncio
async def test_run_comparison_keeps_a_suffix_collision_apart(
    tmp_path: Path, make_png: Callable[..., bytes]
) -> None:
    (tmp_path / "x").mkdir()
    inputs = [
        _write_pdf(tmp_path / "a.pdf", 1),
        _write_pdf(tmp_path / "x" / "a.pdf", 2),
        _write_pdf(tmp_path / "a-2.pdf", 3),
    ]

    report = await run_comparison(
        inputs,
        backends=[Backend.PYMUPDF],
        output_dir=tmp_path / "out",
        renderer=_FakeRenderer(make_png),  # type: ignore[arg-type]
    )

    assert report.ok
    assert report.pages == {
        "a": {"pymupdf": 1},
        "a-2": {"pymupdf": 2},
        "a-2-2": {"pymupdf": 3},
    }
    assert len(report.strips["a-2-2"]) == 3
