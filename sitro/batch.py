"""Render many documents across many backends and write comparison strips."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from .backends import Backend
from .compose import BackendFailure, compose_pages
from .document import RenderedDocument, RenderOptions
from .renderer import Renderer, default_renderer
from .utils.concurrency import ParallelExecutor, ProgressReporter
from .utils.log_utils import logger


DEFAULT_MAX_CONCURRENCY = 8


@dataclass(frozen=True, slots=True)
class RenderJob:
    document: str
    backend: Backend
    pdf_bytes: bytes


@dataclass(slots=True)
class ComparisonReport:
    """Outcome of a batch comparison.

    Attributes:
        output_dir: Root directory the images were written under.
        pages: Pages written per document and backend name.
        strips: Comparison strip paths per document, in page order.
        failures: Every isolated failure, in the order it was observed.
    """

    output_dir: Path
    pages: dict[str, dict[str, int]] = field(default_factory=dict)
    strips: dict[str, list[Path]] = field(default_factory=dict)
    failures: list[BackendFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def _document_names(pdf_paths: Sequence[Path]) -> list[str]:
    """Use file stems as output folder names, suffixing repeats until unique."""
    names: list[str] = []
    taken: set[str] = set()
    for path in pdf_paths:
        name, suffix = path.stem, 1
        while name in taken:
            suffix += 1
            name = f"{path.stem}-{suffix}"
        taken.add(name)
        names.append(name)
    return names


def _write_pages(directory: Path, pages: RenderedDocument) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    for number, page in enumerate(pages, start=1):
        (directory / f"{number}.png").write_bytes(page)


async def run_comparison(
    pdf_paths: Sequence[Path],
    *,
    backends: Sequence[Backend],
    output_dir: Path,
    options: RenderOptions | None = None,
    border_width: float | None = None,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    renderer: Renderer | None = None,
    progress: ProgressReporter | None = None,
) -> ComparisonReport:
    """Render every document with every backend and write the results.

    Each (document, backend) pair runs in a worker thread, at most
    ``max_concurrency`` at a time. Failures are recorded on the report and
    never stop the remaining jobs.

    Layout::

        <output_dir>/<stem>/<backend>/<n>.png
        <output_dir>/<stem>/compare-<n>.png
    """
    active = renderer or default_renderer()
    options = options or RenderOptions()
    report = ComparisonReport(output_dir=output_dir)

    jobs: list[RenderJob] = []
    for name, path in zip(_document_names(pdf_paths), pdf_paths, strict=True):
        try:
            pdf_bytes = path.read_bytes()
        except OSError as exc:
            logger.error(f"Cannot read {path}: {exc}")
            report.failures.append(BackendFailure(name, "input", None, str(exc)))
            continue
        jobs.extend(RenderJob(name, backend, pdf_bytes) for backend in backends)

    async def render_job(job: RenderJob) -> RenderedDocument:
        return await asyncio.to_thread(active.render, job.backend, job.pdf_bytes, options)

    executor = ParallelExecutor(
        max_concurrency=max_concurrency,
        progress_reporter=progress,
        return_exceptions=True,
    )
    results = await executor.map(render_job, jobs)

    rendered: dict[str, dict[Backend, RenderedDocument]] = {}
    for job, result in zip(jobs, results, strict=True):
        per_document = rendered.setdefault(job.document, {})
        if isinstance(result, BaseException):
            logger.warning(f"{job.backend.value} failed on {job.document}: {result}")
            report.failures.append(
                BackendFailure(job.document, job.backend.value, None, str(result))
            )
            continue
        if result is not None:
            per_document[job.backend] = result

    for document, per_backend in rendered.items():
        document_dir = output_dir / document
        counts = report.pages.setdefault(document, {})
        for backend, pages in per_backend.items():
            try:
                _write_pages(document_dir / backend.value, pages)
            except OSError as exc:
                logger.error(f"Cannot write {backend.value} pages of {document}: {exc}")
                report.failures.append(BackendFailure(document, backend.value, None, str(exc)))
                continue
            counts[backend.value] = len(pages)

        strips, failures = compose_pages(
            per_backend, document=document, border_width=border_width
        )
        report.failures.extend(failures)
        written: list[Path] = []
        for number, strip in enumerate(strips, start=1):
            if strip is None:
                continue
            target = document_dir / f"compare-{number}.png"
            try:
                document_dir.mkdir(parents=True, exist_ok=True)
                strip.save(target, format="PNG")
            except OSError as exc:
                logger.error(f"Cannot write {target}: {exc}")
                report.failures.append(BackendFailure(document, "compose", number, str(exc)))
                continue
            written.append(target)
        report.strips[document] = written
        logger.info(f"{document}: {len(written)} comparison strip(s) in {document_dir}")

    return report


__all__ = ["ComparisonReport", "DEFAULT_MAX_CONCURRENCY", "RenderJob", "run_comparison"]
