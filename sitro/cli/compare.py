from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from sitro.backends import Backend
from sitro.batch import run_comparison
from sitro.document import RenderOptions
from sitro.renderer import Renderer
from sitro.utils.concurrency import TqdmProgressReporter
from sitro.utils.log_utils import logger


DEFAULT_BORDER_WIDTH = 0.01


@dataclass(slots=True)
class CompareOptions:
    pdfs: Sequence[Path]
    input_dir: Path | None
    recursive: bool
    backends: Sequence[str]
    scale: float
    border_width: float | None
    output_dir: Path
    max_concurrency: int
    use_host_binaries: bool


def _collect_inputs(
    pdfs: Sequence[Path], input_dir: Path | None, recursive: bool
) -> list[Path]:
    candidates = list(pdfs)
    if input_dir:
        pattern = "**/*" if recursive else "*"
        candidates.extend(
            sorted(
                path
                for path in input_dir.glob(pattern)
                if path.is_file() and path.suffix.lower() == ".pdf"
            )
        )

    seen: set[Path] = set()
    ordered: list[Path] = []
    for path in candidates:
        key = path.resolve()
        if key in seen:
            continue
        seen.add(key)
        ordered.append(path)
    return ordered


def parse_backends(names: Sequence[str]) -> list[Backend]:
    """Resolve backend names, defaulting to every backend available here.

    Raises:
        ValueError: On an unknown name or a backend unavailable on this platform.
    """
    if not names:
        return Backend.available()
    selected: list[Backend] = []
    for name in names:
        backend = Backend.parse(name)
        if not backend.is_available():
            raise ValueError(f"{backend.value} is not available on this platform")
        if backend not in selected:
            selected.append(backend)
    return selected


async def run(options: CompareOptions) -> int:
    """Run a batch comparison; return 1 when any failure was reported."""
    try:
        backends = parse_backends(options.backends)
        render_options = RenderOptions(scale=options.scale)
    except ValueError as exc:
        logger.error(str(exc))
        return 2

    pdf_paths = _collect_inputs(options.pdfs, options.input_dir, options.recursive)
    if not pdf_paths:
        logger.warning("No PDF inputs found.")
        return 0

    logger.info(
        f"Comparing {len(pdf_paths)} document(s) across "
        f"{', '.join(backend.value for backend in backends)}"
    )
    progress = TqdmProgressReporter("compare")
    report = await run_comparison(
        pdf_paths,
        backends=backends,
        output_dir=options.output_dir,
        options=render_options,
        border_width=options.border_width,
        max_concurrency=options.max_concurrency,
        renderer=Renderer(use_host_binaries=options.use_host_binaries),
        progress=progress,
    )

    for failure in report.failures:
        logger.error(failure.describe())
    if not report.ok:
        logger.warning(f"{len(report.failures)} failure(s) reported; see {options.output_dir}")
        return 1
    logger.info(f"All comparisons written to {options.output_dir}")
    return 0
