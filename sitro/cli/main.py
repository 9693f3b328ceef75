from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine, Sequence
from functools import wraps
from pathlib import Path
from typing import Any, ParamSpec, TypeVar

import typer

from sitro.backends import Backend
from sitro.batch import DEFAULT_MAX_CONCURRENCY
from sitro.document import RenderOptions
from sitro.errors import SitroError
from sitro.renderer import Renderer
from sitro.utils.log_utils import logger

from . import compare


app = typer.Typer(
    help="Render PDFs with several engines and compare the results side by side.",
)


_P = ParamSpec("_P")
_T = TypeVar("_T")


def _synchronous(handler: Callable[_P, Coroutine[Any, Any, _T]]) -> Callable[_P, _T]:
    @wraps(handler)
    def wrapper(*args: _P.args, **kwargs: _P.kwargs) -> _T:
        try:
            return asyncio.run(handler(*args, **kwargs))
        except KeyboardInterrupt as err:
            logger.info("Interrupted by user")
            raise typer.Exit(code=130) from err

    return wrapper


@app.command("backends")
def backends_command() -> None:
    """List every backend with its execution mode and availability."""
    for backend in Backend:
        mode = backend.execution_mode.value
        status = "available" if backend.is_available() else "unavailable"
        typer.echo(f"{backend.value:<12} {backend.display_name:<12} {mode:<7} {status}")


@app.command("render")
def render_command(
    pdf: Path = typer.Argument(
        ...,
        help="PDF file to render.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    backend: str = typer.Option(
        ...,
        "--backend",
        "-b",
        help="Backend to render with (see `sitro backends`).",
    ),
    scale: float = typer.Option(
        1.0,
        "--scale",
        help="Magnification relative to the native page size.",
        show_default=True,
    ),
    output_dir: Path = typer.Option(
        ...,
        "--output-dir",
        help="Destination directory for <n>.png pages (created if missing).",
        file_okay=False,
        dir_okay=True,
        writable=True,
    ),
    host_binaries: bool = typer.Option(
        False,
        "--host-binaries",
        help="Use SITRO_<NAME>_BIN host tools instead of the Docker environment when set.",
    ),
) -> None:
    try:
        selected = compare.parse_backends([backend])[0]
        options = RenderOptions(scale=scale)
    except ValueError as exc:
        logger.error(str(exc))
        raise typer.Exit(code=2) from exc

    renderer = Renderer(use_host_binaries=host_binaries)
    try:
        pages = renderer.render(selected, pdf.read_bytes(), options)
    except SitroError as exc:
        logger.error(f"{selected.value} failed on {pdf.name}: {exc}")
        raise typer.Exit(code=1) from exc

    output_dir.mkdir(parents=True, exist_ok=True)
    for number, page in enumerate(pages, start=1):
        (output_dir / f"{number}.png").write_bytes(page)
    logger.info(f"Wrote {len(pages)} page(s) to {output_dir}")


@app.command("compare")
@_synchronous
async def compare_command(
    pdfs: list[Path] | None = typer.Argument(
        None,
        help="PDF files to compare.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    input_dir: Path | None = typer.Option(
        None,
        "--input-dir",
        help="Directory containing PDF files.",
        exists=True,
        file_okay=False,
        dir_okay=True,
        readable=True,
    ),
    recursive: bool = typer.Option(
        False,
        "--recursive",
        help="Recurse into subdirectories when using --input-dir.",
    ),
    backends: list[str] | None = typer.Option(
        None,
        "--backend",
        "-b",
        help="Backend to include. Repeat to add more; defaults to all available.",
    ),
    scale: float = typer.Option(
        1.0,
        "--scale",
        help="Magnification relative to the native page size.",
        show_default=True,
    ),
    border: float | None = typer.Option(
        compare.DEFAULT_BORDER_WIDTH,
        "--border",
        help="Border thickness as a fraction of the shorter page side.",
        show_default=True,
    ),
    no_border: bool = typer.Option(
        False,
        "--no-border",
        help="Compose tiles without backend-colored borders.",
    ),
    output_dir: Path = typer.Option(
        ...,
        "--output-dir",
        help="Destination directory for pages and comparison strips (created if missing).",
        file_okay=False,
        dir_okay=True,
        writable=True,
    ),
    max_concurrency: int = typer.Option(
        DEFAULT_MAX_CONCURRENCY,
        "--max-concurrency",
        help="Maximum number of render jobs to run at once.",
        show_default=True,
    ),
    host_binaries: bool = typer.Option(
        False,
        "--host-binaries",
        help="Use SITRO_<NAME>_BIN host tools instead of the Docker environment when set.",
    ),
) -> int:
    if not pdfs and input_dir is None:
        logger.error("Provide PDF files or --input-dir.")
        raise typer.Exit(code=2)

    options = compare.CompareOptions(
        pdfs=pdfs or [],
        input_dir=input_dir,
        recursive=recursive,
        backends=backends or [],
        scale=scale,
        border_width=None if no_border else border,
        output_dir=output_dir,
        max_concurrency=max_concurrency,
        use_host_binaries=host_binaries,
    )
    result = await compare.run(options)
    if result != 0:
        raise typer.Exit(code=result)
    return result


def main(argv: Sequence[str] | None = None) -> int:
    try:
        result = app(args=list(argv) if argv is not None else None, standalone_mode=False)
    except SystemExit as exc:
        return int(exc.code or 0)
    return result if isinstance(result, int) else 0


if __name__ == "__main__":  # pragma: no cover
    app()
