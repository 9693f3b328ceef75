"""Run a backend's command-line tool directly on the host.

An alternative to the shared Docker environment for machines that have the
rendering tools installed. Each backend's binary is configured with its
own ``SITRO_<NAME>_BIN`` key; every call runs in a private temporary
directory holding ``file.pdf``.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
import subprocess
import tempfile

from .backends import Backend
from .collector import collect
from .document import INPUT_FILENAME, RenderedDocument, RenderOptions
from .errors import ExecutionError, ExecutionTimeoutError
from .utils.log_utils import logger


CommandBuilder = Callable[[str, Path, Path, RenderOptions], list[str]]


@dataclass(frozen=True, slots=True)
class HostCommand:
    """How to invoke one backend's CLI and where it writes its pages.

    Attributes:
        build: ``(binary, input_path, workdir, options) -> argv``.
        output_pattern: Regex with one capture group for the 1-based page number.
    """

    build: CommandBuilder
    output_pattern: str


def _launcher(binary: str) -> list[str]:
    if binary.endswith(".jar"):
        return ["java", "-jar", binary]
    if binary.endswith((".mjs", ".js")):
        return ["node", binary]
    return [binary]


def _pdfium(binary: str, pdf: Path, workdir: Path, options: RenderOptions) -> list[str]:
    return [binary, str(pdf), str(workdir / "out-%d.png"), options.scale_arg()]


def _mupdf(binary: str, pdf: Path, workdir: Path, options: RenderOptions) -> list[str]:
    dpi = format(options.dpi, "g")
    return [binary, "draw", "-r", dpi, "-o", str(workdir / "out-%d.png"), str(pdf)]


def _poppler(binary: str, pdf: Path, workdir: Path, options: RenderOptions) -> list[str]:
    # pdftoppm zero-pads page numbers for longer documents (out-01.png).
    return [binary, "-r", format(options.dpi, "g"), "-png", str(pdf), str(workdir / "out")]


def _ghostscript(binary: str, pdf: Path, workdir: Path, options: RenderOptions) -> list[str]:
    return [
        binary,
        "-dNOPAUSE",
        "-dBATCH",
        "-dSAFER",
        "-sDEVICE=png16m",
        f"-r{format(options.dpi, 'g')}",
        f"-sOutputFile={workdir / 'out-%d.png'}",
        str(pdf),
    ]


def _pdfbox(binary: str, pdf: Path, workdir: Path, options: RenderOptions) -> list[str]:
    # PDFBox 3 writes <input stem>-<N>.png next to the input file.
    return [
        *_launcher(binary),
        "render",
        "-i",
        str(pdf),
        "-format",
        "png",
        "-dpi",
        format(options.dpi, "g"),
    ]


def _pdfjs(binary: str, pdf: Path, workdir: Path, options: RenderOptions) -> list[str]:
    return [
        *_launcher(binary),
        str(pdf),
        str(workdir),
        options.scale_arg(),
    ]


HOST_COMMANDS: dict[Backend, HostCommand] = {
    Backend.PDFIUM: HostCommand(_pdfium, r"out-(\d+)\.png"),
    Backend.MUPDF: HostCommand(_mupdf, r"out-(\d+)\.png"),
    Backend.POPPLER: HostCommand(_poppler, r"out-(\d+)\.png"),
    Backend.GHOSTSCRIPT: HostCommand(_ghostscript, r"out-(\d+)\.png"),
    Backend.PDFBOX: HostCommand(_pdfbox, r"file-(\d+)\.png"),
    Backend.PDFJS: HostCommand(_pdfjs, r"page-(\d+)\.png"),
}


def supports_host(backend: Backend) -> bool:
    return backend in HOST_COMMANDS


def render_on_host(
    backend: Backend,
    pdf_bytes: bytes,
    options: RenderOptions,
    *,
    binary: str,
    timeout: float | None = None,
) -> RenderedDocument:
    """Render with a host-installed tool in a private temporary directory.

    Args:
        backend: Backend whose CLI should run.
        pdf_bytes: Input document.
        options: Render options.
        binary: Path to the tool (or script/jar for pdf.js and PDFBox).
        timeout: Seconds before the process is killed.

    Raises:
        ValueError: If the backend has no host command.
        ExecutionError: If the tool is missing or exits non-zero.
        ExecutionTimeoutError: If the tool exceeded ``timeout``.
        OutputContractError: If no numbered output files were produced.
    """
    command = HOST_COMMANDS.get(backend)
    if command is None:
        raise ValueError(f"{backend.value} cannot run from a host binary")

    with tempfile.TemporaryDirectory(prefix=f"sitro-{backend.value}-") as tmp:
        workdir = Path(tmp)
        input_path = workdir / INPUT_FILENAME
        input_path.write_bytes(pdf_bytes)
        argv = command.build(binary, input_path, workdir, options)
        logger.debug(f"[host] {' '.join(argv)}")

        try:
            result = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
                cwd=workdir,
            )
        except subprocess.TimeoutExpired as exc:
            raise ExecutionTimeoutError(
                f"{backend.value} timed out after {timeout:g} seconds"
            ) from exc
        except OSError as exc:
            raise ExecutionError(
                f"failed to run {backend.value} ({argv[0]})", output=str(exc)
            ) from exc

        if result.returncode != 0:
            raise ExecutionError(
                f"{backend.value} exited with code {result.returncode}",
                output=result.stderr or result.stdout,
            )
        return collect(workdir, command.output_pattern)


__all__ = ["HOST_COMMANDS", "HostCommand", "render_on_host", "supports_host"]
