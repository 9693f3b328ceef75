from __future__ import annotations

from pathlib import Path
import subprocess
from typing import Any

import pytest

from sitro import host
from sitro.backends import Backend
from sitro.document import RenderOptions
from sitro.errors import ExecutionError, ExecutionTimeoutError, OutputContractError


class _FakeRun:
    """Records the argv and writes numbered files into the working directory."""

    def __init__(self, names: list[str], returncode: int = 0, stderr: str = "") -> None:
        self.names = names
        self.returncode = returncode
        self.stderr = stderr
        self.argv: list[str] = []
        self.kwargs: dict[str, Any] = {}

    def __call__(self, argv: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        self.argv = list(argv)
        self.kwargs = kwargs
        workdir = Path(kwargs["cwd"])
        assert (workdir / "file.pdf").read_bytes() == b"%PDF-1.7"
        for name in self.names:
            (workdir / name).write_bytes(name.encode())
        return subprocess.CompletedProcess(argv, self.returncode, "", self.stderr)


def test_mupdf_command_and_collection(monkeypatch: pytest.MonkeyPatch) -> None:
    fake = _FakeRun(["out-2.png", "out-1.png", "file.log"])
    monkeypatch.setattr(host.subprocess, "run", fake)

    pages = host.render_on_host(
        Backend.MUPDF,
        b"%PDF-1.7",
        RenderOptions(scale=2.0),
        binary="/usr/bin/mutool",
        timeout=30,
    )

    assert pages == [b"out-1.png", b"out-2.png"]
    workdir = Path(fake.kwargs["cwd"])
    assert fake.argv == [
        "/usr/bin/mutool",
        "draw",
        "-r",
        "144",
        "-o",
        str(workdir / "out-%d.png"),
        str(workdir / "file.pdf"),
    ]
    assert fake.kwargs["timeout"] == 30
    assert not workdir.exists()


def test_pdfbox_jar_runs_through_java(monkeypatch: pytest.MonkeyPatch) -> None:
    fake = _FakeRun(["file-1.png"])
    monkeypatch.setattr(host.subprocess, "run", fake)

    pages = host.render_on_host(
        Backend.PDFBOX, b"%PDF-1.7", RenderOptions(), binary="/opt/pdfbox-app.jar"
    )

    assert pages == [b"file-1.png"]
    assert fake.argv[:4] == ["java", "-jar", "/opt/pdfbox-app.jar", "render"]
    assert fake.argv[-2:] == ["-dpi", "72"]


def test_pdfjs_script_runs_through_node(monkeypatch: pytest.MonkeyPatch) -> None:
    fake = _FakeRun(["page-1.png", "page-2.png"])
    monkeypatch.setattr(host.subprocess, "run", fake)

    pages = host.render_on_host(
        Backend.PDFJS, b"%PDF-1.7", RenderOptions(scale=1.5), binary="/opt/pdfjs/render.mjs"
    )

    assert pages == [b"page-1.png", b"page-2.png"]
    assert fake.argv[0:2] == ["node", "/opt/pdfjs/render.mjs"]
    assert fake.argv[-1] == "1.5"


def test_nonzero_exit_raises_with_stderr(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(host.subprocess, "run", _FakeRun([], returncode=1, stderr="bad xref"))

    with pytest.raises(ExecutionError, match="bad xref") as excinfo:
        host.render_on_host(Backend.POPPLER, b"%PDF-1.7", RenderOptions(), binary="pdftoppm")
    assert excinfo.value.output == "bad xref"


def test_timeout_is_reported(monkeypatch: pytest.MonkeyPatch) -> None:
    def slow(argv: list[str], **kwargs: Any) -> None:
        raise subprocess.TimeoutExpired(argv, kwargs["timeout"])

    monkeypatch.setattr(host.subprocess, "run", slow)

    with pytest.raises(ExecutionTimeoutError, match="timed out after 5 seconds"):
        host.render_on_host(
            Backend.GHOSTSCRIPT, b"%PDF-1.7", RenderOptions(), binary="gs", timeout=5
        )


def test_missing_binary(monkeypatch: pytest.MonkeyPatch) -> None:
    def missing(argv: list[str], **kwargs: Any) -> None:
        raise FileNotFoundError(2, "No such file or directory", argv[0])

    monkeypatch.setattr(host.subprocess, "run", missing)

    with pytest.raises(ExecutionError, match="failed to run pdfium"):
        host.render_on_host(Backend.PDFIUM, b"%PDF-1.7", RenderOptions(), binary="pdfium_test")


def test_no_output_is_a_contract_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(host.subprocess, "run", _FakeRun(["notes.txt"]))

    with pytest.raises(OutputContractError):
        host.render_on_host(Backend.PDFIUM, b"%PDF-1.7", RenderOptions(), binary="pdfium_test")


def test_backends_without_a_host_command() -> None:
    assert not host.supports_host(Backend.SERENITY)
    assert not host.supports_host(Backend.PYMUPDF)
    with pytest.raises(ValueError):
        host.render_on_host(Backend.SERENITY, b"%PDF-1.7", RenderOptions(), binary="x")
