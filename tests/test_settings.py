"""Tests for the centralised configuration loader."""

from __future__ import annotations

from pathlib import Path

import pytest

from sitro.config.settings import (
    DEFAULT_DOCKER_IMAGE,
    DEFAULT_EXEC_TIMEOUT,
    get_settings,
    host_binary_key,
)


_KEYS = (
    "SITRO_DOCKER_IMAGE",
    "SITRO_EXEC_TIMEOUT",
    "SITRO_READY_RETRIES",
    "SITRO_SESSION_ATTEMPTS",
    "SITRO_PULL_IMAGE",
    "SITRO_WORKSPACE_ROOT",
    "SITRO_PDFIUM_BIN",
    "SITRO_MUPDF_BIN",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _KEYS:
        monkeypatch.delenv(key, raising=False)


def _write_env(path: Path, content: str) -> None:
    lines = [line.strip() for line in content.strip().splitlines()]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def test_defaults_without_env_file(tmp_path: Path) -> None:
    settings = get_settings(env_file=tmp_path / "missing.env", reload=True)

    assert settings.docker.image == DEFAULT_DOCKER_IMAGE
    assert settings.docker.pull_image is True
    assert settings.session.exec_timeout == DEFAULT_EXEC_TIMEOUT
    assert settings.session.start_attempts == 1
    assert settings.session.workspace_root is None
    assert settings.host_binaries == {}


def test_env_file_values_are_loaded(tmp_path: Path) -> None:
    """Ensure values from a dedicated env file are parsed into the snapshot."""
    env_file = tmp_path / "test.env"
    _write_env(
        env_file,
        f"""
        SITRO_DOCKER_IMAGE=example/backends:1.2
        SITRO_EXEC_TIMEOUT=12.5
        SITRO_READY_RETRIES=7
        SITRO_SESSION_ATTEMPTS=3
        SITRO_PULL_IMAGE=false
        SITRO_WORKSPACE_ROOT={tmp_path}
        SITRO_PDFIUM_BIN=/opt/pdfium/render
        """,
    )
    settings = get_settings(env_file=env_file, reload=True)

    assert settings.env_file == env_file.resolve()
    assert settings.docker.image == "example/backends:1.2"
    assert settings.docker.pull_image is False
    assert settings.session.exec_timeout == 12.5
    assert settings.session.ready_retries == 7
    assert settings.session.start_attempts == 3
    assert settings.session.workspace_root == tmp_path
    assert settings.host_binary("pdfium") == "/opt/pdfium/render"
    assert settings.host_binary("mupdf") is None


def test_environment_variables_override_env_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Existing environment variables should take precedence over .env contents."""
    env_file = tmp_path / "override.env"
    _write_env(
        env_file,
        """
        SITRO_DOCKER_IMAGE=from/file:latest
        SITRO_EXEC_TIMEOUT=10
        """,
    )
    monkeypatch.setenv("SITRO_DOCKER_IMAGE", "from/env:latest")
    monkeypatch.setenv("SITRO_EXEC_TIMEOUT", "20")

    settings = get_settings(env_file=env_file, reload=True)

    assert settings.docker.image == "from/env:latest"
    assert settings.session.exec_timeout == 20.0


def test_unparseable_numbers_fall_back_to_defaults(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("SITRO_EXEC_TIMEOUT", "soon")
    monkeypatch.setenv("SITRO_SESSION_ATTEMPTS", "0")

    settings = get_settings(env_file=tmp_path / "missing.env", reload=True)

    assert settings.session.exec_timeout == DEFAULT_EXEC_TIMEOUT
    assert settings.session.start_attempts == 1


def test_reload_picks_up_changes(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Calling get_settings with reload=True should refresh cached values."""
    env_file = tmp_path / "reload.env"
    _write_env(env_file, "SITRO_MUPDF_BIN=/usr/bin/mutool")
    settings = get_settings(env_file=env_file, reload=True)
    assert settings.host_binary("mupdf") == "/usr/bin/mutool"

    monkeypatch.setenv("SITRO_MUPDF_BIN", "/opt/mutool")
    assert get_settings(env_file=env_file).host_binary("mupdf") == "/usr/bin/mutool"
    updated = get_settings(env_file=env_file, reload=True)
    assert updated.host_binary("mupdf") == "/opt/mutool"


def test_host_binary_key() -> None:
    assert host_binary_key("ghostscript") == "SITRO_GHOSTSCRIPT_BIN"
