"""Centralised environment configuration for sitro.

This module ensures `.env` loading happens in one place and exposes a
typed snapshot of the Docker environment, timeouts, and host binary
overrides. Downstream modules call `get_settings()` instead of touching
`os.environ` directly, making it easier to validate values and override
behaviour in tests.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from functools import lru_cache
import os
from pathlib import Path

from dotenv import load_dotenv


_DEFAULT_ENV_PATH = Path(__file__).resolve().parents[2] / ".env"

DEFAULT_DOCKER_IMAGE = "vallaris/sitro-backends:latest"
DEFAULT_EXEC_ENTRYPOINT = "render"
DEFAULT_EXEC_TIMEOUT = 300.0
DEFAULT_READY_RETRIES = 50
DEFAULT_READY_INTERVAL = 0.1
DEFAULT_SESSION_ATTEMPTS = 1
DEFAULT_SESSION_BACKOFF = 2.0
DEFAULT_DOCKER_POOL_SIZE = 32

# Backends that can be run from a binary installed on the host. Each one is
# configured through its own ``SITRO_<NAME>_BIN`` key.
HOST_BINARY_BACKENDS: tuple[str, ...] = (
    "pdfium",
    "mupdf",
    "poppler",
    "ghostscript",
    "pdfbox",
    "pdfjs",
)


def _coerce_int(value: str | None) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _coerce_float(value: str | None) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _coerce_bool(value: str | None, default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() not in {"0", "false", "no", "off"}


def host_binary_key(backend_name: str) -> str:
    """Return the environment key holding the host binary for ``backend_name``."""
    return f"SITRO_{backend_name.upper()}_BIN"


@dataclass(frozen=True)
class DockerSettings:
    image: str
    exec_entrypoint: str
    pull_image: bool
    container_user: str | None
    pool_size: int


@dataclass(frozen=True)
class SessionSettings:
    exec_timeout: float
    ready_retries: int
    ready_interval: float
    start_attempts: int
    start_backoff: float
    workspace_root: Path | None


@dataclass(frozen=True)
class SitroSettings:
    """Top-level snapshot of configuration values."""

    env_file: Path
    docker: DockerSettings
    session: SessionSettings
    host_binaries: Mapping[str, str] = field(default_factory=dict)

    def host_binary(self, backend_name: str) -> str | None:
        """Return the configured host binary for a backend, if any."""
        return self.host_binaries.get(backend_name)


def _resolve_env_path(env_file: os.PathLike[str] | str | None) -> Path:
    if env_file is None:
        return _DEFAULT_ENV_PATH
    return Path(env_file).resolve()


@lru_cache(maxsize=4)
def _load_settings(env_path: Path) -> SitroSettings:
    # Existing environment variables take precedence over `.env` defaults.
    load_dotenv(dotenv_path=env_path, override=False)

    docker = DockerSettings(
        image=os.getenv("SITRO_DOCKER_IMAGE") or DEFAULT_DOCKER_IMAGE,
        exec_entrypoint=os.getenv("SITRO_EXEC_ENTRYPOINT") or DEFAULT_EXEC_ENTRYPOINT,
        pull_image=_coerce_bool(os.getenv("SITRO_PULL_IMAGE"), True),
        container_user=os.getenv("SITRO_CONTAINER_USER") or None,
        pool_size=_coerce_int(os.getenv("SITRO_DOCKER_POOL_SIZE")) or DEFAULT_DOCKER_POOL_SIZE,
    )

    workspace_root = os.getenv("SITRO_WORKSPACE_ROOT")
    session = SessionSettings(
        exec_timeout=_coerce_float(os.getenv("SITRO_EXEC_TIMEOUT")) or DEFAULT_EXEC_TIMEOUT,
        ready_retries=_coerce_int(os.getenv("SITRO_READY_RETRIES")) or DEFAULT_READY_RETRIES,
        ready_interval=_coerce_float(os.getenv("SITRO_READY_INTERVAL"))
        or DEFAULT_READY_INTERVAL,
        start_attempts=max(
            _coerce_int(os.getenv("SITRO_SESSION_ATTEMPTS")) or DEFAULT_SESSION_ATTEMPTS, 1
        ),
        start_backoff=_coerce_float(os.getenv("SITRO_SESSION_BACKOFF"))
        or DEFAULT_SESSION_BACKOFF,
        workspace_root=Path(workspace_root).expanduser() if workspace_root else None,
    )

    host_binaries: dict[str, str] = {}
    for name in HOST_BINARY_BACKENDS:
        value = os.getenv(host_binary_key(name))
        if value:
            host_binaries[name] = value

    return SitroSettings(
        env_file=env_path,
        docker=docker,
        session=session,
        host_binaries=host_binaries,
    )


def get_settings(
    env_file: os.PathLike[str] | str | None = None,
    *,
    reload: bool = False,
) -> SitroSettings:
    """Return the cached settings snapshot.

    Args:
        env_file: Optional explicit path to a `.env` file. When omitted the repo
            root `.env` file is used.
        reload: When True the cached snapshot is cleared before loading.
    """
    env_path = _resolve_env_path(env_file)
    if reload:
        _load_settings.cache_clear()
    return _load_settings(env_path)
