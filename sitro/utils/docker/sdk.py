"""Low-level Docker SDK access and socket helpers (internal)."""

from __future__ import annotations

import contextlib
import socket
from typing import TYPE_CHECKING, Any

import docker

from .errors import DockerError


if TYPE_CHECKING:  # pragma: no cover - typing only
    from docker import DockerClient as _DockerClient
    from docker.models.containers import Container as _DockerContainer
else:  # pragma: no cover - runtime fallback when typing info unavailable
    _DockerClient = object
    _DockerContainer = object


def ensure_docker_sdk(
    *, timeout: float | None = None, max_pool_size: int | None = None
) -> _DockerClient:
    """Return connected Docker client or raise DockerError with guidance.

    Args:
        timeout: HTTP timeout in seconds for every API call, including
            blocking ``exec`` calls. Defaults to the SDK default (60s).
        max_pool_size: Connection pool size; raise it when many threads
            issue requests concurrently.
    """
    kwargs: dict[str, Any] = {}
    if timeout is not None:
        kwargs["timeout"] = int(timeout)
    if max_pool_size is not None:
        kwargs["max_pool_size"] = max_pool_size
    try:
        client = docker.from_env(**kwargs)
        client.ping()
        return client
    except FileNotFoundError as e:  # pragma: no cover
        raise DockerError(
            "Could not find the Docker socket. Is the Docker daemon running? "
            "Start it (e.g., 'systemctl start docker' or 'colima start' / 'docker desktop') "
            "and retry."
        ) from e
    except PermissionError as e:  # pragma: no cover
        raise DockerError(
            "Permission denied accessing the Docker socket. Add your user to the 'docker' "
            "group or run with appropriate permissions."
        ) from e
    except Exception as e:  # pragma: no cover
        raise DockerError(
            "Failed to connect to Docker daemon via SDK. Ensure the daemon is running."
        ) from e


def container_is_running(container: _DockerContainer) -> bool:
    """Return True if docker container object status is 'running'."""
    with contextlib.suppress(Exception):
        container.reload()
        return getattr(container, "status", None) == "running"
    return False


def attach_stdin(container: _DockerContainer) -> Any:
    """Attach to the container's stdin and return the raw socket.

    The SDK keeps the HTTP response referenced from the socket; once the
    socket is closed (or garbage collected) the daemon closes the
    container's stdin.
    """
    try:
        return container.attach_socket(params={"stdin": 1, "stream": 1})
    except Exception as e:
        raise DockerError("Failed to attach to the container's stdin.") from e


def close_socket(sock: Any) -> None:
    """Shut down and close an attached socket, whatever its wrapper type."""
    raw = getattr(sock, "_sock", sock)
    with contextlib.suppress(OSError, AttributeError):
        raw.shutdown(socket.SHUT_RDWR)
    with contextlib.suppress(OSError, AttributeError):
        sock.close()
    if raw is not sock:
        with contextlib.suppress(OSError, AttributeError):
            raw.close()
