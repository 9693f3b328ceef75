"""Core container lifecycle operations: start attached, wait until running."""

from __future__ import annotations

import contextlib
import os
import time
from typing import Any, Mapping, Optional, Sequence

from sitro.utils.log_utils import logger

from .container import DockerContainer
from .errors import DockerError
from .logging_utils import format_prefix, log_multiline
from .sdk import _DockerClient, attach_stdin, ensure_docker_sdk


__all__ = [
    "start_container",
    "wait_until_running",
    "start_and_wait_running",
]


def _ensure_image(client: _DockerClient, image: str) -> None:
    try:
        try:
            client.images.get(image)
        except Exception:
            logger.info(f"Pulling Docker image '{image}' ... this may take a while on first use")
            api_client = getattr(client, "api", None)
            if api_client and hasattr(api_client, "pull"):
                api_client.pull(image)  # type: ignore[arg-type]
            else:  # pragma: no cover
                client.images.pull(image)
    except Exception as e:
        raise DockerError(
            f"Failed to pull image '{image}'. Check network, image name, or registry auth."
        ) from e


def start_container(
    *,
    client: Optional[_DockerClient] = None,
    image: str,
    name: Optional[str] = None,
    volumes: Optional[Mapping[str, str]] = None,
    env: Optional[Mapping[str, str]] = None,
    user: Optional[str] = None,
    auto_remove: bool = True,
    entrypoint: Optional[Sequence[str]] = None,
    cmd: Optional[Sequence[str]] = None,
    pull: bool = True,
) -> DockerContainer:
    """Start a container whose lifetime is bound to an attached stdin socket.

    The container is created with stdin open, the stdin socket is attached
    *before* the container starts, and the handle keeps that socket. When
    the socket closes (explicitly, or because the owning process exited)
    the daemon closes the container's stdin; an entrypoint that blocks on
    stdin (e.g. ``cat``) then exits and ``auto_remove`` deletes the
    container.

    Args:
        client: Connected Docker client; a new one is created when omitted.
        image: Image reference (``repository[:tag]``) to run.
        name: Optional explicit container name.
        volumes: Host path -> container path mappings (rw mode).
        env: Environment variables to inject.
        user: Run container processes as this user string (``UID[:GID]`` form).
        auto_remove: If True, Docker auto-removes the container on exit.
        entrypoint: Override the image entrypoint (the keep-alive process).
        cmd: Override default image command with this sequence.
        pull: If True, ensure the image is present locally (pull when missing).

    Returns:
        DockerContainer: Handle owning the attached stdin socket.

    Raises:
        DockerError: On image pull failure, container creation, attach, or start failure.
    """
    client = client or ensure_docker_sdk()

    if pull:
        _ensure_image(client, image)

    volumes_map: dict[str, dict[str, str]] | None = None
    if volumes:
        volumes_map = {os.path.expanduser(h): {"bind": c, "mode": "rw"} for h, c in volumes.items()}

    try:
        container: Any = client.containers.create(
            image=image,
            name=name,
            environment=dict(env) if env else None,
            volumes=volumes_map,
            user=user,
            auto_remove=auto_remove,
            stdin_open=True,
            entrypoint=list(entrypoint) if entrypoint else None,
            command=list(cmd) if cmd else None,
        )
    except Exception as e:
        raise DockerError(f"Failed to create Docker container from image '{image}'.") from e

    try:
        stdin = attach_stdin(container)
    except DockerError:
        with contextlib.suppress(Exception):
            container.remove(force=True)
        raise

    handle = DockerContainer(
        id=getattr(container, "id", ""),
        name=getattr(container, "name", name or "") or (name or ""),
        image=image,
        auto_remove=auto_remove,
        _container=container,
        _stdin=stdin,
    )

    try:
        container.start()
    except Exception as e:
        handle.close_stdin()
        with contextlib.suppress(Exception):
            container.remove(force=True)
        raise DockerError(f"Failed to start Docker container '{handle.name}'.") from e

    return handle


def wait_until_running(
    container: DockerContainer,
    *,
    retries: int = 50,
    interval: float = 0.1,
    log_prefix: Optional[str] = None,
) -> None:
    """Poll the container status until it reports ``running``.

    Args:
        container: Freshly started container handle.
        retries: Maximum number of status checks.
        interval: Seconds to sleep between checks.
        log_prefix: Optional prefix for log lines.

    Raises:
        DockerError: If the container is not running after ``retries`` checks.
    """
    for attempt in range(max(retries, 1)):
        if container.is_running():
            logger.debug(
                f"{format_prefix(log_prefix)}Container '{container.name}' running "
                f"after {attempt + 1} check(s)"
            )
            return
        time.sleep(interval)

    logs = ""
    with contextlib.suppress(DockerError):
        logs = container.logs(tail=50)
    if logs:
        log_multiline(logs, log_prefix, level="warning")
    raise DockerError(
        f"Container '{container.name}' did not report a running state after {retries} checks."
    )


def start_and_wait_running(
    *,
    client: Optional[_DockerClient] = None,
    image: str,
    name: Optional[str] = None,
    volumes: Optional[Mapping[str, str]] = None,
    env: Optional[Mapping[str, str]] = None,
    user: Optional[str] = None,
    entrypoint: Optional[Sequence[str]] = None,
    cmd: Optional[Sequence[str]] = None,
    retries: int = 50,
    interval: float = 0.1,
    log_prefix: Optional[str] = None,
    pull: bool = True,
) -> DockerContainer:
    """Convenience helper to start an attached container then wait until running."""
    container = start_container(
        client=client,
        image=image,
        name=name,
        volumes=volumes,
        env=env,
        user=user,
        entrypoint=entrypoint,
        cmd=cmd,
        pull=pull,
    )
    try:
        wait_until_running(
            container,
            retries=retries,
            interval=interval,
            log_prefix=log_prefix,
        )
    except Exception:
        container.close_stdin()
        with contextlib.suppress(Exception):
            container.stop()
        raise
    return container
