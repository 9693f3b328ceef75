"""Exception raised by the Docker helpers."""

from __future__ import annotations


class DockerError(RuntimeError):
    """Raised when talking to the Docker daemon or a container fails.

    Covers daemon connectivity, image pulls, container creation, stdin
    attachment, exec failures, and containers that never report a running
    state. The session layer translates it into the render error types.
    """


__all__ = ["DockerError"]
