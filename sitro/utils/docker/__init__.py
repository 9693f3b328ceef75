"""High-level Docker utilities package.

This package provides structured helpers for:
    * Starting a container whose lifetime is bound to an attached stdin
        socket (``start_container``)
    * Polling until the container reports a running state
        (``wait_until_running`` / ``start_and_wait_running``)
    * Executing commands inside it (``DockerContainer.exec``)

Principles:
    * Keep low-level SDK usage encapsulated (see ``sdk.py``) so higher-level
        code can be easily mocked in tests.
    * Avoid side effects at import time (no client construction until needed).

Public API (re-exported):
        - DockerError
        - DockerContainer
        - ensure_docker_sdk
        - start_container
        - wait_until_running
        - start_and_wait_running
"""

from .container import DockerContainer
from .errors import DockerError
from .operations import start_and_wait_running, start_container, wait_until_running
from .sdk import ensure_docker_sdk


__all__ = [
    "DockerError",
    "DockerContainer",
    "ensure_docker_sdk",
    "start_container",
    "wait_until_running",
    "start_and_wait_running",
]
