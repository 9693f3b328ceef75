"""Handle for the shared container and the stdin socket that keeps it alive."""

from __future__ import annotations

from collections.abc import Sequence
import contextlib
from dataclasses import dataclass, field
import time
from typing import Any

from .errors import DockerError
from .sdk import close_socket, container_is_running


def _decode(output: Any) -> str:
    if isinstance(output, bytes | bytearray):
        return output.decode("utf-8", errors="replace")
    return str(output or "")


@dataclass(slots=True)
class DockerContainer:
    """A started container plus the attached stdin socket, if still held.

    Attributes:
        id: Container ID (hash string).
        name: Container name.
        image: Image reference used to create it.
        auto_remove: Whether Docker deletes the container once it exits.
    """

    id: str
    name: str
    image: str
    _container: Any = field(repr=False)
    auto_remove: bool = True
    # Closing this socket sends EOF to the keep-alive entrypoint.
    _stdin: Any = field(default=None, repr=False)

    def is_running(self) -> bool:
        return container_is_running(self._container)

    @property
    def has_stdin(self) -> bool:
        return self._stdin is not None

    def close_stdin(self) -> None:
        """Release the stdin socket; later calls do nothing."""
        sock, self._stdin = self._stdin, None
        if sock is not None:
            close_socket(sock)

    def wait_stopped(self, timeout: float = 5.0, interval: float = 0.1) -> bool:
        """Poll until the container stops running; return False on timeout."""
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if not self.is_running():
                return True
            time.sleep(interval)
        return not self.is_running()

    def stop(self, timeout: float = 10.0) -> None:
        """Stop the container, removing it as well when Docker will not."""
        with contextlib.suppress(Exception):
            self._container.stop(timeout=int(timeout))
        if not self.auto_remove:
            with contextlib.suppress(Exception):
                self._container.remove(force=True)

    def logs(self, tail: int | None = None) -> str:
        """Return a snapshot of the combined stdout/stderr logs."""
        try:
            return _decode(self._container.logs(tail=tail, stdout=True, stderr=True))
        except Exception as e:  # pragma: no cover
            raise DockerError(f"Failed to retrieve logs of container '{self.name}'.") from e

    def exec(self, command: Sequence[str], *, user: str | None = None) -> tuple[int, str]:
        """Run ``command`` to completion and return ``(exit_code, output)``.

        The call blocks the current thread; the Docker client's HTTP timeout
        bounds how long it may wait. stdout and stderr are interleaved in
        ``output``. A missing exit code is reported as 1.

        Raises:
            DockerError: If the exec could not be created or its stream broke.
        """
        try:
            result = self._container.exec_run(cmd=list(command), user=user or "")
        except Exception as e:
            raise DockerError(f"Failed to exec inside Docker container: {e}") from e

        exit_code = getattr(result, "exit_code", None)
        text = _decode(getattr(result, "output", b""))
        return (1 if exit_code is None else exit_code), text


__all__ = ["DockerContainer"]
