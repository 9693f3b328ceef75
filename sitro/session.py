"""Process-wide Docker environment shared by all non-native backends.

One container is started lazily on first use and kept alive for the life
of the process. Its lifetime is tied to a stdin socket that only the
session holds: closing the socket, or the process exiting, makes the
container's keep-alive entrypoint exit and Docker removes the container.

Render calls run concurrently against the same container. Each call gets
its own randomly named workspace under the session root (mounted into the
container), so calls never see each other's files.
"""

from __future__ import annotations

import atexit
from collections.abc import Callable, Iterator
import contextlib
from dataclasses import dataclass
import math
import os
from pathlib import Path
import shutil
import tempfile
import threading
import time
import uuid

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .collector import CONTAINER_OUTPUT_PATTERN, collect
from .config import SitroSettings, get_settings
from .document import INPUT_FILENAME, RenderedDocument, RenderOptions
from .errors import ExecutionError, ExecutionTimeoutError, SessionConstructionError
from .utils.docker import DockerContainer, DockerError, ensure_docker_sdk, start_and_wait_running
from .utils.docker.logging_utils import format_prefix, log_multiline
from .utils.log_utils import logger


MOUNT_POINT = "/work"
# Blocks on stdin and exits on EOF, i.e. when the session's socket closes.
KEEPALIVE_ENTRYPOINT: tuple[str, ...] = ("cat",)
LOG_PREFIX = "[sitro-env]"
# coreutils `timeout` exit status.
_TIMEOUT_EXIT_CODE = 124
# 128 + SIGKILL; also what an out-of-memory kill looks like.
_KILLED_EXIT_CODE = 137
# Extra time the Docker HTTP client waits beyond the in-container timeout.
_CLIENT_TIMEOUT_GRACE = 30.0


@dataclass(frozen=True, slots=True)
class Workspace:
    """A per-call directory, seen from the host and from inside the container."""

    host_path: Path
    container_path: str

    @property
    def input_path(self) -> Path:
        return self.host_path / INPUT_FILENAME


class EnvironmentSession:
    """Owns the shared container and the root workspace mounted into it.

    Never mutated after construction except by ``close``, which is terminal.
    """

    def __init__(
        self,
        container: DockerContainer,
        root: Path,
        *,
        exec_entrypoint: str,
        exec_timeout: float,
    ) -> None:
        self._container = container
        self._root = root
        self._exec_entrypoint = exec_entrypoint
        self._exec_timeout = exec_timeout
        self._close_lock = threading.Lock()
        self._closed = False

    @classmethod
    def start(cls, settings: SitroSettings | None = None) -> EnvironmentSession:
        """Start the container and wait until Docker reports it running.

        Attempts are retried with exponential backoff when
        ``SITRO_SESSION_ATTEMPTS`` is above one.

        Raises:
            DockerError: If the container never became ready.
        """
        settings = settings or get_settings()
        retrying = Retrying(
            stop=stop_after_attempt(settings.session.start_attempts),
            wait=wait_exponential(multiplier=settings.session.start_backoff),
            retry=retry_if_exception_type(DockerError),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                number = attempt.retry_state.attempt_number
                if number > 1:
                    logger.warning(f"{LOG_PREFIX} Retrying environment startup (attempt {number})")
                session = cls._start_once(settings)
        return session

    @classmethod
    def _start_once(cls, settings: SitroSettings) -> EnvironmentSession:
        root_parent = settings.session.workspace_root
        if root_parent is not None:
            root_parent.mkdir(parents=True, exist_ok=True)
        root = Path(tempfile.mkdtemp(prefix="sitro-", dir=root_parent)).resolve()
        # Containers may run as another user and must reach the workspaces.
        os.chmod(root, 0o711)

        image = settings.docker.image
        logger.info(f"{LOG_PREFIX} Starting environment from image '{image}'")
        try:
            client = ensure_docker_sdk(
                timeout=settings.session.exec_timeout + _CLIENT_TIMEOUT_GRACE,
                max_pool_size=settings.docker.pool_size,
            )
            container = start_and_wait_running(
                client=client,
                image=image,
                name=f"sitro-{os.getpid()}-{uuid.uuid4().hex[:8]}",
                volumes={str(root): MOUNT_POINT},
                user=settings.docker.container_user,
                entrypoint=KEEPALIVE_ENTRYPOINT,
                retries=settings.session.ready_retries,
                interval=settings.session.ready_interval,
                log_prefix=LOG_PREFIX,
                pull=settings.docker.pull_image,
            )
        except BaseException:
            shutil.rmtree(root, ignore_errors=True)
            raise

        logger.info(f"{LOG_PREFIX} Environment '{container.name}' is running")
        return cls(
            container,
            root,
            exec_entrypoint=settings.docker.exec_entrypoint,
            exec_timeout=settings.session.exec_timeout,
        )

    @property
    def root(self) -> Path:
        return self._root

    @property
    def container(self) -> DockerContainer:
        return self._container

    @property
    def closed(self) -> bool:
        return self._closed

    @contextlib.contextmanager
    def workspace(self) -> Iterator[Workspace]:
        """Create a uniquely named workspace and remove it on exit."""
        name = uuid.uuid4().hex
        host_path = self._root / name
        host_path.mkdir()
        os.chmod(host_path, 0o777)
        workspace = Workspace(host_path=host_path, container_path=f"{MOUNT_POINT}/{name}")
        try:
            yield workspace
        finally:
            self._remove_workspace(workspace)

    def _remove_workspace(self, workspace: Workspace) -> None:
        try:
            shutil.rmtree(workspace.host_path)
            return
        except FileNotFoundError:
            return
        except OSError as exc:
            # Files created by a root process in the container may not be
            # removable from the host.
            logger.debug(f"{LOG_PREFIX} Host cleanup of {workspace.host_path} failed: {exc}")
        if not self._closed:
            with contextlib.suppress(DockerError):
                self._container.exec(["rm", "-rf", workspace.container_path])
        if workspace.host_path.exists():
            logger.warning(f"{LOG_PREFIX} Workspace {workspace.host_path} could not be removed")

    def _command(
        self, backend_name: str, options: RenderOptions, workspace: Workspace
    ) -> list[str]:
        return [
            "timeout",
            "-s",
            "KILL",
            str(math.ceil(self._exec_timeout)),
            self._exec_entrypoint,
            backend_name,
            options.scale_arg(),
            workspace.container_path,
        ]

    def _timed_out(self, exit_code: int, elapsed: float) -> bool:
        if exit_code == _TIMEOUT_EXIT_CODE:
            return True
        return exit_code == _KILLED_EXIT_CODE and elapsed >= self._exec_timeout

    def render(
        self, backend_name: str, pdf_bytes: bytes, options: RenderOptions
    ) -> RenderedDocument:
        """Render ``pdf_bytes`` with a backend inside the shared container.

        Raises:
            ExecutionError: If the exec failed or the command exited non-zero.
            ExecutionTimeoutError: If the command exceeded the exec timeout.
            OutputContractError: If no ``out-<N>.png`` files were produced.
        """
        if self._closed:
            raise ExecutionError("The shared environment session has been closed")

        with self.workspace() as workspace:
            workspace.input_path.write_bytes(pdf_bytes)
            command = self._command(backend_name, options, workspace)
            logger.debug(f"{LOG_PREFIX} exec {' '.join(command)}")
            started = time.monotonic()
            try:
                exit_code, output = self._container.exec(command)
            except DockerError as exc:
                raise ExecutionError(
                    f"{backend_name}: docker exec failed", output=str(exc)
                ) from exc

            if self._timed_out(exit_code, time.monotonic() - started):
                raise ExecutionTimeoutError(
                    f"{backend_name} exceeded the {self._exec_timeout:g}s execution timeout",
                    output=output,
                )
            if exit_code != 0:
                log_multiline(output, f"{LOG_PREFIX} [{backend_name}]", level="debug")
                raise ExecutionError(
                    f"{backend_name}: docker execution failed with exit code {exit_code}",
                    output=output,
                )
            return collect(workspace.host_path, CONTAINER_OUTPUT_PATTERN)

    def close(self) -> None:
        """Release the keep-alive socket, stop the container, and drop the root."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        logger.debug(f"{format_prefix(LOG_PREFIX)}Closing environment '{self._container.name}'")
        self._container.close_stdin()
        if not self._container.wait_stopped(timeout=5.0):
            self._container.stop(timeout=5.0)
        shutil.rmtree(self._root, ignore_errors=True)


class SharedSession:
    """Lazily constructs one session and hands it to every caller.

    Construction happens at most once. If it fails, the failure is cached
    and re-raised as ``SessionConstructionError`` to every later caller
    until the process restarts.
    """

    def __init__(
        self,
        factory: Callable[[], EnvironmentSession],
        *,
        register_atexit: bool = True,
    ) -> None:
        self._factory = factory
        self._register_atexit = register_atexit
        self._lock = threading.Lock()
        self._session: EnvironmentSession | None = None
        self._error: BaseException | None = None

    def get(self) -> EnvironmentSession:
        session = self._session
        if session is not None:
            return session
        with self._lock:
            if self._session is None and self._error is None:
                try:
                    session = self._factory()
                except Exception as exc:
                    self._error = exc
                    logger.error(f"{LOG_PREFIX} Failed to start the shared environment: {exc}")
                else:
                    self._session = session
                    if self._register_atexit:
                        atexit.register(session.close)
                    return session
            if self._session is not None:
                return self._session
            raise SessionConstructionError(
                f"The shared rendering environment could not be started: {self._error}"
            ) from self._error

    def peek(self) -> EnvironmentSession | None:
        """Return the session if it was already constructed."""
        return self._session

    def close(self) -> None:
        """Close the constructed session, if any; later renders through it fail."""
        with self._lock:
            session = self._session
            if session is None:
                return
        session.close()


_default_session = SharedSession(lambda: EnvironmentSession.start())


def get_session() -> EnvironmentSession:
    """Return the process-wide session, starting it on first use."""
    return _default_session.get()


def default_shared_session() -> SharedSession:
    return _default_session


__all__ = [
    "EnvironmentSession",
    "SharedSession",
    "Workspace",
    "default_shared_session",
    "get_session",
    "MOUNT_POINT",
]
