from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import pytest

from sitro.utils.docker import (
    DockerContainer,
    DockerError,
    start_and_wait_running,
    start_container,
    wait_until_running,
)
from sitro.utils.docker.logging_utils import format_prefix, strip_ansi


class _FakeSocket:
    def __init__(self) -> None:
        self.shutdown_called = False
        self.closed = False

    def shutdown(self, how: int) -> None:
        self.shutdown_called = True

    def close(self) -> None:
        self.closed = True


class _FakeSdkContainer:
    def __init__(self, *, statuses: list[str] | None = None, fail_start: bool = False) -> None:
        self.id = "abc123"
        self.name = "sitro-test"
        self.status = "created"
        self._statuses = list(statuses or ["running"])
        self.fail_start = fail_start
        self.socket = _FakeSocket()
        self.attached_before_start: bool | None = None
        self.started = False
        self.stopped = False
        self.removed = False
        self.exec_result: Any = SimpleNamespace(exit_code=0, output=b"ok\n")

    def attach_socket(self, params: dict[str, int]) -> _FakeSocket:
        assert params == {"stdin": 1, "stream": 1}
        self.attached_before_start = not self.started
        return self.socket

    def start(self) -> None:
        if self.fail_start:
            raise RuntimeError("port already allocated")
        self.started = True

    def reload(self) -> None:
        if self._statuses:
            self.status = self._statuses.pop(0)

    def logs(self, **_: Any) -> bytes:
        return b"\x1b[31mboom\x1b[0m\n"

    def exec_run(self, **kwargs: Any) -> Any:
        self.exec_kwargs = kwargs
        return self.exec_result

    def stop(self, timeout: int = 10) -> None:
        self.stopped = True

    def remove(self, force: bool = False) -> None:
        self.removed = True


class _FakeClient:
    def __init__(self, container: _FakeSdkContainer) -> None:
        self.container = container
        self.create_kwargs: dict[str, Any] = {}
        self.pulled: list[str] = []
        self.containers = SimpleNamespace(create=self._create)
        self.images = SimpleNamespace(get=self._get_image)
        self.api = SimpleNamespace(pull=self.pulled.append)

    def _create(self, **kwargs: Any) -> _FakeSdkContainer:
        self.create_kwargs = kwargs
        return self.container

    def _get_image(self, image: str) -> None:
        raise LookupError(image)


def test_start_container_attaches_stdin_before_start() -> None:
    sdk_container = _FakeSdkContainer()
    client = _FakeClient(sdk_container)

    handle = start_container(
        client=client,  # type: ignore[arg-type]
        image="example/backends:test",
        name="sitro-test",
        volumes={"/tmp/sitro-root": "/work"},
        entrypoint=("cat",),
    )

    assert sdk_container.attached_before_start is True
    assert sdk_container.started
    assert handle.has_stdin
    assert client.pulled == ["example/backends:test"]
    assert client.create_kwargs["stdin_open"] is True
    assert client.create_kwargs["auto_remove"] is True
    assert client.create_kwargs["entrypoint"] == ["cat"]
    assert client.create_kwargs["volumes"] == {
        "/tmp/sitro-root": {"bind": "/work", "mode": "rw"}
    }


def test_start_container_cleans_up_when_start_fails() -> None:
    sdk_container = _FakeSdkContainer(fail_start=True)

    with pytest.raises(DockerError, match="Failed to start"):
        start_container(
            client=_FakeClient(sdk_container),  # type: ignore[arg-type]
            image="example/backends:test",
            pull=False,
        )

    assert sdk_container.socket.closed
    assert sdk_container.removed


def test_wait_until_running_polls_status() -> None:
    sdk_container = _FakeSdkContainer(statuses=["created", "created", "running"])
    handle = DockerContainer(id="abc", name="n", image="i", _container=sdk_container)

    wait_until_running(handle, retries=5, interval=0.0)

    assert handle.is_running()


def test_start_and_wait_running_releases_a_container_that_never_runs() -> None:
    sdk_container = _FakeSdkContainer(statuses=["created"] * 10)

    with pytest.raises(DockerError, match="did not report a running state"):
        start_and_wait_running(
            client=_FakeClient(sdk_container),  # type: ignore[arg-type]
            image="example/backends:test",
            retries=3,
            interval=0.0,
            pull=False,
        )

    assert sdk_container.socket.shutdown_called
    assert sdk_container.socket.closed
    assert sdk_container.stopped


def test_exec_decodes_output_and_defaults_missing_exit_code() -> None:
    sdk_container = _FakeSdkContainer()
    handle = DockerContainer(id="abc", name="n", image="i", _container=sdk_container)

    assert handle.exec(["render", "mupdf", "1", "/work/x"]) == (0, "ok\n")
    assert sdk_container.exec_kwargs["user"] == ""

    sdk_container.exec_result = SimpleNamespace(exit_code=None, output=b"")
    assert handle.exec(["true"]) == (1, "")


def test_exec_failure_raises_docker_error() -> None:
    sdk_container = _FakeSdkContainer()

    def broken(**_: Any) -> None:
        raise ConnectionError("socket closed")

    sdk_container.exec_run = broken  # type: ignore[method-assign]
    handle = DockerContainer(id="abc", name="n", image="i", _container=sdk_container)

    with pytest.raises(DockerError, match="socket closed"):
        handle.exec(["true"])


def test_close_stdin_is_idempotent() -> None:
    sdk_container = _FakeSdkContainer()
    handle = DockerContainer(
        id="abc", name="n", image="i", _container=sdk_container, _stdin=sdk_container.socket
    )

    handle.close_stdin()
    handle.close_stdin()

    assert sdk_container.socket.closed
    assert not handle.has_stdin


def test_logging_helpers() -> None:
    assert strip_ansi("\x1b[31mred\x1b[0m") == "red"
    assert format_prefix("[sitro-env]") == "\\[sitro-env] "
    assert format_prefix(None) == ""
