"""Bounded parallel execution for render jobs."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Protocol, TypeVar

from tqdm import tqdm

from .log_utils import logger


class ProgressReporter(Protocol):
    """Lightweight progress reporter abstraction."""

    def start(self, total: int) -> None: ...

    def increment(self) -> None: ...

    def close(self) -> None: ...


class TqdmProgressReporter:
    """Progress reporter backed by tqdm."""

    def __init__(self, desc: str, update_interval: float = 1.0) -> None:
        self._desc = desc
        self._update_interval = update_interval
        self._pbar: tqdm | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._tick_handle: asyncio.TimerHandle | None = None

    def start(self, total: int) -> None:
        self._pbar = tqdm(total=total, desc=self._desc, smoothing=0, leave=False)
        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            self._loop = None
        if self._loop and self._update_interval > 0:
            self._schedule_tick()

    def _schedule_tick(self) -> None:
        if not self._loop or self._tick_handle is not None or self._pbar is None:
            return
        self._tick_handle = self._loop.call_later(self._update_interval, self._tick)

    def _tick(self) -> None:
        # Long renders run in threads; keep the elapsed time moving.
        self._tick_handle = None
        if self._pbar is None:
            return
        self._pbar.refresh()
        self._schedule_tick()

    def increment(self) -> None:
        if self._pbar is not None:
            self._pbar.update(1)

    def close(self) -> None:
        if self._tick_handle is not None:
            self._tick_handle.cancel()
            self._tick_handle = None
        if self._pbar is not None:
            self._pbar.close()
            self._pbar = None
        self._loop = None


T = TypeVar("T")


class ParallelExecutor:
    """Run async callables with bounded concurrency.

    Results keep the order of the inputs. A failing job never cancels the
    others: its slot holds the exception when ``return_exceptions`` is set,
    and ``None`` otherwise.
    """

    def __init__(
        self,
        *,
        max_concurrency: int,
        progress_reporter: ProgressReporter | None = None,
        return_exceptions: bool = False,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self._max_concurrency = max_concurrency
        self._progress = progress_reporter
        self._return_exceptions = return_exceptions

    async def map(
        self,
        fn: Callable[..., Awaitable[T]],
        *iterables: Sequence[object],
    ) -> list[T | BaseException | None]:
        """Execute ``fn`` across the zipped iterables."""
        if not iterables:
            return []

        lengths = [len(it) for it in iterables]
        if any(length != lengths[0] for length in lengths):
            raise ValueError("All iterables must have the same length.")

        total = lengths[0]
        results: list[T | BaseException | None] = [None] * total
        queue: asyncio.Queue[tuple[int, tuple[object, ...]]] = asyncio.Queue()
        for index, args in enumerate(zip(*iterables, strict=True)):
            queue.put_nowait((index, tuple(args)))

        if self._progress:
            self._progress.start(total)

        errors: dict[int, BaseException] = {}

        async def worker() -> None:
            while True:
                try:
                    index, args = queue.get_nowait()
                except asyncio.QueueEmpty:
                    break
                try:
                    results[index] = await fn(*args)
                except Exception as exc:
                    errors[index] = exc
                    results[index] = exc if self._return_exceptions else None
                    logger.debug(f"Parallel executor job {index} failed: {exc}")
                queue.task_done()
                if self._progress:
                    self._progress.increment()

        try:
            async with asyncio.TaskGroup() as tg:
                for _ in range(min(self._max_concurrency, total)):
                    tg.create_task(worker())
        finally:
            if self._progress:
                self._progress.close()

        if errors and not self._return_exceptions:
            logger.error(
                f"Parallel executor encountered {len(errors)} failed job(s): {sorted(errors)}."
            )
        return results


__all__ = ["ParallelExecutor", "ProgressReporter", "TqdmProgressReporter"]
