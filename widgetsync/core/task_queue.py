"""Single-consumer FIFO for per-model asynchronous work."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from .asyncio_utils import create_logged_task
from .logging_utils import LoggerLike, ensure_structured_logger

UnitOfWork = Callable[[], Awaitable[Any]]


@dataclass(slots=True)
class _WorkItem:
    label: str
    func: UnitOfWork
    future: asyncio.Future


_STOP = object()


def _consume_exception(future: asyncio.Future) -> None:
    # Failures are logged by the worker; mark them retrieved.
    if not future.cancelled():
        future.exception()


class SerialTaskQueue:
    """Run submitted units strictly one after another in submission order.

    A failing unit is logged and its future carries the exception; the
    queue then moves on to the next unit. The worker task is created on the
    running loop by the first ``submit``.
    """

    def __init__(self, name: str, logger: LoggerLike = None) -> None:
        self.name = name
        self.logger = ensure_structured_logger(logger, fallback_name=name)
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Future] = None
        self._closed = False
        self._processed = 0
        self._failed = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    @property
    def processed(self) -> int:
        return self._processed

    @property
    def failed(self) -> int:
        return self._failed

    def submit(self, func: UnitOfWork, *, label: str = "unit") -> asyncio.Future:
        """Queue ``func`` and return a future for its result."""
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        future.add_done_callback(_consume_exception)

        if self._closed:
            self.logger.debug("%s closed; dropping %s", self.name, label)
            future.set_result(None)
            return future

        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._worker is None or self._worker.done():
            self._worker = create_logged_task(self._run(), logger=self.logger, context=f"{self.name}.worker")

        self._queue.put_nowait(_WorkItem(label=label, func=func, future=future))
        return future

    async def join(self) -> None:
        """Wait until every unit submitted so far has finished."""
        if self._queue is not None:
            await self._queue.join()

    def stop(self) -> None:
        """Refuse new units; the worker exits after draining what is queued."""
        if self._closed:
            return
        self._closed = True
        if self._queue is not None and self._worker is not None and not self._worker.done():
            self._queue.put_nowait(_STOP)

    async def _run(self) -> None:
        assert self._queue is not None
        while True:
            item = await self._queue.get()
            try:
                if item is _STOP:
                    return
                await self._execute(item)
            finally:
                self._queue.task_done()

    async def _execute(self, item: _WorkItem) -> None:
        try:
            result = await item.func()
        except asyncio.CancelledError:
            if not item.future.done():
                item.future.cancel()
            worker = asyncio.current_task()
            if worker is not None and worker.cancelling():
                raise
            # The unit cancelled itself; the worker keeps going.
            self._failed += 1
            self.logger.error("%s: %s was cancelled", self.name, item.label)
        except Exception as exc:
            self._failed += 1
            self.logger.error("%s: %s failed: %s", self.name, item.label, exc, exc_info=True)
            if not item.future.done():
                item.future.set_exception(exc)
        else:
            if not item.future.done():
                item.future.set_result(result)
        finally:
            self._processed += 1


__all__ = ["SerialTaskQueue", "UnitOfWork"]
