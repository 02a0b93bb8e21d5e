"""Asyncio helpers shared by the sync engine."""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Optional

from .logging_utils import LoggerLike, ensure_structured_logger


def add_task_exception_logger(
    task: "asyncio.Future[Any]",
    *,
    logger: LoggerLike = None,
    context: Optional[str] = None,
) -> "asyncio.Future[Any]":
    """Retrieve and log the exception of ``task`` when it finishes.

    The future keeps its exception, so awaiting it later still raises.
    """
    task_logger = ensure_structured_logger(logger, fallback_name="asyncio")
    label = context
    if label is None and isinstance(task, asyncio.Task):
        label = task.get_name()

    def _done(done: "asyncio.Future[Any]") -> None:
        if done.cancelled():
            return
        exc = done.exception()
        if exc is not None:
            task_logger.error("Unhandled exception in %s: %s", label or "background task", exc, exc_info=exc)

    task.add_done_callback(_done)
    return task


def create_logged_task(
    coro: Awaitable[Any],
    *,
    logger: LoggerLike = None,
    context: Optional[str] = None,
    pending: Optional[set] = None,
) -> "asyncio.Future[Any]":
    """Schedule ``coro`` so its failure is always reported, optionally tracked in ``pending``."""
    task = asyncio.ensure_future(coro)
    if context and isinstance(task, asyncio.Task):
        task.set_name(context)

    add_task_exception_logger(task, logger=logger, context=context)

    if pending is not None:
        pending.add(task)
        task.add_done_callback(pending.discard)

    return task


def as_future(value: Any) -> "asyncio.Future[Any]":
    """Wrap a plain value or an awaitable in a future on the running loop."""
    if inspect.isawaitable(value):
        return asyncio.ensure_future(value)
    future = asyncio.get_running_loop().create_future()
    future.set_result(value)
    return future


async def maybe_await(value: Any) -> Any:
    """Await ``value`` when it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value


__all__ = ["add_task_exception_logger", "create_logged_task", "as_future", "maybe_await"]
