"""
ViewList - keep a list of child views in step with a list of models.

Only the shared prefix (compared by identity) is kept. Everything after the
first divergence is removed and recreated, so appending and truncating are
cheap while reordering is not.
"""

from __future__ import annotations

import asyncio
import functools
from typing import Any, Callable, List, Optional, Sequence

from .asyncio_utils import as_future, maybe_await
from .logging_utils import get_module_logger

CreateView = Callable[[Any, int], Any]
RemoveView = Callable[[Any], Any]

logger = get_module_logger("ViewList")


def _default_remove(view: Any) -> Any:
    return view.remove()


class ViewList:
    """Reconcile ``views`` (futures of views) against a list of models."""

    def __init__(self, create_view: CreateView, remove_view: Optional[RemoveView] = None) -> None:
        self._create_view = create_view
        self._remove_view = remove_view or _default_remove
        self._models: List[Any] = []
        self.views: List[asyncio.Future] = []

    @property
    def models(self) -> List[Any]:
        return list(self._models)

    def update(
        self,
        new_models: Sequence[Any],
        create_view: Optional[CreateView] = None,
        remove_view: Optional[RemoveView] = None,
    ) -> List[asyncio.Future]:
        """Reconcile against ``new_models`` and return the new view futures."""
        create_view = create_view or self._create_view
        remove_view = remove_view or self._remove_view
        new_models = list(new_models)

        shared = 0
        limit = min(len(self._models), len(new_models))
        while shared < limit and self._models[shared] is new_models[shared]:
            shared += 1

        for index, future in enumerate(self.views[shared:], start=shared):
            future.add_done_callback(functools.partial(self._remove_when_ready, remove_view, index))

        kept = self.views[:shared]
        for index, model in enumerate(new_models[shared:], start=shared):
            kept.append(self._create(create_view, model, index))

        self.views = kept
        self._models = new_models
        return list(self.views)

    def _create(self, create_view: CreateView, model: Any, index: int) -> asyncio.Future:
        try:
            future = as_future(create_view(model, index))
        except Exception as exc:
            future = asyncio.get_running_loop().create_future()
            future.set_exception(exc)
        future.add_done_callback(functools.partial(self._report_creation, index))
        return future

    @staticmethod
    def _report_creation(index: int, future: asyncio.Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error("Could not create view %d: %s", index, exc)

    @staticmethod
    def _remove_when_ready(remove_view: RemoveView, index: int, future: asyncio.Future) -> None:
        if future.cancelled() or future.exception() is not None:
            logger.debug("View %d never existed; nothing to remove", index)
            return
        try:
            result = remove_view(future.result())
        except Exception as exc:
            logger.error("Removing view %d failed: %s", index, exc, exc_info=True)
            return
        if asyncio.iscoroutine(result) or isinstance(result, asyncio.Future):
            as_future(result).add_done_callback(functools.partial(ViewList._report_removal, index))

    @staticmethod
    def _report_removal(index: int, future: asyncio.Future) -> None:
        if not future.cancelled() and future.exception() is not None:
            logger.error("Removing view %d failed: %s", index, future.exception())

    async def remove(self) -> None:
        """Remove every view once its future resolves, then clear the list."""
        views, self.views, self._models = self.views, [], []
        results = await asyncio.gather(*views, return_exceptions=True)
        for index, view in enumerate(results):
            if isinstance(view, BaseException):
                continue
            try:
                await maybe_await(self._remove_view(view))
            except Exception as exc:
                logger.error("Removing view %d failed: %s", index, exc, exc_info=True)


__all__ = ["ViewList", "CreateView", "RemoveView"]
