"""
Views bound to a synced model.

A view holds a non-owning reference to its model and only talks to it
through the model's public API. Rendering is left to subclasses; the base
class wires change notifications, outbound messages and teardown.
"""

from __future__ import annotations

import asyncio
import itertools
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Optional

from .asyncio_utils import create_logged_task
from .errors import ChildViewCreationError
from .events import ModelEvent, StateChange, Subscription
from .logging_utils import get_module_logger
from .messages import MessageCallbacks
from .view_list import ViewList

if TYPE_CHECKING:
    from .manager import WidgetManager
    from .model import WidgetModel

_ids = itertools.count(1)


class WidgetView:
    """Base view.

    Subclasses override ``render`` (once, after creation) and ``update``
    (after every change batch on the model).
    """

    def __init__(
        self,
        model: "WidgetModel",
        manager: Optional["WidgetManager"] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.model = model
        self.manager = manager
        self.options: Dict[str, Any] = dict(options or {})
        self.view_id = f"{model.model_id}-view{next(_ids)}"
        self.logger = get_module_logger(f"WidgetView.{self.view_id}")

        self.displayed: asyncio.Future = asyncio.get_running_loop().create_future()
        self.removed = False
        self._subscriptions: List[Subscription] = []
        self._remove_listeners: List[Callable[["WidgetView"], Any]] = []

        self.listen_to(ModelEvent.CHANGE, self._on_model_change)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.view_id!r})"

    # ---- hooks ----

    def render(self) -> Any:
        return None

    def update(self, change: Optional[StateChange] = None) -> Any:
        return None

    # ---- wiring ----

    def listen_to(
        self,
        event: ModelEvent,
        callback: Callable[[Any], Any],
        keys: Optional[Iterable[str]] = None,
    ) -> Subscription:
        """Subscribe to a model event for the lifetime of this view."""
        subscription = self.model.on(event, callback, keys=keys)
        self._subscriptions.append(subscription)
        return subscription

    def _on_model_change(self, change: StateChange) -> None:
        self.update(change)

    def mark_displayed(self) -> None:
        if not self.displayed.done():
            self.displayed.set_result(self)

    def on_remove(self, callback: Callable[["WidgetView"], Any]) -> None:
        self._remove_listeners.append(callback)

    async def create_child_view(self, child_model: "WidgetModel", **options: Any) -> "WidgetView":
        """Create a view for ``child_model`` with this view as parent."""
        if self.manager is None:
            raise ChildViewCreationError(f"{self!r} has no manager to create child views with")
        options.setdefault("parent", self)
        try:
            return await self.manager.create_view(child_model, options)
        except ChildViewCreationError:
            raise
        except Exception as exc:
            raise ChildViewCreationError(
                f"Could not create view for {child_model.model_id}: {exc}"
            ) from exc

    # ---- outbound ----

    def callbacks(self) -> MessageCallbacks:
        return self.model.callbacks(self)

    def send(self, content: Any, buffers: Optional[Iterable[Any]] = None) -> bool:
        return self.model.send(content, self.callbacks(), buffers)

    def touch(self) -> bool:
        """Push the model's pending local edits."""
        return self.model.save_changes(self.callbacks())

    # ---- teardown ----

    def remove(self) -> None:
        if self.removed:
            return
        self.removed = True

        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions.clear()

        if not self.displayed.done():
            self.displayed.cancel()

        listeners, self._remove_listeners = self._remove_listeners, []
        for listener in listeners:
            try:
                listener(self)
            except Exception as exc:
                self.logger.error("remove listener failed: %s", exc, exc_info=True)


class ContainerView(WidgetView):
    """View whose ``children`` attribute drives a list of child views."""

    def __init__(
        self,
        model: "WidgetModel",
        manager: Optional["WidgetManager"] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(model, manager, options)
        self.children_views = ViewList(self.add_child_view, self.remove_child_view)
        self.listen_to(ModelEvent.CHANGE, self._on_children_change, keys=["children"])

    def render(self) -> Any:
        return self.update_children()

    def _on_children_change(self, change: StateChange) -> None:
        self.update_children()

    def update_children(self) -> List[asyncio.Future]:
        return self.children_views.update(self.model.get("children") or [])

    async def add_child_view(self, model: "WidgetModel", index: int) -> WidgetView:
        return await self.create_child_view(model, index=index)

    def remove_child_view(self, view: WidgetView) -> None:
        view.remove()

    def remove(self) -> None:
        if self.removed:
            return
        super().remove()
        create_logged_task(
            self.children_views.remove(),
            logger=self.logger,
            context=f"{self.view_id}.remove_children",
        )


__all__ = ["WidgetView", "ContainerView"]
