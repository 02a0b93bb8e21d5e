"""
Model registry - owns model and view construction for one front end.

Models are stored as futures keyed by id so a model whose initial state is
still decoding can already be referenced by other models. A model is
dropped from the registry when it is destroyed.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Protocol, Sequence, Type

from .asyncio_utils import maybe_await
from .channel import Channel
from .codecs import attach_buffers, decode_state
from .config_manager import DEFAULT_MSG_THROTTLE, SyncSettings
from .errors import ChildViewCreationError, MessageFormatError, ModelNotFoundError, WidgetSyncError
from .events import LifecycleNotice
from .logging_utils import get_module_logger
from .model import DOMWidgetModel, WidgetModel
from .view import ContainerView, WidgetView


class WidgetManager(Protocol):
    """What models and views need from their manager."""

    async def get_model(self, model_id: str) -> WidgetModel: ...

    async def create_view(self, model: WidgetModel, options: Optional[Dict[str, Any]] = None) -> WidgetView: ...

    def display_model(self, message: Any, model: WidgetModel) -> Any: ...


class ModelRegistry:
    """Default ``WidgetManager``."""

    def __init__(self, settings: Optional[SyncSettings] = None) -> None:
        self.settings = settings or SyncSettings()
        self.logger = get_module_logger("ModelRegistry")
        self._models: Dict[str, asyncio.Future] = {}
        self._model_classes: Dict[str, Type[WidgetModel]] = {
            "WidgetModel": WidgetModel,
            "DOMWidgetModel": DOMWidgetModel,
        }
        self._view_classes: Dict[str, Type[WidgetView]] = {
            "WidgetView": WidgetView,
            "ContainerView": ContainerView,
        }
        self.displayed_views: List[WidgetView] = []

    # ------------------------------------------------------------------
    # Class registration

    def register_model_class(self, name: str, cls: Type[WidgetModel]) -> None:
        self._model_classes[name] = cls

    def register_view_class(self, name: str, cls: Type[WidgetView]) -> None:
        self._view_classes[name] = cls

    def _model_class(self, name: Optional[str]) -> Type[WidgetModel]:
        cls = self._model_classes.get(name or "WidgetModel")
        if cls is None:
            raise WidgetSyncError(f"No model class registered for {name!r}", code="unknown_model_class")
        return cls

    # ------------------------------------------------------------------
    # Models

    @property
    def model_ids(self) -> List[str]:
        return list(self._models)

    def has_model(self, model_id: str) -> bool:
        return model_id in self._models

    async def get_model(self, model_id: str) -> WidgetModel:
        future = self._models.get(model_id)
        if future is None:
            raise ModelNotFoundError(model_id)
        return await asyncio.shield(future)

    def _reserve(self, model_id: str) -> asyncio.Future:
        if model_id in self._models:
            raise WidgetSyncError(f"Model {model_id!r} already exists", code="duplicate_model")
        future = asyncio.get_running_loop().create_future()
        self._models[model_id] = future
        return future

    def _initial_attributes(self, cls: Type[WidgetModel], state: Dict[str, Any]) -> Dict[str, Any]:
        attributes = dict(state)
        if (
            "msg_throttle" not in attributes
            and "msg_throttle" in cls.schema
            and self.settings.msg_throttle != DEFAULT_MSG_THROTTLE
        ):
            attributes["msg_throttle"] = self.settings.msg_throttle
        return attributes

    def new_model(
        self,
        model_name: Optional[str],
        model_id: str,
        channel: Optional[Channel] = None,
        state: Optional[Dict[str, Any]] = None,
    ) -> WidgetModel:
        """Create and register a model from already-decoded state."""
        cls = self._model_class(model_name)
        future = self._reserve(model_id)
        try:
            model = cls(self, model_id, channel, self._initial_attributes(cls, state or {}))
        except Exception as exc:
            self._models.pop(model_id, None)
            future.set_exception(exc)
            future.exception()
            raise
        self._track(model, future)
        return model

    async def handle_comm_open(
        self,
        channel: Channel,
        data: Dict[str, Any],
        buffers: Optional[Sequence[Any]] = None,
    ) -> WidgetModel:
        """Create a model for a channel opened by the remote peer.

        ``data`` carries ``state`` and ``buffer_keys``; references inside the
        state may point at models that are still being created. Attributes the
        model class rejects are logged and dropped; an unknown model class or an
        undecodable state aborts the open.
        """
        state = data.get("state") or {}
        if not isinstance(state, dict):
            raise MessageFormatError("comm open 'state' must be an object", code="invalid_state")
        model_id = channel.comm_id
        cls = self._model_class(state.get("_model_name"))
        future = self._reserve(model_id)
        try:
            state = attach_buffers(state, data.get("buffer_keys") or [], list(buffers or []))
            decoded = await decode_state(state, cls._codecs, self)
            accepted = cls.accept_remote_state(decoded, self.logger)
            model = cls(self, model_id, channel, self._initial_attributes(cls, accepted))
        except Exception as exc:
            self.logger.error("Could not create model %s: %s", model_id, exc)
            self._models.pop(model_id, None)
            future.set_exception(exc)
            future.exception()
            raise
        self._track(model, future)
        self.logger.debug("Created %s for channel %s", cls.__name__, model_id)
        return model

    def _track(self, model: WidgetModel, future: asyncio.Future) -> None:
        model.on_destroy(self._on_model_destroyed)
        future.set_result(model)

    def _on_model_destroyed(self, notice: LifecycleNotice) -> None:
        model_id = notice.model.model_id
        future = self._models.get(model_id)
        if future is not None and future.done() and not future.cancelled() and future.exception() is None:
            if future.result() is notice.model:
                del self._models[model_id]
                self.logger.debug("Unregistered model %s", model_id)

    async def close_all(self) -> None:
        """Close every registered model and wait for their queues to drain."""
        models = [f.result() for f in self._models.values() if f.done() and f.exception() is None]
        for model in models:
            model.close()
        await asyncio.gather(*(model.join() for model in models), return_exceptions=True)

    # ------------------------------------------------------------------
    # Views

    async def create_view(self, model: WidgetModel, options: Optional[Dict[str, Any]] = None) -> WidgetView:
        """Instantiate and render the view class named by ``_view_name``."""
        options = dict(options or {})
        view_name = options.pop("view_name", None) or model.get("_view_name")
        cls = self._view_classes.get(view_name)
        if cls is None:
            raise ChildViewCreationError(f"No view class registered for {view_name!r}", code="unknown_view_class")

        view = cls(model, self, options)
        future = asyncio.get_running_loop().create_future()
        model.views[view.view_id] = future
        view.on_remove(lambda removed: model.views.pop(removed.view_id, None))
        try:
            await maybe_await(view.render())
        except Exception as exc:
            model.views.pop(view.view_id, None)
            future.set_exception(exc)
            future.exception()
            view.remove()
            raise ChildViewCreationError(f"Rendering {view_name} for {model.model_id} failed: {exc}") from exc
        future.set_result(view)
        return view

    async def display_model(self, message: Any, model: WidgetModel, **options: Any) -> WidgetView:
        view = await self.create_view(model, options)
        self.display_view(message, view)
        return view

    def display_view(self, message: Any, view: WidgetView) -> None:
        """Hook for placing a view on screen; records it and marks it displayed."""
        self.displayed_views.append(view)
        view.mark_displayed()


__all__ = ["WidgetManager", "ModelRegistry"]
