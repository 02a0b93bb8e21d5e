"""
Widget Model - front-end half of a remote-backed widget.

A model keeps its attribute state consistent with a kernel-side peer over
a ``Channel``:

- local ``set()`` calls accumulate in a buffered diff that
  ``save_changes()`` flushes as a patch,
- at most ``msg_throttle`` sync messages are in flight; further syncs fold
  into one held message that is released when the peer reports idle,
- values being applied from the peer are held in ``state_lock`` so they are
  not echoed back,
- outgoing encodes and incoming applies each run through their own
  single-consumer queue, so both directions stay in submission order.
"""

from __future__ import annotations

import asyncio
import functools
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar, Dict, Iterable, Mapping, Optional

import numpy as np

from .asyncio_utils import as_future, create_logged_task, maybe_await
from .channel import Channel
from .codecs import MODEL_REFERENCES, Codec, attach_buffers, decode_state, encode_state
from .errors import AttributeValidationError, EncodeError, MessageFormatError, SendWithoutChannelError, WidgetSyncError
from .events import CustomMessage, EventHub, LifecycleNotice, ModelEvent, StateChange, Subscription
from .logging_utils import get_module_logger
from .messages import (
    CustomMsg,
    DisplayMsg,
    InboundMsg,
    MessageCallbacks,
    StatusMsg,
    SyncMode,
    UpdateMsg,
    custom_message,
    parse_message,
    parse_status,
    sync_message,
)
from .schema import Field, Schema, codec_table, default_state, extend_schema, positive_int
from .task_queue import SerialTaskQueue
from .values import reference_token

if TYPE_CHECKING:
    from .manager import WidgetManager

_MISSING = object()


def values_equal(a: Any, b: Any) -> bool:
    """Equality used for change detection and echo suppression."""
    if a is b:
        return True
    if isinstance(a, np.ndarray) or isinstance(b, np.ndarray):
        return (
            isinstance(a, np.ndarray)
            and isinstance(b, np.ndarray)
            and a.dtype == b.dtype
            and np.array_equal(a, b)
        )
    if type(a) is not type(b):
        return False
    try:
        return bool(a == b)
    except Exception:
        return False


@dataclass
class BufferedSync:
    """The single held outgoing sync while the throttle is saturated."""
    attrs: Dict[str, Any]
    mode: SyncMode
    callbacks: Optional[MessageCallbacks] = None


class WidgetModel:
    """Synced model base class.

    Subclasses declare their attributes by extending ``schema``::

        class SliderModel(WidgetModel):
            schema = extend_schema(
                WidgetModel.schema,
                _model_name=Field("SliderModel", types=str),
                value=Field(0, types=int),
            )
    """

    schema: ClassVar[Schema] = {
        "_model_module": Field("jupyter-js-widgets", types=str),
        "_model_name": Field("WidgetModel", types=str),
        "_view_module": Field("jupyter-js-widgets", types=str),
        "_view_name": Field(None, types=str),
        "msg_throttle": Field(3, types=int, validate=positive_int),
    }
    _codecs: ClassVar[Dict[str, Codec]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls._codecs = codec_table(cls.schema)

    def __init__(
        self,
        manager: Optional["WidgetManager"],
        model_id: str,
        channel: Optional[Channel] = None,
        attributes: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.manager = manager
        self._model_id = str(model_id)
        self.logger = get_module_logger(f"WidgetModel.{self._model_id}")

        self._events = EventHub(self.logger)
        self._attributes: Dict[str, Any] = default_state(type(self).schema)
        self._buffered_state_diff: Dict[str, Any] = {}

        # Throttle accounting
        self.pending_msgs = 0
        self.msg_buffer: Optional[BufferedSync] = None

        # Values currently being applied from the remote peer
        self.state_lock: Optional[Dict[str, Any]] = None

        self.views: Dict[str, asyncio.Future] = {}

        self._outgoing = SerialTaskQueue(f"WidgetModel.{self._model_id}.send", self.logger)
        self._incoming = SerialTaskQueue(f"WidgetModel.{self._model_id}.apply", self.logger)
        self._closed = False

        self.comm: Optional[Channel] = None
        self.comm_live = False
        if channel is not None:
            self.comm = channel
            channel.on_msg(self._handle_comm_msg)
            channel.on_close(self._handle_comm_closed)
            self.comm_live = True

        if attributes:
            self._set(attributes, notify=False, buffer=False)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self._model_id!r}, live={self.comm_live})"

    # =========================================================================
    # Identity
    # =========================================================================

    @property
    def model_id(self) -> str:
        return self._model_id

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def codecs(self) -> Dict[str, Codec]:
        return type(self)._codecs

    def to_json(self) -> str:
        """Serialized form of this model inside another model's state."""
        return reference_token(self._model_id)

    # =========================================================================
    # State access
    # =========================================================================

    def get(self, name: str, default: Any = None) -> Any:
        return self._attributes.get(name, default)

    def get_state(self, drop_defaults: bool = False) -> Dict[str, Any]:
        """Copy of the attributes, optionally without those equal to their default."""
        if not drop_defaults:
            return dict(self._attributes)
        schema = type(self).schema
        return {
            name: value
            for name, value in self._attributes.items()
            if name not in schema or not values_equal(value, schema[name].default)
        }

    @property
    def buffered_state_diff(self) -> Dict[str, Any]:
        return dict(self._buffered_state_diff)

    @property
    def throttle_limit(self) -> int:
        return self.get("msg_throttle") or 1

    def set(self, key: Any, value: Any = _MISSING) -> Dict[str, Any]:
        """Set one attribute (``set(name, value)``) or several (``set(mapping)``).

        Every value is validated first; if any is invalid nothing is applied.
        Returns the attributes that actually changed.
        """
        if value is _MISSING:
            if not isinstance(key, Mapping):
                raise TypeError("set() needs a name and a value, or a mapping")
            attrs = dict(key)
        else:
            attrs = {key: value}
        return self._set(attrs)

    @classmethod
    def _check(cls, name: str, value: Any) -> Any:
        spec = cls.schema.get(name)
        if spec is None:
            raise AttributeValidationError(name, f"unknown attribute for {cls.__name__}", code="unknown_attribute")
        return spec.check(name, value)

    @classmethod
    def accept_remote_state(cls, state: Mapping[str, Any], logger: Any = None) -> Dict[str, Any]:
        """Validate peer state attribute by attribute; invalid ones are logged and dropped."""
        logger = logger or get_module_logger(cls.__name__)
        accepted: Dict[str, Any] = {}
        for name, value in state.items():
            try:
                accepted[name] = cls._check(name, value)
            except AttributeValidationError as exc:
                logger.error("Error setting state: %s", exc)
        return accepted

    def _set(
        self,
        attrs: Mapping[str, Any],
        *,
        notify: bool = True,
        buffer: bool = True,
        validated: bool = False,
        from_remote: bool = False,
    ) -> Dict[str, Any]:
        if not validated:
            attrs = {name: self._check(name, value) for name, value in attrs.items()}

        changed: Dict[str, Any] = {}
        previous: Dict[str, Any] = {}
        for name, value in attrs.items():
            old = self._attributes.get(name, _MISSING)
            if old is not _MISSING and values_equal(old, value):
                continue
            previous[name] = None if old is _MISSING else old
            self._attributes[name] = value
            changed[name] = value

        if not changed:
            return changed

        if buffer:
            self._buffer_changes(changed)
        if notify:
            self._events.emit(
                ModelEvent.CHANGE,
                StateChange(model=self, changed=changed, previous=previous, from_remote=from_remote),
            )
        return changed

    def _buffer_changes(self, changed: Mapping[str, Any]) -> None:
        lock = self.state_lock
        for name, value in changed.items():
            if lock is not None and name in lock and values_equal(lock[name], value):
                # Applied from the peer; any older local edit is superseded.
                self._buffered_state_diff.pop(name, None)
            else:
                self._buffered_state_diff[name] = value

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def on(self, event: ModelEvent, callback, *, keys: Optional[Iterable[str]] = None) -> Subscription:
        return self._events.subscribe(event, callback, keys=keys)

    def on_change(self, callback, keys: Optional[Iterable[str]] = None) -> Subscription:
        return self._events.subscribe(ModelEvent.CHANGE, callback, keys=keys)

    def on_some_change(self, keys: Iterable[str], callback) -> Subscription:
        """Call ``callback`` once per change batch touching any of ``keys``."""
        return self._events.subscribe(ModelEvent.CHANGE, callback, keys=list(keys))

    def on_custom_msg(self, callback) -> Subscription:
        return self._events.subscribe(ModelEvent.CUSTOM_MSG, callback)

    def on_destroy(self, callback) -> Subscription:
        return self._events.subscribe(ModelEvent.DESTROY, callback)

    def listener_count(self, event: Optional[ModelEvent] = None) -> int:
        return self._events.count(event)

    # =========================================================================
    # Outgoing
    # =========================================================================

    def callbacks(self, view: Any = None) -> MessageCallbacks:
        """Reply callbacks for a message sent on behalf of ``view``."""
        return MessageCallbacks(status=self.handle_status, view=view)

    def send(
        self,
        content: Any,
        callbacks: Optional[MessageCallbacks] = None,
        buffers: Optional[Iterable[Any]] = None,
    ) -> bool:
        """Send a custom message to the peer."""
        if self.comm is None:
            self.logger.warning("Custom message dropped: %s", SendWithoutChannelError("model has no channel"))
            return False
        self.comm.send(custom_message(content), callbacks or self.callbacks(), {}, list(buffers or []))
        self.pending_msgs += 1
        return True

    def save_changes(self, callbacks: Optional[MessageCallbacks] = None) -> bool:
        """Push the buffered diff to the peer as a patch."""
        if not self.comm_live:
            return False
        diff, self._buffered_state_diff = self._buffered_state_diff, {}
        return self.flush(diff, SyncMode.PATCH, callbacks)

    def flush(
        self,
        attrs: Optional[Mapping[str, Any]] = None,
        mode: SyncMode | str = SyncMode.PATCH,
        callbacks: Optional[MessageCallbacks] = None,
    ) -> bool:
        """Sync state to the peer.

        ``FULL`` sends the whole current state, ``PATCH`` sends ``attrs``.
        Values equal to what is being applied from the peer are left out.
        Returns True when a message was dispatched or buffered.
        """
        mode = SyncMode(mode)
        if self.comm is None:
            error = SendWithoutChannelError(f"{mode.value} sync for model {self._model_id} has no channel")
            self.logger.error("Sync error: %s", error)
            return False

        if mode is SyncMode.FULL:
            outgoing = self.get_state()
            self._buffered_state_diff = {}
        else:
            outgoing = dict(attrs or {})

        lock = self.state_lock
        if lock is not None:
            for name in list(outgoing):
                if name in lock and values_equal(outgoing[name], lock[name]):
                    del outgoing[name]

        if not outgoing:
            return False

        callbacks = callbacks or self.callbacks()

        if self.pending_msgs >= self.throttle_limit:
            if mode is SyncMode.PATCH and self.msg_buffer is not None:
                self.msg_buffer.attrs.update(outgoing)
                self.msg_buffer.callbacks = callbacks
            else:
                self.msg_buffer = BufferedSync(attrs=outgoing, mode=mode, callbacks=callbacks)
            self.logger.debug(
                "Throttled (%d pending); buffered %s",
                self.pending_msgs,
                sorted(self.msg_buffer.attrs),
            )
            return True

        self._dispatch_sync(outgoing, mode, callbacks)
        self.pending_msgs += 1
        return True

    def _dispatch_sync(
        self,
        attrs: Dict[str, Any],
        mode: SyncMode,
        callbacks: Optional[MessageCallbacks],
    ) -> asyncio.Future:
        async def _send() -> Any:
            try:
                encoded = await encode_state(attrs, self.codecs, self)
            except EncodeError:
                self.pending_msgs = max(0, self.pending_msgs - 1)
                raise
            if self.comm is None:
                self.logger.debug("Channel released before %s sync went out; dropped", mode.value)
                return None
            self.comm.send(
                sync_message(mode, encoded.state, encoded.buffer_keys),
                callbacks,
                {},
                encoded.buffers,
            )
            return encoded

        return self._outgoing.submit(_send, label=f"{mode.value} sync")

    # =========================================================================
    # Incoming
    # =========================================================================

    def handle_status(self, message: StatusMsg | Dict[str, Any]) -> None:
        """Handle an execution-state reply; only ``idle`` affects the throttle."""
        status = parse_status(message)
        if status is None or self.comm is None:
            return
        if status.is_idle:
            self.on_remote_idle()

    def on_remote_idle(self) -> None:
        if self.msg_buffer is not None and self.throttle_limit == self.pending_msgs:
            buffered, self.msg_buffer = self.msg_buffer, None
            self.logger.debug("Releasing buffered %s sync", buffered.mode.value)
            self._dispatch_sync(buffered.attrs, buffered.mode, buffered.callbacks)
        else:
            self.pending_msgs = max(0, self.pending_msgs - 1)

    def handle_message(self, data: Dict[str, Any], buffers: Optional[Iterable[Any]] = None) -> Optional[asyncio.Future]:
        """Entry point for raw inbound channel messages."""
        try:
            message = parse_message(data, list(buffers or []))
        except MessageFormatError as exc:
            self.logger.warning("Ignoring message: %s", exc)
            return None
        return self.on_remote_message(message)

    def on_remote_message(self, message: InboundMsg) -> asyncio.Future:
        """Dispatch a parsed inbound message.

        ``update`` and ``display`` run on the incoming queue, so each sees all
        state received before it; ``display`` only starts the view there.
        ``custom`` is re-emitted immediately.
        """
        match message:
            case UpdateMsg():
                return self._incoming.submit(functools.partial(self._apply_update, message), label="update")
            case DisplayMsg():
                return self._incoming.submit(functools.partial(self._display, message), label="display")
            case CustomMsg(content=content, buffers=buffers):
                self._events.emit(ModelEvent.CUSTOM_MSG, CustomMessage(model=self, content=content, buffers=list(buffers)))
                return as_future(None)
        raise MessageFormatError(f"Unsupported message {message!r}")

    async def _apply_update(self, message: UpdateMsg) -> Dict[str, Any]:
        state = attach_buffers(message.state, message.buffer_keys, message.buffers)
        decoded = await decode_state(state, self.codecs, self.manager, on_error=self._report_decode_error)
        if self._closed:
            self.logger.debug("Closed before update applied; dropped %s", sorted(decoded))
            return {}
        return self.apply_remote_state(decoded)

    def _report_decode_error(self, name: str, exc: BaseException) -> None:
        self.logger.error("Couldn't decode %r for model %s: %s", name, self._model_id, exc)

    async def _display(self, message: DisplayMsg) -> asyncio.Future:
        """Start displaying; view creation runs outside the incoming queue."""
        if self.manager is None:
            raise WidgetSyncError(f"Model {self._model_id} has no manager to display with", code="no_manager")
        return create_logged_task(
            maybe_await(self.manager.display_model(message, self)),
            logger=self.logger,
            context=f"{self._model_id}.display",
        )

    def apply_remote_state(self, state: Mapping[str, Any]) -> Dict[str, Any]:
        """Apply state received from the peer.

        Invalid attributes are logged and skipped; the rest are applied as a
        single change. The echo lock is always released before returning.
        """
        self.state_lock = dict(state)
        try:
            accepted = type(self).accept_remote_state(state, self.logger)
            return self._set(accepted, validated=True, from_remote=True)
        finally:
            self.state_lock = None

    def _handle_comm_msg(self, data: Dict[str, Any], buffers: Optional[Iterable[Any]] = None) -> Optional[asyncio.Future]:
        return self.handle_message(data, buffers)

    def _handle_comm_closed(self, data: Optional[Dict[str, Any]] = None) -> None:
        self._events.emit(ModelEvent.COMM_CLOSE, LifecycleNotice(model=self, event=ModelEvent.COMM_CLOSE))
        self.close(comm_closed=True)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def join(self) -> None:
        """Wait for queued sends and applies submitted so far."""
        await self._outgoing.join()
        await self._incoming.join()

    def close(self, comm_closed: bool = False) -> None:
        """Tear the model down; safe to call more than once."""
        if self._closed:
            return
        self._closed = True

        comm = self.comm
        if comm is not None:
            if not comm_closed:
                comm.close()
            comm.on_msg(None)
            comm.on_close(None)

        self._events.emit(ModelEvent.DESTROY, LifecycleNotice(model=self, event=ModelEvent.DESTROY))

        self.comm = None
        self.comm_live = False
        self.msg_buffer = None
        self._outgoing.stop()
        self._incoming.stop()

        for view_id, future in list(self.views.items()):
            future.add_done_callback(functools.partial(self._remove_view, view_id))

        self._events.clear()
        self.logger.debug("Closed (remote=%s)", comm_closed)

    def _remove_view(self, view_id: str, future: asyncio.Future) -> None:
        self.views.pop(view_id, None)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            self.logger.warning("View %s never finished creating: %s", view_id, exc)
            return
        future.result().remove()


class DOMWidgetModel(WidgetModel):
    schema = extend_schema(
        WidgetModel.schema,
        _model_name=Field("DOMWidgetModel", types=str),
        layout=Field(None, codec=MODEL_REFERENCES),
        visible=Field(True, types=bool),
        _dom_classes=Field([], types=(list, tuple)),
    )


__all__ = ["WidgetModel", "DOMWidgetModel", "BufferedSync", "values_equal"]
