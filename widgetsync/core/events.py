"""
Model Events - typed subscriptions for synced models.

Listeners subscribe to one ``ModelEvent`` and get back a ``Subscription``
handle. Listeners run synchronously, in registration order, and an
exception raised by one listener is logged without affecting the others.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional

from .logging_utils import LoggerLike, ensure_structured_logger


class ModelEvent(Enum):
    """Events emitted by a synced model."""
    CHANGE = "change"
    CUSTOM_MSG = "msg:custom"
    COMM_CLOSE = "comm:close"
    DESTROY = "destroy"


@dataclass
class StateChange:
    """One batch of attribute changes."""
    model: Any
    changed: Dict[str, Any]
    previous: Dict[str, Any]
    from_remote: bool = False

    def has_changed(self, key: Optional[str] = None) -> bool:
        if key is None:
            return bool(self.changed)
        return key in self.changed


@dataclass
class CustomMessage:
    """Opaque custom message received from the remote peer."""
    model: Any
    content: Any
    buffers: List[Any] = field(default_factory=list)


@dataclass
class LifecycleNotice:
    """Emitted for ``COMM_CLOSE`` and ``DESTROY``."""
    model: Any
    event: ModelEvent


Listener = Callable[[Any], Any]


class Subscription:
    """Handle returned by ``EventHub.subscribe``; ``cancel()`` is idempotent."""

    __slots__ = ("event", "callback", "keys", "_hub")

    def __init__(
        self,
        hub: "EventHub",
        event: ModelEvent,
        callback: Listener,
        keys: Optional[FrozenSet[str]] = None,
    ) -> None:
        self._hub: Optional[EventHub] = hub
        self.event = event
        self.callback = callback
        self.keys = keys

    @property
    def active(self) -> bool:
        return self._hub is not None

    def matches(self, payload: Any) -> bool:
        if self.keys is None:
            return True
        changed = getattr(payload, "changed", None) or {}
        return any(key in changed for key in self.keys)

    def cancel(self) -> None:
        hub, self._hub = self._hub, None
        if hub is not None:
            hub._discard(self)

    def __repr__(self) -> str:
        name = getattr(self.callback, "__name__", repr(self.callback))
        return f"Subscription({self.event.value}, {name}, active={self.active})"


class EventHub:
    """Per-model listener table."""

    def __init__(self, logger: LoggerLike = None) -> None:
        self.logger = ensure_structured_logger(logger, fallback_name="EventHub")
        self._subscriptions: Dict[ModelEvent, List[Subscription]] = {event: [] for event in ModelEvent}

    def subscribe(
        self,
        event: ModelEvent,
        callback: Listener,
        *,
        keys: Optional[Iterable[str]] = None,
    ) -> Subscription:
        """Register ``callback`` for ``event``.

        For ``CHANGE``, ``keys`` restricts delivery to batches touching at
        least one of the named attributes; the callback still runs once
        per batch.
        """
        subscription = Subscription(self, event, callback, frozenset(keys) if keys is not None else None)
        self._subscriptions[event].append(subscription)
        return subscription

    def emit(self, event: ModelEvent, payload: Any) -> None:
        for subscription in list(self._subscriptions[event]):
            if not subscription.active or not subscription.matches(payload):
                continue
            try:
                subscription.callback(payload)
            except Exception as exc:
                self.logger.error(
                    "Listener %s failed handling %s: %s",
                    getattr(subscription.callback, "__name__", repr(subscription.callback)),
                    event.value,
                    exc,
                    exc_info=True,
                )

    def count(self, event: Optional[ModelEvent] = None) -> int:
        if event is not None:
            return len(self._subscriptions[event])
        return sum(len(subs) for subs in self._subscriptions.values())

    def clear(self) -> None:
        for subs in self._subscriptions.values():
            for subscription in list(subs):
                subscription._hub = None
            subs.clear()

    def _discard(self, subscription: Subscription) -> None:
        subs = self._subscriptions.get(subscription.event, [])
        if subscription in subs:
            subs.remove(subscription)


__all__ = [
    "ModelEvent",
    "StateChange",
    "CustomMessage",
    "LifecycleNotice",
    "Subscription",
    "EventHub",
]
