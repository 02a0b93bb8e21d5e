"""
Channel - ordered bidirectional pipe between a model and its remote peer.

Goal:
  Keep the sync engine independent of any concrete transport. The engine
  only needs to send a message (dict + binary buffers + reply callbacks),
  register handlers for inbound messages and close notifications, and
  close the channel.

Notes:
  - Delivery is assumed in order in each direction.
  - ``send`` only enqueues; there is no delivery confirmation.
  - ``InMemoryChannel`` records outbound traffic and lets a harness inject
    inbound messages, close notifications and status replies.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from .logging_utils import get_module_logger
from .messages import ExecutionState, MessageCallbacks, StatusMsg

MessageHandler = Callable[[Dict[str, Any], List[Any]], Any]
CloseHandler = Callable[[Dict[str, Any]], Any]


@runtime_checkable
class Channel(Protocol):
    """Transport-facing surface used by synced models."""

    @property
    def comm_id(self) -> str: ...

    def send(
        self,
        data: Dict[str, Any],
        callbacks: Optional[MessageCallbacks] = None,
        metadata: Optional[Dict[str, Any]] = None,
        buffers: Optional[Sequence[Any]] = None,
    ) -> None: ...

    def close(self, data: Optional[Dict[str, Any]] = None) -> None: ...

    def on_msg(self, handler: Optional[MessageHandler]) -> None: ...

    def on_close(self, handler: Optional[CloseHandler]) -> None: ...


@dataclass(slots=True)
class SentMessage:
    data: Dict[str, Any]
    buffers: List[Any] = field(default_factory=list)
    callbacks: Optional[MessageCallbacks] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


_ids = itertools.count(1)


class InMemoryChannel:
    """In-process channel used by tests and local harnesses.

    - Does not serialize anything
    - Keeps every outbound message in ``sent`` until drained
    - ``deliver``/``deliver_close``/``report_status`` play the remote side
    """

    def __init__(self, comm_id: Optional[str] = None) -> None:
        self._comm_id = comm_id or f"comm-{next(_ids)}"
        self.sent: List[SentMessage] = []
        self._last_sent: Optional[SentMessage] = None
        self.closed = False
        self._msg_handler: Optional[MessageHandler] = None
        self._close_handler: Optional[CloseHandler] = None
        self.logger = get_module_logger(f"InMemoryChannel.{self._comm_id}")

    @property
    def comm_id(self) -> str:
        return self._comm_id

    def send(
        self,
        data: Dict[str, Any],
        callbacks: Optional[MessageCallbacks] = None,
        metadata: Optional[Dict[str, Any]] = None,
        buffers: Optional[Sequence[Any]] = None,
    ) -> None:
        if self.closed:
            self.logger.warning("send on closed channel dropped: %s", data.get("method"))
            return
        message = SentMessage(
            data=data,
            buffers=list(buffers or []),
            callbacks=callbacks,
            metadata=dict(metadata or {}),
        )
        self.sent.append(message)
        self._last_sent = message

    def close(self, data: Optional[Dict[str, Any]] = None) -> None:
        if self.closed:
            return
        self.closed = True
        self.logger.debug("closed locally")

    def on_msg(self, handler: Optional[MessageHandler]) -> None:
        self._msg_handler = handler

    def on_close(self, handler: Optional[CloseHandler]) -> None:
        self._close_handler = handler

    # ---- helpers for tests / harness ----

    def drain(self) -> List[SentMessage]:
        out = list(self.sent)
        self.sent.clear()
        return out

    def deliver(self, data: Dict[str, Any], buffers: Optional[Sequence[Any]] = None) -> Any:
        """Hand an inbound message to the registered handler."""
        if self._msg_handler is None:
            self.logger.debug("no handler for inbound %s", data.get("method"))
            return None
        return self._msg_handler(data, list(buffers or []))

    def deliver_close(self, data: Optional[Dict[str, Any]] = None) -> Any:
        """Simulate the remote peer closing the channel."""
        self.closed = True
        if self._close_handler is None:
            return None
        return self._close_handler(data or {})

    def report_status(self, state: ExecutionState | str, message: Optional[SentMessage] = None) -> None:
        """Invoke the status callback attached to ``message`` (default: the latest send, drained or not)."""
        target = message or self._last_sent
        if target is None or target.callbacks is None or target.callbacks.status is None:
            self.logger.debug("no status callback for %s", state)
            return
        target.callbacks.status(StatusMsg(state=ExecutionState(state)))


__all__ = ["Channel", "InMemoryChannel", "SentMessage", "MessageHandler", "CloseHandler"]
