"""
Wire shapes exchanged with the remote peer.

Outbound messages are plain dicts built here; inbound dicts are parsed into
small dataclasses so the model can dispatch on a typed value. Binary
payloads always travel next to the dict, never inside it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from .errors import MessageFormatError
from .logging_utils import get_module_logger

logger = get_module_logger("Messages")

Json = Dict[str, Any]


class MessageKind(str, Enum):
    UPDATE = "update"
    CUSTOM = "custom"
    DISPLAY = "display"


class SyncMode(str, Enum):
    FULL = "full"
    PATCH = "patch"


class ExecutionState(str, Enum):
    BUSY = "busy"
    IDLE = "idle"
    STARTING = "starting"


# ----------------------------
# Outbound
# ----------------------------

def custom_message(content: Any) -> Json:
    return {"method": "custom", "content": content}


def sync_message(mode: SyncMode, data: Json, buffer_keys: Sequence[str] = ()) -> Json:
    return {
        "method": "sync",
        "mode": SyncMode(mode).value,
        "data": data,
        "buffer_keys": list(buffer_keys),
    }


# ----------------------------
# Inbound
# ----------------------------

@dataclass(frozen=True)
class UpdateMsg:
    state: Json
    buffer_keys: List[str] = field(default_factory=list)
    buffers: List[Any] = field(default_factory=list)

    kind = MessageKind.UPDATE


@dataclass(frozen=True)
class CustomMsg:
    content: Any
    buffers: List[Any] = field(default_factory=list)

    kind = MessageKind.CUSTOM


@dataclass(frozen=True)
class DisplayMsg:
    payload: Json
    buffers: List[Any] = field(default_factory=list)

    kind = MessageKind.DISPLAY


@dataclass(frozen=True)
class StatusMsg:
    state: ExecutionState

    @property
    def is_idle(self) -> bool:
        return self.state is ExecutionState.IDLE


InboundMsg = Union[UpdateMsg, CustomMsg, DisplayMsg]


def _coerce_kind(value: Any) -> MessageKind:
    if isinstance(value, MessageKind):
        return value
    try:
        return MessageKind(value)
    except ValueError as e:
        raise MessageFormatError(f"Unknown message method: {value!r}", code="unknown_method") from e


def parse_message(data: Any, buffers: Optional[Sequence[Any]] = None) -> InboundMsg:
    """Parse an inbound channel message into its typed form."""
    if not isinstance(data, dict):
        raise MessageFormatError(f"Message must be an object, got {type(data).__name__}")

    buffers = list(buffers or [])
    kind = _coerce_kind(data.get("method"))

    if kind is MessageKind.UPDATE:
        state = data.get("state") or {}
        buffer_keys = data.get("buffer_keys") or []
        if not isinstance(state, dict):
            raise MessageFormatError("update 'state' must be an object", code="invalid_state")
        if not isinstance(buffer_keys, (list, tuple)) or not all(isinstance(k, str) for k in buffer_keys):
            raise MessageFormatError("update 'buffer_keys' must be a list of strings", code="invalid_buffer_keys")
        return UpdateMsg(state=dict(state), buffer_keys=list(buffer_keys), buffers=buffers)

    if kind is MessageKind.CUSTOM:
        return CustomMsg(content=data.get("content"), buffers=buffers)

    return DisplayMsg(payload=dict(data), buffers=buffers)


def parse_status(data: Any) -> Optional[StatusMsg]:
    """Parse a status notification, or return None when it is not one."""
    if isinstance(data, StatusMsg):
        return data
    if not isinstance(data, dict):
        logger.warning("Status message is not a dict: %r", data)
        return None
    raw = data.get("state", data.get("execution_state"))
    try:
        return StatusMsg(state=ExecutionState(raw))
    except ValueError:
        logger.warning("Unknown execution state: %r", raw)
        return None


# ----------------------------
# Per-send callbacks
# ----------------------------

StatusHandler = Callable[[StatusMsg], Any]


@dataclass
class MessageCallbacks:
    """Callbacks a channel invokes for replies to one sent message."""
    status: Optional[StatusHandler] = None
    view: Any = None


__all__ = [
    "MessageKind",
    "SyncMode",
    "ExecutionState",
    "custom_message",
    "sync_message",
    "UpdateMsg",
    "CustomMsg",
    "DisplayMsg",
    "StatusMsg",
    "InboundMsg",
    "parse_message",
    "parse_status",
    "MessageCallbacks",
    "StatusHandler",
]
