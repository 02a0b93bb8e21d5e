"""Error kinds raised or reported by the sync engine.

Every error carries a short machine-readable ``code`` alongside the
human-readable message so log lines and tests can match on it.
"""

from __future__ import annotations

from typing import Optional


class WidgetSyncError(RuntimeError):
    code = "widget_sync_error"

    def __init__(self, msg: str, *, code: Optional[str] = None) -> None:
        super().__init__(msg)
        if code is not None:
            self.code = code


class SendWithoutChannelError(WidgetSyncError):
    code = "no_channel"


class EncodeError(WidgetSyncError):
    code = "encode_failed"


class DecodeError(WidgetSyncError):
    code = "decode_failed"


class MessageFormatError(WidgetSyncError):
    code = "invalid_message"


class AttributeValidationError(WidgetSyncError):
    code = "invalid_attribute"

    def __init__(self, name: str, msg: str, *, code: Optional[str] = None) -> None:
        super().__init__(f"{name}: {msg}", code=code)
        self.name = name


class ModelNotFoundError(WidgetSyncError, KeyError):
    code = "model_not_found"

    def __init__(self, model_id: str) -> None:
        super().__init__(f"No model registered under id {model_id!r}")
        self.model_id = model_id

    def __str__(self) -> str:
        return self.args[0]


class ChildViewCreationError(WidgetSyncError):
    code = "view_creation_failed"


__all__ = [
    "WidgetSyncError",
    "SendWithoutChannelError",
    "EncodeError",
    "DecodeError",
    "MessageFormatError",
    "AttributeValidationError",
    "ModelNotFoundError",
    "ChildViewCreationError",
]
