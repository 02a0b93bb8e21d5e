"""Top-level package for the widget state synchronization engine."""

from __future__ import annotations

from importlib import metadata

from .core import (
    ContainerView,
    DOMWidgetModel,
    InMemoryChannel,
    ModelRegistry,
    SyncSettings,
    ViewList,
    WidgetModel,
    WidgetView,
    configure_logging,
)

try:
    __version__ = metadata.version("widgetsync")
except metadata.PackageNotFoundError:  # pragma: no cover - local dev
    __version__ = "0.0.0"


__all__ = [
    "__version__",
    "WidgetModel",
    "DOMWidgetModel",
    "WidgetView",
    "ContainerView",
    "ViewList",
    "ModelRegistry",
    "InMemoryChannel",
    "SyncSettings",
    "configure_logging",
]
