"""Model and view classes used across the unit tests."""

from typing import Any, List, Optional

from widgetsync.core.codecs import MODEL_REFERENCES
from widgetsync.core.events import StateChange
from widgetsync.core.model import WidgetModel
from widgetsync.core.schema import Field, extend_schema
from widgetsync.core.view import WidgetView


class CounterModel(WidgetModel):
    """Small model with a few plain attributes."""

    schema = extend_schema(
        WidgetModel.schema,
        _model_name=Field("CounterModel", types=str),
        _view_name=Field("RecordingView", types=str),
        value=Field(0, types=int),
        label=Field("", types=str),
        payload=Field(None, types=(bytes, bytearray, memoryview)),
    )


class BoxModel(WidgetModel):
    """Model whose ``children`` hold references to other models."""

    schema = extend_schema(
        WidgetModel.schema,
        _model_name=Field("BoxModel", types=str),
        _view_name=Field("ContainerView", types=str),
        children=Field([], codec=MODEL_REFERENCES, types=(list, tuple)),
    )


class RecordingView(WidgetView):
    """View that records the change batches it receives."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.rendered = 0
        self.changes: List[StateChange] = []

    def render(self) -> None:
        self.rendered += 1

    def update(self, change: Optional[StateChange] = None) -> None:
        if change is not None:
            self.changes.append(change)
