"""Tagged wire values.

Serialized widget state is plain JSON-like data in which a string of the
form ``IPY_MODEL_<id>`` stands for another model. ``classify`` turns raw
data into one of four explicit shapes so callers pattern-match instead of
sniffing string prefixes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple, Union

MODEL_REF_MARKER = "IPY_MODEL_"


@dataclass(frozen=True, slots=True)
class Scalar:
    value: Any


@dataclass(frozen=True, slots=True)
class Reference:
    model_id: str


@dataclass(frozen=True, slots=True)
class Sequence:
    items: Tuple[Any, ...]
    as_tuple: bool = False


@dataclass(frozen=True, slots=True)
class Mapping:
    items: Dict[Any, Any]


WireValue = Union[Scalar, Reference, Sequence, Mapping]


def reference_token(model_id: str) -> str:
    """Return the serialized form of a reference to ``model_id``."""
    return f"{MODEL_REF_MARKER}{model_id}"


def is_reference_token(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(MODEL_REF_MARKER)


def classify(value: Any) -> WireValue:
    """Classify one level of raw data; children stay raw."""
    if isinstance(value, list):
        return Sequence(tuple(value))
    if isinstance(value, tuple):
        return Sequence(value, as_tuple=True)
    if isinstance(value, dict):
        return Mapping(value)
    if is_reference_token(value):
        return Reference(value[len(MODEL_REF_MARKER):])
    return Scalar(value)


__all__ = [
    "MODEL_REF_MARKER",
    "Scalar",
    "Reference",
    "Sequence",
    "Mapping",
    "WireValue",
    "reference_token",
    "is_reference_token",
    "classify",
]
