"""Serialization pipeline between model attributes and wire state.

Outgoing: per-attribute encoders (sync or async) are applied, every value is
awaited concurrently, then binary values are pulled out of the mapping so
the channel can ship them out of band.

Incoming: binary values are put back under their keys, per-attribute
decoders run, and nested model references are resolved through the
manager.
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping as MappingType, Optional, Sequence as SequenceType

import numpy as np

from .asyncio_utils import maybe_await
from .errors import DecodeError, EncodeError
from .values import Mapping, Reference, Scalar, Sequence, classify

if TYPE_CHECKING:
    from .manager import WidgetManager
    from .model import WidgetModel

Encoder = Callable[[Any, "WidgetModel"], Any]
Decoder = Callable[[Any, "WidgetManager"], Any]
DecodeErrorHandler = Callable[[str, BaseException], None]


@dataclass(frozen=True)
class Codec:
    """Encoder/decoder pair for one attribute. Either side may return an awaitable."""

    encode: Optional[Encoder] = None
    decode: Optional[Decoder] = None


@dataclass
class EncodedState:
    state: Dict[str, Any]
    buffer_keys: List[str] = field(default_factory=list)
    buffers: List[Any] = field(default_factory=list)


BINARY_TYPES = (bytes, bytearray, memoryview, np.ndarray)


def is_binary(value: Any) -> bool:
    return isinstance(value, BINARY_TYPES)


async def resolve_mapping(mapping: MappingType[str, Any]) -> Dict[str, Any]:
    """Await every value of ``mapping`` concurrently, keeping key order.

    Fails with the first exception raised by any value.
    """
    keys = list(mapping.keys())
    values = await asyncio.gather(*(maybe_await(mapping[key]) for key in keys))
    return dict(zip(keys, values))


def extract_buffers(state: Dict[str, Any]) -> EncodedState:
    """Move top-level binary values out of ``state`` into a parallel list."""
    plain: Dict[str, Any] = {}
    buffer_keys: List[str] = []
    buffers: List[Any] = []
    for key, value in state.items():
        if is_binary(value):
            buffer_keys.append(key)
            buffers.append(value)
        else:
            plain[key] = value
    return EncodedState(state=plain, buffer_keys=buffer_keys, buffers=buffers)


def attach_buffers(
    state: Dict[str, Any],
    buffer_keys: SequenceType[str],
    buffers: SequenceType[Any],
) -> Dict[str, Any]:
    """Return a copy of ``state`` with ``buffers[i]`` stored under ``buffer_keys[i]``."""
    if len(buffer_keys) > len(buffers):
        raise DecodeError(
            f"{len(buffer_keys)} buffer keys but only {len(buffers)} buffers",
            code="buffer_count_mismatch",
        )
    merged = dict(state)
    for key, buffer in zip(buffer_keys, buffers):
        merged[key] = buffer
    return merged


async def encode_state(
    attrs: MappingType[str, Any],
    codecs: MappingType[str, Codec],
    model: Optional["WidgetModel"] = None,
) -> EncodedState:
    """Encode ``attrs`` and split out binary values for out-of-band transport."""
    pending: Dict[str, Any] = {}
    try:
        for key, value in attrs.items():
            codec = codecs.get(key)
            if codec is not None and codec.encode is not None:
                pending[key] = codec.encode(value, model)
            else:
                pending[key] = value
        resolved = await resolve_mapping(pending)
    except Exception as exc:
        for value in pending.values():
            if inspect.iscoroutine(value) and inspect.getcoroutinestate(value) == inspect.CORO_CREATED:
                value.close()
        raise EncodeError(f"Couldn't encode state: {exc}") from exc
    return extract_buffers(resolved)


async def decode_state(
    state: MappingType[str, Any],
    codecs: MappingType[str, Codec],
    manager: Optional["WidgetManager"] = None,
    *,
    on_error: Optional[DecodeErrorHandler] = None,
) -> Dict[str, Any]:
    """Decode ``state`` attribute by attribute.

    Without ``on_error`` the first failing attribute raises ``DecodeError``.
    With it, each failure is reported through the handler and that
    attribute is left out of the result.
    """

    async def _decode_one(key: str, value: Any) -> Any:
        codec = codecs.get(key)
        if codec is None or codec.decode is None:
            return value
        return await maybe_await(codec.decode(value, manager))

    keys = list(state.keys())
    results = await asyncio.gather(
        *(_decode_one(key, state[key]) for key in keys),
        return_exceptions=True,
    )

    decoded: Dict[str, Any] = {}
    for key, result in zip(keys, results):
        if isinstance(result, BaseException):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if on_error is None:
                raise DecodeError(f"Couldn't decode attribute {key!r}: {result}") from result
            on_error(key, result)
            continue
        decoded[key] = result
    return decoded


async def unpack_models(value: Any, manager: "WidgetManager") -> Any:
    """Replace model reference tokens with models, at any nesting depth."""
    match classify(value):
        case Reference(model_id=model_id):
            return await manager.get_model(model_id)
        case Sequence(items=items, as_tuple=as_tuple):
            unpacked = await asyncio.gather(*(unpack_models(item, manager) for item in items))
            return tuple(unpacked) if as_tuple else list(unpacked)
        case Mapping(items=items):
            return await resolve_mapping({key: unpack_models(item, manager) for key, item in items.items()})
        case Scalar(value=scalar):
            return scalar


def pack_models(value: Any, model: Optional["WidgetModel"] = None) -> Any:
    """Replace models with their reference tokens, at any nesting depth."""
    to_json = getattr(value, "to_json", None)
    if callable(to_json):
        return to_json()
    if isinstance(value, list):
        return [pack_models(item, model) for item in value]
    if isinstance(value, tuple):
        return tuple(pack_models(item, model) for item in value)
    if isinstance(value, dict):
        return {key: pack_models(item, model) for key, item in value.items()}
    return value


MODEL_REFERENCES = Codec(encode=pack_models, decode=unpack_models)


def ndarray_codec(dtype: Any = "float64", shape: Optional[tuple] = None) -> Codec:
    """Codec shipping a numpy array as a raw buffer of ``dtype``."""
    np_dtype = np.dtype(dtype)

    def _encode(value: Any, model: Optional["WidgetModel"]) -> Any:
        if value is None:
            return None
        return memoryview(np.ascontiguousarray(value, dtype=np_dtype))

    def _decode(value: Any, manager: Optional["WidgetManager"]) -> Any:
        if value is None:
            return None
        array = np.frombuffer(value, dtype=np_dtype)
        if shape is not None:
            array = array.reshape(shape)
        return array

    return Codec(encode=_encode, decode=_decode)


__all__ = [
    "Codec",
    "EncodedState",
    "MODEL_REFERENCES",
    "attach_buffers",
    "decode_state",
    "encode_state",
    "extract_buffers",
    "is_binary",
    "ndarray_codec",
    "pack_models",
    "resolve_mapping",
    "unpack_models",
]
