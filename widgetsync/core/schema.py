"""Static attribute schema for model classes.

Each model class declares ``schema``: a mapping of attribute name to
``Field``. Subclasses extend their parent's table with ``extend_schema``.
The codec table used by the serialization pipeline is derived from it.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Type, Union

from .codecs import Codec
from .errors import AttributeValidationError

Validator = Callable[[Any], Any]
TypeSpec = Union[Type[Any], Tuple[Type[Any], ...], None]


@dataclass(frozen=True)
class Field:
    """One declared model attribute.

    Attributes:
        default: Value used when the model is created without one. Mutable
            defaults are copied per model.
        codec: Optional wire encoder/decoder.
        types: Accepted Python types; ``None`` accepts anything.
        allow_none: Whether ``None`` passes the type check.
        validate: Optional callable returning the (possibly coerced) value or
            raising ``ValueError``/``TypeError``.
    """

    default: Any = None
    codec: Optional[Codec] = None
    types: TypeSpec = None
    allow_none: bool = True
    validate: Optional[Validator] = None

    def make_default(self) -> Any:
        return copy.copy(self.default)

    def check(self, name: str, value: Any) -> Any:
        if value is None:
            if not self.allow_none:
                raise AttributeValidationError(name, "None is not allowed")
            return None
        if self.types is not None and not isinstance(value, self.types):
            expected = self.types if isinstance(self.types, tuple) else (self.types,)
            raise AttributeValidationError(
                name,
                f"expected {' or '.join(t.__name__ for t in expected)}, got {type(value).__name__}",
                code="invalid_type",
            )
        if self.validate is not None:
            try:
                return self.validate(value)
            except (TypeError, ValueError) as exc:
                raise AttributeValidationError(name, str(exc)) from exc
        return value


Schema = Dict[str, Field]


def extend_schema(base: Mapping[str, Field], **fields: Field) -> Schema:
    merged: Schema = dict(base)
    merged.update(fields)
    return merged


def codec_table(schema: Mapping[str, Field]) -> Dict[str, Codec]:
    return {name: spec.codec for name, spec in schema.items() if spec.codec is not None}


def default_state(schema: Mapping[str, Field]) -> Dict[str, Any]:
    return {name: spec.make_default() for name, spec in schema.items()}


def positive_int(value: Any) -> int:
    if isinstance(value, bool) or int(value) != value:
        raise ValueError(f"expected an integer, got {value!r}")
    if value < 1:
        raise ValueError(f"must be >= 1, got {value!r}")
    return int(value)


__all__ = ["Field", "Schema", "extend_schema", "codec_table", "default_state", "positive_int"]
