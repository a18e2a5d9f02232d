"""Column-name to field mappings for record classes.

A *record shape* is a dataclass or a pydantic model. Its public fields (names
without a leading underscore) are matched to result columns by name: either the
``orm`` tag attached to the field, or the field name with its first character
lower-cased. A tag of ``"-"`` keeps the field out of the mapping entirely.

Mappings are computed once per shape and cached for the life of the process.
"""

from __future__ import annotations

import dataclasses
import sys
import threading
import types
import typing
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Iterator, Mapping, TypeGuard, Union

from pydantic import BaseModel

from .errors import InvalidDestinationError

TAG_NAME = "orm"
SKIP_TAG = "-"

Converter = Callable[[Any], Any]


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """One mapped field of a record shape."""

    name: str
    column: str
    position: int
    converter: Converter | None = None


@dataclass(frozen=True, slots=True)
class FieldMapping:
    """Immutable column lookup for one record shape."""

    shape: type
    fields: tuple[FieldSpec, ...]
    by_column: Mapping[str, FieldSpec]

    @property
    def columns(self) -> dict[str, int]:
        """Column name -> field position."""

        return {name: spec.position for name, spec in self.by_column.items()}

    def lookup(self, column: str) -> FieldSpec | None:
        return self.by_column.get(column)

    def __contains__(self, column: object) -> bool:
        return column in self.by_column

    def __len__(self) -> int:
        return len(self.by_column)


class MappingCache:
    """Process-lifetime cache of :class:`FieldMapping` keyed by record shape.

    Reads never take the lock. The first computation for a shape runs under the
    insertion lock and re-checks the cache, so every caller receives the same
    fully built mapping object.
    """

    def __init__(self, *, tag_name: str = TAG_NAME) -> None:
        self._tag_name = tag_name
        self._mappings: dict[type, FieldMapping] = {}
        self._lock = threading.Lock()
        self.misses = 0

    @property
    def tag_name(self) -> str:
        return self._tag_name

    def get(self, shape: type) -> FieldMapping:
        """Return the mapping for ``shape``, computing it on first use."""

        mapping = self._mappings.get(shape)
        if mapping is not None:
            return mapping
        with self._lock:
            mapping = self._mappings.get(shape)
            if mapping is None:
                mapping = build_mapping(shape, tag_name=self._tag_name)
                self._mappings[shape] = mapping
                self.misses += 1
        return mapping

    def __contains__(self, shape: object) -> bool:
        return shape in self._mappings

    def __len__(self) -> int:
        return len(self._mappings)


DEFAULT_CACHE = MappingCache()


def get_mapping(shape: type) -> FieldMapping:
    """Look up ``shape`` in the process-wide mapping cache."""

    return DEFAULT_CACHE.get(shape)


def build_mapping(shape: type, *, tag_name: str = TAG_NAME) -> FieldMapping:
    """Compute the mapping for ``shape`` without caching it."""

    if not is_record_shape(shape):
        raise InvalidDestinationError(f"{_describe(shape)} is not a record class")
    by_column: dict[str, FieldSpec] = {}
    for position, name, tag, annotation in _shape_fields(shape, tag_name):
        if name.startswith("_") or tag == SKIP_TAG:
            continue
        column_name = tag or lower_first(name)
        by_column[column_name] = FieldSpec(
            name=name,
            column=column_name,
            position=position,
            converter=converter_for(annotation),
        )
    specs = tuple(sorted(by_column.values(), key=lambda spec: spec.position))
    return FieldMapping(shape=shape, fields=specs, by_column=types.MappingProxyType(by_column))


def column(name: str, **kwargs: Any) -> Any:
    """Dataclass field carrying an explicit column name (``"-"`` to skip it)."""

    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[TAG_NAME] = name
    return dataclasses.field(metadata=metadata, **kwargs)


def is_record_shape(shape: object) -> TypeGuard[type]:
    if not isinstance(shape, type):
        return False
    return dataclasses.is_dataclass(shape) or issubclass(shape, BaseModel)


def is_frozen(shape: type) -> bool:
    if dataclasses.is_dataclass(shape):
        return bool(shape.__dataclass_params__.frozen)  # type: ignore[attr-defined]
    if issubclass(shape, BaseModel):
        return bool(shape.model_config.get("frozen"))
    return False


def lower_first(name: str) -> str:
    if not name:
        return name
    return name[0].lower() + name[1:]


def _shape_fields(shape: type, tag_name: str) -> Iterator[tuple[int, str, str | None, Any]]:
    if dataclasses.is_dataclass(shape):
        for position, field in enumerate(dataclasses.fields(shape)):
            tag = field.metadata.get(tag_name)
            yield position, field.name, tag, _field_hint(shape, field)
        return
    for position, (name, info) in enumerate(shape.model_fields.items()):  # type: ignore[attr-defined]
        extra = info.json_schema_extra
        tag = extra.get(tag_name) if isinstance(extra, dict) else None
        yield position, name, tag, info.annotation


def _field_hint(shape: type, field: dataclasses.Field) -> Any:
    """Resolve one field's annotation in the namespace of the class declaring it."""

    owner = next(
        (base for base in shape.__mro__ if field.name in base.__dict__.get("__annotations__", {})),
        shape,
    )
    module = sys.modules.get(owner.__module__)
    globalns = dict(vars(module)) if module is not None else {}
    holder = types.SimpleNamespace(__annotations__={field.name: field.type})
    try:
        return typing.get_type_hints(holder, globalns=globalns, localns=dict(vars(owner)))[field.name]
    except (NameError, TypeError):
        # Only this field stays unconverted.
        return field.type


def _describe(shape: object) -> str:
    if isinstance(shape, type):
        return shape.__qualname__
    return type(shape).__name__


# --- converters --------------------------------------------------------------


def _to_int(value: Any) -> int:
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"{value!r} has a fractional part")
    if isinstance(value, Decimal) and value != value.to_integral_value():
        raise ValueError(f"{value!r} has a fractional part")
    if isinstance(value, (bytes, bytearray)):
        value = value.decode()
    return int(value)


def _to_float(value: Any) -> float:
    if isinstance(value, (bytes, bytearray)):
        value = value.decode()
    return float(value)


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, float):
        return Decimal(repr(value))
    if isinstance(value, (bytes, bytearray)):
        value = value.decode()
    return Decimal(value)


def _to_str(value: Any) -> str:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode()
    return str(value)


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, str):
        return value.encode()
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    raise TypeError(f"cannot store {type(value).__name__} into bytes")


_TRUE = {"t", "true", "1", "y", "yes", "on"}
_FALSE = {"f", "false", "0", "n", "no", "off"}


def _to_bool(value: Any) -> bool:
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, (str, bytes)):
        text = _to_str(value).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
    raise ValueError(f"{value!r} is not a boolean")


_SCALARS: dict[type, Converter] = {
    bool: _to_bool,
    int: _to_int,
    float: _to_float,
    Decimal: _to_decimal,
    str: _to_str,
    bytes: _to_bytes,
}


def converter_for(annotation: Any) -> Converter | None:
    """Converter for a field annotation, or ``None`` to store values as-is.

    Converters raise ``ValueError``/``TypeError`` on values they cannot store,
    including NULL into a non-optional scalar.
    """

    target, nullable = _unwrap_optional(annotation)
    convert = _SCALARS.get(target) if isinstance(target, type) else None
    if convert is None:
        return None

    def _convert(value: Any) -> Any:
        if value is None:
            if nullable:
                return None
            raise TypeError(f"converting NULL to {target.__name__} is unsupported")
        if type(value) is target or (isinstance(value, target) and target is not int):
            return value
        return convert(value)

    return _convert


def _unwrap_optional(annotation: Any) -> tuple[Any, bool]:
    origin = typing.get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        nullable = len(args) != len(typing.get_args(annotation))
        if len(args) == 1:
            return args[0], nullable
        return None, nullable
    return annotation, annotation is None or annotation is Any


__all__ = [
    "DEFAULT_CACHE",
    "FieldMapping",
    "FieldSpec",
    "MappingCache",
    "SKIP_TAG",
    "TAG_NAME",
    "build_mapping",
    "column",
    "converter_for",
    "get_mapping",
    "is_frozen",
    "is_record_shape",
    "lower_first",
]
